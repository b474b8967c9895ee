"""
Graph model rendered by the panel.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from .annotations import AnnotationSet


@dataclass
class GraphElement:
    """A node or edge element."""
    group: str  # "nodes" or "edges"
    data: Dict[str, Any]
    position: Dict[str, float] = field(default_factory=lambda: {"x": 0.0, "y": 0.0})
    classes: str = ""

    @property
    def id(self) -> str:
        return str(self.data.get("id", ""))

    @property
    def is_node(self) -> bool:
        return self.group == "nodes"

    @property
    def is_edge(self) -> bool:
        return self.group == "edges"

    def to_dict(self) -> Dict[str, Any]:
        element: Dict[str, Any] = {"group": self.group, "data": self.data}
        if self.is_node:
            element["position"] = self.position
        if self.classes:
            element["classes"] = self.classes
        return element


@dataclass
class GraphModel:
    """
    In-memory node/edge representation of a topology.

    Always regenerable from the topology text, a deployment snapshot and
    the annotation overlays; never treated as the source of truth.
    """
    elements: List[GraphElement] = field(default_factory=list)
    annotations: AnnotationSet = field(default_factory=AnnotationSet)
    lab_name: Optional[str] = None

    def __len__(self) -> int:
        return len(self.elements)

    def __iter__(self) -> Iterator[GraphElement]:
        return iter(self.elements)

    @property
    def nodes(self) -> List[GraphElement]:
        return [e for e in self.elements if e.is_node]

    @property
    def edges(self) -> List[GraphElement]:
        return [e for e in self.elements if e.is_edge]

    def get(self, element_id: str) -> Optional[GraphElement]:
        for element in self.elements:
            if element.id == element_id:
                return element
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "labName": self.lab_name,
            "elements": [e.to_dict() for e in self.elements],
            "annotations": self.annotations.to_file_dict(),
        }
