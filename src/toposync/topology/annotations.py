"""
Annotation overlays stored beside the topology file.

Annotations (free text, free shapes, group styles, per-node positions and
viewer settings) live in `<topology file>.annotations.json`. They are
loaded and saved independently of the topology file and only merged into
the graph model at conversion time.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..exceptions import AnnotationWriteError

logger = logging.getLogger(__name__)

ANNOTATIONS_SUFFIX = ".annotations.json"


class NodeAnnotation(BaseModel):
    """Per-node overlay: position, icon and group membership."""

    model_config = ConfigDict(extra="allow")

    id: str
    position: Optional[Dict[str, float]] = None
    icon: Optional[str] = None
    group: Optional[str] = None
    level: Optional[str] = None


class AnnotationSet(BaseModel):
    """All overlays for one topology file."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    free_text_annotations: List[Dict[str, Any]] = Field(
        default_factory=list, alias="freeTextAnnotations"
    )
    free_shape_annotations: List[Dict[str, Any]] = Field(
        default_factory=list, alias="freeShapeAnnotations"
    )
    group_style_annotations: List[Dict[str, Any]] = Field(
        default_factory=list, alias="groupStyleAnnotations"
    )
    node_annotations: List[NodeAnnotation] = Field(
        default_factory=list, alias="nodeAnnotations"
    )
    viewer_settings: Dict[str, Any] = Field(default_factory=dict, alias="viewerSettings")

    def node(self, node_id: str) -> Optional[NodeAnnotation]:
        for annotation in self.node_annotations:
            if annotation.id == node_id:
                return annotation
        return None

    def upsert_node(self, annotation: NodeAnnotation) -> None:
        self.node_annotations = [a for a in self.node_annotations if a.id != annotation.id]
        self.node_annotations.append(annotation)

    def to_file_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def annotations_path(topology_path: Union[str, Path]) -> Path:
    topology_path = Path(topology_path)
    return topology_path.with_name(topology_path.name + ANNOTATIONS_SUFFIX)


class AnnotationStore:
    """Loads and saves the annotation file of one topology file."""

    def __init__(self, topology_path: Union[str, Path]):
        self.path = annotations_path(topology_path)

    async def load(self) -> AnnotationSet:
        """Load annotations; a missing or unreadable file yields an empty set."""
        if not self.path.exists():
            return AnnotationSet()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            annotations = AnnotationSet.model_validate(data)
            logger.debug(f"Loaded annotations from {self.path}")
            return annotations
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Failed to load annotations from {self.path}: {e}")
            return AnnotationSet()

    async def save(self, annotations: AnnotationSet) -> None:
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(annotations.to_file_dict(), f, indent=2)
            logger.debug(f"Saved annotations to {self.path}")
        except OSError as e:
            logger.error(f"Failed to save annotations to {self.path}: {e}")
            raise AnnotationWriteError(str(e), path=str(self.path)) from e

    async def exists(self) -> bool:
        return self.path.exists()

    async def load_viewer_settings(self) -> Dict[str, Any]:
        return (await self.load()).viewer_settings

    async def save_viewer_settings(self, settings: Dict[str, Any]) -> None:
        annotations = await self.load()
        annotations.viewer_settings = {**annotations.viewer_settings, **settings}
        await self.save(annotations)
