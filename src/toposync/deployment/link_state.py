"""
Live link state for view mode.

Rebuilds edge elements from the cached parsed topology and a fresh
deployment snapshot, and reports the ones whose state or interface data
changed since the last push.
"""

import logging
from typing import Any, Dict, List, Optional

from ..topology.adapter import TopologyAdapter
from ..topology.annotations import AnnotationSet
from ..topology.graph import GraphElement, GraphModel
from ..topology.models import ParsedTopology
from .records import DeploymentSnapshot

logger = logging.getLogger(__name__)


class LinkStateRefresher:
    """Computes `updateTopology` edge updates."""

    def __init__(self, adapter: Optional[TopologyAdapter] = None):
        self.adapter = adapter or TopologyAdapter()

    def build_edges(
        self,
        parsed: ParsedTopology,
        snapshot: DeploymentSnapshot,
        annotations: Optional[AnnotationSet] = None,
    ) -> List[GraphElement]:
        return self.adapter.convert_parsed(parsed, snapshot, annotations).edges

    def edge_updates(
        self,
        parsed: ParsedTopology,
        snapshot: DeploymentSnapshot,
        previous: Optional[GraphModel] = None,
    ) -> List[Dict[str, Any]]:
        """
        Edge elements to push to the panel.

        With a previous graph only edges that differ from it are returned.
        """
        annotations = previous.annotations if previous is not None else None
        edges = self.build_edges(parsed, snapshot, annotations)
        if previous is None:
            return [edge.to_dict() for edge in edges]

        updates = []
        for edge in edges:
            old = previous.get(edge.id)
            if old is None or old.classes != edge.classes or old.data != edge.data:
                updates.append(edge.to_dict())
        logger.debug(f"{len(updates)} of {len(edges)} edge(s) changed state")
        return updates

    @staticmethod
    def apply(graph: GraphModel, updates: List[Dict[str, Any]]) -> None:
        """Apply pushed edge updates to a cached graph."""
        for update in updates:
            edge = graph.get(str(update["data"].get("id")))
            if edge is None:
                continue
            edge.data = update["data"]
            edge.classes = update.get("classes", "")
