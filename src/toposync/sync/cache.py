"""
View-mode cache.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..topology.graph import GraphModel
from ..topology.models import ParsedTopology

logger = logging.getLogger(__name__)


@dataclass
class ViewModeCache:
    """
    Last graph built in view mode, keyed by the source file's mtime.

    Private to one session; cleared on every edit-mode pass.
    """
    graph: Optional[GraphModel] = None
    parsed: Optional[ParsedTopology] = None
    mtime: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return self.graph is None

    def is_stale(self, current_mtime: Optional[int]) -> bool:
        """True when empty, holding no elements, or built from a different mtime."""
        if self.graph is None or self.parsed is None:
            return True
        if len(self.graph) == 0:
            return True
        return self.mtime != current_mtime

    def store(self, graph: GraphModel, parsed: ParsedTopology, mtime: Optional[int]) -> None:
        self.graph = graph
        self.parsed = parsed
        self.mtime = mtime
        logger.debug(f"View cache stored ({len(graph)} element(s), mtime={mtime})")

    def clear(self) -> None:
        if self.graph is not None:
            logger.debug("View cache cleared")
        self.graph = None
        self.parsed = None
        self.mtime = None
