"""
Synchronization event definitions.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional
import time
import uuid


@dataclass
class SyncEvent:
    """Base class for all synchronization events."""
    lab_name: str  # Required field
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()), kw_only=True)
    timestamp: float = field(default_factory=time.time, kw_only=True)
    metadata: Dict[str, Any] = field(default_factory=dict, kw_only=True)

    @property
    def event_type(self) -> str:
        """Get event type for filtering."""
        return self.__class__.__name__.replace("Event", "").lower()


@dataclass
class UpdateQueuedEvent(SyncEvent):
    """Update request coalesced into the queue slot."""
    save_ack: bool
    refresh_panel: bool


@dataclass
class UpdatePassEvent(SyncEvent):
    """One update pass."""
    status: Literal["started", "completed", "skipped", "failed"]
    initial: bool = False
    view_mode: bool = False
    save_ack: bool = False
    reason: Optional[str] = None


@dataclass
class UpdateRejectedEvent(SyncEvent):
    """Update request dropped because a mode switch is running."""
    save_ack: bool


@dataclass
class ExternalChangeEvent(SyncEvent):
    """File change notification seen by change detection."""
    source: Literal["file", "save", "poll"]
    status: Literal["requested", "ignored"]
    reason: Optional[str] = None


@dataclass
class ModeSwitchEvent(SyncEvent):
    """Mode switch lifecycle."""
    status: Literal["started", "completed", "rejected", "failed"]
    mode: Optional[str] = None
    deployment_state: Optional[str] = None
    error: Optional[str] = None
