"""
Synchronization state: guard state machine, caches and events.

The engine itself lives in `toposync.sync.engine`.
"""

from .state import QueuedUpdate, SyncGuard, SyncPhase
from .cache import ViewModeCache
from .workspace import FileWorkspaceState, MemoryWorkspaceState, WorkspaceState
from .events import (
    SyncEvent,
    UpdateQueuedEvent,
    UpdatePassEvent,
    UpdateRejectedEvent,
    ExternalChangeEvent,
    ModeSwitchEvent,
)
from .event_bus import EventBus

__all__ = [
    'QueuedUpdate',
    'SyncGuard',
    'SyncPhase',
    'ViewModeCache',
    'FileWorkspaceState',
    'MemoryWorkspaceState',
    'WorkspaceState',
    'SyncEvent',
    'UpdateQueuedEvent',
    'UpdatePassEvent',
    'UpdateRejectedEvent',
    'ExternalChangeEvent',
    'ModeSwitchEvent',
    'EventBus',
]
