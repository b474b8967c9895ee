"""
Synchronization guard: the per-session state machine that serializes
update passes and mode switches.

All transitions happen through `SyncGuard` methods. `UPDATING` and
`MODE_SWITCHING` are values of a single phase field, so they can never
hold at the same time.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional

from ..exceptions import ModeSwitchInProgressError

logger = logging.getLogger(__name__)


class SyncPhase(Enum):
    """Top-level phase of a synchronization session."""
    IDLE = "idle"
    UPDATING = "updating"
    MODE_SWITCHING = "mode_switching"


@dataclass
class QueuedUpdate:
    """
    Requirements of a pending update pass.

    Requests coalesced into one slot OR their requirements together.
    """
    save_ack: bool = False
    refresh_panel: bool = True
    force: bool = False  # Bypass content de-duplication

    def merge(self, other: 'QueuedUpdate') -> 'QueuedUpdate':
        return QueuedUpdate(
            save_ack=self.save_ack or other.save_ack,
            refresh_panel=self.refresh_panel or other.refresh_panel,
            force=self.force or other.force,
        )


class SyncGuard:
    """
    Owned state machine for one topology session.

    Besides the phase it tracks a one-slot queue of coalesced update
    requests, the internal-write suppression flag and the one-shot
    validation skip flag.
    """

    def __init__(self):
        self._phase = SyncPhase.IDLE
        self._queued: Optional[QueuedUpdate] = None
        self._internal_writes = 0
        self._skip_validation = False
        self._idle = asyncio.Event()
        self._idle.set()

    # -- phase ---------------------------------------------------------------

    @property
    def phase(self) -> SyncPhase:
        return self._phase

    @property
    def is_idle(self) -> bool:
        return self._phase is SyncPhase.IDLE

    @property
    def is_updating(self) -> bool:
        return self._phase is SyncPhase.UPDATING

    @property
    def is_switching(self) -> bool:
        return self._phase is SyncPhase.MODE_SWITCHING

    def _set_phase(self, phase: SyncPhase) -> None:
        logger.debug(f"Sync phase {self._phase.value} -> {phase.value}")
        self._phase = phase
        if phase is SyncPhase.IDLE:
            self._idle.set()
        else:
            self._idle.clear()

    def begin_update(self) -> None:
        if not self.is_idle:
            raise RuntimeError(f"Cannot start an update pass while {self._phase.value}")
        self._set_phase(SyncPhase.UPDATING)

    def end_update(self) -> None:
        if not self.is_updating:
            raise RuntimeError(f"No update pass in progress (phase is {self._phase.value})")
        self._queued = None
        self._set_phase(SyncPhase.IDLE)

    def begin_mode_switch(self) -> None:
        if self.is_switching:
            raise ModeSwitchInProgressError()
        if not self.is_idle:
            raise RuntimeError(f"Cannot switch mode while {self._phase.value}")
        self._set_phase(SyncPhase.MODE_SWITCHING)

    def end_mode_switch(self) -> None:
        if self.is_switching:
            self._set_phase(SyncPhase.IDLE)

    async def wait_idle(self) -> None:
        await self._idle.wait()

    def reset(self) -> None:
        """Return to IDLE and drop all pending state."""
        self._queued = None
        self._internal_writes = 0
        self._skip_validation = False
        self._set_phase(SyncPhase.IDLE)

    # -- coalescing queue ----------------------------------------------------

    def enqueue(self, request: QueuedUpdate) -> QueuedUpdate:
        """Coalesce a request into the one-slot queue and return the slot."""
        if not self.is_updating:
            raise RuntimeError("Updates are only queued while a pass is running")
        self._queued = request if self._queued is None else self._queued.merge(request)
        return self._queued

    def take_queued(self) -> Optional[QueuedUpdate]:
        """Clear the queue slot and return what it held."""
        queued, self._queued = self._queued, None
        return queued

    @property
    def queued(self) -> Optional[QueuedUpdate]:
        return self._queued

    # -- internal write suppression -------------------------------------------

    @property
    def internal_write(self) -> bool:
        return self._internal_writes > 0

    @asynccontextmanager
    async def internal_write_window(self, settle_s: float = 0.0) -> AsyncIterator[None]:
        """
        Mark writes made inside the block as self-issued.

        The flag stays set for `settle_s` after the block so that the
        filesystem notification for the write arrives while it is still set.
        """
        self._internal_writes += 1
        try:
            yield
            if settle_s > 0:
                await asyncio.sleep(settle_s)
        finally:
            self._internal_writes -= 1

    # -- one-shot validation skip ----------------------------------------------

    def request_skip_validation(self) -> None:
        self._skip_validation = True

    def consume_skip_validation(self) -> bool:
        skip, self._skip_validation = self._skip_validation, False
        return skip
