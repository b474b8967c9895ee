"""
Change detection layer.

Turns raw filesystem notifications into update requests. A notification
only leads to an update when the file content differs from the last
processed snapshot, and never while the engine's own write is in flight.
"""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

from ..topology.source import TopologySourceReader
from .event_bus import EventBus
from .events import ExternalChangeEvent
from .state import SyncGuard

logger = logging.getLogger(__name__)

CachedTextProvider = Callable[[], Awaitable[Optional[str]]]
UpdateRequester = Callable[..., Awaitable[bool]]


class ChangeDetector:
    """Decides which file notifications are relevant for one session."""

    def __init__(
        self,
        reader: TopologySourceReader,
        guard: SyncGuard,
        cached_text: CachedTextProvider,
        request_update: UpdateRequester,
        poll_interval_s: float = 0.0,
        event_bus: Optional[EventBus] = None,
        lab_name: Callable[[], str] = lambda: "",
    ):
        self.reader = reader
        self.guard = guard
        self.cached_text = cached_text
        self.request_update = request_update
        self.poll_interval_s = poll_interval_s
        self.event_bus = event_bus
        self.lab_name = lab_name

        self.path: Optional[Path] = None
        self._last_mtime: Optional[int] = None
        self._poll_task: Optional[asyncio.Task] = None

    def watch(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self.mark_seen()

    def mark_seen(self, path: Optional[Path] = None) -> None:
        """Take the current mtime as the baseline for polling."""
        if self.path is not None:
            self._last_mtime = self.reader.mtime(self.path)

    async def _emit(self, source: str, status: str, reason: Optional[str] = None) -> None:
        if self.event_bus is not None:
            await self.event_bus.emit(
                ExternalChangeEvent(self.lab_name(), source=source, status=status, reason=reason)
            )

    async def _content_changed(self, source: str) -> bool:
        if self.guard.internal_write:
            logger.debug(f"Ignoring {source} notification during internal write")
            await self._emit(source, "ignored", "internal write")
            return False

        text = await self.reader.read_or_none(self.path)
        if text is None:
            await self._emit(source, "ignored", "unreadable")
            return False

        if text == await self.cached_text():
            logger.debug(f"Ignoring {source} notification, content unchanged")
            await self._emit(source, "ignored", "unchanged")
            return False
        return True

    async def on_file_changed(self, source: str = "file") -> bool:
        """
        Handle an external change notification for the watched file.

        Returns:
            True if an update was requested
        """
        if self.path is None:
            return False
        if not await self._content_changed(source):
            return False
        logger.info(f"External change detected in {self.path}")
        await self._emit(source, "requested")
        return await self.request_update(save_ack=False)

    async def on_saved(self, path: Union[str, Path]) -> bool:
        """
        Handle a manual save of some document.

        Returns:
            True if an update with save acknowledgement was requested
        """
        if self.path is None or Path(path).resolve() != self.path.resolve():
            return False
        if not await self._content_changed("save"):
            return False
        logger.info(f"Save detected for {self.path}")
        await self._emit("save", "requested")
        return await self.request_update(save_ack=True)

    # -- polling ---------------------------------------------------------------

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def start(self) -> None:
        """Start mtime polling (no-op when disabled or already running)."""
        if self.poll_interval_s <= 0 or self.path is None or self.polling:
            return
        self.mark_seen()
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.debug(f"Polling {self.path} every {self.poll_interval_s}s")

    async def stop(self) -> None:
        if self._poll_task is None:
            return
        self._poll_task.cancel()
        try:
            await self._poll_task
        except asyncio.CancelledError:
            pass
        self._poll_task = None

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval_s)
            mtime = self.reader.mtime(self.path)
            if mtime == self._last_mtime:
                continue
            self._last_mtime = mtime
            if mtime is None or self.guard.internal_write:
                continue
            try:
                await self.on_file_changed(source="poll")
            except Exception as e:
                logger.error(f"Change handling failed for {self.path}: {e}", exc_info=True)
