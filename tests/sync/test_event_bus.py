"""
Tests for the sync EventBus.
"""

from unittest.mock import AsyncMock

import pytest

from toposync.sync.event_bus import EventBus
from toposync.sync.events import ModeSwitchEvent, UpdatePassEvent, UpdateQueuedEvent


class TestEventBus:
    """Tests for emit, subscribe and history."""

    @pytest.mark.asyncio
    async def test_listener_receives_its_type(self):
        bus = EventBus()
        listener = AsyncMock()
        bus.subscribe(UpdatePassEvent, listener)

        event = UpdatePassEvent("demo", status="started")
        await bus.emit(event)
        await bus.emit(ModeSwitchEvent("demo", status="started"))

        listener.assert_awaited_once_with(event)

    @pytest.mark.asyncio
    async def test_subscribe_by_name(self):
        bus = EventBus()
        listener = AsyncMock()
        bus.subscribe("UpdateQueuedEvent", listener)

        await bus.emit(UpdateQueuedEvent("demo", save_ack=True, refresh_panel=True))

        listener.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        bus = EventBus()
        listener = AsyncMock()
        bus.subscribe(UpdatePassEvent, listener)
        bus.unsubscribe(UpdatePassEvent, listener)

        await bus.emit(UpdatePassEvent("demo", status="started"))

        listener.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failing_listener_is_dropped(self):
        bus = EventBus(max_listener_errors=2)
        listener = AsyncMock(side_effect=RuntimeError("boom"))
        bus.subscribe(UpdatePassEvent, listener)

        for _ in range(3):
            await bus.emit(UpdatePassEvent("demo", status="started"))

        assert listener.await_count == 2
        assert bus.listeners["UpdatePassEvent"] == []

    @pytest.mark.asyncio
    async def test_history_filters(self):
        bus = EventBus()
        await bus.emit(UpdatePassEvent("demo", status="started"))
        await bus.emit(UpdatePassEvent("demo", status="completed", save_ack=True))
        await bus.emit(UpdatePassEvent("other", status="completed"))

        assert bus.count() == 3
        assert bus.count(UpdatePassEvent, status="completed") == 2
        assert bus.count(UpdatePassEvent, status="completed", lab_name="demo", save_ack=True) == 1

        bus.clear()
        assert bus.count() == 0

    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        bus = EventBus(max_history=2)
        for status in ("started", "completed", "skipped"):
            await bus.emit(UpdatePassEvent("demo", status=status))

        assert [e.status for e in bus.history()] == ["completed", "skipped"]

    def test_event_type_and_ids(self):
        first = UpdatePassEvent("demo", status="started")
        second = UpdatePassEvent("demo", status="started")

        assert first.event_type == "updatepass"
        assert first.event_id != second.event_id
