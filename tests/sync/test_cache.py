"""
Tests for the view-mode cache and workspace storage.
"""

import json

import pytest

from toposync.sync.cache import ViewModeCache
from toposync.sync.workspace import FileWorkspaceState, MemoryWorkspaceState
from toposync.topology.adapter import TopologyAdapter
from toposync.topology.models import ParsedTopology

from tests.conftest import TWO_NODE_TOPOLOGY


# =============================================================================
# View Cache Tests
# =============================================================================

class TestViewModeCache:
    """Tests for ViewModeCache staleness."""

    @pytest.fixture
    def parsed(self):
        return ParsedTopology.from_text(TWO_NODE_TOPOLOGY)

    def test_empty_cache_is_stale(self):
        cache = ViewModeCache()

        assert cache.is_empty
        assert cache.is_stale(123)

    def test_fresh_when_mtime_matches(self, parsed):
        cache = ViewModeCache()
        cache.store(TopologyAdapter().convert_parsed(parsed), parsed, 123)

        assert not cache.is_stale(123)
        assert cache.is_stale(124)
        assert cache.is_stale(None)

    def test_graph_without_elements_is_stale(self):
        parsed = ParsedTopology.from_text("name: empty\ntopology: {}\n")
        cache = ViewModeCache()
        cache.store(TopologyAdapter().convert_parsed(parsed), parsed, 123)

        assert not cache.is_empty
        assert cache.is_stale(123)

    def test_clear(self, parsed):
        cache = ViewModeCache()
        cache.store(TopologyAdapter().convert_parsed(parsed), parsed, 1)

        cache.clear()

        assert cache.is_empty
        assert cache.parsed is None
        assert cache.mtime is None


# =============================================================================
# Workspace Tests
# =============================================================================

class TestMemoryWorkspaceState:
    """Tests for MemoryWorkspaceState."""

    @pytest.mark.asyncio
    async def test_get_update_delete(self):
        state = MemoryWorkspaceState({"cached_topology_a": "x"})

        await state.update("cached_topology_b", "y")
        await state.update("other", 1)

        assert await state.get("cached_topology_a") == "x"
        assert sorted(await state.keys("cached_topology_")) == ["cached_topology_a", "cached_topology_b"]

        await state.delete("cached_topology_a")
        await state.delete("never-set")
        assert await state.get("cached_topology_a") is None


class TestFileWorkspaceState:
    """Tests for FileWorkspaceState."""

    @pytest.mark.asyncio
    async def test_values_persist_across_instances(self, tmp_path):
        path = tmp_path / "state" / "workspace.json"

        await FileWorkspaceState(path).update("cached_topology_demo", TWO_NODE_TOPOLOGY)
        reloaded = FileWorkspaceState(path)

        assert await reloaded.get("cached_topology_demo") == TWO_NODE_TOPOLOGY
        assert json.loads(path.read_text(encoding="utf-8")) == {"cached_topology_demo": TWO_NODE_TOPOLOGY}

    @pytest.mark.asyncio
    async def test_delete_persists(self, tmp_path):
        path = tmp_path / "workspace.json"
        state = FileWorkspaceState(path)
        await state.update("k", "v")

        await state.delete("k")

        assert await FileWorkspaceState(path).get("k") is None

    @pytest.mark.parametrize("content", ["{broken", "[1, 2]"])
    def test_unreadable_file_starts_empty(self, tmp_path, content):
        path = tmp_path / "workspace.json"
        path.write_text(content, encoding="utf-8")

        assert FileWorkspaceState(path)._values == {}
