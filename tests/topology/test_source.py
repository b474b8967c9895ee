"""
Tests for the toposync.topology.source module.

This module tests:
- Reading and writing topology files
- Internal write suppression and write listeners
- Default content for empty files
- Template creation and the one-shot validation skip
"""

import asyncio

import pytest

from toposync.config import SyncConfig, TopologyDefaults
from toposync.exceptions import TopologyReadError
from toposync.sync.state import SyncGuard
from toposync.topology.source import (
    TopologySourceReader,
    build_default_topology,
    minimal_topology,
    template_path,
)
from toposync.topology.models import ParsedTopology


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def guard():
    return SyncGuard()


@pytest.fixture
def reader(guard):
    return TopologySourceReader(guard, SyncConfig(internal_write_settle_s=0.0))


# =============================================================================
# Default Content Tests
# =============================================================================

class TestDefaultContent:
    """Tests for generated topology content."""

    def test_default_topology_has_two_nodes_and_one_link(self):
        parsed = ParsedTopology.from_text(build_default_topology("demo"))

        assert parsed.name == "demo"
        assert set(parsed.topology.nodes) == {"srl1", "srl2"}
        assert parsed.topology.links == [{"endpoints": ["srl1:e1-1", "srl2:e1-1"]}]
        assert parsed.topology.nodes["srl1"]["image"] == "ghcr.io/nokia/srlinux:latest"

    def test_default_topology_uses_configured_defaults(self):
        defaults = TopologyDefaults(node_kind="linux", node_type="host", node_image="alpine:3")
        parsed = ParsedTopology.from_text(build_default_topology("demo", defaults))

        assert parsed.topology.nodes["srl2"] == {"kind": "linux", "type": "host", "image": "alpine:3"}

    def test_minimal_topology_is_empty(self):
        parsed = ParsedTopology.from_text(minimal_topology("lab"))

        assert parsed.name == "lab"
        assert parsed.topology.nodes == {}
        assert parsed.topology.links == []

    @pytest.mark.parametrize(
        "given,expected",
        [
            ("lab", "lab.clab.yml"),
            ("lab.yml", "lab.clab.yml"),
            ("lab.yaml", "lab.clab.yml"),
            ("lab.clab.yml", "lab.clab.yml"),
            ("lab.clab.yaml", "lab.clab.yaml"),
        ],
    )
    def test_template_path(self, tmp_path, given, expected):
        assert template_path(tmp_path / given).name == expected


# =============================================================================
# Read/Write Tests
# =============================================================================

class TestReadWrite:
    """Tests for reading and writing topology text."""

    @pytest.mark.asyncio
    async def test_read_existing_file(self, reader, topo_file):
        text = await reader.read(topo_file)
        assert text.startswith("name: demo")

    @pytest.mark.asyncio
    async def test_read_missing_file_raises(self, reader, tmp_path):
        with pytest.raises(TopologyReadError) as exc_info:
            await reader.read(tmp_path / "missing.clab.yml")

        assert exc_info.value.error_code == "TOPOLOGY_READ_ERROR"
        assert exc_info.value.path.endswith("missing.clab.yml")

    @pytest.mark.asyncio
    async def test_read_or_none_on_missing_file(self, reader, tmp_path):
        assert await reader.read_or_none(tmp_path / "missing.clab.yml") is None

    @pytest.mark.asyncio
    async def test_internal_write_sets_flag_while_listeners_run(self, reader, guard, tmp_path):
        seen = []
        reader.add_write_listener(lambda path: seen.append((path.name, guard.internal_write)))

        await reader.write(tmp_path / "lab.clab.yml", "name: lab\n")

        assert seen == [("lab.clab.yml", True)]
        assert guard.internal_write is False

    @pytest.mark.asyncio
    async def test_external_write_skips_listeners(self, reader, tmp_path):
        seen = []
        reader.add_write_listener(seen.append)

        await reader.write(tmp_path / "lab.clab.yml", "name: lab\n", internal=False)

        assert seen == []
        assert (tmp_path / "lab.clab.yml").read_text(encoding="utf-8") == "name: lab\n"

    @pytest.mark.asyncio
    async def test_flag_held_during_settle_window(self, guard, tmp_path):
        reader = TopologySourceReader(guard, SyncConfig(internal_write_settle_s=0.05))

        write = asyncio.create_task(reader.write(tmp_path / "lab.clab.yml", "name: lab\n"))
        await asyncio.sleep(0.01)
        assert guard.internal_write is True

        await write
        assert guard.internal_write is False

    def test_listener_registered_once(self, reader):
        listener = lambda path: None  # noqa: E731
        reader.add_write_listener(listener)
        reader.add_write_listener(listener)
        assert len(reader._write_listeners) == 1

    def test_mtime(self, reader, topo_file, tmp_path):
        assert isinstance(reader.mtime(topo_file), int)
        assert reader.mtime(tmp_path / "missing") is None


# =============================================================================
# Empty File and Template Tests
# =============================================================================

class TestEnsureContent:
    """Tests for ensure_content and create_template."""

    @pytest.mark.asyncio
    async def test_non_empty_text_is_returned_unchanged(self, reader, topo_file):
        text = topo_file.read_text(encoding="utf-8")
        assert await reader.ensure_content(topo_file, text) == text

    @pytest.mark.asyncio
    async def test_whitespace_only_file_gets_default(self, reader, tmp_path):
        path = tmp_path / "fresh.clab.yml"
        path.write_text("  \n\n", encoding="utf-8")

        content = await reader.ensure_content(path, "  \n\n")

        assert content == build_default_topology("fresh")
        assert path.read_text(encoding="utf-8") == content

    @pytest.mark.asyncio
    async def test_explicit_lab_name(self, reader, tmp_path):
        path = tmp_path / "fresh.clab.yml"
        content = await reader.ensure_content(path, "", lab_name="other")
        assert content.startswith("name: other\n")

    @pytest.mark.asyncio
    async def test_create_template(self, reader, guard, tmp_path):
        target = await reader.create_template(tmp_path / "newlab.yaml")

        assert target == tmp_path / "newlab.clab.yml"
        assert target.read_text(encoding="utf-8") == build_default_topology("newlab")
        assert guard.consume_skip_validation() is True
        assert guard.consume_skip_validation() is False

    def test_validate_uses_schema_setting(self, guard):
        text = "name: demo\ntopology:\n  links: 5\n"

        strict = TopologySourceReader(guard, SyncConfig())
        lenient = TopologySourceReader(guard, SyncConfig(validate_schema=False))

        assert not strict.validate(text).valid
        assert lenient.validate(text).valid
