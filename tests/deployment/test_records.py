"""
Tests for deployment records and inspect output parsing.

This module tests:
- Record validation from containerlab JSON
- Grouped and flat inspect output formats
- Interface data attachment
- InspectCommandSource subprocess handling
"""

import asyncio
import json
from unittest.mock import AsyncMock, Mock, patch

import pytest

from toposync.config import SyncConfig
from toposync.deployment.records import (
    ContainerRecord,
    InterfaceRecord,
    find_container,
    labs_from_containers,
)
from toposync.deployment.sources import (
    InspectCommandSource,
    StaticDeploymentSource,
    attach_interfaces,
    parse_inspect_output,
)
from toposync.exceptions import DeploymentProbeError

from tests.conftest import make_lab


GROUPED_OUTPUT = {
    "demo": [
        {
            "name": "clab-demo-srl1",
            "container_id": "abc123",
            "image": "ghcr.io/nokia/srlinux:24.10",
            "kind": "nokia_srlinux",
            "state": "running",
            "ipv4_address": "172.20.20.2/24",
            "ipv6_address": "N/A",
            "lab_name": "demo",
            "labPath": "demo.clab.yml",
            "absLabPath": "/labs/demo.clab.yml",
            "owner": "alice",
        },
        {
            "name": "clab-demo-srl2",
            "image": "ghcr.io/nokia/srlinux:24.10",
            "state": "running",
            "absLabPath": "/labs/demo.clab.yml",
        },
    ],
}

INTERFACES_OUTPUT = [
    {
        "name": "clab-demo-srl1",
        "interfaces": [
            {"name": "e1-1", "alias": "ethernet-1/1", "mac": "aa:c1:ab:00:00:01",
             "mtu": 9232, "state": "up", "type": "veth", "rxBps": 12.5},
        ],
    },
    {"name": "clab-unknown-node", "interfaces": [{"name": "eth0"}]},
]


# =============================================================================
# Record Tests
# =============================================================================

class TestRecords:
    """Tests for the record models."""

    def test_container_aliases(self):
        record = ContainerRecord.model_validate(GROUPED_OUTPUT["demo"][0])

        assert record.topo_file == "/labs/demo.clab.yml"
        assert record.mgmt_ipv4 == "172.20.20.2"
        assert record.mgmt_ipv6 == ""

    def test_topo_file_falls_back_to_lab_path(self):
        record = ContainerRecord(name="x", lab_path="demo.clab.yml")
        assert record.topo_file == "demo.clab.yml"

    def test_interface_matches_name_or_alias(self):
        record = InterfaceRecord(name="e1-1", alias="ethernet-1/1")

        assert record.matches("e1-1")
        assert record.matches("ethernet-1/1")
        assert not record.matches("e1-2")

    def test_interface_stats(self):
        record = InterfaceRecord.model_validate({"name": "e1-1", "rxBps": 1.0, "txPackets": 7})

        assert record.stats() == {"rxBps": 1.0, "txPackets": 7}
        assert InterfaceRecord(name="e1-1").stats() is None

    def test_labs_from_containers(self):
        containers = [ContainerRecord.model_validate(c) for c in GROUPED_OUTPUT["demo"]]
        containers[1].lab_name = "demo"

        labs = labs_from_containers(containers)

        assert list(labs) == ["demo"]
        assert labs["demo"].topo_file == "/labs/demo.clab.yml"
        assert labs["demo"].owner == "alice"
        assert len(labs["demo"].containers) == 2

    def test_find_container_prefers_lab(self):
        snapshot = {"demo": make_lab(), "other": make_lab("other")}

        assert find_container(snapshot, "clab-demo-srl1", "demo").name == "clab-demo-srl1"
        assert find_container(snapshot, "clab-other-srl2").name == "clab-other-srl2"
        assert find_container(snapshot, "missing") is None
        assert find_container(None, "clab-demo-srl1") is None


# =============================================================================
# Inspect Output Parsing Tests
# =============================================================================

class TestParseInspectOutput:
    """Tests for parse_inspect_output."""

    def test_grouped_format(self):
        labs = parse_inspect_output(GROUPED_OUTPUT)

        assert set(labs) == {"demo"}
        assert [c.name for c in labs["demo"].containers] == ["clab-demo-srl1", "clab-demo-srl2"]
        assert labs["demo"].containers[1].lab_name == "demo"

    def test_flat_format(self):
        raw = {"containers": [dict(c, lab_name="demo") for c in GROUPED_OUTPUT["demo"]]}

        labs = parse_inspect_output(raw)

        assert len(labs["demo"].containers) == 2

    def test_empty_output(self):
        assert parse_inspect_output(None) == {}
        assert parse_inspect_output({}) == {}

    def test_unexpected_type(self):
        with pytest.raises(DeploymentProbeError):
            parse_inspect_output(["not", "a", "mapping"])

    def test_malformed_container(self):
        with pytest.raises(DeploymentProbeError):
            parse_inspect_output({"demo": [{"image": "no name"}]})

    def test_attach_interfaces(self):
        labs = parse_inspect_output(GROUPED_OUTPUT)

        attach_interfaces(labs, INTERFACES_OUTPUT)

        srl1 = labs["demo"].container("clab-demo-srl1")
        assert srl1.interface("ethernet-1/1").mac == "aa:c1:ab:00:00:01"
        assert srl1.interface("e1-1").stats() == {"rxBps": 12.5}
        assert labs["demo"].container("clab-demo-srl2").interfaces == []


# =============================================================================
# Source Tests
# =============================================================================

class TestStaticDeploymentSource:
    """Tests for StaticDeploymentSource."""

    @pytest.mark.asyncio
    async def test_returns_copy(self):
        labs = {"demo": make_lab()}
        source = StaticDeploymentSource(labs)

        result = await source.discover()
        result.clear()

        assert set(await source.discover()) == {"demo"}

    @pytest.mark.asyncio
    async def test_callable_labs(self):
        source = StaticDeploymentSource(lambda: {"demo": make_lab()})
        assert "demo" in await source.discover("demo")


def _process(stdout: str, returncode: int = 0, stderr: str = ""):
    process = Mock()
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(stdout.encode(), stderr.encode()))
    process.kill = Mock()
    process.wait = AsyncMock(return_value=returncode)
    return process


class TestInspectCommandSource:
    """Tests for InspectCommandSource."""

    @pytest.mark.asyncio
    async def test_discover_runs_inspect_and_interfaces(self):
        source = InspectCommandSource(SyncConfig())
        processes = [_process(json.dumps(GROUPED_OUTPUT)), _process(json.dumps(INTERFACES_OUTPUT))]

        with patch(
            "toposync.deployment.sources.asyncio.create_subprocess_shell",
            AsyncMock(side_effect=processes),
        ) as mock_shell:
            labs = await source.discover("demo")

        commands = [call.args[0] for call in mock_shell.call_args_list]
        assert commands == [
            "containerlab inspect --all --format json",
            "containerlab inspect interfaces --format json --name demo",
        ]
        assert labs["demo"].container("clab-demo-srl1").interface("e1-1").state == "up"

    @pytest.mark.asyncio
    async def test_sudo_prefix(self):
        source = InspectCommandSource(SyncConfig(inspect_use_sudo=True), include_interfaces=False)

        with patch(
            "toposync.deployment.sources.asyncio.create_subprocess_shell",
            AsyncMock(return_value=_process("")),
        ) as mock_shell:
            labs = await source.discover()

        assert labs == {}
        assert mock_shell.call_args.args[0].startswith("sudo containerlab inspect")

    @pytest.mark.asyncio
    async def test_non_zero_exit_raises(self):
        source = InspectCommandSource(SyncConfig())

        with patch(
            "toposync.deployment.sources.asyncio.create_subprocess_shell",
            AsyncMock(return_value=_process("", returncode=1, stderr="permission denied")),
        ):
            with pytest.raises(DeploymentProbeError) as exc_info:
                await source.discover()

        assert "permission denied" in str(exc_info.value)
        assert exc_info.value.context["command"].startswith("containerlab inspect")

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self):
        source = InspectCommandSource(SyncConfig())

        with patch(
            "toposync.deployment.sources.asyncio.create_subprocess_shell",
            AsyncMock(return_value=_process("not json")),
        ):
            with pytest.raises(DeploymentProbeError):
                await source.discover()

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        source = InspectCommandSource(SyncConfig(inspect_timeout_s=0.01))
        process = _process("")

        async def hang():
            await asyncio.sleep(1)

        process.communicate = hang

        with patch(
            "toposync.deployment.sources.asyncio.create_subprocess_shell",
            AsyncMock(return_value=process),
        ):
            with pytest.raises(DeploymentProbeError) as exc_info:
                await source.discover()

        assert "timed out" in str(exc_info.value)
        process.kill.assert_called_once()

    @pytest.mark.asyncio
    async def test_interface_failure_keeps_containers(self):
        source = InspectCommandSource(SyncConfig())
        processes = [_process(json.dumps(GROUPED_OUTPUT)), _process("", returncode=1)]

        with patch(
            "toposync.deployment.sources.asyncio.create_subprocess_shell",
            AsyncMock(side_effect=processes),
        ):
            labs = await source.discover("demo")

        assert len(labs["demo"].containers) == 2
