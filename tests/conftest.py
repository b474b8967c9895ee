"""
Shared fixtures for toposync tests.
"""

from pathlib import Path

import pytest

from toposync.config import SyncConfig
from toposync.deployment import DeploymentStateProbe, StaticDeploymentSource
from toposync.deployment.records import ContainerRecord, InterfaceRecord, LabRecord
from toposync.panel import PanelSession, RecordingChannel
from toposync.sync.engine import TopologySyncEngine
from toposync.sync.event_bus import EventBus


TWO_NODE_TOPOLOGY = """\
name: demo

topology:
  nodes:
    srl1:
      kind: nokia_srlinux
      image: ghcr.io/nokia/srlinux:latest
    srl2:
      kind: nokia_srlinux
      image: ghcr.io/nokia/srlinux:latest

  links:
    - endpoints: [ srl1:e1-1, srl2:e1-1 ]
"""


def make_lab(name: str = "demo", topo_file: str = "/labs/demo.clab.yml",
             link_state: str = "up") -> LabRecord:
    """A deployed lab with srl1/srl2 connected on e1-1."""
    containers = [
        ContainerRecord(
            name=f"clab-{name}-{node}",
            lab_name=name,
            abs_lab_path=topo_file,
            image="ghcr.io/nokia/srlinux:24.10",
            kind="nokia_srlinux",
            state="running",
            ipv4_address=f"172.20.20.{index}/24",
            interfaces=[
                InterfaceRecord(name="e1-1", alias="ethernet-1/1", mac=f"aa:c1:ab:00:00:0{index}",
                                mtu=9232, type="veth", state=link_state),
            ],
        )
        for index, node in enumerate(("srl1", "srl2"), start=1)
    ]
    return LabRecord(name=name, topo_file=topo_file, containers=containers)


@pytest.fixture
def fast_config(tmp_path):
    """Config without settle delays or polling, so tests run instantly."""
    return SyncConfig(
        internal_write_settle_s=0.0,
        mode_switch_settle_s=0.0,
        watch_poll_interval_s=0.0,
        artifacts_dir=tmp_path / "artifacts",
    )


@pytest.fixture
def topo_file(tmp_path) -> Path:
    path = tmp_path / "demo.clab.yml"
    path.write_text(TWO_NODE_TOPOLOGY, encoding="utf-8")
    return path


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def deployment_source():
    """Deployment source reporting no running labs."""
    return StaticDeploymentSource({})


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def engine(fast_config, channel, deployment_source, bus):
    return TopologySyncEngine(
        fast_config,
        panel=PanelSession(channel),
        probe=DeploymentStateProbe(deployment_source),
        event_bus=bus,
    )
