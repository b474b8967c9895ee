"""
Deployment inspection records.

Field aliases follow the JSON emitted by `containerlab inspect`, so the
records can be validated straight from the command output.
"""

from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class InterfaceRecord(BaseModel):
    """One container interface as reported by interface inspection."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    alias: Optional[str] = None
    mac: Optional[str] = None
    mtu: Optional[int] = None
    type: Optional[str] = None
    state: Optional[str] = None
    description: Optional[str] = None
    ifindex: Optional[int] = None

    # Optional rate/counter data, attached by interface polling
    rx_bps: Optional[float] = Field(None, alias="rxBps")
    rx_pps: Optional[float] = Field(None, alias="rxPps")
    rx_bytes: Optional[int] = Field(None, alias="rxBytes")
    rx_packets: Optional[int] = Field(None, alias="rxPackets")
    tx_bps: Optional[float] = Field(None, alias="txBps")
    tx_pps: Optional[float] = Field(None, alias="txPps")
    tx_bytes: Optional[int] = Field(None, alias="txBytes")
    tx_packets: Optional[int] = Field(None, alias="txPackets")
    stats_interval_seconds: Optional[float] = Field(None, alias="statsIntervalSeconds")

    def matches(self, iface: str) -> bool:
        return iface in (self.name, self.alias)

    def stats(self) -> Optional[Dict[str, Any]]:
        stats = self.model_dump(
            by_alias=True,
            exclude_none=True,
            include={
                "rx_bps", "rx_pps", "rx_bytes", "rx_packets",
                "tx_bps", "tx_pps", "tx_bytes", "tx_packets",
                "stats_interval_seconds",
            },
        )
        return stats or None


class ContainerRecord(BaseModel):
    """One running (or stopped) lab container."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    lab_name: Optional[str] = None
    lab_path: Optional[str] = Field(None, alias="labPath")
    abs_lab_path: Optional[str] = Field(None, alias="absLabPath")
    container_id: Optional[str] = None
    image: Optional[str] = None
    kind: Optional[str] = None
    state: Optional[str] = None
    status: Optional[str] = None
    ipv4_address: Optional[str] = None
    ipv6_address: Optional[str] = None
    owner: Optional[str] = None
    interfaces: List[InterfaceRecord] = Field(default_factory=list)

    @property
    def topo_file(self) -> Optional[str]:
        return self.abs_lab_path or self.lab_path

    def interface(self, iface: str) -> Optional[InterfaceRecord]:
        for record in self.interfaces:
            if record.matches(iface):
                return record
        return None

    @property
    def mgmt_ipv4(self) -> str:
        return _strip_prefix_len(self.ipv4_address)

    @property
    def mgmt_ipv6(self) -> str:
        return _strip_prefix_len(self.ipv6_address)


class LabRecord(BaseModel):
    """A deployed lab and its containers."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    topo_file: Optional[str] = Field(None, alias="topo-file")
    owner: Optional[str] = None
    containers: List[ContainerRecord] = Field(default_factory=list)

    def container(self, name: str) -> Optional[ContainerRecord]:
        for record in self.containers:
            if record.name == name:
                return record
        return None


DeploymentSnapshot = Dict[str, LabRecord]


def _strip_prefix_len(address: Optional[str]) -> str:
    if not address or address in ("N/A", "-"):
        return ""
    return address.split("/")[0]


def find_container(snapshot: Optional[DeploymentSnapshot], name: str,
                   lab_name: Optional[str] = None) -> Optional[ContainerRecord]:
    """Look a container up by name, preferring the given lab."""
    if not snapshot:
        return None
    if lab_name and lab_name in snapshot:
        found = snapshot[lab_name].container(name)
        if found:
            return found
    for lab in snapshot.values():
        found = lab.container(name)
        if found:
            return found
    return None


def labs_from_containers(containers: Iterable[ContainerRecord]) -> DeploymentSnapshot:
    """Group container records into lab records by lab name."""
    labs: DeploymentSnapshot = {}
    for container in containers:
        lab_name = container.lab_name or ""
        lab = labs.get(lab_name)
        if lab is None:
            lab = LabRecord(name=lab_name, topo_file=container.topo_file, owner=container.owner)
            labs[lab_name] = lab
        elif lab.topo_file is None:
            lab.topo_file = container.topo_file
        lab.containers.append(container)
    return labs
