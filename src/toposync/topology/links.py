"""
Link normalization and special endpoint handling.

Links come in two forms: the short `endpoints: ["a:e1", "b:e1"]` form and
the extended form with an explicit `type`. Single-endpoint link types
(host, mgmt-net, macvlan, vxlan, vxlan-stitch, dummy) are connected to a
synthesized special node so every link becomes a two-ended edge.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

HOST = "host"
MGMT_NET = "mgmt-net"
MACVLAN_PREFIX = "macvlan:"
VXLAN_PREFIX = "vxlan:"
VXLAN_STITCH_PREFIX = "vxlan-stitch:"
DUMMY_PREFIX = "dummy"

BRIDGE_KINDS = {"bridge", "ovs-bridge"}
HOSTY_TYPES = {HOST, MGMT_NET, "macvlan"}
SINGLE_ENDPOINT_TYPES = HOSTY_TYPES | {"vxlan", "vxlan-stitch", "dummy"}

# Prefixes whose endpoint string is a node id on its own (no interface part)
_WHOLE_ID_PREFIXES = (MACVLAN_PREFIX, DUMMY_PREFIX, VXLAN_PREFIX, VXLAN_STITCH_PREFIX)


def split_endpoint(endpoint: Any) -> Tuple[str, str]:
    """
    Split an endpoint into (node, interface).

    Accepts `"node:iface"` strings and `{node, interface}` mappings.
    """
    if isinstance(endpoint, str):
        if endpoint.startswith(_WHOLE_ID_PREFIXES):
            return endpoint, ""
        parts = endpoint.split(":")
        if len(parts) == 2:
            return parts[0], parts[1]
        return endpoint, ""
    if isinstance(endpoint, dict):
        return str(endpoint.get("node", "")), str(endpoint.get("interface") or "")
    return "", ""


@dataclass
class SpecialNode:
    """A synthesized node standing in for a non-container endpoint."""
    id: str
    type: str
    label: str


def special_node_for(node: str, iface: str) -> Optional[SpecialNode]:
    """Return the special node an endpoint refers to, or None for regular nodes."""
    if node == HOST:
        return SpecialNode(f"host:{iface}", HOST, f"host:{iface or HOST}")
    if node == MGMT_NET:
        return SpecialNode(f"mgmt-net:{iface}", MGMT_NET, f"mgmt-net:{iface or MGMT_NET}")
    if node.startswith(MACVLAN_PREFIX):
        return SpecialNode(node, "macvlan", node)
    if node.startswith(VXLAN_STITCH_PREFIX):
        return SpecialNode(node, "vxlan-stitch", node)
    if node.startswith(VXLAN_PREFIX):
        return SpecialNode(node, "vxlan", node)
    if node.startswith(DUMMY_PREFIX):
        return SpecialNode(node, "dummy", node)
    return None


def is_special_node(node_data: Optional[Dict[str, Any]], node_name: str) -> bool:
    """True for bridges and synthesized endpoints, whose interfaces carry no state."""
    if node_data and node_data.get("kind") in BRIDGE_KINDS:
        return True
    return special_node_for(node_name, "") is not None


def _class_from_state(state: Optional[str]) -> str:
    if not state:
        return ""
    return "link-up" if state == "up" else "link-down"


def edge_class(
    source_special: bool,
    target_special: bool,
    source_state: Optional[str],
    target_state: Optional[str],
) -> str:
    """
    Compute the edge class from interface states.

    A link touching one special node takes the state of its container end.
    Without state on both container ends the edge has no class.
    """
    if source_special and not target_special:
        return _class_from_state(target_state)
    if target_special and not source_special:
        return _class_from_state(source_state)
    if source_special and target_special:
        return "link-up"
    if source_state and target_state:
        return "link-up" if source_state == "up" and target_state == "up" else "link-down"
    return ""


@dataclass
class NormalizedLink:
    """A link reduced to exactly two endpoints."""
    end_a: Any
    end_b: Any
    type: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


class LinkNormalizer:
    """
    Normalizes links for one conversion.

    Holds the counters used to name vxlan and dummy endpoints, so ids are
    stable within a conversion and start from zero in the next one.
    """

    def __init__(self):
        self._counters: Dict[str, int] = {"vxlan": 0, "vxlan-stitch": 0, "dummy": 0}

    def _next_id(self, link_type: str) -> str:
        index = self._counters[link_type]
        self._counters[link_type] += 1
        if link_type == "dummy":
            return f"dummy{index}"
        return f"{link_type}:vxlan{index}"

    def special_id(self, link_type: str, link: Dict[str, Any]) -> str:
        if link_type in HOSTY_TYPES:
            return f"{link_type}:{link.get('host-interface', '')}"
        return self._next_id(link_type)

    def normalize(self, link: Dict[str, Any]) -> Optional[NormalizedLink]:
        """Return the two-endpoint form of a link, or None when it is malformed."""
        link_type = link.get("type") if isinstance(link.get("type"), str) else None

        if link_type in SINGLE_ENDPOINT_TYPES:
            endpoint = link.get("endpoint")
            if endpoint is None:
                return None
            return NormalizedLink(endpoint, self.special_id(link_type, link), link_type, link)

        endpoints = link.get("endpoints")
        if not isinstance(endpoints, list) or len(endpoints) < 2:
            return None
        end_a, end_b = endpoints[0], endpoints[1]
        if end_a is None or end_b is None:
            return None
        return NormalizedLink(end_a, end_b, link_type, link)


def extended_link_props(link: Dict[str, Any]) -> Dict[str, Any]:
    """Extended link attributes carried into edge data."""
    props: Dict[str, Any] = {}
    link_type = link.get("type")
    if isinstance(link_type, str):
        props["extType"] = link_type
    if link.get("mtu") is not None:
        props["extMtu"] = str(link["mtu"])
    if link.get("vars") is not None:
        props["extVars"] = link["vars"]
    if link.get("labels") is not None:
        props["extLabels"] = link["labels"]
    if link_type in HOSTY_TYPES and link.get("host-interface") is not None:
        props["extHostInterface"] = link["host-interface"]
    if link_type == "macvlan" and link.get("mode") is not None:
        props["extMode"] = link["mode"]
    if link_type in ("vxlan", "vxlan-stitch"):
        for key, prop in (("remote", "extRemote"), ("vni", "extVni"), ("udp-port", "extUdpPort")):
            if link.get(key) is not None:
                props[prop] = link[key]
    return props
