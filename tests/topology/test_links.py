"""
Tests for link normalization and special endpoints.
"""

import pytest

from toposync.topology.links import (
    LinkNormalizer,
    edge_class,
    extended_link_props,
    is_special_node,
    special_node_for,
    split_endpoint,
)


# =============================================================================
# Endpoint Tests
# =============================================================================

class TestSplitEndpoint:
    """Tests for split_endpoint."""

    @pytest.mark.parametrize(
        "endpoint,expected",
        [
            ("srl1:e1-1", ("srl1", "e1-1")),
            ("srl1", ("srl1", "")),
            ("macvlan:enp0s3", ("macvlan:enp0s3", "")),
            ("vxlan:vxlan0", ("vxlan:vxlan0", "")),
            ("dummy1", ("dummy1", "")),
            ({"node": "srl1", "interface": "e1-2"}, ("srl1", "e1-2")),
            ({"node": "srl1"}, ("srl1", "")),
            (42, ("", "")),
        ],
    )
    def test_split(self, endpoint, expected):
        assert split_endpoint(endpoint) == expected


class TestSpecialNodes:
    """Tests for special endpoint detection."""

    def test_host_endpoint(self):
        node = special_node_for("host", "eth1")
        assert (node.id, node.type, node.label) == ("host:eth1", "host", "host:eth1")

    def test_mgmt_net_without_interface(self):
        node = special_node_for("mgmt-net", "")
        assert node.id == "mgmt-net:"
        assert node.label == "mgmt-net:mgmt-net"

    def test_vxlan_stitch_is_not_plain_vxlan(self):
        assert special_node_for("vxlan-stitch:vxlan0", "").type == "vxlan-stitch"
        assert special_node_for("vxlan:vxlan0", "").type == "vxlan"

    def test_regular_node(self):
        assert special_node_for("srl1", "e1-1") is None

    def test_bridges_are_special(self):
        assert is_special_node({"kind": "bridge"}, "br0") is True
        assert is_special_node({"kind": "ovs-bridge"}, "ovs0") is True
        assert is_special_node({"kind": "linux"}, "srv1") is False
        assert is_special_node(None, "host") is True


# =============================================================================
# Edge Class Tests
# =============================================================================

class TestEdgeClass:
    """Tests for edge_class."""

    def test_both_up(self):
        assert edge_class(False, False, "up", "up") == "link-up"

    def test_one_down(self):
        assert edge_class(False, False, "up", "down") == "link-down"

    def test_missing_state_gives_no_class(self):
        assert edge_class(False, False, "up", None) == ""

    def test_special_source_uses_target_state(self):
        assert edge_class(True, False, None, "down") == "link-down"
        assert edge_class(True, False, None, None) == ""

    def test_special_target_uses_source_state(self):
        assert edge_class(False, True, "up", None) == "link-up"

    def test_both_special_is_up(self):
        assert edge_class(True, True, None, None) == "link-up"


# =============================================================================
# Normalization Tests
# =============================================================================

class TestLinkNormalizer:
    """Tests for LinkNormalizer."""

    def test_short_form(self):
        link = LinkNormalizer().normalize({"endpoints": ["srl1:e1-1", "srl2:e1-1"]})

        assert (link.end_a, link.end_b, link.type) == ("srl1:e1-1", "srl2:e1-1", None)

    def test_extended_veth(self):
        raw = {"type": "veth", "endpoints": [{"node": "a", "interface": "e1"}, {"node": "b", "interface": "e1"}]}
        link = LinkNormalizer().normalize(raw)

        assert link.type == "veth"
        assert link.raw is raw

    def test_host_link_targets_host_interface(self):
        link = LinkNormalizer().normalize(
            {"type": "host", "endpoint": "srl1:e1-1", "host-interface": "srl1-e1"}
        )
        assert link.end_b == "host:srl1-e1"

    def test_counters_per_type(self):
        normalizer = LinkNormalizer()
        ids = [
            normalizer.normalize({"type": t, "endpoint": "srl1:e1-1"}).end_b
            for t in ("vxlan", "vxlan", "vxlan-stitch", "dummy", "dummy")
        ]
        assert ids == [
            "vxlan:vxlan0",
            "vxlan:vxlan1",
            "vxlan-stitch:vxlan0",
            "dummy0",
            "dummy1",
        ]

    def test_counters_restart_for_new_conversion(self):
        first = LinkNormalizer().normalize({"type": "dummy", "endpoint": "a:e1"})
        second = LinkNormalizer().normalize({"type": "dummy", "endpoint": "a:e1"})
        assert first.end_b == second.end_b == "dummy0"

    @pytest.mark.parametrize(
        "raw",
        [
            {"endpoints": ["srl1:e1-1"]},
            {"endpoints": "srl1:e1-1"},
            {"endpoints": [None, "srl2:e1-1"]},
            {"type": "host", "host-interface": "x"},
            {},
        ],
    )
    def test_malformed_links(self, raw):
        assert LinkNormalizer().normalize(raw) is None


class TestExtendedProps:
    """Tests for extended_link_props."""

    def test_vxlan_props(self):
        props = extended_link_props(
            {"type": "vxlan", "remote": "10.0.0.1", "vni": 100, "udp-port": 4789, "mtu": 1500}
        )
        assert props == {
            "extType": "vxlan",
            "extMtu": "1500",
            "extRemote": "10.0.0.1",
            "extVni": 100,
            "extUdpPort": 4789,
        }

    def test_macvlan_props(self):
        props = extended_link_props({"type": "macvlan", "host-interface": "enp0s3", "mode": "bridge"})
        assert props["extHostInterface"] == "enp0s3"
        assert props["extMode"] == "bridge"

    def test_short_form_has_no_props(self):
        assert extended_link_props({"endpoints": ["a:e1", "b:e1"]}) == {}
