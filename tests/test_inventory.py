"""Tests for the router inventory loader."""

import ipaddress
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from config import MulticastMode
from inventory import RouterInventory, load_router_inventory
from rib import Afi, RouteType, Safi

INVENTORY_PATH = str(Path(__file__).parent.parent / "inventories" / "example-router.yml")
NOW = 1_700_000_000.0


class TestRouterInventoryLoader:

    def setup_method(self):
        self.inv = load_router_inventory(INVENTORY_PATH)

    def test_hostname(self):
        assert self.inv.hostname == "edge-1"

    def test_settings(self):
        assert self.inv.settings.multicast_mode == MulticastMode.MRIB_THEN_URIB
        assert self.inv.settings.mpls_enabled is True
        assert self.inv.settings.allow_external_route_update is False

    def test_vrfs(self):
        assert [v.name for v in self.inv.vrfs] == ["default", "blue", "red"]
        blue = self.inv.get_vrf("blue")
        assert blue.id == 10
        assert blue.table_id == 10
        assert blue.interfaces == {"eth2": 4}

    def test_inactive_vrf_has_no_id(self):
        red = self.inv.get_vrf("red")
        assert red.id is None
        assert red.table_id == 20

    def test_sections_loaded(self):
        assert len(self.inv.routes) == 8
        assert len(self.inv.static_routes) == 6
        assert self.inv.import_tables == [{"table_id": 100, "distance": 30}]
        assert len(self.inv.tracked_nexthops) == 2

    def test_unknown_vrf(self):
        assert self.inv.get_vrf("green") is None


class TestBuildContext:

    def setup_method(self):
        self.ctx = load_router_inventory(INVENTORY_PATH).build_context(now=NOW)

    def test_default_vrf_forced_to_id_zero(self):
        assert self.ctx.rib.get_vrf("default").id == 0

    def test_statics_configured(self):
        assert self.ctx.statics.count() == 6
        masked = self.ctx.statics.descriptors(afi=Afi.IP, safi=Safi.UNICAST)
        assert "192.168.0.0/16" in [str(d.prefix) for d in masked]

    def test_seeded_routes(self):
        table = self.ctx.rib.table(Afi.IP, Safi.UNICAST)
        node = table.get(ipaddress.ip_network("172.16.0.0/12"))
        entry = node.entries[0]
        assert entry.type == RouteType.BGP
        assert entry.uptime == NOW - 90000
        assert entry.nexthops[0].ifindex == 2

    def test_recursive_nexthop(self):
        table = self.ctx.rib.table(Afi.IP, Safi.UNICAST)
        entry = table.get(ipaddress.ip_network("100.64.0.0/10")).entries[0]
        assert entry.ibgp
        assert entry.nexthops[0].recursive
        assert str(entry.nexthops[0].resolved[0].gateway) == "192.0.2.2"

    def test_vrf_routes(self):
        blue = self.ctx.rib.table(Afi.IP, Safi.UNICAST, "blue")
        assert blue.get(ipaddress.ip_network("10.10.0.0/16")) is not None
        assert blue.get(ipaddress.ip_network("10.20.0.0/16")).entries[0].tag == 100

    def test_multicast_table(self):
        mrib = self.ctx.rib.table(Afi.IP, Safi.MULTICAST)
        assert [str(n.prefix) for n in mrib.nodes()] == ["224.1.0.0/16", "232.0.0.0/8"]

    def test_import_tables(self):
        assert self.ctx.import_tables.get(Afi.IP, 100).distance == 30

    def test_tracked_nexthops(self):
        tracked = self.ctx.nexthop_tracker.tracked("default", Afi.IP)
        assert [str(a) for a in tracked] == ["192.0.2.9", "203.0.113.1"]


def test_empty_file(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text("")
    inv = load_router_inventory(path)
    assert inv.vrfs == []
    ctx = inv.build_context()
    assert ctx.rib.get_vrf("default") is not None
    assert ctx.statics.count() == 0


def test_bad_static_skipped(tmp_path):
    path = tmp_path / "router.yml"
    path.write_text(
        "vrfs:\n"
        "  default:\n"
        "    interfaces:\n"
        "      eth0: 2\n"
        "static_routes:\n"
        "  - prefix: 10.0.0.0/8\n"
        "    gateway: 192.0.2.1\n"
        "  - prefix: 10.1.0.0/16\n"
        "    gateway: 192.0.2.1\n"
        "    label: '16'\n"
        "  - prefix: 10.2.0.0/16\n"
        "    gateway: 192.0.2.1\n"
        "    vrf: nope\n"
    )
    ctx = RouterInventory.from_yaml(path).build_context()
    # labels need MPLS, which is off by default
    assert ctx.statics.count() == 1


def test_route_in_inactive_vrf_skipped(tmp_path):
    path = tmp_path / "router.yml"
    path.write_text(
        "vrfs:\n"
        "  red:\n"
        "    active: false\n"
        "routes:\n"
        "  - prefix: 10.0.0.0/8\n"
        "    vrf: red\n"
        "    protocol: bgp\n"
    )
    ctx = RouterInventory.from_yaml(path).build_context()
    assert ctx.rib.get_vrf("red").id is None
    assert ctx.rib.table(Afi.IP, Safi.UNICAST, "red") is None
