"""Tests for the route walker and VRF fan-out."""

import ipaddress
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from render import CODES_HEADER_V4
from rib import Afi, Nexthop, NexthopType, RouteEntry, RouteType, Safi
from rib.store import InMemoryRib
from route_filter import RouteFilter
from route_walker import RouteWalker
from vrf_fanout import ALL_VRFS, fan_out, resolve_table, vrf_tables

NOW = 1_700_000_000.0


def connected(ifname, ifindex):
    return RouteEntry(type=RouteType.CONNECT,
                      nexthops=[Nexthop(type=NexthopType.IFINDEX, ifindex=ifindex, ifname=ifname)])


def _rib():
    rib = InMemoryRib()
    rib.add_vrf("default", 0, interfaces={"eth0": 2})
    rib.add_vrf("blue", 10, table_id=10, interfaces={"eth2": 4})
    rib.add_vrf("red", table_id=20)
    rib.add_route(Afi.IP, Safi.UNICAST, "default", ipaddress.ip_network("192.0.2.0/24"), connected("eth0", 2))
    rib.add_route(Afi.IP, Safi.UNICAST, "blue", ipaddress.ip_network("10.10.0.0/16"), connected("eth2", 4))
    return rib


def text_view(table):
    return RouteWalker(table).render_text(now=NOW)


def json_view(table):
    return RouteWalker(table).render_json(now=NOW)


class TestRouteWalker:
    def setup_method(self):
        self.rib = _rib()

    def test_default_vrf_has_no_banner(self):
        text = text_view(self.rib.table(Afi.IP, Safi.UNICAST))
        assert text == CODES_HEADER_V4 + "C>* 192.0.2.0/24 is directly connected, eth0\n"

    def test_vrf_banner(self):
        text = text_view(self.rib.table(Afi.IP, Safi.UNICAST, "blue"))
        assert text == CODES_HEADER_V4 + "\nVRF blue:\n" + "C>* 10.10.0.0/16 is directly connected, eth2\n"

    def test_nothing_matching_prints_nothing(self):
        walker = RouteWalker(self.rib.table(Afi.IP, Safi.UNICAST), RouteFilter(route_type=RouteType.BGP))
        assert walker.render_text(now=NOW) == ""
        assert walker.render_json(now=NOW) == {}
        assert walker.count() == 0

    def test_json_keyed_by_prefix(self):
        data = json_view(self.rib.table(Afi.IP, Safi.UNICAST))
        assert list(data) == ["192.0.2.0/24"]
        assert data["192.0.2.0/24"][0]["protocol"] == "connected"

    def test_walk_releases_guards(self):
        table = self.rib.table(Afi.IP, Safi.UNICAST)
        walker = RouteWalker(table)
        for _node, _entry in walker.walk():
            break
        assert table.locked_count() == 0


class TestFanOut:
    def setup_method(self):
        self.rib = _rib()

    def test_unknown_vrf(self):
        assert fan_out(self.rib, "nope", Afi.IP, Safi.UNICAST, text_view) == "vrf nope not defined\n"
        assert fan_out(self.rib, "nope", Afi.IP, Safi.UNICAST, json_view, as_json=True) == {}

    def test_inactive_vrf(self):
        table, message = resolve_table(self.rib, "red", Afi.IP, Safi.UNICAST)
        assert table is None
        assert message == "vrf red inactive\n"
        assert fan_out(self.rib, "red", Afi.IP, Safi.UNICAST, json_view, as_json=True) == {}

    def test_default_when_no_vrf_given(self):
        assert fan_out(self.rib, None, Afi.IP, Safi.UNICAST, text_view) == text_view(
            self.rib.table(Afi.IP, Safi.UNICAST))

    def test_all_vrfs_text_in_name_order(self):
        text = fan_out(self.rib, ALL_VRFS, Afi.IP, Safi.UNICAST, text_view)
        assert text.index("10.10.0.0/16") < text.index("192.0.2.0/24")
        assert text.count("Codes:") == 2
        assert "red" not in text

    def test_all_vrfs_json_keyed_by_vrf(self):
        data = fan_out(self.rib, ALL_VRFS, Afi.IP, Safi.UNICAST, json_view, as_json=True)
        assert set(data) == {"blue", "default"}
        assert list(data["blue"]) == ["10.10.0.0/16"]

    def test_inactive_vrf_has_no_tables(self):
        assert [vrf.name for vrf, _table in vrf_tables(self.rib, Afi.IP, Safi.UNICAST)] == ["blue", "default"]
