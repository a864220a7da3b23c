"""Tests for per-route and per-prefix route summaries."""

import ipaddress
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from rib import Afi, Nexthop, NexthopType, RouteEntry, RouteType
from rib.table import RouteTable
from summary import summarize, summarize_prefixes, summarize_routes


def nh(fib):
    return Nexthop(type=NexthopType.IPV4, gateway=ipaddress.ip_address("192.0.2.1"), fib=fib)


def _add(table, prefix, entry):
    table.get_or_create(ipaddress.ip_network(prefix)).entries.append(entry)


def _table():
    table = RouteTable(Afi.IP)
    _add(table, "192.0.2.0/24", RouteEntry(
        type=RouteType.CONNECT, fib_installed=True,
        nexthops=[Nexthop(type=NexthopType.IFINDEX, ifindex=2, fib=True)]))
    _add(table, "10.0.0.0/8", RouteEntry(type=RouteType.STATIC, distance=1, fib_installed=True,
                                         nexthops=[nh(True), nh(True)]))
    _add(table, "10.0.0.0/8", RouteEntry(type=RouteType.STATIC, distance=5, nexthops=[nh(False)]))
    _add(table, "172.16.0.0/12", RouteEntry(type=RouteType.BGP, fib_installed=True, nexthops=[nh(True)]))
    _add(table, "100.64.0.0/10", RouteEntry(type=RouteType.BGP, ibgp=True, nexthops=[nh(False)]))
    return table


def row(source, routes, fib):
    return f"{source:<20} {routes:<20d} {fib:<20d} \n"


class TestPerRoute:
    def setup_method(self):
        self.summary = summarize_routes(_table())

    def test_rows(self):
        assert self.summary.rows() == [
            ("connected", 1, 1),
            ("static", 2, 1),
            ("ebgp", 1, 1),
            ("ibgp", 1, 0),
        ]

    def test_totals(self):
        assert self.summary.total_routes == 5
        assert self.summary.total_fib == 3

    def test_buckets_add_up_to_total(self):
        rows = self.summary.rows()
        assert sum(r[1] for r in rows) == self.summary.total_routes
        assert sum(r[2] for r in rows) == self.summary.total_fib

    def test_text(self):
        text = self.summary.render_text()
        lines = text.splitlines(keepends=True)
        assert lines[0] == "Route Source         Routes               FIB  (vrf default)\n"
        assert lines[1] == row("connected", 1, 1)
        assert lines[-3] == "------\n"
        assert lines[-2] == row("Totals", 5, 3)
        assert lines[-1] == "\n"


class TestPerPrefix:
    def setup_method(self):
        self.summary = summarize_prefixes(_table())

    def test_ibgp_counted_in_bgp_and_shown_as_difference(self):
        assert self.summary.routes[RouteType.BGP] == 2
        assert ("ebgp", 1, 1) in self.summary.rows()
        assert ("ibgp", 1, 0) in self.summary.rows()

    def test_only_first_nexthop_counts(self):
        # the ECMP static counts once, not once per nexthop
        assert self.summary.routes[RouteType.STATIC] == 2
        assert self.summary.fib[RouteType.STATIC] == 1

    def test_entry_without_nexthops_skipped(self):
        table = _table()
        _add(table, "203.0.113.0/24", RouteEntry(type=RouteType.KERNEL))
        assert summarize_prefixes(table).total_routes == 5

    def test_title(self):
        assert self.summary.render_text().startswith(
            "Route Source         Prefix Routes        FIB  (vrf default)\n")


def test_empty_table_has_totals_only():
    summary = summarize(RouteTable(Afi.IP6, vrf_name="blue"))
    assert summary.rows() == []
    assert summary.render_text() == (
        "Route Source         Routes               FIB  (vrf blue)\n"
        "------\n" + row("Totals", 0, 0) + "\n"
    )


def test_as_dict():
    data = summarize(_table(), prefix_mode=True).as_dict()
    assert data["mode"] == "prefix"
    assert data["totalRoutes"] == 5
    assert data["sources"][0] == {"source": "connected", "routes": 1, "fib": 1}


def test_route_totals_cover_prefix_totals():
    ecmp = _table()
    assert summarize_routes(ecmp).total_routes >= summarize_prefixes(ecmp).total_routes

    single = RouteTable(Afi.IP)
    _add(single, "10.0.0.0/8", RouteEntry(type=RouteType.STATIC, fib_installed=True, nexthops=[nh(True)]))
    _add(single, "172.16.0.0/12", RouteEntry(type=RouteType.BGP, nexthops=[nh(False)]))
    assert summarize_routes(single).total_routes == summarize_prefixes(single).total_routes == 2
