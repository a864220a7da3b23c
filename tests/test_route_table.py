"""Tests for the prefix-indexed route table and its node guards."""

import ipaddress
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from rib import Afi, RouteEntry, RouteType
from rib.table import RouteTable


def net(text):
    return ipaddress.ip_network(text)


def _table(*prefixes):
    table = RouteTable(Afi.IP)
    for p in prefixes:
        table.get_or_create(net(p)).entries.append(RouteEntry(type=RouteType.STATIC))
    return table


class TestOrdering:
    def test_prefix_order(self):
        table = _table("192.168.0.0/16", "10.0.0.0/8", "10.0.0.0/16", "10.1.0.0/16", "0.0.0.0/0")
        order = [str(n.prefix) for n in table.nodes()]
        assert order == ["0.0.0.0/0", "10.0.0.0/8", "10.0.0.0/16", "10.1.0.0/16", "192.168.0.0/16"]

    def test_source_routes_follow_destination(self):
        table = RouteTable(Afi.IP6)
        dst = net("2001:db8::/32")
        table.get_or_create(net("2001:db8:1::/48")).entries.append(RouteEntry(type=RouteType.STATIC))
        table.get_or_create(dst, net("2001:db8:ff::/48")).entries.append(RouteEntry(type=RouteType.STATIC))
        table.get_or_create(dst).entries.append(RouteEntry(type=RouteType.STATIC))
        keys = [(str(n.prefix), str(n.src) if n.src else None) for n in table.nodes()]
        assert keys == [
            ("2001:db8::/32", None),
            ("2001:db8::/32", "2001:db8:ff::/48"),
            ("2001:db8:1::/48", None),
        ]

    def test_empty_nodes_skipped(self):
        table = _table("10.0.0.0/8")
        table.get_or_create(net("11.0.0.0/8"))
        assert [str(n.prefix) for n in table.nodes()] == ["10.0.0.0/8"]
        assert len(table) == 1


class TestLookup:
    def test_longest_match(self):
        table = _table("0.0.0.0/0", "10.0.0.0/8", "10.1.0.0/16")
        with table.match(net("10.1.2.3/32")) as node:
            assert str(node.prefix) == "10.1.0.0/16"
        with table.match(net("10.2.0.0/16")) as node:
            assert str(node.prefix) == "10.0.0.0/8"
        with table.match(net("11.0.0.1/32")) as node:
            assert str(node.prefix) == "0.0.0.0/0"

    def test_no_match(self):
        table = _table("10.0.0.0/8")
        with table.match(net("11.0.0.1/32")) as node:
            assert node is None

    def test_exact_lookup(self):
        table = _table("10.0.0.0/8")
        with table.lookup(net("10.0.0.0/8")) as node:
            assert node is not None
        with table.lookup(net("10.0.0.0/16")) as node:
            assert node is None


class TestGuards:
    def test_walk_releases_guards(self):
        table = _table("10.0.0.0/8", "11.0.0.0/8", "12.0.0.0/8")
        for node in table.nodes():
            assert node.lock == 1
        assert table.locked_count() == 0

    def test_early_exit_releases_guard(self):
        table = _table("10.0.0.0/8", "11.0.0.0/8")
        walk = table.nodes()
        first = next(walk)
        assert first.lock == 1
        walk.close()
        assert table.locked_count() == 0

    def test_guard_released_on_exception(self):
        table = _table("10.0.0.0/8")
        with pytest.raises(ValueError):
            with table.match(net("10.0.0.1/32")) as node:
                assert node.lock == 1
                raise ValueError("boom")
        assert table.locked_count() == 0

    def test_emptied_node_survives_while_guarded(self):
        table = _table("10.0.0.0/8")
        node = table.get(net("10.0.0.0/8"))
        with table.guard(node):
            node.entries.clear()
            assert not table.reclaim(node)
            assert table.get(net("10.0.0.0/8")) is node
        assert table.get(net("10.0.0.0/8")) is None

    def test_unlock_of_unlocked_node(self):
        table = _table("10.0.0.0/8")
        with pytest.raises(RuntimeError):
            table.unlock_node(table.get(net("10.0.0.0/8")))

    def test_reclaimed_slot_is_reused(self):
        table = _table("10.0.0.0/8")
        node = table.get(net("10.0.0.0/8"))
        slot = node.slot
        node.entries.clear()
        assert table.reclaim(node)
        again = table.get_or_create(net("11.0.0.0/8"))
        assert again.slot == slot

    def test_supernets_of(self):
        table = _table("0.0.0.0/0", "10.0.0.0/8", "10.1.0.0/16")
        found = [str(n.prefix) for n in table.supernets_of(net("10.1.1.0/24"))]
        assert found == ["10.1.0.0/16", "10.0.0.0/8", "0.0.0.0/0"]
        assert table.locked_count() == 0
