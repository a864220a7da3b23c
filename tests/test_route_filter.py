"""Tests for the show-route filter predicate."""

import ipaddress
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from rib import RouteEntry, RouteType
from rib.table import RouteNode
from route_filter import RouteFilter


def node(prefix):
    return RouteNode(prefix=ipaddress.ip_network(prefix))


class TestRouteFilter:
    def test_empty_filter_passes_everything(self):
        assert RouteFilter().matches(node("10.0.0.0/8"), RouteEntry(type=RouteType.KERNEL))

    def test_fib_only(self):
        f = RouteFilter(fib_only=True)
        assert not f.matches(node("10.0.0.0/8"), RouteEntry(type=RouteType.STATIC))
        assert f.matches(node("10.0.0.0/8"), RouteEntry(type=RouteType.STATIC, fib_installed=True))

    def test_tag(self):
        f = RouteFilter(tag=42)
        assert f.matches(node("10.0.0.0/8"), RouteEntry(type=RouteType.STATIC, tag=42))
        assert not f.matches(node("10.0.0.0/8"), RouteEntry(type=RouteType.STATIC, tag=7))

    def test_tag_zero_means_no_filter(self):
        f = RouteFilter(tag=0)
        assert f.matches(node("10.0.0.0/8"), RouteEntry(type=RouteType.STATIC, tag=7))

    def test_longer_prefix(self):
        f = RouteFilter(longer_prefix=ipaddress.ip_network("10.0.0.0/8"))
        assert f.matches(node("10.0.0.0/8"), RouteEntry(type=RouteType.STATIC))
        assert f.matches(node("10.1.0.0/16"), RouteEntry(type=RouteType.STATIC))
        assert not f.matches(node("0.0.0.0/0"), RouteEntry(type=RouteType.STATIC))
        assert not f.matches(node("11.0.0.0/8"), RouteEntry(type=RouteType.STATIC))

    def test_longer_prefix_other_family(self):
        f = RouteFilter(longer_prefix=ipaddress.ip_network("10.0.0.0/8"))
        assert not f.matches(node("2001:db8::/32"), RouteEntry(type=RouteType.STATIC))

    def test_supernets_only(self):
        f = RouteFilter(supernets_only=True)
        e = RouteEntry(type=RouteType.BGP)
        assert f.matches(node("10.0.0.0/7"), e)         # class A shorter than /8
        assert not f.matches(node("10.0.0.0/8"), e)
        assert f.matches(node("172.16.0.0/12"), e)      # class B
        assert not f.matches(node("172.16.0.0/16"), e)
        assert f.matches(node("192.168.0.0/16"), e)     # class C
        assert not f.matches(node("192.168.1.0/24"), e)
        assert f.matches(node("224.1.1.0/24"), e)       # class D always passes

    def test_type(self):
        f = RouteFilter(route_type=RouteType.STATIC)
        assert f.matches(node("10.0.0.0/8"), RouteEntry(type=RouteType.STATIC))
        assert not f.matches(node("10.0.0.0/8"), RouteEntry(type=RouteType.BGP))

    def test_ospf_instance(self):
        f = RouteFilter(route_type=RouteType.OSPF, instance=2)
        assert f.matches(node("10.0.0.0/8"), RouteEntry(type=RouteType.OSPF, instance=2))
        assert not f.matches(node("10.0.0.0/8"), RouteEntry(type=RouteType.OSPF, instance=1))


def test_fib_only_narrows_type_filter():
    entries = [
        (node("10.0.0.0/8"), RouteEntry(type=RouteType.STATIC, fib_installed=True)),
        (node("10.0.0.0/8"), RouteEntry(type=RouteType.STATIC, distance=5)),
        (node("11.0.0.0/8"), RouteEntry(type=RouteType.BGP, fib_installed=True)),
    ]
    static = [e for n, e in entries if RouteFilter(route_type=RouteType.STATIC).matches(n, e)]
    static_fib = [e for n, e in entries if RouteFilter(route_type=RouteType.STATIC, fib_only=True).matches(n, e)]
    assert all(any(e is s for s in static) for e in static_fib)
    assert all(e.fib_installed for e in static_fib)
    assert len(static_fib) == 1
    assert len(static) == 2
