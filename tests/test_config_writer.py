"""Tests for the running-config dump."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from config import MulticastMode, RibConfig
from config_writer import protocol_config, write_config
from import_table import ImportTableRegistry
from rib import Afi, Safi
from rib.store import InMemoryRib
from statics import StaticRouteManager


class TestWriteConfig:
    def setup_method(self):
        self.rib = InMemoryRib()
        self.rib.add_vrf("default", 0, interfaces={"eth0": 2})
        self.rib.add_vrf("blue", 10, table_id=10)
        self.config = RibConfig(mpls_enabled=True)
        self.statics = StaticRouteManager(self.rib, self.config)
        self.registry = ImportTableRegistry()

    def lines(self):
        return write_config(self.statics, self.registry, self.config).splitlines()

    def test_empty(self):
        assert write_config(self.statics, self.registry, self.config) == ""

    def test_static_variants(self):
        s = self.statics
        s.configure_static_route(Afi.IP, Safi.UNICAST, "10.0.0.0/8", gateway="192.0.2.1")
        s.configure_static_route(Afi.IP, Safi.UNICAST, "10.1.0.0/16", gateway="192.0.2.1", ifname="eth0")
        s.configure_static_route(Afi.IP, Safi.UNICAST, "10.2.0.0/16", ifname="eth0")
        s.configure_static_route(Afi.IP, Safi.UNICAST, "10.3.0.0", mask="255.255.0.0", ifname="null0")
        s.configure_static_route(Afi.IP, Safi.UNICAST, "10.4.0.0/16", flag="reject")
        assert self.lines() == [
            "ip route 10.0.0.0/8 192.0.2.1",
            "ip route 10.1.0.0/16 192.0.2.1 eth0",
            "ip route 10.2.0.0/16 eth0",
            "ip route 10.3.0.0/16 Null0",
            "ip route 10.4.0.0/16 reject",
        ]

    def test_optional_fields_in_order(self):
        self.statics.configure_static_route(
            Afi.IP, Safi.UNICAST, "10.0.0.0/8", gateway="10.255.0.1",
            tag=100, distance=5, vrf="blue", label="16/17",
        )
        assert self.lines() == ["ip route 10.0.0.0/8 10.255.0.1 tag 100 5 vrf blue label 16/17"]

    def test_default_distance_omitted(self):
        self.statics.configure_static_route(Afi.IP, Safi.UNICAST, "10.0.0.0/8", gateway="192.0.2.1", distance=1)
        assert self.lines() == ["ip route 10.0.0.0/8 192.0.2.1"]

    def test_command_order(self):
        self.statics.configure_static_route(Afi.IP6, Safi.UNICAST, "2001:db8::/32", flag="blackhole")
        self.statics.configure_static_route(Afi.IP, Safi.MULTICAST, "224.1.0.0/16", gateway="192.0.2.3")
        self.statics.configure_static_route(Afi.IP, Safi.UNICAST, "0.0.0.0/0", gateway="192.0.2.1")
        self.statics.configure_static_route(
            Afi.IP6, Safi.UNICAST, "2001:db8::/32", src="2001:db8:ff::/48", flag="blackhole")
        self.registry.enable(Afi.IP, 100, distance=30)
        self.config.multicast_mode = MulticastMode.LONGER_PREFIX
        assert self.lines() == [
            "ip route 0.0.0.0/0 192.0.2.1",
            "ip mroute 224.1.0.0/16 192.0.2.3",
            "ipv6 route 2001:db8::/32 Null0",
            "ipv6 route 2001:db8::/32 from 2001:db8:ff::/48 Null0",
            "ip import-table 100 distance 30",
            "ip multicast rpf-lookup-mode longer-prefix",
        ]

    def test_statics_grouped_by_vrf_name(self):
        self.statics.configure_static_route(Afi.IP, Safi.UNICAST, "10.0.0.0/8", gateway="192.0.2.1")
        self.statics.configure_static_route(Afi.IP, Safi.UNICAST, "9.0.0.0/8", gateway="10.0.0.1", vrf="blue")
        assert self.lines() == [
            "ip route 9.0.0.0/8 10.0.0.1 vrf blue",
            "ip route 10.0.0.0/8 192.0.2.1",
        ]

    def test_zero_length_source_dumps_and_withdraws(self):
        self.statics.configure_static_route(
            Afi.IP6, Safi.UNICAST, "2001:db8::/32", src="::/0", gateway="2001:db8:ffff::1")
        assert self.lines() == ["ipv6 route 2001:db8::/32 2001:db8:ffff::1"]
        change = self.statics.configure_static_route(
            Afi.IP6, Safi.UNICAST, "2001:db8::/32", gateway="2001:db8:ffff::1", negate=True)
        assert change.action == "withdrawn"
        assert self.statics.count() == 0


def test_protocol_config():
    config = RibConfig()
    assert protocol_config(config) == []
    config.allow_external_route_update = True
    config.ip_nht_resolve_via_default = True
    config.ipv6_nht_resolve_via_default = True
    config.multicast_mode = MulticastMode.MRIB_ONLY
    assert protocol_config(config) == [
        "allow-external-route-update",
        "ip nht resolve-via-default",
        "ipv6 nht resolve-via-default",
        "ip multicast rpf-lookup-mode mrib-only",
    ]
