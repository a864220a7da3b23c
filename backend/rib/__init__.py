"""RIB data model: route entries, nexthops and the closed set of route types."""

from __future__ import annotations

import ipaddress
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Union

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

VRF_DEFAULT = 0
DEFAULT_VRF_NAME = "default"

# Interface referenced by a static route but not (yet) present in the VRF
IFINDEX_DELETED = 2**31 - 1


class Afi(str, Enum):
    IP = "ipv4"
    IP6 = "ipv6"


class Safi(str, Enum):
    UNICAST = "unicast"
    MULTICAST = "multicast"


class RouteType(str, Enum):
    """Route-owning protocols, in display order."""
    SYSTEM = "system"
    KERNEL = "kernel"
    CONNECT = "connected"
    STATIC = "static"
    RIP = "rip"
    RIPNG = "ripng"
    OSPF = "ospf"
    OSPF6 = "ospf6"
    ISIS = "isis"
    BGP = "bgp"
    PIM = "pim"
    EIGRP = "eigrp"
    NHRP = "nhrp"
    HSLS = "hsls"
    OLSR = "olsr"
    TABLE = "table"
    LDP = "ldp"
    VNC = "vnc"
    VNC_DIRECT = "vnc-direct"
    BABEL = "babel"


ROUTE_TYPE_CHARS: dict[RouteType, str] = {
    RouteType.SYSTEM: "X",
    RouteType.KERNEL: "K",
    RouteType.CONNECT: "C",
    RouteType.STATIC: "S",
    RouteType.RIP: "R",
    RouteType.RIPNG: "R",
    RouteType.OSPF: "O",
    RouteType.OSPF6: "O",
    RouteType.ISIS: "I",
    RouteType.BGP: "B",
    RouteType.PIM: "P",
    RouteType.EIGRP: "E",
    RouteType.NHRP: "N",
    RouteType.HSLS: "H",
    RouteType.OLSR: "o",
    RouteType.TABLE: "T",
    RouteType.LDP: "L",
    RouteType.VNC: "v",
    RouteType.VNC_DIRECT: "V",
    RouteType.BABEL: "A",
}

# Protocols whose "last update" age is worth showing
UPTIME_ROUTE_TYPES = frozenset({
    RouteType.RIP,
    RouteType.OSPF,
    RouteType.ISIS,
    RouteType.NHRP,
    RouteType.TABLE,
    RouteType.BGP,
})

# Distance/metric are meaningless for these
NO_DISTANCE_ROUTE_TYPES = frozenset({RouteType.CONNECT, RouteType.KERNEL})

# Route types an operator may filter "show route" on, per family
SHOW_ROUTE_TYPES: dict[Afi, frozenset[RouteType]] = {
    Afi.IP: frozenset({
        RouteType.KERNEL, RouteType.CONNECT, RouteType.STATIC, RouteType.RIP,
        RouteType.OSPF, RouteType.ISIS, RouteType.BGP, RouteType.PIM,
        RouteType.EIGRP, RouteType.NHRP, RouteType.TABLE, RouteType.VNC,
        RouteType.BABEL,
    }),
    Afi.IP6: frozenset({
        RouteType.KERNEL, RouteType.CONNECT, RouteType.STATIC, RouteType.RIPNG,
        RouteType.OSPF6, RouteType.ISIS, RouteType.BGP, RouteType.NHRP,
        RouteType.TABLE, RouteType.VNC, RouteType.BABEL,
    }),
}


class NexthopType(str, Enum):
    IFINDEX = "ifindex"
    IPV4 = "ipv4"
    IPV4_IFINDEX = "ipv4-ifindex"
    IPV6 = "ipv6"
    IPV6_IFINDEX = "ipv6-ifindex"
    BLACKHOLE = "blackhole"


GATEWAY_NEXTHOP_TYPES = frozenset({
    NexthopType.IPV4,
    NexthopType.IPV4_IFINDEX,
    NexthopType.IPV6,
    NexthopType.IPV6_IFINDEX,
})


@dataclass
class Nexthop:
    """One forwarding instruction of a route entry."""
    type: NexthopType
    gateway: Optional[IPAddress] = None
    ifindex: int = 0
    ifname: str = ""
    source: Optional[IPAddress] = None   # preferred source address
    labels: tuple[int, ...] = ()
    active: bool = True
    fib: bool = False
    onlink: bool = False
    recursive: bool = False
    resolved: list["Nexthop"] = field(default_factory=list)  # children of a recursive nexthop

    @property
    def afi(self) -> Optional[Afi]:
        if self.type in (NexthopType.IPV4, NexthopType.IPV4_IFINDEX):
            return Afi.IP
        if self.type in (NexthopType.IPV6, NexthopType.IPV6_IFINDEX):
            return Afi.IP6
        return None

    def same_as(self, other: "Nexthop") -> bool:
        return (
            self.type == other.type
            and self.gateway == other.gateway
            and self.ifname == other.ifname
        )


def iter_nexthops(nexthops: list[Nexthop], level: int = 0) -> Iterator[tuple[Nexthop, int]]:
    """Depth-first walk of nexthops and their resolved children, with recursion level."""
    for nh in nexthops:
        yield nh, level
        if nh.resolved:
            yield from iter_nexthops(nh.resolved, level + 1)


@dataclass
class RouteEntry:
    """A route contributed by one protocol to one prefix."""
    type: RouteType
    instance: int = 0
    distance: int = 0
    metric: int = 0
    tag: int = 0
    mtu: int = 0
    vrf_id: int = VRF_DEFAULT
    selected: bool = False       # best path
    fib_installed: bool = False
    blackhole: bool = False
    reject: bool = False
    ibgp: bool = False
    refcnt: int = 0
    uptime: float = field(default_factory=time.time)  # epoch seconds of last update
    nexthops: list[Nexthop] = field(default_factory=list)

    def all_nexthops(self) -> Iterator[tuple[Nexthop, int]]:
        return iter_nexthops(self.nexthops)
