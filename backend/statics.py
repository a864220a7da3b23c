"""
Static route normalizer.

Operator input arrives as loose text fields (destination, optional mask,
gateway and/or interface, flag, tag, distance, VRF, labels). It is
validated in a fixed order, classified into one nexthop variant and kept
as a StaticRouteDescriptor in a per-(VRF, AFI, SAFI) static table. Adds and
withdraws are passed on to the RIB.

Nothing is stored or sent to the RIB unless every check passed.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from config import RibConfig
from errors import MalformedInput, NotFound, Rejected
from prefixes import masklen, parse_address, parse_labels, parse_prefix, apply_mask
from rib import (
    DEFAULT_VRF_NAME,
    IFINDEX_DELETED,
    Afi,
    IPAddress,
    IPNetwork,
    Nexthop,
    NexthopType,
    Safi,
)
from rib.store import InMemoryRib
from rib.table import RouteTable

logger = logging.getLogger(__name__)

ZEBRA_STATIC_DISTANCE_DEFAULT = 1
MAX_ROUTE_TAG = 4294967295


class NexthopKind(str, Enum):
    GATEWAY = "gateway"
    INTERFACE = "interface"
    GATEWAY_INTERFACE = "gateway-interface"
    BLACKHOLE = "blackhole"
    REJECT = "reject"


@dataclass(frozen=True)
class NexthopSpec:
    """Canonical nexthop of a static route; which fields are set depends on kind."""
    kind: NexthopKind
    gateway: Optional[IPAddress] = None
    ifname: str = ""

    @property
    def identity(self) -> tuple:
        return (self.kind, self.gateway, self.ifname)

    @property
    def static_type(self) -> str:
        """One of the six AFI-specific static nexthop types."""
        if self.kind in (NexthopKind.BLACKHOLE, NexthopKind.REJECT):
            return "blackhole"
        if self.kind == NexthopKind.INTERFACE:
            return "ifindex"
        family = "ipv4" if self.gateway.version == 4 else "ipv6"
        if self.kind == NexthopKind.GATEWAY:
            return f"{family}-gateway"
        return f"{family}-gateway-ifindex"


def classify_nexthop(afi: Afi, gateway: Optional[str] = None, ifname: Optional[str] = None,
                     flag: Optional[str] = None) -> NexthopSpec:
    """
    Work out the nexthop variant from what the operator gave; first rule wins:

    1. interface "Null0" or an abbreviation of it, any case -> blackhole;
       no flag allowed with it
    2. flag                          -> reject (r...) or blackhole (b...)
    3. gateway and interface         -> gateway-interface
    4. interface                     -> interface
    5. gateway                       -> gateway
    6. nothing                       -> blackhole

    Raises MalformedInput (malformed_flag, malformed_nexthop_address).
    """
    if ifname and "null0".startswith(ifname.lower()):
        if flag:
            raise MalformedInput("malformed_flag", f"% can not have flag {flag} with Null0")
        return NexthopSpec(NexthopKind.BLACKHOLE)

    if flag:
        if flag[0] in "rR":
            return NexthopSpec(NexthopKind.REJECT)
        if flag[0] in "bB":
            return NexthopSpec(NexthopKind.BLACKHOLE)
        raise MalformedInput("malformed_flag", f"% Malformed flag {flag} ")

    gate = None
    if gateway:
        try:
            gate = parse_address(gateway, afi)
        except ValueError:
            raise MalformedInput(
                "malformed_nexthop_address", f"% Malformed nexthop address {gateway}"
            )

    if gate is not None and ifname:
        return NexthopSpec(NexthopKind.GATEWAY_INTERFACE, gateway=gate, ifname=ifname)
    if ifname:
        return NexthopSpec(NexthopKind.INTERFACE, ifname=ifname)
    if gate is not None:
        return NexthopSpec(NexthopKind.GATEWAY, gateway=gate)
    return NexthopSpec(NexthopKind.BLACKHOLE)


@dataclass
class StaticRouteDescriptor:
    afi: Afi
    safi: Safi
    prefix: IPNetwork
    nexthop: NexthopSpec
    src: Optional[ipaddress.IPv6Network] = None
    distance: int = ZEBRA_STATIC_DISTANCE_DEFAULT
    tag: int = 0
    labels: tuple[int, ...] = ()
    vrf: str = DEFAULT_VRF_NAME
    ifindex: int = 0

    @property
    def identity(self) -> tuple:
        return (self.afi, self.safi, self.prefix, self.src, self.nexthop.identity, self.vrf)

    def same_attributes(self, other: "StaticRouteDescriptor") -> bool:
        return (self.distance, self.tag, self.labels) == (other.distance, other.tag, other.labels)

    def as_dict(self) -> dict:
        return {
            "afi": self.afi.value,
            "safi": self.safi.value,
            "prefix": str(self.prefix),
            "src": str(self.src) if self.src is not None else None,
            "nexthopType": self.nexthop.static_type,
            "kind": self.nexthop.kind.value,
            "gateway": str(self.nexthop.gateway) if self.nexthop.gateway is not None else None,
            "interface": self.nexthop.ifname or None,
            "ifindex": self.ifindex,
            "distance": self.distance,
            "tag": self.tag,
            "labels": list(self.labels),
            "vrf": self.vrf,
        }

    def to_nexthop(self) -> Nexthop:
        """Nexthop as the RIB should carry it."""
        nh = self.nexthop
        if nh.kind in (NexthopKind.BLACKHOLE, NexthopKind.REJECT):
            return Nexthop(type=NexthopType.BLACKHOLE)
        if nh.kind == NexthopKind.INTERFACE:
            return Nexthop(
                type=NexthopType.IFINDEX,
                ifindex=self.ifindex,
                ifname=nh.ifname,
                labels=self.labels,
                active=self.ifindex != IFINDEX_DELETED,
            )
        v4 = nh.gateway.version == 4
        if nh.kind == NexthopKind.GATEWAY:
            return Nexthop(
                type=NexthopType.IPV4 if v4 else NexthopType.IPV6,
                gateway=nh.gateway,
                labels=self.labels,
            )
        return Nexthop(
            type=NexthopType.IPV4_IFINDEX if v4 else NexthopType.IPV6_IFINDEX,
            gateway=nh.gateway,
            ifindex=self.ifindex,
            ifname=nh.ifname,
            labels=self.labels,
            active=self.ifindex != IFINDEX_DELETED,
        )


@dataclass
class StaticChange:
    """What a configure call did."""
    action: str                 # added, updated, unchanged, withdrawn, no_effect
    descriptor: StaticRouteDescriptor
    warnings: list[str] = field(default_factory=list)


def _parse_int(value: str | int | None, low: int, high: int, code: str, what: str) -> Optional[int]:
    if value is None:
        return None
    try:
        number = int(str(value).strip())
    except ValueError:
        raise MalformedInput(code, f"% Malformed {what} {value}")
    if not low <= number <= high:
        raise MalformedInput(code, f"% Malformed {what} {value}")
    return number


class StaticRouteManager:
    """Keeps configured static routes and drives them into the RIB."""

    def __init__(self, rib: InMemoryRib, config: Optional[RibConfig] = None):
        self.rib = rib
        self.config = config or RibConfig()
        self._tables: dict[tuple[str, Afi, Safi], RouteTable] = {}

    def static_table(self, afi: Afi, safi: Safi, vrf: str = DEFAULT_VRF_NAME) -> Optional[RouteTable]:
        return self._tables.get((vrf, afi, safi))

    def _static_table_for(self, afi: Afi, safi: Safi, vrf: str) -> RouteTable:
        key = (vrf, afi, safi)
        if key not in self._tables:
            self._tables[key] = RouteTable(afi, safi, vrf_name=vrf, vrf_id=None)
        return self._tables[key]

    def descriptors(self, afi: Optional[Afi] = None, safi: Optional[Safi] = None,
                    vrf: Optional[str] = None) -> list[StaticRouteDescriptor]:
        """Configured statics, by VRF name then prefix order."""
        result = []
        for (vrf_name, table_afi, table_safi), table in sorted(
            self._tables.items(), key=lambda kv: (kv[0][0], kv[0][1].value, kv[0][2].value)
        ):
            if afi is not None and table_afi != afi:
                continue
            if safi is not None and table_safi != safi:
                continue
            if vrf is not None and vrf_name != vrf:
                continue
            for node in table.nodes():
                result.extend(node.entries)
        return result

    def count(self) -> int:
        return sum(table.entry_count() for table in self._tables.values())

    def configure_static_route(
        self,
        afi: Afi,
        safi: Safi,
        dest: str,
        mask: Optional[str] = None,
        src: Optional[str] = None,
        gateway: Optional[str] = None,
        ifname: Optional[str] = None,
        flag: Optional[str] = None,
        tag: Optional[str | int] = None,
        distance: Optional[str | int] = None,
        vrf: Optional[str] = None,
        label: Optional[str] = None,
        negate: bool = False,
    ) -> StaticChange:
        """
        Validate and add (or, with negate, withdraw) one static route.

        Raises MalformedInput, NotFound or Rejected; on any of them nothing
        has changed.
        """
        try:
            prefix = parse_prefix(dest, afi)
        except ValueError:
            raise MalformedInput("malformed_address", "% Malformed address")

        if afi == Afi.IP and mask:
            try:
                # mask the address as typed
                prefix = apply_mask(parse_address(dest.split("/")[0], Afi.IP), masklen(mask))
            except ValueError:
                raise MalformedInput("malformed_address", "% Malformed address")

        src_prefix = None
        if afi == Afi.IP6 and src:
            try:
                src_prefix = parse_prefix(src, Afi.IP6)
            except ValueError:
                raise MalformedInput("malformed_source_address", "% Malformed source address")
            if src_prefix.prefixlen == 0:
                src_prefix = None

        dist = _parse_int(distance, 1, 255, "malformed_distance", "distance")
        route_tag = _parse_int(tag, 0, MAX_ROUTE_TAG, "malformed_tag", "tag")

        vrf_name = vrf or DEFAULT_VRF_NAME
        zvrf = self.rib.get_vrf(vrf_name)
        if zvrf is None:
            raise NotFound("vrf_not_defined", f"% vrf {vrf_name} is not defined")

        labels: tuple[int, ...] = ()
        if label:
            if not self.config.mpls_enabled:
                raise Rejected("mpls_disabled", "% MPLS not turned on in kernel, ignoring command")
            labels = parse_labels(label)

        spec = classify_nexthop(afi, gateway=gateway, ifname=ifname, flag=flag)

        warnings: list[str] = []
        ifindex = 0
        if spec.ifname:
            found = zvrf.ifindex(spec.ifname)
            if found is None:
                warnings.append(f"% Malformed Interface name {spec.ifname}")
                ifindex = IFINDEX_DELETED
            else:
                ifindex = found

        descriptor = StaticRouteDescriptor(
            afi=afi,
            safi=safi,
            prefix=prefix,
            src=src_prefix,
            nexthop=spec,
            distance=dist if dist is not None else ZEBRA_STATIC_DISTANCE_DEFAULT,
            tag=route_tag or 0,
            labels=labels,
            vrf=vrf_name,
            ifindex=ifindex,
        )

        if negate:
            change = self._withdraw(descriptor)
        else:
            change = self._add(descriptor)
        change.warnings = warnings
        return change

    def _find(self, table: Optional[RouteTable], descriptor: StaticRouteDescriptor) -> Optional[StaticRouteDescriptor]:
        if table is None:
            return None
        node = table.get(descriptor.prefix, descriptor.src)
        if node is None:
            return None
        for existing in node.entries:
            if existing.identity == descriptor.identity:
                return existing
        return None

    def _add(self, descriptor: StaticRouteDescriptor) -> StaticChange:
        table = self._static_table_for(descriptor.afi, descriptor.safi, descriptor.vrf)
        existing = self._find(table, descriptor)

        if existing is not None:
            if existing.same_attributes(descriptor) and existing.ifindex == descriptor.ifindex:
                return StaticChange("unchanged", existing)
            self._uninstall(existing)
            node = table.get(descriptor.prefix, descriptor.src)
            node.entries[node.entries.index(existing)] = descriptor
            self._install(descriptor)
            logger.info("static %s updated", _describe(descriptor))
            return StaticChange("updated", descriptor)

        node = table.get_or_create(descriptor.prefix, descriptor.src)
        node.entries.append(descriptor)
        self._install(descriptor)
        logger.info("static %s added", _describe(descriptor))
        return StaticChange("added", descriptor)

    def _withdraw(self, descriptor: StaticRouteDescriptor) -> StaticChange:
        table = self.static_table(descriptor.afi, descriptor.safi, descriptor.vrf)
        existing = self._find(table, descriptor)
        if existing is None:
            logger.info("static %s not configured, nothing to withdraw", _describe(descriptor))
            return StaticChange("no_effect", descriptor)

        node = table.get(existing.prefix, existing.src)
        node.entries.remove(existing)
        table.reclaim(node)
        self._uninstall(existing)
        logger.info("static %s withdrawn", _describe(existing))
        return StaticChange("withdrawn", existing)

    def flush_vrf(self, vrf: str) -> int:
        """Drop every static of a VRF that is being torn down."""
        removed = 0
        for key in [k for k in self._tables if k[0] == vrf]:
            table = self._tables.pop(key)
            for node in table.nodes():
                for descriptor in node.entries:
                    self._uninstall(descriptor)
                    removed += 1
        if removed:
            logger.info("flushed %d static routes of vrf %s", removed, vrf)
        return removed

    def reinstall_vrf(self, vrf: str) -> int:
        """Push a VRF's configured statics into the RIB, e.g. once the VRF became active."""
        installed = 0
        for descriptor in self.descriptors(vrf=vrf):
            zvrf = self.rib.get_vrf(vrf)
            if descriptor.nexthop.ifname and descriptor.ifindex == IFINDEX_DELETED:
                found = zvrf.ifindex(descriptor.nexthop.ifname) if zvrf else None
                if found is not None:
                    self._uninstall(descriptor)
                    descriptor.ifindex = found
            if self._install(descriptor):
                installed += 1
        return installed

    def _install(self, d: StaticRouteDescriptor) -> bool:
        return self.rib.static_install(
            d.afi, d.safi, d.vrf, d.prefix, d.src, d.distance, d.tag, d.to_nexthop(),
            blackhole=d.nexthop.kind == NexthopKind.BLACKHOLE,
            reject=d.nexthop.kind == NexthopKind.REJECT,
        )

    def _uninstall(self, d: StaticRouteDescriptor) -> bool:
        return self.rib.static_uninstall(
            d.afi, d.safi, d.vrf, d.prefix, d.src, d.distance, d.to_nexthop(),
        )


def _describe(d: StaticRouteDescriptor) -> str:
    target = d.nexthop.kind.value
    if d.nexthop.gateway is not None:
        target = str(d.nexthop.gateway)
    if d.nexthop.ifname:
        target = f"{target} {d.nexthop.ifname}" if d.nexthop.gateway else d.nexthop.ifname
    return f"{d.prefix} -> {target} (vrf {d.vrf}, {d.afi.value}/{d.safi.value})"
