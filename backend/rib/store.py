"""
In-memory RIB.

Stands in for the routing daemon's RIB: owns the VRFs and their route
tables, accepts static route install/uninstall requests and marks the
lowest-distance entry of each prefix as selected and installed.
"""

from __future__ import annotations

import ipaddress
import logging
from contextlib import closing
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from rib import (
    DEFAULT_VRF_NAME,
    VRF_DEFAULT,
    Afi,
    IPAddress,
    IPNetwork,
    Nexthop,
    RouteEntry,
    RouteType,
    Safi,
)
from rib.table import RouteNode, RouteTable
from config import RT_TABLE_MAIN

logger = logging.getLogger(__name__)

ALL_TABLES = (
    (Afi.IP, Safi.UNICAST),
    (Afi.IP, Safi.MULTICAST),
    (Afi.IP6, Safi.UNICAST),
    (Afi.IP6, Safi.MULTICAST),
)


class VrfState(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass
class Vrf:
    name: str
    id: Optional[int] = None           # None while the VRF is not up in the kernel
    table_id: int = RT_TABLE_MAIN
    interfaces: dict[str, int] = field(default_factory=dict)
    tables: dict[tuple[Afi, Safi], RouteTable] = field(default_factory=dict)

    @property
    def state(self) -> VrfState:
        return VrfState.ACTIVE if self.id is not None else VrfState.INACTIVE

    @property
    def is_default(self) -> bool:
        return self.id == VRF_DEFAULT

    def table(self, afi: Afi, safi: Safi) -> Optional[RouteTable]:
        return self.tables.get((afi, safi))

    def ifindex(self, ifname: str) -> Optional[int]:
        return self.interfaces.get(ifname)

    def ifname(self, ifindex: int) -> str:
        for name, idx in self.interfaces.items():
            if idx == ifindex:
                return name
        return "unknown"


class InMemoryRib:
    """VRFs, their route tables, and static install/uninstall."""

    def __init__(self):
        self.vrfs: dict[str, Vrf] = {}
        self.add_vrf(DEFAULT_VRF_NAME, VRF_DEFAULT)

    # --- VRFs ---

    def add_vrf(self, name: str, vrf_id: Optional[int] = None, table_id: int = RT_TABLE_MAIN,
                interfaces: Optional[dict[str, int]] = None) -> Vrf:
        vrf = self.vrfs.get(name)
        if vrf is None:
            vrf = Vrf(name=name)
            self.vrfs[name] = vrf
        vrf.table_id = table_id
        vrf.interfaces.update(interfaces or {})
        if vrf_id is not None:
            self.activate_vrf(name, vrf_id)
        return vrf

    def activate_vrf(self, name: str, vrf_id: int) -> Vrf:
        vrf = self.vrfs[name]
        vrf.id = vrf_id
        for afi, safi in ALL_TABLES:
            if (afi, safi) not in vrf.tables:
                vrf.tables[(afi, safi)] = RouteTable(afi, safi, vrf_name=name, vrf_id=vrf_id)
        logger.info("VRF %s active (id %d)", name, vrf_id)
        return vrf

    def delete_vrf(self, name: str) -> Optional[Vrf]:
        if name == DEFAULT_VRF_NAME:
            raise ValueError("The default VRF cannot be deleted")
        vrf = self.vrfs.pop(name, None)
        if vrf:
            logger.info("VRF %s deleted", name)
        return vrf

    def get_vrf(self, name: str) -> Optional[Vrf]:
        return self.vrfs.get(name)

    def get_vrf_by_id(self, vrf_id: int) -> Optional[Vrf]:
        for vrf in self.vrfs.values():
            if vrf.id == vrf_id:
                return vrf
        return None

    def vrfs_by_name(self) -> list[Vrf]:
        return [self.vrfs[name] for name in sorted(self.vrfs)]

    def vrf_name(self, vrf_id: int) -> str:
        vrf = self.get_vrf_by_id(vrf_id)
        return vrf.name if vrf else str(vrf_id)

    def table(self, afi: Afi, safi: Safi, vrf_name: str = DEFAULT_VRF_NAME) -> Optional[RouteTable]:
        vrf = self.vrfs.get(vrf_name)
        return vrf.table(afi, safi) if vrf else None

    # --- routes ---

    def add_route(self, afi: Afi, safi: Safi, vrf_name: str, prefix: IPNetwork,
                  entry: RouteEntry, src: Optional[ipaddress.IPv6Network] = None) -> RouteNode:
        """Add an entry contributed by some protocol."""
        table = self._require_table(afi, safi, vrf_name)
        vrf = self.vrfs[vrf_name]
        entry.vrf_id = vrf.id
        node = table.get_or_create(prefix, src)
        node.entries.append(entry)
        self._reselect(node)
        return node

    def static_install(self, afi: Afi, safi: Safi, vrf_name: str, prefix: IPNetwork,
                       src: Optional[ipaddress.IPv6Network], distance: int, tag: int,
                       nexthop: Nexthop, blackhole: bool = False, reject: bool = False) -> bool:
        """
        Add a static nexthop. Statics with equal distance share one entry.

        Returns False when the VRF has no table yet (the static stays
        configured and is installed once the VRF comes up).
        """
        table = self.table(afi, safi, vrf_name)
        if table is None:
            logger.info("static %s not installed: vrf %s has no %s/%s table",
                        prefix, vrf_name, afi.value, safi.value)
            return False

        node = table.get_or_create(prefix, src)
        entry = self._static_entry(node, distance)
        if entry is None:
            entry = RouteEntry(
                type=RouteType.STATIC,
                distance=distance,
                tag=tag,
                vrf_id=self.vrfs[vrf_name].id,
                blackhole=blackhole,
                reject=reject,
            )
            node.entries.append(entry)
        else:
            entry.tag = tag
        if not any(nh.same_as(nexthop) for nh in entry.nexthops):
            entry.nexthops.append(nexthop)
        self._reselect(node)
        return True

    def static_uninstall(self, afi: Afi, safi: Safi, vrf_name: str, prefix: IPNetwork,
                         src: Optional[ipaddress.IPv6Network], distance: int, nexthop: Nexthop) -> bool:
        table = self.table(afi, safi, vrf_name)
        if table is None:
            return False
        node = table.get(prefix, src)
        if node is None:
            return False
        entry = self._static_entry(node, distance)
        if entry is None:
            return False

        before = len(entry.nexthops)
        entry.nexthops = [nh for nh in entry.nexthops if not nh.same_as(nexthop)]
        if len(entry.nexthops) == before:
            return False
        if not entry.nexthops:
            node.entries.remove(entry)
        self._reselect(node)
        table.reclaim(node)
        return True

    def match_selected(self, afi: Afi, safi: Safi, vrf_name: str, address: IPAddress | IPNetwork,
                       allow_default: bool = True) -> Optional[tuple[RouteTable, RouteNode, RouteEntry]]:
        """Longest-prefix node covering address that has a selected entry."""
        table = self.table(afi, safi, vrf_name)
        if table is None:
            return None
        target = ipaddress.ip_network(address)
        with closing(table.supernets_of(target)) as nodes:
            for node in nodes:
                if node.prefix.prefixlen == 0 and not allow_default:
                    return None
                for entry in node.entries:
                    if entry.selected:
                        return table, node, entry
        return None

    @staticmethod
    def _static_entry(node: RouteNode, distance: int) -> Optional[RouteEntry]:
        for entry in node.entries:
            if entry.type == RouteType.STATIC and entry.distance == distance:
                return entry
        return None

    @staticmethod
    def _reselect(node: RouteNode) -> None:
        best = None
        for entry in node.entries:
            if best is None or entry.distance < best.distance:
                best = entry
        for entry in node.entries:
            chosen = entry is best
            entry.selected = chosen
            entry.fib_installed = chosen
            for nh in entry.nexthops:
                nh.fib = chosen and nh.active
                for child in nh.resolved:
                    child.fib = chosen and child.active

    def _require_table(self, afi: Afi, safi: Safi, vrf_name: str) -> RouteTable:
        table = self.table(afi, safi, vrf_name)
        if table is None:
            raise ValueError(f"VRF {vrf_name} has no {afi.value}/{safi.value} table")
        return table
