"""
Router inventory loader: parse the YAML description of one router into the
RIB manager's startup state.

The file has these top-level sections, all optional:

  router            hostname
  settings          process-wide RibConfig values
  vrfs              name -> {id, table_id, interfaces, active}
  routes            protocol routes to seed the RIB with
  static_routes     operator statics, fed through the normalizer
  import_tables     import-table directives
  tracked_nexthops  addresses registered with the nexthop tracker
"""

from __future__ import annotations

import ipaddress
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from commands import CommandContext
from config import MulticastMode, RibConfig, RT_TABLE_MAIN
from prefixes import afi_of, parse_prefix
from rib import DEFAULT_VRF_NAME, VRF_DEFAULT, Nexthop, NexthopType, RouteEntry, RouteType, Safi
from rib.store import InMemoryRib, Vrf

logger = logging.getLogger(__name__)


@dataclass
class VrfSpec:
    name: str
    id: Optional[int] = None       # None: configured but not up
    table_id: int = RT_TABLE_MAIN
    interfaces: dict[str, int] = field(default_factory=dict)


@dataclass
class RouterInventory:
    """Complete parsed router description."""
    hostname: str = "router"
    settings: RibConfig = field(default_factory=RibConfig)
    vrfs: list[VrfSpec] = field(default_factory=list)
    routes: list[dict] = field(default_factory=list)
    static_routes: list[dict] = field(default_factory=list)
    import_tables: list[dict] = field(default_factory=list)
    tracked_nexthops: list[dict] = field(default_factory=list)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "RouterInventory":
        return load_router_inventory(path)

    def get_vrf(self, name: str) -> Optional[VrfSpec]:
        for vrf in self.vrfs:
            if vrf.name == name:
                return vrf
        return None

    def build_context(self, now: Optional[float] = None) -> CommandContext:
        """A CommandContext holding the RIB this inventory describes."""
        now = time.time() if now is None else now
        rib = InMemoryRib()
        for spec in self.vrfs:
            vrf_id = VRF_DEFAULT if spec.name == DEFAULT_VRF_NAME else spec.id
            rib.add_vrf(spec.name, vrf_id, table_id=spec.table_id, interfaces=spec.interfaces)

        ctx = CommandContext(rib=rib, config=self.settings)

        for raw in self.routes:
            _seed_route(rib, raw, now)

        for raw in self.static_routes:
            out = ctx.configure_static_route(
                afi=afi_of(parse_prefix(raw["prefix"])),
                safi=Safi(raw.get("safi", "unicast")),
                dest=raw["prefix"],
                mask=raw.get("mask"),
                src=raw.get("src"),
                gateway=raw.get("gateway"),
                ifname=raw.get("interface"),
                flag=raw.get("flag"),
                tag=raw.get("tag"),
                distance=raw.get("distance"),
                vrf=raw.get("vrf"),
                label=raw.get("label"),
            )
            if not out.ok:
                logger.warning("Skipping static route %s: %s", raw.get("prefix"), out.text.strip())

        for raw in self.import_tables:
            out = ctx.set_import_table(int(raw["table_id"]), raw.get("distance"), raw.get("route_map"))
            if not out.ok:
                logger.warning("Skipping import-table %s: %s", raw.get("table_id"), out.text.strip())

        for raw in self.tracked_nexthops:
            ctx.nexthop_tracker.track(raw["address"], raw.get("client", "static"),
                                      raw.get("vrf", DEFAULT_VRF_NAME))
        return ctx


def _parse_nexthop(raw: dict, vrf: Vrf) -> Nexthop:
    gateway = raw.get("gateway")
    ifname = raw.get("interface", "")
    gate = ipaddress.ip_address(gateway) if gateway else None

    if raw.get("blackhole") or (ifname and ifname.lower() == "null0"):
        nh_type = NexthopType.BLACKHOLE
        ifname = ""
    elif gate is not None and ifname:
        nh_type = NexthopType.IPV4_IFINDEX if gate.version == 4 else NexthopType.IPV6_IFINDEX
    elif gate is not None:
        nh_type = NexthopType.IPV4 if gate.version == 4 else NexthopType.IPV6
    else:
        nh_type = NexthopType.IFINDEX

    source = raw.get("source")
    return Nexthop(
        type=nh_type,
        gateway=gate,
        ifindex=(vrf.ifindex(ifname) or 0) if ifname else 0,
        ifname=ifname,
        source=ipaddress.ip_address(source) if source else None,
        labels=tuple(int(label) for label in raw.get("labels", [])),
        active=raw.get("active", True),
        onlink=raw.get("onlink", False),
        recursive=raw.get("recursive", False),
        resolved=[_parse_nexthop(child, vrf) for child in raw.get("resolved", [])],
    )


def _seed_route(rib: InMemoryRib, raw: dict, now: float) -> None:
    vrf_name = raw.get("vrf", DEFAULT_VRF_NAME)
    vrf = rib.get_vrf(vrf_name)
    if vrf is None or vrf.id is None:
        logger.warning("Route %s skipped: vrf %s is not active", raw.get("prefix"), vrf_name)
        return

    prefix = parse_prefix(raw["prefix"])
    src = parse_prefix(raw["src"]) if raw.get("src") else None
    entry = RouteEntry(
        type=RouteType(raw["protocol"]),
        instance=raw.get("instance", 0),
        distance=raw.get("distance", 0),
        metric=raw.get("metric", 0),
        tag=raw.get("tag", 0),
        mtu=raw.get("mtu", 0),
        blackhole=raw.get("blackhole", False),
        reject=raw.get("reject", False),
        ibgp=raw.get("ibgp", False),
        refcnt=raw.get("refcnt", 0),
        uptime=now - raw.get("age", 0),
        nexthops=[_parse_nexthop(nh, vrf) for nh in raw.get("nexthops", [])],
    )
    rib.add_route(afi_of(prefix), Safi(raw.get("safi", "unicast")), vrf_name, prefix, entry, src)


def _parse_settings(raw: dict) -> RibConfig:
    mode = raw.get("multicast_mode")
    return RibConfig(
        multicast_mode=MulticastMode(mode) if mode else MulticastMode.NO_CONFIG,
        allow_external_route_update=bool(raw.get("allow_external_route_update", False)),
        mpls_enabled=bool(raw.get("mpls_enabled", False)),
        ip_nht_resolve_via_default=bool(raw.get("ip_nht_resolve_via_default", False)),
        ipv6_nht_resolve_via_default=bool(raw.get("ipv6_nht_resolve_via_default", False)),
        main_table_id=int(raw.get("main_table_id", RT_TABLE_MAIN)),
    )


def load_router_inventory(path: str | Path) -> RouterInventory:
    """Parse a router inventory YAML file."""
    path = Path(path)
    with open(path) as f:
        raw = yaml.safe_load(f)

    inv = RouterInventory()
    if not raw:
        return inv

    inv.hostname = raw.get("router", {}).get("hostname", inv.hostname)
    inv.settings = _parse_settings(raw.get("settings") or {})

    for name, data in (raw.get("vrfs") or {}).items():
        data = data or {}
        active = data.get("active", True)
        inv.vrfs.append(VrfSpec(
            name=name,
            id=data.get("id") if active else None,
            table_id=int(data.get("table_id", inv.settings.main_table_id)),
            interfaces={str(k): int(v) for k, v in (data.get("interfaces") or {}).items()},
        ))

    inv.routes = list(raw.get("routes") or [])
    inv.static_routes = list(raw.get("static_routes") or [])
    inv.import_tables = list(raw.get("import_tables") or [])
    inv.tracked_nexthops = list(raw.get("tracked_nexthops") or [])

    logger.info("Loaded inventory for %s: %d vrfs, %d routes, %d statics",
                inv.hostname, len(inv.vrfs), len(inv.routes), len(inv.static_routes))
    return inv
