"""
Command context.

The host object every operator command runs against: it owns the
process-wide RibConfig, the RIB, the static route manager, the
import-table registry and the nexthop-tracking plugin. Each public method
is one command and returns a CommandOutput; errors raised underneath are
turned into result classes here and never escape.
"""

from __future__ import annotations

import ipaddress
import logging
import threading
from dataclasses import dataclass
from typing import Optional

from config import MulticastMode, RibConfig
from config_writer import write_config
from errors import CommandResult, MalformedInput, NotFound, RouteCommandError
from import_table import ImportTableRegistry
from plugins import NexthopTrackerPlugin
from plugins.rib_nexthop_tracker import RibNexthopTracker
from prefixes import afi_of, parse_prefix, prefix_str
from render import route_detail, route_json
from rib import DEFAULT_VRF_NAME, SHOW_ROUTE_TYPES, Afi, RouteType, Safi
from rib.store import InMemoryRib
from route_filter import RouteFilter
from route_walker import RouteWalker
from rpf import rpf_lookup
from statics import StaticRouteManager
from summary import summarize
from vrf_fanout import ALL_VRFS, fan_out, vrf_tables

logger = logging.getLogger(__name__)


@dataclass
class CommandOutput:
    """What a command produced: a result class plus text and/or structured data."""
    result: CommandResult
    text: str = ""
    data: Optional[dict] = None
    error: Optional[RouteCommandError] = None

    @property
    def ok(self) -> bool:
        return self.result == CommandResult.SUCCESS

    @property
    def code(self) -> Optional[str]:
        return self.error.code if self.error else None


def _failed(result: CommandResult, exc: RouteCommandError) -> CommandOutput:
    return CommandOutput(result=result, text=exc.message + "\n", error=exc)


def _family(afi: Afi) -> str:
    return "IPv4" if afi == Afi.IP else "IPv6"


class CommandContext:

    def __init__(self, rib: Optional[InMemoryRib] = None, config: Optional[RibConfig] = None,
                 nexthop_tracker: Optional[NexthopTrackerPlugin] = None):
        self.rib = rib or InMemoryRib()
        self.config = config or RibConfig()
        self.statics = StaticRouteManager(self.rib, self.config)
        self.import_tables = ImportTableRegistry(self.config.main_table_id)
        self.nexthop_tracker = nexthop_tracker or RibNexthopTracker(self.rib, self.config)
        self._lock = threading.Lock()

    # --- configuration ---

    def configure_static_route(self, afi: Afi, safi: Safi, dest: str, mask: Optional[str] = None,
                               src: Optional[str] = None, gateway: Optional[str] = None,
                               ifname: Optional[str] = None, flag: Optional[str] = None,
                               tag: Optional[str | int] = None, distance: Optional[str | int] = None,
                               vrf: Optional[str] = None, label: Optional[str] = None,
                               negate: bool = False) -> CommandOutput:
        with self._lock:
            try:
                change = self.statics.configure_static_route(
                    afi, safi, dest, mask=mask, src=src, gateway=gateway, ifname=ifname,
                    flag=flag, tag=tag, distance=distance, vrf=vrf, label=label, negate=negate,
                )
            except RouteCommandError as e:
                logger.warning("static route %s rejected: %s", dest, e.message)
                return _failed(CommandResult.CONFIG_FAILED, e)

        for warning in change.warnings:
            logger.warning("static route %s: %s", dest, warning)
        return CommandOutput(
            result=CommandResult.SUCCESS,
            text="".join(f"{w}\n" for w in change.warnings),
            data={"action": change.action, "route": change.descriptor.as_dict()},
        )

    def configure_mroute(self, dest: str, gateway: Optional[str] = None, ifname: Optional[str] = None,
                         distance: Optional[str | int] = None, vrf: Optional[str] = None,
                         negate: bool = False) -> CommandOutput:
        """IPv4 multicast static (the MRIB side of RPF lookups)."""
        return self.configure_static_route(
            Afi.IP, Safi.MULTICAST, dest, gateway=gateway, ifname=ifname,
            distance=distance, vrf=vrf, negate=negate,
        )

    def set_multicast_rpf_mode(self, mode: Optional[str | MulticastMode]) -> CommandOutput:
        """None or "unset" clears the mode."""
        try:
            new_mode = MulticastMode(mode) if mode is not None else MulticastMode.NO_CONFIG
        except ValueError:
            return _failed(CommandResult.CONFIG_FAILED,
                           MalformedInput("invalid_mode", "Invalid mode specified"))
        with self._lock:
            self.config.multicast_mode = new_mode
        logger.info("multicast rpf-lookup-mode set to %s", new_mode.value)
        return CommandOutput(CommandResult.SUCCESS, data={"mode": new_mode.value})

    def set_allow_external_route_update(self, enabled: bool) -> CommandOutput:
        with self._lock:
            self.config.allow_external_route_update = enabled
        return CommandOutput(CommandResult.SUCCESS, data={"enabled": enabled})

    def set_nht_resolve_via_default(self, afi: Afi, enabled: bool) -> CommandOutput:
        with self._lock:
            if self.config.nht_resolve_via_default(afi) != enabled:
                self.config.set_nht_resolve_via_default(afi, enabled)
                logger.info("%s nht resolve-via-default %s", afi.value, "on" if enabled else "off")
        return CommandOutput(CommandResult.SUCCESS, data={"afi": afi.value, "enabled": enabled})

    def set_import_table(self, table_id: int, distance: Optional[int] = None,
                         route_map: Optional[str] = None, negate: bool = False,
                         afi: Afi = Afi.IP) -> CommandOutput:
        with self._lock:
            try:
                if negate:
                    removed = self.import_tables.disable(afi, table_id)
                    return CommandOutput(CommandResult.SUCCESS,
                                         data={"tableId": table_id, "removed": removed})
                directive = self.import_tables.enable(afi, table_id, distance, route_map)
            except RouteCommandError as e:
                return _failed(CommandResult.WARNING, e)
        return CommandOutput(CommandResult.SUCCESS, data={
            "tableId": directive.table_id,
            "distance": directive.distance,
            "routeMap": directive.route_map,
        })

    # --- VRF lifecycle ---

    def vrf_up(self, name: str, vrf_id: int, table_id: Optional[int] = None) -> CommandOutput:
        """A VRF became active: give it tables and install its configured statics."""
        with self._lock:
            vrf = self.rib.get_vrf(name)
            if vrf is None:
                vrf = self.rib.add_vrf(name, table_id=table_id or self.config.main_table_id)
            elif table_id is not None:
                vrf.table_id = table_id
            self.rib.activate_vrf(name, vrf_id)
            installed = self.statics.reinstall_vrf(name)
        return CommandOutput(CommandResult.SUCCESS, data={"vrf": name, "installed": installed})

    def delete_vrf(self, name: str) -> CommandOutput:
        with self._lock:
            try:
                vrf = self.rib.delete_vrf(name)
            except ValueError as e:
                return _failed(CommandResult.WARNING, MalformedInput("default_vrf", f"% {e}"))
            if vrf is None:
                return _failed(CommandResult.WARNING, NotFound("vrf_not_found", f"% VRF {name} not found"))
            removed = self.statics.flush_vrf(name)
        return CommandOutput(CommandResult.SUCCESS, data={"vrf": name, "removedStatics": removed})

    # --- show ---

    def _route_filter(self, afi: Afi, fib_only: bool, tag: int, longer_prefix: Optional[str],
                      supernets_only: bool, route_type: Optional[str], instance: int) -> RouteFilter:
        # one of tag / longer-prefix / supernets-only / type, in that precedence
        route_filter = RouteFilter(fib_only=fib_only)
        if tag:
            route_filter.tag = int(tag)
        elif longer_prefix:
            try:
                route_filter.longer_prefix = parse_prefix(longer_prefix, afi)
            except ValueError:
                raise MalformedInput("malformed_prefix", f"% Malformed {_family(afi)} prefix")
        elif supernets_only:
            route_filter.supernets_only = afi == Afi.IP
        elif route_type:
            try:
                rtype = RouteType(route_type)
            except ValueError:
                raise MalformedInput("unknown_route_type", "Unknown route type")
            if rtype not in SHOW_ROUTE_TYPES[afi]:
                raise MalformedInput("unknown_route_type", "Unknown route type")
            route_filter.route_type = rtype
            route_filter.instance = instance or 0
        return route_filter

    def show_route(self, afi: Afi = Afi.IP, safi: Safi = Safi.UNICAST, fib_only: bool = False,
                   vrf: Optional[str] = None, tag: int = 0, longer_prefix: Optional[str] = None,
                   supernets_only: bool = False, route_type: Optional[str] = None,
                   instance: int = 0, as_json: bool = False, now: Optional[float] = None) -> CommandOutput:
        try:
            route_filter = self._route_filter(afi, fib_only, tag, longer_prefix,
                                              supernets_only, route_type, instance)
        except RouteCommandError as e:
            return _failed(CommandResult.WARNING, e)

        def view(table):
            walker = RouteWalker(table, route_filter)
            return walker.render_json(now=now) if as_json else walker.render_text(now=now)

        with self._lock:
            result = fan_out(self.rib, vrf, afi, safi, view, as_json=as_json)
        if as_json:
            return CommandOutput(CommandResult.SUCCESS, data=result)
        return CommandOutput(CommandResult.SUCCESS, text=result)

    def show_route_at(self, target: str, afi: Optional[Afi] = None, safi: Safi = Safi.UNICAST,
                      vrf: Optional[str] = None, now: Optional[float] = None) -> CommandOutput:
        """Detail records for the best match of an address, or the exact node of a prefix."""
        exact = "/" in target
        try:
            if exact:
                network = parse_prefix(target, afi)
            else:
                address = ipaddress.ip_address(target.strip())
                if afi is not None and afi_of(address) != afi:
                    raise ValueError(target)
                network = ipaddress.ip_network(address)
        except ValueError:
            family = _family(afi) if afi is not None else "IP"
            return _failed(CommandResult.WARNING, MalformedInput("malformed_address", f"% Malformed {family} address"))

        afi = afi_of(network)
        vrf_name = vrf or DEFAULT_VRF_NAME

        with self._lock:
            if vrf_name == ALL_VRFS:
                text, routes = [], []
                for _vrf, table in vrf_tables(self.rib, afi, safi):
                    found = self._detail(table, network, exact, now)
                    if found is not None:
                        text.append(found[0])
                        routes.extend(found[1])
                return CommandOutput(CommandResult.SUCCESS, text="".join(text), data={"routes": routes})

            zvrf = self.rib.get_vrf(vrf_name)
            if zvrf is None:
                return _failed(CommandResult.WARNING, NotFound("vrf_not_found", f"% VRF {vrf_name} not found"))
            table = zvrf.table(afi, safi)
            if table is None:
                return CommandOutput(CommandResult.SUCCESS, data={"routes": []})
            found = self._detail(table, network, exact, now)

        if found is None:
            return _failed(CommandResult.WARNING, NotFound("not_in_table", "% Network not in table"))
        return CommandOutput(CommandResult.SUCCESS, text=found[0], data={"routes": found[1]})

    @staticmethod
    def _detail(table, network, exact: bool, now: Optional[float]):
        with table.match(network) as node:
            if node is None or (exact and node.prefix.prefixlen != network.prefixlen):
                return None
            entries = list(node.entries)
            text = route_detail(node, entries, safi=table.safi, vrf_name=table.vrf_name, now=now)
            return text, [route_json(node, entry, now=now) for entry in entries]

    def show_route_summary(self, afi: Afi = Afi.IP, safi: Safi = Safi.UNICAST, vrf: Optional[str] = None,
                           prefix_mode: bool = False, as_json: bool = False) -> CommandOutput:
        def view(table):
            summary = summarize(table, prefix_mode=prefix_mode)
            return summary.as_dict() if as_json else summary.render_text()

        with self._lock:
            result = fan_out(self.rib, vrf, afi, safi, view, as_json=as_json)
        if as_json:
            return CommandOutput(CommandResult.SUCCESS, data=result)
        return CommandOutput(CommandResult.SUCCESS, text=result)

    def show_rpf(self, as_json: bool = False, now: Optional[float] = None) -> CommandOutput:
        """The IPv4 multicast RIB of the default VRF."""
        return self.show_route(Afi.IP, Safi.MULTICAST, vrf=DEFAULT_VRF_NAME, as_json=as_json, now=now)

    def show_rpf_at(self, address: str, now: Optional[float] = None) -> CommandOutput:
        try:
            addr = ipaddress.IPv4Address(address.strip())
        except ValueError:
            return _failed(CommandResult.WARNING, MalformedInput("malformed_address", "% Malformed address"))

        with self._lock:
            match = rpf_lookup(self.rib, self.config.multicast_mode, addr)
            if match is None:
                return CommandOutput(CommandResult.SUCCESS, text="% No match for RPF lookup\n",
                                     data={"routes": []})
            with match.table.guard(match.node) as node:
                entries = list(node.entries)
                text = route_detail(node, entries, safi=match.safi, mcast=True,
                                    vrf_name=match.table.vrf_name, now=now)
                data = {
                    "prefix": prefix_str(node.prefix, node.src),
                    "rib": match.safi.value,
                    "routes": [route_json(node, entry, now=now) for entry in entries],
                }
        return CommandOutput(CommandResult.SUCCESS, text=text, data=data)

    def show_nexthop_tracking(self, afi: Afi = Afi.IP, vrf: Optional[str] = None) -> CommandOutput:
        vrf_name = vrf or DEFAULT_VRF_NAME
        with self._lock:
            if vrf_name == ALL_VRFS:
                text = "".join(
                    f"\nVRF {zvrf.name}:\n" + self.nexthop_tracker.render_table(zvrf.name, afi)
                    for zvrf in self.rib.vrfs_by_name()
                )
                return CommandOutput(CommandResult.SUCCESS, text=text)
            if self.rib.get_vrf(vrf_name) is None:
                return _failed(CommandResult.WARNING, NotFound("vrf_not_found", f"% VRF {vrf_name} not found"))
            return CommandOutput(CommandResult.SUCCESS,
                                 text=self.nexthop_tracker.render_table(vrf_name, afi))

    def show_vrf(self) -> CommandOutput:
        lines, vrfs = [], []
        with self._lock:
            for zvrf in self.rib.vrfs_by_name():
                if zvrf.is_default:
                    continue
                if zvrf.id is None:
                    lines.append(f"vrf {zvrf.name} inactive\n")
                else:
                    lines.append(f"vrf {zvrf.name} id {zvrf.id} table {zvrf.table_id}\n")
                vrfs.append({
                    "name": zvrf.name,
                    "state": zvrf.state.value,
                    "id": zvrf.id,
                    "tableId": zvrf.table_id,
                })
        return CommandOutput(CommandResult.SUCCESS, text="".join(lines), data={"vrfs": vrfs})

    def write_config(self) -> CommandOutput:
        with self._lock:
            text = write_config(self.statics, self.import_tables, self.config)
        return CommandOutput(CommandResult.SUCCESS, text=text)
