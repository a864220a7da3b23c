"""
Running-config dump.

Re-emits the configuration this subsystem owns as the canonical commands
that would recreate it: static routes, import-table directives, then the
protocol-level toggles.
"""

from __future__ import annotations

from config import MulticastMode, RibConfig
from import_table import ImportTableRegistry
from prefixes import labels_to_str, prefix_str
from rib import DEFAULT_VRF_NAME, Afi, Safi
from statics import (
    ZEBRA_STATIC_DISTANCE_DEFAULT,
    NexthopKind,
    StaticRouteDescriptor,
    StaticRouteManager,
)

STATIC_COMMANDS = (
    (Afi.IP, Safi.UNICAST, "ip route"),
    (Afi.IP, Safi.MULTICAST, "ip mroute"),
    (Afi.IP6, Safi.UNICAST, "ipv6 route"),
)


def static_line(command: str, d: StaticRouteDescriptor) -> str:
    line = f"{command} {prefix_str(d.prefix, d.src)}"

    nh = d.nexthop
    if nh.kind == NexthopKind.GATEWAY:
        line += f" {nh.gateway}"
    elif nh.kind == NexthopKind.INTERFACE:
        line += f" {nh.ifname}"
    elif nh.kind == NexthopKind.GATEWAY_INTERFACE:
        line += f" {nh.gateway} {nh.ifname}"
    elif nh.kind == NexthopKind.REJECT:
        line += " reject"
    else:
        line += " Null0"

    if d.tag:
        line += f" tag {d.tag}"
    if d.distance != ZEBRA_STATIC_DISTANCE_DEFAULT:
        line += f" {d.distance}"
    if d.vrf != DEFAULT_VRF_NAME:
        line += f" vrf {d.vrf}"
    if d.labels:
        line += f" label {labels_to_str(d.labels)}"
    return line


def static_config(statics: StaticRouteManager) -> list[str]:
    lines = []
    for afi, safi, command in STATIC_COMMANDS:
        for descriptor in statics.descriptors(afi=afi, safi=safi):
            lines.append(static_line(command, descriptor))
    return lines


def import_table_config(registry: ImportTableRegistry) -> list[str]:
    return [directive.config_line() for directive in registry.directives()]


def protocol_config(config: RibConfig) -> list[str]:
    lines = []
    if config.allow_external_route_update:
        lines.append("allow-external-route-update")
    if config.ip_nht_resolve_via_default:
        lines.append("ip nht resolve-via-default")
    if config.ipv6_nht_resolve_via_default:
        lines.append("ipv6 nht resolve-via-default")
    if config.multicast_mode != MulticastMode.NO_CONFIG:
        lines.append(f"ip multicast rpf-lookup-mode {config.multicast_mode.value}")
    return lines


def write_config(statics: StaticRouteManager, registry: ImportTableRegistry, config: RibConfig) -> str:
    lines = static_config(statics) + import_table_config(registry) + protocol_config(config)
    return "".join(f"{line}\n" for line in lines)
