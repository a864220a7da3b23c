"""
Entry renderer.

Three views of a route entry:
  - route_line:   the one-line-per-nexthop "show route" text
  - route_detail: the multi-line record printed for an address/prefix lookup
  - route_json:   the structured object used for JSON output

All three take `now` (epoch seconds) so that ages are reproducible in tests.
"""

from __future__ import annotations

import time
from typing import Optional

from prefixes import labels_to_str, prefix_str
from rib import (
    GATEWAY_NEXTHOP_TYPES,
    NO_DISTANCE_ROUTE_TYPES,
    ROUTE_TYPE_CHARS,
    UPTIME_ROUTE_TYPES,
    VRF_DEFAULT,
    Afi,
    Nexthop,
    NexthopType,
    RouteEntry,
    Safi,
)
from rib.table import RouteNode

ONE_DAY_SECOND = 60 * 60 * 24
ONE_WEEK_SECOND = ONE_DAY_SECOND * 7

CODES_HEADER_V4 = (
    "Codes: K - kernel route, C - connected, S - static, R - RIP,\n"
    "       O - OSPF, I - IS-IS, B - BGP, E - EIGRP, N - NHRP,\n"
    "       T - Table, v - VNC, V - VNC-Direct, A - Babel,\n"
    "       > - selected route, * - FIB route\n\n"
)

CODES_HEADER_V6 = (
    "Codes: K - kernel route, C - connected, S - static, R - RIPng,\n"
    "       O - OSPFv6, I - IS-IS, B - BGP, N - NHRP,\n"
    "       T - Table, v - VNC, V - VNC-Direct, A - Babel,\n"
    "       > - selected route, * - FIB route\n\n"
)


def codes_header(afi: Afi) -> str:
    return CODES_HEADER_V4 if afi == Afi.IP else CODES_HEADER_V6


def format_uptime(seconds: float) -> str:
    """
    Age bucketed the way operators expect to read it:

        < 1 day   -> HH:MM:SS
        < 1 week  -> DdHHhMMm
        otherwise -> WWwDdHHh
    """
    seconds = max(int(seconds), 0)
    days, rest = divmod(seconds, ONE_DAY_SECOND)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)

    if seconds < ONE_DAY_SECOND:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    if seconds < ONE_WEEK_SECOND:
        return f"{days}d{hours:02d}h{minutes:02d}m"
    weeks, days = divmod(days, 7)
    return f"{weeks:02d}w{days}d{hours:02d}h"


def _age(entry: RouteEntry, now: Optional[float]) -> Optional[str]:
    if entry.type not in UPTIME_ROUTE_TYPES:
        return None
    if now is None:
        now = time.time()
    return format_uptime(now - entry.uptime)


def _ifname(nh: Nexthop) -> str:
    return nh.ifname or "unknown"


def _source(nh: Nexthop) -> Optional[str]:
    """Preferred source, only for gateway nexthops and only when not the any-address."""
    if nh.type not in GATEWAY_NEXTHOP_TYPES or nh.source is None:
        return None
    if nh.source.is_unspecified:
        return None
    return str(nh.source)


def _flag_suffix(nh: Nexthop) -> str:
    out = ""
    if not nh.active:
        out += " inactive"
    if nh.onlink:
        out += " onlink"
    if nh.recursive:
        out += " (recursive)"
    return out


def _nexthop_text(nh: Nexthop) -> str:
    if nh.type in GATEWAY_NEXTHOP_TYPES:
        text = f" via {nh.gateway}"
        if nh.ifindex:
            text += f", {_ifname(nh)}"
        return text
    if nh.type == NexthopType.IFINDEX:
        return f" is directly connected, {_ifname(nh)}"
    if nh.type == NexthopType.BLACKHOLE:
        return " is directly connected, Null0"
    return ""


def route_line(node: RouteNode, entry: RouteEntry, now: Optional[float] = None) -> str:
    """Text lines for one entry, one per nexthop (resolved children included)."""
    lines = []
    width = 0
    age = _age(entry, now)

    for nh, level in entry.all_nexthops():
        if not lines:
            head = ROUTE_TYPE_CHARS[entry.type]
            if entry.instance:
                head += f"[{entry.instance}]"
            head += ">" if entry.selected else " "
            head += "*" if nh.fib else " "
            head += f" {prefix_str(node.prefix, node.src)}"
            if entry.type not in NO_DISTANCE_ROUTE_TYPES:
                head += f" [{entry.distance}/{entry.metric}]"
            width = len(head)
            line = head
        else:
            pad = max(width - 3 + 2 * level, 1)
            line = "  " + ("*" if nh.fib else " ") + " " * pad

        line += _nexthop_text(nh)
        line += _flag_suffix(nh)
        source = _source(nh)
        if source:
            line += f", src {source}"
        if nh.labels:
            line += f", label {labels_to_str(nh.labels, pretty=True)}"
        if entry.blackhole:
            line += ", bh"
        if entry.reject:
            line += ", rej"
        if age is not None:
            line += f", {age}"
        lines.append(line)

    return "\n".join(lines) + "\n" if lines else ""


def route_detail(node: RouteNode, entries: list[RouteEntry], safi: Safi = Safi.UNICAST,
                 mcast: bool = False, vrf_name: str = "", now: Optional[float] = None) -> str:
    """Detail records for every entry of a node, each followed by a blank line."""
    out = []
    note = ""
    if mcast:
        note = " using Multicast RIB" if safi == Safi.MULTICAST else " using Unicast RIB"

    for entry in entries:
        out.append(f"Routing entry for {prefix_str(node.prefix, node.src)}{note}\n")

        known = f'  Known via "{entry.type.value}'
        if entry.instance:
            known += f"[{entry.instance}]"
        known += f'", distance {entry.distance}, metric {entry.metric}'
        if entry.tag:
            known += f", tag {entry.tag}"
        if entry.mtu:
            known += f", mtu {entry.mtu}"
        if entry.vrf_id != VRF_DEFAULT:
            known += f", vrf {vrf_name}"
        if entry.selected:
            known += ", best"
        if entry.refcnt:
            known += f", refcnt {entry.refcnt}"
        if entry.blackhole:
            known += ", blackhole"
        if entry.reject:
            known += ", reject"
        out.append(known + "\n")

        age = _age(entry, now)
        if age is not None:
            out.append(f"  Last update {age} ago\n")

        for nh, level in entry.all_nexthops():
            line = "  " + ("*" if nh.fib else " ") + ("  " if level else "")
            if nh.type in GATEWAY_NEXTHOP_TYPES:
                line += f" {nh.gateway}"
                if nh.ifindex:
                    line += f", via {_ifname(nh)}"
            elif nh.type == NexthopType.IFINDEX:
                line += f" directly connected, {_ifname(nh)}"
            elif nh.type == NexthopType.BLACKHOLE:
                line += " directly connected, Null0"
            line += _flag_suffix(nh)
            source = _source(nh)
            if source:
                line += f", src {source}"
            if nh.labels:
                line += f", label {labels_to_str(nh.labels, pretty=True)}"
            out.append(line + "\n")
        out.append("\n")

    return "".join(out)


def nexthop_json(nh: Nexthop) -> dict:
    data: dict = {}
    if nh.fib:
        data["fib"] = True

    if nh.type in GATEWAY_NEXTHOP_TYPES:
        data["ip"] = str(nh.gateway)
        data["afi"] = nh.afi.value
        if nh.ifindex:
            data["interfaceIndex"] = nh.ifindex
            data["interfaceName"] = _ifname(nh)
    elif nh.type == NexthopType.IFINDEX:
        data["directlyConnected"] = True
        data["interfaceIndex"] = nh.ifindex
        data["interfaceName"] = _ifname(nh)
    elif nh.type == NexthopType.BLACKHOLE:
        data["blackhole"] = True

    if nh.active:
        data["active"] = True
    if nh.onlink:
        data["onLink"] = True
    if nh.recursive:
        data["recursive"] = True

    source = _source(nh)
    if source:
        data["source"] = source
    if nh.labels:
        data["labels"] = list(nh.labels)
    return data


def route_json(node: RouteNode, entry: RouteEntry, now: Optional[float] = None) -> dict:
    """Structured form of one entry; the caller groups these by prefix."""
    data: dict = {
        "prefix": prefix_str(node.prefix, node.src),
        "protocol": entry.type.value,
    }
    if entry.instance:
        data["instance"] = entry.instance
    if entry.vrf_id:
        data["vrfId"] = entry.vrf_id
    if entry.selected:
        data["selected"] = True
    if entry.type not in NO_DISTANCE_ROUTE_TYPES:
        data["distance"] = entry.distance
        data["metric"] = entry.metric
    if entry.blackhole:
        data["blackhole"] = True
    if entry.reject:
        data["reject"] = True

    age = _age(entry, now)
    if age is not None:
        data["uptime"] = age

    data["nexthops"] = [nexthop_json(nh) for nh, _level in entry.all_nexthops()]
    return data
