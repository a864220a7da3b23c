"""
Per-protocol route counts.

Two counting modes:

  per-route   every entry counts once; iBGP entries land only in the ibgp
              bucket; the FIB column counts FIB-installed entries.
  per-prefix  ECMP entries count once. Only the first nexthop of an entry is
              looked at: it adds one route, and one FIB route if that
              nexthop carries the FIB flag. iBGP entries are counted in both
              the bgp and ibgp buckets and eBGP is shown as the difference.
"""

from __future__ import annotations

from collections import Counter
from contextlib import closing
from dataclasses import dataclass, field

from rib import RouteEntry, RouteType
from rib.table import RouteTable


@dataclass
class RouteSummary:
    vrf_name: str
    prefix_mode: bool = False
    routes: Counter = field(default_factory=Counter)   # RouteType -> count
    fib: Counter = field(default_factory=Counter)
    ibgp_routes: int = 0
    ibgp_fib: int = 0
    total_routes: int = 0
    total_fib: int = 0

    def rows(self) -> list[tuple[str, int, int]]:
        """(source, routes, fib) for every non-empty bucket, in protocol order."""
        rows = []
        for rtype in RouteType:
            if rtype == RouteType.BGP:
                if self.prefix_mode:
                    if self.routes[rtype] > 0:
                        rows.append(("ebgp", self.routes[rtype] - self.ibgp_routes,
                                     self.fib[rtype] - self.ibgp_fib))
                        rows.append(("ibgp", self.ibgp_routes, self.ibgp_fib))
                elif self.routes[rtype] > 0 or self.ibgp_routes > 0:
                    rows.append(("ebgp", self.routes[rtype], self.fib[rtype]))
                    rows.append(("ibgp", self.ibgp_routes, self.ibgp_fib))
            elif self.routes[rtype] > 0:
                rows.append((rtype.value, self.routes[rtype], self.fib[rtype]))
        return rows

    def render_text(self) -> str:
        title = "Prefix Routes" if self.prefix_mode else "Routes"
        out = [f"{'Route Source':<20} {title:<20} FIB  (vrf {self.vrf_name})\n"]
        for source, routes, fib in self.rows():
            out.append(f"{source:<20} {routes:<20d} {fib:<20d} \n")
        out.append("------\n")
        out.append(f"{'Totals':<20} {self.total_routes:<20d} {self.total_fib:<20d} \n")
        out.append("\n")
        return "".join(out)

    def as_dict(self) -> dict:
        return {
            "vrf": self.vrf_name,
            "mode": "prefix" if self.prefix_mode else "route",
            "sources": [
                {"source": source, "routes": routes, "fib": fib}
                for source, routes, fib in self.rows()
            ],
            "totalRoutes": self.total_routes,
            "totalFib": self.total_fib,
        }


def _entries(table: RouteTable):
    with closing(table.nodes()) as nodes:
        for node in nodes:
            yield from list(node.entries)


def _is_ibgp(entry: RouteEntry) -> bool:
    return entry.type == RouteType.BGP and entry.ibgp


def summarize_routes(table: RouteTable) -> RouteSummary:
    summary = RouteSummary(vrf_name=table.vrf_name)
    for entry in _entries(table):
        ibgp = _is_ibgp(entry)
        summary.total_routes += 1
        if ibgp:
            summary.ibgp_routes += 1
        else:
            summary.routes[entry.type] += 1

        if entry.fib_installed:
            summary.total_fib += 1
            if ibgp:
                summary.ibgp_fib += 1
            else:
                summary.fib[entry.type] += 1
    return summary


def summarize_prefixes(table: RouteTable) -> RouteSummary:
    summary = RouteSummary(vrf_name=table.vrf_name, prefix_mode=True)
    for entry in _entries(table):
        if not entry.nexthops:
            continue
        first = entry.nexthops[0]

        summary.total_routes += 1
        summary.routes[entry.type] += 1
        if first.fib:
            summary.total_fib += 1
            summary.fib[entry.type] += 1
        if _is_ibgp(entry):
            summary.ibgp_routes += 1
            if first.fib:
                summary.ibgp_fib += 1
    return summary


def summarize(table: RouteTable, prefix_mode: bool = False) -> RouteSummary:
    if prefix_mode:
        return summarize_prefixes(table)
    return summarize_routes(table)
