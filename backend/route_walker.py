"""
Route table walker.

Visits a table in prefix order and hands every entry that passes the
filter to the renderer, producing the "show route" listing for one VRF.
"""

from __future__ import annotations

import logging
from contextlib import closing
from typing import Iterator, Optional

from prefixes import prefix_str
from render import codes_header, route_json, route_line
from rib import VRF_DEFAULT, RouteEntry
from rib.table import RouteNode, RouteTable
from route_filter import RouteFilter

logger = logging.getLogger(__name__)


class RouteWalker:
    """Filtered prefix-order traversal of one route table."""

    def __init__(self, table: RouteTable, route_filter: Optional[RouteFilter] = None):
        self.table = table
        self.route_filter = route_filter or RouteFilter()

    def walk(self) -> Iterator[tuple[RouteNode, RouteEntry]]:
        """
        Yield (node, entry) for every entry passing the filter.

        The node is guarded for as long as the caller is looking at it; the
        guard is released even if the caller stops early.
        """
        with closing(self.table.nodes()) as nodes:
            for node in nodes:
                for entry in list(node.entries):
                    if self.route_filter.matches(node, entry):
                        yield node, entry

    def render_text(self, now: Optional[float] = None) -> str:
        """Codes header, optional VRF banner, then one block per matching entry."""
        out = []
        for node, entry in self.walk():
            if not out:
                out.append(codes_header(self.table.afi))
                if self.table.vrf_id != VRF_DEFAULT:
                    out.append(f"\nVRF {self.table.vrf_name}:\n")
            out.append(route_line(node, entry, now=now))
        return "".join(out)

    def render_json(self, now: Optional[float] = None) -> dict[str, list[dict]]:
        """{prefix: [entry, ...]} in walk order."""
        result: dict[str, list[dict]] = {}
        for node, entry in self.walk():
            key = prefix_str(node.prefix, node.src)
            result.setdefault(key, []).append(route_json(node, entry, now=now))
        return result

    def count(self) -> int:
        return sum(1 for _ in self.walk())
