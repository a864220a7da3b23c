"""Composable predicate deciding which route entries a show command lists."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Optional

from prefixes import classful_length
from rib import IPNetwork, RouteEntry, RouteType
from rib.table import RouteNode


@dataclass
class RouteFilter:
    """
    Every criterion that is set must hold.

    tag == 0 means "no tag filter", so routes carrying a literal tag of 0
    cannot be selected by tag.
    """
    fib_only: bool = False
    tag: int = 0
    longer_prefix: Optional[IPNetwork] = None
    supernets_only: bool = False
    route_type: Optional[RouteType] = None
    instance: int = 0

    def matches(self, node: RouteNode, entry: RouteEntry) -> bool:
        if self.fib_only and not entry.fib_installed:
            return False

        if self.tag and entry.tag != self.tag:
            return False

        if self.longer_prefix is not None:
            if node.prefix.version != self.longer_prefix.version:
                return False
            if not node.prefix.subnet_of(self.longer_prefix):
                return False

        if self.supernets_only and not _is_supernet(node.prefix):
            return False

        if self.route_type is not None:
            if entry.type != self.route_type:
                return False
            if self.instance and self.route_type == RouteType.OSPF and entry.instance != self.instance:
                return False

        return True


def _is_supernet(prefix: IPNetwork) -> bool:
    if not isinstance(prefix, ipaddress.IPv4Network):
        return True
    natural = classful_length(prefix.network_address)
    if natural is None:
        return True
    return prefix.prefixlen < natural
