"""Multicast RPF lookup across the multicast and unicast RIBs."""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from typing import Optional

from config import MulticastMode
from rib import DEFAULT_VRF_NAME, Afi, RouteEntry, Safi
from rib.store import InMemoryRib
from rib.table import RouteNode, RouteTable

logger = logging.getLogger(__name__)


@dataclass
class RpfMatch:
    table: RouteTable
    node: RouteNode
    entry: RouteEntry

    @property
    def safi(self) -> Safi:
        return self.table.safi


def _match(rib: InMemoryRib, safi: Safi, vrf: str, address: ipaddress.IPv4Address) -> Optional[RpfMatch]:
    found = rib.match_selected(Afi.IP, safi, vrf, address)
    if found is None:
        return None
    return RpfMatch(*found)


def rpf_lookup(rib: InMemoryRib, mode: MulticastMode, address: ipaddress.IPv4Address,
               vrf: str = DEFAULT_VRF_NAME) -> Optional[RpfMatch]:
    """
    Best selected route towards a multicast source.

    With both RIBs in play, lower-distance and longer-prefix prefer the
    unicast match only when it is strictly better; ties stay with the MRIB.
    No configured mode behaves like mrib-then-urib.
    """
    if mode == MulticastMode.URIB_ONLY:
        result = _match(rib, Safi.UNICAST, vrf, address)
    elif mode == MulticastMode.MRIB_ONLY:
        result = _match(rib, Safi.MULTICAST, vrf, address)
    elif mode in (MulticastMode.LOWER_DISTANCE, MulticastMode.LONGER_PREFIX):
        mrib = _match(rib, Safi.MULTICAST, vrf, address)
        urib = _match(rib, Safi.UNICAST, vrf, address)
        if mrib is None or urib is None:
            result = mrib or urib
        elif mode == MulticastMode.LOWER_DISTANCE:
            result = urib if urib.entry.distance < mrib.entry.distance else mrib
        else:
            result = urib if urib.node.prefix.prefixlen > mrib.node.prefix.prefixlen else mrib
    else:
        result = _match(rib, Safi.MULTICAST, vrf, address) or _match(rib, Safi.UNICAST, vrf, address)

    if result is None:
        logger.debug("rpf lookup %s (%s): no match", address, mode.value)
    else:
        logger.debug("rpf lookup %s (%s): %s via %s RIB", address, mode.value,
                     result.node.prefix, result.safi.value)
    return result
