"""
Nexthop tracker backed by the in-memory RIB.

Clients register addresses they depend on; each address is resolved by a
longest match over selected routes. The default route only resolves a
tracked address when "nht resolve-via-default" is set for the family.
"""

from __future__ import annotations

import ipaddress
import logging
from typing import Optional

from config import RibConfig
from plugins import NexthopTrackerPlugin
from prefixes import afi_of
from rib import DEFAULT_VRF_NAME, GATEWAY_NEXTHOP_TYPES, Afi, IPAddress, NexthopType, RouteType, Safi
from rib.store import InMemoryRib

logger = logging.getLogger(__name__)


class RibNexthopTracker(NexthopTrackerPlugin):

    def __init__(self, rib: InMemoryRib, config: Optional[RibConfig] = None):
        self.rib = rib
        self.config = config or RibConfig()
        # (vrf, afi) -> address -> client names
        self._tracked: dict[tuple[str, Afi], dict[IPAddress, set[str]]] = {}

    def name(self) -> str:
        return "rib-nexthop-tracker"

    def track(self, address: str | IPAddress, client: str, vrf: str = DEFAULT_VRF_NAME) -> IPAddress:
        addr = ipaddress.ip_address(address)
        clients = self._tracked.setdefault((vrf, afi_of(addr)), {}).setdefault(addr, set())
        clients.add(client)
        logger.info("%s tracking %s in vrf %s", client, addr, vrf)
        return addr

    def untrack(self, address: str | IPAddress, client: str, vrf: str = DEFAULT_VRF_NAME) -> bool:
        addr = ipaddress.ip_address(address)
        table = self._tracked.get((vrf, afi_of(addr)), {})
        clients = table.get(addr)
        if not clients or client not in clients:
            return False
        clients.discard(client)
        if not clients:
            del table[addr]
        return True

    def tracked(self, vrf: str, afi: Afi) -> list[IPAddress]:
        return sorted(self._tracked.get((vrf, afi), {}))

    def resolve(self, address: IPAddress, vrf: str = DEFAULT_VRF_NAME):
        """(node, entry) resolving address, or None."""
        afi = afi_of(address)
        found = self.rib.match_selected(
            afi, Safi.UNICAST, vrf, address,
            allow_default=self.config.nht_resolve_via_default(afi),
        )
        if found is None:
            return None
        _table, node, entry = found
        return node, entry

    def render_table(self, vrf: str, afi: Afi) -> str:
        out = []
        table = self._tracked.get((vrf, afi), {})
        for addr in sorted(table):
            found = self.resolve(addr, vrf)
            connected = found is not None and found[1].type == RouteType.CONNECT
            marker = "(Connected)" if connected else ""
            out.append(f"{addr}{marker}\n")
            if found is None:
                out.append(" unresolved\n")
            else:
                _node, entry = found
                out.append(f" resolved via {entry.type.value}\n")
                for nh, _level in entry.all_nexthops():
                    if nh.type in GATEWAY_NEXTHOP_TYPES:
                        line = f" via {nh.gateway}"
                        if nh.ifindex:
                            line += f", {nh.ifname or 'unknown'}"
                    elif nh.type == NexthopType.IFINDEX:
                        line = f" is directly connected, {nh.ifname or 'unknown'}"
                    else:
                        line = " is directly connected, Null0"
                    out.append(line + "\n")
            out.append(f" Client list: {' '.join(sorted(table[addr]))}\n")
        return "".join(out)
