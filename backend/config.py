"""Process-wide RIB manager settings, handed to the command context at startup."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from rib import Afi

RT_TABLE_MAIN = 254


class MulticastMode(str, Enum):
    """IPv4 multicast RPF lookup behavior."""
    URIB_ONLY = "urib-only"
    MRIB_ONLY = "mrib-only"
    MRIB_THEN_URIB = "mrib-then-urib"
    LOWER_DISTANCE = "lower-distance"
    LONGER_PREFIX = "longer-prefix"
    NO_CONFIG = "unset"


@dataclass
class RibConfig:
    multicast_mode: MulticastMode = MulticastMode.NO_CONFIG
    allow_external_route_update: bool = False
    mpls_enabled: bool = False
    ip_nht_resolve_via_default: bool = False
    ipv6_nht_resolve_via_default: bool = False
    main_table_id: int = RT_TABLE_MAIN

    def nht_resolve_via_default(self, afi: Afi) -> bool:
        if afi == Afi.IP:
            return self.ip_nht_resolve_via_default
        return self.ipv6_nht_resolve_via_default

    def set_nht_resolve_via_default(self, afi: Afi, enabled: bool) -> None:
        if afi == Afi.IP:
            self.ip_nht_resolve_via_default = enabled
        else:
            self.ipv6_nht_resolve_via_default = enabled
