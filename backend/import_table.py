"""Import-table directives: non-main kernel tables whose routes are pulled into the RIB."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from config import RT_TABLE_MAIN
from errors import MalformedInput
from rib import Afi

logger = logging.getLogger(__name__)

ZEBRA_TABLE_DISTANCE_DEFAULT = 15
ZEBRA_KERNEL_TABLE_MAX = 252


@dataclass
class ImportTableDirective:
    afi: Afi
    table_id: int
    distance: int = ZEBRA_TABLE_DISTANCE_DEFAULT
    route_map: Optional[str] = None

    def config_line(self) -> str:
        family = "ip" if self.afi == Afi.IP else "ipv6"
        line = f"{family} import-table {self.table_id}"
        if self.distance != ZEBRA_TABLE_DISTANCE_DEFAULT:
            line += f" distance {self.distance}"
        if self.route_map:
            line += f" route-map {self.route_map}"
        return line


class ImportTableRegistry:
    """Enabled import-table directives, one per (afi, table id)."""

    def __init__(self, main_table_id: int = RT_TABLE_MAIN):
        self.main_table_id = main_table_id
        self._directives: dict[tuple[Afi, int], ImportTableDirective] = {}

    def _check(self, table_id: int, negate: bool) -> None:
        if not 1 <= table_id <= ZEBRA_KERNEL_TABLE_MAX:
            if negate:
                raise MalformedInput("invalid_table_id", "Invalid routing table ID. Must be in range 1-252")
            raise MalformedInput(
                "invalid_table_id", f"Invalid routing table ID, {table_id}. Must be in range 1-252"
            )
        if table_id == self.main_table_id:
            raise MalformedInput(
                "invalid_table_id", f"Invalid routing table ID, {table_id}. Must be non-default table"
            )

    def enable(self, afi: Afi, table_id: int, distance: Optional[int] = None,
               route_map: Optional[str] = None) -> ImportTableDirective:
        self._check(table_id, negate=False)
        if distance is not None and not 1 <= distance <= 255:
            raise MalformedInput("malformed_distance", f"% Malformed distance {distance}")
        directive = ImportTableDirective(
            afi=afi,
            table_id=table_id,
            distance=distance if distance is not None else ZEBRA_TABLE_DISTANCE_DEFAULT,
            route_map=route_map,
        )
        self._directives[(afi, table_id)] = directive
        logger.info("import-table %d enabled for %s (distance %d)", table_id, afi.value, directive.distance)
        return directive

    def disable(self, afi: Afi, table_id: int) -> bool:
        """False when the table was not being imported (no effect)."""
        self._check(table_id, negate=True)
        if self._directives.pop((afi, table_id), None) is None:
            return False
        logger.info("import-table %d disabled for %s", table_id, afi.value)
        return True

    def is_enabled(self, afi: Afi, table_id: int) -> bool:
        return (afi, table_id) in self._directives

    def get(self, afi: Afi, table_id: int) -> Optional[ImportTableDirective]:
        return self._directives.get((afi, table_id))

    def directives(self) -> list[ImportTableDirective]:
        return [self._directives[key] for key in sorted(self._directives, key=lambda k: (k[0].value, k[1]))]
