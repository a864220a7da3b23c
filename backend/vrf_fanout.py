"""
VRF fan-out.

Runs a per-table view against one named VRF or against every VRF. An
unknown or inactive VRF is not an error: text output explains it and
structured output is an empty object, so polling scripts keep working.
"""

from __future__ import annotations

from typing import Callable, Iterator, Optional, Union

from rib import DEFAULT_VRF_NAME, Afi, Safi
from rib.store import InMemoryRib, Vrf, VrfState
from rib.table import RouteTable

ALL_VRFS = "all"

View = Union[str, dict]
TableView = Callable[[RouteTable], View]


def resolve_table(rib: InMemoryRib, vrf_name: str, afi: Afi, safi: Safi) -> tuple[Optional[RouteTable], str]:
    """(table, message). message explains a missing VRF; table is None whenever there is nothing to walk."""
    vrf = rib.get_vrf(vrf_name)
    if vrf is None:
        return None, f"vrf {vrf_name} not defined\n"
    if vrf.state == VrfState.INACTIVE:
        return None, f"vrf {vrf_name} inactive\n"
    return vrf.table(afi, safi), ""


def vrf_tables(rib: InMemoryRib, afi: Afi, safi: Safi) -> Iterator[tuple[Vrf, RouteTable]]:
    """Every VRF that has a table for (afi, safi), in name order."""
    for vrf in rib.vrfs_by_name():
        table = vrf.table(afi, safi)
        if table is None:
            continue
        yield vrf, table


def fan_out(rib: InMemoryRib, vrf_name: Optional[str], afi: Afi, safi: Safi,
            view: TableView, as_json: bool = False) -> View:
    """
    Apply `view` to the selected table(s).

    Single VRF: the view's own output, or the empty marker. All VRFs: text
    sections concatenated, structured output keyed by VRF name.
    """
    vrf_name = vrf_name or DEFAULT_VRF_NAME

    if vrf_name == ALL_VRFS:
        if as_json:
            return {vrf.name: view(table) for vrf, table in vrf_tables(rib, afi, safi)}
        return "".join(view(table) for _vrf, table in vrf_tables(rib, afi, safi))

    table, message = resolve_table(rib, vrf_name, afi, safi)
    if table is None:
        return {} if as_json else message
    return view(table)
