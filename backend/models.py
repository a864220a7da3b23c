"""
Request and response models for the RIB manager API.

Fields stay as loose text where the static route normalizer owns the
validation (addresses, labels, distance), so that its ordered error
messages reach the operator unchanged. The models only reject requests
whose shape is impossible, such as two competing show filters.
"""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field, model_validator

from config import MulticastMode
from rib import Afi, Safi


class OutputFormat(str, Enum):
    TEXT = "text"
    JSON = "json"


class RouteScope(str, Enum):
    ROUTE = "route"          # every entry
    FIB = "fib"              # FIB-installed entries only


class StaticFlag(str, Enum):
    REJECT = "reject"
    BLACKHOLE = "blackhole"


# --- Configuration requests ---

class StaticRouteRequest(BaseModel):
    afi: Afi = Afi.IP
    safi: Safi = Safi.UNICAST
    prefix: str                           # A.B.C.D/M, A.B.C.D (with mask) or X:X::X:X/M
    mask: Optional[str] = None            # dotted mask, IPv4 only
    src: Optional[str] = None             # IPv6 source prefix (source-destination routing)
    gateway: Optional[str] = None
    interface: Optional[str] = None       # "Null0" means blackhole
    flag: Optional[StaticFlag] = None
    tag: Optional[Union[int, str]] = None
    distance: Optional[Union[int, str]] = None
    vrf: Optional[str] = None
    label: Optional[str] = None           # "16/17"

    @model_validator(mode="after")
    def check_nexthop_shape(self):
        if self.flag is not None and (self.gateway or self.interface):
            if not (self.interface and self.interface.lower() == "null0"):
                raise ValueError("flag cannot be combined with a gateway or interface")
        if self.mask is not None and self.afi != Afi.IP:
            raise ValueError("mask is only valid for IPv4 routes")
        return self


class MrouteRequest(BaseModel):
    prefix: str
    gateway: Optional[str] = None
    interface: Optional[str] = None
    distance: Optional[Union[int, str]] = None
    vrf: Optional[str] = None


class MulticastModeRequest(BaseModel):
    mode: MulticastMode


class ImportTableRequest(BaseModel):
    afi: Afi = Afi.IP
    table_id: int
    distance: Optional[int] = Field(default=None, ge=1, le=255)
    route_map: Optional[str] = None


class ToggleRequest(BaseModel):
    enabled: bool


class VrfRequest(BaseModel):
    name: str
    vrf_id: int
    table_id: Optional[int] = None


# --- Show queries ---

class ShowRouteQuery(BaseModel):
    """At most one of tag, longer_prefix, supernets_only, route_type."""
    afi: Afi = Afi.IP
    safi: Safi = Safi.UNICAST
    scope: RouteScope = RouteScope.ROUTE
    vrf: Optional[str] = None             # name, or "all"
    tag: int = Field(default=0, ge=0, le=4294967295)
    longer_prefix: Optional[str] = None
    supernets_only: bool = False
    route_type: Optional[str] = None
    instance: int = Field(default=0, ge=0, le=65535)
    format: OutputFormat = OutputFormat.TEXT

    @model_validator(mode="after")
    def check_exclusive_filters(self):
        chosen = [
            name for name, present in (
                ("tag", bool(self.tag)),
                ("longer_prefix", self.longer_prefix is not None),
                ("supernets_only", self.supernets_only),
                ("route_type", self.route_type is not None),
            ) if present
        ]
        if len(chosen) > 1:
            raise ValueError(f"filters are mutually exclusive: {', '.join(chosen)}")
        if self.instance and self.route_type != "ospf":
            raise ValueError("instance is only valid with route_type=ospf")
        if self.supernets_only and self.afi != Afi.IP:
            raise ValueError("supernets_only is only valid for IPv4")
        return self


# --- Responses ---

class CommandResponse(BaseModel):
    result: str
    text: str = ""
    data: Optional[dict] = None
