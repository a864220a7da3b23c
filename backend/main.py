"""RIB Manager API."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from commands import CommandContext, CommandOutput
from errors import CommandResult, NotFound
from inventory import RouterInventory
from models import (
    CommandResponse,
    ImportTableRequest,
    MrouteRequest,
    MulticastModeRequest,
    OutputFormat,
    RouteScope,
    ShowRouteQuery,
    StaticRouteRequest,
    ToggleRequest,
    VrfRequest,
)
from rib import Afi, Safi

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="RIB Manager", description="Static routes and route-table views", version="1.0.0")

backend_dir = Path(__file__).parent
project_dir = backend_dir.parent
inventory_path = project_dir / "inventories" / "example-router.yml"

ctx: Optional[CommandContext] = None
try:
    ctx = RouterInventory.from_yaml(inventory_path).build_context()
except Exception as e:
    logger.warning("Could not load inventory: %s", e)
    ctx = CommandContext()


def _respond(out: CommandOutput) -> dict:
    """Command result -> response body, or the matching HTTP error."""
    if out.result == CommandResult.CONFIG_FAILED:
        raise HTTPException(422, {"code": out.code, "message": out.text.strip()})
    if out.result == CommandResult.WARNING:
        status = 404 if isinstance(out.error, NotFound) else 400
        raise HTTPException(status, {"code": out.code, "message": out.text.strip()})
    return CommandResponse(result=out.result.value, text=out.text, data=out.data).model_dump()


def _show(out: CommandOutput, fmt: OutputFormat):
    _respond(out)
    if fmt == OutputFormat.JSON:
        return out.data if out.data is not None else {}
    return PlainTextResponse(out.text)


def _static_args(req: StaticRouteRequest) -> dict:
    return dict(
        afi=req.afi,
        safi=req.safi,
        dest=req.prefix,
        mask=req.mask,
        src=req.src,
        gateway=req.gateway,
        ifname=req.interface,
        flag=req.flag.value if req.flag else None,
        tag=req.tag,
        distance=req.distance,
        vrf=req.vrf,
        label=req.label,
    )


# --- configuration ---

@app.post("/api/static-routes")
async def add_static_route(req: StaticRouteRequest):
    return _respond(ctx.configure_static_route(**_static_args(req)))


@app.delete("/api/static-routes")
async def delete_static_route(req: StaticRouteRequest):
    return _respond(ctx.configure_static_route(**_static_args(req), negate=True))


@app.get("/api/static-routes")
async def list_static_routes(vrf: Optional[str] = None):
    return {"routes": [d.as_dict() for d in ctx.statics.descriptors(vrf=vrf)]}


@app.post("/api/mroutes")
async def add_mroute(req: MrouteRequest):
    return _respond(ctx.configure_mroute(req.prefix, req.gateway, req.interface, req.distance, req.vrf))


@app.delete("/api/mroutes")
async def delete_mroute(req: MrouteRequest):
    return _respond(ctx.configure_mroute(req.prefix, req.gateway, req.interface, req.distance, req.vrf,
                                         negate=True))


@app.put("/api/multicast/rpf-mode")
async def set_rpf_mode(req: MulticastModeRequest):
    return _respond(ctx.set_multicast_rpf_mode(req.mode))


@app.delete("/api/multicast/rpf-mode")
async def clear_rpf_mode():
    return _respond(ctx.set_multicast_rpf_mode(None))


@app.post("/api/import-tables")
async def add_import_table(req: ImportTableRequest):
    return _respond(ctx.set_import_table(req.table_id, req.distance, req.route_map, afi=req.afi))


@app.delete("/api/import-tables")
async def delete_import_table(req: ImportTableRequest):
    return _respond(ctx.set_import_table(req.table_id, negate=True, afi=req.afi))


@app.put("/api/settings/allow-external-route-update")
async def set_allow_external_route_update(req: ToggleRequest):
    return _respond(ctx.set_allow_external_route_update(req.enabled))


@app.put("/api/settings/nht-resolve-via-default/{afi}")
async def set_nht_resolve_via_default(afi: Afi, req: ToggleRequest):
    return _respond(ctx.set_nht_resolve_via_default(afi, req.enabled))


@app.post("/api/vrfs")
async def vrf_up(req: VrfRequest):
    return _respond(ctx.vrf_up(req.name, req.vrf_id, req.table_id))


@app.delete("/api/vrfs/{name}")
async def delete_vrf(name: str):
    return _respond(ctx.delete_vrf(name))


# --- show ---

@app.get("/api/routes")
async def show_routes(
    afi: Afi = Afi.IP,
    safi: Safi = Safi.UNICAST,
    scope: RouteScope = RouteScope.ROUTE,
    vrf: Optional[str] = None,
    tag: int = 0,
    longer_prefix: Optional[str] = None,
    supernets_only: bool = False,
    route_type: Optional[str] = None,
    instance: int = 0,
    format: OutputFormat = OutputFormat.TEXT,
):
    try:
        query = ShowRouteQuery(
            afi=afi, safi=safi, scope=scope, vrf=vrf, tag=tag, longer_prefix=longer_prefix,
            supernets_only=supernets_only, route_type=route_type, instance=instance, format=format,
        )
    except ValidationError as e:
        raise HTTPException(422, e.errors(include_url=False, include_context=False))

    out = ctx.show_route(
        afi=query.afi,
        safi=query.safi,
        fib_only=query.scope == RouteScope.FIB,
        vrf=query.vrf,
        tag=query.tag,
        longer_prefix=query.longer_prefix,
        supernets_only=query.supernets_only,
        route_type=query.route_type,
        instance=query.instance,
        as_json=query.format == OutputFormat.JSON,
    )
    return _show(out, query.format)


@app.get("/api/routes/lookup")
async def lookup_route(target: str, afi: Optional[Afi] = None, safi: Safi = Safi.UNICAST,
                       vrf: Optional[str] = None, format: OutputFormat = OutputFormat.TEXT):
    return _show(ctx.show_route_at(target, afi=afi, safi=safi, vrf=vrf), format)


@app.get("/api/routes/summary")
async def route_summary(afi: Afi = Afi.IP, safi: Safi = Safi.UNICAST, vrf: Optional[str] = None,
                        prefix_mode: bool = False, format: OutputFormat = OutputFormat.TEXT):
    out = ctx.show_route_summary(afi, safi, vrf=vrf, prefix_mode=prefix_mode,
                                 as_json=format == OutputFormat.JSON)
    return _show(out, format)


@app.get("/api/rpf")
async def show_rpf(format: OutputFormat = OutputFormat.TEXT):
    return _show(ctx.show_rpf(as_json=format == OutputFormat.JSON), format)


@app.get("/api/rpf/{address}")
async def show_rpf_at(address: str, format: OutputFormat = OutputFormat.TEXT):
    return _show(ctx.show_rpf_at(address), format)


@app.get("/api/nht")
async def show_nht(afi: Afi = Afi.IP, vrf: Optional[str] = None):
    return _show(ctx.show_nexthop_tracking(afi, vrf), OutputFormat.TEXT)


@app.get("/api/vrfs")
async def show_vrfs(format: OutputFormat = OutputFormat.TEXT):
    return _show(ctx.show_vrf(), format)


@app.get("/api/config")
async def running_config():
    return _show(ctx.write_config(), OutputFormat.TEXT)


@app.get("/api/health")
async def health():
    return {
        "status": "ok",
        "vrfs": len(ctx.rib.vrfs),
        "static_routes": ctx.statics.count(),
        "multicast_mode": ctx.config.multicast_mode.value,
    }
