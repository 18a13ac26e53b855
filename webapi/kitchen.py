"""Settings, staff schedule and wastage log routes."""

from aiohttp import web

from db import repositories as repo
from webapi.context import bad_request, db_of, ok, read_json, tenant_of, tenant_required

routes = web.RouteTableDef()


@routes.get("/api/settings")
@tenant_required
async def get_settings(request: web.Request) -> web.Response:
    settings = await repo.get_or_create_settings(db_of(request), tenant_of(request).bot_id)
    return web.json_response(settings)


@routes.post("/api/settings")
@tenant_required
async def save_settings(request: web.Request) -> web.Response:
    data = await read_json(request)
    if not isinstance(data, dict):
        raise bad_request("expected an object")
    await repo.update_settings(db_of(request), tenant_of(request).bot_id, data)
    return ok()


@routes.get("/api/schedule")
@tenant_required
async def get_schedule(request: web.Request) -> web.Response:
    return web.json_response(await repo.get_schedule(db_of(request), tenant_of(request).bot_id))


@routes.post("/api/schedule")
@tenant_required
async def save_schedule(request: web.Request) -> web.Response:
    data = await read_json(request)
    staff = data.get("staff") if isinstance(data, dict) else None
    if not isinstance(staff, list):
        raise bad_request("staff must be a list")
    await repo.save_schedule(db_of(request), tenant_of(request).bot_id, staff)
    return ok()


@routes.get("/api/wastage")
@tenant_required
async def list_wastage(request: web.Request) -> web.Response:
    return web.json_response(await repo.list_wastage(db_of(request), tenant_of(request).bot_id))


@routes.post("/api/wastage")
@tenant_required
async def create_wastage(request: web.Request) -> web.Response:
    data = await read_json(request)
    if not isinstance(data, dict) or not data.get("id"):
        raise bad_request("wastage log id is required")
    await repo.create_wastage(db_of(request), tenant_of(request).bot_id, data)
    return ok()


@routes.delete("/api/wastage/{log_id}")
@tenant_required
async def delete_wastage(request: web.Request) -> web.Response:
    await repo.delete_wastage(db_of(request), tenant_of(request).bot_id, request.match_info["log_id"])
    return ok()
