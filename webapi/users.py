from aiohttp import web

from db import repositories as repo
from webapi.context import bad_request, db_of, ok, read_json, tenant_of, tenant_required

routes = web.RouteTableDef()


@routes.post("/api/sync-user")
@tenant_required
async def sync_user(request: web.Request) -> web.Response:
    data = await read_json(request)
    if not isinstance(data, dict) or data.get("id") is None:
        raise bad_request("user id is required")
    user = await repo.upsert_user(db_of(request), tenant_of(request).bot_id, data)
    return ok(user=user)


@routes.get("/api/users")
@tenant_required
async def list_users(request: web.Request) -> web.Response:
    return web.json_response(await repo.list_users(db_of(request), tenant_of(request).bot_id))


@routes.post("/api/users/toggle-admin")
@tenant_required
async def toggle_admin(request: web.Request) -> web.Response:
    data = await read_json(request)
    if not isinstance(data, dict) or data.get("targetId") is None:
        raise bad_request("targetId is required")
    await repo.set_admin(
        db_of(request), tenant_of(request).bot_id, data["targetId"], bool(data.get("status"))
    )
    return ok()
