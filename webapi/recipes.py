from aiohttp import web

from db import repositories as repo
from services.notify import notify_recipe, share_recipe
from webapi.context import (
    BOTS_KEY,
    bad_request,
    db_of,
    ok,
    read_json,
    tenant_of,
    tenant_required,
)

routes = web.RouteTableDef()

NOTIFY_ACTIONS = {"create", "update", "delete"}


@routes.get("/api/recipes")
@tenant_required
async def list_recipes(request: web.Request) -> web.Response:
    return web.json_response(await repo.list_recipes(db_of(request), tenant_of(request).bot_id))


@routes.post("/api/recipes")
@tenant_required
async def save_recipe(request: web.Request) -> web.Response:
    data = await read_json(request)
    if not isinstance(data, dict) or not data.get("id"):
        raise bad_request("recipe id is required")
    await repo.upsert_recipe(db_of(request), tenant_of(request).bot_id, data)
    return ok()


@routes.post("/api/recipes/bulk")
@tenant_required
async def save_recipes_bulk(request: web.Request) -> web.Response:
    data = await read_json(request)
    if not isinstance(data, list) or not all(isinstance(r, dict) and r.get("id") for r in data):
        raise bad_request("expected a list of recipes with ids")
    count = await repo.bulk_upsert_recipes(db_of(request), tenant_of(request).bot_id, data)
    return ok(count=count)


@routes.post("/api/recipes/archive/batch")
@tenant_required
async def archive_batch(request: web.Request) -> web.Response:
    data = await read_json(request)
    ids = data.get("ids") if isinstance(data, dict) else None
    if not isinstance(ids, list):
        raise bad_request("ids must be a list")
    count = await repo.archive_recipes(db_of(request), tenant_of(request).bot_id, ids)
    return ok(count=count)


@routes.delete("/api/recipes/archive/all")
@tenant_required
async def delete_all_archived(request: web.Request) -> web.Response:
    count = await repo.delete_archived_recipes(db_of(request), tenant_of(request).bot_id)
    return ok(count=count)


@routes.delete("/api/recipes/{recipe_id}")
@tenant_required
async def delete_recipe(request: web.Request) -> web.Response:
    recipe_id = request.match_info["recipe_id"]
    await repo.delete_recipe(db_of(request), tenant_of(request).bot_id, recipe_id)
    return ok()


@routes.post("/api/share-recipe")
@tenant_required
async def share(request: web.Request) -> web.Response:
    data = await read_json(request)
    if not isinstance(data, dict) or not data.get("targetChatId"):
        raise bad_request("targetChatId is required")
    tenant = tenant_of(request)
    recipe = await repo.get_recipe(db_of(request), tenant.bot_id, data.get("recipeId"))
    bot = request.app[BOTS_KEY].get(tenant.token)
    if bot is None or recipe is None:
        return web.Response(status=404, text="Not found")
    await share_recipe(bot, recipe, data["targetChatId"], data.get("photoUrl"))
    return ok()


@routes.post("/api/notify")
@tenant_required
async def notify(request: web.Request) -> web.Response:
    data = await read_json(request)
    if not isinstance(data, dict) or data.get("action") not in NOTIFY_ACTIONS:
        raise bad_request("action must be one of create, update, delete")
    if data.get("silent"):
        return ok(sent=0)
    tenant = tenant_of(request)
    bot = request.app[BOTS_KEY].get(tenant.token)
    if bot is None:
        return web.Response(status=404, text="Not found")
    sent = await notify_recipe(
        bot,
        db_of(request),
        tenant.bot_id,
        action=data["action"],
        title=data.get("recipeTitle") or "",
        target_chat_id=data.get("targetChatId"),
        notify_all=bool(data.get("notifyAll")),
        changes=data.get("changes") or [],
    )
    return ok(sent=sent)
