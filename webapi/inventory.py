import logging

from aiohttp import web

from db import repositories as repo
from services import inventory
from utils.logger import log_debug
from utils.time import now_ms
from webapi.context import bad_request, db_of, ok, read_json, tenant_of, tenant_required

logger = logging.getLogger(__name__)

routes = web.RouteTableDef()

GLOBAL_ITEM_FIELDS = ("code", "name", "unit")


@routes.get("/api/inventory")
@tenant_required
async def list_cycles(request: web.Request) -> web.Response:
    return web.json_response(await repo.list_cycles(db_of(request), tenant_of(request).bot_id))


@routes.post("/api/inventory/cycle")
@tenant_required
async def save_cycle(request: web.Request) -> web.Response:
    data = await read_json(request)
    if not isinstance(data, dict) or not data.get("id") or data.get("date") is None:
        raise bad_request("cycle id and date are required")
    await repo.upsert_cycle(db_of(request), tenant_of(request).bot_id, data)
    return ok()


@routes.get("/api/inventory/global-items")
@tenant_required
async def list_global_items(request: web.Request) -> web.Response:
    items = await repo.list_global_items(db_of(request), tenant_of(request).bot_id)
    return web.json_response(items)


@routes.post("/api/inventory/global-items/upsert")
@tenant_required
async def upsert_global_items(request: web.Request) -> web.Response:
    data = await read_json(request)
    items = data.get("items") if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise bad_request("items must be a list")
    for item in items:
        if not isinstance(item, dict) or not all(item.get(f) for f in GLOBAL_ITEM_FIELDS):
            raise bad_request("every item needs code, name and unit")
    count = await repo.upsert_global_items(db_of(request), tenant_of(request).bot_id, items)
    return ok(count=count)


@routes.post("/api/inventory/lock")
@tenant_required
async def lock_sheet(request: web.Request) -> web.Response:
    data = await read_json(request)
    if not isinstance(data, dict):
        raise bad_request("expected an object")
    user = data.get("user")
    if not isinstance(user, dict) or user.get("id") is None:
        raise bad_request("user.id is required")

    bot_id = tenant_of(request).bot_id
    db = db_of(request)
    cycle_id, sheet_id = data.get("cycleId"), data.get("sheetId")
    # Чтение и запись не атомарны: два одновременных запроса могут оба
    # получить лист. Блокировка рекомендательная, см. services.inventory.
    cycle = await repo.get_cycle(db, bot_id, cycle_id)
    if cycle is None:
        return web.json_response({"success": False}, status=404)
    try:
        granted, holder = inventory.try_lock(cycle, sheet_id, user, now_ms())
    except inventory.SheetNotFound:
        return web.json_response({"success": False}, status=404)
    if not granted:
        log_debug(f"sheet {sheet_id} busy, held by {holder}", tenant=bot_id)
        return web.json_response({"success": False, "lockedBy": holder})
    await repo.save_cycle_sheets(db, bot_id, cycle_id, cycle["sheets"])
    return ok()


@routes.post("/api/inventory/unlock")
@tenant_required
async def unlock_sheet(request: web.Request) -> web.Response:
    data = await read_json(request)
    if not isinstance(data, dict):
        raise bad_request("expected an object")
    bot_id = tenant_of(request).bot_id
    db = db_of(request)
    cycle = await repo.get_cycle(db, bot_id, data.get("cycleId"))
    if cycle is not None:
        try:
            inventory.release(cycle, data.get("sheetId"))
        except inventory.SheetNotFound:
            log_debug(f"unlock of unknown sheet {data.get('sheetId')}", tenant=bot_id)
        else:
            await repo.save_cycle_sheets(db, bot_id, cycle["id"], cycle["sheets"])
    return ok()


@routes.delete("/api/inventory/archive/all")
@tenant_required
async def delete_archive(request: web.Request) -> web.Response:
    count = await repo.delete_finalized_cycles(db_of(request), tenant_of(request).bot_id)
    logger.info("%s: deleted %s finalized cycle(s)", tenant_of(request).bot_id, count)
    return ok(count=count)
