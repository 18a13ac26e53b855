import hmac
import logging
import time

from aiohttp import web
from pymongo.errors import DuplicateKeyError

from db import repositories as repo
from utils.logger import log_info
from webapi.context import (
    BOTS_KEY,
    DB_KEY,
    SETTINGS_KEY,
    STARTED_AT_KEY,
    TENANTS_KEY,
    bad_request,
    read_json,
)

logger = logging.getLogger(__name__)

routes = web.RouteTableDef()

ADMIN_KEY_HEADER = "x-admin-key"


@routes.get("/health")
async def health(request: web.Request) -> web.Response:
    uptime = time.monotonic() - request.app[STARTED_AT_KEY]
    return web.json_response({"status": "healthy", "uptime": round(uptime, 3)})


@routes.post("/admin/register-bot")
async def register_bot(request: web.Request) -> web.Response:
    admin_key = request.app[SETTINGS_KEY].admin_api_key
    if admin_key and not hmac.compare_digest(
        request.headers.get(ADMIN_KEY_HEADER, ""), admin_key
    ):
        return web.json_response({"success": False, "error": "Forbidden"}, status=403)

    data = await read_json(request)
    if not isinstance(data, dict) or not data.get("botId") or not data.get("token"):
        raise bad_request("botId and token are required")

    try:
        config = await repo.create_bot_config(
            request.app[DB_KEY],
            bot_id=data["botId"],
            token=data["token"],
            name=data.get("name"),
            owner_id=data.get("ownerId"),
        )
    except DuplicateKeyError:
        return web.json_response(
            {"success": False, "error": "botId already registered"}, status=409
        )
    request.app[TENANTS_KEY].remember(config)
    bot = await request.app[BOTS_KEY].get_or_create(config["token"])
    log_info(f"bot registered, started={bot is not None}", tenant=config["botId"])
    return web.json_response({"success": True})


@routes.post("/webhook/{token}")
async def webhook(request: web.Request) -> web.Response:
    token = request.match_info["token"]
    try:
        update = await request.json()
        await request.app[BOTS_KEY].feed_update(token, update)
    except Exception:  # noqa: BLE001
        # Телеграм повторяет апдейты на не-200, поэтому ошибку только логируем
        logger.exception("webhook update failed")
    return web.Response(status=200)
