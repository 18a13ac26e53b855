"""Shared app keys and request helpers for the HTTP API."""

from __future__ import annotations

import functools
import json
from typing import Any, Awaitable, Callable

from aiohttp import web
from motor.motor_asyncio import AsyncIOMotorDatabase

from config import Settings
from services.bots import BotRegistry
from services.tenants import Tenant, TenantResolver, tenant_id_from
from services.uploads import ImageHost

SETTINGS_KEY = web.AppKey("settings", Settings)
DB_KEY = web.AppKey("db", AsyncIOMotorDatabase)
TENANTS_KEY = web.AppKey("tenants", TenantResolver)
BOTS_KEY = web.AppKey("bots", BotRegistry)
IMAGE_HOST_KEY = web.AppKey("image_host", ImageHost)
STARTED_AT_KEY = web.AppKey("started_at", float)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def json_error(status: int, message: str, **extra: Any) -> web.Response:
    return web.json_response({"error": message, **extra}, status=status)


def ok(**extra: Any) -> web.Response:
    return web.json_response({"success": True, **extra})


async def read_json(request: web.Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise web.HTTPBadRequest(
            text=json.dumps({"error": "Invalid JSON body"}), content_type="application/json"
        ) from None


def bad_request(message: str) -> web.HTTPBadRequest:
    return web.HTTPBadRequest(text=json.dumps({"error": message}), content_type="application/json")


def tenant_required(handler: Handler) -> Handler:
    """Resolve the request's tenant into ``request["tenant"]`` or answer 404."""

    @functools.wraps(handler)
    async def wrapper(request: web.Request) -> web.StreamResponse:
        bot_id = tenant_id_from(request.headers, request.query)
        tenant = await request.app[TENANTS_KEY].resolve(bot_id)
        if tenant is None:
            return json_error(404, "Bot not found")
        request["tenant"] = tenant
        return await handler(request)

    return wrapper


def tenant_of(request: web.Request) -> Tenant:
    return request["tenant"]


def db_of(request: web.Request) -> AsyncIOMotorDatabase:
    return request.app[DB_KEY]
