"""
HTTP сервер Mini App: REST API, вебхуки ботов и статика SPA.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

import aiohttp
from aiohttp import web

from services.uploads import ImageHost
from utils.logger import log_debug, log_error
from webapi import admin, inventory, kitchen, media, recipes, users
from webapi.context import (
    IMAGE_HOST_KEY,
    SETTINGS_KEY,
    STARTED_AT_KEY,
    json_error,
)

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 10 * 1024 * 1024

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Origin, X-Requested-With, Content-Type, Accept, x-bot-id",
    "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
}

API_PREFIXES = ("/api/", "/admin/")


@web.middleware
async def cors_middleware(request: web.Request, handler):
    if request.method == "OPTIONS":
        return web.Response(status=200, headers=CORS_HEADERS)
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers.update(CORS_HEADERS)
        raise
    response.headers.update(CORS_HEADERS)
    return response


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as exc:  # noqa: BLE001
        if not request.path.startswith(API_PREFIXES):
            raise
        tenant = request.get("tenant")
        log_error(
            f"{request.method} {request.path} failed",
            exc,
            tenant=tenant.bot_id if tenant else None,
        )
        return json_error(500, str(exc) or type(exc).__name__)


@web.middleware
async def debug_middleware(request: web.Request, handler):
    started = time.monotonic()
    response = await handler(request)
    log_debug(
        f"[http] {request.method} {request.path} -> {response.status} "
        f"{(time.monotonic() - started) * 1000:.0f}ms bot={request.headers.get('x-bot-id')}"
    )
    return response


async def http_session_ctx(app: web.Application):
    settings = app[SETTINGS_KEY]
    async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=30)) as session:
        app[IMAGE_HOST_KEY] = ImageHost(session, settings.upload_api_url, settings.upload_api_key)
        yield


def static_routes(static_dir: Path) -> web.RouteTableDef:
    """Serve the built SPA: existing files as is, any other path gets index.html."""
    routes = web.RouteTableDef()
    root = static_dir.resolve()

    @routes.get("/{tail:.*}")
    async def spa(request: web.Request) -> web.StreamResponse:
        tail = request.match_info["tail"]
        if tail:
            candidate = (root / tail).resolve()
            if candidate.is_relative_to(root) and candidate.is_file():
                return web.FileResponse(candidate)
        index = root / "index.html"
        if index.is_file():
            return web.FileResponse(index)
        raise web.HTTPNotFound(text="Frontend build not found")

    return routes


def create_web_app(settings, ctx_keys: dict) -> web.Application:
    """Build the aiohttp application.

    ``ctx_keys`` maps app keys (db, tenants, bots) to already created objects,
    so tests can pass an in-memory database.
    """
    middlewares = [cors_middleware, error_middleware]
    if settings.debug_log:
        middlewares.append(debug_middleware)
    app = web.Application(middlewares=middlewares, client_max_size=MAX_BODY_BYTES)
    app[SETTINGS_KEY] = settings
    app[STARTED_AT_KEY] = time.monotonic()
    for key, value in ctx_keys.items():
        app[key] = value
    app.cleanup_ctx.append(http_session_ctx)

    for module in (admin, media, kitchen, recipes, users, inventory):
        app.add_routes(module.routes)
    app.add_routes(static_routes(Path(settings.static_dir)))
    return app
