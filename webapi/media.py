import asyncio
import logging

import aiohttp
from aiohttp import web

from services.uploads import UploadError
from webapi.context import IMAGE_HOST_KEY, tenant_of, tenant_required

logger = logging.getLogger(__name__)

routes = web.RouteTableDef()

FETCH_ERRORS = (aiohttp.ClientError, aiohttp.InvalidURL, UnicodeDecodeError, asyncio.TimeoutError)


@routes.get("/api/proxy")
async def proxy(request: web.Request) -> web.Response:
    target_url = request.query.get("url")
    if not target_url:
        return web.Response(status=400, text="URL parameter is missing")
    try:
        body = await request.app[IMAGE_HOST_KEY].fetch_text(target_url)
    except FETCH_ERRORS as exc:
        logger.warning("proxy fetch of %s failed: %s", target_url, exc)
        return web.Response(status=500, text="Failed to fetch target URL")
    return web.Response(text=body)


@routes.post("/api/upload")
@tenant_required
async def upload(request: web.Request) -> web.Response:
    post = await request.post()
    image = post.get("image")
    if not isinstance(image, web.FileField):
        return web.json_response({"success": False, "message": "No file uploaded"}, status=400)

    folder = request.query.get("folder") or "general"
    try:
        status, result = await request.app[IMAGE_HOST_KEY].upload(
            image.file.read(),
            filename=image.filename,
            content_type=image.content_type,
            folder=folder,
        )
    except UploadError as exc:
        logger.warning("%s: upload failed: %s", tenant_of(request).bot_id, exc)
        return web.json_response({"success": False, "message": "Proxy Upload Failed"}, status=500)
    return web.json_response(result, status=status)
