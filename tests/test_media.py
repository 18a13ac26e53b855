"""Image upload relay and page proxy against a fake image host."""

import asyncio

import aiohttp
import pytest
from aiohttp import web

from chefdeck.app import create_app
from config import get_settings
from services.uploads import ImageHost


@pytest.fixture
def host_log():
    return {"categories": [], "uploads": [], "keys": []}


@pytest.fixture
async def image_host(aiohttp_server, host_log):
    async def create_category(request):
        host_log["keys"].append(request.headers.get("X-API-Key"))
        data = await request.json()
        host_log["categories"].append(data["name"])
        return web.json_response({"success": True, "data": {"id": 9}})

    async def upload(request):
        post = await request.post()
        image = post["image"]
        host_log["uploads"].append(
            {
                "filename": image.filename,
                "content": image.file.read(),
                "category_id": post.get("category_id"),
            }
        )
        if image.filename == "broken.jpg":
            return web.Response(text="oops", status=502)
        return web.json_response({"success": True, "data": {"url": "https://cdn.example/x.jpg"}})

    async def page(request):
        return web.Response(text="<h1>Борщ</h1>", content_type="text/html")

    app = web.Application()
    app.router.add_post("/api/v1/category/create", create_category)
    app.router.add_post("/api/v1/upload", upload)
    app.router.add_get("/recipe", page)
    return await aiohttp_server(app)


@pytest.fixture
async def media_client(aiohttp_client, env, db, image_host):
    settings = get_settings(
        {**env, "UPLOAD_API_URL": str(image_host.make_url("/api/v1")), "UPLOAD_API_KEY": "k-1"}
    )
    return await aiohttp_client(create_app(settings, db=db).web_app)


def _form(filename="dish.jpg"):
    form = aiohttp.FormData()
    form.add_field("image", b"\xff\xd8jpeg", filename=filename, content_type="image/jpeg")
    return form


class TestUpload:
    async def test_upload_relays_host_answer(self, media_client, host_log):
        resp = await media_client.post("/api/upload?folder=Desserts", data=_form())
        assert resp.status == 200
        assert await resp.json() == {"success": True, "data": {"url": "https://cdn.example/x.jpg"}}

        assert host_log["categories"] == ["desserts"]
        assert host_log["keys"] == ["k-1"]
        [upload] = host_log["uploads"]
        assert upload["filename"] == "dish.jpg"
        assert upload["content"] == b"\xff\xd8jpeg"
        assert upload["category_id"] == "9"

    async def test_category_is_cached(self, media_client, host_log):
        await media_client.post("/api/upload?folder=desserts", data=_form())
        await media_client.post("/api/upload?folder=DESSERTS", data=_form())
        assert host_log["categories"] == ["desserts"]
        assert len(host_log["uploads"]) == 2

    async def test_default_folder(self, media_client, host_log):
        await media_client.post("/api/upload", data=_form())
        assert host_log["categories"] == ["general"]

    async def test_no_file(self, media_client, host_log):
        form = aiohttp.FormData()
        form.add_field("title", "без картинки")
        resp = await media_client.post("/api/upload", data=form)
        assert resp.status == 400
        assert await resp.json() == {"success": False, "message": "No file uploaded"}
        assert host_log["uploads"] == []

    async def test_host_returns_garbage(self, media_client):
        resp = await media_client.post("/api/upload", data=_form("broken.jpg"))
        assert resp.status == 500
        assert await resp.json() == {"success": False, "message": "Proxy Upload Failed"}


class TestProxy:
    async def test_fetch_page(self, media_client, image_host):
        resp = await media_client.get("/api/proxy", params={"url": str(image_host.make_url("/recipe"))})
        assert resp.status == 200
        assert await resp.text() == "<h1>Борщ</h1>"

    async def test_missing_url(self, media_client):
        resp = await media_client.get("/api/proxy")
        assert resp.status == 400
        assert await resp.text() == "URL parameter is missing"

    async def test_unreachable(self, media_client):
        resp = await media_client.get("/api/proxy", params={"url": "http://127.0.0.1:1/"})
        assert resp.status == 500
        assert await resp.text() == "Failed to fetch target URL"

    async def test_timeout(self, media_client, monkeypatch):
        async def slow(self, url):
            raise asyncio.TimeoutError

        monkeypatch.setattr(ImageHost, "fetch_text", slow)
        resp = await media_client.get("/api/proxy", params={"url": "http://example.com/"})
        assert resp.status == 500
        assert await resp.text() == "Failed to fetch target URL"
