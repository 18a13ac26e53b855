"""Клиент внешнего хостинга картинок (категории = папки)."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import aiohttp

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


class UploadError(RuntimeError):
    """Image host did not answer with JSON."""


class ImageHost:
    def __init__(self, session: aiohttp.ClientSession, api_url: str, api_key: str) -> None:
        self.session = session
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self._categories: Dict[str, int] = {}

    async def resolve_category_id(self, name: str) -> Optional[int]:
        """Create (or reuse) the host category for a folder name.

        Names are case-insensitive; only successful lookups are cached, a
        failure just uploads without a category.
        """
        key = name.lower().strip()
        if key in self._categories:
            return self._categories[key]
        try:
            async with self.session.post(
                f"{self.api_url}/category/create",
                json={"name": key},
                headers={"X-API-Key": self.api_key},
            ) as resp:
                result = await resp.json(content_type=None)
        except (aiohttp.ClientError, ValueError) as exc:
            logger.warning("category %r not resolved: %s", key, exc)
            return None
        if not isinstance(result, dict):
            return None
        data = result.get("data") or {}
        if result.get("success") and data.get("id"):
            self._categories[key] = data["id"]
            return data["id"]
        return None

    async def upload(
        self,
        content: bytes,
        filename: str,
        content_type: str,
        folder: str = "general",
    ) -> Tuple[int, Any]:
        """Forward an image; returns the host's HTTP status and JSON body."""
        category_id = await self.resolve_category_id(folder)
        form = aiohttp.FormData()
        form.add_field("image", content, filename=filename or "upload.jpg", content_type=content_type)
        if category_id:
            form.add_field("category_id", str(category_id))
        try:
            async with self.session.post(
                f"{self.api_url}/upload", data=form, headers={"X-API-Key": self.api_key}
            ) as resp:
                return resp.status, await resp.json(content_type=None)
        except (aiohttp.ClientError, ValueError) as exc:
            raise UploadError(str(exc)) from exc

    async def fetch_text(self, url: str) -> str:
        """GET an arbitrary page for the recipe importer (CORS workaround)."""
        async with self.session.get(url, headers={"User-Agent": BROWSER_USER_AGENT}) as resp:
            return await resp.text()
