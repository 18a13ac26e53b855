"""HTTP client of the ChefDeck API, as the Mini App talks to it."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Mapping, Optional

import aiohttp

from miniapp.drafts import DraftStore
from services.tenants import BOT_ID_HEADER, BOT_ID_QUERY, DEFAULT_BOT_ID

REQUEST_TIMEOUT = 8.0
BOT_ID_STORAGE_KEY = "chefdeck_bot_id"


class ApiTimeout(TimeoutError):
    """Server did not answer within REQUEST_TIMEOUT."""


class ApiError(RuntimeError):
    def __init__(self, status: int, body: Any) -> None:
        super().__init__(f"HTTP {status}: {body}")
        self.status = status
        self.body = body


async def resolve_bot_id(query: Mapping[str, str], store: DraftStore) -> str:
    """bot_id из query запоминается; без него берётся сохранённый, иначе default."""
    bot_id = query.get(BOT_ID_QUERY)
    if bot_id:
        await store.set(BOT_ID_STORAGE_KEY, bot_id)
        return bot_id
    return await store.get(BOT_ID_STORAGE_KEY) or DEFAULT_BOT_ID


class ChefDeckClient:
    def __init__(
        self,
        base_url: str,
        bot_id: str,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.bot_id = bot_id
        self.timeout = timeout
        self._session = session
        self._own_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def request(self, method: str, path: str, payload: Any = None) -> Any:
        try:
            async with self.session.request(
                method,
                f"{self.base_url}{path}",
                json=payload,
                headers={BOT_ID_HEADER: self.bot_id},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                body = await resp.json(content_type=None)
                if resp.status >= 400:
                    raise ApiError(resp.status, body)
                return body
        except asyncio.TimeoutError:
            raise ApiTimeout("Timeout: Сервер отвечает слишком долго") from None

    async def close(self) -> None:
        if self._own_session and self._session is not None:
            await self._session.close()

    # --- inventory ---

    async def list_cycles(self) -> List[Dict[str, Any]]:
        return await self.request("GET", "/api/inventory")

    async def save_cycle(self, cycle: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request("POST", "/api/inventory/cycle", cycle)

    async def lock_sheet(self, cycle_id: str, sheet_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
        payload = {"cycleId": cycle_id, "sheetId": sheet_id, "user": user}
        try:
            return await self.request("POST", "/api/inventory/lock", payload)
        except ApiError as exc:
            # 404 тоже отвечает {"success": false}
            if exc.status == 404 and isinstance(exc.body, dict):
                return exc.body
            raise

    async def unlock_sheet(self, cycle_id: str, sheet_id: str) -> Dict[str, Any]:
        return await self.request(
            "POST", "/api/inventory/unlock", {"cycleId": cycle_id, "sheetId": sheet_id}
        )

    async def global_items(self) -> List[Dict[str, Any]]:
        return await self.request("GET", "/api/inventory/global-items")

    # --- users ---

    async def sync_user(self, tg_user: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request("POST", "/api/sync-user", tg_user)
