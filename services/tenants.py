from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from config import PLACEHOLDER_TOKEN
from db import repositories as repo

logger = logging.getLogger(__name__)

DEFAULT_BOT_ID = "default"
BOT_ID_HEADER = "x-bot-id"
BOT_ID_QUERY = "bot_id"


@dataclass(frozen=True)
class Tenant:
    bot_id: str
    token: str
    name: Optional[str] = None


def tenant_id_from(headers, query) -> str:
    """Tenant id of a request: header, then query parameter, then the default bot."""
    return headers.get(BOT_ID_HEADER) or query.get(BOT_ID_QUERY) or DEFAULT_BOT_ID


class TenantResolver:
    """Map botId -> bot config with an in-process cache.

    Configs are never evicted: a registered bot keeps serving until restart.
    """

    def __init__(self, db, default_token: str = PLACEHOLDER_TOKEN) -> None:
        self.db = db
        self.default_token = default_token
        self._cache: Dict[str, Dict[str, Any]] = {}

    def remember(self, config: Dict[str, Any]) -> None:
        self._cache[config["botId"]] = config

    def cached(self, bot_id: str) -> Optional[Dict[str, Any]]:
        return self._cache.get(bot_id)

    async def resolve(self, bot_id: str) -> Optional[Tenant]:
        config = self._cache.get(bot_id)
        if config is None:
            try:
                config = await repo.get_bot_config(self.db, bot_id)
            except Exception:  # noqa: BLE001
                logger.exception("bot config lookup failed for %s", bot_id)
                config = None
            if config:
                self.remember(config)
        if config is None and bot_id == DEFAULT_BOT_ID:
            config = {"botId": DEFAULT_BOT_ID, "token": self.default_token, "name": "Default Bot"}
        if config is None:
            return None
        return Tenant(bot_id=config["botId"], token=config["token"], name=config.get("name"))

    async def find_by_token(self, token: str) -> Optional[Dict[str, Any]]:
        for config in self._cache.values():
            if config.get("token") == token:
                return config
        config = await repo.get_bot_config_by_token(self.db, token)
        if config:
            self.remember(config)
            return config
        if token == self.default_token:
            return {"botId": DEFAULT_BOT_ID, "token": token, "name": "Default Bot"}
        return None
