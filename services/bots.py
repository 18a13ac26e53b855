from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.utils.token import TokenValidationError

from config import PLACEHOLDER_TOKEN
from db import repositories as repo
from services.tenants import TenantResolver

logger = logging.getLogger(__name__)


class BotRegistry:
    """
    Все боты тенантов в одном процессе.

    Один Dispatcher обслуживает всех ботов: тенант апдейта определяется по
    токену бота (см. TenantMiddleware). С WEBHOOK_URL каждому боту ставится
    вебхук ``{WEBHOOK_URL}/webhook/{token}``, без него боты опрашиваются
    long polling'ом в фоновой задаче.
    """

    def __init__(self, dp: Dispatcher, tenants: TenantResolver, webhook_url: str = "") -> None:
        self.dp = dp
        self.tenants = tenants
        self.webhook_url = webhook_url.rstrip("/")
        self._bots: Dict[str, Bot] = {}
        self._polling_task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    @property
    def polling(self) -> bool:
        return self._polling_task is not None and not self._polling_task.done()

    def get(self, token: str) -> Optional[Bot]:
        return self._bots.get(token)

    def webhook_for(self, token: str) -> str:
        return f"{self.webhook_url}/webhook/{token}"

    async def get_or_create(self, token: str) -> Optional[Bot]:
        bot = self._bots.get(token)
        if bot is not None:
            return bot
        try:
            bot = Bot(token=token, default=DefaultBotProperties(parse_mode="HTML"))
        except TokenValidationError:
            logger.warning("skip bot with malformed token")
            return None
        self._bots[token] = bot
        if self.webhook_url:
            try:
                await bot.set_webhook(self.webhook_for(token))
            except Exception:  # noqa: BLE001
                logger.exception("set_webhook failed for bot %s", bot.id)
        elif self.polling:
            await self.restart_polling()
        return bot

    async def initialize_all(self, db) -> int:
        """Load stored bot configs into the tenant cache and start their bots."""
        count = 0
        for config in await repo.list_bot_configs(db):
            self.tenants.remember(config)
            if await self.get_or_create(config["token"]) is not None:
                count += 1
        default_token = self.tenants.default_token
        if default_token != PLACEHOLDER_TOKEN and default_token not in self._bots:
            if await self.get_or_create(default_token) is not None:
                count += 1
        logger.info("initialized %s bot(s)", count)
        return count

    async def feed_update(self, token: str, update: Dict[str, Any]) -> bool:
        bot = self._bots.get(token)
        if bot is None:
            logger.warning("webhook update for unknown bot ignored")
            return False
        await self.dp.feed_raw_update(bot, update)
        return True

    def start_polling(self) -> None:
        if not self._bots:
            logger.info("no bots to poll yet")
            return
        bots = list(self._bots.values())
        self._polling_task = asyncio.create_task(
            self.dp.start_polling(*bots, handle_signals=False, close_bot_session=False)
        )
        logger.info("polling %s bot(s)", len(bots))

    async def stop_polling(self) -> None:
        task, self._polling_task = self._polling_task, None
        if task is None:
            return
        try:
            await self.dp.stop_polling()
        except RuntimeError:
            # polling ещё не успел стартовать
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def restart_polling(self) -> None:
        """Dispatcher polls a fixed set of bots, so a new bot needs a restart."""
        async with self._lock:
            await self.stop_polling()
            self.start_polling()

    async def close(self) -> None:
        await self.stop_polling()
        for bot in self._bots.values():
            await bot.session.close()
        self._bots.clear()
