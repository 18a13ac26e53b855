from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError

from db import repositories as repo
from utils.formatting import notification_text, recipe_card

logger = logging.getLogger(__name__)


async def share_recipe(
    bot: Bot, recipe: Dict[str, Any], chat_id: int, photo_url: Optional[str] = None
) -> None:
    caption = recipe_card(recipe)
    if photo_url:
        await bot.send_photo(chat_id, photo_url, caption=caption)
    else:
        await bot.send_message(chat_id, caption)


async def notify_recipe(
    bot: Bot,
    db,
    bot_id: str,
    action: str,
    title: str,
    target_chat_id: Optional[int],
    notify_all: bool = False,
    changes: Iterable[str] = (),
) -> int:
    """Разослать уведомление о техкарте. Возвращает число доставленных сообщений.

    notify_all шлёт всем пользователям тенанта. Ошибки доставки отдельным
    чатам (бот заблокирован и т.п.) логируются и не прерывают рассылку.
    """
    text = notification_text(action, title, changes)
    if notify_all:
        chat_ids = [u["id"] for u in await repo.list_users(db, bot_id) if u.get("id")]
    elif target_chat_id:
        chat_ids = [target_chat_id]
    else:
        chat_ids = []

    sent = 0
    for chat_id in chat_ids:
        try:
            await bot.send_message(chat_id, text)
            sent += 1
        except TelegramAPIError as exc:
            logger.warning("notify %s failed for chat %s: %s", bot_id, chat_id, exc)
    return sent
