from aiogram import BaseMiddleware
from aiogram.types import Message, Update

from utils.logger import log_debug


def describe_update(event) -> str:
    if isinstance(event, Update):
        if event.message:
            return describe_update(event.message)
        return f"type={event.event_type}"
    if isinstance(event, Message):
        user_id = event.from_user.id if event.from_user else None
        return f"message chat={event.chat.id} user={user_id} text={event.text!r}"
    return f"type={type(event).__name__}"


class DebugLogMiddleware(BaseMiddleware):
    """Трассировка апдейтов (включается DEBUG_LOG=1)."""

    async def __call__(self, handler, event, data):
        tenant = data.get("tenant") or {}
        log_debug(f"[update] {describe_update(event)}", tenant=tenant.get("botId"))
        return await handler(event, data)
