import logging

from aiogram import BaseMiddleware
from aiogram.exceptions import TelegramAPIError
from aiogram.types import TelegramObject

from utils.logger import log_error

logger = logging.getLogger(__name__)


class ErrorLogMiddleware(BaseMiddleware):
    async def __call__(self, handler, event: TelegramObject, data: dict):
        try:
            return await handler(event, data)
        except Exception as exc:  # noqa: BLE001
            tenant = data.get("tenant") or {}
            log_error("Unhandled error in bot handler", exc, tenant=tenant.get("botId"))
            message = getattr(event, "message", None)
            if message is not None:
                try:
                    await message.answer("Что-то пошло не так. Попробуйте ещё раз через минуту.")
                except TelegramAPIError:
                    logger.warning("could not report error to chat %s", message.chat.id)
            raise
