from urllib.parse import urlencode

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup, WebAppInfo


def app_url(base_url: str, bot_id: str) -> str:
    """Mini App URL for a tenant; the web app reads bot_id from the query."""
    return f"{base_url.rstrip('/')}/?{urlencode({'bot_id': bot_id})}"


def open_app_keyboard(url: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="📱 Открыть приложение", web_app=WebAppInfo(url=url))],
        ]
    )
