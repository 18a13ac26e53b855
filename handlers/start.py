from aiogram import Router, types
from aiogram.filters import Command, CommandStart

from db import repositories as repo
from keyboards.common import app_url, open_app_keyboard
from utils.logger import log_debug

DEFAULT_BOT_NAME = "ChefDeck"


def _tg_user_doc(user: types.User) -> dict:
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "username": user.username,
    }


async def cmd_start(message: types.Message, db, tenant, app_base_url: str) -> None:
    # бот без конфига (удалён из базы) молчит
    if not tenant:
        return
    if message.from_user:
        await repo.upsert_user(db, tenant["botId"], _tg_user_doc(message.from_user))
        log_debug(f"/start from {message.from_user.id}", tenant=tenant["botId"])

    bot_name = tenant.get("name") or DEFAULT_BOT_NAME
    await message.answer(
        f"👋 <b>Добро пожаловать в {bot_name}!</b>\n\n"
        "Ваша кулинарная база знаний готова к работе.",
        reply_markup=open_app_keyboard(app_url(app_base_url, tenant["botId"])),
    )


async def cmd_help(message: types.Message, tenant, app_base_url: str) -> None:
    if not tenant:
        return
    await message.answer(
        "Всё работает в приложении:\n"
        "📖 Техкарты — рецепты, избранное и архив\n"
        "📦 Инвентаризация — бланки по станциям, подсчёт остатков\n"
        "📅 График — смены сотрудников\n"
        "🗑 Списания — журнал списаний\n\n"
        "/start — открыть приложение заново",
        reply_markup=open_app_keyboard(app_url(app_base_url, tenant["botId"])),
    )


def get_router() -> Router:
    """Fresh router per Dispatcher: aiogram attaches a router only once."""
    router = Router()
    router.message.register(cmd_start, CommandStart())
    router.message.register(cmd_help, Command("help"))
    return router
