from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from aiogram import Dispatcher
from aiohttp import web

from config import Settings, get_settings
from db.database import connect
from handlers import start
from middlewares.db import DbSessionMiddleware
from middlewares.debug_log import DebugLogMiddleware
from middlewares.error_log import ErrorLogMiddleware
from middlewares.tenant import TenantMiddleware
from services.bots import BotRegistry
from services.tenants import TenantResolver
from utils.logger import DEBUG_ENABLED, log_debug
from webapi.context import BOTS_KEY, DB_KEY, TENANTS_KEY
from webapi.server import create_web_app

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    db: Any
    dp: Dispatcher
    tenants: TenantResolver
    bots: BotRegistry
    web_app: web.Application


def create_dispatcher(db, tenants: TenantResolver, settings: Settings) -> Dispatcher:
    dp = Dispatcher()
    dp.update.middleware(DbSessionMiddleware(db))
    dp.update.middleware(TenantMiddleware(tenants, settings.app_url))
    dp.update.middleware(ErrorLogMiddleware())
    if settings.debug_log or DEBUG_ENABLED:
        dp.update.middleware(DebugLogMiddleware())
        log_debug("[setup] DebugLogMiddleware enabled")

    # роутеры
    dp.include_router(start.get_router())
    return dp


def create_app(settings: Optional[Settings] = None, db: Any = None) -> AppContext:
    """
    Собрать приложение ChefDeck: бот-диспетчер, реестр ботов и HTTP сервер.

    db можно передать явно (тесты кладут сюда in-memory базу), иначе
    открывается подключение к MONGODB_URI.
    """
    settings = settings or get_settings()
    if db is None:
        db = connect(settings.mongodb_uri, settings.mongodb_db)
        logger.info("using MongoDB database %s", settings.mongodb_db)

    tenants = TenantResolver(db, default_token=settings.default_bot_token)
    dp = create_dispatcher(db, tenants, settings)
    bots = BotRegistry(dp, tenants, webhook_url=settings.webhook_url)
    web_app = create_web_app(
        settings, {DB_KEY: db, TENANTS_KEY: tenants, BOTS_KEY: bots}
    )
    return AppContext(
        settings=settings, db=db, dp=dp, tenants=tenants, bots=bots, web_app=web_app
    )
