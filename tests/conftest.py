"""Shared fixtures: in-memory MongoDB, app context and HTTP client."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from aiogram import Bot
from mongomock_motor import AsyncMongoMockClient

from chefdeck.app import create_app
from config import get_settings
from db import repositories as repo

DEFAULT_TOKEN = "111111:DEFAULT_FAKE_TOKEN"
TENANT_TOKEN = "222222:KITCHEN_FAKE_TOKEN"
OTHER_TOKEN = "333333:OTHER_FAKE_TOKEN"

TENANT = "kitchen1"
OTHER = "kitchen2"

H = {"x-bot-id": TENANT}
H_OTHER = {"x-bot-id": OTHER}


def make_cycle(cycle_id: str = "c1", date: int = 1_700_000_000_000, **extra) -> dict:
    cycle = {
        "id": cycle_id,
        "date": date,
        "isFinalized": False,
        "createdBy": "Анна",
        "sheets": [
            {
                "id": "s1",
                "title": "Горячий цех",
                "status": "active",
                "items": [
                    {"id": "i1", "name": "Масло сливочное", "unit": "кг", "code": "M-1"},
                    {"id": "i2", "name": "Мука", "unit": "кг", "code": "F-2"},
                ],
            },
            {
                "id": "s2",
                "title": "Бар",
                "status": "active",
                "items": [{"id": "i3", "name": "Лимоны", "unit": "шт", "code": ""}],
            },
        ],
    }
    cycle.update(extra)
    return cycle


@pytest.fixture
def db():
    return AsyncMongoMockClient()["chefdeck_test"]


@pytest.fixture
def env(tmp_path):
    return {
        "TELEGRAM_BOT_TOKEN": DEFAULT_TOKEN,
        "STATIC_DIR": str(tmp_path / "dist"),
        "APP_URL": "https://app.example.com",
    }


@pytest.fixture
def settings(env):
    return get_settings(env)


@pytest.fixture
def ctx(settings, db):
    return create_app(settings, db=db)


@pytest.fixture
async def tenants(db):
    await repo.create_bot_config(db, TENANT, TENANT_TOKEN, "Кухня на Ленина", 1)
    await repo.create_bot_config(db, OTHER, OTHER_TOKEN, None, 2)
    return TENANT


@pytest.fixture
async def client(aiohttp_client, ctx, tenants):
    return await aiohttp_client(ctx.web_app)


@pytest.fixture
def tg_calls(monkeypatch):
    """Replace Telegram API calls; every awaited method lands in this mock."""
    mock = AsyncMock(return_value=True)
    monkeypatch.setattr(Bot, "__call__", mock)
    return mock


def sent_methods(mock: AsyncMock, method_type) -> list:
    return [c.args[0] for c in mock.await_args_list if isinstance(c.args[0], method_type)]
