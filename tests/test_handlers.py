from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiogram.exceptions import TelegramAPIError
from mongomock_motor import AsyncMongoMockClient

from chefdeck.app import create_app
from db import repositories as repo
from handlers.start import cmd_help, cmd_start
from keyboards.common import app_url
from middlewares.error_log import ErrorLogMiddleware
from middlewares.tenant import TenantMiddleware
from services.tenants import TenantResolver

TENANT_CFG = {"botId": "kitchen1", "token": "222222:X", "name": "Кухня"}


def _message(user_id=42):
    message = MagicMock()
    message.answer = AsyncMock()
    message.from_user = SimpleNamespace(
        id=user_id, first_name="Анна", last_name=None, username="anna"
    )
    return message


def test_app_url():
    assert app_url("https://app.example.com/", "kitchen 1") == (
        "https://app.example.com/?bot_id=kitchen+1"
    )


class TestStart:
    async def test_welcome_and_user_upsert(self, db):
        message = _message()
        await cmd_start(message, db, TENANT_CFG, "https://app.example.com")

        text = message.answer.await_args.args[0]
        assert text.startswith("👋 <b>Добро пожаловать в Кухня!</b>")
        markup = message.answer.await_args.kwargs["reply_markup"]
        assert markup.inline_keyboard[0][0].web_app.url == "https://app.example.com/?bot_id=kitchen1"

        [user] = await repo.list_users(db, "kitchen1")
        assert user["username"] == "anna"
        assert user["isAdmin"] is False

    async def test_default_bot_name(self, db):
        message = _message()
        await cmd_start(message, db, {"botId": "b", "token": "1:x", "name": None}, "https://a")
        assert "Добро пожаловать в ChefDeck!" in message.answer.await_args.args[0]

    async def test_no_tenant_is_silent(self, db):
        message = _message()
        await cmd_start(message, db, None, "https://a")
        message.answer.assert_not_awaited()

    async def test_help(self):
        message = _message()
        await cmd_help(message, TENANT_CFG, "https://a")
        assert "Инвентаризация" in message.answer.await_args.args[0]


class TestMiddlewares:
    async def test_tenant_middleware_by_token(self, db, tenants):
        middleware = TenantMiddleware(TenantResolver(db), "https://a")
        handler = AsyncMock(return_value="done")
        data = {"bot": SimpleNamespace(token="222222:KITCHEN_FAKE_TOKEN")}

        assert await middleware(handler, object(), data) == "done"
        assert data["tenant"]["botId"] == "kitchen1"
        assert data["app_base_url"] == "https://a"

    async def test_error_middleware_reports_and_reraises(self):
        event = SimpleNamespace(message=_message())
        handler = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await ErrorLogMiddleware()(handler, event, {"tenant": TENANT_CFG})
        event.message.answer.assert_awaited_once()

    async def test_error_middleware_survives_failed_report(self):
        message = _message()
        message.answer.side_effect = TelegramAPIError(method=MagicMock(), message="blocked")
        message.chat = SimpleNamespace(id=42)
        handler = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError, match="boom"):
            await ErrorLogMiddleware()(handler, SimpleNamespace(message=message), {})


class TestDispatcherSetup:
    def test_each_app_gets_its_own_router(self, settings):
        first = create_app(settings, db=AsyncMongoMockClient()["a"])
        second = create_app(settings, db=AsyncMongoMockClient()["b"])

        routers = [first.dp.sub_routers[0], second.dp.sub_routers[0]]
        assert routers[0] is not routers[1]
        for router in routers:
            callbacks = {h.callback for h in router.message.handlers}
            assert callbacks == {cmd_start, cmd_help}
