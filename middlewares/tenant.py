from aiogram import BaseMiddleware

from services.tenants import TenantResolver


class TenantMiddleware(BaseMiddleware):
    """Inject the config of the tenant whose bot received the update.

    Все боты висят на одном Dispatcher, поэтому тенант ищется по токену бота.
    """

    def __init__(self, tenants: TenantResolver, app_base_url: str):
        super().__init__()
        self.tenants = tenants
        self.app_base_url = app_base_url

    async def __call__(self, handler, event, data):
        bot = data.get("bot")
        data["tenant"] = await self.tenants.find_by_token(bot.token) if bot else None
        data["app_base_url"] = self.app_base_url
        return await handler(event, data)
