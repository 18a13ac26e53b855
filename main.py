import asyncio
import logging

from aiohttp import web

from chefdeck.app import create_app
from db.database import init_db

logging.basicConfig(level=logging.INFO)

logger = logging.getLogger(__name__)


async def main() -> None:
    """
    Точка входа ChefDeck: HTTP API + боты всех тенантов в одном процессе.

    С WEBHOOK_URL боты получают апдейты через /webhook/{token},
    без него long polling в фоне.
    """
    ctx = create_app()
    await init_db(ctx.db)
    await ctx.bots.initialize_all(ctx.db)
    if not ctx.settings.webhook_url:
        ctx.bots.start_polling()

    runner = web.AppRunner(ctx.web_app)
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", ctx.settings.port)
    await site.start()
    logger.info("server running on port %s", ctx.settings.port)

    try:
        await asyncio.Event().wait()
    finally:
        await ctx.bots.close()
        await runner.cleanup()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
