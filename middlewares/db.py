from aiogram import BaseMiddleware


class DbSessionMiddleware(BaseMiddleware):
    """Inject the shared MongoDB database handle into handler data."""

    def __init__(self, db):
        super().__init__()
        self.db = db

    async def __call__(self, handler, event, data):
        data["db"] = self.db
        return await handler(event, data)
