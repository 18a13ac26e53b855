import datetime
import os
from typing import List, Optional

import aiosqlite


def draft_key(cycle_id: str, sheet_id: str, item_id: str) -> str:
    return f"inv_draft_{cycle_id}_{sheet_id}_{item_id}"


def _sqlite_path(database_url: str) -> str:
    """Extract SQLite file path from URL-like string."""
    if database_url.startswith("sqlite:///"):
        return database_url.replace("sqlite:///", "", 1)
    return database_url


class DraftStore:
    """Local key/value storage of the Mini App client (аналог localStorage).

    Holds unsent inventory counts and the remembered bot id so they survive
    a restart of the client.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn

    @classmethod
    async def open(cls, database_url: str = ":memory:") -> "DraftStore":
        path = _sqlite_path(database_url)
        if path != ":memory:" and os.path.dirname(path):
            os.makedirs(os.path.dirname(path), exist_ok=True)
        conn = await aiosqlite.connect(path)
        conn.row_factory = aiosqlite.Row
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS local_storage (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            """
        )
        await conn.commit()
        return cls(conn)

    async def get(self, key: str) -> Optional[str]:
        cursor = await self.conn.execute(
            "SELECT value FROM local_storage WHERE key = ?", (key,)
        )
        row = await cursor.fetchone()
        return row["value"] if row else None

    async def set(self, key: str, value: str) -> None:
        now = datetime.datetime.now(datetime.timezone.utc).isoformat()
        await self.conn.execute(
            """
            INSERT INTO local_storage (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, value, now),
        )
        await self.conn.commit()

    async def delete(self, key: str) -> None:
        await self.conn.execute("DELETE FROM local_storage WHERE key = ?", (key,))
        await self.conn.commit()

    async def keys(self, prefix: str = "") -> List[str]:
        cursor = await self.conn.execute(
            "SELECT key FROM local_storage WHERE key LIKE ? ESCAPE '\\' ORDER BY key",
            (prefix.replace("%", r"\%").replace("_", r"\_") + "%",),
        )
        return [row["key"] for row in await cursor.fetchall()]

    async def close(self) -> None:
        await self.conn.close()
