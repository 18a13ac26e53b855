from typing import Dict, List, Tuple

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

# Имена коллекций совпадают с теми, что создавал mongoose (модель во мн. числе),
# чтобы новый бэкенд работал поверх уже существующих данных.
BOT_CONFIGS = "botconfigs"
RECIPES = "recipes"
USERS = "users"
SCHEDULES = "schedules"
WASTAGE = "wastages"
INVENTORY_CYCLES = "inventorycycles"
SETTINGS = "appsettings"
GLOBAL_ITEMS = "globalinventoryitems"

TENANT_COLLECTIONS = (
    RECIPES,
    USERS,
    SCHEDULES,
    WASTAGE,
    INVENTORY_CYCLES,
    SETTINGS,
    GLOBAL_ITEMS,
)

# (collection, keys, unique)
INDEXES: List[Tuple[str, List[Tuple[str, int]], bool]] = [
    (BOT_CONFIGS, [("botId", ASCENDING)], True),
    (USERS, [("botId", ASCENDING), ("id", ASCENDING)], True),
    (USERS, [("botId", ASCENDING), ("lastSeen", DESCENDING)], False),
    (RECIPES, [("botId", ASCENDING), ("id", ASCENDING)], False),
    (WASTAGE, [("botId", ASCENDING), ("date", DESCENDING)], False),
    (INVENTORY_CYCLES, [("botId", ASCENDING), ("date", DESCENDING)], False),
    (GLOBAL_ITEMS, [("botId", ASCENDING), ("code", ASCENDING)], False),
    (SCHEDULES, [("botId", ASCENDING)], True),
    (SETTINGS, [("botId", ASCENDING)], True),
]


def connect(mongodb_uri: str, db_name: str) -> AsyncIOMotorDatabase:
    """Open a motor client and return the application database.

    Motor connects lazily, the first query surfaces connection errors.
    """
    client = AsyncIOMotorClient(mongodb_uri)
    return client[db_name]


async def init_db(db: AsyncIOMotorDatabase) -> Dict[str, List[str]]:
    """Create indexes used by tenant lookups. Safe to call on every start."""
    created: Dict[str, List[str]] = {}
    for collection, keys, unique in INDEXES:
        name = await db[collection].create_index(keys, unique=unique)
        created.setdefault(collection, []).append(name)
    return created
