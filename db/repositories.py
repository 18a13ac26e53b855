from typing import Any, Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument, UpdateOne

from db.database import (
    BOT_CONFIGS,
    GLOBAL_ITEMS,
    INVENTORY_CYCLES,
    RECIPES,
    SCHEDULES,
    SETTINGS,
    USERS,
    WASTAGE,
)
from utils.time import now_ms

NO_ID = {"_id": 0}
SERVICE_FIELDS = ("_id", "__v", "botId")

DEFAULT_SETTINGS = {
    "showInventory": True,
    "showSchedule": True,
    "showWastage": True,
    "showArchive": True,
}


def strip_service_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop Mongo/mongoose bookkeeping and the tenant key from client payloads."""
    return {k: v for k, v in (data or {}).items() if k not in SERVICE_FIELDS}


def _tenant_doc(bot_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    doc = strip_service_fields(data)
    doc["botId"] = bot_id
    return doc


async def _to_list(cursor) -> List[Dict[str, Any]]:
    return await cursor.to_list(length=None)


# --- Bot configs / тенанты ---


async def get_bot_config(db: AsyncIOMotorDatabase, bot_id: str) -> Optional[Dict[str, Any]]:
    return await db[BOT_CONFIGS].find_one({"botId": bot_id}, NO_ID)


async def get_bot_config_by_token(
    db: AsyncIOMotorDatabase, token: str
) -> Optional[Dict[str, Any]]:
    return await db[BOT_CONFIGS].find_one({"token": token}, NO_ID)


async def list_bot_configs(db: AsyncIOMotorDatabase) -> List[Dict[str, Any]]:
    return await _to_list(db[BOT_CONFIGS].find({}, NO_ID))


async def create_bot_config(
    db: AsyncIOMotorDatabase,
    bot_id: str,
    token: str,
    name: Optional[str] = None,
    owner_id: Optional[int] = None,
) -> Dict[str, Any]:
    """Insert a bot config. Raises DuplicateKeyError for a taken botId."""
    doc = {
        "botId": bot_id,
        "token": token,
        "name": name,
        "ownerId": owner_id,
        "createdAt": now_ms(),
    }
    await db[BOT_CONFIGS].insert_one(doc)
    doc.pop("_id", None)
    return doc


# --- Settings ---


async def get_or_create_settings(db: AsyncIOMotorDatabase, bot_id: str) -> Dict[str, Any]:
    settings = await db[SETTINGS].find_one({"botId": bot_id}, NO_ID)
    if settings:
        return {**DEFAULT_SETTINGS, **settings}
    doc = {"botId": bot_id, **DEFAULT_SETTINGS}
    await db[SETTINGS].insert_one(doc)
    doc.pop("_id", None)
    return doc


async def update_settings(
    db: AsyncIOMotorDatabase, bot_id: str, data: Dict[str, Any]
) -> None:
    clean = strip_service_fields(data)
    # одно поле не может быть и в $set, и в $setOnInsert
    on_insert = {k: v for k, v in DEFAULT_SETTINGS.items() if k not in clean}
    update: Dict[str, Any] = {}
    if clean:
        update["$set"] = clean
    if on_insert:
        update["$setOnInsert"] = on_insert
    await db[SETTINGS].update_one({"botId": bot_id}, update, upsert=True)


# --- Recipes / техкарты ---


async def list_recipes(db: AsyncIOMotorDatabase, bot_id: str) -> List[Dict[str, Any]]:
    return await _to_list(db[RECIPES].find({"botId": bot_id}, NO_ID))


async def get_recipe(
    db: AsyncIOMotorDatabase, bot_id: str, recipe_id: str
) -> Optional[Dict[str, Any]]:
    return await db[RECIPES].find_one({"id": recipe_id, "botId": bot_id}, NO_ID)


async def upsert_recipe(db: AsyncIOMotorDatabase, bot_id: str, data: Dict[str, Any]) -> None:
    doc = _tenant_doc(bot_id, data)
    await db[RECIPES].update_one(
        {"id": doc.get("id"), "botId": bot_id}, {"$set": doc}, upsert=True
    )


async def bulk_upsert_recipes(
    db: AsyncIOMotorDatabase, bot_id: str, recipes: Iterable[Dict[str, Any]]
) -> int:
    operations = []
    for recipe in recipes:
        doc = _tenant_doc(bot_id, recipe)
        operations.append(
            UpdateOne({"id": doc.get("id"), "botId": bot_id}, {"$set": doc}, upsert=True)
        )
    if not operations:
        return 0
    await db[RECIPES].bulk_write(operations)
    return len(operations)


async def delete_recipe(db: AsyncIOMotorDatabase, bot_id: str, recipe_id: str) -> int:
    result = await db[RECIPES].delete_one({"id": recipe_id, "botId": bot_id})
    return result.deleted_count


async def archive_recipes(
    db: AsyncIOMotorDatabase, bot_id: str, recipe_ids: List[str]
) -> int:
    result = await db[RECIPES].update_many(
        {"botId": bot_id, "id": {"$in": list(recipe_ids)}},
        {"$set": {"isArchived": True, "lastModified": now_ms()}},
    )
    return result.modified_count


async def delete_archived_recipes(db: AsyncIOMotorDatabase, bot_id: str) -> int:
    result = await db[RECIPES].delete_many({"botId": bot_id, "isArchived": True})
    return result.deleted_count


# --- Users ---


async def upsert_user(
    db: AsyncIOMotorDatabase, bot_id: str, tg_user: Dict[str, Any]
) -> Dict[str, Any]:
    """Create or refresh a Telegram user of the tenant, bumping lastSeen."""
    doc = _tenant_doc(bot_id, tg_user)
    # isAdmin выставляет только админ через toggle-admin
    doc.pop("isAdmin", None)
    doc["lastSeen"] = now_ms()
    return await db[USERS].find_one_and_update(
        {"id": doc.get("id"), "botId": bot_id},
        {"$set": doc, "$setOnInsert": {"isAdmin": False}},
        upsert=True,
        projection=NO_ID,
        return_document=ReturnDocument.AFTER,
    )


async def list_users(db: AsyncIOMotorDatabase, bot_id: str) -> List[Dict[str, Any]]:
    cursor = db[USERS].find({"botId": bot_id}, NO_ID).sort("lastSeen", DESCENDING)
    return await _to_list(cursor)


async def set_admin(
    db: AsyncIOMotorDatabase, bot_id: str, target_id: int, status: bool
) -> bool:
    result = await db[USERS].update_one(
        {"id": target_id, "botId": bot_id}, {"$set": {"isAdmin": bool(status)}}
    )
    return result.matched_count > 0


# --- Schedule / график смен ---


async def get_schedule(db: AsyncIOMotorDatabase, bot_id: str) -> Dict[str, Any]:
    schedule = await db[SCHEDULES].find_one({"botId": bot_id}, NO_ID)
    return schedule or {"botId": bot_id, "staff": []}


async def save_schedule(db: AsyncIOMotorDatabase, bot_id: str, staff: List[Any]) -> None:
    await db[SCHEDULES].update_one(
        {"botId": bot_id}, {"$set": {"botId": bot_id, "staff": list(staff)}}, upsert=True
    )


# --- Wastage / списания ---


async def list_wastage(db: AsyncIOMotorDatabase, bot_id: str) -> List[Dict[str, Any]]:
    cursor = db[WASTAGE].find({"botId": bot_id}, NO_ID).sort("date", DESCENDING)
    return await _to_list(cursor)


async def create_wastage(db: AsyncIOMotorDatabase, bot_id: str, log: Dict[str, Any]) -> None:
    await db[WASTAGE].insert_one(_tenant_doc(bot_id, log))


async def delete_wastage(db: AsyncIOMotorDatabase, bot_id: str, log_id: str) -> int:
    result = await db[WASTAGE].delete_one({"id": log_id, "botId": bot_id})
    return result.deleted_count


# --- Inventory / инвентаризация ---


async def list_cycles(db: AsyncIOMotorDatabase, bot_id: str) -> List[Dict[str, Any]]:
    cursor = db[INVENTORY_CYCLES].find({"botId": bot_id}, NO_ID).sort("date", DESCENDING)
    return await _to_list(cursor)


async def get_cycle(
    db: AsyncIOMotorDatabase, bot_id: str, cycle_id: str
) -> Optional[Dict[str, Any]]:
    return await db[INVENTORY_CYCLES].find_one({"id": cycle_id, "botId": bot_id}, NO_ID)


async def upsert_cycle(db: AsyncIOMotorDatabase, bot_id: str, data: Dict[str, Any]) -> None:
    """Write the whole cycle document: last writer wins."""
    doc = _tenant_doc(bot_id, data)
    await db[INVENTORY_CYCLES].update_one(
        {"id": doc.get("id"), "botId": bot_id}, {"$set": doc}, upsert=True
    )


async def save_cycle_sheets(
    db: AsyncIOMotorDatabase, bot_id: str, cycle_id: str, sheets: List[Dict[str, Any]]
) -> None:
    await db[INVENTORY_CYCLES].update_one(
        {"id": cycle_id, "botId": bot_id}, {"$set": {"sheets": sheets}}
    )


async def delete_finalized_cycles(db: AsyncIOMotorDatabase, bot_id: str) -> int:
    result = await db[INVENTORY_CYCLES].delete_many({"botId": bot_id, "isFinalized": True})
    return result.deleted_count


async def list_global_items(db: AsyncIOMotorDatabase, bot_id: str) -> List[Dict[str, Any]]:
    cursor = db[GLOBAL_ITEMS].find({"botId": bot_id}, NO_ID).sort("name", ASCENDING)
    return await _to_list(cursor)


async def upsert_global_items(
    db: AsyncIOMotorDatabase, bot_id: str, items: Iterable[Dict[str, Any]]
) -> int:
    count = 0
    for item in items:
        doc = _tenant_doc(bot_id, item)
        await db[GLOBAL_ITEMS].update_one(
            {"code": doc.get("code"), "botId": bot_id}, {"$set": doc}, upsert=True
        )
        count += 1
    return count
