"""
Client-side coordination of an inventory count.

Mirrors how the Mini App keeps several cooks editing one cycle:

* every POLL_SECONDS the full cycle list is reloaded silently and replaces
  local state, unless a save or sheet creation is in flight or a local edit
  happened within SYNC_LOCK_SECONDS (so typing is not clobbered);
* edits are optimistic: local state changes first, then the whole cycle is
  posted and the server keeps the last write;
* typed values are kept as drafts in the local store until the server has
  them or someone else changes the same item.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

import aiohttp
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from miniapp.api import ApiError, ApiTimeout, ChefDeckClient
from miniapp.drafts import DraftStore, draft_key
from services import inventory
from utils.time import now_ms

logger = logging.getLogger(__name__)

POLL_SECONDS = 8
SYNC_LOCK_SECONDS = 3
POLL_JOB_ID = "inventory_poll"

NETWORK_ERRORS = (ApiError, ApiTimeout, aiohttp.ClientError)


class InventorySync:
    def __init__(
        self,
        client: ChefDeckClient,
        drafts: DraftStore,
        user: Dict[str, Any],
        clock: Callable[[], float] = time.monotonic,
        wallclock: Callable[[], int] = now_ms,
    ) -> None:
        self.client = client
        self.drafts = drafts
        self.user = user
        self.clock = clock
        self.wallclock = wallclock

        self.cycles: List[Dict[str, Any]] = []
        self.active_cycle: Optional[Dict[str, Any]] = None
        self.active_sheet_id: Optional[str] = None
        self.saving = False
        self.adding_sheet = False
        self._sync_locked_until = 0.0
        # item id -> actual from the previous load, to notice foreign edits
        self._seen: Dict[str, Any] = {}
        self.scheduler = AsyncIOScheduler(timezone="UTC")

    # --- polling ---

    @property
    def lock_owner(self) -> Dict[str, Any]:
        return {"id": self.user.get("id"), "name": self.user.get("first_name") or "Я"}

    @property
    def sync_locked(self) -> bool:
        return self.clock() < self._sync_locked_until

    def lock_sync_temporarily(self) -> None:
        self._sync_locked_until = self.clock() + SYNC_LOCK_SECONDS

    def start(self) -> None:
        """Start silent polling. Needs a running event loop."""
        self.scheduler.add_job(
            self.load_silent,
            "interval",
            seconds=POLL_SECONDS,
            id=POLL_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.start()

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    async def load(self) -> None:
        self._apply(await self.client.list_cycles())
        await self.reconcile_drafts()

    async def load_silent(self) -> bool:
        """Reload unless local work would be overwritten. Errors are only logged."""
        if self.saving or self.adding_sheet or self.sync_locked:
            logger.debug("silent reload skipped")
            return False
        try:
            await self.load()
        except NETWORK_ERRORS as exc:
            logger.debug("silent reload failed: %s", exc)
            return False
        return True

    def _apply(self, cycles: List[Dict[str, Any]]) -> None:
        self.cycles = cycles
        self.active_cycle = inventory.active_cycle(cycles)

    # --- sheets ---

    @property
    def current_sheet(self) -> Optional[Dict[str, Any]]:
        if not self.active_cycle or not self.active_sheet_id:
            return None
        try:
            return inventory.find_sheet(self.active_cycle, self.active_sheet_id)
        except inventory.SheetNotFound:
            return None

    def open_sheet(self, sheet_id: str) -> bool:
        """Open a sheet for filling; refused while someone else holds a fresh lock."""
        if not self.active_cycle:
            return False
        try:
            sheet = inventory.find_sheet(self.active_cycle, sheet_id)
        except inventory.SheetNotFound:
            # лист мог пропасть после фоновой перезагрузки
            return False
        if inventory.locked_by_other(sheet, self.user.get("id"), self.wallclock()):
            return False
        self.active_sheet_id = sheet_id
        return True

    async def start_sheet(self) -> Tuple[bool, Optional[Dict[str, Any]]]:
        """Take the open sheet: mark it locally first, then ask the server.

        Returns ``(granted, holder)``. When the server refuses, local state is
        replaced by a silent reload so the optimistic mark disappears.
        """
        if not self.active_cycle or not self.active_sheet_id:
            return False, None
        owner = self.lock_owner
        inventory.try_lock(self.active_cycle, self.active_sheet_id, owner, self.wallclock())
        try:
            result = await self.client.lock_sheet(
                self.active_cycle["id"], self.active_sheet_id, owner
            )
        except NETWORK_ERRORS as exc:
            logger.warning("lock request failed: %s", exc)
            await self.load_silent()
            return False, None
        if result.get("success"):
            return True, None
        await self.load_silent()
        return False, result.get("lockedBy")

    async def release_sheet(self) -> None:
        if not self.active_cycle or not self.active_sheet_id:
            return
        inventory.release(self.active_cycle, self.active_sheet_id)
        await self.client.unlock_sheet(self.active_cycle["id"], self.active_sheet_id)

    # --- items ---

    async def value_for(self, item: Dict[str, Any]) -> str:
        """What the input shows: the local draft, else the server count."""
        key = draft_key(self.active_cycle["id"], self.active_sheet_id, item["id"])
        draft = await self.drafts.get(key)
        if draft is not None:
            return draft
        actual = item.get("actual")
        return "" if actual is None else _format_number(actual)

    async def enter_value(self, item_id: str, raw: str) -> Optional[float]:
        """Store what the user typed and sync it once it parses as a count."""
        if not self.active_cycle or not self.active_sheet_id:
            return None
        key = draft_key(self.active_cycle["id"], self.active_sheet_id, item_id)
        await self.drafts.set(key, (raw or "").replace(",", "."))
        value = inventory.parse_count(raw)
        if value is None:
            return None
        self.lock_sync_temporarily()
        inventory.set_actual(self.active_cycle, self.active_sheet_id, item_id, value)
        await self._push(updatedBy=self.user.get("first_name"))
        return value

    async def delete_item(self, item_id: str) -> None:
        if not self.active_cycle or not self.active_sheet_id:
            return
        self.lock_sync_temporarily()
        inventory.remove_item(self.active_cycle, self.active_sheet_id, item_id)
        await self.drafts.delete(draft_key(self.active_cycle["id"], self.active_sheet_id, item_id))
        await self._push()

    async def submit(self) -> None:
        """Hand in the open sheet: status submitted, lock released."""
        if not self.active_cycle or not self.active_sheet_id:
            return
        self.saving = True
        try:
            inventory.submit_sheet(self.active_cycle, self.active_sheet_id)
            await self._push()
            self.active_sheet_id = None
            await self.load()
        finally:
            self.saving = False

    async def finalize(self) -> Optional[Dict[str, Any]]:
        """Archive the counts and reset the active cycle for the next count."""
        if not self.active_cycle:
            return None
        self.saving = True
        try:
            archive, reset = inventory.finalize(
                self.active_cycle, str(uuid.uuid4()), self.wallclock()
            )
            await self.client.save_cycle(archive)
            await self.client.save_cycle(reset)
            # сброшенный цикл сохраняет id, старые черновики ему не нужны
            for key in await self.drafts.keys(f"inv_draft_{reset['id']}_"):
                await self.drafts.delete(key)
            self.active_sheet_id = None
            await self.load()
            return archive
        finally:
            self.saving = False

    async def add_sheet(self, title: str, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Add a station sheet, creating the cycle when there is none yet."""
        self.adding_sheet = True
        try:
            cycle = self.active_cycle or inventory.new_cycle(
                self.user.get("first_name") or "System", self.wallclock()
            )
            sheet = inventory.add_sheet(cycle, title, rows)
            await self.client.save_cycle(inventory.clean_mongo_fields(cycle))
            await self.load()
            return sheet
        finally:
            self.adding_sheet = False

    async def add_sheet_from_catalog(
        self, title: str, codes: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """Build a sheet from the tenant's global items, optionally only ``codes``."""
        catalog = await self.client.global_items()
        if codes is not None:
            wanted = set(codes)
            catalog = [row for row in catalog if row.get("code") in wanted]
        return await self.add_sheet(title, catalog)

    def progress(self) -> int:
        return inventory.progress(self.active_cycle)

    async def _push(self, **extra: Any) -> None:
        await self.client.save_cycle({**self.active_cycle, **extra})

    # --- drafts ---

    async def reconcile_drafts(self) -> int:
        """Drop drafts the server already has or that someone else overrode.

        Returns how many drafts were removed.
        """
        removed = 0
        seen: Dict[str, Any] = {}
        cycle = self.active_cycle or {}
        for sheet in cycle.get("sheets") or []:
            for item in sheet.get("items") or []:
                actual = item.get("actual")
                seen[item["id"]] = actual
                key = draft_key(cycle["id"], sheet["id"], item["id"])
                draft = await self.drafts.get(key)
                if draft is None:
                    continue
                caught_up = actual is not None and inventory.parse_count(draft) == actual
                changed_elsewhere = item["id"] in self._seen and self._seen[item["id"]] != actual
                if caught_up or (changed_elsewhere and not self.sync_locked):
                    await self.drafts.delete(key)
                    removed += 1
        self._seen = seen
        return removed


def _format_number(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
