"""HTTP tests for inventory cycles and sheet locks."""

from conftest import H, H_OTHER, TENANT, make_cycle
from db import repositories as repo
from services.inventory import LOCK_TTL_MS

ANNA = {"id": 1, "name": "Анна"}
BORIS = {"id": 2, "name": "Борис"}


async def _save_cycle(client, cycle=None, headers=H):
    resp = await client.post("/api/inventory/cycle", json=cycle or make_cycle(), headers=headers)
    assert resp.status == 200
    return await resp.json()


async def _lock(client, user, sheet_id="s1", cycle_id="c1"):
    return await client.post(
        "/api/inventory/lock",
        json={"cycleId": cycle_id, "sheetId": sheet_id, "user": user},
        headers=H,
    )


class TestCycles:
    async def test_save_and_list(self, client):
        assert await _save_cycle(client) == {"success": True}
        await _save_cycle(client, make_cycle("c0", date=1))

        resp = await client.get("/api/inventory", headers=H)
        cycles = await resp.json()
        # новые сверху, без служебных полей
        assert [c["id"] for c in cycles] == ["c1", "c0"]
        assert "_id" not in cycles[0]
        assert cycles[0]["botId"] == TENANT

    async def test_save_overwrites_last_writer_wins(self, client):
        await _save_cycle(client)
        second = make_cycle()
        second["sheets"][0]["items"][0]["actual"] = 4
        await _save_cycle(client, second)

        cycles = await (await client.get("/api/inventory", headers=H)).json()
        assert len(cycles) == 1
        assert cycles[0]["sheets"][0]["items"][0]["actual"] == 4

    async def test_cycle_requires_id_and_date(self, client):
        resp = await client.post("/api/inventory/cycle", json={"id": "c1"}, headers=H)
        assert resp.status == 400
        assert "error" in await resp.json()

    async def test_tenants_are_isolated(self, client):
        await _save_cycle(client)
        resp = await client.get("/api/inventory", headers=H_OTHER)
        assert await resp.json() == []

    async def test_delete_finalized(self, client):
        await _save_cycle(client)
        await _save_cycle(client, make_cycle("old", isFinalized=True))
        await _save_cycle(client, make_cycle("old", isFinalized=True), headers=H_OTHER)

        resp = await client.delete("/api/inventory/archive/all", headers=H)
        assert await resp.json() == {"success": True, "count": 1}
        cycles = await (await client.get("/api/inventory", headers=H)).json()
        assert [c["id"] for c in cycles] == ["c1"]
        assert len(await (await client.get("/api/inventory", headers=H_OTHER)).json()) == 1


class TestLocking:
    async def test_lock_free_sheet(self, client, db):
        await _save_cycle(client)
        resp = await _lock(client, ANNA)
        assert resp.status == 200
        assert await resp.json() == {"success": True}

        sheet = (await repo.get_cycle(db, TENANT, "c1"))["sheets"][0]
        assert sheet["lockedBy"] == ANNA
        assert isinstance(sheet["lockedAt"], int)

    async def test_second_user_is_refused(self, client):
        await _save_cycle(client)
        await _lock(client, ANNA)
        resp = await _lock(client, BORIS)
        assert resp.status == 200
        assert await resp.json() == {"success": False, "lockedBy": ANNA}

    async def test_holder_relocks(self, client):
        await _save_cycle(client)
        await _lock(client, ANNA)
        assert (await (await _lock(client, ANNA)).json())["success"] is True

    async def test_stale_lock_is_still_refused(self, client, db):
        cycle = make_cycle()
        cycle["sheets"][0]["lockedBy"] = ANNA
        cycle["sheets"][0]["lockedAt"] = 1_000 - LOCK_TTL_MS
        await _save_cycle(client, cycle)
        body = await (await _lock(client, BORIS)).json()
        assert body == {"success": False, "lockedBy": ANNA}

    async def test_unknown_cycle_or_sheet(self, client):
        await _save_cycle(client)
        assert (await _lock(client, ANNA, cycle_id="nope")).status == 404
        resp = await _lock(client, ANNA, sheet_id="nope")
        assert resp.status == 404
        assert await resp.json() == {"success": False}

    async def test_user_id_required(self, client):
        await _save_cycle(client)
        resp = await _lock(client, {"name": "Аноним"})
        assert resp.status == 400

    async def test_lock_does_not_touch_counts(self, client, db):
        cycle = make_cycle()
        cycle["sheets"][0]["items"][1]["actual"] = 7
        await _save_cycle(client, cycle)
        await _lock(client, ANNA)
        stored = await repo.get_cycle(db, TENANT, "c1")
        assert stored["sheets"][0]["items"][1]["actual"] == 7

    async def test_unlock(self, client, db):
        await _save_cycle(client)
        await _lock(client, ANNA)
        resp = await client.post(
            "/api/inventory/unlock", json={"cycleId": "c1", "sheetId": "s1"}, headers=H
        )
        assert await resp.json() == {"success": True}
        sheet = (await repo.get_cycle(db, TENANT, "c1"))["sheets"][0]
        assert "lockedBy" not in sheet
        assert (await (await _lock(client, BORIS)).json())["success"] is True

    async def test_unlock_unknown_is_ok(self, client):
        resp = await client.post(
            "/api/inventory/unlock", json={"cycleId": "nope", "sheetId": "s1"}, headers=H
        )
        assert resp.status == 200
        await _save_cycle(client)
        resp = await client.post(
            "/api/inventory/unlock", json={"cycleId": "c1", "sheetId": "nope"}, headers=H
        )
        assert await resp.json() == {"success": True}

    async def test_lock_is_per_tenant(self, client):
        await _save_cycle(client)
        await _save_cycle(client, headers=H_OTHER)
        await _lock(client, ANNA)
        resp = await client.post(
            "/api/inventory/lock",
            json={"cycleId": "c1", "sheetId": "s1", "user": BORIS},
            headers=H_OTHER,
        )
        assert (await resp.json())["success"] is True


class TestGlobalItems:
    async def test_upsert_and_list(self, client):
        items = [
            {"code": "M-1", "name": "Масло", "unit": "кг"},
            {"code": "A-1", "name": "Апельсин", "unit": "шт"},
        ]
        resp = await client.post(
            "/api/inventory/global-items/upsert", json={"items": items}, headers=H
        )
        assert await resp.json() == {"success": True, "count": 2}

        # тот же код обновляет запись
        await client.post(
            "/api/inventory/global-items/upsert",
            json={"items": [{"code": "M-1", "name": "Масло 82%", "unit": "кг"}]},
            headers=H,
        )
        listed = await (await client.get("/api/inventory/global-items", headers=H)).json()
        assert [i["name"] for i in listed] == ["Апельсин", "Масло 82%"]
        assert await (await client.get("/api/inventory/global-items", headers=H_OTHER)).json() == []

    async def test_item_fields_required(self, client):
        resp = await client.post(
            "/api/inventory/global-items/upsert",
            json={"items": [{"code": "X", "name": "Без единицы"}]},
            headers=H,
        )
        assert resp.status == 400
