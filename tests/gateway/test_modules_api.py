"""模块与变更推送 API 测试"""

import asyncio

from httpx import AsyncClient


class TestModules:
    async def test_list_modules(self, client: AsyncClient):
        resp = await client.get("/api/modules")
        assert resp.status_code == 200
        modules = {m["id"]: m for m in resp.json()["modules"]}
        assert modules["inventory"]["subsidiary"] == "finishes"
        assert "stock_low" in modules["inventory"]["event_types"]
        assert modules["inventory"]["collections"] == ["inventoryItems"]
        assert modules["inventory"]["subscribed"] == []

    async def test_register_module(self, client: AsyncClient):
        resp = await client.post("/api/modules/inventory/register")
        assert resp.status_code == 200
        data = resp.json()
        assert data["module_id"] == "inventory"
        assert data["subscriptions"] == [{"collection": "inventoryItems", "active": True}]

        again = await client.post("/api/modules/inventory/register")
        assert again.json()["subscriptions"] == data["subscriptions"]

        modules = {m["id"]: m for m in (await client.get("/api/modules")).json()["modules"]}
        assert modules["inventory"]["subscribed"] == ["inventoryItems"]

    async def test_register_custom_collection(self, client: AsyncClient):
        resp = await client.post(
            "/api/modules/reporting/register", json={"collections": ["reports"]}
        )
        assert resp.json()["subscriptions"][0]["collection"] == "reports"

    async def test_register_unknown_module(self, client: AsyncClient):
        resp = await client.post("/api/modules/payroll/register")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "MODULE_NOT_FOUND"


class TestChanges:
    async def test_change_without_subscriber_is_dropped(self, client: AsyncClient):
        resp = await client.post(
            "/api/changes",
            json={
                "change_type": "added",
                "collection": "engagements",
                "document_id": "eng-1",
                "data": {"name": "Acme"},
            },
        )
        assert resp.status_code == 202
        assert resp.json() == {"collection": "engagements", "document_id": "eng-1", "delivered": 0}

    async def test_pushed_change_generates_tasks(self, client: AsyncClient, test_app):
        await client.post("/api/modules/inventory/register")
        resp = await client.post(
            "/api/changes",
            json={
                "change_type": "modified",
                "collection": "inventoryItems",
                "document_id": "sku-1",
                "data": {"name": "Oak Panel", "stockLevel": 8},
                "before": {"name": "Oak Panel", "stockLevel": 15, "reorderPoint": 10},
            },
        )
        assert resp.status_code == 202
        assert resp.json()["delivered"] == 1

        await asyncio.wait_for(test_app.state.engine.feed.drain(), timeout=5)

        resp = await client.get(
            "/api/tasks", params={"entity_type": "inventoryItems", "entity_id": "sku-1"}
        )
        tasks = resp.json()["tasks"]
        assert len(tasks) == 2
        assert all(t["title"] == "Reorder Stock: Oak Panel" for t in tasks)

    async def test_invalid_change_type(self, client: AsyncClient):
        resp = await client.post(
            "/api/changes",
            json={"change_type": "renamed", "collection": "x", "document_id": "1"},
        )
        assert resp.status_code == 422
