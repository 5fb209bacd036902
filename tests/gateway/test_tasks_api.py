"""生成任务 API 测试 -- 查询、清单勾选、状态流转、分配"""

import pytest_asyncio
from httpx import AsyncClient


@pytest_asyncio.fixture
async def task_id(client: AsyncClient) -> str:
    resp = await client.post(
        "/api/events/trigger",
        json={
            "module_id": "engagements",
            "event_type": "engagement_created",
            "entity_type": "engagements",
            "entity_id": "eng-1",
            "entity_name": "Acme",
            "context": {"project_id": "p-1", "project_name": "Tower"},
        },
    )
    return resp.json()["tasks"][0]["task_id"]


class TestTaskQueries:
    async def test_list_by_entity_project_assignee(self, client: AsyncClient, task_id: str):
        for params in (
            {"entity_type": "engagements", "entity_id": "eng-1"},
            {"project_id": "p-1"},
            {"assignee": "u-lead"},
            {},
        ):
            resp = await client.get("/api/tasks", params=params)
            assert resp.status_code == 200
            assert [t["task_id"] for t in resp.json()["tasks"]] == [task_id]

    async def test_assignee_status_filter(self, client: AsyncClient, task_id: str):
        resp = await client.get(
            "/api/tasks", params={"assignee": "u-lead", "status": ["completed", "cancelled"]}
        )
        assert resp.json()["tasks"] == []

    async def test_half_entity_filter_rejected(self, client: AsyncClient):
        resp = await client.get("/api/tasks", params={"entity_id": "eng-1"})
        assert resp.status_code == 422

    async def test_detail_and_404(self, client: AsyncClient, task_id: str):
        resp = await client.get(f"/api/tasks/{task_id}")
        assert resp.status_code == 200
        assert resp.json()["task"]["checklist_progress"] == 0

        resp = await client.get("/api/tasks/01JNONEXISTENT0000000000AA")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "TASK_NOT_FOUND"


class TestTaskUpdates:
    async def test_checklist_item(self, client: AsyncClient, task_id: str):
        resp = await client.patch(
            f"/api/tasks/{task_id}/checklist/1",
            json={"completed": True, "user_id": "u-lead"},
        )
        assert resp.status_code == 200
        task = resp.json()["task"]
        assert task["checklist_progress"] == 14
        assert task["checklist_items"][0]["completed_by"] == "u-lead"

        resp = await client.patch(f"/api/tasks/{task_id}/checklist/99", json={"completed": True})
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "CHECKLIST_ITEM_NOT_FOUND"

    async def test_status_flow(self, client: AsyncClient, task_id: str):
        resp = await client.post(f"/api/tasks/{task_id}/status", json={"status": "in_progress"})
        assert resp.status_code == 200
        assert resp.json()["task"]["started_at"] is not None

        resp = await client.post(f"/api/tasks/{task_id}/status", json={"status": "completed"})
        assert resp.json()["task"]["status"] == "completed"

        resp = await client.post(f"/api/tasks/{task_id}/status", json={"status": "pending"})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "INVALID_TASK_TRANSITION"

    async def test_unknown_status_value(self, client: AsyncClient, task_id: str):
        resp = await client.post(f"/api/tasks/{task_id}/status", json={"status": "done"})
        assert resp.status_code == 422

    async def test_assign(self, client: AsyncClient, task_id: str):
        resp = await client.post(
            f"/api/tasks/{task_id}/assign",
            json={"user_id": "u-new", "user_name": "New Owner"},
        )
        assert resp.status_code == 200
        assert resp.json()["task"]["assigned_to"] == "u-new"

        resp = await client.get("/api/tasks", params={"assignee": "u-new"})
        assert [t["task_id"] for t in resp.json()["tasks"]] == [task_id]
