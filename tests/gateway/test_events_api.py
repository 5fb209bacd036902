"""业务事件 API 测试

1. 直接触发 -> 201 + 生成任务；带幂等键重复触发 -> 200
2. 列表筛选与 entity 参数校验
3. 详情 / 404
4. ignore / retrigger 的状态冲突
"""

import pytest
from httpx import AsyncClient

from bizsignal.core.exceptions import GenerationError
from bizsignal.core.models import BusinessEventDraft, EventCategory, EventStatus


def _trigger_body(**overrides) -> dict:
    body = {
        "module_id": "engagements",
        "event_type": "engagement_created",
        "entity_type": "engagements",
        "entity_id": "eng-1",
        "entity_name": "Acme",
        "context": {"current_state": {"name": "Acme"}},
    }
    body.update(overrides)
    return body


class TestTrigger:
    async def test_trigger_creates_event_and_task(self, client: AsyncClient):
        resp = await client.post("/api/events/trigger", json=_trigger_body())
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "processed"
        assert data["created"] is True
        assert len(data["tasks"]) == 1
        task = data["tasks"][0]
        assert task["template_id"] == "adv_engagement_created"
        assert task["assigned_to"] == "u-lead"
        assert task["due_date"].startswith("2025-02-06")

    async def test_repeat_with_idempotency_key(self, client: AsyncClient):
        body = _trigger_body(context={"idempotency_key": "manual-1"})
        first = await client.post("/api/events/trigger", json=body)
        second = await client.post("/api/events/trigger", json=body)
        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json()["event_id"] == first.json()["event_id"]
        assert second.json()["created"] is False

    async def test_unknown_module_returns_404(self, client: AsyncClient):
        resp = await client.post("/api/events/trigger", json=_trigger_body(module_id="payroll"))
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "MODULE_NOT_FOUND"

    async def test_invalid_body_returns_422(self, client: AsyncClient):
        resp = await client.post("/api/events/trigger", json={"module_id": "engagements"})
        assert resp.status_code == 422


class TestListAndDetail:
    async def test_list_filters(self, client: AsyncClient):
        await client.post("/api/events/trigger", json=_trigger_body())
        await client.post(
            "/api/events/trigger",
            json=_trigger_body(
                module_id="inventory",
                event_type="stock_low",
                entity_type="inventoryItems",
                entity_id="sku-1",
                entity_name="Oak",
                context={"previous_state": {"stockLevel": 12}, "current_state": {"stockLevel": 2}},
            ),
        )

        resp = await client.get("/api/events", params={"module": "inventory"})
        assert resp.status_code == 200
        events = resp.json()["events"]
        assert [e["event_type"] for e in events] == ["stock_low"]
        assert events[0]["severity"] == "high"

        resp = await client.get(
            "/api/events", params={"entity_type": "engagements", "entity_id": "eng-1"}
        )
        assert [e["entity_id"] for e in resp.json()["events"]] == ["eng-1"]

        resp = await client.get("/api/events", params={"status": "processed", "limit": 1})
        assert len(resp.json()["events"]) == 1

    async def test_entity_filter_needs_both_params(self, client: AsyncClient):
        resp = await client.get("/api/events", params={"entity_type": "engagements"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "INVALID_FILTER"

    async def test_detail_includes_tasks(self, client: AsyncClient):
        created = (await client.post("/api/events/trigger", json=_trigger_body())).json()

        resp = await client.get(f"/api/events/{created['event_id']}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["event"]["event_id"] == created["event_id"]
        assert data["event"]["generated_task_ids"] == [created["tasks"][0]["task_id"]]
        assert [t["task_id"] for t in data["tasks"]] == data["event"]["generated_task_ids"]

    async def test_detail_404(self, client: AsyncClient):
        resp = await client.get("/api/events/01JNONEXISTENT0000000000AA")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "EVENT_NOT_FOUND"


@pytest.fixture
def fail_generation(test_app, monkeypatch):
    """让全部模板实例化失败，使事件进入 failed"""
    generator = test_app.state.engine.task_generator

    async def crash(event):
        raise GenerationError(
            "1 template(s) failed",
            failures=[("adv_engagement_created", "resolver offline")],
        )

    monkeypatch.setattr(generator, "generate_tasks_from_event", crash)
    return monkeypatch


class TestIgnoreAndRetrigger:
    async def _failed_event_id(self, test_app) -> str:
        service = test_app.state.engine.event_service
        return (await service.list_by_status(EventStatus.FAILED))[0].event_id

    async def test_generation_failure_reported(self, client: AsyncClient, fail_generation):
        resp = await client.post("/api/events/trigger", json=_trigger_body())
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "failed"
        assert data["error"] == "1 template(s) failed"
        assert data["tasks"] == []

    async def test_ignore_failed_event(self, client: AsyncClient, test_app, fail_generation):
        await client.post("/api/events/trigger", json=_trigger_body())
        event_id = await self._failed_event_id(test_app)

        resp = await client.post(f"/api/events/{event_id}/ignore", json={"reason": "duplicate"})
        assert resp.status_code == 200
        assert resp.json()["event"]["status"] == "ignored"
        assert resp.json()["event"]["error"] == "duplicate"

        resp = await client.post(f"/api/events/{event_id}/ignore")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "EVENT_STATUS_CONFLICT"

    async def test_retrigger_failed_event(self, client: AsyncClient, test_app, fail_generation):
        await client.post("/api/events/trigger", json=_trigger_body())
        event_id = await self._failed_event_id(test_app)
        fail_generation.undo()

        resp = await client.post(f"/api/events/{event_id}/retrigger")
        assert resp.status_code == 201
        data = resp.json()
        assert data["event_id"] != event_id
        assert data["status"] == "processed"
        assert len(data["tasks"]) == 1

    async def test_retrigger_processed_event_conflicts(self, client: AsyncClient):
        created = (await client.post("/api/events/trigger", json=_trigger_body())).json()
        resp = await client.post(f"/api/events/{created['event_id']}/retrigger")
        assert resp.status_code == 409

    async def test_retrigger_unknown_event(self, client: AsyncClient):
        resp = await client.post("/api/events/missing/retrigger")
        assert resp.status_code == 404


class TestProcessPending:
    async def _stuck_event(self, test_app, clock) -> str:
        draft = BusinessEventDraft(
            event_type="engagement_created",
            category=EventCategory.MILESTONE_REACHED,
            source_module="engagements",
            subsidiary="advisory",
            entity_type="engagements",
            entity_id="eng-9",
            entity_name="Nine",
            triggered_at=clock.now(),
            idempotency_key="stuck-eng-9",
        )
        event_id, _ = await test_app.state.engine.event_service.create_event(draft)
        return event_id

    async def test_dry_run_lists_without_processing(self, client: AsyncClient, test_app, clock):
        event_id = await self._stuck_event(test_app, clock)

        resp = await client.post("/api/events/process-pending", params={"dry_run": "true"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["dry_run"] is True
        assert data["total"] == 1
        assert data["candidates"][0]["event_id"] == event_id
        assert data["candidates"][0]["matching_templates"] == ["adv_engagement_created"]

        event = await test_app.state.engine.event_service.require_event(event_id)
        assert event.status == EventStatus.PENDING

    async def test_process_pending(self, client: AsyncClient, test_app, clock):
        event_id = await self._stuck_event(test_app, clock)

        resp = await client.post("/api/events/process-pending")
        assert resp.status_code == 200
        data = resp.json()
        assert data["processed"] == 1
        assert data["tasks_created"] == 1
        assert data["results"][0]["event_id"] == event_id
        assert data["results"][0]["tasks"][0]["assigned_to"] == "u-lead"

    async def test_invalid_limit(self, client: AsyncClient):
        resp = await client.post("/api/events/process-pending", params={"limit": 0})
        assert resp.status_code == 422
