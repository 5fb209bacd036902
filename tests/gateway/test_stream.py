"""pending 事件 SSE 测试

1. 未知模块返回 404
2. 先推送 pending 快照，再推送新事件（按模块过滤、按 id 去重）
3. PendingEventHub 广播
"""

import asyncio
import json

from httpx import AsyncClient

from bizsignal.core.models import BusinessEventDraft, EventCategory
from bizsignal.gateway.routes.stream import stream_pending_events


def _draft(clock, module: str, entity_id: str) -> BusinessEventDraft:
    return BusinessEventDraft(
        event_type="engagement_created",
        category=EventCategory.MILESTONE_REACHED,
        source_module=module,
        entity_type="engagements",
        entity_id=entity_id,
        entity_name=entity_id,
        triggered_at=clock.now(),
        idempotency_key=f"{module}-{entity_id}",
    )


class TestPendingStream:
    async def test_unknown_module_returns_404(self, client: AsyncClient):
        resp = await client.get("/api/stream/events/pending", params={"module": "payroll"})
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "MODULE_NOT_FOUND"

    async def test_snapshot_then_live_events(self, test_app, clock):
        engine = test_app.state.engine
        service = engine.event_service
        old_id, _ = await service.create_event(_draft(clock, "engagements", "eng-1"))

        response = await stream_pending_events(module="engagements", engine=engine)
        stream = response.body_iterator
        try:
            first = await asyncio.wait_for(anext(stream), timeout=2)
            assert first["event"] == "business_event"
            assert first["id"] == old_id
            assert json.loads(first["data"])["status"] == "pending"

            # 其他模块的事件被过滤
            await service.create_event(_draft(clock, "inventory", "sku-1"))
            new_id, _ = await service.create_event(_draft(clock, "engagements", "eng-2"))

            item = await asyncio.wait_for(anext(stream), timeout=2)
            while "comment" in item:
                item = await asyncio.wait_for(anext(stream), timeout=2)
            assert item["id"] == new_id
        finally:
            await stream.aclose()

        assert service.hub.subscriber_count == 0

    async def test_hub_broadcast(self, test_app, clock):
        service = test_app.state.engine.event_service
        queue = await service.subscribe_pending()

        event_id, _ = await service.create_event(_draft(clock, "engagements", "eng-1"))
        received = await asyncio.wait_for(queue.get(), timeout=2)
        assert received.event_id == event_id

        await service.unsubscribe_pending(queue)
        assert service.hub.subscriber_count == 0
