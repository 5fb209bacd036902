"""SSE 事件流路由

GET /api/stream/events/pending: 先推送当前 pending 事件快照，再实时推送新 pending 事件。
推送为至少一次、不保证跨模块顺序；空闲时按 sse_heartbeat_s 发送心跳。
"""

import asyncio
import json

from fastapi import APIRouter, Depends, Query
from sse_starlette.sse import EventSourceResponse

from bizsignal.core.engine import Engine
from bizsignal.core.models import BusinessEvent

from ..deps import get_engine

router = APIRouter()


def _event_to_sse(event: BusinessEvent) -> dict:
    return {
        "id": event.event_id,
        "event": "business_event",
        "data": json.dumps(event.model_dump(mode="json"), ensure_ascii=False),
    }


@router.get("/api/stream/events/pending")
async def stream_pending_events(
    module: str | None = Query(default=None, description="只推送该模块的事件"),
    engine: Engine = Depends(get_engine),
):
    service = engine.event_service
    heartbeat_s = engine.config.sse_heartbeat_s
    module_id = engine.listener.module_config(module).id if module else None

    def wanted(event: BusinessEvent) -> bool:
        return module_id is None or event.source_module == module_id

    async def event_generator():
        # 先订阅再取快照，避免两者之间产生的事件丢失
        queue = await service.subscribe_pending()
        try:
            sent: set[str] = set()
            for event in reversed(await service.list_pending()):
                if wanted(event):
                    sent.add(event.event_id)
                    yield _event_to_sse(event)

            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=heartbeat_s)
                except TimeoutError:
                    yield {"comment": "heartbeat"}
                    continue
                if event.event_id in sent or not wanted(event):
                    continue
                sent.add(event.event_id)
                yield _event_to_sse(event)
        finally:
            await service.unsubscribe_pending(queue)

    return EventSourceResponse(event_generator())
