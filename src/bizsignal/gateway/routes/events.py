"""业务事件路由

POST /api/events/trigger: 直接触发事件（201；未知模块 404；存储失败 503）。
POST /api/events/process-pending: 补处理停留在 pending/processing 的事件（支持 dry_run）。
GET /api/events: 事件列表，支持 module / status / entity 筛选与分页，最新在前。
GET /api/events/{event_id}: 事件详情 + 已生成任务。
POST /api/events/{event_id}/ignore: 手动忽略（终态事件 409）。
POST /api/events/{event_id}/retrigger: 重新触发失败事件（非 failed 返回 409）。
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse

from bizsignal.core.models import EventStatus
from bizsignal.core.services import (
    EventService,
    ModuleIntegrationListener,
    TaskService,
    TriggerContext,
)

from ..deps import get_event_service, get_listener, get_task_service
from ..errors import error_response

router = APIRouter()


class TriggerRequest(BaseModel):
    """直接触发请求体"""

    module_id: str = Field(description="业务模块 ID（支持别名）")
    event_type: str
    entity_type: str
    entity_id: str
    entity_name: str = Field(default="")
    context: TriggerContext | None = Field(default=None)


class IgnoreRequest(BaseModel):
    reason: str | None = Field(default=None, description="忽略原因")


@router.post("/api/events/trigger")
async def trigger_event(
    body: TriggerRequest,
    listener: ModuleIntegrationListener = Depends(get_listener),
):
    result = await listener.trigger_event(
        body.module_id,
        body.event_type,
        body.entity_type,
        body.entity_id,
        body.entity_name,
        body.context,
    )
    return JSONResponse(
        status_code=201 if result.created else 200,
        content=result.model_dump(mode="json"),
    )


@router.post("/api/events/process-pending")
async def process_pending_events(
    limit: int | None = Query(default=None, ge=1, le=1000),
    dry_run: bool = Query(default=False),
    listener: ModuleIntegrationListener = Depends(get_listener),
):
    result = await listener.process_pending_events(limit=limit, dry_run=dry_run)
    return result.model_dump(mode="json")


@router.get("/api/events")
async def list_events(
    module: str | None = Query(default=None, description="按来源模块筛选"),
    status: EventStatus | None = Query(default=None, description="按状态筛选"),
    entity_type: str | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    service: EventService = Depends(get_event_service),
    listener: ModuleIntegrationListener = Depends(get_listener),
):
    if (entity_type is None) != (entity_id is None):
        return error_response(
            422,
            "INVALID_FILTER",
            "entity_type and entity_id must be given together",
        )
    events = await service.list_events(
        status=status,
        source_module=listener.module_config(module).id if module else None,
        entity_type=entity_type,
        entity_id=entity_id,
        limit=limit,
        offset=offset,
    )
    return {"events": [e.model_dump(mode="json") for e in events]}


@router.get("/api/events/{event_id}")
async def get_event_detail(
    event_id: str,
    service: EventService = Depends(get_event_service),
    task_service: TaskService = Depends(get_task_service),
):
    event = await service.get_event(event_id)
    if event is None:
        return error_response(404, "EVENT_NOT_FOUND", f"Event with id {event_id} does not exist")

    tasks = await task_service.list_for_event(event_id)
    return {
        "event": event.model_dump(mode="json"),
        "tasks": [t.model_dump(mode="json") for t in tasks],
    }


@router.post("/api/events/{event_id}/ignore")
async def ignore_event(
    event_id: str,
    body: IgnoreRequest | None = None,
    service: EventService = Depends(get_event_service),
):
    event = await service.mark_ignored(event_id, body.reason if body is not None else None)
    return {"event": event.model_dump(mode="json")}


@router.post("/api/events/{event_id}/retrigger")
async def retrigger_event(
    event_id: str,
    listener: ModuleIntegrationListener = Depends(get_listener),
):
    result = await listener.retrigger_event(event_id)
    return JSONResponse(status_code=201, content=result.model_dump(mode="json"))
