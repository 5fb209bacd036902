"""生成任务路由

GET /api/tasks: 任务列表。筛选优先级：entity > project > assignee；都未给出时返回未完成任务。
GET /api/tasks/{task_id}: 任务详情。
PATCH /api/tasks/{task_id}/checklist/{item_id}: 勾选/取消清单项。
POST /api/tasks/{task_id}/status: 状态流转（非法流转 409）。
POST /api/tasks/{task_id}/assign: 手动指定负责人。
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from bizsignal.core.models import TaskStatus
from bizsignal.core.services import TaskService

from ..deps import get_task_service
from ..errors import error_response

router = APIRouter()


class ChecklistUpdateRequest(BaseModel):
    completed: bool
    user_id: str | None = Field(default=None, description="操作者 ID")


class StatusUpdateRequest(BaseModel):
    status: TaskStatus


class AssignRequest(BaseModel):
    user_id: str
    user_name: str | None = Field(default=None)


@router.get("/api/tasks")
async def list_tasks(
    entity_type: str | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    project_id: str | None = Query(default=None),
    assignee: str | None = Query(default=None, description="负责人 user_id"),
    status: list[TaskStatus] | None = Query(default=None, description="配合 assignee 使用"),
    limit: int = Query(default=50, ge=1, le=1000),
    service: TaskService = Depends(get_task_service),
):
    if (entity_type is None) != (entity_id is None):
        return error_response(
            422,
            "INVALID_FILTER",
            "entity_type and entity_id must be given together",
        )

    if entity_type is not None and entity_id is not None:
        tasks = await service.list_for_entity(entity_type, entity_id)
    elif project_id is not None:
        tasks = await service.list_for_project(project_id)
    elif assignee is not None:
        tasks = await service.list_for_assignee(assignee, status)
    else:
        tasks = await service.list_open(limit)
    return {"tasks": [t.model_dump(mode="json") for t in tasks[:limit]]}


@router.get("/api/tasks/{task_id}")
async def get_task_detail(
    task_id: str,
    service: TaskService = Depends(get_task_service),
):
    task = await service.get_task(task_id)
    if task is None:
        return error_response(404, "TASK_NOT_FOUND", f"Task with id {task_id} does not exist")
    return {"task": task.model_dump(mode="json")}


@router.patch("/api/tasks/{task_id}/checklist/{item_id}")
async def update_checklist_item(
    task_id: str,
    item_id: str,
    body: ChecklistUpdateRequest,
    service: TaskService = Depends(get_task_service),
):
    task = await service.update_checklist_item(task_id, item_id, body.completed, body.user_id)
    return {"task": task.model_dump(mode="json")}


@router.post("/api/tasks/{task_id}/status")
async def update_task_status(
    task_id: str,
    body: StatusUpdateRequest,
    service: TaskService = Depends(get_task_service),
):
    task = await service.update_status(task_id, body.status)
    return {"task": task.model_dump(mode="json")}


@router.post("/api/tasks/{task_id}/assign")
async def assign_task(
    task_id: str,
    body: AssignRequest,
    service: TaskService = Depends(get_task_service),
):
    task = await service.assign_task(task_id, body.user_id, body.user_name)
    return {"task": task.model_dump(mode="json")}
