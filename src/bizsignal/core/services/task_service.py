"""TaskService -- 任务查询与可变字段更新

任务的不可变部分（来源事件、模板、截止时间等）在生成时确定；
之后只允许更新状态、负责人和清单完成情况。读-改-写在 write_lock 内完成。
"""

from collections.abc import Iterable

import aiosqlite
import structlog

from ..clock import Clock, SystemClock
from ..exceptions import (
    ChecklistItemNotFoundError,
    InvalidTaskTransitionError,
    PersistenceError,
    TaskNotFoundError,
)
from ..models.enums import OPEN_TASK_STATES, TaskStatus, validate_task_transition
from ..models.task import GeneratedTask, compute_checklist_progress
from ..store import StoreGroup
from ..store.transaction import save_task

log = structlog.get_logger()


class TaskService:
    """任务查询与更新服务"""

    def __init__(self, store_group: StoreGroup, clock: Clock | None = None) -> None:
        self._stores = store_group
        self._clock = clock or SystemClock()

    async def get_task(self, task_id: str) -> GeneratedTask | None:
        try:
            return await self._stores.task_store.get_task(task_id)
        except aiosqlite.Error as e:
            raise PersistenceError("get_task", e) from e

    async def require_task(self, task_id: str) -> GeneratedTask:
        task = await self.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def list_for_event(self, event_id: str) -> list[GeneratedTask]:
        return await self._query("list_for_event", event_id)

    async def list_for_entity(self, entity_type: str, entity_id: str) -> list[GeneratedTask]:
        return await self._query("list_for_entity", entity_type, entity_id)

    async def list_for_project(self, project_id: str) -> list[GeneratedTask]:
        return await self._query("list_for_project", project_id)

    async def list_for_assignee(
        self,
        user_id: str,
        statuses: Iterable[TaskStatus] | None = None,
    ) -> list[GeneratedTask]:
        """用户名下的任务，按截止时间正序；statuses 为空表示全部状态"""
        return await self._query("list_for_assignee", user_id, statuses)

    async def list_open(self, limit: int = 50) -> list[GeneratedTask]:
        """未完成任务（pending / in_progress），按截止时间正序"""
        return await self._query("list_by_status", OPEN_TASK_STATES, limit)

    async def _query(self, method: str, *args) -> list[GeneratedTask]:
        try:
            return await getattr(self._stores.task_store, method)(*args)
        except aiosqlite.Error as e:
            raise PersistenceError(method, e) from e

    # ---------- 更新 ----------

    async def update_checklist_item(
        self,
        task_id: str,
        item_id: str,
        completed: bool,
        user_id: str | None = None,
    ) -> GeneratedTask:
        """勾选/取消勾选清单项并重算完成度

        Raises:
            TaskNotFoundError: 任务不存在
            ChecklistItemNotFoundError: 清单项不存在
        """
        async with self._stores.write_lock:
            task = await self.require_task(task_id)
            item = next((i for i in task.checklist_items if i.id == item_id), None)
            if item is None:
                raise ChecklistItemNotFoundError(task_id, item_id)

            now = self._clock.now()
            item.completed = completed
            item.completed_at = now if completed else None
            item.completed_by = user_id if completed else None
            task.checklist_progress = compute_checklist_progress(task.checklist_items)
            task.updated_at = now
            await self._save(task)

        log.info(
            "checklist_item_updated",
            task_id=task_id,
            item_id=item_id,
            completed=completed,
            progress=task.checklist_progress,
        )
        return task

    async def update_status(self, task_id: str, status: TaskStatus) -> GeneratedTask:
        """任务状态流转

        首次进入 in_progress 时记录 started_at，进入 completed 时记录 completed_at。
        目标状态与当前相同视为无操作。

        Raises:
            InvalidTaskTransitionError: 非法流转
        """
        async with self._stores.write_lock:
            task = await self.require_task(task_id)
            if task.status == status:
                return task
            if not validate_task_transition(task.status, status):
                raise InvalidTaskTransitionError(task_id, task.status, status)

            now = self._clock.now()
            previous = task.status
            task.status = status
            if status == TaskStatus.IN_PROGRESS and task.started_at is None:
                task.started_at = now
            if status == TaskStatus.COMPLETED:
                task.completed_at = now
            task.updated_at = now
            await self._save(task)

        log.info("task_status_changed", task_id=task_id, previous=previous, status=status)
        return task

    async def assign_task(
        self,
        task_id: str,
        user_id: str,
        user_name: str | None = None,
    ) -> GeneratedTask:
        """手动指定负责人"""
        async with self._stores.write_lock:
            task = await self.require_task(task_id)
            now = self._clock.now()
            task.assigned_to = user_id
            task.assigned_to_name = user_name
            task.assigned_at = now
            task.updated_at = now
            await self._save(task)

        log.info("task_assigned", task_id=task_id, assigned_to=user_id)
        return task

    async def _save(self, task: GeneratedTask) -> None:
        try:
            await save_task(self._stores.conn, self._stores.task_store, task)
        except aiosqlite.Error as e:
            raise PersistenceError("update_task", e) from e
