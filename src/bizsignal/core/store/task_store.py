"""GeneratedTask 存储的 SQLite 实现

(business_event_id, template_id) 唯一索引保证重复生成不会产生重复任务。
此处的方法均不提交事务，由调用方管理。
"""

import json
from collections.abc import Iterable, Sequence
from datetime import datetime

import aiosqlite

from ..models.enums import TaskStatus
from ..models.task import ChecklistItem, GeneratedTask

_COLUMNS = (
    "task_id",
    "business_event_id",
    "template_id",
    "template_version",
    "title",
    "description",
    "priority",
    "status",
    "assignment_strategy",
    "assign_to_role",
    "assigned_to",
    "assigned_to_name",
    "assigned_at",
    "due_date",
    "checklist_items",
    "checklist_progress",
    "source_module",
    "subsidiary",
    "entity_type",
    "entity_id",
    "entity_name",
    "project_id",
    "project_name",
    "related_task_ids",
    "parent_task_id",
    "created_by",
    "created_at",
    "updated_at",
    "started_at",
    "completed_at",
)

_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM generated_tasks"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _checklist_json(items: Sequence[ChecklistItem]) -> str:
    return json.dumps([item.model_dump(mode="json") for item in items], ensure_ascii=False)


class SqliteTaskStore:
    """GeneratedTask 的 SQLite 存储"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def insert_task(self, task: GeneratedTask) -> None:
        """写入新任务（不自动提交）"""
        placeholders = ", ".join("?" for _ in _COLUMNS)
        await self._conn.execute(
            f"INSERT INTO generated_tasks ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
            (
                task.task_id,
                task.business_event_id,
                task.template_id,
                task.template_version,
                task.title,
                task.description,
                task.priority.value,
                task.status.value,
                task.assignment_strategy.value,
                task.assign_to_role,
                task.assigned_to,
                task.assigned_to_name,
                _iso(task.assigned_at),
                task.due_date.isoformat(),
                _checklist_json(task.checklist_items),
                task.checklist_progress,
                task.source_module,
                task.subsidiary,
                task.entity_type,
                task.entity_id,
                task.entity_name,
                task.project_id,
                task.project_name,
                json.dumps(task.related_task_ids),
                task.parent_task_id,
                task.created_by,
                task.created_at.isoformat(),
                task.updated_at.isoformat(),
                _iso(task.started_at),
                _iso(task.completed_at),
            ),
        )

    async def update_task(self, task: GeneratedTask) -> None:
        """回写任务的可变字段（状态、分配、清单、时间戳）"""
        await self._conn.execute(
            """
            UPDATE generated_tasks
            SET status = ?, assigned_to = ?, assigned_to_name = ?, assigned_at = ?,
                checklist_items = ?, checklist_progress = ?,
                updated_at = ?, started_at = ?, completed_at = ?
            WHERE task_id = ?
            """,
            (
                task.status.value,
                task.assigned_to,
                task.assigned_to_name,
                _iso(task.assigned_at),
                _checklist_json(task.checklist_items),
                task.checklist_progress,
                task.updated_at.isoformat(),
                _iso(task.started_at),
                _iso(task.completed_at),
                task.task_id,
            ),
        )

    async def get_task(self, task_id: str) -> GeneratedTask | None:
        cursor = await self._conn.execute(f"{_SELECT} WHERE task_id = ?", (task_id,))
        row = await cursor.fetchone()
        return self._row_to_task(row) if row else None

    async def get_task_for_template(
        self,
        business_event_id: str,
        template_id: str,
    ) -> GeneratedTask | None:
        """按去重键查询"""
        cursor = await self._conn.execute(
            f"{_SELECT} WHERE business_event_id = ? AND template_id = ?",
            (business_event_id, template_id),
        )
        row = await cursor.fetchone()
        return self._row_to_task(row) if row else None

    async def list_for_event(self, business_event_id: str) -> list[GeneratedTask]:
        return await self._fetch(
            f"{_SELECT} WHERE business_event_id = ? ORDER BY created_at ASC, rowid ASC",
            (business_event_id,),
        )

    async def list_for_entity(self, entity_type: str, entity_id: str) -> list[GeneratedTask]:
        return await self._fetch(
            f"{_SELECT} WHERE entity_type = ? AND entity_id = ? "
            "ORDER BY created_at DESC, rowid DESC",
            (entity_type, entity_id),
        )

    async def list_for_project(self, project_id: str) -> list[GeneratedTask]:
        return await self._fetch(
            f"{_SELECT} WHERE project_id = ? ORDER BY created_at DESC, rowid DESC",
            (project_id,),
        )

    async def list_for_assignee(
        self,
        user_id: str,
        statuses: Iterable[TaskStatus] | None = None,
    ) -> list[GeneratedTask]:
        """查询用户的任务，按截止时间正序"""
        params: list = [user_id]
        status_clause = ""
        values = [s.value for s in statuses] if statuses else []
        if values:
            status_clause = f" AND status IN ({', '.join('?' for _ in values)})"
            params.extend(values)
        return await self._fetch(
            f"{_SELECT} WHERE assigned_to = ?{status_clause} ORDER BY due_date ASC, rowid ASC",
            tuple(params),
        )

    async def list_by_status(
        self,
        statuses: Iterable[TaskStatus],
        limit: int = 50,
    ) -> list[GeneratedTask]:
        """按状态查询，按截止时间正序"""
        values = [s.value for s in statuses]
        marks = ", ".join("?" for _ in values)
        return await self._fetch(
            f"{_SELECT} WHERE status IN ({marks}) ORDER BY due_date ASC, rowid ASC LIMIT ?",
            (*values, limit),
        )

    async def _fetch(self, sql: str, params: tuple) -> list[GeneratedTask]:
        cursor = await self._conn.execute(sql, params)
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    @staticmethod
    def _row_to_task(row: Sequence) -> GeneratedTask:
        """将数据库行转换为 GeneratedTask 模型"""
        data = dict(zip(_COLUMNS, row, strict=True))
        return GeneratedTask(
            task_id=data["task_id"],
            business_event_id=data["business_event_id"],
            template_id=data["template_id"],
            template_version=data["template_version"],
            title=data["title"],
            description=data["description"],
            priority=data["priority"],
            status=TaskStatus(data["status"]),
            assignment_strategy=data["assignment_strategy"],
            assign_to_role=data["assign_to_role"],
            assigned_to=data["assigned_to"],
            assigned_to_name=data["assigned_to_name"],
            assigned_at=_dt(data["assigned_at"]),
            due_date=datetime.fromisoformat(data["due_date"]),
            checklist_items=[
                ChecklistItem.model_validate(item) for item in json.loads(data["checklist_items"])
            ],
            checklist_progress=data["checklist_progress"],
            source_module=data["source_module"],
            subsidiary=data["subsidiary"],
            entity_type=data["entity_type"],
            entity_id=data["entity_id"],
            entity_name=data["entity_name"],
            project_id=data["project_id"],
            project_name=data["project_name"],
            related_task_ids=json.loads(data["related_task_ids"]),
            parent_task_id=data["parent_task_id"],
            created_by=data["created_by"],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            started_at=_dt(data["started_at"]),
            completed_at=_dt(data["completed_at"]),
        )
