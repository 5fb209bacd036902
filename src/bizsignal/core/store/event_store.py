"""BusinessEvent 存储的 SQLite 实现

检测到的事实字段写入后不再修改；只有 status / processed_at / generated_task_ids / error
通过 compare-and-set 更新。此处的方法均不提交事务，由调用方管理。
"""

import json
from collections.abc import Iterable, Sequence
from datetime import datetime

import aiosqlite

from ..models.enums import EventStatus
from ..models.event import BusinessEvent

_COLUMNS = (
    "event_id",
    "created_at",
    "event_type",
    "category",
    "severity",
    "source_module",
    "subsidiary",
    "entity_type",
    "entity_id",
    "entity_name",
    "project_id",
    "project_name",
    "title",
    "description",
    "previous_state",
    "current_state",
    "changed_fields",
    "triggered_by",
    "triggered_by_name",
    "triggered_at",
    "idempotency_key",
    "metadata",
    "status",
    "processed_at",
    "generated_task_ids",
    "error",
)

_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM business_events"


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SqliteEventStore:
    """BusinessEvent 的 SQLite 存储"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def insert_event(self, event: BusinessEvent) -> None:
        """写入新事件

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        placeholders = ", ".join("?" for _ in _COLUMNS)
        await self._conn.execute(
            f"INSERT INTO business_events ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
            (
                event.event_id,
                event.created_at.isoformat(),
                event.event_type,
                event.category.value,
                event.severity.value,
                event.source_module,
                event.subsidiary,
                event.entity_type,
                event.entity_id,
                event.entity_name,
                event.project_id,
                event.project_name,
                event.title,
                event.description,
                (
                    json.dumps(event.previous_state, ensure_ascii=False)
                    if event.previous_state is not None
                    else None
                ),
                json.dumps(event.current_state, ensure_ascii=False),
                json.dumps(event.changed_fields, ensure_ascii=False),
                event.triggered_by,
                event.triggered_by_name,
                event.triggered_at.isoformat(),
                event.idempotency_key,
                json.dumps(event.metadata, ensure_ascii=False),
                event.status.value,
                event.processed_at.isoformat() if event.processed_at else None,
                json.dumps(event.generated_task_ids),
                event.error,
            ),
        )

    async def get_event(self, event_id: str) -> BusinessEvent | None:
        cursor = await self._conn.execute(f"{_SELECT} WHERE event_id = ?", (event_id,))
        row = await cursor.fetchone()
        return self._row_to_event(row) if row else None

    async def get_event_by_idempotency_key(self, key: str) -> BusinessEvent | None:
        cursor = await self._conn.execute(
            f"{_SELECT} WHERE idempotency_key = ? LIMIT 1",
            (key,),
        )
        row = await cursor.fetchone()
        return self._row_to_event(row) if row else None

    async def update_status(
        self,
        event_id: str,
        expected: Iterable[EventStatus],
        status: EventStatus,
        *,
        processed_at: datetime | None = None,
        generated_task_ids: Sequence[str] | None = None,
        error: str | None = None,
    ) -> bool:
        """compare-and-set 状态更新

        仅当当前状态属于 expected 时更新；generated_task_ids 为 None 时保持原值。

        Returns:
            True 如果更新了一行
        """
        expected_values = [s.value for s in expected]
        marks = ", ".join("?" for _ in expected_values)
        task_ids_json = (
            json.dumps(list(generated_task_ids)) if generated_task_ids is not None else None
        )
        cursor = await self._conn.execute(
            f"""
            UPDATE business_events
            SET status = ?,
                processed_at = ?,
                generated_task_ids = COALESCE(?, generated_task_ids),
                error = ?
            WHERE event_id = ? AND status IN ({marks})
            """,
            (
                status.value,
                processed_at.isoformat() if processed_at else None,
                task_ids_json,
                error,
                event_id,
                *expected_values,
            ),
        )
        return cursor.rowcount == 1

    async def list_events(
        self,
        *,
        status: EventStatus | None = None,
        source_module: str | None = None,
        entity_type: str | None = None,
        entity_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[BusinessEvent]:
        """按条件查询事件，按 created_at 倒序（最新在前）"""
        clauses: list[str] = []
        params: list = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if source_module is not None:
            clauses.append("source_module = ?")
            params.append(source_module)
        if entity_type is not None:
            clauses.append("entity_type = ?")
            params.append(entity_type)
        if entity_id is not None:
            clauses.append("entity_id = ?")
            params.append(entity_id)

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        cursor = await self._conn.execute(
            f"{_SELECT}{where} ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
            (*params, limit, offset),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    @staticmethod
    def _row_to_event(row: Sequence) -> BusinessEvent:
        """将数据库行转换为 BusinessEvent 模型"""
        data = dict(zip(_COLUMNS, row, strict=True))
        return BusinessEvent(
            event_id=data["event_id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            event_type=data["event_type"],
            category=data["category"],
            severity=data["severity"],
            source_module=data["source_module"],
            subsidiary=data["subsidiary"],
            entity_type=data["entity_type"],
            entity_id=data["entity_id"],
            entity_name=data["entity_name"],
            project_id=data["project_id"],
            project_name=data["project_name"],
            title=data["title"],
            description=data["description"],
            previous_state=(
                json.loads(data["previous_state"]) if data["previous_state"] is not None else None
            ),
            current_state=json.loads(data["current_state"]),
            changed_fields=json.loads(data["changed_fields"]),
            triggered_by=data["triggered_by"],
            triggered_by_name=data["triggered_by_name"],
            triggered_at=datetime.fromisoformat(data["triggered_at"]),
            idempotency_key=data["idempotency_key"],
            metadata=json.loads(data["metadata"]),
            status=EventStatus(data["status"]),
            processed_at=_dt(data["processed_at"]),
            generated_task_ids=json.loads(data["generated_task_ids"]),
            error=data["error"],
        )
