"""单记录原子写入封装

每个函数在一个 SQLite 事务内完成写入并提交，失败时回滚。
共享连接上的并发写入由 StoreGroup.write_lock 串行化，调用方持锁调用。
"""

from collections.abc import Iterable, Sequence
from datetime import datetime

import aiosqlite

from ..models.enums import EventStatus
from ..models.event import BusinessEvent
from ..models.task import GeneratedTask
from .protocols import EventStore, TaskStore


def is_idempotency_conflict(error: Exception) -> bool:
    """事件幂等键唯一约束冲突"""
    if not isinstance(error, aiosqlite.IntegrityError):
        return False
    text = str(error)
    return "idx_events_idempotency_key" in text or "business_events.idempotency_key" in text


def is_task_dedupe_conflict(error: Exception) -> bool:
    """(business_event_id, template_id) 唯一约束冲突"""
    if not isinstance(error, aiosqlite.IntegrityError):
        return False
    text = str(error)
    return "idx_tasks_event_template" in text or "generated_tasks.template_id" in text


async def insert_event_idempotent(
    conn: aiosqlite.Connection,
    event_store: EventStore,
    event: BusinessEvent,
) -> tuple[str, bool]:
    """写入事件；幂等键已存在时返回已有事件

    Returns:
        (event_id, created) -- created=False 表示幂等键命中
    """
    try:
        await event_store.insert_event(event)
        await conn.commit()
    except aiosqlite.IntegrityError as e:
        await conn.rollback()
        if is_idempotency_conflict(e) and event.idempotency_key:
            existing = await event_store.get_event_by_idempotency_key(event.idempotency_key)
            if existing is not None:
                return existing.event_id, False
        raise
    except Exception:
        await conn.rollback()
        raise
    return event.event_id, True


async def insert_task_idempotent(
    conn: aiosqlite.Connection,
    task_store: TaskStore,
    task: GeneratedTask,
) -> tuple[GeneratedTask, bool]:
    """写入任务；去重键已存在时返回已有任务

    Returns:
        (task, created) -- created=False 表示 (事件, 模板) 已生成过任务
    """
    try:
        await task_store.insert_task(task)
        await conn.commit()
    except aiosqlite.IntegrityError as e:
        await conn.rollback()
        if is_task_dedupe_conflict(e):
            existing = await task_store.get_task_for_template(
                task.business_event_id, task.template_id
            )
            if existing is not None:
                return existing, False
        raise
    except Exception:
        await conn.rollback()
        raise
    return task, True


async def transition_event_status(
    conn: aiosqlite.Connection,
    event_store: EventStore,
    event_id: str,
    expected: Iterable[EventStatus],
    status: EventStatus,
    *,
    processed_at: datetime | None = None,
    generated_task_ids: Sequence[str] | None = None,
    error: str | None = None,
) -> bool:
    """compare-and-set 更新事件状态并提交

    Returns:
        True 如果状态已更新；False 表示当前状态不在 expected 中
    """
    try:
        updated = await event_store.update_status(
            event_id,
            expected,
            status,
            processed_at=processed_at,
            generated_task_ids=generated_task_ids,
            error=error,
        )
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
    return updated


async def save_task(
    conn: aiosqlite.Connection,
    task_store: TaskStore,
    task: GeneratedTask,
) -> None:
    """回写任务可变字段并提交"""
    try:
        await task_store.update_task(task)
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
