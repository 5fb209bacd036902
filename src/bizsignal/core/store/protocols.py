"""Store Protocol 接口定义

使用 Python Protocol 实现结构化子类型（duck typing），
服务层只依赖这些接口，便于替换持久化实现。
"""

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Protocol

from ..models.enums import EventStatus, TaskStatus
from ..models.event import BusinessEvent
from ..models.task import GeneratedTask


class EventStore(Protocol):
    """BusinessEvent 存储接口"""

    async def insert_event(self, event: BusinessEvent) -> None: ...

    async def get_event(self, event_id: str) -> BusinessEvent | None: ...

    async def get_event_by_idempotency_key(self, key: str) -> BusinessEvent | None: ...

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
        """compare-and-set 状态更新"""
        ...

    async def list_events(
        self,
        *,
        status: EventStatus | None = None,
        source_module: str | None = None,
        entity_type: str | None = None,
        entity_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[BusinessEvent]: ...


class TaskStore(Protocol):
    """GeneratedTask 存储接口"""

    async def insert_task(self, task: GeneratedTask) -> None: ...

    async def update_task(self, task: GeneratedTask) -> None: ...

    async def get_task(self, task_id: str) -> GeneratedTask | None: ...

    async def get_task_for_template(
        self,
        business_event_id: str,
        template_id: str,
    ) -> GeneratedTask | None: ...

    async def list_for_event(self, business_event_id: str) -> list[GeneratedTask]: ...

    async def list_for_entity(self, entity_type: str, entity_id: str) -> list[GeneratedTask]: ...

    async def list_for_project(self, project_id: str) -> list[GeneratedTask]: ...

    async def list_for_assignee(
        self,
        user_id: str,
        statuses: Iterable[TaskStatus] | None = None,
    ) -> list[GeneratedTask]: ...

    async def list_by_status(
        self,
        statuses: Iterable[TaskStatus],
        limit: int = 50,
    ) -> list[GeneratedTask]: ...
