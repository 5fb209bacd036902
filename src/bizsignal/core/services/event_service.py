"""EventService -- BusinessEvent 持久化与生命周期

状态机：pending -> processing（可选）-> {processed, failed}；ignored 仅手动进入。
所有状态更新都是 compare-and-set：预期的前置状态由 VALID_EVENT_TRANSITIONS 推导，
并发下输掉竞争的一方得到 EventStatusConflictError。
"""

import aiosqlite
import structlog
from ulid import ULID

from ..clock import Clock, SystemClock
from ..exceptions import EventNotFoundError, EventStatusConflictError, PersistenceError
from ..models.enums import VALID_EVENT_TRANSITIONS, EventStatus
from ..models.event import BusinessEvent, BusinessEventDraft
from ..store import StoreGroup
from ..store.transaction import insert_event_idempotent, transition_event_status
from .pending_hub import PendingEventHub

log = structlog.get_logger()


def _sources_of(target: EventStatus) -> set[EventStatus]:
    """可以流转到 target 的全部前置状态"""
    return {source for source, targets in VALID_EVENT_TRANSITIONS.items() if target in targets}


class EventService:
    """事件存储与生命周期服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        hub: PendingEventHub | None = None,
        clock: Clock | None = None,
        page_size: int = 50,
    ) -> None:
        self._stores = store_group
        self._hub = hub or PendingEventHub()
        self._clock = clock or SystemClock()
        self._page_size = page_size

    @property
    def hub(self) -> PendingEventHub:
        return self._hub

    async def create_event(self, draft: BusinessEventDraft) -> tuple[str, bool]:
        """持久化草稿事件（status=pending）

        Returns:
            (event_id, created) -- created=False 表示幂等键命中，返回已有事件

        Raises:
            PersistenceError: 存储写入失败
        """
        try:
            if draft.idempotency_key:
                existing = await self._stores.event_store.get_event_by_idempotency_key(
                    draft.idempotency_key
                )
                if existing is not None:
                    log.debug(
                        "event_idempotency_hit",
                        event_id=existing.event_id,
                        event_type=draft.event_type,
                    )
                    return existing.event_id, False

            event = BusinessEvent(
                **draft.model_dump(),
                event_id=str(ULID()),
                created_at=self._clock.now(),
                status=EventStatus.PENDING,
            )
            async with self._stores.write_lock:
                event_id, created = await insert_event_idempotent(
                    self._stores.conn,
                    self._stores.event_store,
                    event,
                )
        except aiosqlite.Error as e:
            raise PersistenceError("create_event", e) from e

        if created:
            log.info(
                "business_event_created",
                event_id=event_id,
                event_type=event.event_type,
                module=event.source_module,
                entity_id=event.entity_id,
                severity=event.severity.value,
            )
            await self._hub.broadcast(event)
        return event_id, created

    async def get_event(self, event_id: str) -> BusinessEvent | None:
        try:
            return await self._stores.event_store.get_event(event_id)
        except aiosqlite.Error as e:
            raise PersistenceError("get_event", e) from e

    async def require_event(self, event_id: str) -> BusinessEvent:
        event = await self.get_event(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    async def mark_processing(self, event_id: str) -> BusinessEvent:
        return await self._transition(event_id, EventStatus.PROCESSING)

    async def mark_processed(self, event_id: str, task_ids: list[str]) -> BusinessEvent:
        """标记处理完成

        幂等：已是 processed 且 task_ids 相同时直接返回。
        """
        event = await self.require_event(event_id)
        if event.status == EventStatus.PROCESSED:
            if sorted(event.generated_task_ids) == sorted(task_ids):
                return event
            raise EventStatusConflictError(event_id, event.status, EventStatus.PROCESSED)
        return await self._transition(
            event_id,
            EventStatus.PROCESSED,
            processed_at=self._clock.now(),
            generated_task_ids=task_ids,
        )

    async def mark_failed(
        self,
        event_id: str,
        error: str,
        task_ids: list[str] | None = None,
    ) -> BusinessEvent:
        """标记失败；task_ids 记录失败前已成功生成的任务（不回滚）"""
        event = await self._transition(
            event_id,
            EventStatus.FAILED,
            processed_at=self._clock.now(),
            generated_task_ids=task_ids,
            error=error,
        )
        log.warning(
            "business_event_failed",
            event_id=event_id,
            event_type=event.event_type,
            error=error,
            partial_tasks=len(event.generated_task_ids),
        )
        return event

    async def mark_ignored(self, event_id: str, reason: str | None = None) -> BusinessEvent:
        """手动忽略（终态）"""
        current = await self.require_event(event_id)
        return await self._transition(
            event_id,
            EventStatus.IGNORED,
            processed_at=self._clock.now(),
            error=reason if reason is not None else current.error,
        )

    async def _transition(self, event_id: str, target: EventStatus, **fields) -> BusinessEvent:
        try:
            async with self._stores.write_lock:
                updated = await transition_event_status(
                    self._stores.conn,
                    self._stores.event_store,
                    event_id,
                    _sources_of(target),
                    target,
                    **fields,
                )
        except aiosqlite.Error as e:
            raise PersistenceError(f"mark_{target.value}", e) from e

        event = await self.require_event(event_id)
        if not updated:
            raise EventStatusConflictError(event_id, event.status, target)
        log.debug("business_event_status_changed", event_id=event_id, status=target.value)
        return event

    # ---------- 查询 ----------

    async def list_pending(self, limit: int | None = None, offset: int = 0) -> list[BusinessEvent]:
        """pending 事件分页查询（最新在前）"""
        return await self.list_by_status(EventStatus.PENDING, limit=limit, offset=offset)

    async def list_by_status(
        self,
        status: EventStatus,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[BusinessEvent]:
        return await self._list(status=status, limit=limit, offset=offset)

    async def list_for_module(
        self,
        module_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[BusinessEvent]:
        return await self._list(source_module=module_id, limit=limit, offset=offset)

    async def list_for_entity(
        self,
        entity_type: str,
        entity_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[BusinessEvent]:
        return await self._list(
            entity_type=entity_type,
            entity_id=entity_id,
            limit=limit,
            offset=offset,
        )

    async def list_events(self, **filters) -> list[BusinessEvent]:
        """组合条件查询（status / source_module / entity_type / entity_id / limit / offset）"""
        return await self._list(**filters)

    async def _list(self, *, limit: int | None = None, offset: int = 0, **filters):
        try:
            return await self._stores.event_store.list_events(
                limit=limit or self._page_size,
                offset=offset,
                **filters,
            )
        except aiosqlite.Error as e:
            raise PersistenceError("list_events", e) from e

    # ---------- 推送订阅 ----------

    async def subscribe_pending(self):
        """订阅新 pending 事件（至少一次，不保证顺序）"""
        return await self._hub.subscribe()

    async def unsubscribe_pending(self, queue) -> None:
        await self._hub.unsubscribe(queue)
