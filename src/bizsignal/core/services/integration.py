"""ModuleIntegrationListener -- 变更流 -> 检测 -> 持久化 -> 生成任务

每个 (模块, 集合) 订阅对应一个 SubscriptionHandle（asyncio task + 订阅），
同一订阅上的通知按投递顺序逐条端到端处理；不同订阅并发运行，
同一模块的并发处理数受 Semaphore 限制，连续失败时按指数退避。

单条变更、单个事件的失败只记录日志，不会中断后续处理。
"""

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import BaseModel, Field

from ..clock import Clock, SystemClock
from ..config import EngineConfig
from ..detector import EventDetector
from ..exceptions import (
    DetectionError,
    EventStatusConflictError,
    GenerationError,
    PersistenceError,
    UnknownModuleError,
)
from ..models.change import ChangeNotification
from ..models.enums import ChangeKind, EventCategory, EventStatus, Severity, TaskStatus
from ..models.event import BusinessEvent, BusinessEventDraft
from ..models.task import GeneratedTask
from ..registry.modules import MODULE_CONFIGS, CollectionBinding, ModuleConfig
from ..registry.patterns import generic_description
from ..snapshot import ensure_snapshot
from .change_feed import ChangeFeedSource, ChangeSubscription
from .event_service import EventService
from .shadow_cache import ShadowCache
from .task_generator import TaskGenerator
from .task_service import TaskService

log = structlog.get_logger()

_SETTLED_STATES = {EventStatus.PROCESSED, EventStatus.IGNORED, EventStatus.FAILED}


class TriggerContext(BaseModel):
    """直接触发事件时的可选上下文"""

    previous_state: dict[str, Any] | None = Field(default=None)
    current_state: dict[str, Any] = Field(default_factory=dict)
    subsidiary: str | None = Field(default=None, description="默认取模块配置")
    category: EventCategory | None = Field(default=None)
    severity: Severity | None = Field(default=None)
    title: str | None = Field(default=None)
    description: str | None = Field(default=None)
    project_id: str | None = Field(default=None)
    project_name: str | None = Field(default=None)
    triggered_by: str | None = Field(default=None)
    triggered_by_name: str | None = Field(default=None)
    changed_fields: list[str] = Field(default_factory=list)
    idempotency_key: str | None = Field(
        default=None,
        description="为空时每次触发都产生新事件",
    )
    metadata: dict[str, Any] = Field(default_factory=dict)


class TriggerResult(BaseModel):
    """一次事件处理的结果"""

    event_id: str
    status: EventStatus
    created: bool = Field(default=True, description="False 表示幂等键命中已有事件")
    tasks: list[GeneratedTask] = Field(default_factory=list)
    error: str | None = Field(default=None)


class PendingCandidate(BaseModel):
    """补处理扫描中的单个事件（dry_run 时只列出）"""

    event_id: str
    event_type: str
    status: EventStatus
    entity_name: str
    matching_templates: list[str] = Field(default_factory=list)


class PendingSweepResult(BaseModel):
    """process_pending_events 的汇总"""

    dry_run: bool
    total: int = 0
    processed: int = 0
    failed: int = 0
    errors: int = 0
    tasks_created: int = 0
    by_event_type: dict[str, int] = Field(default_factory=dict)
    candidates: list[PendingCandidate] = Field(default_factory=list)
    results: list[TriggerResult] = Field(default_factory=list)


@dataclass
class SubscriptionHandle:
    """单个 (模块, 集合) 订阅"""

    module_id: str
    collection: str
    subscription: ChangeSubscription
    task: asyncio.Task | None = None
    consecutive_failures: int = 0
    # 注销时置位，打断退避等待
    closing: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def key(self) -> tuple[str, str]:
        return self.module_id, self.collection

    @property
    def active(self) -> bool:
        return self.task is not None and not self.task.done()


def _default_binding(collection: str) -> CollectionBinding:
    """未在模块配置中声明的集合：entity_type 取路径最后一段"""
    return CollectionBinding(collection=collection, entity_type=collection.rsplit("/", 1)[-1])


class ModuleIntegrationListener:
    """业务模块集成监听器"""

    def __init__(
        self,
        *,
        event_service: EventService,
        task_generator: TaskGenerator,
        task_service: TaskService,
        detector: EventDetector,
        feed: ChangeFeedSource,
        module_configs: Mapping[str, ModuleConfig] | None = None,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._events = event_service
        self._generator = task_generator
        self._tasks = task_service
        self._detector = detector
        self._feed = feed
        self._modules = module_configs if module_configs is not None else MODULE_CONFIGS
        self._config = config or EngineConfig()
        self._clock = clock or SystemClock()
        self._shadow = ShadowCache(self._config.shadow_cache_size)
        self._handles: dict[tuple[str, str], SubscriptionHandle] = {}
        self._semaphores: dict[str, asyncio.Semaphore] = {}

    @property
    def shadow_cache(self) -> ShadowCache:
        return self._shadow

    @property
    def subscription_count(self) -> int:
        return len(self._handles)

    def subscriptions(self) -> list[SubscriptionHandle]:
        return list(self._handles.values())

    def module_configs(self) -> list[ModuleConfig]:
        return list(self._modules.values())

    def module_config(self, module_id: str) -> ModuleConfig:
        """按模块 ID（含别名）取配置

        Raises:
            UnknownModuleError: 模块未配置
        """
        canonical = self._detector.registry.canonical_module(module_id)
        module = self._modules.get(canonical)
        if module is None:
            raise UnknownModuleError(module_id)
        return module

    # ---------- 注册与注销 ----------

    async def register_module(
        self,
        module_id: str,
        collections: list[str] | None = None,
    ) -> list[SubscriptionHandle]:
        """订阅模块的集合（默认取模块配置中的全部集合）

        重复注册同一 (模块, 集合) 返回已有句柄。
        """
        module = self.module_config(module_id)
        if collections is None:
            bindings = list(module.collections)
        else:
            bindings = [
                module.binding_for(collection) or _default_binding(collection)
                for collection in collections
            ]

        handles: list[SubscriptionHandle] = []
        for binding in bindings:
            key = (module.id, binding.collection)
            existing = self._handles.get(key)
            if existing is not None:
                handles.append(existing)
                continue

            handle = SubscriptionHandle(
                module_id=module.id,
                collection=binding.collection,
                subscription=self._feed.subscribe(binding.collection),
            )
            handle.task = asyncio.create_task(
                self._consume(handle, module, binding),
                name=f"bizsignal:{module.id}:{binding.collection}",
            )
            self._handles[key] = handle
            handles.append(handle)
            log.info("module_subscribed", module=module.id, collection=binding.collection)
        return handles

    async def register_enabled_modules(
        self,
        module_ids: list[str] | None = None,
    ) -> list[SubscriptionHandle]:
        """注册指定模块；None 表示所有 enabled 模块"""
        if module_ids is None:
            module_ids = [m.id for m in self._modules.values() if m.enabled]
        handles: list[SubscriptionHandle] = []
        for module_id in module_ids:
            handles.extend(await self.register_module(module_id))
        return handles

    async def unsubscribe_all(self) -> None:
        """关闭全部订阅并等待进行中的变更处理完成（不取消）"""
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            handle.closing.set()
            await handle.subscription.close()
        tasks = [h.task for h in handles if h.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        log.info("module_subscriptions_closed", count=len(handles))

    # ---------- 订阅循环 ----------

    def _semaphore(self, module_id: str) -> asyncio.Semaphore:
        semaphore = self._semaphores.get(module_id)
        if semaphore is None:
            semaphore = asyncio.Semaphore(self._config.max_in_flight_per_module)
            self._semaphores[module_id] = semaphore
        return semaphore

    def _backoff_delay(self, failures: int) -> float:
        delay = self._config.failure_backoff_base_s * (2 ** (failures - 1))
        return min(delay, self._config.failure_backoff_max_s)

    async def _consume(
        self,
        handle: SubscriptionHandle,
        module: ModuleConfig,
        binding: CollectionBinding,
    ) -> None:
        semaphore = self._semaphore(module.id)
        async for change in handle.subscription:
            try:
                async with semaphore:
                    ok = await self.handle_change(module, binding, change)
                handle.consecutive_failures = 0 if ok else handle.consecutive_failures + 1
            finally:
                handle.subscription.task_done()

            if handle.consecutive_failures:
                delay = self._backoff_delay(handle.consecutive_failures)
                log.warning(
                    "change_processing_backoff",
                    module=module.id,
                    collection=binding.collection,
                    consecutive_failures=handle.consecutive_failures,
                    delay_s=delay,
                )
                await self._backoff(handle, delay)

    @staticmethod
    async def _backoff(handle: SubscriptionHandle, delay: float) -> None:
        """等待 delay 秒；注销时立即返回"""
        if handle.closing.is_set():
            return
        try:
            await asyncio.wait_for(handle.closing.wait(), timeout=delay)
        except TimeoutError:
            pass

    async def handle_change(
        self,
        module: ModuleConfig,
        binding: CollectionBinding,
        change: ChangeNotification,
    ) -> bool:
        """处理单条变更通知

        Returns:
            False 表示有事件处理失败（用于退避计数）；检测错误视为已跳过
        """
        try:
            return await self._handle_change(module, binding, change)
        except Exception:
            log.exception(
                "change_handler_failed",
                module=module.id,
                collection=binding.collection,
                document_id=change.document_id,
            )
            return False

    async def _handle_change(
        self,
        module: ModuleConfig,
        binding: CollectionBinding,
        change: ChangeNotification,
    ) -> bool:
        cache_key = (module.id, binding.collection, change.document_id)

        if change.change_type == ChangeKind.REMOVED:
            self._shadow.evict(cache_key)
            log.debug("document_removed", module=module.id, document_id=change.document_id)
            return True

        current = change.data
        if current is None:
            log.warning(
                "change_without_data",
                module=module.id,
                collection=binding.collection,
                document_id=change.document_id,
            )
            return True

        previous: dict[str, Any] | None = None
        if change.change_type == ChangeKind.MODIFIED:
            previous = change.before if change.before is not None else self._shadow.get(cache_key)
            if previous is None:
                self._shadow.put(cache_key, current)
                log.info(
                    "prior_state_unavailable",
                    module=module.id,
                    collection=binding.collection,
                    document_id=change.document_id,
                )
                return True
        self._shadow.put(cache_key, current)

        project_id, project_name = binding.project(current, change.path_params)
        actor_id, actor_name = binding.actor(current)
        try:
            drafts = self._detector.detect(
                module.id,
                module.subsidiary,
                binding.entity_type,
                change.document_id,
                binding.entity_name(change.document_id, current),
                previous,
                current,
                project_id=project_id,
                project_name=project_name,
                triggered_by=actor_id,
                triggered_by_name=actor_name,
                metadata={"collection": binding.collection, "change_type": change.change_type.value},
            )
        except DetectionError as e:
            log.warning(
                "detection_failed",
                module=module.id,
                collection=binding.collection,
                document_id=change.document_id,
                error=str(e),
            )
            return True

        ok = True
        for draft in drafts:
            try:
                await self.process_draft(draft)
            except PersistenceError as e:
                ok = False
                log.error(
                    "event_persist_failed",
                    module=module.id,
                    event_type=draft.event_type,
                    entity_id=draft.entity_id,
                    error=str(e),
                )
            except Exception:
                ok = False
                log.exception(
                    "event_processing_failed",
                    module=module.id,
                    event_type=draft.event_type,
                    entity_id=draft.entity_id,
                )
        return ok

    # ---------- 事件管线 ----------

    async def process_draft(self, draft: BusinessEventDraft) -> TriggerResult:
        """持久化 -> 生成任务 -> 标记 processed/failed

        已存在的事件：processed/ignored/failed 不再处理；pending/processing 继续生成。

        Raises:
            PersistenceError: 存储失败
        """
        event_id, created = await self._events.create_event(draft)
        event = await self._events.require_event(event_id)

        if event.status in _SETTLED_STATES:
            tasks = await self._tasks.list_for_event(event_id)
            log.debug("event_already_settled", event_id=event_id, status=event.status.value)
            return TriggerResult(
                event_id=event_id,
                status=event.status,
                created=created,
                tasks=tasks,
                error=event.error,
            )

        return await self._generate_and_mark(event, created=created)

    async def _generate_and_mark(self, event: BusinessEvent, *, created: bool) -> TriggerResult:
        """pending/processing 事件：生成任务并标记 processed/failed"""
        event_id = event.event_id
        if event.status == EventStatus.PENDING:
            event = await self._events.mark_processing(event_id)

        try:
            tasks = await self._generator.generate_tasks_from_event(event)
        except GenerationError as e:
            await self._events.mark_failed(
                event_id,
                str(e),
                task_ids=[t.task_id for t in e.tasks],
            )
            return TriggerResult(
                event_id=event_id,
                status=EventStatus.FAILED,
                created=created,
                tasks=e.tasks,
                error=str(e),
            )
        except Exception as e:
            await self._mark_failed_quietly(event_id, str(e))
            raise

        await self._events.mark_processed(event_id, [t.task_id for t in tasks])
        log.info(
            "business_event_processed",
            event_id=event_id,
            event_type=event.event_type,
            tasks=len(tasks),
        )
        return TriggerResult(
            event_id=event_id,
            status=EventStatus.PROCESSED,
            created=created,
            tasks=tasks,
        )

    async def _unsettled_events(self, limit: int | None) -> list[BusinessEvent]:
        """按创建时间从早到晚列出 pending/processing 事件"""
        page_size = self._config.pending_page_size
        events: list[BusinessEvent] = []
        for status in (EventStatus.PENDING, EventStatus.PROCESSING):
            newest_first: list[BusinessEvent] = []
            offset = 0
            while True:
                page = await self._events.list_by_status(status, limit=page_size, offset=offset)
                newest_first.extend(page)
                if len(page) < page_size:
                    break
                offset += page_size
            events.extend(reversed(newest_first))
        events.sort(key=lambda e: e.created_at)
        return events if limit is None else events[:limit]

    async def process_pending_events(
        self,
        limit: int | None = None,
        dry_run: bool = False,
    ) -> PendingSweepResult:
        """补处理停留在 pending/processing 的事件

        用于生成中断或标记状态时存储失败的事件。单个事件失败只计入 errors，
        不影响其余事件。dry_run 只列出事件及会匹配的模板，不做任何写入。
        """
        events = await self._unsettled_events(limit)
        result = PendingSweepResult(dry_run=dry_run, total=len(events))
        log.info("pending_sweep_started", total=len(events), dry_run=dry_run)

        for event in events:
            templates = [t.id for t in self._generator.matching_templates(event)]
            result.by_event_type[event.event_type] = result.by_event_type.get(event.event_type, 0) + 1
            result.candidates.append(
                PendingCandidate(
                    event_id=event.event_id,
                    event_type=event.event_type,
                    status=event.status,
                    entity_name=event.entity_name,
                    matching_templates=templates,
                )
            )
            if dry_run:
                continue

            try:
                outcome = await self._generate_and_mark(event, created=False)
            except Exception:
                result.errors += 1
                log.exception("pending_event_failed", event_id=event.event_id)
                continue

            result.results.append(outcome)
            result.tasks_created += len(outcome.tasks)
            if outcome.status == EventStatus.FAILED:
                result.failed += 1
            else:
                result.processed += 1

        log.info(
            "pending_sweep_finished",
            total=result.total,
            processed=result.processed,
            failed=result.failed,
            errors=result.errors,
            dry_run=dry_run,
        )
        return result

    async def _mark_failed_quietly(self, event_id: str, error: str) -> None:
        try:
            await self._events.mark_failed(event_id, error)
        except (PersistenceError, EventStatusConflictError) as e:
            log.error("event_mark_failed_failed", event_id=event_id, error=str(e))

    async def trigger_event(
        self,
        module_id: str,
        event_type: str,
        entity_type: str,
        entity_id: str,
        entity_name: str,
        context: TriggerContext | dict[str, Any] | None = None,
    ) -> TriggerResult:
        """绕过快照比对直接合成事件，走相同的持久化 -> 生成 -> 标记流程

        Raises:
            UnknownModuleError: 模块未配置
            DetectionError: 上下文快照不是 JSON 对象
            PersistenceError: 存储失败
        """
        if context is None:
            ctx = TriggerContext()
        elif isinstance(context, TriggerContext):
            ctx = context
        else:
            ctx = TriggerContext.model_validate(context)

        module = self.module_config(module_id)
        previous = ensure_snapshot(ctx.previous_state, allow_none=True, name="previous_state")
        current = ensure_snapshot(ctx.current_state, name="current_state")

        pattern = self._detector.registry.find_pattern(event_type)
        category = ctx.category or (
            pattern.category if pattern is not None else EventCategory.WORKFLOW_TRANSITION
        )
        severity = ctx.severity
        if severity is None:
            if pattern is not None:
                severity = self._detector.grade(pattern, previous, current)
            else:
                severity = Severity.MEDIUM

        title, description = ctx.title, ctx.description
        if title is None or description is None:
            if pattern is not None and pattern.describe is not None:
                text = pattern.describe(entity_name, previous, current, ctx.changed_fields)
            else:
                text = generic_description(entity_name, ctx.changed_fields)
            title = title if title is not None else text.title
            description = description if description is not None else text.description

        draft = BusinessEventDraft(
            event_type=event_type,
            category=category,
            severity=severity,
            source_module=module.id,
            subsidiary=ctx.subsidiary if ctx.subsidiary is not None else module.subsidiary,
            entity_type=entity_type,
            entity_id=entity_id,
            entity_name=entity_name,
            project_id=ctx.project_id,
            project_name=ctx.project_name,
            title=title,
            description=description,
            previous_state=previous,
            current_state=current,
            changed_fields=ctx.changed_fields,
            triggered_by=ctx.triggered_by,
            triggered_by_name=ctx.triggered_by_name,
            triggered_at=self._clock.now(),
            idempotency_key=ctx.idempotency_key,
            metadata={**ctx.metadata, "manual_trigger": True},
        )
        log.info(
            "event_triggered",
            module=module.id,
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        return await self.process_draft(draft)

    async def retrigger_event(self, event_id: str) -> TriggerResult:
        """按失败事件的数据重新触发（产生新事件，原事件保持 failed）

        Raises:
            EventNotFoundError: 事件不存在
            EventStatusConflictError: 事件不是 failed 状态
        """
        original = await self._events.require_event(event_id)
        if original.status != EventStatus.FAILED:
            raise EventStatusConflictError(event_id, original.status, "retriggered")

        draft = BusinessEventDraft(
            **original.model_dump(
                include=set(BusinessEventDraft.model_fields),
                exclude={"idempotency_key", "triggered_at", "metadata"},
            ),
            triggered_at=self._clock.now(),
            metadata={**original.metadata, "retriggered_from": event_id},
        )
        log.info("event_retriggered", event_id=event_id, event_type=original.event_type)
        return await self.process_draft(draft)

    # ---------- 查询 ----------

    async def get_tasks_for_entity(self, entity_type: str, entity_id: str) -> list[GeneratedTask]:
        return await self._tasks.list_for_entity(entity_type, entity_id)

    async def get_tasks_for_project(self, project_id: str) -> list[GeneratedTask]:
        return await self._tasks.list_for_project(project_id)

    async def get_tasks_for_user(
        self,
        user_id: str,
        statuses: list[TaskStatus] | None = None,
    ) -> list[GeneratedTask]:
        return await self._tasks.list_for_assignee(user_id, statuses)

    async def get_events_for_module(
        self,
        module_id: str,
        limit: int | None = None,
    ) -> list[BusinessEvent]:
        canonical = self._detector.registry.canonical_module(module_id)
        return await self._events.list_for_module(canonical, limit=limit)

