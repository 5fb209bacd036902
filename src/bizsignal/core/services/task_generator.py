"""TaskGenerator -- 事件 -> 模板匹配 -> 任务实例化

对事件类型的每个激活模板：先检查触发条件（全部满足），再检查 (事件, 模板)
是否已生成过任务，然后实例化：插值标题/描述、计算截止时间、深拷贝清单、解析负责人。
单个模板失败不影响其他模板；所有失败在最后汇总为 GenerationError 抛出，
其中携带已成功生成的任务（不回滚）。
"""

from datetime import timedelta

import aiosqlite
import structlog
from pydantic import ValidationError
from ulid import ULID

from ..assignment import Assignee, AssignmentResolver, UnresolvedAssignmentResolver
from ..clock import Clock, SystemClock
from ..conditions import conditions_match, interpolate
from ..exceptions import AssignmentError, GenerationError, PersistenceError
from ..models.enums import AssignmentStrategy, TaskStatus
from ..models.event import BusinessEvent
from ..models.task import ChecklistItem, GeneratedTask, compute_checklist_progress
from ..models.template import TaskTemplate
from ..registry.templates import TemplateCatalog
from ..store import StoreGroup
from ..store.transaction import insert_task_idempotent

log = structlog.get_logger()


class TaskGenerator:
    """按模板目录为事件生成任务"""

    def __init__(
        self,
        store_group: StoreGroup,
        catalog: TemplateCatalog,
        resolver: AssignmentResolver | None = None,
        clock: Clock | None = None,
        require_assignment: bool = False,
    ) -> None:
        self._stores = store_group
        self._catalog = catalog
        self._resolver = resolver or UnresolvedAssignmentResolver()
        self._clock = clock or SystemClock()
        self._require_assignment = require_assignment

    @property
    def catalog(self) -> TemplateCatalog:
        return self._catalog

    def matching_templates(self, event: BusinessEvent) -> list[TaskTemplate]:
        """事件类型命中且触发条件全部满足的激活模板"""
        return [
            template
            for template in self._catalog.get_templates_for_event_type(event.event_type)
            if conditions_match(template.trigger_conditions, event)
        ]

    async def generate_tasks_from_event(self, event: BusinessEvent) -> list[GeneratedTask]:
        """为事件生成任务

        Returns:
            本事件对应的全部任务（含此前已生成的）；无匹配模板时为空列表

        Raises:
            GenerationError: 至少一个模板实例化失败（tasks 为成功部分）
            PersistenceError: 存储写入失败
        """
        tasks: list[GeneratedTask] = []
        failures: list[tuple[str, str]] = []

        for template in self.matching_templates(event):
            try:
                task, created = await self._generate_one(template, event)
            except (AssignmentError, ValidationError, ValueError) as e:
                failures.append((template.id, str(e)))
                log.warning(
                    "task_generation_failed",
                    event_id=event.event_id,
                    template_id=template.id,
                    error=str(e),
                )
                continue

            tasks.append(task)
            if created:
                log.info(
                    "task_generated",
                    task_id=task.task_id,
                    event_id=event.event_id,
                    template_id=template.id,
                    assigned_to=task.assigned_to,
                )

        if failures:
            failed_ids = ", ".join(template_id for template_id, _ in failures)
            raise GenerationError(
                f"{len(failures)} template(s) failed for event {event.event_id}: {failed_ids}",
                tasks=tasks,
                failures=failures,
            )
        return tasks

    async def _generate_one(
        self,
        template: TaskTemplate,
        event: BusinessEvent,
    ) -> tuple[GeneratedTask, bool]:
        try:
            existing = await self._stores.task_store.get_task_for_template(
                event.event_id, template.id
            )
            if existing is not None:
                return existing, False

            task = await self.instantiate(template, event)
            async with self._stores.write_lock:
                return await insert_task_idempotent(
                    self._stores.conn,
                    self._stores.task_store,
                    task,
                )
        except aiosqlite.Error as e:
            raise PersistenceError("insert_task", e) from e

    async def instantiate(self, template: TaskTemplate, event: BusinessEvent) -> GeneratedTask:
        """由模板和事件构造任务（不落库）

        Raises:
            AssignmentError: 解析器失败，或要求分配但无法解析负责人
        """
        now = self._clock.now()
        assignee = await self._resolve_assignee(template, event)
        if assignee is None and self._require_assignment:
            raise AssignmentError(
                f"no assignee for template {template.id} "
                f"(strategy={template.assignment_strategy.value})"
            )

        checklist = [
            ChecklistItem(**item.model_dump(), completed=False)
            for item in sorted(template.checklist_items, key=lambda i: i.order)
        ]

        return GeneratedTask(
            task_id=str(ULID()),
            business_event_id=event.event_id,
            template_id=template.id,
            template_version=template.version,
            title=interpolate(template.default_title, event),
            description=interpolate(template.default_description, event),
            priority=template.default_priority,
            status=TaskStatus.PENDING,
            assignment_strategy=template.assignment_strategy,
            assign_to_role=template.assign_to_role,
            assigned_to=assignee.user_id if assignee else None,
            assigned_to_name=assignee.name if assignee else None,
            assigned_at=now if assignee else None,
            due_date=event.triggered_at + timedelta(days=template.default_due_days),
            checklist_items=checklist,
            checklist_progress=compute_checklist_progress(checklist),
            source_module=event.source_module,
            subsidiary=event.subsidiary,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            entity_name=event.entity_name,
            project_id=event.project_id,
            project_name=event.project_name,
            created_at=now,
            updated_at=now,
        )

    async def _resolve_assignee(
        self,
        template: TaskTemplate,
        event: BusinessEvent,
    ) -> Assignee | None:
        if template.assignment_strategy == AssignmentStrategy.CREATOR:
            if not event.triggered_by:
                return None
            return Assignee(user_id=event.triggered_by, name=event.triggered_by_name)

        try:
            return await self._resolver.resolve(template, event)
        except AssignmentError:
            raise
        except Exception as e:
            raise AssignmentError(f"assignment resolver failed for {template.id}: {e}") from e
