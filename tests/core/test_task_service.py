"""TaskService 测试 -- 清单勾选、状态流转、手动分配"""

import pytest
import pytest_asyncio

from bizsignal.core.exceptions import (
    ChecklistItemNotFoundError,
    InvalidTaskTransitionError,
    TaskNotFoundError,
)
from bizsignal.core.models import TaskStatus


@pytest_asyncio.fixture
async def setup_task(engine, make_draft):
    """engagement_created 事件生成的 7 项清单任务"""
    event_id, _ = await engine.event_service.create_event(make_draft())
    event = await engine.event_service.get_event(event_id)
    tasks = await engine.task_generator.generate_tasks_from_event(event)
    return tasks[0]


class TestChecklist:
    async def test_progress_recomputed(self, engine, setup_task, clock):
        service = engine.task_service
        task = await service.update_checklist_item(setup_task.task_id, "1", True, user_id="u-1")
        # 1/7 = 14.28 -> 14
        assert task.checklist_progress == 14
        item = task.checklist_items[0]
        assert item.completed_by == "u-1"
        assert item.completed_at == clock.now()

        for item_id in ("2", "3", "4"):
            task = await service.update_checklist_item(setup_task.task_id, item_id, True)
        # 4/7 = 57.14 -> 57
        assert task.checklist_progress == 57

        stored = await service.require_task(setup_task.task_id)
        assert stored.checklist_progress == 57

    async def test_uncheck_clears_completion(self, engine, setup_task):
        service = engine.task_service
        await service.update_checklist_item(setup_task.task_id, "1", True, user_id="u-1")
        task = await service.update_checklist_item(setup_task.task_id, "1", False)
        assert task.checklist_progress == 0
        assert task.checklist_items[0].completed_at is None
        assert task.checklist_items[0].completed_by is None

    async def test_unknown_item(self, engine, setup_task):
        with pytest.raises(ChecklistItemNotFoundError):
            await engine.task_service.update_checklist_item(setup_task.task_id, "99", True)

    async def test_unknown_task(self, engine):
        with pytest.raises(TaskNotFoundError):
            await engine.task_service.update_checklist_item("missing", "1", True)


class TestStatus:
    async def test_start_and_complete(self, engine, setup_task, clock):
        service = engine.task_service
        started = await service.update_status(setup_task.task_id, TaskStatus.IN_PROGRESS)
        assert started.started_at == clock.now()

        clock.advance(hours=3)
        done = await service.update_status(setup_task.task_id, TaskStatus.COMPLETED)
        assert done.completed_at == clock.now()
        assert done.started_at == started.started_at

    async def test_same_status_is_noop(self, engine, setup_task):
        task = await engine.task_service.update_status(setup_task.task_id, TaskStatus.PENDING)
        assert task.updated_at == setup_task.updated_at

    async def test_completed_is_terminal(self, engine, setup_task):
        service = engine.task_service
        await service.update_status(setup_task.task_id, TaskStatus.COMPLETED)
        with pytest.raises(InvalidTaskTransitionError):
            await service.update_status(setup_task.task_id, TaskStatus.IN_PROGRESS)

    async def test_blocked_cannot_complete_directly(self, engine, setup_task):
        service = engine.task_service
        await service.update_status(setup_task.task_id, TaskStatus.BLOCKED)
        with pytest.raises(InvalidTaskTransitionError):
            await service.update_status(setup_task.task_id, TaskStatus.COMPLETED)


class TestQueries:
    async def test_assign_and_list_for_assignee(self, engine, setup_task, clock):
        service = engine.task_service
        task = await service.assign_task(setup_task.task_id, "u-new", "New Owner")
        assert task.assigned_to == "u-new"
        assert task.assigned_at == clock.now()

        assert [t.task_id for t in await service.list_for_assignee("u-new")] == [task.task_id]
        assert await service.list_for_assignee("u-lead-adv") == []
        assert await service.list_for_assignee("u-new", [TaskStatus.COMPLETED]) == []

    async def test_list_open_excludes_finished(self, engine, setup_task):
        service = engine.task_service
        assert [t.task_id for t in await service.list_open()] == [setup_task.task_id]
        await service.update_status(setup_task.task_id, TaskStatus.CANCELLED)
        assert await service.list_open() == []

    async def test_list_for_entity(self, engine, setup_task):
        tasks = await engine.task_service.list_for_entity("engagements", "eng-1")
        assert [t.task_id for t in tasks] == [setup_task.task_id]
        assert await engine.task_service.list_for_entity("engagements", "other") == []
