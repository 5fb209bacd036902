"""领域模型与状态机测试"""

import pytest
from pydantic import ValidationError

from bizsignal.core.models import (
    AssignmentStrategy,
    ChangeType,
    ChecklistItem,
    DetectionRule,
    EventCategory,
    EventPattern,
    EventStatus,
    Severity,
    SeverityRule,
    TaskStatus,
    TaskTemplate,
    compute_checklist_progress,
    validate_event_transition,
    validate_task_transition,
)


class TestEventStateMachine:
    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (EventStatus.PENDING, EventStatus.PROCESSING),
            (EventStatus.PENDING, EventStatus.PROCESSED),
            (EventStatus.PROCESSING, EventStatus.FAILED),
            (EventStatus.FAILED, EventStatus.IGNORED),
        ],
    )
    def test_valid_transition(self, from_status, to_status):
        assert validate_event_transition(from_status, to_status) is True

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (EventStatus.PROCESSED, EventStatus.PENDING),
            (EventStatus.FAILED, EventStatus.PROCESSED),
            (EventStatus.IGNORED, EventStatus.PENDING),
            (EventStatus.PROCESSING, EventStatus.PENDING),
        ],
    )
    def test_invalid_transition(self, from_status, to_status):
        assert validate_event_transition(from_status, to_status) is False


class TestTaskStateMachine:
    def test_completed_is_terminal(self):
        for status in TaskStatus:
            assert validate_task_transition(TaskStatus.COMPLETED, status) is False

    def test_blocked_can_resume(self):
        assert validate_task_transition(TaskStatus.BLOCKED, TaskStatus.IN_PROGRESS) is True
        assert validate_task_transition(TaskStatus.BLOCKED, TaskStatus.COMPLETED) is False


class TestChecklistProgress:
    @staticmethod
    def _items(done: int, total: int) -> list[ChecklistItem]:
        return [
            ChecklistItem(id=str(i), title=f"item {i}", completed=i < done) for i in range(total)
        ]

    @pytest.mark.parametrize(
        "done,total,expected",
        [(0, 0, 0), (0, 7, 0), (1, 7, 14), (1, 8, 13), (1, 6, 17), (3, 6, 50), (7, 7, 100)],
    )
    def test_rounding(self, done, total, expected):
        assert compute_checklist_progress(self._items(done, total)) == expected

    def test_half_rounds_up(self):
        # 1/8 = 12.5% -> 13
        assert compute_checklist_progress(self._items(1, 8)) == 13


class TestTaskTemplateValidation:
    def _base(self, **overrides) -> dict:
        data = {
            "id": "t-1",
            "name": "Template",
            "category": "test",
            "trigger_events": ["stock_low"],
            "default_title": "Do {entityName}",
            "source_module": "inventory",
        }
        data.update(overrides)
        return data

    def test_defaults(self):
        template = TaskTemplate(**self._base())
        assert template.assignment_strategy == AssignmentStrategy.CREATOR
        assert template.is_active is True
        assert template.version == 1

    def test_specific_role_requires_role(self):
        with pytest.raises(ValidationError, match="assign_to_role"):
            TaskTemplate(**self._base(assignment_strategy="specific_role"))

    def test_requires_trigger_events(self):
        with pytest.raises(ValidationError):
            TaskTemplate(**self._base(trigger_events=[]))

    def test_rejects_duplicate_checklist_ids(self):
        items = [{"id": "1", "title": "a"}, {"id": "1", "title": "b"}]
        with pytest.raises(ValidationError, match="duplicate"):
            TaskTemplate(**self._base(checklist_items=items))

    def test_negative_due_days_rejected(self):
        with pytest.raises(ValidationError):
            TaskTemplate(**self._base(default_due_days=-1))


class TestEventPattern:
    def test_requires_catch_all_last(self):
        with pytest.raises(ValueError, match="catch-all"):
            EventPattern(
                event_type="x",
                category=EventCategory.QUALITY_GATE,
                detection=DetectionRule("a", ChangeType.FIELD_CHANGED),
                severity_rules=(SeverityRule(lambda ctx: True, Severity.HIGH),),
            )

    def test_requires_rules(self):
        with pytest.raises(ValueError, match="must not be empty"):
            EventPattern(
                event_type="x",
                category=EventCategory.QUALITY_GATE,
                detection=DetectionRule("a", ChangeType.FIELD_CHANGED),
                severity_rules=(),
            )
