"""bizsignal Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .change import ChangeNotification
from .enums import (
    OPEN_TASK_STATES,
    TERMINAL_EVENT_STATES,
    VALID_EVENT_TRANSITIONS,
    VALID_TASK_TRANSITIONS,
    AssignmentStrategy,
    ChangeKind,
    ChangeType,
    ConditionOperator,
    EventCategory,
    EventStatus,
    Severity,
    TaskPriority,
    TaskStatus,
    validate_event_transition,
    validate_task_transition,
)
from .event import BusinessEvent, BusinessEventDraft
from .pattern import (
    DetectionRule,
    EventDescription,
    EventPattern,
    SeverityContext,
    SeverityRule,
    always,
)
from .task import ChecklistItem, GeneratedTask, compute_checklist_progress
from .template import ChecklistItemTemplate, TaskTemplate, TriggerCondition

__all__ = [
    # 枚举
    "EventStatus",
    "Severity",
    "EventCategory",
    "ChangeType",
    "ChangeKind",
    "ConditionOperator",
    "AssignmentStrategy",
    "TaskPriority",
    "TaskStatus",
    # 状态机
    "VALID_EVENT_TRANSITIONS",
    "TERMINAL_EVENT_STATES",
    "validate_event_transition",
    "VALID_TASK_TRANSITIONS",
    "OPEN_TASK_STATES",
    "validate_task_transition",
    # Event
    "BusinessEventDraft",
    "BusinessEvent",
    # Pattern
    "EventPattern",
    "DetectionRule",
    "SeverityRule",
    "SeverityContext",
    "EventDescription",
    "always",
    # Template
    "TaskTemplate",
    "TriggerCondition",
    "ChecklistItemTemplate",
    # Task
    "GeneratedTask",
    "ChecklistItem",
    "compute_checklist_progress",
    # Change feed
    "ChangeNotification",
]
