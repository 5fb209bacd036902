"""枚举定义

包含 BusinessEvent 状态机（EventStatus + VALID_EVENT_TRANSITIONS）、
GeneratedTask 状态机（TaskStatus + VALID_TASK_TRANSITIONS），
以及严重级别、事件分类、模板条件运算符、分配策略等枚举。
"""

from enum import StrEnum


class EventStatus(StrEnum):
    """BusinessEvent 生命周期状态"""

    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"
    # 仅可手动进入
    IGNORED = "ignored"


# 合法状态流转：pending -> processing(可选) -> {processed, failed}
VALID_EVENT_TRANSITIONS: dict[EventStatus, set[EventStatus]] = {
    EventStatus.PENDING: {
        EventStatus.PROCESSING,
        EventStatus.PROCESSED,
        EventStatus.FAILED,
        EventStatus.IGNORED,
    },
    EventStatus.PROCESSING: {
        EventStatus.PROCESSED,
        EventStatus.FAILED,
        EventStatus.IGNORED,
    },
    # 失败事件不会自动重试，只能被手动忽略
    EventStatus.FAILED: {EventStatus.IGNORED},
    EventStatus.PROCESSED: set(),
    EventStatus.IGNORED: set(),
}

TERMINAL_EVENT_STATES: set[EventStatus] = {
    EventStatus.PROCESSED,
    EventStatus.IGNORED,
}


class Severity(StrEnum):
    """事件严重级别"""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class EventCategory(StrEnum):
    """业务事件分类"""

    WORKFLOW_TRANSITION = "workflow_transition"
    APPROVAL_REQUIRED = "approval_required"
    QUALITY_GATE = "quality_gate"
    RESOURCE_CONSTRAINT = "resource_constraint"
    MILESTONE_REACHED = "milestone_reached"
    COST_THRESHOLD = "cost_threshold"
    TEAM_ASSIGNMENT = "team_assignment"
    DEADLINE_APPROACHING = "deadline_approaching"


class ChangeType(StrEnum):
    """检测规则的变更类型"""

    CREATED = "created"
    FIELD_CHANGED = "field_changed"


class ChangeKind(StrEnum):
    """变更流通知类型"""

    ADDED = "added"
    MODIFIED = "modified"
    # 预留扩展点，不参与检测
    REMOVED = "removed"


class ConditionOperator(StrEnum):
    """模板触发条件运算符"""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IN = "in"
    NOT_IN = "not_in"


class AssignmentStrategy(StrEnum):
    """任务分配策略"""

    CREATOR = "creator"
    PROJECT_LEAD = "project_lead"
    SPECIFIC_ROLE = "specific_role"
    SPECIFIC_USER = "specific_user"
    MANAGER = "manager"
    DEPARTMENT = "department"


class TaskPriority(StrEnum):
    """任务优先级"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskStatus(StrEnum):
    """GeneratedTask 状态"""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


VALID_TASK_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {
        TaskStatus.IN_PROGRESS,
        TaskStatus.BLOCKED,
        TaskStatus.COMPLETED,
        TaskStatus.CANCELLED,
    },
    TaskStatus.IN_PROGRESS: {
        TaskStatus.PENDING,
        TaskStatus.BLOCKED,
        TaskStatus.COMPLETED,
        TaskStatus.CANCELLED,
    },
    TaskStatus.BLOCKED: {TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.CANCELLED: set(),
}

OPEN_TASK_STATES: set[TaskStatus] = {TaskStatus.PENDING, TaskStatus.IN_PROGRESS}


def validate_event_transition(from_status: EventStatus, to_status: EventStatus) -> bool:
    """验证事件状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_EVENT_TRANSITIONS.get(from_status, set())
    return to_status in allowed


def validate_task_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证任务状态流转是否合法"""
    allowed = VALID_TASK_TRANSITIONS.get(from_status, set())
    return to_status in allowed
