"""GeneratedTask Domain Model

每个 GeneratedTask 恰好引用一个事件和一个模板，(business_event_id, template_id) 唯一。
checklist_progress 是派生值，每次清单变更都按 compute_checklist_progress 重算。
"""

import math
from collections.abc import Sequence
from datetime import datetime

from pydantic import BaseModel, Field

from .enums import AssignmentStrategy, TaskPriority, TaskStatus


class ChecklistItem(BaseModel):
    """任务清单项（从模板深拷贝，独立完成）"""

    id: str = Field(description="清单项 ID（模板内唯一）")
    title: str
    description: str = Field(default="")
    is_required: bool = Field(default=True)
    order: int = Field(default=0)
    verification_criteria: str | None = Field(default=None, description="验收标准")
    completed: bool = Field(default=False)
    completed_at: datetime | None = Field(default=None)
    completed_by: str | None = Field(default=None)


def compute_checklist_progress(items: Sequence[ChecklistItem]) -> int:
    """计算清单完成度

    公式：floor(100 * 已完成项数 / 总项数 + 0.5)，即全部清单项（含非必需项）
    的完成百分比，四舍五入（half-up）为整数；空清单为 0。
    """
    total = len(items)
    if total == 0:
        return 0
    completed = sum(1 for item in items if item.completed)
    return math.floor(100 * completed / total + 0.5)


class GeneratedTask(BaseModel):
    """由模板响应单个事件实例化的任务"""

    task_id: str = Field(description="唯一标识，ULID 格式")
    business_event_id: str = Field(description="来源事件 ID")
    template_id: str = Field(description="来源模板 ID")
    template_version: int = Field(default=1, description="实例化时的模板版本")
    title: str
    description: str = Field(default="")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    status: TaskStatus = Field(default=TaskStatus.PENDING)

    assignment_strategy: AssignmentStrategy = Field(description="分配策略")
    assign_to_role: str | None = Field(default=None, description="模板指定的角色")
    assigned_to: str | None = Field(default=None, description="负责人 ID，未解析时为空")
    assigned_to_name: str | None = Field(default=None)
    assigned_at: datetime | None = Field(default=None)

    due_date: datetime = Field(description="截止时间 = triggered_at + default_due_days")
    checklist_items: list[ChecklistItem] = Field(default_factory=list)
    checklist_progress: int = Field(default=0, ge=0, le=100, description="清单完成百分比")

    source_module: str
    subsidiary: str = Field(default="")
    entity_type: str
    entity_id: str
    entity_name: str = Field(default="")
    project_id: str | None = Field(default=None)
    project_name: str | None = Field(default=None)

    related_task_ids: list[str] = Field(default_factory=list, description="关联任务")
    parent_task_id: str | None = Field(default=None, description="父任务")

    created_by: str = Field(default="system")
    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)
