"""TaskTemplate Domain Model -- 可复用、带版本的清单任务定义"""

from typing import Any

from pydantic import BaseModel, Field, model_validator

from .enums import AssignmentStrategy, ConditionOperator, TaskPriority


class TriggerCondition(BaseModel):
    """模板触发条件（多个条件之间为 AND）"""

    field: str = Field(description="点分路径，如 currentState.status")
    operator: ConditionOperator
    value: Any = Field(default=None, description="比较值；in/not_in 需要列表")


class ChecklistItemTemplate(BaseModel):
    """模板清单项定义"""

    id: str
    title: str
    description: str = Field(default="")
    is_required: bool = Field(default=True)
    order: int = Field(default=0)
    verification_criteria: str | None = Field(default=None)


class TaskTemplate(BaseModel):
    """任务模板"""

    id: str = Field(description="模板 ID")
    name: str
    description: str = Field(default="")
    category: str = Field(description="模板分类，如 stage_transition")
    trigger_events: list[str] = Field(min_length=1, description="触发事件类型集合")
    trigger_conditions: list[TriggerCondition] = Field(
        default_factory=list,
        description="触发条件；为空表示对该事件类型普遍适用",
    )
    default_title: str = Field(description="标题模板，支持 {entityName} 插值")
    default_description: str = Field(default="")
    default_priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    default_due_days: int = Field(default=7, ge=0, description="截止天数（相对 triggered_at）")
    checklist_items: list[ChecklistItemTemplate] = Field(default_factory=list)
    assignment_strategy: AssignmentStrategy = Field(default=AssignmentStrategy.CREATOR)
    assign_to_role: str | None = Field(default=None)
    assign_to_user_id: str | None = Field(default=None)
    assign_to_department: str | None = Field(default=None)
    source_module: str
    subsidiary: str = Field(default="")
    is_active: bool = Field(default=True)
    version: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def _check_assignment_target(self) -> "TaskTemplate":
        if self.assignment_strategy == AssignmentStrategy.SPECIFIC_ROLE and not self.assign_to_role:
            raise ValueError(f"template {self.id}: specific_role requires assign_to_role")
        if (
            self.assignment_strategy == AssignmentStrategy.SPECIFIC_USER
            and not self.assign_to_user_id
        ):
            raise ValueError(f"template {self.id}: specific_user requires assign_to_user_id")
        if (
            self.assignment_strategy == AssignmentStrategy.DEPARTMENT
            and not self.assign_to_department
        ):
            raise ValueError(f"template {self.id}: department requires assign_to_department")
        ids = [item.id for item in self.checklist_items]
        if len(ids) != len(set(ids)):
            raise ValueError(f"template {self.id}: duplicate checklist item ids")
        return self
