"""BusinessEvent Domain Model

检测到的事实本身不可变：只有 status、processed_at、generated_task_ids、error
会在创建之后变化，并且只能通过 EventService 的状态流转修改。
event_id 使用 ULID 格式，时间有序。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import EventCategory, EventStatus, Severity


class BusinessEventDraft(BaseModel):
    """检测器产出的草稿事件（尚未持久化，隐含 pending 状态）"""

    model_config = ConfigDict(frozen=True)

    event_type: str = Field(description="事件类型，如 stock_low")
    category: EventCategory = Field(description="事件分类")
    severity: Severity = Field(default=Severity.MEDIUM, description="严重级别")
    source_module: str = Field(description="来源业务模块")
    subsidiary: str = Field(default="", description="所属子公司")
    entity_type: str = Field(description="实体类型（集合名）")
    entity_id: str = Field(description="实体 ID")
    entity_name: str = Field(default="", description="实体名称")
    project_id: str | None = Field(default=None, description="关联项目 ID")
    project_name: str | None = Field(default=None, description="关联项目名称")
    title: str = Field(default="", description="事件标题")
    description: str = Field(default="", description="事件描述")
    previous_state: dict[str, Any] | None = Field(default=None, description="变更前快照")
    current_state: dict[str, Any] = Field(default_factory=dict, description="变更后快照")
    changed_fields: list[str] = Field(default_factory=list, description="发生变化的字段路径")
    triggered_by: str | None = Field(default=None, description="触发者 ID")
    triggered_by_name: str | None = Field(default=None, description="触发者名称")
    triggered_at: datetime = Field(description="触发时间")
    idempotency_key: str | None = Field(
        default=None,
        description="幂等键，重复投递的同一变更得到相同的键",
    )
    metadata: dict[str, Any] = Field(default_factory=dict, description="附加信息")


class BusinessEvent(BusinessEventDraft):
    """已持久化的 BusinessEvent"""

    event_id: str = Field(description="唯一标识，ULID 格式")
    created_at: datetime = Field(description="入库时间")
    status: EventStatus = Field(default=EventStatus.PENDING, description="生命周期状态")
    processed_at: datetime | None = Field(default=None, description="处理完成时间")
    generated_task_ids: list[str] = Field(default_factory=list, description="已生成任务 ID")
    error: str | None = Field(default=None, description="失败原因")
