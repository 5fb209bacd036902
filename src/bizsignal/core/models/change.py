"""变更流通知模型"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import ChangeKind


class ChangeNotification(BaseModel):
    """单条文档变更通知（变更流至少投递一次，可能重复投递）"""

    change_type: ChangeKind = Field(description="added / modified / removed")
    collection: str = Field(description="集合路径模式，如 designProjects/{projectId}/designItems")
    document_id: str
    data: dict[str, Any] | None = Field(default=None, description="变更后的文档内容")
    before: dict[str, Any] | None = Field(
        default=None,
        description="变更前的文档内容（变更流能提供时）",
    )
    path_params: dict[str, str] = Field(
        default_factory=dict,
        description="集合路径中的参数值，如 {'projectId': 'p-1'}",
    )
    received_at: datetime | None = Field(default=None)
