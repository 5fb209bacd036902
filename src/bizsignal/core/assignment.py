"""任务分配解析

creator 策略由 TaskGenerator 直接解析为 event.triggered_by；
其余策略委托给外部的 AssignmentResolver，允许返回 None（暂不分配）。
"""

import json
from pathlib import Path
from typing import Protocol

import structlog
from pydantic import BaseModel, Field

from .models.enums import AssignmentStrategy
from .models.event import BusinessEvent
from .models.template import TaskTemplate

log = structlog.get_logger()

# project_lead 在项目没有指定负责人时回退的角色
PROJECT_LEAD_FALLBACK_ROLE = "project_manager"


class Assignee(BaseModel):
    user_id: str
    name: str | None = None


class AssignmentResolver(Protocol):
    """角色/用户解析器协议"""

    async def resolve(
        self,
        template: TaskTemplate,
        event: BusinessEvent,
    ) -> Assignee | None: ...


class UnresolvedAssignmentResolver:
    """不做任何解析：非 creator 策略的任务保持未分配"""

    async def resolve(self, template: TaskTemplate, event: BusinessEvent) -> Assignee | None:
        return None


class DirectoryMember(BaseModel):
    user_id: str
    name: str | None = None
    subsidiary: str | None = Field(default=None, description="为空表示适用于所有子公司")


class RoleDirectory(BaseModel):
    """静态人员目录"""

    roles: dict[str, list[DirectoryMember]] = Field(default_factory=dict)
    users: dict[str, str] = Field(default_factory=dict, description="user_id -> 姓名")
    departments: dict[str, DirectoryMember] = Field(
        default_factory=dict,
        description="部门 -> 部门负责人",
    )
    managers: dict[str, DirectoryMember] = Field(
        default_factory=dict,
        description="user_id -> 直属上级",
    )
    project_leads: dict[str, DirectoryMember] = Field(
        default_factory=dict,
        description="project_id -> 项目负责人",
    )


class DirectoryAssignmentResolver:
    """基于 RoleDirectory 的解析器"""

    def __init__(self, directory: RoleDirectory) -> None:
        self._directory = directory

    async def resolve(self, template: TaskTemplate, event: BusinessEvent) -> Assignee | None:
        member = self._lookup(template, event)
        if member is None:
            return None
        return Assignee(user_id=member.user_id, name=member.name)

    def _lookup(self, template: TaskTemplate, event: BusinessEvent) -> DirectoryMember | None:
        directory = self._directory
        strategy = template.assignment_strategy

        if strategy == AssignmentStrategy.SPECIFIC_ROLE:
            return self._pick(template.assign_to_role, event.subsidiary)

        if strategy == AssignmentStrategy.SPECIFIC_USER:
            user_id = template.assign_to_user_id
            if not user_id:
                return None
            return DirectoryMember(user_id=user_id, name=directory.users.get(user_id))

        if strategy == AssignmentStrategy.DEPARTMENT:
            return directory.departments.get(template.assign_to_department or "")

        if strategy == AssignmentStrategy.PROJECT_LEAD:
            if event.project_id and event.project_id in directory.project_leads:
                return directory.project_leads[event.project_id]
            return self._pick(PROJECT_LEAD_FALLBACK_ROLE, event.subsidiary)

        if strategy == AssignmentStrategy.MANAGER:
            if not event.triggered_by:
                return None
            return directory.managers.get(event.triggered_by)

        return None

    def _pick(self, role: str | None, subsidiary: str) -> DirectoryMember | None:
        """同子公司成员优先，其次是不限子公司的成员"""
        members = self._directory.roles.get(role or "", [])
        for member in members:
            if member.subsidiary == subsidiary:
                return member
        for member in members:
            if member.subsidiary is None:
                return member
        return None


def load_role_directory(path: str | Path) -> RoleDirectory:
    """从 JSON 文件加载人员目录"""
    directory = RoleDirectory.model_validate(
        json.loads(Path(path).read_text(encoding="utf-8"))
    )
    log.info(
        "role_directory_loaded",
        path=str(path),
        roles=len(directory.roles),
        users=len(directory.users),
    )
    return directory
