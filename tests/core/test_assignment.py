"""分配解析器测试"""

import json
from pathlib import Path

import pytest

from bizsignal.core.assignment import (
    DirectoryAssignmentResolver,
    RoleDirectory,
    UnresolvedAssignmentResolver,
    load_role_directory,
)
from bizsignal.core.models import AssignmentStrategy, BusinessEvent, TaskTemplate


def _template(strategy: AssignmentStrategy, **kwargs) -> TaskTemplate:
    return TaskTemplate(
        id="t-assign",
        name="Assign",
        category="test",
        trigger_events=["engagement_created"],
        default_title="Task",
        source_module="engagements",
        assignment_strategy=strategy,
        **kwargs,
    )


@pytest.fixture
def event(make_draft, clock) -> BusinessEvent:
    draft = make_draft(project_id="p-1", triggered_by="u-actor")
    return BusinessEvent(**draft.model_dump(), event_id="evt-1", created_at=clock.now())


@pytest.fixture
def resolver(role_directory: RoleDirectory) -> DirectoryAssignmentResolver:
    return DirectoryAssignmentResolver(role_directory)


class TestDirectoryResolver:
    async def test_role_prefers_same_subsidiary(self, resolver, event):
        assignee = await resolver.resolve(
            _template(AssignmentStrategy.SPECIFIC_ROLE, assign_to_role="engagement_lead"),
            event,
        )
        assert assignee.user_id == "u-lead-adv"
        assert assignee.name == "Ada Lead"

    async def test_role_falls_back_to_unscoped_member(self, resolver, event):
        assignee = await resolver.resolve(
            _template(AssignmentStrategy.SPECIFIC_ROLE, assign_to_role="project_manager"),
            event,
        )
        # 事件属于 advisory，finishes 成员不匹配
        assert assignee.user_id == "u-pm-any"

    async def test_unknown_role_is_unresolved(self, resolver, event):
        template = _template(AssignmentStrategy.SPECIFIC_ROLE, assign_to_role="astronaut")
        assert await resolver.resolve(template, event) is None

    async def test_specific_user(self, resolver, event):
        assignee = await resolver.resolve(
            _template(AssignmentStrategy.SPECIFIC_USER, assign_to_user_id="u-42"), event
        )
        assert (assignee.user_id, assignee.name) == ("u-42", "Named User")

    async def test_department_head(self, resolver, event):
        assignee = await resolver.resolve(
            _template(AssignmentStrategy.DEPARTMENT, assign_to_department="finance"), event
        )
        assert assignee.user_id == "u-fin-head"

    async def test_project_lead(self, resolver, event):
        assignee = await resolver.resolve(_template(AssignmentStrategy.PROJECT_LEAD), event)
        assert assignee.user_id == "u-p1-lead"

    async def test_project_lead_falls_back_to_project_manager_role(self, resolver, event):
        other = event.model_copy(update={"project_id": "p-unknown"})
        assignee = await resolver.resolve(_template(AssignmentStrategy.PROJECT_LEAD), other)
        assert assignee.user_id == "u-pm-any"

    async def test_manager_of_actor(self, resolver, event):
        assignee = await resolver.resolve(_template(AssignmentStrategy.MANAGER), event)
        assert assignee.user_id == "u-boss"

    async def test_manager_without_actor(self, resolver, event):
        anonymous = event.model_copy(update={"triggered_by": None})
        assert await resolver.resolve(_template(AssignmentStrategy.MANAGER), anonymous) is None


async def test_unresolved_resolver_returns_none(event):
    template = _template(AssignmentStrategy.SPECIFIC_ROLE, assign_to_role="engagement_lead")
    assert await UnresolvedAssignmentResolver().resolve(template, event) is None


def test_load_role_directory(tmp_path: Path):
    path = tmp_path / "directory.json"
    path.write_text(
        json.dumps({"roles": {"finance_officer": [{"user_id": "u-1", "name": "F"}]}}),
        encoding="utf-8",
    )
    directory = load_role_directory(path)
    assert directory.roles["finance_officer"][0].user_id == "u-1"
    assert directory.users == {}
