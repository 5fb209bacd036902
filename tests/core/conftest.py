"""core 测试配置 -- 引擎组件 fixture"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from bizsignal.core.assignment import DirectoryAssignmentResolver, RoleDirectory
from bizsignal.core.clock import FrozenClock
from bizsignal.core.config import EngineConfig
from bizsignal.core.engine import Engine, create_engine
from bizsignal.core.models import BusinessEventDraft, EventCategory, Severity
from bizsignal.core.store import StoreGroup

ROLE_DIRECTORY = {
    "roles": {
        "engagement_lead": [
            {"user_id": "u-lead-adv", "name": "Ada Lead", "subsidiary": "advisory"},
        ],
        "procurement_officer": [
            {"user_id": "u-proc", "name": "Pat Procure"},
        ],
        "project_manager": [
            {"user_id": "u-pm-fin", "name": "Finn PM", "subsidiary": "finishes"},
            {"user_id": "u-pm-any", "name": "Any PM"},
        ],
    },
    "users": {"u-42": "Named User"},
    "departments": {"finance": {"user_id": "u-fin-head", "name": "Fiona Head"}},
    "managers": {"u-actor": {"user_id": "u-boss", "name": "Bo Boss"}},
    "project_leads": {"p-1": {"user_id": "u-p1-lead", "name": "Lee Lead"}},
}


@pytest.fixture
def role_directory() -> RoleDirectory:
    return RoleDirectory.model_validate(ROLE_DIRECTORY)


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(failure_backoff_base_s=0, failure_backoff_max_s=0)


@pytest_asyncio.fixture
async def engine(
    store_group: StoreGroup,
    clock: FrozenClock,
    engine_config: EngineConfig,
    role_directory: RoleDirectory,
) -> AsyncGenerator[Engine, None]:
    """完整装配的引擎（人员目录解析器 + 固定时钟）"""
    eng = create_engine(
        store_group,
        engine_config,
        clock=clock,
        resolver=DirectoryAssignmentResolver(role_directory),
    )
    yield eng
    await eng.listener.unsubscribe_all()


@pytest.fixture
def make_draft(clock: FrozenClock):
    """构造测试用草稿事件的工厂"""

    def _make(**overrides) -> BusinessEventDraft:
        fields = {
            "event_type": "engagement_created",
            "category": EventCategory.MILESTONE_REACHED,
            "severity": Severity.MEDIUM,
            "source_module": "engagements",
            "subsidiary": "advisory",
            "entity_type": "engagements",
            "entity_id": "eng-1",
            "entity_name": "Acme",
            "title": "New Engagement Created: Acme",
            "current_state": {"name": "Acme"},
            "triggered_at": clock.now(),
            "idempotency_key": "key-eng-1",
        }
        fields.update(overrides)
        return BusinessEventDraft(**fields)

    return _make
