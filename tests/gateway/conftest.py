"""gateway 测试配置 -- 绕过 lifespan 手动装配引擎 + httpx AsyncClient"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from bizsignal.core.assignment import DirectoryAssignmentResolver, RoleDirectory
from bizsignal.core.clock import FrozenClock
from bizsignal.core.config import EngineConfig
from bizsignal.core.engine import create_engine
from bizsignal.core.store import create_store_group

GATEWAY_DIRECTORY = {
    "roles": {
        "engagement_lead": [{"user_id": "u-lead", "name": "Ada Lead"}],
        "procurement_officer": [{"user_id": "u-proc", "name": "Pat Procure"}],
    },
}


@pytest_asyncio.fixture
async def test_app(tmp_path: Path, clock: FrozenClock):
    """创建测试用 FastAPI app（手动初始化引擎，不注册订阅）"""
    os.environ["BIZSIGNAL_DB_PATH"] = str(tmp_path / "sqlite" / "test.db")
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from bizsignal.gateway.main import create_app

    app = create_app()

    store_group = await create_store_group(str(tmp_path / "sqlite" / "test.db"))
    engine = create_engine(
        store_group,
        EngineConfig(failure_backoff_base_s=0, failure_backoff_max_s=0, sse_heartbeat_s=1),
        clock=clock,
        resolver=DirectoryAssignmentResolver(RoleDirectory.model_validate(GATEWAY_DIRECTORY)),
    )
    app.state.engine = engine

    yield app

    await engine.listener.unsubscribe_all()
    await store_group.conn.close()
    os.environ.pop("BIZSIGNAL_DB_PATH", None)
    os.environ.pop("LOGFIRE_SEND_TO_LOGFIRE", None)


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac
