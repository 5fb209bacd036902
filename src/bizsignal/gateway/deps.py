"""依赖注入模块 -- 通过 FastAPI Depends 注入引擎组件

Engine 通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Request

from bizsignal.core.engine import Engine
from bizsignal.core.services import (
    EventService,
    InMemoryChangeFeed,
    ModuleIntegrationListener,
    TaskService,
)
from bizsignal.core.store import StoreGroup


def get_engine(request: Request) -> Engine:
    return request.app.state.engine


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.engine.store_group


def get_event_service(request: Request) -> EventService:
    return request.app.state.engine.event_service


def get_task_service(request: Request) -> TaskService:
    return request.app.state.engine.task_service


def get_listener(request: Request) -> ModuleIntegrationListener:
    return request.app.state.engine.listener


def get_change_feed(request: Request) -> InMemoryChangeFeed:
    return request.app.state.engine.feed
