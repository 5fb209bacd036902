"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化、引擎装配、模块订阅注册；关闭时注销订阅并关闭连接。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from bizsignal.core.config import get_db_path, load_engine_config
from bizsignal.core.engine import create_engine
from bizsignal.core.store import create_store_group

from .errors import install_error_handlers
from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import changes, events, health, modules, stream, tasks

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """启动时初始化 Store 与引擎并注册模块订阅，关闭时清理"""
    db_path = get_db_path()
    store_group = await create_store_group(db_path)
    config = load_engine_config()

    engine = create_engine(store_group, config)
    app.state.engine = engine

    handles = await engine.listener.register_enabled_modules(config.enabled_modules)
    log.info("gateway_started", db_path=db_path, subscriptions=len(handles))

    yield

    await engine.listener.unsubscribe_all()
    await store_group.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="BizSignal Gateway",
        version="0.1.0",
        description="业务事件检测与任务生成 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)
    install_error_handlers(app)

    setup_logging()
    setup_logfire(app)

    app.include_router(modules.router, tags=["modules"])
    app.include_router(changes.router, tags=["changes"])
    app.include_router(events.router, tags=["events"])
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
