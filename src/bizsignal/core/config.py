"""配置模块 -- 可通过环境变量覆盖

包含数据库路径，以及引擎运行参数 EngineConfig（load_engine_config 从环境变量加载）。
"""

import os
from pathlib import Path

import structlog
from pydantic import BaseModel, Field, ValidationError

log = structlog.get_logger()


def _get_base_dir() -> Path:
    """获取 data 基础目录"""
    return Path(os.environ.get("BIZSIGNAL_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "BIZSIGNAL_DB_PATH",
        str(_get_base_dir() / "sqlite" / "bizsignal.db"),
    )


class EngineConfig(BaseModel):
    """引擎运行参数

    环境变量:
        BIZSIGNAL_ENABLED_MODULES: 启动时注册的模块，逗号分隔（默认全部启用模块）
        BIZSIGNAL_PENDING_PAGE_SIZE: pending 事件分页大小（默认 50）
        BIZSIGNAL_SHADOW_CACHE_SIZE: 前置快照缓存容量（默认 10000）
        BIZSIGNAL_MAX_IN_FLIGHT_PER_MODULE: 单模块并发处理上限（默认 4）
        BIZSIGNAL_FAILURE_BACKOFF_BASE_S / BIZSIGNAL_FAILURE_BACKOFF_MAX_S: 失败退避
        BIZSIGNAL_REQUIRE_ASSIGNMENT: 无法解析负责人时视为生成失败（默认 false）
        BIZSIGNAL_TEMPLATES_FILE: 自定义模板 JSON 文件
        BIZSIGNAL_ROLE_DIRECTORY_FILE: 人员目录 JSON 文件
        BIZSIGNAL_SSE_HEARTBEAT_S: SSE 心跳间隔（秒，默认 15）
    """

    enabled_modules: list[str] | None = Field(
        default=None,
        description="启动时注册的模块；None 表示所有 enabled 模块",
    )
    pending_page_size: int = Field(default=50, ge=1, le=1000)
    shadow_cache_size: int = Field(default=10_000, ge=0)
    max_in_flight_per_module: int = Field(default=4, ge=1)
    failure_backoff_base_s: float = Field(default=0.5, ge=0)
    failure_backoff_max_s: float = Field(default=30.0, ge=0)
    require_assignment: bool = Field(default=False)
    templates_file: str | None = Field(default=None)
    role_directory_file: str | None = Field(default=None)
    sse_heartbeat_s: int = Field(default=15, ge=1)


_INT_ENV = {
    "BIZSIGNAL_PENDING_PAGE_SIZE": "pending_page_size",
    "BIZSIGNAL_SHADOW_CACHE_SIZE": "shadow_cache_size",
    "BIZSIGNAL_MAX_IN_FLIGHT_PER_MODULE": "max_in_flight_per_module",
    "BIZSIGNAL_SSE_HEARTBEAT_S": "sse_heartbeat_s",
}

_FLOAT_ENV = {
    "BIZSIGNAL_FAILURE_BACKOFF_BASE_S": "failure_backoff_base_s",
    "BIZSIGNAL_FAILURE_BACKOFF_MAX_S": "failure_backoff_max_s",
}


def _field_ok(field_name: str, value: object) -> bool:
    """单独校验一个字段的取值约束（其余字段取默认值）"""
    try:
        EngineConfig.model_validate({field_name: value})
    except ValidationError:
        return False
    return True


def _load_numbers(env: dict[str, str], parse: type, event: str, kwargs: dict) -> None:
    defaults = EngineConfig()
    for env_var, field_name in env.items():
        if not (val := os.environ.get(env_var)):
            continue
        try:
            parsed = parse(val)
        except ValueError:
            parsed = None
        if parsed is None or not _field_ok(field_name, parsed):
            log.warning(
                event,
                env_var=env_var,
                value=val,
                fallback=getattr(defaults, field_name),
            )
            continue
        kwargs[field_name] = parsed


def load_engine_config() -> EngineConfig:
    """从环境变量加载 EngineConfig

    数值无法解析或超出取值范围时记录 warning 并使用默认值，不阻塞启动。
    """
    kwargs: dict = {}

    if val := os.environ.get("BIZSIGNAL_ENABLED_MODULES"):
        kwargs["enabled_modules"] = [m.strip() for m in val.split(",") if m.strip()]

    _load_numbers(_INT_ENV, int, "invalid_int_config", kwargs)
    _load_numbers(_FLOAT_ENV, float, "invalid_float_config", kwargs)

    if val := os.environ.get("BIZSIGNAL_REQUIRE_ASSIGNMENT"):
        kwargs["require_assignment"] = val.strip().lower() in {"1", "true", "yes", "on"}

    if val := os.environ.get("BIZSIGNAL_TEMPLATES_FILE"):
        kwargs["templates_file"] = val

    if val := os.environ.get("BIZSIGNAL_ROLE_DIRECTORY_FILE"):
        kwargs["role_directory_file"] = val

    return EngineConfig(**kwargs)
