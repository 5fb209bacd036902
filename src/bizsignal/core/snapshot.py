"""实体快照工具 -- 半结构化 JSON 值 + 点路径解析

快照是 JSON 兼容值（None/bool/int/float/str/list/dict）。
resolve_path 只沿 dict 逐段下钻，任何一段缺失都返回 MISSING 哨兵而不是抛异常。
结构比较基于规范化 JSON（键排序、bool 与 int 区分），与 dict 键顺序无关。
"""

import hashlib
import json
from collections.abc import Mapping
from typing import Any

from .exceptions import DetectionError

Snapshot = dict[str, Any]


class _Missing:
    """显式的 "undefined" 值，区别于 JSON null"""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

# 规范化编码中 MISSING 的占位，JSON 编码结果不可能与之相同
_MISSING_TOKEN = "\x00missing"


def resolve_path(value: Any, path: str) -> Any:
    """按点分路径解析嵌套值

    Args:
        value: 根值（通常是快照 dict）
        path: 点分路径，如 "currentState.currentStage"

    Returns:
        路径上的值；路径不存在时返回 MISSING
    """
    current = value
    for key in path.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return MISSING
        current = current[key]
    return current


def _normalize_numbers(value: Any) -> Any:
    """整数值的 float 统一为 int（8.0 与 8 视为同一数字），bool 保持不变"""
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, Mapping):
        return {k: _normalize_numbers(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_normalize_numbers(v) for v in value]
    return value


def canonical_json(value: Any) -> str:
    """规范化 JSON 编码（键排序、紧凑分隔符、数字归一）

    MISSING 编码为不可能出现在 JSON 中的占位串。
    """
    if value is MISSING:
        return _MISSING_TOKEN
    return json.dumps(
        _normalize_numbers(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def structurally_equal(left: Any, right: Any) -> bool:
    """深度结构比较，dict 与键顺序无关，list 与顺序有关"""
    return canonical_json(left) == canonical_json(right)


def values_differ(left: Any, right: Any) -> bool:
    return not structurally_equal(left, right)


def ensure_snapshot(value: Any, *, allow_none: bool = False, name: str = "snapshot") -> Snapshot | None:
    """校验快照是 JSON 对象

    Raises:
        DetectionError: 快照不是 dict（或在不允许时为 None）
    """
    if value is None and allow_none:
        return None
    if not isinstance(value, Mapping):
        raise DetectionError(f"{name} must be a mapping, got {type(value).__name__}")
    try:
        json.dumps(value, default=_reject_unknown)
    except (TypeError, ValueError) as e:
        raise DetectionError(f"{name} is not JSON-compatible: {e}") from e
    return dict(value)


def _reject_unknown(obj: Any) -> Any:
    raise TypeError(f"unsupported value of type {type(obj).__name__}")


def fingerprint(*parts: Any) -> str:
    """对若干值的规范化编码计算 sha256 摘要（用作幂等键）"""
    digest = hashlib.sha256()
    for part in parts:
        digest.update(canonical_json(part).encode("utf-8"))
        digest.update(b"\x1f")
    return digest.hexdigest()


def as_number(value: Any) -> float | None:
    """将值解释为数字；bool、MISSING 和非数字返回 None"""
    if isinstance(value, bool) or value is MISSING or value is None:
        return None
    if isinstance(value, int | float):
        return float(value)
    return None
