"""EventPattern -- 事件检测规则 + 严重级别规则链

规则中包含可调用对象（谓词、描述函数），因此使用不可变 dataclass 而非 pydantic 模型。
严重级别规则按声明顺序求值，第一条为真的谓词胜出；最后一条必须是兜底规则。
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .enums import ChangeType, EventCategory, Severity


@dataclass(frozen=True)
class SeverityContext:
    """严重级别谓词的求值上下文

    previous_value / current_value 为 field_path 处的值（路径不存在时为 MISSING），
    previous / current 为完整快照（created 场景下 previous 为 None）。
    """

    previous_value: Any
    current_value: Any
    previous: Mapping[str, Any] | None
    current: Mapping[str, Any]


SeverityPredicate = Callable[[SeverityContext], bool]


def always(_: SeverityContext) -> bool:
    """兜底谓词"""
    return True


@dataclass(frozen=True)
class SeverityRule:
    predicate: SeverityPredicate
    severity: Severity

    @property
    def is_catch_all(self) -> bool:
        return self.predicate is always

    @classmethod
    def default(cls, severity: Severity) -> "SeverityRule":
        return cls(predicate=always, severity=severity)


@dataclass(frozen=True)
class DetectionRule:
    """检测规则：created 仅在无前置快照时匹配；field_changed 在 field_path 处值结构性变化时匹配"""

    field_path: str
    change_type: ChangeType


@dataclass(frozen=True)
class EventDescription:
    title: str
    description: str


# describe(entity_name, previous, current, changed_fields) -> EventDescription
DescribeFn = Callable[
    [str, Mapping[str, Any] | None, Mapping[str, Any], list[str]],
    EventDescription,
]


@dataclass(frozen=True)
class EventPattern:
    """单个事件类型的识别规则"""

    event_type: str
    category: EventCategory
    detection: DetectionRule
    severity_rules: tuple[SeverityRule, ...]
    describe: DescribeFn | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.severity_rules:
            raise ValueError(f"pattern {self.event_type}: severity_rules must not be empty")
        if not self.severity_rules[-1].is_catch_all:
            raise ValueError(
                f"pattern {self.event_type}: last severity rule must be a catch-all"
            )
