"""EventDetector -- 前后快照比对 -> 草稿事件

对 source_module 的每条规则：
- created 规则仅在 previous 为 None 时匹配；
- field_changed 规则在 previous 非 None 且 field_path 处的值结构性不同时匹配。
匹配后按声明顺序求值严重级别规则，第一条为真者胜出。
一次检测可以产出多个草稿事件（不同规则同时命中）。
"""

from collections.abc import Mapping
from typing import Any

import structlog

from .clock import Clock, SystemClock
from .exceptions import DetectionError
from .models.enums import ChangeType, Severity
from .models.event import BusinessEventDraft
from .models.pattern import EventPattern, SeverityContext
from .registry.patterns import PatternRegistry, generic_description
from .snapshot import MISSING, ensure_snapshot, fingerprint, resolve_path, values_differ

log = structlog.get_logger()


def event_idempotency_key(
    source_module: str,
    entity_type: str,
    entity_id: str,
    event_type: str,
    previous: Mapping[str, Any] | None,
    current: Mapping[str, Any],
) -> str:
    """同一变更的重复投递得到相同的键"""
    return fingerprint(source_module, entity_type, entity_id, event_type, previous, current)


class EventDetector:
    """基于 PatternRegistry 的事件检测器（无状态，只依赖注册表和时钟）"""

    def __init__(self, registry: PatternRegistry, clock: Clock | None = None) -> None:
        self._registry = registry
        self._clock = clock or SystemClock()

    @property
    def registry(self) -> PatternRegistry:
        return self._registry

    def detect(
        self,
        source_module: str,
        subsidiary: str,
        entity_type: str,
        entity_id: str,
        entity_name: str,
        previous: Mapping[str, Any] | None,
        current: Mapping[str, Any],
        *,
        project_id: str | None = None,
        project_name: str | None = None,
        triggered_by: str | None = None,
        triggered_by_name: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> list[BusinessEventDraft]:
        """检测一次实体变更产生的事件

        Raises:
            DetectionError: 快照不是 JSON 对象，或严重级别规则求值失败
        """
        previous_snapshot = ensure_snapshot(previous, allow_none=True, name="previous_snapshot")
        current_snapshot = ensure_snapshot(current, name="current_snapshot")
        module_id = self._registry.canonical_module(source_module)

        drafts: list[BusinessEventDraft] = []
        for pattern in self._registry.get_patterns_for_module(module_id):
            changed_fields = self._match(pattern, previous_snapshot, current_snapshot)
            if changed_fields is None:
                continue

            severity = self.grade(pattern, previous_snapshot, current_snapshot)
            describe = pattern.describe
            if describe is not None:
                text = describe(entity_name, previous_snapshot, current_snapshot, changed_fields)
            else:
                text = generic_description(entity_name, changed_fields)

            drafts.append(
                BusinessEventDraft(
                    event_type=pattern.event_type,
                    category=pattern.category,
                    severity=severity,
                    source_module=module_id,
                    subsidiary=subsidiary,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    entity_name=entity_name,
                    project_id=project_id,
                    project_name=project_name,
                    title=text.title,
                    description=text.description,
                    previous_state=previous_snapshot,
                    current_state=current_snapshot,
                    changed_fields=changed_fields,
                    triggered_by=triggered_by,
                    triggered_by_name=triggered_by_name,
                    triggered_at=self._clock.now(),
                    idempotency_key=event_idempotency_key(
                        module_id,
                        entity_type,
                        entity_id,
                        pattern.event_type,
                        previous_snapshot,
                        current_snapshot,
                    ),
                    metadata=dict(metadata or {}),
                )
            )

        if drafts:
            log.debug(
                "events_detected",
                module=module_id,
                entity_type=entity_type,
                entity_id=entity_id,
                event_types=[d.event_type for d in drafts],
            )
        return drafts

    @staticmethod
    def _match(
        pattern: EventPattern,
        previous: Mapping[str, Any] | None,
        current: Mapping[str, Any],
    ) -> list[str] | None:
        """返回 changed_fields；不匹配时返回 None"""
        rule = pattern.detection
        if rule.change_type == ChangeType.CREATED:
            return [] if previous is None else None

        if previous is None:
            return None
        previous_value = resolve_path(previous, rule.field_path)
        current_value = resolve_path(current, rule.field_path)
        if values_differ(previous_value, current_value):
            return [rule.field_path]
        return None

    @staticmethod
    def grade(
        pattern: EventPattern,
        previous: Mapping[str, Any] | None,
        current: Mapping[str, Any],
    ) -> Severity:
        path = pattern.detection.field_path
        ctx = SeverityContext(
            previous_value=resolve_path(previous, path) if previous is not None else MISSING,
            current_value=resolve_path(current, path),
            previous=previous,
            current=current,
        )
        for rule in pattern.severity_rules:
            try:
                matched = rule.predicate(ctx)
            except Exception as e:
                raise DetectionError(
                    f"severity rule of {pattern.event_type} failed: {e}"
                ) from e
            if matched:
                return rule.severity
        # 构造时已校验兜底规则，此处不可达
        return pattern.severity_rules[-1].severity
