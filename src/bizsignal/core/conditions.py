"""模板触发条件求值 + 标题/描述插值

条件路径相对于事件的 camelCase 视图解析（如 currentState.status），
多个条件之间为 AND；路径不存在时解析为 MISSING，而不是抛异常。
"""

from collections.abc import Iterable
from typing import Any

from .models.enums import ConditionOperator
from .models.event import BusinessEventDraft
from .models.template import TriggerCondition
from .snapshot import MISSING, as_number, resolve_path, structurally_equal


def event_view(event: BusinessEventDraft) -> dict[str, Any]:
    """事件的 camelCase 视图，供条件路径解析"""
    return {
        "eventType": event.event_type,
        "category": event.category.value,
        "severity": event.severity.value,
        "sourceModule": event.source_module,
        "subsidiary": event.subsidiary,
        "entityType": event.entity_type,
        "entityId": event.entity_id,
        "entityName": event.entity_name,
        "projectId": event.project_id,
        "projectName": event.project_name,
        "changedFields": list(event.changed_fields),
        "triggeredBy": event.triggered_by,
        "currentState": event.current_state,
        "previousState": event.previous_state,
        "metadata": event.metadata,
    }


def _contains(value: Any, expected: Any) -> bool:
    if isinstance(value, str) and isinstance(expected, str):
        return expected in value
    if isinstance(value, list):
        return any(structurally_equal(item, expected) for item in value)
    return False


def _compare(value: Any, expected: Any) -> tuple[float, float] | None:
    left = as_number(value)
    right = as_number(expected)
    if left is None or right is None:
        return None
    return left, right


def evaluate_condition(value: Any, condition: TriggerCondition) -> bool:
    """对单个条件求值（value 为已解析的路径值）"""
    operator = condition.operator
    expected = condition.value

    if operator == ConditionOperator.EQUALS:
        return value is not MISSING and structurally_equal(value, expected)
    if operator == ConditionOperator.NOT_EQUALS:
        return value is MISSING or not structurally_equal(value, expected)
    if operator == ConditionOperator.CONTAINS:
        return _contains(value, expected)
    if operator == ConditionOperator.GREATER_THAN:
        pair = _compare(value, expected)
        return pair is not None and pair[0] > pair[1]
    if operator == ConditionOperator.LESS_THAN:
        pair = _compare(value, expected)
        return pair is not None and pair[0] < pair[1]
    if operator == ConditionOperator.IN:
        if not isinstance(expected, list) or value is MISSING:
            return False
        return any(structurally_equal(value, item) for item in expected)
    if operator == ConditionOperator.NOT_IN:
        if not isinstance(expected, list):
            return False
        return value is MISSING or not any(structurally_equal(value, item) for item in expected)
    return False


def conditions_match(
    conditions: Iterable[TriggerCondition],
    event: BusinessEventDraft,
) -> bool:
    """全部条件为真时返回 True；无条件视为普遍适用"""
    view = event_view(event)
    return all(
        evaluate_condition(resolve_path(view, condition.field), condition)
        for condition in conditions
    )


def interpolate(text: str, event: BusinessEventDraft) -> str:
    """替换 {entityName} / {{entityName}} / {projectName} / {sourceModule} / {eventType}

    未知占位符原样保留。
    """
    return (
        text.replace("{{entityName}}", event.entity_name)
        .replace("{entityName}", event.entity_name)
        .replace("{projectName}", event.project_name or "")
        .replace("{sourceModule}", event.source_module)
        .replace("{eventType}", event.event_type)
    )
