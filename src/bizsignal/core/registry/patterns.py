"""PatternRegistry -- 按模块组织的事件检测规则（静态、不可变）

启动时构建一次，注入到 EventDetector；新增模块或事件类型只需添加条目，
检测器本身不需要修改。
"""

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from ..models.enums import ChangeType, EventCategory, Severity
from ..models.pattern import (
    DetectionRule,
    EventDescription,
    EventPattern,
    SeverityContext,
    SeverityRule,
)
from ..snapshot import MISSING, as_number, resolve_path

# 未配置 reorderPoint 时的默认补货点
DEFAULT_REORDER_POINT = 10.0

# 模块别名 -> 规范模块 ID
MODULE_ALIASES: Mapping[str, str] = MappingProxyType({"advisory": "engagements"})


def _display(value: Any) -> str:
    if value is MISSING or value is None:
        return "unknown"
    return str(value)


def _reorder_point(ctx: SeverityContext) -> float:
    """本次更新后的 reorderPoint 优先，其次取更新前的值"""
    for snapshot in (ctx.current, ctx.previous):
        point = as_number(resolve_path(snapshot, "reorderPoint")) if snapshot else None
        # reorderPoint 为 0 或缺失时继续向后查找
        if point:
            return point
    return DEFAULT_REORDER_POINT


def _current_equals(*values: str):
    def predicate(ctx: SeverityContext) -> bool:
        return ctx.current_value in values

    return predicate


def _current_at_least(threshold: float):
    def predicate(ctx: SeverityContext) -> bool:
        current = as_number(ctx.current_value)
        return current is not None and current >= threshold

    return predicate


def _current_above(threshold: float):
    def predicate(ctx: SeverityContext) -> bool:
        current = as_number(ctx.current_value)
        return current is not None and current > threshold

    return predicate


def _has_red_status(value: Any) -> bool:
    """RAG 结构中任意层级存在 status == "red" """
    if isinstance(value, Mapping):
        if value.get("status") == "red":
            return True
        return any(_has_red_status(v) for v in value.values())
    if isinstance(value, list):
        return any(_has_red_status(v) for v in value)
    return False


def _stock_depleted(ctx: SeverityContext) -> bool:
    current = as_number(ctx.current_value)
    return current is not None and current <= 0


def _stock_at_or_below_reorder_point(ctx: SeverityContext) -> bool:
    current = as_number(ctx.current_value)
    return current is not None and current <= _reorder_point(ctx)


def _stock_crossed_reorder_point(ctx: SeverityContext) -> bool:
    current = as_number(ctx.current_value)
    if current is None:
        return False
    point = _reorder_point(ctx)
    if current > point:
        return False
    previous = as_number(ctx.previous_value)
    return ctx.previous is None or previous is None or previous > point


def _price_moved_more_than(percent: float):
    def predicate(ctx: SeverityContext) -> bool:
        previous = as_number(ctx.previous_value)
        current = as_number(ctx.current_value)
        if not previous or current is None:
            return False
        return abs((current - previous) / previous) * 100 > percent

    return predicate


def _pattern(
    event_type: str,
    category: EventCategory,
    field_path: str,
    change_type: ChangeType,
    rules: Iterable[SeverityRule],
    describe=None,
) -> EventPattern:
    return EventPattern(
        event_type=event_type,
        category=category,
        detection=DetectionRule(field_path=field_path, change_type=change_type),
        severity_rules=tuple(rules),
        describe=describe,
    )


def _describe(title: str, description: str):
    """构造固定格式的描述函数（{name} 为实体名）"""

    def describe(entity_name, previous, current, changed_fields) -> EventDescription:
        return EventDescription(
            title=title.format(name=entity_name),
            description=description.format(name=entity_name),
        )

    return describe


def _describe_transition(title: str, description: str, field_path: str):
    """带前后值的描述函数（{prev} / {curr}）"""

    def describe(entity_name, previous, current, changed_fields) -> EventDescription:
        prev = _display(resolve_path(previous, field_path)) if previous else "unknown"
        curr = _display(resolve_path(current, field_path))
        return EventDescription(
            title=title.format(name=entity_name),
            description=description.format(name=entity_name, prev=prev, curr=curr),
        )

    return describe


def generic_description(
    entity_name: str,
    changed_fields: list[str],
) -> EventDescription:
    """未配置描述函数时的通用标题/描述"""
    return EventDescription(
        title=f"Event: {entity_name}",
        description=(
            f'An event occurred for "{entity_name}". '
            f"Changed fields: {', '.join(changed_fields)}."
        ),
    )


def _design_manager_patterns() -> list[EventPattern]:
    return [
        _pattern(
            "design_item_created",
            EventCategory.WORKFLOW_TRANSITION,
            "name",
            ChangeType.CREATED,
            [SeverityRule.default(Severity.INFO)],
            _describe(
                "New Design Item Created: {name}",
                'A new design item "{name}" has been created.',
            ),
        ),
        _pattern(
            "design_item_stage_changed",
            EventCategory.WORKFLOW_TRANSITION,
            "currentStage",
            ChangeType.FIELD_CHANGED,
            [
                SeverityRule(_current_equals("production-ready"), Severity.HIGH),
                SeverityRule(_current_equals("pre-production"), Severity.MEDIUM),
                SeverityRule.default(Severity.INFO),
            ],
            _describe_transition(
                "Design Item Stage Changed: {name}",
                'Design item "{name}" moved from {prev} to {curr} stage.',
                "currentStage",
            ),
        ),
        _pattern(
            "design_item_approval_requested",
            EventCategory.APPROVAL_REQUIRED,
            "approvals",
            ChangeType.FIELD_CHANGED,
            [SeverityRule.default(Severity.MEDIUM)],
            _describe(
                "Approval Requested: {name}",
                'An approval has been requested for design item "{name}".',
            ),
        ),
        _pattern(
            "design_item_rag_updated",
            EventCategory.QUALITY_GATE,
            "ragStatus",
            ChangeType.FIELD_CHANGED,
            [
                SeverityRule(lambda ctx: _has_red_status(ctx.current_value), Severity.HIGH),
                SeverityRule.default(Severity.LOW),
            ],
            _describe(
                "RAG Status Updated: {name}",
                'RAG status has been updated for design item "{name}".',
            ),
        ),
        _pattern(
            "design_item_procurement_started",
            EventCategory.WORKFLOW_TRANSITION,
            "sourcingType",
            ChangeType.FIELD_CHANGED,
            [
                SeverityRule(_current_equals("PROCURED"), Severity.HIGH),
                SeverityRule.default(Severity.INFO),
            ],
            _describe_transition(
                "Sourcing Type Changed: {name}",
                'Design item "{name}" sourcing changed from {prev} to {curr}.',
                "sourcingType",
            ),
        ),
    ]


def _inventory_patterns() -> list[EventPattern]:
    return [
        _pattern(
            "stock_low",
            EventCategory.RESOURCE_CONSTRAINT,
            "stockLevel",
            ChangeType.FIELD_CHANGED,
            [
                SeverityRule(_stock_depleted, Severity.CRITICAL),
                SeverityRule(_stock_at_or_below_reorder_point, Severity.HIGH),
                SeverityRule.default(Severity.INFO),
            ],
            _describe(
                "Low Stock Alert: {name}",
                'Stock level for "{name}" has fallen below the reorder threshold.',
            ),
        ),
        _pattern(
            "stock_reorder_required",
            EventCategory.RESOURCE_CONSTRAINT,
            "stockLevel",
            ChangeType.FIELD_CHANGED,
            [
                SeverityRule(_stock_crossed_reorder_point, Severity.HIGH),
                SeverityRule.default(Severity.LOW),
            ],
            _describe(
                "Reorder Required: {name}",
                '"{name}" needs to be reordered to maintain adequate stock levels.',
            ),
        ),
        _pattern(
            "material_received",
            EventCategory.MILESTONE_REACHED,
            "lastReceivedAt",
            ChangeType.FIELD_CHANGED,
            [SeverityRule.default(Severity.INFO)],
            _describe(
                "Material Received: {name}",
                'New stock has been received for "{name}".',
            ),
        ),
    ]


def _launch_pipeline_patterns() -> list[EventPattern]:
    return [
        _pattern(
            "product_stage_changed",
            EventCategory.WORKFLOW_TRANSITION,
            "stage",
            ChangeType.FIELD_CHANGED,
            [
                SeverityRule(_current_equals("launched"), Severity.HIGH),
                SeverityRule(_current_equals("ready_to_launch"), Severity.MEDIUM),
                SeverityRule.default(Severity.INFO),
            ],
            _describe_transition(
                "Product Stage Changed: {name}",
                'Product "{name}" moved from {prev} to {curr}.',
                "stage",
            ),
        ),
        _pattern(
            "product_created",
            EventCategory.MILESTONE_REACHED,
            "name",
            ChangeType.CREATED,
            [SeverityRule.default(Severity.INFO)],
            _describe(
                "New Product Created: {name}",
                'A new product "{name}" has been added to the launch pipeline.',
            ),
        ),
        _pattern(
            "product_pricing_updated",
            EventCategory.COST_THRESHOLD,
            "price",
            ChangeType.FIELD_CHANGED,
            [
                SeverityRule(_price_moved_more_than(20), Severity.HIGH),
                SeverityRule.default(Severity.LOW),
            ],
            _describe(
                "Pricing Updated: {name}",
                'Pricing has been updated for product "{name}".',
            ),
        ),
    ]


def _engagement_patterns() -> list[EventPattern]:
    def describe_budget(entity_name, previous, current, changed_fields) -> EventDescription:
        utilization = _display(resolve_path(current, "budgetUtilization"))
        return EventDescription(
            title=f"Budget Threshold: {entity_name}",
            description=(
                f'Budget utilization for engagement "{entity_name}" '
                f"has reached {utilization}%."
            ),
        )

    return [
        _pattern(
            "engagement_status_changed",
            EventCategory.WORKFLOW_TRANSITION,
            "status",
            ChangeType.FIELD_CHANGED,
            [
                SeverityRule(_current_equals("at_risk", "on_hold"), Severity.HIGH),
                SeverityRule(_current_equals("completed"), Severity.MEDIUM),
                SeverityRule.default(Severity.INFO),
            ],
            _describe_transition(
                "Engagement Status Changed: {name}",
                'Engagement "{name}" status changed from {prev} to {curr}.',
                "status",
            ),
        ),
        _pattern(
            "engagement_created",
            EventCategory.MILESTONE_REACHED,
            "name",
            ChangeType.CREATED,
            [SeverityRule.default(Severity.MEDIUM)],
            _describe(
                "New Engagement Created: {name}",
                'A new engagement "{name}" has been created.',
            ),
        ),
        _pattern(
            "engagement_budget_threshold",
            EventCategory.COST_THRESHOLD,
            "budgetUtilization",
            ChangeType.FIELD_CHANGED,
            [
                SeverityRule(_current_at_least(95), Severity.CRITICAL),
                SeverityRule(_current_at_least(80), Severity.HIGH),
                SeverityRule(_current_at_least(60), Severity.MEDIUM),
                SeverityRule.default(Severity.INFO),
            ],
            describe_budget,
        ),
    ]


def _funding_patterns() -> list[EventPattern]:
    def describe_covenant(entity_name, previous, current, changed_fields) -> EventDescription:
        status = _display(resolve_path(current, "covenantStatus"))
        return EventDescription(
            title=f"Covenant Risk: {entity_name}",
            description=(
                f'Covenant compliance risk detected for "{entity_name}": status is {status}.'
            ),
        )

    return [
        _pattern(
            "disbursement_requested",
            EventCategory.APPROVAL_REQUIRED,
            "amount",
            ChangeType.CREATED,
            [
                SeverityRule(_current_above(500000), Severity.HIGH),
                SeverityRule.default(Severity.MEDIUM),
            ],
            _describe(
                "Disbursement Requested: {name}",
                'A disbursement has been requested for "{name}".',
            ),
        ),
        _pattern(
            "covenant_breach_risk",
            EventCategory.QUALITY_GATE,
            "covenantStatus",
            ChangeType.FIELD_CHANGED,
            [
                SeverityRule(_current_equals("breached"), Severity.CRITICAL),
                SeverityRule(_current_equals("at_risk"), Severity.HIGH),
                SeverityRule.default(Severity.MEDIUM),
            ],
            describe_covenant,
        ),
    ]


def _customer_hub_patterns() -> list[EventPattern]:
    return [
        _pattern(
            "customer_created",
            EventCategory.MILESTONE_REACHED,
            "name",
            ChangeType.CREATED,
            [SeverityRule.default(Severity.INFO)],
            _describe(
                "New Customer: {name}",
                'A new customer "{name}" has been created.',
            ),
        ),
        _pattern(
            "customer_project_assigned",
            EventCategory.TEAM_ASSIGNMENT,
            "projectIds",
            ChangeType.FIELD_CHANGED,
            [SeverityRule.default(Severity.INFO)],
            _describe(
                "Project Assigned to Customer: {name}",
                'A project has been assigned to customer "{name}".',
            ),
        ),
    ]


def default_patterns() -> dict[str, list[EventPattern]]:
    """内置模块事件规则"""
    return {
        "design_manager": _design_manager_patterns(),
        "inventory": _inventory_patterns(),
        "launch_pipeline": _launch_pipeline_patterns(),
        "engagements": _engagement_patterns(),
        "funding": _funding_patterns(),
        "customer_hub": _customer_hub_patterns(),
    }


class PatternRegistry:
    """模块 -> 事件规则的不可变注册表"""

    def __init__(
        self,
        patterns: Mapping[str, Iterable[EventPattern]],
        aliases: Mapping[str, str] | None = None,
    ) -> None:
        self._patterns: Mapping[str, tuple[EventPattern, ...]] = MappingProxyType(
            {module_id: tuple(items) for module_id, items in patterns.items()}
        )
        self._aliases: Mapping[str, str] = MappingProxyType(
            dict(aliases if aliases is not None else MODULE_ALIASES)
        )
        # event_type -> pattern，用于手动触发时补全 category/severity
        index: dict[str, EventPattern] = {}
        for items in self._patterns.values():
            for pattern in items:
                index.setdefault(pattern.event_type, pattern)
        self._by_event_type: Mapping[str, EventPattern] = MappingProxyType(index)

    @classmethod
    def default(cls) -> "PatternRegistry":
        return cls(default_patterns())

    def canonical_module(self, module_id: str) -> str:
        return self._aliases.get(module_id, module_id)

    def get_patterns_for_module(self, module_id: str) -> tuple[EventPattern, ...]:
        """查询模块的事件规则；未知模块返回空元组"""
        return self._patterns.get(self.canonical_module(module_id), ())

    def find_pattern(self, event_type: str) -> EventPattern | None:
        return self._by_event_type.get(event_type)

    def modules(self) -> list[str]:
        return sorted(self._patterns)

    def event_types(self, module_id: str) -> list[str]:
        return [p.event_type for p in self.get_patterns_for_module(module_id)]
