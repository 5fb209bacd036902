"""模块配置 -- 各业务模块的子公司归属、事件类型与默认订阅集合"""

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _first_text(data: Mapping[str, Any], fields: tuple[str, ...]) -> str | None:
    for name in fields:
        value = data.get(name)
        if isinstance(value, str | int | float) and not isinstance(value, bool):
            text = str(value).strip()
            if text:
                return text
    return None


class CollectionBinding(BaseModel):
    """单个被订阅集合的描述

    collection 为路径模式（如 designProjects/{projectId}/designItems），
    其余字段说明如何从文档中取实体名称、项目关联和操作者。
    """

    model_config = ConfigDict(frozen=True)

    collection: str = Field(description="集合路径模式")
    entity_type: str = Field(description="事件中的 entity_type")
    name_fields: tuple[str, ...] = Field(default=("name",))
    project_id_param: str | None = Field(default=None, description="取项目 ID 的路径参数")
    project_id_fields: tuple[str, ...] = Field(default=("projectId",))
    project_name_fields: tuple[str, ...] = Field(default=("projectName", "projectCode"))
    actor_fields: tuple[str, ...] = Field(default=("updatedBy", "createdBy"))
    actor_name_fields: tuple[str, ...] = Field(default=("updatedByName", "createdByName"))

    def entity_name(self, document_id: str, data: Mapping[str, Any]) -> str:
        return _first_text(data, self.name_fields) or document_id

    def project(
        self,
        data: Mapping[str, Any],
        path_params: Mapping[str, str],
    ) -> tuple[str | None, str | None]:
        project_id = None
        if self.project_id_param:
            project_id = path_params.get(self.project_id_param)
        if project_id is None:
            project_id = _first_text(data, self.project_id_fields)
        project_name = _first_text(data, self.project_name_fields)
        if project_id is not None and project_name is None:
            project_name = project_id
        return project_id, project_name

    def actor(self, data: Mapping[str, Any]) -> tuple[str | None, str | None]:
        return _first_text(data, self.actor_fields), _first_text(data, self.actor_name_fields)


class ModuleConfig(BaseModel):
    """业务模块配置"""

    model_config = ConfigDict(frozen=True)

    id: str
    subsidiary: str
    name: str
    description: str = Field(default="")
    event_types: tuple[str, ...] = Field(default=())
    enabled: bool = Field(default=True)
    collections: tuple[CollectionBinding, ...] = Field(default=())

    def binding_for(self, collection: str) -> CollectionBinding | None:
        for binding in self.collections:
            if binding.collection == collection:
                return binding
        return None


MODULE_CONFIGS: Mapping[str, ModuleConfig] = MappingProxyType(
    {
        "design_manager": ModuleConfig(
            id="design_manager",
            subsidiary="finishes",
            name="Design Manager",
            description="Interior design and custom furniture project management",
            event_types=(
                "design_item_created",
                "design_item_stage_changed",
                "design_item_approval_requested",
                "design_item_rag_updated",
                "design_item_procurement_started",
                "client_consultation_scheduled",
                "space_planning_requested",
                "client_feedback_received",
                "installation_scheduled",
                "post_installation_followup",
            ),
            collections=(
                CollectionBinding(
                    collection="designProjects/{projectId}/designItems",
                    entity_type="designItems",
                    name_fields=("name", "itemCode"),
                    project_id_param="projectId",
                    project_name_fields=("projectCode", "projectName"),
                ),
            ),
        ),
        "launch_pipeline": ModuleConfig(
            id="launch_pipeline",
            subsidiary="finishes",
            name="Launch Pipeline",
            description="Product launch and market readiness",
            event_types=("product_created", "product_stage_changed", "product_pricing_updated"),
            collections=(
                CollectionBinding(collection="launchProducts", entity_type="launchProducts"),
            ),
        ),
        "inventory": ModuleConfig(
            id="inventory",
            subsidiary="finishes",
            name="Inventory",
            description="Stock and material management",
            event_types=("stock_low", "stock_reorder_required", "material_received"),
            collections=(
                CollectionBinding(
                    collection="inventoryItems",
                    entity_type="inventoryItems",
                    name_fields=("name", "sku"),
                ),
            ),
        ),
        "customer_hub": ModuleConfig(
            id="customer_hub",
            subsidiary="finishes",
            name="Customer Hub",
            description="Customer relationship management",
            event_types=("customer_created", "customer_project_assigned"),
            collections=(
                CollectionBinding(
                    collection="customers",
                    entity_type="customers",
                    name_fields=("name", "companyName", "code"),
                ),
            ),
        ),
        "engagements": ModuleConfig(
            id="engagements",
            subsidiary="advisory",
            name="Engagements",
            description="Client engagement management",
            event_types=(
                "engagement_created",
                "engagement_status_changed",
                "engagement_budget_threshold",
            ),
            collections=(
                CollectionBinding(collection="engagements", entity_type="engagements"),
            ),
        ),
        "funding": ModuleConfig(
            id="funding",
            subsidiary="advisory",
            name="Funding Management",
            description="Funding sources and disbursements",
            event_types=("disbursement_requested", "covenant_breach_risk"),
            collections=(
                CollectionBinding(
                    collection="engagements/{engagementId}/fundingSources",
                    entity_type="fundingSources",
                    project_id_param="engagementId",
                ),
                CollectionBinding(
                    collection=(
                        "engagements/{engagementId}/fundingSources/"
                        "{fundingSourceId}/disbursements"
                    ),
                    entity_type="disbursements",
                    name_fields=("reference", "name"),
                    project_id_param="engagementId",
                ),
            ),
        ),
        "reporting": ModuleConfig(
            id="reporting",
            subsidiary="advisory",
            name="Reporting",
            description="Compliance and funder reporting",
            event_types=("report_due",),
        ),
    }
)
