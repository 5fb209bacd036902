"""TemplateCatalog -- 按事件类型索引的任务模板目录（静态、不可变）

内置模板覆盖 design manager 阶段流转/审批/采购、室内设计跟进、咨询业务、
库存补货/收货、产品上市与定价复核。可在启动时从 JSON 文件加载自定义模板，
与内置模板同 id 时覆盖内置模板。
"""

import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from types import MappingProxyType

import structlog

from ..models.enums import AssignmentStrategy, ConditionOperator, TaskPriority
from ..models.template import ChecklistItemTemplate, TaskTemplate, TriggerCondition

log = structlog.get_logger()


def _item(
    item_id: str,
    title: str,
    description: str,
    is_required: bool,
    order: int,
    verification_criteria: str | None = None,
) -> ChecklistItemTemplate:
    return ChecklistItemTemplate(
        id=item_id,
        title=title,
        description=description,
        is_required=is_required,
        order=order,
        verification_criteria=verification_criteria,
    )


def _when(field: str, operator: ConditionOperator, value) -> TriggerCondition:
    return TriggerCondition(field=field, operator=operator, value=value)


def _stage_transition(
    template_id: str,
    name: str,
    description: str,
    from_stage: str,
    to_stage: str,
    title: str,
    body: str,
    priority: TaskPriority,
    due_days: int,
    items: list[ChecklistItemTemplate],
    strategy: AssignmentStrategy,
) -> TaskTemplate:
    return TaskTemplate(
        id=template_id,
        name=name,
        description=description,
        category="stage_transition",
        trigger_events=["design_item_stage_changed"],
        trigger_conditions=[
            _when("currentState.currentStage", ConditionOperator.EQUALS, to_stage),
            _when("previousState.currentStage", ConditionOperator.EQUALS, from_stage),
        ],
        default_title=title,
        default_description=body,
        default_priority=priority,
        default_due_days=due_days,
        checklist_items=items,
        assignment_strategy=strategy,
        source_module="design_manager",
        subsidiary="finishes",
    )


def _design_manager_templates() -> list[TaskTemplate]:
    return [
        _stage_transition(
            "dm_concept_to_preliminary",
            "Concept to Preliminary Review",
            "Tasks required when moving design from concept to preliminary stage",
            "concept",
            "preliminary",
            "Complete Preliminary Design Requirements: {entityName}",
            "Ensure all preliminary design requirements are met before proceeding "
            "to technical design.",
            TaskPriority.MEDIUM,
            5,
            [
                _item("1", "Overall Dimensions Defined", "Confirm all major dimensions are documented", True, 1, "Dimensions recorded in design file"),  # noqa: E501
                _item("2", "3D Model Created", "Create initial 3D model with basic geometry", True, 2, "3D model file uploaded"),  # noqa: E501
                _item("3", "Material Selection", "Select primary materials for the design", True, 3, "Materials specified in design parameters"),  # noqa: E501
                _item("4", "Client Brief Review", "Review against original client requirements", True, 4, "Client requirements checklist completed"),  # noqa: E501
                _item("5", "Initial Cost Estimate", "Prepare preliminary cost estimate", False, 5, "Cost estimate within 20% accuracy"),  # noqa: E501
            ],
            AssignmentStrategy.CREATOR,
        ),
        _stage_transition(
            "dm_preliminary_to_technical",
            "Preliminary to Technical Review",
            "Tasks required when moving design from preliminary to technical stage",
            "preliminary",
            "technical",
            "Complete Technical Design Requirements: {entityName}",
            "Ensure all technical specifications are complete and verified.",
            TaskPriority.HIGH,
            7,
            [
                _item("1", "Production Drawings Complete", "All shop drawings with dimensions and details", True, 1, "Drawings reviewed and approved"),  # noqa: E501
                _item("2", "Material Specifications Finalized", "All materials specified with SKUs/part numbers", True, 2, "Materials linked to inventory"),  # noqa: E501
                _item("3", "Hardware Schedule Complete", "All hardware items listed with quantities", True, 3, "Hardware list verified"),  # noqa: E501
                _item("4", "Joinery Details Documented", "All joinery types and locations specified", True, 4, "Joinery details in drawings"),  # noqa: E501
                _item("5", "Tolerances Defined", "Manufacturing tolerances specified", True, 5, "Tolerance specifications documented"),  # noqa: E501
                _item("6", "Assembly Instructions Draft", "Initial assembly sequence documented", False, 6, "Assembly notes added"),  # noqa: E501
                _item("7", "Internal Design Review", "Design reviewed by senior designer", True, 7, "Review approval recorded"),  # noqa: E501
            ],
            AssignmentStrategy.CREATOR,
        ),
        _stage_transition(
            "dm_technical_to_preproduction",
            "Technical to Pre-Production Review",
            "Tasks required when preparing design for pre-production",
            "technical",
            "pre-production",
            "Complete Pre-Production Checklist: {entityName}",
            "Verify manufacturing readiness and material availability.",
            TaskPriority.HIGH,
            5,
            [
                _item("1", "Manufacturing Review Complete", "Workshop has reviewed and approved design", True, 1, "Manufacturing review sign-off"),  # noqa: E501
                _item("2", "Material Availability Confirmed", "All materials in stock or ordered", True, 2, "Stock check completed"),  # noqa: E501
                _item("3", "Hardware Availability Confirmed", "All hardware items available", True, 3, "Hardware stock verified"),  # noqa: E501
                _item("4", "CNC Programs Generated", "Cutlist and CNC files prepared", False, 4, "CNC files uploaded"),  # noqa: E501
                _item("5", "Quality Criteria Defined", "Acceptance criteria documented", True, 5, "QC checklist created"),  # noqa: E501
                _item("6", "Cost Validation Complete", "Final costing approved", True, 6, "Cost within budget"),  # noqa: E501
                _item("7", "Client Approval Obtained", "Client has approved final design", True, 7, "Client approval documented"),  # noqa: E501
            ],
            AssignmentStrategy.PROJECT_LEAD,
        ),
        _stage_transition(
            "dm_preproduction_to_ready",
            "Production Ready Final Check",
            "Final checks before releasing to production",
            "pre-production",
            "production-ready",
            "Final Production Release Checklist: {entityName}",
            "Complete final verification before production begins.",
            TaskPriority.URGENT,
            2,
            [
                _item("1", "All RAG Items Green", "All RAG status items are green or N/A", True, 1, "RAG dashboard shows all green"),  # noqa: E501
                _item("2", "Production Schedule Confirmed", "Workshop has capacity and timeline", True, 2, "Production slot allocated"),  # noqa: E501
                _item("3", "Material Reserved", "Materials reserved for this job", True, 3, "Stock allocation confirmed"),  # noqa: E501
                _item("4", "Work Order Created", "Production work order generated", True, 4, "Work order number assigned"),  # noqa: E501
                _item("5", "Final Sign-Off", "Project manager approval", True, 5, "PM signature obtained"),  # noqa: E501
            ],
            AssignmentStrategy.PROJECT_LEAD,
        ),
        TaskTemplate(
            id="dm_approval_requested",
            name="Design Approval Required",
            description="Tasks when design approval is requested",
            category="approval",
            trigger_events=["design_item_approval_requested"],
            default_title="Review and Approve Design: {entityName}",
            default_description="Review the design submission and provide approval or feedback.",
            default_priority=TaskPriority.HIGH,
            default_due_days=3,
            checklist_items=[
                _item("1", "Review Design Files", "Review all uploaded design documents", True, 1),
                _item("2", "Check Specifications", "Verify material and hardware specifications", True, 2),  # noqa: E501
                _item("3", "Validate Cost Estimate", "Review and validate costing", True, 3),
                _item("4", "Provide Feedback", "Document any required changes", False, 4),
                _item("5", "Record Decision", "Approve or request revision", True, 5),
            ],
            assignment_strategy=AssignmentStrategy.SPECIFIC_ROLE,
            assign_to_role="design_approver",
            source_module="design_manager",
            subsidiary="finishes",
        ),
        TaskTemplate(
            id="dm_procurement_started",
            name="Procurement Process Started",
            description="Tasks when design enters procurement phase",
            category="procurement",
            trigger_events=["design_item_procurement_started"],
            trigger_conditions=[
                _when("currentState.sourcingType", ConditionOperator.EQUALS, "PROCURED"),
            ],
            default_title="Complete Procurement Requirements: {entityName}",
            default_description="Manage the procurement process for special/procured items.",
            default_priority=TaskPriority.HIGH,
            default_due_days=14,
            checklist_items=[
                _item("1", "Identify Items to Procure", "List all items requiring procurement", True, 1),  # noqa: E501
                _item("2", "Obtain Quotes", "Get quotes from at least 2 suppliers", True, 2),
                _item("3", "Calculate Landed Cost", "Include shipping, customs, duties", True, 3),
                _item("4", "Get Procurement Approval", "Obtain approval for purchase", True, 4),
                _item("5", "Place Orders", "Submit purchase orders", True, 5),
                _item("6", "Track Shipments", "Monitor delivery status", True, 6),
                _item("7", "Receive and Inspect", "Verify items received match order", True, 7),
            ],
            assignment_strategy=AssignmentStrategy.SPECIFIC_ROLE,
            assign_to_role="procurement_officer",
            source_module="design_manager",
            subsidiary="finishes",
        ),
    ]


def _interior_design_templates() -> list[TaskTemplate]:
    """室内设计跟进模板（由应用代码手动触发的事件类型）"""
    return [
        TaskTemplate(
            id="id_consultation_prep",
            name="Interior Design Consultation Preparation",
            description="Prepare for client design consultation",
            category="client_engagement",
            trigger_events=["client_consultation_scheduled"],
            trigger_conditions=[
                _when(
                    "currentState.consultationType",
                    ConditionOperator.IN,
                    ["initial", "follow-up"],
                ),
            ],
            default_title="Prepare for {{entityName}} Consultation",
            default_description="Prepare materials and concepts for client consultation",
            default_priority=TaskPriority.HIGH,
            default_due_days=3,
            checklist_items=[
                _item("1", "Review Client Brief and Requirements", "Study client preferences, budget, timeline, and scope", True, 1, "Client brief documented and understood"),  # noqa: E501
                _item("2", "Research Design Inspiration", "Gather inspiration images matching client style preferences", True, 2, "Mood board created with 10+ images"),  # noqa: E501
                _item("3", "Prepare Initial Concept Sketches", "Create 2-3 design direction concepts", True, 3, "Concepts prepared in CAD"),  # noqa: E501
                _item("4", "Gather Material Samples", "Assemble relevant material and finish samples", True, 4, "Sample board prepared"),  # noqa: E501
                _item("5", "Prepare Budget Estimate", "Create preliminary cost estimate", False, 5, "Budget range documented"),  # noqa: E501
                _item("6", "Prepare Consultation Agenda", "Outline topics and questions for consultation", True, 6, "Agenda sent to client 24hrs prior"),  # noqa: E501
            ],
            assignment_strategy=AssignmentStrategy.SPECIFIC_ROLE,
            assign_to_role="interior_designer",
            source_module="design_manager",
            subsidiary="finishes",
        ),
        TaskTemplate(
            id="id_space_planning",
            name="Space Planning Analysis",
            description="Analyze space and create functional layout",
            category="design_analysis",
            trigger_events=["space_planning_requested"],
            default_title="Space Planning for {{entityName}}",
            default_description="Analyze space constraints and create optimal layout",
            default_priority=TaskPriority.HIGH,
            default_due_days=5,
            checklist_items=[
                _item("1", "Site Measurement Verification", "Verify all dimensions and document existing conditions", True, 1, "Accurate measurements documented with photos"),  # noqa: E501
                _item("2", "Identify Space Constraints", "Document doors, windows, utilities, structural elements", True, 2, "Constraints marked on floor plan"),  # noqa: E501
                _item("3", "Analyze Traffic Flow", "Map circulation paths and access requirements", True, 3, "Traffic flow diagram created"),  # noqa: E501
                _item("4", "Review Building Codes", "Check clearance, egress, and accessibility requirements", True, 4, "Code compliance verified"),  # noqa: E501
                _item("5", "Create Space Plan Options", "Develop 2-3 layout alternatives", True, 5, "2+ layout options in CAD"),  # noqa: E501
                _item("6", "Document Space Plan Rationale", "Explain design decisions and trade-offs", True, 6, "Rationale documented for each option"),  # noqa: E501
            ],
            assignment_strategy=AssignmentStrategy.SPECIFIC_ROLE,
            assign_to_role="space_planner",
            source_module="design_manager",
            subsidiary="finishes",
        ),
        TaskTemplate(
            id="id_feedback_processing",
            name="Client Feedback Review and Action",
            description="Process client feedback and implement changes",
            category="revision",
            trigger_events=["client_feedback_received"],
            trigger_conditions=[
                _when(
                    "currentState.feedbackType",
                    ConditionOperator.EQUALS,
                    "revision-requested",
                ),
            ],
            default_title="Process Client Feedback for {{entityName}}",
            default_description="Review feedback and implement requested changes",
            default_priority=TaskPriority.HIGH,
            default_due_days=5,
            checklist_items=[
                _item("1", "Document All Feedback Points", "Create comprehensive list of feedback items", True, 1, "Feedback list documented"),  # noqa: E501
                _item("2", "Clarify Ambiguous Feedback", "Contact client for clarification if needed", True, 2, "All feedback understood"),  # noqa: E501
                _item("3", "Prioritize Revision Tasks", "Categorize by importance and complexity", True, 3, "Priority list created"),  # noqa: E501
                _item("4", "Implement Design Changes", "Make requested modifications to design", True, 4, "Changes implemented in design files"),  # noqa: E501
                _item("5", "Update Documentation", "Revise all affected drawings and specs", True, 5, "Documentation updated"),  # noqa: E501
                _item("6", "Prepare Revision Presentation", "Document changes made in response to feedback", True, 6, "Revision summary prepared"),  # noqa: E501
            ],
            assignment_strategy=AssignmentStrategy.SPECIFIC_ROLE,
            assign_to_role="interior_designer",
            source_module="design_manager",
            subsidiary="finishes",
        ),
        TaskTemplate(
            id="id_installation_coordination",
            name="Installation Coordination",
            description="Coordinate on-site installation and quality verification",
            category="installation",
            trigger_events=["installation_scheduled"],
            default_title="Coordinate Installation for {{entityName}}",
            default_description="Manage on-site installation and quality control",
            default_priority=TaskPriority.URGENT,
            default_due_days=2,
            checklist_items=[
                _item("1", "Verify Site Readiness", "Confirm site is prepared and accessible", True, 1, "Site inspection completed"),  # noqa: E501
                _item("2", "Coordinate Installation Team", "Brief team on project requirements and schedule", True, 2, "Team briefing held"),  # noqa: E501
                _item("3", "Verify Material Delivery", "Confirm all materials delivered and inspected", True, 3, "Delivery checklist completed"),  # noqa: E501
                _item("4", "Monitor Installation Progress", "Conduct quality checks during installation", True, 4, "Daily progress photos documented"),  # noqa: E501
                _item("5", "Document Site Conditions", "Photo document before, during, and after installation", True, 5, "Photo set uploaded"),  # noqa: E501
                _item("6", "Create Punch List", "Document any defects or incomplete items", True, 6, "Punch list created in system"),  # noqa: E501
                _item("7", "Conduct Client Walkthrough", "Walk through installed work with client", True, 7, "Client walkthrough completed"),  # noqa: E501
            ],
            assignment_strategy=AssignmentStrategy.SPECIFIC_ROLE,
            assign_to_role="installation_coordinator",
            source_module="design_manager",
            subsidiary="finishes",
        ),
        TaskTemplate(
            id="id_post_installation",
            name="Post-Installation Follow-up",
            description="Follow up with client after installation",
            category="client_engagement",
            trigger_events=["post_installation_followup"],
            default_title="Follow-up for {{entityName}}",
            default_description="Conduct post-installation follow-up and satisfaction survey",
            default_priority=TaskPriority.MEDIUM,
            default_due_days=7,
            checklist_items=[
                _item("1", "Schedule Follow-up Visit", "Arrange visit or call with client", True, 1, "Appointment scheduled"),  # noqa: E501
                _item("2", "Conduct Satisfaction Survey", "Gather feedback on project experience", True, 2, "Survey completed"),  # noqa: E501
                _item("3", "Address Outstanding Issues", "Resolve any remaining concerns from punch list", True, 3, "All items addressed"),  # noqa: E501
                _item("4", "Provide Care Instructions", "Supply maintenance and care documentation", True, 4, "Care guide provided"),  # noqa: E501
                _item("5", "Request Testimonial", "Ask for review or testimonial if appropriate", False, 5, "Testimonial requested"),  # noqa: E501
                _item("6", "Document Lessons Learned", "Record insights for future projects", False, 6, "Lessons documented"),  # noqa: E501
            ],
            assignment_strategy=AssignmentStrategy.SPECIFIC_ROLE,
            assign_to_role="client_liaison",
            source_module="design_manager",
            subsidiary="finishes",
        ),
    ]


def _advisory_templates() -> list[TaskTemplate]:
    return [
        TaskTemplate(
            id="adv_engagement_created",
            name="New Engagement Setup",
            description="Tasks for setting up a new client engagement",
            category="engagement_setup",
            trigger_events=["engagement_created"],
            default_title="Complete Engagement Setup: {entityName}",
            default_description="Set up all required elements for the new engagement.",
            default_priority=TaskPriority.HIGH,
            default_due_days=7,
            checklist_items=[
                _item("1", "Client Onboarding", "Complete client onboarding documentation", True, 1),
                _item("2", "Team Assignment", "Assign engagement team members", True, 2),
                _item("3", "Kickoff Meeting", "Schedule and conduct kickoff meeting", True, 3),
                _item("4", "Scope Documentation", "Document engagement scope and deliverables", True, 4),  # noqa: E501
                _item("5", "Timeline Setup", "Establish project timeline and milestones", True, 5),
                _item("6", "Budget Setup", "Set up engagement budget tracking", True, 6),
                _item("7", "Reporting Schedule", "Define reporting requirements and schedule", False, 7),  # noqa: E501
            ],
            assignment_strategy=AssignmentStrategy.SPECIFIC_ROLE,
            assign_to_role="engagement_lead",
            source_module="engagements",
            subsidiary="advisory",
        ),
        TaskTemplate(
            id="adv_disbursement_requested",
            name="Disbursement Request Review",
            description="Tasks for processing disbursement requests",
            category="financial",
            trigger_events=["disbursement_requested"],
            default_title="Process Disbursement Request: {entityName}",
            default_description="Review and process the disbursement request.",
            default_priority=TaskPriority.HIGH,
            default_due_days=5,
            checklist_items=[
                _item("1", "Verify Documentation", "Ensure all required documents are attached", True, 1),  # noqa: E501
                _item("2", "Budget Check", "Verify funds available in budget", True, 2),
                _item("3", "Compliance Review", "Check against funding agreement terms", True, 3),
                _item("4", "Technical Review", "Verify work completed meets standards", True, 4),
                _item("5", "Approval Chain", "Obtain required approvals", True, 5),
                _item("6", "Process Payment", "Execute disbursement", True, 6),
                _item("7", "Update Records", "Update financial records and funder portal", True, 7),
            ],
            assignment_strategy=AssignmentStrategy.SPECIFIC_ROLE,
            assign_to_role="finance_officer",
            source_module="funding",
            subsidiary="advisory",
        ),
        TaskTemplate(
            id="adv_report_due",
            name="Report Preparation",
            description="Tasks for preparing due reports",
            category="reporting",
            trigger_events=["report_due"],
            default_title="Prepare and Submit Report: {entityName}",
            default_description="Prepare the required report for submission.",
            default_priority=TaskPriority.HIGH,
            default_due_days=7,
            checklist_items=[
                _item("1", "Gather Data", "Collect all required data and metrics", True, 1),
                _item("2", "Draft Report", "Prepare initial report draft", True, 2),
                _item("3", "Internal Review", "Get internal review and feedback", True, 3),
                _item("4", "Incorporate Feedback", "Update report based on feedback", True, 4),
                _item("5", "Final Approval", "Obtain final approval from engagement lead", True, 5),
                _item("6", "Submit Report", "Submit to funder/client", True, 6),
                _item("7", "File Documentation", "Archive report and confirmation", True, 7),
            ],
            assignment_strategy=AssignmentStrategy.SPECIFIC_ROLE,
            assign_to_role="project_manager",
            source_module="reporting",
            subsidiary="advisory",
        ),
    ]


def _inventory_templates() -> list[TaskTemplate]:
    return [
        TaskTemplate(
            id="inv_stock_low_reorder",
            name="Low Stock Reorder Process",
            description="Tasks when stock falls below reorder point",
            category="reorder",
            trigger_events=["stock_low", "stock_reorder_required"],
            default_title="Reorder Stock: {entityName}",
            default_description="Stock level is low. Initiate reorder process.",
            default_priority=TaskPriority.HIGH,
            default_due_days=3,
            checklist_items=[
                _item("1", "Verify Current Stock Level", "Confirm actual stock matches system records", True, 1, "Physical count matches system"),  # noqa: E501
                _item("2", "Check Pending Orders", "Verify no pending orders already placed", True, 2, "No duplicate orders"),  # noqa: E501
                _item("3", "Get Supplier Quotes", "Request quotes from approved suppliers", True, 3, "Minimum 2 quotes obtained"),  # noqa: E501
                _item("4", "Create Purchase Order", "Raise PO for the reorder quantity", True, 4, "PO number assigned"),  # noqa: E501
                _item("5", "Confirm Lead Time", "Verify delivery timeline with supplier", True, 5, "Expected delivery date recorded"),  # noqa: E501
                _item("6", "Notify Production", "Alert production team of potential delay if critical", False, 6, "Production team informed"),  # noqa: E501
            ],
            assignment_strategy=AssignmentStrategy.SPECIFIC_ROLE,
            assign_to_role="procurement_officer",
            source_module="inventory",
            subsidiary="finishes",
        ),
        TaskTemplate(
            id="inv_material_received",
            name="Material Receiving Process",
            description="Tasks when material is received into stock",
            category="receiving",
            trigger_events=["material_received"],
            default_title="Process Received Material: {entityName}",
            default_description="New stock received. Complete receiving process.",
            default_priority=TaskPriority.MEDIUM,
            default_due_days=1,
            checklist_items=[
                _item("1", "Verify Delivery Against PO", "Check quantities match purchase order", True, 1, "Quantities verified"),  # noqa: E501
                _item("2", "Inspect Quality", "Inspect materials for damage or defects", True, 2, "Quality inspection passed"),  # noqa: E501
                _item("3", "Update Stock Levels", "Record received quantities in inventory system", True, 3, "System updated"),  # noqa: E501
                _item("4", "Store Materials", "Place materials in designated warehouse location", True, 4, "Location recorded"),  # noqa: E501
                _item("5", "Update Cost Records", "Record actual costs and update average cost", False, 5, "Cost records updated"),  # noqa: E501
            ],
            assignment_strategy=AssignmentStrategy.SPECIFIC_ROLE,
            assign_to_role="warehouse_manager",
            source_module="inventory",
            subsidiary="finishes",
        ),
    ]


def _launch_pipeline_templates() -> list[TaskTemplate]:
    return [
        TaskTemplate(
            id="lp_product_launch_prep",
            name="Product Launch Preparation",
            description="Tasks when product reaches ready-to-launch stage",
            category="launch",
            trigger_events=["product_stage_changed"],
            trigger_conditions=[
                _when("currentState.stage", ConditionOperator.EQUALS, "ready_to_launch"),
            ],
            default_title="Prepare Launch: {entityName}",
            default_description="Product is ready for launch. Complete launch checklist.",
            default_priority=TaskPriority.HIGH,
            default_due_days=5,
            checklist_items=[
                _item("1", "Final Product Photography", "Ensure all product images are shot and edited", True, 1, "Images uploaded to DAM"),  # noqa: E501
                _item("2", "Product Description Copy", "Write and approve product descriptions", True, 2, "Copy approved by marketing"),  # noqa: E501
                _item("3", "Pricing Finalized", "Confirm retail and wholesale pricing", True, 3, "Pricing sheet signed off"),  # noqa: E501
                _item("4", "Inventory Stocked", "Verify launch inventory is in warehouse", True, 4, "Stock count confirmed"),  # noqa: E501
                _item("5", "Storefront Listing Prepared", "Create or update storefront product listing", True, 5, "Listing in draft state"),  # noqa: E501
                _item("6", "Marketing Assets Ready", "Social media and email assets prepared", False, 6, "Assets reviewed"),  # noqa: E501
                _item("7", "Launch Date Confirmed", "Set and communicate launch date", True, 7, "Date communicated to team"),  # noqa: E501
            ],
            assignment_strategy=AssignmentStrategy.SPECIFIC_ROLE,
            assign_to_role="product_manager",
            source_module="launch_pipeline",
            subsidiary="finishes",
        ),
        TaskTemplate(
            id="lp_product_pricing_review",
            name="Product Pricing Review",
            description="Tasks when product pricing is significantly updated",
            category="pricing",
            trigger_events=["product_pricing_updated"],
            default_title="Review Pricing Update: {entityName}",
            default_description="Product pricing has been updated. Review and ensure consistency.",
            default_priority=TaskPriority.MEDIUM,
            default_due_days=3,
            checklist_items=[
                _item("1", "Verify Margin Analysis", "Check that margins meet minimum thresholds", True, 1, "Margins above target"),  # noqa: E501
                _item("2", "Update Sales Channels", "Sync pricing to all sales channels", True, 2, "All channels updated"),  # noqa: E501
                _item("3", "Notify Sales Team", "Inform sales team of pricing change", True, 3, "Team notified"),  # noqa: E501
                _item("4", "Update Marketing Materials", "Revise any materials showing old pricing", False, 4, "Materials updated"),  # noqa: E501
            ],
            assignment_strategy=AssignmentStrategy.SPECIFIC_ROLE,
            assign_to_role="product_manager",
            source_module="launch_pipeline",
            subsidiary="finishes",
        ),
    ]


def default_templates() -> list[TaskTemplate]:
    """全部内置模板"""
    return [
        *_design_manager_templates(),
        *_interior_design_templates(),
        *_advisory_templates(),
        *_inventory_templates(),
        *_launch_pipeline_templates(),
    ]


class TemplateCatalog:
    """任务模板目录 -- 启动时构建，运行期间不变"""

    def __init__(self, templates: Iterable[TaskTemplate]) -> None:
        by_id: dict[str, TaskTemplate] = {}
        for template in templates:
            # 同 id 后者覆盖前者
            by_id[template.id] = template
        self._by_id: Mapping[str, TaskTemplate] = MappingProxyType(by_id)

        by_event: dict[str, list[TaskTemplate]] = {}
        for template in by_id.values():
            for event_type in template.trigger_events:
                by_event.setdefault(event_type, []).append(template)
        self._by_event_type: Mapping[str, tuple[TaskTemplate, ...]] = MappingProxyType(
            {event_type: tuple(items) for event_type, items in by_event.items()}
        )

    @classmethod
    def default(cls) -> "TemplateCatalog":
        return cls(default_templates())

    def with_templates(self, extra: Iterable[TaskTemplate]) -> "TemplateCatalog":
        """返回合并了额外模板的新目录（同 id 覆盖内置模板）"""
        return TemplateCatalog([*self._by_id.values(), *extra])

    def get_templates_for_event_type(self, event_type: str) -> list[TaskTemplate]:
        """查询事件类型对应的启用模板（按注册顺序）"""
        return [t for t in self._by_event_type.get(event_type, ()) if t.is_active]

    def get_template(self, template_id: str) -> TaskTemplate | None:
        return self._by_id.get(template_id)

    def list_all(self) -> list[TaskTemplate]:
        return list(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)


def load_templates_file(path: str | Path) -> list[TaskTemplate]:
    """从 JSON 文件加载自定义模板

    文件内容为模板对象数组（字段名与 TaskTemplate 一致）。

    Raises:
        FileNotFoundError: 文件不存在
        ValueError: JSON 格式错误或模板校验失败
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON array of templates")
    templates = [TaskTemplate.model_validate(item) for item in raw]
    log.info("custom_templates_loaded", path=str(path), count=len(templates))
    return templates
