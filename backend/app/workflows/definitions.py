"""Built-in business workflows.

Each definition is a fixed chain of role steps; later steps only run when the
previous executed step succeeded.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from app.models.workflow import StepResult, WorkflowDefinition, WorkflowStepDef

if TYPE_CHECKING:
    from app.workflows.engine import WorkflowEngine


def _customer_facing(context: dict, step_results: list[StepResult]) -> bool:
    return context.get("customerImpact") is True


NEW_FEATURE = WorkflowDefinition(
    id="new-feature",
    name="New Feature Development",
    description="End-to-end workflow for developing and shipping a new feature",
    steps=[
        WorkflowStepDef(
            name="Feature Specification Review",
            role="cpo",
            task_template="Review and finalize feature specification for: {{featureName}}",
            priority="HIGH",
        ),
        WorkflowStepDef(
            name="Technical Feasibility Assessment",
            role="cto",
            task_template="Assess technical feasibility and create architecture plan for: {{featureName}}",
            priority="HIGH",
            condition="previous_step_succeeded",
        ),
        WorkflowStepDef(
            name="Infrastructure Planning",
            role="devops",
            task_template="Plan infrastructure and deployment pipeline for: {{featureName}}",
            condition="previous_step_succeeded",
        ),
        WorkflowStepDef(
            name="Test Plan Creation",
            role="qa",
            task_template="Create comprehensive test plan for: {{featureName}}",
            condition="previous_step_succeeded",
        ),
        WorkflowStepDef(
            name="Operational Readiness",
            role="coo",
            task_template="Ensure operational readiness and create launch plan for: {{featureName}}",
            condition="previous_step_succeeded",
        ),
    ],
)

VENDOR_EVALUATION = WorkflowDefinition(
    id="vendor-evaluation",
    name="Vendor Evaluation",
    description="Vendor evaluation across operations, finance, security and legal",
    steps=[
        WorkflowStepDef(
            name="Operational Assessment",
            role="coo",
            task_template="Evaluate vendor capabilities and operational fit for: {{vendorName}}",
            priority="HIGH",
        ),
        WorkflowStepDef(
            name="Financial Analysis",
            role="cfo",
            task_template="Analyze vendor pricing and financial impact for: {{vendorName}}",
            priority="HIGH",
            condition="previous_step_succeeded",
        ),
        WorkflowStepDef(
            name="Security Review",
            role="ciso",
            task_template="Conduct security assessment of vendor: {{vendorName}}",
            priority="HIGH",
            condition="previous_step_succeeded",
        ),
        WorkflowStepDef(
            name="Contract Review",
            role="clo",
            task_template="Review and draft contract terms for vendor: {{vendorName}}",
            priority="HIGH",
            condition="previous_step_succeeded",
        ),
    ],
)

NEW_HIRE_ONBOARDING = WorkflowDefinition(
    id="new-hire-onboarding",
    name="New Hire Onboarding",
    description="Onboarding workflow for new technical hires",
    steps=[
        WorkflowStepDef(
            name="HR Onboarding",
            role="chro",
            task_template="Complete HR onboarding checklist for: {{employeeName}} - {{role}}",
            priority="HIGH",
        ),
        WorkflowStepDef(
            name="Technical Setup",
            role="cto",
            task_template="Define technical onboarding requirements for: {{employeeName}} - {{role}}",
            priority="HIGH",
            condition="previous_step_succeeded",
        ),
        WorkflowStepDef(
            name="Access Provisioning",
            role="devops",
            task_template="Provision system access and development environment for: {{employeeName}}",
            priority="HIGH",
            condition="previous_step_succeeded",
        ),
        WorkflowStepDef(
            name="Security Training",
            role="ciso",
            task_template="Assign security training and access review for: {{employeeName}}",
            condition="previous_step_succeeded",
        ),
    ],
)

SECURITY_INCIDENT = WorkflowDefinition(
    id="security-incident",
    name="Security Incident Response",
    description="Coordinated response to security incidents",
    steps=[
        WorkflowStepDef(
            name="Incident Assessment",
            role="ciso",
            task_template="Assess and contain security incident: {{incidentDescription}}",
            priority="CRITICAL",
        ),
        WorkflowStepDef(
            name="Technical Remediation",
            role="cto",
            task_template="Implement technical remediation for: {{incidentDescription}}",
            priority="CRITICAL",
            condition="previous_step_succeeded",
        ),
        WorkflowStepDef(
            name="Legal Assessment",
            role="clo",
            task_template="Assess legal and regulatory implications of: {{incidentDescription}}",
            priority="CRITICAL",
            condition="previous_step_succeeded",
        ),
        WorkflowStepDef(
            name="Communication Plan",
            role="cmo",
            task_template="Prepare external communication plan for: {{incidentDescription}}",
            priority="HIGH",
            condition=_customer_facing,
        ),
    ],
)

DEFAULT_WORKFLOWS = [NEW_FEATURE, VENDOR_EVALUATION, NEW_HIRE_ONBOARDING, SECURITY_INCIDENT]


def register_default_workflows(engine: WorkflowEngine) -> list[WorkflowDefinition]:
    """Register every built-in workflow on `engine`."""
    return [engine.register(definition) for definition in DEFAULT_WORKFLOWS]
