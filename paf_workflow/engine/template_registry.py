"""Template Registry - storage and validation of workflow templates"""
from typing import List, Optional, Sequence

from ..domain.errors import InvalidTemplateError, TemplateNotFoundError
from ..domain.models import StepDefinition, WorkflowTemplate
from ..repositories.store import PafStore
from ..utils.logger import get_logger

logger = get_logger(__name__)


def validate_steps(steps: Sequence[StepDefinition]) -> List[StepDefinition]:
    """
    Check the step invariants and return the steps sorted by order

    Orders must be unique and contiguous starting at 1; at least one step
    is required.

    Raises:
        InvalidTemplateError: If any invariant is violated
    """
    if not steps:
        raise InvalidTemplateError("Template must define at least one approval step")

    orders = [s.order for s in steps]
    duplicates = sorted({o for o in orders if orders.count(o) > 1})
    if duplicates:
        raise InvalidTemplateError(
            "Template step orders must be unique",
            details={"duplicate_orders": duplicates}
        )

    expected = list(range(1, len(steps) + 1))
    if sorted(orders) != expected:
        raise InvalidTemplateError(
            "Template step orders must be contiguous starting at 1",
            details={"orders": sorted(orders), "expected": expected}
        )

    return sorted(steps, key=lambda s: s.order)


class TemplateRegistry:
    """Workflow templates: create, look up, list and replace"""

    def __init__(self, store: PafStore):
        self.store = store

    def create(self, template: WorkflowTemplate) -> WorkflowTemplate:
        """Validate and persist a new template"""
        template = template.model_copy(update={"steps": validate_steps(template.steps)})
        with self.store.transaction() as session:
            session.insert_template(template)

        logger.info(
            f"Created template {template.name} with {len(template.steps)} steps",
            extra={"template_id": template.template_id, "tenant_id": template.tenant_id}
        )
        return template

    def get(self, template_id: str) -> WorkflowTemplate:
        """Get template by ID or raise error"""
        template = self.store.get_template(template_id)
        if template is None:
            raise TemplateNotFoundError(f"Template {template_id} not found")
        return template

    def list(self, tenant_id: Optional[str] = None) -> List[WorkflowTemplate]:
        """Templates shared across districts plus those owned by the tenant"""
        return self.store.list_templates(tenant_id)

    def replace(self, template: WorkflowTemplate, expected_version: int) -> WorkflowTemplate:
        """Validate and persist an edited template"""
        template = template.model_copy(update={"steps": validate_steps(template.steps)})
        with self.store.transaction() as session:
            session.replace_template(template, expected_version)

        logger.info(
            f"Replaced template {template.name}",
            extra={"template_id": template.template_id, "tenant_id": template.tenant_id}
        )
        return template.model_copy(update={"version": expected_version + 1})
