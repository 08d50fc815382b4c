"""Workflow Service - Workflow template access and validation"""
from typing import Any, Dict, List, Union

from pydantic import ValidationError as PydanticValidationError

from ..domain.models import WorkflowTemplate
from ..domain.enums import TriggerType
from ..domain.errors import WorkflowValidationError
from ..repositories.workflow_repo import WorkflowRepository
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WorkflowService:
    """Service for workflow template operations"""

    def __init__(self):
        self.repo = WorkflowRepository()

    def list_active_workflows(self) -> List[WorkflowTemplate]:
        """List active workflows"""
        return self.repo.list_active_workflows()

    def get_workflow(self, workflow_id: str) -> WorkflowTemplate:
        """Get an active workflow by ID"""
        return self.repo.get_active_workflow_or_raise(workflow_id)

    def save_workflow(self, definition: Union[WorkflowTemplate, Dict[str, Any]]) -> WorkflowTemplate:
        """
        Validate and store a workflow template

        Raises:
            WorkflowValidationError: If the template has validation errors
        """
        result = self.validate_definition(definition)
        if not result["is_valid"]:
            raise WorkflowValidationError(
                "Workflow definition is invalid",
                details={"errors": result["errors"], "warnings": result["warnings"]}
            )

        template = definition if isinstance(definition, WorkflowTemplate) else WorkflowTemplate.model_validate(definition)
        for warning in result["warnings"]:
            logger.warning(warning["message"], extra={"workflow_id": template.workflow_id})
        return self.repo.save_workflow(template)

    def validate_definition(self, definition: Union[WorkflowTemplate, Dict[str, Any]]) -> Dict[str, Any]:
        """
        Validate workflow template

        Returns validation result with errors and warnings
        """
        errors: List[Dict[str, Any]] = []
        warnings: List[Dict[str, Any]] = []

        if isinstance(definition, WorkflowTemplate):
            template = definition
        else:
            try:
                template = WorkflowTemplate.model_validate(definition)
            except PydanticValidationError as e:
                for err in e.errors():
                    errors.append({
                        "type": "INVALID_FIELD",
                        "message": err["msg"],
                        "path": ".".join(str(p) for p in err["loc"])
                    })
                return {"is_valid": False, "errors": errors, "warnings": warnings}

        if not template.steps:
            errors.append({
                "type": "EMPTY_STEPS",
                "message": "Workflow must have at least one step",
                "path": "steps"
            })

        step_ids = set()
        step_orders = set()
        for i, step in enumerate(template.steps):
            if step.step_id in step_ids:
                errors.append({
                    "type": "DUPLICATE_STEP_ID",
                    "message": f"Duplicate step_id: {step.step_id}",
                    "path": f"steps[{i}].step_id"
                })
            step_ids.add(step.step_id)

            if step.step_order in step_orders:
                errors.append({
                    "type": "DUPLICATE_STEP_ORDER",
                    "message": f"Duplicate step_order {step.step_order} on step {step.step_id}",
                    "path": f"steps[{i}].step_order"
                })
            step_orders.add(step.step_order)

            if step.timeout_hours is not None and step.timeout_hours < 1:
                errors.append({
                    "type": "INVALID_TIMEOUT",
                    "message": f"Step {step.step_id} timeout_hours must be at least 1",
                    "path": f"steps[{i}].timeout_hours"
                })

            if not step.assignees:
                warnings.append({
                    "type": "NO_ASSIGNEES",
                    "message": f"Step {step.step_id} has no assignees and will always be skipped",
                    "path": f"steps[{i}].assignees"
                })

        if template.trigger_type == TriggerType.CLASSIFICATION and not template.trigger_value:
            warnings.append({
                "type": "NO_TRIGGER_VALUE",
                "message": "Classification-triggered workflow has no trigger_value and will never match",
                "path": "trigger_value"
            })

        return {
            "is_valid": len(errors) == 0,
            "errors": errors,
            "warnings": warnings
        }
