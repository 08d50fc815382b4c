"""Workflow Repository - Data access for workflow templates"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING
from pydantic import ValidationError

from .mongo_client import get_collection
from ..domain.models import WorkflowTemplate
from ..domain.enums import TriggerType
from ..domain.errors import WorkflowNotFoundError
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class WorkflowRepository:
    """Repository for workflow template operations (read-mostly)"""

    def __init__(self):
        self._workflows: Collection = get_collection("workflows")

    def _to_model(self, doc: Dict[str, Any]) -> Optional[WorkflowTemplate]:
        doc.pop("_id", None)
        try:
            return WorkflowTemplate.model_validate(doc)
        except ValidationError as e:
            logger.error(
                f"Corrupted workflow data for {doc.get('workflow_id')}. Validation failed: {str(e)[:500]}",
                extra={"workflow_id": doc.get("workflow_id")}
            )
            return None

    # =========================================================================
    # Queries
    # =========================================================================

    def get_workflow(self, workflow_id: str) -> Optional[WorkflowTemplate]:
        """Get workflow by ID, active or not"""
        doc = self._workflows.find_one({"workflow_id": workflow_id})
        if doc:
            return self._to_model(doc)
        return None

    def get_active_workflow_or_raise(self, workflow_id: str) -> WorkflowTemplate:
        """Get an active workflow by ID or raise error"""
        workflow = self.get_workflow(workflow_id)
        if not workflow or not workflow.is_active:
            raise WorkflowNotFoundError(
                f"Workflow {workflow_id} not found or inactive",
                details={"workflow_id": workflow_id}
            )
        return workflow

    def list_active_workflows(self) -> List[WorkflowTemplate]:
        """List active workflows, highest priority first"""
        cursor = self._workflows.find({"is_active": True}).sort(
            [("priority", DESCENDING), ("created_at", ASCENDING)]
        )
        workflows = []
        for doc in cursor:
            workflow = self._to_model(doc)
            if workflow:
                workflows.append(workflow)
        return workflows

    def find_by_classification(self, classification: str) -> Optional[WorkflowTemplate]:
        """
        Find the active classification-triggered workflow for a tag

        Highest priority wins; ties go to the oldest template.
        """
        cursor = self._workflows.find({
            "is_active": True,
            "trigger_type": TriggerType.CLASSIFICATION.value,
            "trigger_value": classification,
        }).sort([("priority", DESCENDING), ("created_at", ASCENDING)])

        for doc in cursor:
            workflow = self._to_model(doc)
            if workflow:
                return workflow
        return None

    # =========================================================================
    # Writes (seeding / admin tooling)
    # =========================================================================

    def save_workflow(self, workflow: WorkflowTemplate) -> WorkflowTemplate:
        """Insert or replace a workflow template"""
        workflow.updated_at = utc_now()
        doc = workflow.model_dump(mode="json")
        doc["_id"] = workflow.workflow_id

        self._workflows.replace_one({"_id": workflow.workflow_id}, doc, upsert=True)
        logger.info(f"Saved workflow: {workflow.workflow_id}", extra={"workflow_id": workflow.workflow_id})
        return workflow
