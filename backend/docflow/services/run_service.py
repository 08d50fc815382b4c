"""Run Service - Workflow run views and actions for the API layer"""
from typing import Any, Dict, List, Optional

from ..domain.models import WorkflowRun, ActorContext
from ..domain.enums import StepDecision
from ..repositories.audit_repo import AuditRepository
from ..repositories.document_repo import DocumentRepository
from ..engine.engine import WorkflowEngine
from .directory_service import DirectoryService
from ..utils.logger import get_logger

logger = get_logger(__name__)


class RunService:
    """Service for workflow run operations"""

    def __init__(self):
        self.engine = WorkflowEngine()
        self.document_repo = DocumentRepository()
        self.audit_repo = AuditRepository()
        self.directory_service = DirectoryService()

    # =========================================================================
    # Views
    # =========================================================================

    def build_run_view(self, run: WorkflowRun, actor: Optional[ActorContext] = None) -> Dict[str, Any]:
        """Run with its executions, assignee display info and audit trail"""
        assignees = self.directory_service.get_display_info(
            e.assignee_id for e in run.step_executions
        )

        executions = []
        for execution in sorted(run.step_executions, key=lambda e: (e.step_order, e.started_at)):
            item = execution.model_dump(mode="json")
            item["assignee"] = assignees.get(execution.assignee_id)
            executions.append(item)

        current_step = run.current_step
        actionable: List[str] = []
        if actor:
            actionable = [
                e.step_execution_id
                for e in self.engine.permission_guard.get_actionable_executions(actor, run)
            ]

        view = run.model_dump(mode="json", exclude={"outbox", "step_executions"})
        view["current_step"] = current_step.model_dump(mode="json") if current_step else None
        view["step_executions"] = executions
        view["audit_events"] = [ae.model_dump(mode="json") for ae in self.audit_repo.get_events_for_run(run.run_id)]
        view["actionable_step_execution_ids"] = actionable
        return view

    # =========================================================================
    # Actions
    # =========================================================================

    def assign_workflow(
        self,
        document_id: str,
        workflow_id: Optional[str],
        actor: ActorContext
    ) -> Optional[Dict[str, Any]]:
        run = self.engine.assign_workflow(document_id, workflow_id=workflow_id, actor=actor)
        if run is None:
            return None
        return self.build_run_view(run, actor)

    def get_document_run(self, document_id: str, actor: ActorContext) -> Optional[Dict[str, Any]]:
        self.document_repo.get_document_or_raise(document_id)
        run = self.engine.get_run_for_document(document_id)
        if run is None:
            return None
        return self.build_run_view(run, actor)

    def decide(
        self,
        run_id: str,
        step_execution_id: str,
        decision: StepDecision,
        comments: Optional[str],
        actor: ActorContext
    ) -> Dict[str, Any]:
        run = self.engine.complete_step(run_id, step_execution_id, actor, decision, comments)
        return self.build_run_view(run, actor)

    def cancel(self, run_id: str, reason: Optional[str], actor: ActorContext) -> Dict[str, Any]:
        run = self.engine.cancel_run(run_id, actor, reason)
        return self.build_run_view(run, actor)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_permissions(self, run_id: str, actor: ActorContext) -> Dict[str, Any]:
        run = self.engine.run_repo.get_run_or_raise(run_id)
        actionable = self.engine.permission_guard.get_actionable_executions(actor, run)
        return {
            "run_id": run_id,
            "can_cancel": run.is_active and self.engine.can_cancel_run(actor, run),
            "actionable_step_execution_ids": [e.step_execution_id for e in actionable],
        }

    def get_pending_steps(self, actor: ActorContext) -> List[Dict[str, Any]]:
        return [v.model_dump(mode="json") for v in self.engine.list_pending_steps_for_user(actor.user_id)]
