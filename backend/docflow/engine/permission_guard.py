"""Permission Guard - Authorization enforcement for workflow actions"""
from typing import List, Optional

from ..config.settings import settings
from ..domain.models import WorkflowRun, StepExecution, ActorContext
from ..utils.logger import get_logger

logger = get_logger(__name__)


class PermissionGuard:
    """
    Permission enforcement for workflow run operations

    Rules:
    - Only the assignee of a step execution can decide it
    - Staff/admin roles can cancel any run
    - The document's submitter can cancel their own run
    """

    def __init__(self, staff_roles: Optional[List[str]] = None):
        self._staff_roles = staff_roles if staff_roles is not None else settings.staff_roles_list

    def _is_same_user(self, actor: ActorContext, user_id: Optional[str]) -> bool:
        if not user_id:
            return False
        return actor.user_id == user_id

    def is_staff(self, actor: ActorContext) -> bool:
        """Check if actor holds one of the staff roles"""
        return any(role.lower() in self._staff_roles for role in actor.roles)

    def is_assignee(self, actor: ActorContext, execution: StepExecution) -> bool:
        """Check if actor owns a step execution"""
        return self._is_same_user(actor, execution.assignee_id)

    def can_cancel_run(self, actor: ActorContext, run: WorkflowRun) -> bool:
        """Check if actor is allowed to cancel a run"""
        if self.is_staff(actor):
            return True
        return self._is_same_user(actor, run.submitted_by)

    def can_decide(self, actor: ActorContext, run: WorkflowRun, execution: StepExecution) -> bool:
        """Check if actor can submit a decision on an execution right now"""
        return (
            run.is_active
            and execution.is_pending
            and execution.step_id == run.current_step_id
            and self.is_assignee(actor, execution)
        )

    def get_actionable_executions(self, actor: ActorContext, run: WorkflowRun) -> List[StepExecution]:
        """Executions the actor can decide on"""
        return [e for e in run.step_executions if self.can_decide(actor, run, e)]
