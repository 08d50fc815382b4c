"""
Workflow Engine - The Brain of the System

This module contains the WorkflowEngine class that binds workflow templates to
documents and advances their runs step by step.

=============================================================================
MODULE STRUCTURE
=============================================================================

1. ASSIGNMENT
   - assign_workflow: Explicit or classification-triggered assignment
   - _select_template / _claim_active_run: Template choice, one active run per document

2. ACTION HANDLERS
   - complete_step: An assignee's decision on a step execution
   - cancel_run: Operator cancellation

3. TRANSITION LOGIC
   - _open_next_step: Open the next step (auto-skipping empty ones)
   - _complete_run / _fail_run: Terminal transitions
   - _commit: Version-checked save, claim release, outcome publication

4. QUERIES & SWEEPS
   - get_run_for_document, list_pending_steps_for_user, can_cancel_run
   - send_overdue_reminders, drain_outbox

Every transition mutates an in-memory WorkflowRun, records its side effects on
an OutcomeRecorder and commits both in one write. Side effects are published
after the commit.
=============================================================================
"""

from typing import Any, Dict, List, Optional, Tuple, Union
from datetime import datetime

from ..config.settings import settings
from ..domain.models import (
    WorkflowRun, WorkflowStep, WorkflowTemplate, StepExecution, Document,
    ActorContext, PendingStepView
)
from ..domain.enums import (
    RunStatus, StepExecutionStatus, StepDecision, StepOutcome, AuditEventType,
    NotificationEvent, DocumentStatus
)
from ..domain.errors import (
    ValidationError, StepExecutionNotFoundError, RunMismatchError, NotAssignedError,
    AlreadyCompletedError, RunNotActiveError, StepNoLongerActiveError,
    PermissionDeniedError, ConcurrencyError
)
from ..repositories.workflow_repo import WorkflowRepository
from ..repositories.run_repo import RunRepository
from ..repositories.document_repo import DocumentRepository
from .assignee_resolver import AssigneeResolver
from .permission_guard import PermissionGuard
from .step_policy import evaluate_step
from .outcome_publisher import OutcomeRecorder, OutcomePublisher
from ..utils.idgen import generate_run_id, generate_step_execution_id
from ..utils.time import utc_now, calculate_due_at, format_iso, is_overdue, parse_iso, as_utc
from ..utils.logger import get_logger

logger = get_logger(__name__)

# A claim whose run never got written is considered abandoned after this long
CLAIM_STALE_AFTER_SECONDS = 30


class WorkflowEngine:
    """
    The Workflow Engine - Central orchestrator for workflow runs

    Responsibilities:
    - Bind a workflow template to a document (at most one active run each)
    - Open steps in ascending step_order and resolve their assignees
    - Apply per-step completion policy to assignee decisions
    - Complete, fail or cancel runs and mirror the outcome onto the document
    - Stay consistent under concurrent decisions (optimistic locking + retry)
    """

    def __init__(self):
        self.workflow_repo = WorkflowRepository()
        self.run_repo = RunRepository()
        self.document_repo = DocumentRepository()
        self.assignee_resolver = AssigneeResolver()
        self.permission_guard = PermissionGuard()
        self.publisher = OutcomePublisher(run_repo=self.run_repo, document_repo=self.document_repo)
        self.max_retries = settings.run_update_max_retries
        self.close_orphaned_executions = settings.close_orphaned_executions

    # =========================================================================
    # Assignment
    # =========================================================================

    def assign_workflow(
        self,
        document_id: str,
        workflow_id: Optional[str] = None,
        actor: Optional[ActorContext] = None
    ) -> Optional[WorkflowRun]:
        """
        Bind a workflow to a document and open its first step

        Without workflow_id the active classification-triggered template
        matching the document's classification is used. Returns None when
        nothing matches, and the existing run when the document already has
        an active one.
        """
        document = self.document_repo.get_document_or_raise(document_id)
        template = self._select_template(document, workflow_id)
        if template is None:
            logger.info(
                f"No workflow matches document {document_id} (classification={document.classification!r})",
                extra={"document_id": document_id}
            )
            return None

        run_id = generate_run_id()
        existing = self._claim_active_run(document_id, run_id)
        if existing is not None:
            logger.info(
                f"Document {document_id} already has active run {existing.run_id}",
                extra={"document_id": document_id, "run_id": existing.run_id}
            )
            return existing

        actor_id = actor.user_id if actor else document.submitted_by
        now = utc_now()
        run = WorkflowRun(
            run_id=run_id,
            document_id=document_id,
            workflow_id=template.workflow_id,
            workflow_name=template.name,
            status=RunStatus.PENDING,
            submitted_by=document.submitted_by,
            assigned_by=actor_id,
            steps=template.ordered_steps(),
            started_at=now,
            created_at=now,
            updated_at=now,
            version=1
        )

        try:
            recorder = OutcomeRecorder(run)
            recorder.audit(
                AuditEventType.WORKFLOW_ASSIGNED,
                actor_id,
                old_value=None,
                new_value=template.name,
                details={"trigger": "manual" if workflow_id else "classification"}
            )
            recorder.document_status(workflow_run_id=run_id, workflow_status=RunStatus.PENDING)

            self._open_next_step(run, recorder, actor_id)
            run.outbox = recorder.events

            self.run_repo.create_run(run)
        except Exception:
            self.run_repo.release_active_run(document_id, run_id)
            raise

        logger.info(
            f"Assigned workflow {template.workflow_id} to document {document_id}",
            extra={"document_id": document_id, "run_id": run_id, "workflow_id": template.workflow_id,
                   "actor_id": actor_id, "status": run.status.value}
        )

        if not run.is_active:
            self.run_repo.release_active_run(document_id, run_id)
        self.publisher.publish_run(run)
        return self.run_repo.get_run_or_raise(run_id)

    def _select_template(self, document: Document, workflow_id: Optional[str]) -> Optional[WorkflowTemplate]:
        if workflow_id:
            return self.workflow_repo.get_active_workflow_or_raise(workflow_id)
        if not document.classification:
            return None
        return self.workflow_repo.find_by_classification(document.classification)

    def _claim_active_run(self, document_id: str, run_id: str) -> Optional[WorkflowRun]:
        """
        Claim the document's active-run slot for run_id

        Returns None when claimed, or the run that already holds the slot.
        Stale claims (run terminal, or never written) are cleared and retried.
        """
        for _ in range(self.max_retries + 1):
            claim = self.run_repo.claim_active_run(document_id, run_id)
            if claim is None:
                return None

            holder_id = claim.get("run_id")
            holder = self.run_repo.get_run(holder_id) if holder_id else None
            if holder is not None and holder.is_active:
                return holder

            if holder is None and claim and not self._claim_is_stale(claim):
                raise ConcurrencyError(
                    f"Another workflow assignment for document {document_id} is in progress",
                    details={"document_id": document_id}
                )

            logger.warning(
                f"Clearing stale active run claim for document {document_id}",
                extra={"document_id": document_id, "run_id": holder_id}
            )
            if holder_id:
                self.run_repo.release_active_run(document_id, holder_id)

        raise ConcurrencyError(
            f"Could not claim document {document_id} for a new workflow run",
            details={"document_id": document_id}
        )

    def _claim_is_stale(self, claim: Dict[str, Any]) -> bool:
        claimed_at = claim.get("claimed_at")
        if not claimed_at:
            return True
        age = utc_now() - parse_iso(claimed_at)
        return age.total_seconds() > CLAIM_STALE_AFTER_SECONDS

    # =========================================================================
    # Action Handlers
    # =========================================================================

    def complete_step(
        self,
        run_id: str,
        step_execution_id: str,
        actor: ActorContext,
        decision: Union[StepDecision, str],
        comments: Optional[str] = None
    ) -> WorkflowRun:
        """
        Record an assignee's decision and advance the run if the step's policy is met

        The run is reloaded and re-validated when a concurrent write wins.
        """
        decision = self._parse_decision(decision)

        for attempt in range(self.max_retries + 1):
            run, execution = self._get_decidable_execution(run_id, step_execution_id, actor)
            expected_version = run.version

            execution.status = StepExecutionStatus(decision.value)
            execution.comments = comments
            execution.completed_at = utc_now()

            step = run.current_step
            recorder = OutcomeRecorder(run)
            recorder.audit(
                AuditEventType(decision.value),
                actor.user_id,
                step_execution_id=step_execution_id,
                old_value=StepExecutionStatus.PENDING.value,
                new_value=decision.value,
                details={"step_id": step.step_id, "step_name": step.name, "comments": comments}
            )

            outcome = evaluate_step(step, run.executions_for_step(step.step_id))
            if outcome == StepOutcome.FAIL:
                self._fail_run(run, recorder, actor.user_id, f"Required step rejected: {step.name}")
            elif outcome == StepOutcome.COMPLETE:
                self._open_next_step(run, recorder, actor.user_id)

            try:
                saved = self._commit(run, recorder, expected_version)
            except ConcurrencyError:
                if attempt >= self.max_retries:
                    raise
                logger.info(
                    f"Run {run_id} changed while deciding, retrying ({attempt + 1}/{self.max_retries})",
                    extra={"run_id": run_id, "step_execution_id": step_execution_id}
                )
                continue

            logger.info(
                f"Step execution {step_execution_id} {decision.value} by {actor.user_id}",
                extra={"run_id": run_id, "step_execution_id": step_execution_id, "step_id": step.step_id,
                       "actor_id": actor.user_id, "action": decision.value, "status": saved.status.value}
            )
            return saved

        raise ConcurrencyError(f"Workflow run {run_id} is busy, please retry")

    def _parse_decision(self, decision: Union[StepDecision, str]) -> StepDecision:
        try:
            return StepDecision(decision)
        except ValueError:
            raise ValidationError(
                f"Invalid decision: {decision}",
                details={"allowed": [d.value for d in StepDecision]}
            )

    def _get_decidable_execution(
        self,
        run_id: str,
        step_execution_id: str,
        actor: ActorContext
    ) -> Tuple[WorkflowRun, StepExecution]:
        """Load a run and validate that actor may decide the execution now"""
        run = self.run_repo.get_run_or_raise(run_id)

        execution = run.get_execution(step_execution_id)
        if execution is None:
            if self.run_repo.find_run_by_execution(step_execution_id) is None:
                raise StepExecutionNotFoundError(
                    f"Step execution {step_execution_id} not found",
                    details={"step_execution_id": step_execution_id}
                )
            raise RunMismatchError(
                "Step instance does not belong to this workflow instance",
                details={"run_id": run_id, "step_execution_id": step_execution_id}
            )

        if not self.permission_guard.is_assignee(actor, execution):
            raise NotAssignedError("You are not assigned to this step")

        if not execution.is_pending:
            raise AlreadyCompletedError(
                "Step has already been completed",
                details={"status": execution.status.value}
            )

        if not run.is_active:
            raise RunNotActiveError(
                f"Workflow run is {run.status.value}",
                details={"run_id": run_id, "status": run.status.value}
            )

        if execution.step_id != run.current_step_id:
            raise StepNoLongerActiveError(
                "This step has already been decided by another assignee",
                details={"step_id": execution.step_id, "current_step_id": run.current_step_id}
            )

        return run, execution

    def cancel_run(
        self,
        run_id: str,
        actor: ActorContext,
        reason: Optional[str] = None
    ) -> WorkflowRun:
        """Cancel an active run (staff/admin or the document's submitter)"""
        for attempt in range(self.max_retries + 1):
            run = self.run_repo.get_run_or_raise(run_id)

            if not self.permission_guard.can_cancel_run(actor, run):
                raise PermissionDeniedError("You do not have permission to cancel this workflow")

            if not run.is_active:
                raise RunNotActiveError(
                    f"Workflow run is {run.status.value}",
                    details={"run_id": run_id, "status": run.status.value}
                )

            expected_version = run.version
            recorder = OutcomeRecorder(run)

            run.status = RunStatus.CANCELLED
            run.completed_at = utc_now()
            run.notes = reason
            run.current_step_id = None
            self._close_orphans(run)

            recorder.document_status(workflow_status=RunStatus.CANCELLED)
            recorder.audit(
                AuditEventType.WORKFLOW_CANCELLED,
                actor.user_id,
                new_value=RunStatus.CANCELLED.value,
                details={"reason": reason}
            )
            if run.submitted_by != actor.user_id:
                recorder.notify(run.submitted_by, NotificationEvent.WORKFLOW_CANCELLED, reason=reason)

            try:
                saved = self._commit(run, recorder, expected_version)
            except ConcurrencyError:
                if attempt >= self.max_retries:
                    raise
                continue

            logger.info(
                f"Cancelled workflow run {run_id}",
                extra={"run_id": run_id, "document_id": run.document_id, "actor_id": actor.user_id,
                       "action": "cancel"}
            )
            return saved

        raise ConcurrencyError(f"Workflow run {run_id} is busy, please retry")

    # =========================================================================
    # Transition Logic
    # =========================================================================

    def _next_step(self, run: WorkflowRun) -> Optional[WorkflowStep]:
        current = run.current_step
        candidates = [
            s for s in run.steps
            if current is None or s.step_order > current.step_order
        ]
        return min(candidates, key=lambda s: s.step_order, default=None)

    def _open_next_step(self, run: WorkflowRun, recorder: OutcomeRecorder, actor_id: Optional[str]) -> None:
        """Open the next step; steps without assignees are skipped"""
        while True:
            step = self._next_step(run)
            if step is None:
                self._complete_run(run, recorder, actor_id)
                return

            run.current_step_id = step.step_id
            run.status = RunStatus.IN_PROGRESS

            assignees = self.assignee_resolver.resolve(step.assignees)
            recorder.audit(
                AuditEventType.WORKFLOW_STEP_STARTED,
                actor_id,
                new_value=step.name,
                details={"step_id": step.step_id, "step_order": step.step_order,
                         "assignee_count": len(assignees)}
            )

            if not assignees:
                logger.info(
                    f"Skipping step '{step.name}': no assignees resolved",
                    extra={"run_id": run.run_id, "step_id": step.step_id}
                )
                recorder.audit(
                    AuditEventType.WORKFLOW_STEP_SKIPPED,
                    actor_id,
                    new_value=step.name,
                    details={"step_id": step.step_id, "reason": "No assignees configured"}
                )
                continue

            self._create_executions(run, step, assignees, recorder)
            recorder.document_status(workflow_status=RunStatus.IN_PROGRESS)
            return

    def _create_executions(
        self,
        run: WorkflowRun,
        step: WorkflowStep,
        assignees: List[str],
        recorder: OutcomeRecorder
    ) -> None:
        now = utc_now()
        due_at = calculate_due_at(now, step.timeout_hours)

        for user_id in assignees:
            execution = StepExecution(
                step_execution_id=generate_step_execution_id(),
                run_id=run.run_id,
                step_id=step.step_id,
                step_name=step.name,
                step_order=step.step_order,
                assignee_id=user_id,
                status=StepExecutionStatus.PENDING,
                started_at=now,
                due_at=due_at
            )
            run.step_executions.append(execution)
            recorder.notify(
                user_id,
                NotificationEvent.WORKFLOW_ASSIGNMENT,
                step_name=step.name,
                step_execution_id=execution.step_execution_id,
                due_at=format_iso(due_at) if due_at else None
            )

    def _complete_run(self, run: WorkflowRun, recorder: OutcomeRecorder, actor_id: Optional[str]) -> None:
        run.status = RunStatus.COMPLETED
        run.completed_at = utc_now()
        run.current_step_id = None

        recorder.document_status(workflow_status=RunStatus.COMPLETED, status=DocumentStatus.COMPLETED)
        recorder.notify(run.submitted_by, NotificationEvent.WORKFLOW_COMPLETED)
        recorder.audit(AuditEventType.WORKFLOW_COMPLETED, actor_id, new_value=RunStatus.COMPLETED.value)

    def _fail_run(
        self,
        run: WorkflowRun,
        recorder: OutcomeRecorder,
        actor_id: Optional[str],
        reason: str
    ) -> None:
        run.status = RunStatus.FAILED
        run.completed_at = utc_now()
        run.notes = reason
        run.current_step_id = None
        self._close_orphans(run)

        recorder.document_status(workflow_status=RunStatus.FAILED, status=DocumentStatus.FAILED)
        recorder.audit(
            AuditEventType.WORKFLOW_FAILED,
            actor_id,
            new_value=RunStatus.FAILED.value,
            details={"reason": reason}
        )
        recorder.notify(run.submitted_by, NotificationEvent.WORKFLOW_FAILED, reason=reason)

    def _close_orphans(self, run: WorkflowRun) -> None:
        """Force-close pending executions of a terminated run when configured to"""
        if not self.close_orphaned_executions:
            return
        now = utc_now()
        for execution in run.step_executions:
            if execution.is_pending:
                execution.status = StepExecutionStatus.SKIPPED
                execution.completed_at = now
                execution.comments = f"Closed: workflow {run.status.value}"

    def _commit(self, run: WorkflowRun, recorder: OutcomeRecorder, expected_version: int) -> WorkflowRun:
        """Persist a transition, release the document claim if terminal, publish outcomes"""
        saved = self.run_repo.save_transition(run, recorder.events, expected_version)
        if not saved.is_active:
            self.run_repo.release_active_run(saved.document_id, saved.run_id)
        self.publisher.publish_run(saved)
        return self.run_repo.get_run_or_raise(saved.run_id)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_run_for_document(self, document_id: str) -> Optional[WorkflowRun]:
        """Latest run of a document, executions included"""
        return self.run_repo.get_latest_run_for_document(document_id)

    def list_pending_steps_for_user(self, user_id: str) -> List[PendingStepView]:
        """Pending executions of active runs whose step is current"""
        now = utc_now()
        views = []
        for run in self.run_repo.list_active_runs_for_assignee(user_id):
            for execution in run.step_executions:
                if (
                    execution.assignee_id != user_id
                    or not execution.is_pending
                    or execution.step_id != run.current_step_id
                ):
                    continue
                views.append(PendingStepView(
                    run_id=run.run_id,
                    document_id=run.document_id,
                    workflow_id=run.workflow_id,
                    workflow_name=run.workflow_name,
                    step_execution_id=execution.step_execution_id,
                    step_id=execution.step_id,
                    step_name=execution.step_name,
                    step_order=execution.step_order,
                    started_at=execution.started_at,
                    due_at=execution.due_at,
                    is_overdue=is_overdue(execution.due_at, now)
                ))
        return views

    def can_cancel_run(self, actor: ActorContext, run: WorkflowRun) -> bool:
        return self.permission_guard.can_cancel_run(actor, run)

    # =========================================================================
    # Background Sweeps
    # =========================================================================

    def send_overdue_reminders(self, now: Optional[datetime] = None) -> int:
        """
        Notify assignees whose pending execution is past due

        Each execution is reminded once. Runs and executions keep their status.
        """
        now = as_utc(now or utc_now())
        reminded = 0

        for run in self.run_repo.list_active_runs_with_deadlines():
            overdue = [
                e for e in run.step_executions
                if e.is_pending
                and e.step_id == run.current_step_id
                and e.reminder_sent_at is None
                and is_overdue(e.due_at, now)
            ]
            if not overdue:
                continue

            expected_version = run.version
            recorder = OutcomeRecorder(run)
            for execution in overdue:
                execution.reminder_sent_at = now
                recorder.notify(
                    execution.assignee_id,
                    NotificationEvent.WORKFLOW_STEP_OVERDUE,
                    step_name=execution.step_name,
                    step_execution_id=execution.step_execution_id,
                    due_at=format_iso(execution.due_at)
                )

            try:
                self._commit(run, recorder, expected_version)
            except ConcurrencyError:
                logger.info(
                    f"Run {run.run_id} changed during overdue sweep, deferring reminders",
                    extra={"run_id": run.run_id}
                )
                continue
            reminded += len(overdue)

        if reminded:
            logger.info(f"Sent {reminded} overdue step reminders")
        return reminded

    def drain_outbox(self) -> int:
        """Publish outcome events left behind by crashes or collaborator failures"""
        return self.publisher.drain()
