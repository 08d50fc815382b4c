"""Step Policy - Evaluates whether a step is complete, failed or still pending"""
from typing import List

from ..domain.models import WorkflowStep, StepExecution
from ..domain.enums import StepExecutionStatus, StepOutcome


def evaluate_step(step: WorkflowStep, executions: List[StepExecution]) -> StepOutcome:
    """
    Evaluate a step's completion policy against its executions

    All-assignees steps wait until every execution is decided. Any-one steps
    advance on the first approval; a rejection on a required step fails the
    run under either policy. A required any-one step that everyone skipped
    stays pending until someone approves or the run is cancelled.
    """
    statuses = [e.status for e in executions]
    all_terminal = all(s != StepExecutionStatus.PENDING for s in statuses)
    has_approved = StepExecutionStatus.APPROVED in statuses
    has_rejected = StepExecutionStatus.REJECTED in statuses

    if step.requires_all_assignees:
        if not all_terminal:
            return StepOutcome.PENDING
        if has_rejected and step.is_required:
            return StepOutcome.FAIL
        return StepOutcome.COMPLETE

    if has_rejected and step.is_required:
        return StepOutcome.FAIL
    if has_approved or has_rejected:
        return StepOutcome.COMPLETE
    # Everyone skipped: only an optional step may go on without a decision
    if all_terminal and not step.is_required:
        return StepOutcome.COMPLETE
    return StepOutcome.PENDING
