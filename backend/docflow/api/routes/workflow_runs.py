"""
Workflow Run Routes

Decisions, cancellation and permission queries on workflow runs.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_current_user_dep, get_correlation_id_dep
from ...domain.models import ActorContext
from ...domain.errors import DomainError
from ...services.run_service import RunService
from ...utils.logger import get_logger
from .schemas import (
    DecisionRequest, CancelRunRequest, RunEnvelope,
    RunPermissionsResponse, PendingStepsResponse
)

logger = get_logger(__name__)
router = APIRouter()


@router.get("/my-pending-steps", response_model=PendingStepsResponse)
async def get_my_pending_steps(
    actor: ActorContext = Depends(get_current_user_dep)
):
    """Pending step executions assigned to the caller on current steps."""
    try:
        items = RunService().get_pending_steps(actor)
        return PendingStepsResponse(items=items, total=len(items))

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{run_id}/steps/{step_execution_id}/decision", response_model=RunEnvelope)
async def decide_step(
    run_id: str,
    step_execution_id: str,
    request: DecisionRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Record a decision on a step execution.

    Only the assignee may decide, and only while the run is active and the
    execution belongs to its current step.
    """
    try:
        service = RunService()
        run = service.decide(
            run_id=run_id,
            step_execution_id=step_execution_id,
            decision=request.decision,
            comments=request.comments,
            actor=actor
        )
        logger.info(
            f"Decision {request.decision.value} recorded",
            extra={"run_id": run_id, "step_execution_id": step_execution_id, "actor_id": actor.user_id}
        )
        return RunEnvelope(run=run)

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{run_id}/cancel", response_model=RunEnvelope)
async def cancel_run(
    run_id: str,
    request: Optional[CancelRunRequest] = None,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Cancel an active run.

    Allowed for staff roles and for the user who submitted the document.
    """
    try:
        service = RunService()
        return RunEnvelope(run=service.cancel(run_id, request.reason if request else None, actor))

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{run_id}/permissions", response_model=RunPermissionsResponse)
async def get_run_permissions(
    run_id: str,
    actor: ActorContext = Depends(get_current_user_dep)
):
    """Whether the caller may cancel the run and which executions they can decide."""
    try:
        return RunPermissionsResponse(**RunService().get_permissions(run_id, actor))

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
