"""
Document Workflow Routes

Starting and viewing the workflow run of a document.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_current_user_dep, get_correlation_id_dep
from ...domain.models import ActorContext
from ...domain.errors import DomainError
from ...services.run_service import RunService
from ...utils.logger import get_logger
from .schemas import AssignWorkflowRequest, RunEnvelope

logger = get_logger(__name__)
router = APIRouter()


@router.post("/{document_id}/workflow", response_model=RunEnvelope)
async def assign_workflow(
    document_id: str,
    request: Optional[AssignWorkflowRequest] = None,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Start a workflow on a document.

    Uses the given workflow_id, or the active template matching the
    document's classification. If the document already has an active run
    that run is returned. Returns {"run": null} when no template applies.
    """
    try:
        service = RunService()
        run = service.assign_workflow(
            document_id=document_id,
            workflow_id=request.workflow_id if request else None,
            actor=actor
        )
        return RunEnvelope(run=run)

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{document_id}/workflow", response_model=RunEnvelope)
async def get_document_workflow(
    document_id: str,
    actor: ActorContext = Depends(get_current_user_dep)
):
    """
    Get the latest run of a document with its step executions,
    assignee display info and audit trail.
    """
    try:
        service = RunService()
        return RunEnvelope(run=service.get_document_run(document_id, actor))

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
