"""Workflow API Routes - Read-only template listing"""
from typing import Any, Dict, List
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..deps import get_current_user_dep
from ...domain.models import ActorContext
from ...domain.errors import DomainError
from ...services.workflow_service import WorkflowService
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


class WorkflowListResponse(BaseModel):
    """Active workflow templates"""
    items: List[Dict[str, Any]]
    total: int


@router.get("", response_model=WorkflowListResponse)
async def list_workflows(
    actor: ActorContext = Depends(get_current_user_dep)
):
    """List active workflow templates, highest priority first."""
    service = WorkflowService()
    workflows = service.list_active_workflows()
    return WorkflowListResponse(
        items=[w.model_dump(mode="json") for w in workflows],
        total=len(workflows)
    )


@router.get("/{workflow_id}")
async def get_workflow(
    workflow_id: str,
    actor: ActorContext = Depends(get_current_user_dep)
):
    """Get an active workflow template"""
    try:
        return WorkflowService().get_workflow(workflow_id).model_dump(mode="json")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
