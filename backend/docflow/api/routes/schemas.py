"""
Workflow Run Schemas

Request and response models for document workflow endpoints.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from ...domain.enums import StepDecision


# =============================================================================
# Assignment Schemas
# =============================================================================

class AssignWorkflowRequest(BaseModel):
    """Request to start a workflow on a document"""
    workflow_id: Optional[str] = Field(
        default=None,
        description="Explicit template; when omitted the classification match is used"
    )


class RunEnvelope(BaseModel):
    """A run view, or null when the document has no run"""
    run: Optional[Dict[str, Any]] = None


# =============================================================================
# Step Action Schemas
# =============================================================================

class DecisionRequest(BaseModel):
    """Request to approve, reject or skip a step execution"""
    decision: StepDecision
    comments: Optional[str] = Field(None, max_length=2000)


class CancelRunRequest(BaseModel):
    """Request to cancel a run"""
    reason: Optional[str] = Field(None, max_length=2000)


# =============================================================================
# Query Schemas
# =============================================================================

class RunPermissionsResponse(BaseModel):
    """What the caller may do on a run"""
    run_id: str
    can_cancel: bool
    actionable_step_execution_ids: List[str] = Field(default_factory=list)


class PendingStepsResponse(BaseModel):
    """Pending step executions for the caller"""
    items: List[Dict[str, Any]]
    total: int
