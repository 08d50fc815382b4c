"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, ConfigDict

from .enums import (
    WorkflowType, TriggerType, StepType, RunStatus, StepExecutionStatus,
    DynamicRule, OutcomeKind, AuditEventType, NotificationEvent, ACTIVE_RUN_STATUSES
)


# ============================================================================
# Actor
# ============================================================================

class ActorContext(BaseModel):
    """Current actor context from JWT token"""
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(..., description="Directory user ID (token subject)")
    email: str = Field(default="", description="User email")
    display_name: str = Field(default="", description="User display name")
    roles: List[str] = Field(default_factory=list, description="Assigned roles")


# ============================================================================
# Assignee Specs
# ============================================================================

class UserAssignee(BaseModel):
    """An explicit user"""
    model_config = ConfigDict(extra="forbid")

    kind: Literal["user"] = "user"
    user_id: str


class RoleAssignee(BaseModel):
    """Every active user holding a role"""
    model_config = ConfigDict(extra="forbid")

    kind: Literal["role"] = "role"
    role: str


class DynamicAssignee(BaseModel):
    """Assignees computed from a directory rule"""
    model_config = ConfigDict(extra="forbid")

    kind: Literal["dynamic"] = "dynamic"
    rule: DynamicRule
    value: str = Field(..., description="Department name the rule applies to")


AssigneeSpec = Annotated[
    Union[UserAssignee, RoleAssignee, DynamicAssignee],
    Field(discriminator="kind")
]


# ============================================================================
# Workflow Template
# ============================================================================

class WorkflowStep(BaseModel):
    """A single ordered step of a workflow template"""
    model_config = ConfigDict(extra="ignore")

    step_id: str = Field(..., description="Unique step ID within the template")
    name: str
    description: Optional[str] = None
    step_order: int = Field(..., ge=0, description="Execution order, unique within the template")
    step_type: StepType = Field(default=StepType.APPROVAL)
    is_required: bool = Field(default=True, description="A rejection fails the run")
    requires_all_assignees: bool = Field(default=False, description="All assignees must decide")
    timeout_hours: Optional[int] = Field(None, ge=1, description="Hours until an execution is overdue")
    assignees: List[AssigneeSpec] = Field(default_factory=list)


class WorkflowTemplate(BaseModel):
    """Workflow template (read-only to the engine)"""
    model_config = ConfigDict(extra="ignore")  # Allow extra fields for flexibility

    workflow_id: str = Field(..., description="Unique workflow ID")
    name: str = Field(..., description="Workflow name")
    description: Optional[str] = None
    type: WorkflowType = Field(default=WorkflowType.APPROVAL)
    trigger_type: TriggerType = Field(default=TriggerType.MANUAL)
    trigger_value: Optional[str] = Field(None, description="Classification tag that triggers the workflow")
    is_active: bool = True
    priority: int = Field(default=0, description="Higher wins when several templates match")
    steps: List[WorkflowStep] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    def ordered_steps(self) -> List[WorkflowStep]:
        return sorted(self.steps, key=lambda s: s.step_order)


# ============================================================================
# Workflow Run & Step Executions
# ============================================================================

class StepExecution(BaseModel):
    """One assignee's execution of a step"""
    model_config = ConfigDict(extra="ignore")

    step_execution_id: str = Field(..., description="Unique step execution ID")
    run_id: str
    step_id: str
    step_name: str
    step_order: int
    assignee_id: str = Field(..., description="User who must decide")
    status: StepExecutionStatus = Field(default=StepExecutionStatus.PENDING)
    started_at: datetime
    completed_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    comments: Optional[str] = None
    reminder_sent_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == StepExecutionStatus.PENDING


class OutcomeEvent(BaseModel):
    """Side effect recorded with a transition and published after commit"""
    model_config = ConfigDict(extra="ignore")

    event_id: str
    kind: OutcomeKind
    payload: Dict[str, Any] = Field(default_factory=dict)
    attempts: int = Field(default=0)
    last_error: Optional[str] = None
    created_at: datetime


class WorkflowRun(BaseModel):
    """A workflow template bound to a document"""
    model_config = ConfigDict(extra="ignore")  # Allow extra fields from DB

    run_id: str = Field(..., description="Unique run ID")
    document_id: str
    workflow_id: str
    workflow_name: str
    status: RunStatus = Field(default=RunStatus.PENDING)
    current_step_id: Optional[str] = None
    submitted_by: Optional[str] = Field(None, description="Document submitter at assignment time")
    assigned_by: Optional[str] = Field(None, description="Actor that assigned the workflow")
    steps: List[WorkflowStep] = Field(default_factory=list, description="Template steps locked at assignment")
    started_at: datetime
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    step_executions: List[StepExecution] = Field(default_factory=list)
    outbox: List[OutcomeEvent] = Field(default_factory=list)
    version: int = Field(default=1, description="Optimistic concurrency version")
    created_at: datetime
    updated_at: datetime

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_RUN_STATUSES

    def get_step(self, step_id: Optional[str]) -> Optional[WorkflowStep]:
        for step in self.steps:
            if step.step_id == step_id:
                return step
        return None

    @property
    def current_step(self) -> Optional[WorkflowStep]:
        return self.get_step(self.current_step_id)

    def executions_for_step(self, step_id: str) -> List[StepExecution]:
        return [e for e in self.step_executions if e.step_id == step_id]

    def get_execution(self, step_execution_id: str) -> Optional[StepExecution]:
        for execution in self.step_executions:
            if execution.step_execution_id == step_execution_id:
                return execution
        return None


# ============================================================================
# Documents & Directory
# ============================================================================

class Document(BaseModel):
    """Document as seen by the engine (owned by the document service)"""
    model_config = ConfigDict(extra="ignore")

    document_id: str
    title: str = ""
    classification: Optional[str] = Field(None, description="Classification tag")
    submitted_by: Optional[str] = Field(None, description="User ID of the uploader")
    status: str = Field(default="uploaded")
    workflow_run_id: Optional[str] = None
    workflow_status: Optional[RunStatus] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DirectoryUser(BaseModel):
    """User record from the directory"""
    model_config = ConfigDict(extra="ignore")

    user_id: str
    display_name: str
    email: str = ""
    role: Optional[str] = None
    department: Optional[str] = None
    is_active: bool = True


class Department(BaseModel):
    """Department record from the directory"""
    model_config = ConfigDict(extra="ignore")

    name: str
    head_user_id: Optional[str] = None


# ============================================================================
# Audit Event
# ============================================================================

class AuditEvent(BaseModel):
    """Audit event (append-only)"""
    model_config = ConfigDict(extra="ignore")

    audit_event_id: str
    document_id: str
    run_id: Optional[str] = None
    step_execution_id: Optional[str] = None
    event_type: AuditEventType
    actor_id: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime
    correlation_id: Optional[str] = None


# ============================================================================
# In-App Notifications
# ============================================================================

class InAppNotification(BaseModel):
    """
    In-app notification for the notification bell.
    Each notification targets a specific user and tracks read status.
    """
    model_config = ConfigDict(extra="ignore")

    notification_id: str = Field(..., description="Unique notification ID")
    recipient_user_id: str = Field(..., description="User who receives the notification")

    # Notification content
    event: NotificationEvent = Field(..., description="Event that produced the notification")
    title: str = Field(..., description="Short notification title")
    message: str = Field(..., description="Notification message body")
    payload: Dict[str, Any] = Field(default_factory=dict)

    # Context for navigation
    document_id: Optional[str] = Field(None, description="Related document ID for navigation")
    run_id: Optional[str] = None

    # Status
    is_read: bool = Field(default=False, description="Whether notification has been read")
    read_at: Optional[datetime] = Field(None, description="When notification was read")

    created_at: datetime = Field(..., description="When notification was created")


# ============================================================================
# Read Views
# ============================================================================

class PendingStepView(BaseModel):
    """A pending step execution waiting on a user"""
    model_config = ConfigDict(extra="ignore")

    run_id: str
    document_id: str
    workflow_id: str
    workflow_name: str
    step_execution_id: str
    step_id: str
    step_name: str
    step_order: int
    started_at: datetime
    due_at: Optional[datetime] = None
    is_overdue: bool = False
