"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class WorkflowType(str, Enum):
    """Kind of workflow template"""
    APPROVAL = "approval"
    REVIEW = "review"
    PROCESSING = "processing"


class TriggerType(str, Enum):
    """How a workflow gets attached to a document"""
    CLASSIFICATION = "classification"  # Auto-assigned when the document's tag matches
    MANUAL = "manual"


class StepType(str, Enum):
    """Types of workflow steps (informational only)"""
    APPROVAL = "approval"
    REVIEW = "review"
    PROCESSING = "processing"


class RunStatus(str, Enum):
    """Workflow run status"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


ACTIVE_RUN_STATUSES = (RunStatus.PENDING, RunStatus.IN_PROGRESS)


class StepExecutionStatus(str, Enum):
    """Status of a single assignee's execution of a step"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SKIPPED = "skipped"


class StepDecision(str, Enum):
    """Decisions an assignee may submit"""
    APPROVED = "approved"
    REJECTED = "rejected"
    SKIPPED = "skipped"


class StepOutcome(str, Enum):
    """Result of evaluating a step's completion policy"""
    PENDING = "pending"
    COMPLETE = "complete"
    FAIL = "fail"


class DynamicRule(str, Enum):
    """Rules for dynamic assignee resolution"""
    DEPARTMENT = "department"  # All active members of a department
    DEPARTMENT_HEAD = "department_head"


class OutcomeKind(str, Enum):
    """Kinds of outcome events held in a run's outbox"""
    AUDIT = "audit"
    DOCUMENT_STATUS = "document_status"
    NOTIFICATION = "notification"


class AuditEventType(str, Enum):
    """Audit event types"""
    WORKFLOW_ASSIGNED = "workflow_assigned"
    WORKFLOW_STEP_STARTED = "workflow_step_started"
    WORKFLOW_STEP_SKIPPED = "workflow_step_skipped"
    APPROVED = "approved"
    REJECTED = "rejected"
    SKIPPED = "skipped"
    WORKFLOW_COMPLETED = "workflow_completed"
    WORKFLOW_FAILED = "workflow_failed"
    WORKFLOW_CANCELLED = "workflow_cancelled"


class NotificationEvent(str, Enum):
    """Notification intents emitted by the engine"""
    WORKFLOW_ASSIGNMENT = "workflow_assignment"
    WORKFLOW_COMPLETED = "workflow_completed"
    WORKFLOW_FAILED = "workflow_failed"
    WORKFLOW_CANCELLED = "workflow_cancelled"
    WORKFLOW_STEP_OVERDUE = "workflow_step_overdue"


class DocumentStatus(str, Enum):
    """Overall document status values written by the engine"""
    UPLOADED = "uploaded"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
