"""Workflow Engine - The brain of the system"""
from .engine import WorkflowEngine
from .permission_guard import PermissionGuard
from .assignee_resolver import AssigneeResolver
from .step_policy import evaluate_step
from .outcome_publisher import OutcomeRecorder, OutcomePublisher
from .audit_writer import AuditWriter

__all__ = [
    "WorkflowEngine",
    "PermissionGuard",
    "AssigneeResolver",
    "evaluate_step",
    "OutcomeRecorder",
    "OutcomePublisher",
    "AuditWriter",
]
