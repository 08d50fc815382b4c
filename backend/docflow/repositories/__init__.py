"""Repository modules - Data access layer"""
from .mongo_client import get_database, get_collection
from .workflow_repo import WorkflowRepository
from .run_repo import RunRepository
from .document_repo import DocumentRepository
from .directory_repo import DirectoryRepository
from .audit_repo import AuditRepository
from .inapp_notification_repo import InAppNotificationRepository

__all__ = [
    "get_database",
    "get_collection",
    "WorkflowRepository",
    "RunRepository",
    "DocumentRepository",
    "DirectoryRepository",
    "AuditRepository",
    "InAppNotificationRepository",
]
