"""Notification Service - In-app notifications for workflow events"""
from typing import Any, Dict, List, Optional

from ..domain.models import InAppNotification
from ..domain.enums import NotificationEvent
from ..repositories.inapp_notification_repo import InAppNotificationRepository
from ..repositories.document_repo import DocumentRepository
from ..utils.idgen import generate_notification_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NotificationService:
    """Service for delivering notifications to users"""

    # Title and message per event; formatted with the payload plus document_title
    TEMPLATES = {
        NotificationEvent.WORKFLOW_ASSIGNMENT: (
            "Workflow Assignment: {step_name}",
            "You have been assigned to review/approve document: {document_title}",
        ),
        NotificationEvent.WORKFLOW_COMPLETED: (
            "Workflow Completed",
            "Workflow for document '{document_title}' has been completed.",
        ),
        NotificationEvent.WORKFLOW_FAILED: (
            "Workflow Failed",
            "Workflow for document '{document_title}' has failed: {reason}",
        ),
        NotificationEvent.WORKFLOW_CANCELLED: (
            "Workflow Cancelled",
            "Workflow for document '{document_title}' was cancelled.",
        ),
        NotificationEvent.WORKFLOW_STEP_OVERDUE: (
            "Overdue: {step_name}",
            "Your review of document '{document_title}' was due at {due_at}.",
        ),
    }

    def __init__(self):
        self.inapp_repo = InAppNotificationRepository()
        self.document_repo = DocumentRepository()

    def _render(self, event: NotificationEvent, payload: Dict[str, Any]) -> Dict[str, str]:
        title_template, message_template = self.TEMPLATES[event]

        values: Dict[str, Any] = {"step_name": "", "reason": "", "due_at": ""}
        values.update({k: v for k, v in payload.items() if v is not None})

        document_id = payload.get("document_id")
        document = self.document_repo.get_document(document_id) if document_id else None
        values["document_title"] = (document.title if document and document.title else document_id) or ""

        return {
            "title": title_template.format(**values),
            "message": message_template.format(**values),
        }

    def notify(
        self,
        user_id: str,
        event: NotificationEvent,
        payload: Dict[str, Any],
        notification_id: Optional[str] = None
    ) -> InAppNotification:
        """
        Deliver a notification to a user

        Passing the same notification_id twice stores it once. Storage
        failures propagate to the caller.
        """
        event = NotificationEvent(event)
        content = self._render(event, payload)

        notification = InAppNotification(
            notification_id=notification_id or generate_notification_id(),
            recipient_user_id=user_id,
            event=event,
            title=content["title"],
            message=content["message"],
            payload=payload,
            document_id=payload.get("document_id"),
            run_id=payload.get("run_id"),
            is_read=False,
            created_at=utc_now()
        )

        return self.inapp_repo.create_notification(notification)

    # =========================================================================
    # Inbox
    # =========================================================================

    def list_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50
    ) -> List[InAppNotification]:
        return self.inapp_repo.get_notifications_for_user(
            user_id, skip=skip, limit=limit, unread_only=unread_only
        )

    def unread_count(self, user_id: str) -> int:
        return self.inapp_repo.get_unread_count(user_id)

    def mark_as_read(self, notification_id: str, user_id: str) -> InAppNotification:
        return self.inapp_repo.mark_as_read(notification_id, user_id)
