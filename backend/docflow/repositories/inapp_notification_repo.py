"""In-App Notification Repository - Data access for notification bell"""
from typing import Any, Dict, List
from pymongo.collection import Collection
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_collection
from ..domain.models import InAppNotification
from ..domain.errors import NotFoundError
from ..utils.logger import get_logger
from ..utils.time import utc_now, format_iso

logger = get_logger(__name__)


class InAppNotificationRepository:
    """Repository for in-app notification operations"""

    COLLECTION_NAME = "inapp_notifications"

    def __init__(self):
        self._collection: Collection = get_collection(self.COLLECTION_NAME)

    def create_notification(self, notification: InAppNotification) -> InAppNotification:
        """Store a notification; re-storing the same notification_id is a no-op"""
        doc = notification.model_dump(mode="json")
        doc["_id"] = notification.notification_id

        try:
            self._collection.insert_one(doc)
        except DuplicateKeyError:
            logger.info(f"Notification {notification.notification_id} already stored")
            return notification

        logger.info(
            f"Created in-app notification for {notification.recipient_user_id}",
            extra={
                "user_id": notification.recipient_user_id,
                "action": notification.event.value,
                "document_id": notification.document_id
            }
        )
        return notification

    def get_notifications_for_user(
        self,
        user_id: str,
        skip: int = 0,
        limit: int = 50,
        unread_only: bool = False
    ) -> List[InAppNotification]:
        """Get notifications for a user, newest first"""
        query: Dict[str, Any] = {"recipient_user_id": user_id}

        if unread_only:
            query["is_read"] = False

        cursor = self._collection.find(query).sort("created_at", DESCENDING).skip(skip).limit(limit)

        notifications = []
        for doc in cursor:
            doc.pop("_id", None)
            notifications.append(InAppNotification.model_validate(doc))

        return notifications

    def get_unread_count(self, user_id: str) -> int:
        """Get count of unread notifications for a user"""
        return self._collection.count_documents({
            "recipient_user_id": user_id,
            "is_read": False
        })

    def mark_as_read(self, notification_id: str, user_id: str) -> InAppNotification:
        """Mark a notification as read"""
        result = self._collection.find_one_and_update(
            {
                "notification_id": notification_id,
                "recipient_user_id": user_id
            },
            {
                "$set": {
                    "is_read": True,
                    "read_at": format_iso(utc_now())
                }
            },
            return_document=True
        )

        if result is None:
            raise NotFoundError(f"Notification {notification_id} not found")

        result.pop("_id", None)
        return InAppNotification.model_validate(result)
