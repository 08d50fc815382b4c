"""User Notifications API - In-app inbox endpoints"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query, HTTPException
from pydantic import BaseModel

from ..deps import get_current_user_dep
from ...domain.models import ActorContext, InAppNotification
from ...domain.errors import NotFoundError
from ...services.notification_service import NotificationService
from ...utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================

class NotificationResponse(BaseModel):
    """Single notification response"""
    notification_id: str
    event: str
    title: str
    message: str
    document_id: Optional[str] = None
    run_id: Optional[str] = None
    payload: Dict[str, Any] = {}
    is_read: bool
    created_at: str


class NotificationListResponse(BaseModel):
    """List of notifications with metadata"""
    items: List[NotificationResponse]
    unread_count: int
    total: int


def _to_response(n: InAppNotification) -> NotificationResponse:
    return NotificationResponse(
        notification_id=n.notification_id,
        event=n.event.value,
        title=n.title,
        message=n.message,
        document_id=n.document_id,
        run_id=n.run_id,
        payload=n.payload,
        is_read=n.is_read,
        created_at=n.created_at.isoformat()
    )


# =============================================================================
# Endpoints
# =============================================================================

@router.get("", response_model=NotificationListResponse)
async def get_notifications(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    actor: ActorContext = Depends(get_current_user_dep)
):
    """
    Get notifications for the current user, newest first.
    """
    service = NotificationService()
    notifications = service.list_for_user(
        actor.user_id, unread_only=unread_only, skip=skip, limit=limit
    )
    unread_count = service.unread_count(actor.user_id)

    return NotificationListResponse(
        items=[_to_response(n) for n in notifications],
        unread_count=unread_count,
        total=len(notifications)
    )


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: str,
    actor: ActorContext = Depends(get_current_user_dep)
):
    """
    Mark a single notification as read.
    """
    try:
        notification = NotificationService().mark_as_read(notification_id, actor.user_id)
        return _to_response(notification)
    except NotFoundError as e:
        logger.warning(f"Failed to mark notification as read: {e}", extra={"user_id": actor.user_id})
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
