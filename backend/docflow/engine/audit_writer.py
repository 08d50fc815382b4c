"""Audit Writer - Append-only audit events"""
from datetime import datetime
from typing import Any, Dict, Optional

from ..domain.models import AuditEvent
from ..domain.enums import AuditEventType
from ..repositories.audit_repo import AuditRepository
from ..utils.idgen import generate_audit_event_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AuditWriter:
    """
    Write audit events (append-only)

    Every workflow transition and decision produces an audit event.
    """

    def __init__(self):
        self.repo = AuditRepository()

    def write_event(
        self,
        document_id: str,
        event_type: AuditEventType,
        actor_id: Optional[str],
        run_id: Optional[str] = None,
        step_execution_id: Optional[str] = None,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        audit_event_id: Optional[str] = None,
        timestamp: Optional[datetime] = None
    ) -> AuditEvent:
        """Write a single audit event"""
        event = AuditEvent(
            audit_event_id=audit_event_id or generate_audit_event_id(),
            document_id=document_id,
            run_id=run_id,
            step_execution_id=step_execution_id,
            event_type=event_type,
            actor_id=actor_id,
            old_value=old_value,
            new_value=new_value,
            details=details or {},
            timestamp=timestamp or utc_now(),
            correlation_id=correlation_id
        )

        return self.repo.create_event(event)
