"""Audit Repository - Data access for audit events"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_collection
from ..domain.models import AuditEvent
from ..domain.enums import AuditEventType
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AuditRepository:
    """Repository for audit event operations (append-only)"""

    def __init__(self):
        self._audit_events: Collection = get_collection("audit_events")

    def create_event(self, event: AuditEvent) -> AuditEvent:
        """
        Create an audit event (append-only)

        Writing the same audit_event_id twice is a no-op, so a re-drained
        outbox never duplicates history.
        """
        doc = event.model_dump(mode="json")
        doc["_id"] = event.audit_event_id

        try:
            self._audit_events.insert_one(doc)
        except DuplicateKeyError:
            logger.info(
                f"Audit event {event.audit_event_id} already recorded",
                extra={"document_id": event.document_id, "run_id": event.run_id}
            )
            return event

        logger.info(
            f"Created audit event: {event.event_type.value}",
            extra={
                "document_id": event.document_id,
                "run_id": event.run_id,
                "actor_id": event.actor_id
            }
        )
        return event

    def get_events_for_document(
        self,
        document_id: str,
        event_types: Optional[List[AuditEventType]] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[AuditEvent]:
        """Get audit events for a document, oldest first"""
        query: Dict[str, Any] = {"document_id": document_id}

        if event_types:
            query["event_type"] = {"$in": [et.value for et in event_types]}

        cursor = self._audit_events.find(query).sort("timestamp", ASCENDING).skip(skip).limit(limit)

        events = []
        for doc in cursor:
            doc.pop("_id", None)
            events.append(AuditEvent.model_validate(doc))

        return events

    def get_events_for_run(self, run_id: str) -> List[AuditEvent]:
        """Get audit events for a workflow run, oldest first"""
        cursor = self._audit_events.find({"run_id": run_id}).sort("timestamp", ASCENDING)

        events = []
        for doc in cursor:
            doc.pop("_id", None)
            events.append(AuditEvent.model_validate(doc))

        return events
