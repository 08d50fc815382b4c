"""Outcome Publisher - Applies the side effects of run transitions

Every transition records its audit entries, document status mirrors and
notification intents as outcome events on the run's outbox, inside the
same write that changes run state. The publisher applies them after the
write commits and removes each event once applied.
"""
from typing import Any, Dict, List, Optional, Set

from ..config.settings import settings
from ..domain.models import WorkflowRun, OutcomeEvent
from ..domain.enums import OutcomeKind, AuditEventType, NotificationEvent
from ..repositories.run_repo import RunRepository
from ..repositories.document_repo import DocumentRepository
from ..services.notification_service import NotificationService
from ..utils.idgen import generate_outcome_event_id
from ..utils.time import utc_now, format_iso, parse_iso
from ..utils.logger import get_logger, get_correlation_id
from .audit_writer import AuditWriter

logger = get_logger(__name__)


class OutcomeRecorder:
    """Collects the outcome events produced by a single transition"""

    def __init__(self, run: WorkflowRun):
        self.run = run
        self.events: List[OutcomeEvent] = []

    def _add(self, kind: OutcomeKind, payload: Dict[str, Any]) -> None:
        self.events.append(OutcomeEvent(
            event_id=generate_outcome_event_id(),
            kind=kind,
            payload=payload,
            created_at=utc_now()
        ))

    def audit(
        self,
        event_type: AuditEventType,
        actor_id: Optional[str],
        step_execution_id: Optional[str] = None,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        self._add(OutcomeKind.AUDIT, {
            "document_id": self.run.document_id,
            "run_id": self.run.run_id,
            "event_type": event_type.value,
            "actor_id": actor_id,
            "step_execution_id": step_execution_id,
            "old_value": old_value,
            "new_value": new_value,
            "details": {"workflow_id": self.run.workflow_id, **(details or {})},
            "correlation_id": get_correlation_id(),
            "timestamp": format_iso(utc_now()),
        })

    def document_status(self, **fields: Any) -> None:
        self._add(OutcomeKind.DOCUMENT_STATUS, {
            "document_id": self.run.document_id,
            "fields": {k: getattr(v, "value", v) for k, v in fields.items()},
        })

    def notify(self, user_id: Optional[str], event: NotificationEvent, **payload: Any) -> None:
        if not user_id:
            logger.info(
                f"Skipping {event.value} notification without recipient",
                extra={"run_id": self.run.run_id}
            )
            return
        self._add(OutcomeKind.NOTIFICATION, {
            "user_id": user_id,
            "event": event.value,
            "payload": {
                "document_id": self.run.document_id,
                "run_id": self.run.run_id,
                "workflow_name": self.run.workflow_name,
                **payload,
            },
        })


class OutcomePublisher:
    """
    Drains run outboxes

    Events are applied in order. When one fails it stays in the outbox with
    its attempt count bumped, and later events of the same kind wait behind
    it. After outcome_max_attempts failures the event is dropped.
    """

    def __init__(
        self,
        run_repo: Optional[RunRepository] = None,
        audit_writer: Optional[AuditWriter] = None,
        document_repo: Optional[DocumentRepository] = None,
        notification_service: Optional[NotificationService] = None,
        max_attempts: Optional[int] = None
    ):
        self.run_repo = run_repo or RunRepository()
        self.audit_writer = audit_writer or AuditWriter()
        self.document_repo = document_repo or DocumentRepository()
        self.notification_service = notification_service or NotificationService()
        self.max_attempts = max_attempts or settings.outcome_max_attempts

    def publish_run(self, run: WorkflowRun) -> int:
        """Publish a run's pending outcome events. Returns count applied."""
        applied = 0
        blocked: Set[OutcomeKind] = set()

        for event in run.outbox:
            if event.kind in blocked:
                continue
            try:
                self._apply(event)
            except Exception as e:
                attempts = event.attempts + 1
                if attempts >= self.max_attempts:
                    logger.error(
                        f"Dropping {event.kind.value} event {event.event_id} after {attempts} attempts: {e}",
                        extra={"run_id": run.run_id, "document_id": run.document_id}
                    )
                    self.run_repo.remove_outbox_event(run.run_id, event.event_id)
                else:
                    logger.warning(
                        f"Failed to publish {event.kind.value} event {event.event_id} "
                        f"(attempt {attempts}/{self.max_attempts}): {e}",
                        extra={"run_id": run.run_id, "document_id": run.document_id}
                    )
                    self.run_repo.record_outbox_failure(run.run_id, event.event_id, attempts, str(e))
                    blocked.add(event.kind)
                continue

            self.run_repo.remove_outbox_event(run.run_id, event.event_id)
            applied += 1

        return applied

    def drain(self, limit: int = 100) -> int:
        """Publish outstanding events across all runs"""
        total = 0
        for run in self.run_repo.list_runs_with_outbox(limit=limit):
            total += self.publish_run(run)
        if total:
            logger.info(f"Published {total} outstanding outcome events")
        return total

    def _apply(self, event: OutcomeEvent) -> None:
        payload = event.payload

        if event.kind == OutcomeKind.AUDIT:
            self.audit_writer.write_event(
                document_id=payload["document_id"],
                event_type=AuditEventType(payload["event_type"]),
                actor_id=payload.get("actor_id"),
                run_id=payload.get("run_id"),
                step_execution_id=payload.get("step_execution_id"),
                old_value=payload.get("old_value"),
                new_value=payload.get("new_value"),
                details=payload.get("details"),
                correlation_id=payload.get("correlation_id"),
                audit_event_id=event.event_id,
                timestamp=parse_iso(payload["timestamp"]) if payload.get("timestamp") else None,
            )

        elif event.kind == OutcomeKind.DOCUMENT_STATUS:
            self.document_repo.update_workflow_fields(payload["document_id"], payload["fields"])

        elif event.kind == OutcomeKind.NOTIFICATION:
            self.notification_service.notify(
                user_id=payload["user_id"],
                event=NotificationEvent(payload["event"]),
                payload=payload.get("payload", {}),
                notification_id=event.event_id,
            )
