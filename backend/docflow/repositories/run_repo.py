"""Run Repository - Data access for workflow runs and their step executions"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import DESCENDING, ASCENDING
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_collection
from ..domain.models import WorkflowRun, OutcomeEvent
from ..domain.enums import StepExecutionStatus, ACTIVE_RUN_STATUSES
from ..domain.errors import RunNotFoundError, ConcurrencyError
from ..utils.logger import get_logger
from ..utils.time import utc_now, format_iso

logger = get_logger(__name__)

ACTIVE_STATUS_VALUES = [s.value for s in ACTIVE_RUN_STATUSES]

# Fields a transition may rewrite; the outbox is only ever appended to
TRANSITION_FIELDS = (
    "status", "current_step_id", "completed_at", "notes", "step_executions",
)


class RunRepository:
    """
    Repository for workflow runs

    A run document embeds its step executions and its outbox of pending
    outcome events, so a transition is a single version-checked write.
    """

    def __init__(self):
        self._runs: Collection = get_collection("workflow_runs")
        self._active_runs: Collection = get_collection("active_runs")

    def _to_model(self, doc: Dict[str, Any]) -> WorkflowRun:
        doc.pop("_id", None)
        return WorkflowRun.model_validate(doc)

    # =========================================================================
    # Run CRUD
    # =========================================================================

    def create_run(self, run: WorkflowRun) -> WorkflowRun:
        """Insert a new run together with its initial outbox"""
        doc = run.model_dump(mode="json")
        doc["_id"] = run.run_id

        self._runs.insert_one(doc)
        logger.info(
            f"Created workflow run: {run.run_id}",
            extra={"run_id": run.run_id, "document_id": run.document_id, "workflow_id": run.workflow_id}
        )
        return run

    def get_run(self, run_id: str) -> Optional[WorkflowRun]:
        """Get run by ID"""
        doc = self._runs.find_one({"run_id": run_id})
        if doc:
            return self._to_model(doc)
        return None

    def get_run_or_raise(self, run_id: str) -> WorkflowRun:
        """Get run by ID or raise error"""
        run = self.get_run(run_id)
        if not run:
            raise RunNotFoundError(f"Workflow run {run_id} not found", details={"run_id": run_id})
        return run

    def find_run_by_execution(self, step_execution_id: str) -> Optional[WorkflowRun]:
        """Find the run that owns a step execution"""
        doc = self._runs.find_one({"step_executions.step_execution_id": step_execution_id})
        if doc:
            return self._to_model(doc)
        return None

    def get_latest_run_for_document(self, document_id: str) -> Optional[WorkflowRun]:
        """Get the most recently created run for a document"""
        cursor = self._runs.find({"document_id": document_id}).sort("created_at", DESCENDING).limit(1)
        for doc in cursor:
            return self._to_model(doc)
        return None

    def save_transition(
        self,
        run: WorkflowRun,
        events: List[OutcomeEvent],
        expected_version: int
    ) -> WorkflowRun:
        """
        Persist a run transition with optimistic concurrency

        State fields are overwritten and the new outcome events are appended
        to the outbox in the same atomic update.

        Raises:
            ConcurrencyError: If the run was modified since it was read
        """
        doc = run.model_dump(mode="json", include=set(TRANSITION_FIELDS))
        doc["version"] = expected_version + 1
        doc["updated_at"] = format_iso(utc_now())

        update: Dict[str, Any] = {"$set": doc}
        if events:
            update["$push"] = {"outbox": {"$each": [e.model_dump(mode="json") for e in events]}}

        result = self._runs.find_one_and_update(
            {"run_id": run.run_id, "version": expected_version},
            update,
            return_document=True
        )

        if result is None:
            if self._runs.find_one({"run_id": run.run_id}, {"_id": 1}):
                raise ConcurrencyError(
                    f"Workflow run {run.run_id} was modified. Please refresh and try again.",
                    details={"expected_version": expected_version}
                )
            raise RunNotFoundError(f"Workflow run {run.run_id} not found", details={"run_id": run.run_id})

        logger.info(
            f"Saved run transition: {run.run_id} -> {run.status.value}",
            extra={"run_id": run.run_id, "status": run.status.value}
        )
        return self._to_model(result)

    # =========================================================================
    # Active Run Claims (one active run per document)
    # =========================================================================

    def claim_active_run(self, document_id: str, run_id: str) -> Optional[Dict[str, Any]]:
        """
        Claim the active-run slot of a document

        Returns:
            None if the claim succeeded, otherwise the existing claim
            (empty if it vanished before it could be read)
        """
        try:
            self._active_runs.insert_one({
                "_id": document_id,
                "run_id": run_id,
                "claimed_at": format_iso(utc_now())
            })
            return None
        except DuplicateKeyError:
            return self._active_runs.find_one({"_id": document_id}) or {}

    def release_active_run(self, document_id: str, run_id: str) -> bool:
        """Release a document's claim if it is still held by run_id"""
        result = self._active_runs.delete_one({"_id": document_id, "run_id": run_id})
        if result.deleted_count:
            logger.info(
                f"Released active run claim for document {document_id}",
                extra={"document_id": document_id, "run_id": run_id}
            )
        return result.deleted_count > 0

    # =========================================================================
    # Outbox
    # =========================================================================

    def list_runs_with_outbox(self, limit: int = 100) -> List[WorkflowRun]:
        """Runs that still have unpublished outcome events"""
        cursor = self._runs.find({"outbox": {"$exists": True, "$ne": []}}).sort("updated_at", ASCENDING).limit(limit)
        return [self._to_model(doc) for doc in cursor]

    def remove_outbox_event(self, run_id: str, event_id: str) -> None:
        """Remove a published event from a run's outbox"""
        self._runs.update_one(
            {"run_id": run_id},
            {"$pull": {"outbox": {"event_id": event_id}}}
        )

    def record_outbox_failure(self, run_id: str, event_id: str, attempts: int, error: str) -> None:
        """Record a failed publication attempt on an outbox event"""
        self._runs.update_one(
            {"run_id": run_id, "outbox.event_id": event_id},
            {"$set": {
                "outbox.$.attempts": attempts,
                "outbox.$.last_error": error[:500],
            }}
        )

    # =========================================================================
    # Pending Execution Queries
    # =========================================================================

    def list_active_runs_for_assignee(self, user_id: str) -> List[WorkflowRun]:
        """Active runs holding a pending execution for the user"""
        cursor = self._runs.find({
            "status": {"$in": ACTIVE_STATUS_VALUES},
            "step_executions": {"$elemMatch": {
                "assignee_id": user_id,
                "status": StepExecutionStatus.PENDING.value,
            }},
        }).sort("started_at", ASCENDING)
        return [self._to_model(doc) for doc in cursor]

    def list_active_runs_with_deadlines(self, limit: int = 500) -> List[WorkflowRun]:
        """Active runs with pending, not yet reminded executions that carry a due date"""
        cursor = self._runs.find({
            "status": {"$in": ACTIVE_STATUS_VALUES},
            "step_executions": {"$elemMatch": {
                "status": StepExecutionStatus.PENDING.value,
                "due_at": {"$ne": None},
                "reminder_sent_at": None,
            }},
        }).limit(limit)
        return [self._to_model(doc) for doc in cursor]
