"""Tests for workflow assignment, step opening and the active-run claim"""
from datetime import timedelta

import pytest

from docflow.domain.enums import RunStatus, StepExecutionStatus, AuditEventType
from docflow.domain.errors import (
    DocumentNotFoundError, WorkflowNotFoundError, ConcurrencyError
)
from docflow.repositories.audit_repo import AuditRepository
from docflow.repositories.document_repo import DocumentRepository
from docflow.utils.time import utc_now, format_iso, parse_iso

from .factories import step, users, actor, pending_for


def _event_types(run_id):
    return [e.event_type.value for e in AuditRepository().get_events_for_run(run_id)]


class TestAssignWorkflow:

    def test_explicit_assignment_opens_first_step(self, engine, make_document, make_workflow):
        make_document()
        make_workflow([
            step("legal_review", 1, users("u-lena", "u-liam")),
            step("finance_signoff", 2, users("u-fiona")),
        ])

        run = engine.assign_workflow("DOC-1", workflow_id="WF-test", actor=actor("u-alice", "admin"))

        assert run.status == RunStatus.IN_PROGRESS
        assert run.current_step_id == "legal_review"
        assert run.assigned_by == "u-alice"
        assert run.submitted_by == "u-sam"
        assert sorted(e.assignee_id for e in run.step_executions) == ["u-lena", "u-liam"]
        assert all(e.status == StepExecutionStatus.PENDING for e in run.step_executions)
        assert run.outbox == []

        document = DocumentRepository().get_document("DOC-1")
        assert document.workflow_run_id == run.run_id
        assert document.workflow_status == RunStatus.IN_PROGRESS

        assert _event_types(run.run_id) == ["workflow_assigned", "workflow_step_started"]

    def test_classification_picks_highest_priority_template(self, engine, make_document, make_workflow):
        make_document(classification="contract")
        make_workflow([step("a", 1, users("u-lena"))], workflow_id="WF-low", trigger_value="contract")
        make_workflow([step("b", 1, users("u-fiona"))], workflow_id="WF-high", trigger_value="contract", priority=5)
        make_workflow([step("c", 1, users("u-liam"))], workflow_id="WF-off", trigger_value="contract",
                      priority=9, is_active=False)

        run = engine.assign_workflow("DOC-1")

        assert run.workflow_id == "WF-high"
        assert run.assigned_by == "u-sam"

    def test_no_matching_template_returns_none(self, engine, make_document, make_workflow):
        make_document(classification="invoice")
        make_workflow([step("a", 1, users("u-lena"))], trigger_value="contract")

        assert engine.assign_workflow("DOC-1") is None
        assert engine.get_run_for_document("DOC-1") is None

    def test_unclassified_document_without_workflow_id(self, engine, make_document):
        make_document(classification=None)
        assert engine.assign_workflow("DOC-1") is None

    def test_unknown_document(self, engine):
        with pytest.raises(DocumentNotFoundError):
            engine.assign_workflow("DOC-missing", workflow_id="WF-test")

    def test_inactive_workflow_is_rejected(self, engine, make_document, make_workflow):
        make_document()
        make_workflow([step("a", 1, users("u-lena"))], is_active=False)

        with pytest.raises(WorkflowNotFoundError):
            engine.assign_workflow("DOC-1", workflow_id="WF-test")

    def test_template_is_snapshotted_on_the_run(self, engine, make_document, make_workflow):
        make_document()
        make_workflow([step("a", 1, users("u-lena")), step("b", 2, users("u-fiona"))])
        run = engine.assign_workflow("DOC-1", workflow_id="WF-test")

        make_workflow([step("z", 1, users("u-liam"))])
        run = engine.complete_step(run.run_id, pending_for(run, "u-lena").step_execution_id,
                                   actor("u-lena"), "approved")

        assert run.current_step_id == "b"


class TestSingleActiveRun:

    def test_repeat_assignment_returns_existing_run(self, engine, make_document, make_workflow, db):
        make_document()
        make_workflow([step("a", 1, users("u-lena"))])

        first = engine.assign_workflow("DOC-1", workflow_id="WF-test")
        second = engine.assign_workflow("DOC-1", workflow_id="WF-test")

        assert second.run_id == first.run_id
        assert db.workflow_runs.count_documents({"document_id": "DOC-1"}) == 1

    def test_new_run_allowed_after_failure(self, engine, make_document, make_workflow, db):
        make_document()
        make_workflow([step("a", 1, users("u-lena"))])
        run = engine.assign_workflow("DOC-1", workflow_id="WF-test")
        engine.complete_step(run.run_id, pending_for(run, "u-lena").step_execution_id,
                             actor("u-lena"), "rejected")

        retry = engine.assign_workflow("DOC-1", workflow_id="WF-test")

        assert retry.run_id != run.run_id
        assert retry.is_active
        assert engine.get_run_for_document("DOC-1").run_id == retry.run_id
        assert engine.run_repo.get_run(run.run_id).status == RunStatus.FAILED

        assignments = AuditRepository().get_events_for_document(
            "DOC-1", event_types=[AuditEventType.WORKFLOW_ASSIGNED]
        )
        assert [e.run_id for e in assignments] == [run.run_id, retry.run_id]

    def test_claim_held_by_terminal_run_is_cleared(self, engine, make_document, make_workflow, db):
        make_document()
        make_workflow([step("a", 1, users("u-lena"))])
        run = engine.assign_workflow("DOC-1", workflow_id="WF-test")
        engine.cancel_run(run.run_id, actor("u-sam"))
        # Simulate a crash between the terminal write and the claim release
        db.active_runs.insert_one({"_id": "DOC-1", "run_id": run.run_id, "claimed_at": format_iso(utc_now())})

        fresh = engine.assign_workflow("DOC-1", workflow_id="WF-test")

        assert fresh.run_id != run.run_id
        assert db.active_runs.find_one({"_id": "DOC-1"})["run_id"] == fresh.run_id

    def test_abandoned_claim_is_cleared_after_grace_period(self, engine, make_document, make_workflow, db):
        make_document()
        make_workflow([step("a", 1, users("u-lena"))])
        old = format_iso(utc_now() - timedelta(minutes=5))
        db.active_runs.insert_one({"_id": "DOC-1", "run_id": "RUN-never-written", "claimed_at": old})

        run = engine.assign_workflow("DOC-1", workflow_id="WF-test")

        assert run.is_active
        assert db.active_runs.find_one({"_id": "DOC-1"})["run_id"] == run.run_id

    def test_fresh_claim_without_run_is_in_progress(self, engine, make_document, make_workflow, db):
        make_document()
        make_workflow([step("a", 1, users("u-lena"))])
        db.active_runs.insert_one({
            "_id": "DOC-1", "run_id": "RUN-being-created", "claimed_at": format_iso(utc_now())
        })

        with pytest.raises(ConcurrencyError):
            engine.assign_workflow("DOC-1", workflow_id="WF-test")

    def test_claim_released_when_opening_first_step_fails(self, engine, make_document, make_workflow, db):
        make_document()
        make_workflow([step("a", 1, users("u-lena"))])

        def directory_down(specs):
            raise RuntimeError("directory unavailable")

        resolve = engine.assignee_resolver.resolve
        engine.assignee_resolver.resolve = directory_down
        with pytest.raises(RuntimeError):
            engine.assign_workflow("DOC-1", workflow_id="WF-test")

        assert db.active_runs.find_one({"_id": "DOC-1"}) is None
        assert db.workflow_runs.count_documents({"document_id": "DOC-1"}) == 0

        engine.assignee_resolver.resolve = resolve
        run = engine.assign_workflow("DOC-1", workflow_id="WF-test")

        assert run.is_active
        assert run.current_step_id == "a"

    def test_claim_released_when_run_completes_on_assignment(self, engine, make_document, make_workflow, db):
        make_document()
        make_workflow([step("a", 1, [])])

        run = engine.assign_workflow("DOC-1", workflow_id="WF-test")

        assert run.status == RunStatus.COMPLETED
        assert db.active_runs.find_one({"_id": "DOC-1"}) is None

    def test_claim_timestamp_is_recorded(self, engine, make_document, make_workflow, db):
        make_document()
        make_workflow([step("a", 1, users("u-lena"))])
        engine.assign_workflow("DOC-1", workflow_id="WF-test")

        claim = db.active_runs.find_one({"_id": "DOC-1"})
        assert (utc_now() - parse_iso(claim["claimed_at"])).total_seconds() < 60


class TestAutoSkip:

    def test_step_without_assignees_is_skipped(self, engine, make_document, make_workflow):
        make_document()
        make_workflow([
            step("nobody", 1, users("u-ghost")),
            step("legal_review", 2, users("u-lena")),
        ])

        run = engine.assign_workflow("DOC-1", workflow_id="WF-test")

        assert run.current_step_id == "legal_review"
        assert [e.step_id for e in run.step_executions] == ["legal_review"]
        assert _event_types(run.run_id) == [
            "workflow_assigned",
            "workflow_step_started",
            "workflow_step_skipped",
            "workflow_step_started",
        ]

    def test_all_steps_empty_completes_run(self, engine, make_document, make_workflow):
        make_document()
        make_workflow([step("a", 1, []), step("b", 2, users("u-ivy"))])

        run = engine.assign_workflow("DOC-1", workflow_id="WF-test")

        assert run.status == RunStatus.COMPLETED
        assert run.current_step_id is None
        assert run.step_executions == []
        document = DocumentRepository().get_document("DOC-1")
        assert document.workflow_status == RunStatus.COMPLETED
        assert document.status == "completed"
        assert _event_types(run.run_id)[-1] == "workflow_completed"

    def test_template_without_steps_completes_immediately(self, engine, make_document, make_workflow):
        make_document()
        make_workflow([])

        run = engine.assign_workflow("DOC-1", workflow_id="WF-test")

        assert run.status == RunStatus.COMPLETED
        assert run.completed_at is not None


class TestStepOrdering:

    def test_steps_open_in_ascending_order(self, engine, make_document, make_workflow):
        make_document()
        make_workflow([
            step("third", 30, users("u-fiona")),
            step("first", 10, users("u-lena")),
            step("second", 20, users("u-liam")),
        ])

        run = engine.assign_workflow("DOC-1", workflow_id="WF-test")
        opened = [run.current_step_id]
        for user_id in ("u-lena", "u-liam"):
            run = engine.complete_step(run.run_id, pending_for(run, user_id).step_execution_id,
                                       actor(user_id), "approved")
            opened.append(run.current_step_id)

        assert opened == ["first", "second", "third"]
        assert [e.step_order for e in run.step_executions] == [10, 20, 30]
