"""Tests for step decisions, completion policies, failure and cancellation"""
import pytest

from docflow.domain.enums import RunStatus, StepExecutionStatus, StepDecision
from docflow.domain.errors import (
    ValidationError, RunNotFoundError, StepExecutionNotFoundError, RunMismatchError,
    NotAssignedError, AlreadyCompletedError, RunNotActiveError, StepNoLongerActiveError,
    PermissionDeniedError, ConcurrencyError
)
from docflow.engine.engine import WorkflowEngine
from docflow.repositories.audit_repo import AuditRepository
from docflow.repositories.document_repo import DocumentRepository

from .factories import step, users, actor, pending_for


def decide(engine, run, user_id, decision="approved", comments=None):
    execution = pending_for(run, user_id)
    return engine.complete_step(run.run_id, execution.step_execution_id, actor(user_id), decision, comments)


@pytest.fixture
def two_step_run(engine, make_document, make_workflow):
    make_document()
    make_workflow([
        step("legal_review", 1, users("u-lena", "u-liam")),
        step("finance_signoff", 2, users("u-fiona")),
    ])
    return engine.assign_workflow("DOC-1", workflow_id="WF-test")


class TestAllAssigneesPolicy:

    def test_advances_only_after_every_assignee_decides(self, engine, make_document, make_workflow):
        make_document()
        make_workflow([
            step("finance", 1, users("u-fiona", "u-frank", "u-fred"), all_assignees=True),
            step("legal", 2, users("u-lena")),
        ])
        run = engine.assign_workflow("DOC-1", workflow_id="WF-test")

        run = decide(engine, run, "u-fiona")
        run = decide(engine, run, "u-frank")
        assert run.current_step_id == "finance"
        assert [e.step_id for e in run.step_executions].count("legal") == 0

        run = decide(engine, run, "u-fred")
        assert run.current_step_id == "legal"
        assert pending_for(run, "u-lena")

    def test_required_rejection_fails_after_all_decide(self, engine, make_document, make_workflow):
        make_document()
        make_workflow([
            step("finance", 1, users("u-fiona", "u-frank"), all_assignees=True),
            step("legal", 2, users("u-lena")),
        ])
        run = engine.assign_workflow("DOC-1", workflow_id="WF-test")

        run = decide(engine, run, "u-fiona", "rejected")
        assert run.status == RunStatus.IN_PROGRESS

        run = decide(engine, run, "u-frank")
        assert run.status == RunStatus.FAILED


class TestAnyOnePolicy:

    def test_first_approval_advances_and_siblings_stay_pending(self, engine, two_step_run):
        run = decide(engine, two_step_run, "u-lena")

        assert run.current_step_id == "finance_signoff"
        liam = next(e for e in run.step_executions if e.assignee_id == "u-liam")
        assert liam.status == StepExecutionStatus.PENDING

    def test_sibling_cannot_decide_a_closed_step(self, engine, two_step_run):
        liam = pending_for(two_step_run, "u-liam")
        decide(engine, two_step_run, "u-lena")

        with pytest.raises(StepNoLongerActiveError):
            engine.complete_step(two_step_run.run_id, liam.step_execution_id, actor("u-liam"), "approved")

    def test_optional_rejection_advances(self, engine, make_document, make_workflow):
        make_document()
        make_workflow([
            step("optional_check", 1, users("u-lena"), required=False),
            step("signoff", 2, users("u-fiona")),
        ])
        run = engine.assign_workflow("DOC-1", workflow_id="WF-test")

        run = decide(engine, run, "u-lena", "rejected")

        assert run.status == RunStatus.IN_PROGRESS
        assert run.current_step_id == "signoff"

    def test_skip_is_recorded_without_advancing(self, engine, two_step_run):
        run = decide(engine, two_step_run, "u-lena", "skipped", comments="Out of office")

        assert run.current_step_id == "legal_review"
        lena = run.get_execution(pending_for(two_step_run, "u-lena").step_execution_id)
        assert lena.status == StepExecutionStatus.SKIPPED
        assert lena.comments == "Out of office"

    def test_required_step_skipped_by_everyone_stays_open(self, engine, two_step_run):
        decide(engine, two_step_run, "u-lena", "skipped")
        run = decide(engine, two_step_run, "u-liam", "skipped")

        assert run.status == RunStatus.IN_PROGRESS
        assert run.current_step_id == "legal_review"
        assert not any(e.step_id == "finance_signoff" for e in run.step_executions)
        assert engine.list_pending_steps_for_user("u-fiona") == []

    def test_optional_step_skipped_by_everyone_advances(self, engine, make_document, make_workflow):
        make_document()
        make_workflow([
            step("optional_check", 1, users("u-lena", "u-liam"), required=False),
            step("signoff", 2, users("u-fiona")),
        ])
        run = engine.assign_workflow("DOC-1", workflow_id="WF-test")

        decide(engine, run, "u-lena", "skipped")
        run = decide(engine, run, "u-liam", "skipped")

        assert run.current_step_id == "signoff"
        assert pending_for(run, "u-fiona")


class TestFailFast:

    def test_required_rejection_fails_run(self, engine, two_step_run):
        run = decide(engine, two_step_run, "u-liam", "rejected", comments="Missing clause")

        assert run.status == RunStatus.FAILED
        assert run.current_step_id is None
        assert run.completed_at is not None
        assert run.notes == "Required step rejected: Legal Review"
        assert not any(e.step_id == "finance_signoff" for e in run.step_executions)

        # Siblings are left pending unless orphan closing is enabled
        lena = next(e for e in run.step_executions if e.assignee_id == "u-lena")
        assert lena.status == StepExecutionStatus.PENDING

        document = DocumentRepository().get_document("DOC-1")
        assert document.workflow_status == RunStatus.FAILED
        assert document.status == "failed"

    def test_orphans_closed_when_enabled(self, engine, two_step_run):
        engine.close_orphaned_executions = True

        run = decide(engine, two_step_run, "u-liam", "rejected")

        lena = next(e for e in run.step_executions if e.assignee_id == "u-lena")
        assert lena.status == StepExecutionStatus.SKIPPED
        assert lena.comments == "Closed: workflow failed"


class TestDecisionValidation:

    def test_unknown_run(self, engine, two_step_run):
        execution = pending_for(two_step_run, "u-lena")
        with pytest.raises(RunNotFoundError):
            engine.complete_step("RUN-missing", execution.step_execution_id, actor("u-lena"), "approved")

    def test_unknown_execution(self, engine, two_step_run):
        with pytest.raises(StepExecutionNotFoundError):
            engine.complete_step(two_step_run.run_id, "SEX-missing", actor("u-lena"), "approved")

    def test_execution_of_another_run(self, engine, two_step_run, make_document):
        make_document("DOC-2")
        other = engine.assign_workflow("DOC-2", workflow_id="WF-test")
        foreign = pending_for(other, "u-lena")

        with pytest.raises(RunMismatchError) as exc:
            engine.complete_step(two_step_run.run_id, foreign.step_execution_id, actor("u-lena"), "approved")
        assert exc.value.message == "Step instance does not belong to this workflow instance"

    def test_not_assigned(self, engine, two_step_run):
        execution = pending_for(two_step_run, "u-lena")
        with pytest.raises(NotAssignedError):
            engine.complete_step(two_step_run.run_id, execution.step_execution_id, actor("u-liam"), "approved")

    def test_staff_cannot_decide_for_assignee(self, engine, two_step_run):
        execution = pending_for(two_step_run, "u-lena")
        with pytest.raises(NotAssignedError):
            engine.complete_step(two_step_run.run_id, execution.step_execution_id,
                                 actor("u-alice", "admin"), "approved")

    def test_repeat_decision(self, engine, make_document, make_workflow):
        make_document()
        make_workflow([step("review", 1, users("u-lena", "u-liam"), all_assignees=True)])
        run = engine.assign_workflow("DOC-1", workflow_id="WF-test")
        execution = pending_for(run, "u-lena")
        engine.complete_step(run.run_id, execution.step_execution_id, actor("u-lena"), "approved")

        with pytest.raises(AlreadyCompletedError):
            engine.complete_step(run.run_id, execution.step_execution_id, actor("u-lena"), "rejected")

        run = engine.run_repo.get_run(run.run_id)
        assert run.get_execution(execution.step_execution_id).status == StepExecutionStatus.APPROVED

    def test_invalid_decision(self, engine, two_step_run):
        execution = pending_for(two_step_run, "u-lena")
        with pytest.raises(ValidationError):
            engine.complete_step(two_step_run.run_id, execution.step_execution_id, actor("u-lena"), "maybe")

    def test_decision_on_cancelled_run(self, engine, two_step_run):
        execution = pending_for(two_step_run, "u-lena")
        engine.cancel_run(two_step_run.run_id, actor("u-sam"))

        with pytest.raises(RunNotActiveError):
            engine.complete_step(two_step_run.run_id, execution.step_execution_id, actor("u-lena"), "approved")


class TestEndToEnd:

    def test_approve_first_step_then_reject_second(self, engine, make_document, make_workflow):
        make_document()
        make_workflow([
            step("a", 1, users("u-lena", "u-liam")),
            step("b", 2, users("u-fiona"), all_assignees=True),
        ])

        run = engine.assign_workflow("DOC-1", workflow_id="WF-test")
        assert len(run.executions_for_step("a")) == 2

        run = decide(engine, run, "u-lena", StepDecision.APPROVED)
        assert run.current_step_id == "b"
        assert len(run.executions_for_step("b")) == 1

        run = decide(engine, run, "u-fiona", StepDecision.REJECTED)

        assert run.status == RunStatus.FAILED
        assert run.executions_for_step("b")[0].status == StepExecutionStatus.REJECTED
        assert DocumentRepository().get_document("DOC-1").status == "failed"
        assert [e.event_type.value for e in AuditRepository().get_events_for_run(run.run_id)] == [
            "workflow_assigned",
            "workflow_step_started",
            "approved",
            "workflow_step_started",
            "rejected",
            "workflow_failed",
        ]

    def test_all_steps_approved_completes(self, engine, two_step_run):
        run = decide(engine, two_step_run, "u-liam")
        run = decide(engine, run, "u-fiona")

        assert run.status == RunStatus.COMPLETED
        document = DocumentRepository().get_document("DOC-1")
        assert document.workflow_status == RunStatus.COMPLETED
        assert document.status == "completed"


class TestConcurrency:

    def test_lost_race_is_retried(self, engine, two_step_run, db, monkeypatch):
        original = engine.run_repo.save_transition
        raced = []

        def racing_save(run, events, expected_version):
            if not raced:
                raced.append(True)
                db.workflow_runs.update_one({"run_id": run.run_id}, {"$inc": {"version": 1}})
            return original(run, events, expected_version)

        monkeypatch.setattr(engine.run_repo, "save_transition", racing_save)

        run = decide(engine, two_step_run, "u-lena")

        assert run.current_step_id == "finance_signoff"
        assert run.version == two_step_run.version + 2

    def test_concurrent_sibling_decision_is_rejected(self, engine, two_step_run, monkeypatch):
        other_engine = WorkflowEngine()
        original = engine.run_repo.save_transition
        raced = []

        def racing_save(run, events, expected_version):
            if not raced:
                raced.append(True)
                decide(other_engine, two_step_run, "u-liam")
            return original(run, events, expected_version)

        monkeypatch.setattr(engine.run_repo, "save_transition", racing_save)

        with pytest.raises(StepNoLongerActiveError):
            decide(engine, two_step_run, "u-lena")

        run = engine.run_repo.get_run(two_step_run.run_id)
        assert run.current_step_id == "finance_signoff"
        assert len(run.executions_for_step("finance_signoff")) == 1

    def test_gives_up_after_max_retries(self, engine, two_step_run, db, monkeypatch):
        original = engine.run_repo.save_transition

        def always_racing(run, events, expected_version):
            db.workflow_runs.update_one({"run_id": run.run_id}, {"$inc": {"version": 1}})
            return original(run, events, expected_version)

        monkeypatch.setattr(engine.run_repo, "save_transition", always_racing)

        with pytest.raises(ConcurrencyError):
            decide(engine, two_step_run, "u-lena")

        run = engine.run_repo.get_run(two_step_run.run_id)
        assert pending_for(run, "u-lena").is_pending


class TestCancelRun:

    def test_submitter_can_cancel(self, engine, two_step_run):
        run = engine.cancel_run(two_step_run.run_id, actor("u-sam"), reason="Uploaded wrong file")

        assert run.status == RunStatus.CANCELLED
        assert run.notes == "Uploaded wrong file"
        assert run.completed_at is not None
        document = DocumentRepository().get_document("DOC-1")
        assert document.workflow_status == RunStatus.CANCELLED
        assert document.status == "uploaded"

    def test_staff_can_cancel(self, engine, two_step_run):
        run = engine.cancel_run(two_step_run.run_id, actor("u-olga", "staff"))
        assert run.status == RunStatus.CANCELLED

    def test_other_users_cannot_cancel(self, engine, two_step_run):
        with pytest.raises(PermissionDeniedError):
            engine.cancel_run(two_step_run.run_id, actor("u-lena"))
        assert not engine.can_cancel_run(actor("u-lena"), two_step_run)
        assert engine.can_cancel_run(actor("u-alice", "ADMIN"), two_step_run)

    def test_cannot_cancel_terminal_run(self, engine, two_step_run):
        engine.cancel_run(two_step_run.run_id, actor("u-sam"))
        with pytest.raises(RunNotActiveError):
            engine.cancel_run(two_step_run.run_id, actor("u-sam"))

    def test_cancel_allows_new_assignment(self, engine, two_step_run):
        engine.cancel_run(two_step_run.run_id, actor("u-sam"))
        fresh = engine.assign_workflow("DOC-1", workflow_id="WF-test")
        assert fresh.run_id != two_step_run.run_id


class TestPendingSteps:

    def test_lists_only_current_step_executions(self, engine, two_step_run):
        views = engine.list_pending_steps_for_user("u-lena")
        assert [v.step_id for v in views] == ["legal_review"]
        assert views[0].document_id == "DOC-1"

        decide(engine, two_step_run, "u-liam")

        assert engine.list_pending_steps_for_user("u-lena") == []
        assert [v.step_id for v in engine.list_pending_steps_for_user("u-fiona")] == ["finance_signoff"]
