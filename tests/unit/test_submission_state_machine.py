"""
Cash-Up Engine - Submission State Machine Tests
===============================================
Run against both store adapters.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from conftest import CASHUP_DATE, FailingSink
from core.constants import METRIC_DEFERRED_RECONCILIATION_FAILURES, METRIC_NOTIFICATION_FAILURES, METRIC_RECONCILIATIONS
from core.errors import Forbidden, InvalidStateTransition, SubmissionNotFound, ValidationError
from domain.entities import Actor, AuditReport
from domain.enums import EvidenceAction, NotificationSeverity, NotificationType, ReviewDecision, SubmissionStatus
from services.cashup.submission_state_machine import SubmissionStateMachine, is_late_submission

DEADLINE = datetime(2026, 3, 2, 20, 30, tzinfo=timezone.utc)


def standalone_report(user_id="u-john", day=CASHUP_DATE, income=150.0, expense=30.0) -> AuditReport:
    return AuditReport(
        user_id=user_id,
        date_key=day.isoformat(),
        employee_name_from_report="John Smith",
        report_from_date_key=day.isoformat(),
        report_to_date_key=day.isoformat(),
        file_url="memory://evidence/report.xlsx",
        file_name="report.xlsx",
        income_total=income,
        expense_total=expense,
        net_total=income - expense,
        uploaded_by_id="u-rev",
        uploaded_by_name="Rita Reviewer",
        uploaded_at=datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc),
    )


class TestLateness:
    def test_exactly_at_deadline_is_on_time(self):
        assert is_late_submission(date(2026, 3, 2), DEADLINE) is False

    def test_one_second_after_deadline_is_late(self):
        assert is_late_submission(date(2026, 3, 2), DEADLINE + timedelta(seconds=1)) is True

    def test_next_day_is_late(self):
        assert is_late_submission(date(2026, 3, 2), datetime(2026, 3, 3, 8, 0, tzinfo=timezone.utc)) is True

    def test_configurable_cutoff(self):
        submitted = datetime(2026, 3, 2, 18, 10, tzinfo=timezone.utc)
        assert is_late_submission(date(2026, 3, 2), submitted, cutoff_hour=18, grace_minutes=0) is True
        assert is_late_submission(date(2026, 3, 2), submitted, cutoff_hour=18, grace_minutes=15) is False


class TestSubmitForReview:
    def test_draft_becomes_pending(self, machine, draft, cashier, clock):
        outcome = machine.submit_for_review(cashier, draft.id)

        submission = outcome.submission
        assert submission.status == SubmissionStatus.PENDING
        assert submission.is_late_submission is False
        assert submission.submitted_by_id == "u-john"
        assert submission.submitted_by_name == "John Smith"
        assert submission.submitted_at is not None
        assert outcome.result is None

    def test_late_submission_is_flagged(self, machine, draft, cashier, clock):
        clock.now = DEADLINE + timedelta(minutes=1)
        outcome = machine.submit_for_review(cashier, draft.id)
        assert outcome.submission.is_late_submission is True

    def test_only_owner_may_submit(self, machine, draft, store):
        stranger = Actor(id="u-mary", name="Mary Jones")
        with pytest.raises(Forbidden):
            machine.submit_for_review(stranger, draft.id)
        assert store.get_submission(draft.id).status == SubmissionStatus.DRAFT

    def test_unknown_submission(self, machine, cashier):
        with pytest.raises(SubmissionNotFound):
            machine.submit_for_review(cashier, "missing")

    @pytest.mark.parametrize(
        "status",
        [SubmissionStatus.PENDING, SubmissionStatus.RESOLVED, SubmissionStatus.APPROVED, SubmissionStatus.REJECTED],
    )
    def test_illegal_from_status_leaves_submission_untouched(self, machine, store, draft, cashier, status):
        draft.status = status
        store.save_submission(draft)

        with pytest.raises(InvalidStateTransition) as exc:
            machine.submit_for_review(cashier, draft.id)

        assert exc.value.current_status == status.value
        assert status.value in exc.value.message
        after = store.get_submission(draft.id)
        assert after.status == status
        assert after.submitted_at is None

    def test_resubmit_after_changes_is_resolved(self, machine, store, draft, cashier):
        machine.submit_for_review(cashier, draft.id)
        sent_back = store.get_submission(draft.id)
        sent_back.status = SubmissionStatus.NEEDS_CHANGES
        store.save_submission(sent_back)

        outcome = machine.submit_for_review(cashier, draft.id)
        assert outcome.submission.status == SubmissionStatus.RESOLVED

    def test_lateness_is_frozen_at_first_submission(self, machine, store, draft, cashier, clock):
        machine.submit_for_review(cashier, draft.id)
        sent_back = store.get_submission(draft.id)
        sent_back.status = SubmissionStatus.NEEDS_CHANGES
        store.save_submission(sent_back)

        clock.now = DEADLINE + timedelta(hours=3)
        outcome = machine.submit_for_review(cashier, draft.id)

        assert outcome.submission.is_late_submission is False


class TestDeferredReconciliation:
    def test_balanced_standalone_evidence_is_attached(self, machine, store, draft, cashier, sink):
        store.upsert_audit_report(standalone_report(income=150.0, expense=30.0))

        outcome = machine.submit_for_review(cashier, draft.id)

        assert outcome.result.balanced is True
        assert outcome.submission.status == SubmissionStatus.PENDING
        assert outcome.submission.audit_report.net_total == 120.0
        assert outcome.submission.audit_report.file_name == "report.xlsx"
        assert outcome.submission.review_notes == []
        assert sink.sent == []

    def test_unbalanced_standalone_evidence_sends_back(self, machine, store, draft, cashier, sink, metrics):
        store.upsert_audit_report(standalone_report(income=150.0, expense=30.5))

        outcome = machine.submit_for_review(cashier, draft.id)

        submission = store.get_submission(draft.id)
        assert submission.status == SubmissionStatus.NEEDS_CHANGES
        assert submission.audit_report.balanced is False
        assert submission.audit_report.delta == pytest.approx(-0.5)
        assert len(submission.review_notes) == 1
        assert "System: Audit report mismatch (expected net 119.50 vs cashup 120.00, delta -0.50)" in (
            submission.review_notes[0]
        )

        assert len(sink.sent) == 1
        notification = sink.sent[0]
        assert notification.recipient_user_id == "u-john"
        assert notification.actor_user_id is None
        assert notification.type == NotificationType.CASHUP_BALANCE_MISMATCH
        assert notification.severity == NotificationSeverity.WARNING
        assert notification.link == "/cash-up/dashboard"
        assert notification.data["cashupSubmissionId"] == draft.id
        assert notification.data["date"] == "2026-03-02"
        assert notification.data["audit"]["incomeTotal"] == 150.0
        assert notification.data["audit"]["expenseTotal"] == 30.5
        assert outcome.notify_failed is False
        assert metrics.get(METRIC_RECONCILIATIONS, {"balanced": "false"}) == 1

    def test_evidence_for_other_day_is_ignored(self, machine, store, draft, cashier):
        store.upsert_audit_report(standalone_report(day=date(2026, 3, 1)))
        outcome = machine.submit_for_review(cashier, draft.id)
        assert outcome.result is None
        assert outcome.submission.audit_report is None

    def test_notification_failure_does_not_fail_submission(self, store, draft, cashier, settings, metrics, clock):
        failing = FailingSink()
        machine = SubmissionStateMachine(store, failing, settings, metrics=metrics, clock=clock)
        store.upsert_audit_report(standalone_report(income=10.0, expense=0.0))

        outcome = machine.submit_for_review(cashier, draft.id)

        assert failing.attempts == 1
        assert outcome.notify_failed is True
        assert store.get_submission(draft.id).status == SubmissionStatus.NEEDS_CHANGES
        assert metrics.get(METRIC_NOTIFICATION_FAILURES) == 1

    def test_lookup_failure_keeps_the_transition(self, store, draft, cashier, sink, settings, metrics, clock, monkeypatch):
        machine = SubmissionStateMachine(store, sink, settings, metrics=metrics, clock=clock)

        def broken_lookup(user_id, date_key):
            raise RuntimeError("index unavailable")

        monkeypatch.setattr(store, "get_audit_report", broken_lookup)

        outcome = machine.submit_for_review(cashier, draft.id)

        assert outcome.submission.status == SubmissionStatus.PENDING
        assert store.get_submission(draft.id).status == SubmissionStatus.PENDING
        assert metrics.get(METRIC_DEFERRED_RECONCILIATION_FAILURES) == 1

    def test_failed_evidence_save_reports_the_stored_state(
        self, store, draft, cashier, sink, settings, metrics, clock, monkeypatch
    ):
        """The returned cashup matches what was persisted when the second save fails."""
        machine = SubmissionStateMachine(store, sink, settings, metrics=metrics, clock=clock)
        store.upsert_audit_report(standalone_report(income=150.0, expense=30.5))

        original_save = store.save_submission
        calls = []

        def save_once(submission):
            calls.append(submission.status)
            if len(calls) > 1:
                raise RuntimeError("write conflict")
            return original_save(submission)

        monkeypatch.setattr(store, "save_submission", save_once)

        outcome = machine.submit_for_review(cashier, draft.id)

        persisted = store.get_submission(draft.id)
        assert len(calls) == 2
        assert persisted.status == SubmissionStatus.PENDING
        assert outcome.submission.status == persisted.status
        assert outcome.submission.review_notes == persisted.review_notes == []
        assert outcome.submission.audit_report is None
        assert outcome.result is None
        assert sink.sent == []
        assert metrics.get(METRIC_DEFERRED_RECONCILIATION_FAILURES) == 1


class TestAttachEvidence:
    def test_balanced_evidence_is_stored(self, machine, store, draft, reviewer, sink):
        outcome = machine.attach_evidence(reviewer, draft.id, 150.0, 30.0, "memory://x", "x.xlsx")

        assert outcome.action == EvidenceAction.STORED
        assert outcome.result.balanced is True
        submission = store.get_submission(draft.id)
        assert submission.status == SubmissionStatus.DRAFT
        assert submission.audit_report.uploaded_by_id == "u-rev"
        assert submission.review_notes == []
        assert sink.sent == []

    def test_mismatch_sends_back_with_one_note_and_one_notification(self, machine, store, draft, reviewer, sink):
        draft.total_amount = 119.5
        store.save_submission(draft)

        outcome = machine.attach_evidence(reviewer, draft.id, 150.0, 30.0, "memory://x", "x.xlsx")

        assert outcome.action == EvidenceAction.SENT_BACK
        assert outcome.result.delta == pytest.approx(0.5)
        submission = store.get_submission(draft.id)
        assert submission.status == SubmissionStatus.NEEDS_CHANGES
        assert submission.reviewed_by_id == "u-rev"
        assert len(submission.review_notes) == 1
        assert submission.review_notes[0].endswith(
            "System: Audit report mismatch (expected net 120.00 vs cashup 119.50, delta 0.50). Submission sent back."
        )
        assert len(sink.sent) == 1
        assert sink.sent[0].actor_user_id == "u-rev"

    @pytest.mark.parametrize("status", [SubmissionStatus.PENDING, SubmissionStatus.RESOLVED])
    def test_new_evidence_outranks_previous_verdict(self, machine, store, draft, reviewer, status):
        draft.status = status
        store.save_submission(draft)

        outcome = machine.attach_evidence(reviewer, draft.id, 500.0, 0.0, None, "x.xlsx")

        assert outcome.submission.status == SubmissionStatus.NEEDS_CHANGES

    @pytest.mark.parametrize("status", [SubmissionStatus.APPROVED, SubmissionStatus.REJECTED])
    def test_terminal_submission_rejects_evidence(self, machine, store, draft, reviewer, status):
        draft.status = status
        store.save_submission(draft)
        with pytest.raises(InvalidStateTransition):
            machine.attach_evidence(reviewer, draft.id, 1.0, 0.0, None, "x.xlsx")

    def test_requires_reviewer_or_admin(self, machine, draft, cashier, admin):
        with pytest.raises(Forbidden):
            machine.attach_evidence(cashier, draft.id, 1.0, 0.0, None, "x.xlsx")
        assert machine.attach_evidence(admin, draft.id, 120.0, 0.0, None, "x.xlsx").result.balanced

    def test_missing_declared_total_counts_as_zero(self, machine, store, reviewer):
        from domain.entities import CashUpSubmission

        empty = store.create_submission(CashUpSubmission(id="", user_id="u-john", date=CASHUP_DATE))
        outcome = machine.attach_evidence(reviewer, empty.id, 0.0, 0.0, None, "x.xlsx")
        assert outcome.result.cashup_total == 0
        assert outcome.action == EvidenceAction.STORED


class TestReviewerActions:
    def test_reviewer_note_is_appended_without_status_change(self, machine, store, draft, reviewer, clock):
        updated = machine.add_reviewer_note(reviewer, draft.id, "  Please attach the float slip  ")

        assert updated.status == SubmissionStatus.DRAFT
        assert updated.review_notes == [f"[{clock.now.isoformat()}] Rita Reviewer: Please attach the float slip"]
        assert updated.reviewed_by_id == "u-rev"

    def test_notes_are_append_only(self, machine, draft, reviewer):
        machine.add_reviewer_note(reviewer, draft.id, "first")
        updated = machine.add_reviewer_note(reviewer, draft.id, "second")
        assert [n.split(": ", 1)[1] for n in updated.review_notes] == ["first", "second"]

    def test_empty_note_is_rejected(self, machine, draft, reviewer):
        with pytest.raises(ValidationError):
            machine.add_reviewer_note(reviewer, draft.id, "   ")

    def test_admin_cannot_add_reviewer_notes(self, machine, draft, admin):
        with pytest.raises(Forbidden):
            machine.add_reviewer_note(admin, draft.id, "hello")

    @pytest.mark.parametrize(
        "decision,expected",
        [
            (ReviewDecision.APPROVE, SubmissionStatus.APPROVED),
            (ReviewDecision.REJECT, SubmissionStatus.REJECTED),
            (ReviewDecision.SEND_BACK, SubmissionStatus.NEEDS_CHANGES),
        ],
    )
    def test_review_decisions(self, machine, draft, cashier, reviewer, decision, expected):
        machine.submit_for_review(cashier, draft.id)
        updated = machine.review(reviewer, draft.id, decision, "checked")
        assert updated.status == expected
        assert updated.review_notes[-1].endswith("Rita Reviewer: checked")

    def test_review_of_draft_is_illegal(self, machine, draft, reviewer):
        with pytest.raises(InvalidStateTransition):
            machine.review(reviewer, draft.id, ReviewDecision.APPROVE, "ok")

    def test_review_requires_note(self, machine, draft, cashier, reviewer):
        machine.submit_for_review(cashier, draft.id)
        with pytest.raises(ValidationError):
            machine.review(reviewer, draft.id, ReviewDecision.APPROVE, "")


class TestVisibility:
    def test_cashier_sees_only_own(self, machine, store, draft, reviewer):
        mary = Actor(id="u-mary", name="Mary Jones")
        machine.create_draft(mary, CASHUP_DATE, 10.0)

        john = Actor(id="u-john", name="John Smith")
        assert [s.user_id for s in machine.list_visible(john, employee_id="u-mary")] == ["u-john"]
        assert len(machine.list_visible(reviewer)) == 2
        assert len(machine.list_visible(reviewer, employee_id="u-mary")) == 1

    def test_stranger_cannot_view(self, machine, draft):
        with pytest.raises(Forbidden):
            machine.get_visible(Actor(id="u-mary"), draft.id)

    def test_draft_requires_date(self, machine, cashier):
        with pytest.raises(ValidationError):
            machine.create_draft(cashier, None)
