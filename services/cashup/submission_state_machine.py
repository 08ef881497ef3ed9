"""
Cash-Up Engine - Submission State Machine
=========================================
Owns the CashUpSubmission lifecycle.

Workflow:
1. Cashier creates a draft
2. Cashier submits for review -> pending (resolved when resubmitting after needs_changes)
3. Evidence arrives (bound upload now, or a standalone report picked up at submit time)
4. Unbalanced evidence -> needs_changes + system note + notification to the owner
5. Reviewer decides -> approved / rejected / needs_changes

Every transition is written as one document save. Notifications are
attempted afterwards and never unwind the save.
"""

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable
from zoneinfo import ZoneInfo

from core.config import Settings
from core.constants import (
    EVIDENCE_UPLOAD_ROLES,
    METRIC_DEFERRED_RECONCILIATION_FAILURES,
    METRIC_RECONCILIATIONS,
    REVIEW_DECISION_ROLES,
    REVIEWER_NOTE_ROLES,
    SYSTEM_NOTE_AUTHOR,
)
from core.errors import Forbidden, InvalidStateTransition, SubmissionNotFound, ValidationError
from data_layer.repository import CashupRepository
from domain.entities import Actor, AuditReport, AuditSnapshot, CashUpSubmission
from domain.enums import (
    REVIEWABLE_STATUSES,
    SUBMITTABLE_STATUSES,
    EvidenceAction,
    ReviewDecision,
    SubmissionStatus,
)
from observability.metrics import MetricsRegistry
from services.notifications.notification_sink import (
    NotificationSink,
    build_mismatch_notification,
    dispatch_best_effort,
)
from services.reconciliation.reconciliation_evaluator import ReconciliationResult, evaluate

logger = logging.getLogger("cashup.workflow")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def require_roles(actor: Actor, roles: Iterable[str]) -> None:
    roles = tuple(roles)
    if not actor.has_any_role(roles):
        raise Forbidden(required_roles=list(roles))


def is_late_submission(
    submission_date: date,
    submitted_at: datetime,
    cutoff_hour: int = 20,
    cutoff_minute: int = 0,
    grace_minutes: int = 30,
) -> bool:
    """True when submitted strictly after the day's cutoff plus grace period."""
    deadline = datetime.combine(
        submission_date, time(cutoff_hour, cutoff_minute), tzinfo=submitted_at.tzinfo
    ) + timedelta(minutes=grace_minutes)
    return submitted_at > deadline


def mismatch_note(result: ReconciliationResult) -> str:
    return (
        f"Audit report mismatch (expected net {result.net_total:.2f} vs cashup "
        f"{result.cashup_total:.2f}, delta {result.delta:.2f}). Submission sent back."
    )


@dataclass
class EvidenceOutcome:
    """Result of attaching bound evidence"""

    submission: CashUpSubmission
    result: ReconciliationResult
    action: EvidenceAction
    notify_failed: bool = False


@dataclass
class SubmitOutcome:
    """Result of submit-for-review; result is set when deferred evidence was reconciled"""

    submission: CashUpSubmission
    result: ReconciliationResult | None = None
    notify_failed: bool = False


class SubmissionStateMachine:
    def __init__(
        self,
        repository: CashupRepository,
        notification_sink: NotificationSink,
        settings: Settings,
        metrics: MetricsRegistry | None = None,
        clock: Clock | None = None,
    ):
        self._repository = repository
        self._sink = notification_sink
        self._settings = settings
        self._metrics = metrics or MetricsRegistry()
        self._clock = clock or utcnow

    # =========================================================================
    # Helpers
    # =========================================================================

    def now(self) -> datetime:
        current = self._clock()
        if self._settings.CASHUP_TIMEZONE:
            return current.astimezone(ZoneInfo(self._settings.CASHUP_TIMEZONE))
        return current

    def is_late(self, submission_date: date, submitted_at: datetime) -> bool:
        return is_late_submission(
            submission_date,
            submitted_at,
            self._settings.CASHUP_CUTOFF_HOUR,
            self._settings.CASHUP_CUTOFF_MINUTE,
            self._settings.CASHUP_GRACE_MINUTES,
        )

    def load(self, submission_id: str) -> CashUpSubmission:
        submission = self._repository.get_submission(submission_id)
        if submission is None:
            raise SubmissionNotFound(submission_id)
        return submission

    def _evaluate(self, net_total: float, submission: CashUpSubmission) -> ReconciliationResult:
        result = evaluate(net_total, submission.total_amount, self._settings.BALANCE_TOLERANCE)
        self._metrics.increment(METRIC_RECONCILIATIONS, labels={"balanced": str(result.balanced).lower()})
        return result

    def _send_back(self, submission: CashUpSubmission, result: ReconciliationResult, at: datetime) -> None:
        submission.status = SubmissionStatus.NEEDS_CHANGES
        submission.append_note(SYSTEM_NOTE_AUTHOR, mismatch_note(result), at)

    def _notify_mismatch(
        self,
        submission: CashUpSubmission,
        income_total: float,
        expense_total: float,
        result: ReconciliationResult,
        actor_user_id: str | None,
    ) -> bool:
        notification = build_mismatch_notification(submission, income_total, expense_total, result, actor_user_id)
        return dispatch_best_effort(self._sink, notification, self._metrics)

    # =========================================================================
    # Drafts and reads
    # =========================================================================

    def create_draft(self, actor: Actor, submission_date: date, total_amount: float | None = None) -> CashUpSubmission:
        if submission_date is None:
            raise ValidationError("date is required", field="date")
        submission = CashUpSubmission(id="", user_id=actor.id, date=submission_date, total_amount=total_amount)
        created = self._repository.create_submission(submission)
        logger.info(
            f"Draft cashup {created.id} created for {created.date_key}",
            extra={"user_id": actor.id, "submission_id": created.id},
        )
        return created

    def get_visible(self, actor: Actor, submission_id: str) -> CashUpSubmission:
        submission = self.load(submission_id)
        if submission.user_id != actor.id and not actor.has_any_role(EVIDENCE_UPLOAD_ROLES):
            raise Forbidden("Not allowed to view this cashup")
        return submission

    def list_visible(
        self,
        actor: Actor,
        employee_id: str | None = None,
        on_date: date | None = None,
    ) -> list[CashUpSubmission]:
        """Reviewers and admins see everyone's cashups, others only their own."""
        if not actor.has_any_role(EVIDENCE_UPLOAD_ROLES):
            employee_id = actor.id
        return self._repository.list_submissions(user_id=employee_id, on_date=on_date)

    # =========================================================================
    # Submit for review
    # =========================================================================

    def submit_for_review(self, actor: Actor, submission_id: str) -> SubmitOutcome:
        """
        Transition draft/needs_changes -> pending/resolved, then pick up any
        standalone evidence already stored for (owner, date).

        Raises:
            SubmissionNotFound, Forbidden, InvalidStateTransition
        """
        submission = self.load(submission_id)
        if submission.user_id != actor.id:
            raise Forbidden("Only the cashup owner can submit it for review")
        if submission.status not in SUBMITTABLE_STATUSES:
            raise InvalidStateTransition("submit for review", submission.status.value)

        now = self.now()
        previous = submission.status
        submission.status = (
            SubmissionStatus.RESOLVED if previous == SubmissionStatus.NEEDS_CHANGES else SubmissionStatus.PENDING
        )
        # Lateness is decided by the first submission only
        if submission.submitted_at is None:
            submission.is_late_submission = self.is_late(submission.date, now)
        submission.submitted_at = now
        submission.submitted_by_id = actor.id
        submission.submitted_by_name = actor.name

        saved = self._repository.save_submission(submission)
        logger.info(
            f"Cashup {saved.id} submitted: {previous.value} -> {saved.status.value}"
            f"{' (late)' if saved.is_late_submission else ''}",
            extra={"user_id": actor.id, "submission_id": saved.id, "date_key": saved.date_key},
        )

        try:
            return self._reconcile_deferred(saved, now)
        except Exception:
            logger.exception(
                f"Deferred audit reconciliation failed for cashup {saved.id}",
                extra={"submission_id": saved.id},
            )
            self._metrics.increment(METRIC_DEFERRED_RECONCILIATION_FAILURES)
            return SubmitOutcome(submission=saved)

    def _reconcile_deferred(self, submission: CashUpSubmission, now: datetime) -> SubmitOutcome:
        report = self._repository.get_audit_report(submission.user_id, submission.date_key)
        if report is None:
            return SubmitOutcome(submission=submission)

        # The caller falls back to the first save if this one fails
        submission = copy.deepcopy(submission)
        result = self._evaluate(report.net_total, submission)
        submission.audit_report = self._snapshot_from_report(report, result)
        if not result.balanced:
            self._send_back(submission, result, now)

        saved = self._repository.save_submission(submission)
        logger.info(
            f"Deferred audit report reconciled for cashup {saved.id}: "
            f"net={result.net_total:.2f} cashup={result.cashup_total:.2f} balanced={result.balanced}",
            extra={"submission_id": saved.id, "date_key": saved.date_key},
        )

        notify_failed = False
        if not result.balanced:
            notify_failed = self._notify_mismatch(saved, report.income_total, report.expense_total, result, None)
        return SubmitOutcome(submission=saved, result=result, notify_failed=notify_failed)

    @staticmethod
    def _snapshot_from_report(report: AuditReport, result: ReconciliationResult) -> AuditSnapshot:
        return AuditSnapshot(
            file_url=report.file_url,
            file_name=report.file_name,
            income_total=report.income_total,
            expense_total=report.expense_total,
            net_total=result.net_total,
            cashup_total=result.cashup_total,
            delta=result.delta,
            balanced=result.balanced,
            uploaded_at=report.uploaded_at,
            uploaded_by_id=report.uploaded_by_id,
            uploaded_by_name=report.uploaded_by_name,
        )

    # =========================================================================
    # Bound evidence
    # =========================================================================

    def check_evidence_target(self, actor: Actor, submission_id: str) -> CashUpSubmission:
        """Role gate, lookup and status check done before any file is stored."""
        require_roles(actor, EVIDENCE_UPLOAD_ROLES)
        submission = self.load(submission_id)
        if submission.status.is_terminal:
            raise InvalidStateTransition("attach audit report", submission.status.value)
        return submission

    def attach_evidence(
        self,
        actor: Actor,
        submission_id: str,
        income_total: float,
        expense_total: float,
        file_url: str | None,
        file_name: str,
    ) -> EvidenceOutcome:
        """
        Reconcile bound evidence immediately and store the snapshot.

        Allowed from any non-terminal status: new evidence replaces a stale
        verdict.
        """
        submission = self.check_evidence_target(actor, submission_id)

        now = self.now()
        result = self._evaluate(income_total - expense_total, submission)
        submission.audit_report = AuditSnapshot(
            file_url=file_url,
            file_name=file_name,
            income_total=income_total,
            expense_total=expense_total,
            net_total=result.net_total,
            cashup_total=result.cashup_total,
            delta=result.delta,
            balanced=result.balanced,
            uploaded_at=now,
            uploaded_by_id=actor.id,
            uploaded_by_name=actor.name,
        )

        action = EvidenceAction.STORED
        if not result.balanced:
            submission.stamp_reviewed(actor, now)
            self._send_back(submission, result, now)
            action = EvidenceAction.SENT_BACK

        saved = self._repository.save_submission(submission)
        logger.info(
            f"Audit report attached to cashup {saved.id}: action={action.value} delta={result.delta:.2f}",
            extra={"user_id": actor.id, "submission_id": saved.id, "action": action.value},
        )

        notify_failed = False
        if not result.balanced:
            notify_failed = self._notify_mismatch(saved, income_total, expense_total, result, actor.id)
        return EvidenceOutcome(submission=saved, result=result, action=action, notify_failed=notify_failed)

    # =========================================================================
    # Reviewer actions
    # =========================================================================

    def add_reviewer_note(self, actor: Actor, submission_id: str, note: str) -> CashUpSubmission:
        require_roles(actor, REVIEWER_NOTE_ROLES)
        text = (note or "").strip()
        if not text:
            raise ValidationError("Note is required", field="note")

        submission = self.load(submission_id)
        now = self.now()
        submission.append_note(actor.display_name, text, now)
        submission.stamp_reviewed(actor, now)
        return self._repository.save_submission(submission)

    def review(self, actor: Actor, submission_id: str, decision: ReviewDecision, note: str) -> CashUpSubmission:
        """Approve, reject or send back a submitted cashup. A note is mandatory."""
        require_roles(actor, REVIEW_DECISION_ROLES)
        text = (note or "").strip()
        if not text:
            raise ValidationError("Review note is required", field="note")

        submission = self.load(submission_id)
        if submission.status not in REVIEWABLE_STATUSES:
            raise InvalidStateTransition(decision.value.replace("_", " "), submission.status.value)

        now = self.now()
        previous = submission.status
        submission.status = decision.target_status
        submission.append_note(actor.display_name, text, now)
        submission.stamp_reviewed(actor, now)

        saved = self._repository.save_submission(submission)
        logger.info(
            f"Cashup {saved.id} reviewed: {previous.value} -> {saved.status.value}",
            extra={"user_id": actor.id, "submission_id": saved.id, "action": decision.value},
        )
        return saved
