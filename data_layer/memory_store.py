"""
Cash-Up Engine - In-Memory Store
================================
Thread-safe in-process implementation of CashupRepository and UserDirectory.
In production, use SqlCashupStore.
"""

import copy
import threading
import uuid
from datetime import date, datetime, timezone

from data_layer.repository import CashupRepository, UserDirectory
from domain.entities import AuditReport, CashUpSubmission, Notification, UserRecord


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemoryCashupStore(CashupRepository, UserDirectory):
    """
    Dictionary-backed store.

    Every read returns a copy so callers never mutate stored state without
    going through save_submission / upsert_audit_report.
    """

    def __init__(self, users: list[UserRecord] | None = None):
        self._lock = threading.Lock()

        self._users: dict[str, UserRecord] = {}
        self._submissions: dict[str, CashUpSubmission] = {}
        self._audit_reports: dict[tuple[str, str], AuditReport] = {}
        self._notifications: list[Notification] = []

        for user in users or []:
            self.add_user(user)

    # =========================================================================
    # USER DIRECTORY
    # =========================================================================

    def add_user(self, user: UserRecord) -> UserRecord:
        with self._lock:
            self._users[user.id] = copy.deepcopy(user)
            return user

    def get_user(self, user_id: str) -> UserRecord | None:
        with self._lock:
            user = self._users.get(user_id)
            return copy.deepcopy(user) if user else None

    def find_users_by_name(self, name: str) -> list[UserRecord]:
        wanted = name.strip().lower()
        with self._lock:
            return [copy.deepcopy(u) for u in self._users.values() if u.name.strip().lower() == wanted]

    # =========================================================================
    # SUBMISSIONS
    # =========================================================================

    def create_submission(self, submission: CashUpSubmission) -> CashUpSubmission:
        with self._lock:
            if not submission.id:
                submission.id = uuid.uuid4().hex
            submission.created_at = submission.created_at or _utcnow()
            submission.updated_at = submission.created_at
            self._submissions[submission.id] = copy.deepcopy(submission)
            return copy.deepcopy(submission)

    def get_submission(self, submission_id: str) -> CashUpSubmission | None:
        with self._lock:
            found = self._submissions.get(submission_id)
            return copy.deepcopy(found) if found else None

    def save_submission(self, submission: CashUpSubmission) -> CashUpSubmission:
        with self._lock:
            submission.updated_at = _utcnow()
            self._submissions[submission.id] = copy.deepcopy(submission)
            return copy.deepcopy(submission)

    def list_submissions(self, user_id: str | None = None, on_date: date | None = None) -> list[CashUpSubmission]:
        with self._lock:
            results = list(self._submissions.values())

        if user_id:
            results = [s for s in results if s.user_id == user_id]
        if on_date:
            results = [s for s in results if s.date == on_date]

        results.sort(key=lambda s: s.created_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        return [copy.deepcopy(s) for s in results]

    # =========================================================================
    # AUDIT REPORTS
    # =========================================================================

    def upsert_audit_report(self, report: AuditReport) -> AuditReport:
        with self._lock:
            existing = self._audit_reports.get(report.key)
            stored = copy.deepcopy(report)
            stored.id = existing.id if existing else (report.id or uuid.uuid4().hex)
            stored.uploaded_at = report.uploaded_at or _utcnow()
            self._audit_reports[report.key] = stored
            return copy.deepcopy(stored)

    def get_audit_report(self, user_id: str, date_key: str) -> AuditReport | None:
        with self._lock:
            found = self._audit_reports.get((user_id, date_key))
            return copy.deepcopy(found) if found else None

    def list_audit_reports(
        self,
        user_id: str | None = None,
        date_key: str | None = None,
        limit: int = 50,
    ) -> list[AuditReport]:
        with self._lock:
            results = list(self._audit_reports.values())

        if user_id:
            results = [r for r in results if r.user_id == user_id]
        if date_key:
            results = [r for r in results if r.date_key == date_key]

        results.sort(key=lambda r: r.uploaded_at, reverse=True)
        return [copy.deepcopy(r) for r in results[:limit]]

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    def add_notification(self, notification: Notification) -> Notification:
        with self._lock:
            stored = copy.deepcopy(notification)
            stored.id = stored.id or uuid.uuid4().hex
            stored.created_at = stored.created_at or _utcnow()
            self._notifications.append(stored)
            return copy.deepcopy(stored)

    def list_notifications(self, recipient_user_id: str) -> list[Notification]:
        with self._lock:
            return [copy.deepcopy(n) for n in self._notifications if n.recipient_user_id == recipient_user_id]
