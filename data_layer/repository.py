"""
Cash-Up Engine - Store Interfaces
=================================
What the engine needs from persistence. Implementations:
- MemoryCashupStore (in process, tests and demos)
- SqlCashupStore (SQLAlchemy, any supported database)

Stores must provide:
- atomic document-level writes for submissions (last write wins)
- atomic upsert of audit reports on the unique (user_id, date_key) key
"""

from abc import ABC, abstractmethod
from datetime import date

from domain.entities import AuditReport, CashUpSubmission, Notification, UserRecord


class UserDirectory(ABC):
    """Read access to system users"""

    @abstractmethod
    def get_user(self, user_id: str) -> UserRecord | None: ...

    @abstractmethod
    def find_users_by_name(self, name: str) -> list[UserRecord]:
        """Exact, case-insensitive, full-string match on display name."""


class CashupRepository(ABC):
    """Keyed storage for submissions, audit reports and notifications"""

    # Submissions

    @abstractmethod
    def create_submission(self, submission: CashUpSubmission) -> CashUpSubmission: ...

    @abstractmethod
    def get_submission(self, submission_id: str) -> CashUpSubmission | None: ...

    @abstractmethod
    def save_submission(self, submission: CashUpSubmission) -> CashUpSubmission:
        """Replace the stored document with this one."""

    @abstractmethod
    def list_submissions(self, user_id: str | None = None, on_date: date | None = None) -> list[CashUpSubmission]:
        """Newest first."""

    # Audit reports

    @abstractmethod
    def upsert_audit_report(self, report: AuditReport) -> AuditReport:
        """Insert or replace the report stored under (user_id, date_key)."""

    @abstractmethod
    def get_audit_report(self, user_id: str, date_key: str) -> AuditReport | None: ...

    @abstractmethod
    def list_audit_reports(
        self,
        user_id: str | None = None,
        date_key: str | None = None,
        limit: int = 50,
    ) -> list[AuditReport]:
        """Newest upload first."""

    # Notifications

    @abstractmethod
    def add_notification(self, notification: Notification) -> Notification: ...

    @abstractmethod
    def list_notifications(self, recipient_user_id: str) -> list[Notification]: ...
