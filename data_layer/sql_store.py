"""
Cash-Up Engine - SQLAlchemy Store
=================================
CashupRepository / UserDirectory over any SQLAlchemy engine.

Audit report upserts use INSERT ... ON CONFLICT (user_id, date_key) DO UPDATE,
so "latest evidence wins" is guaranteed by the database, not by a
read-then-write in Python.
"""

import logging
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import create_engine, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from data_layer.repository import CashupRepository, UserDirectory
from domain.entities import AuditReport, AuditSnapshot, CashUpSubmission, Notification, UserRecord
from domain.enums import NotificationSeverity, NotificationType, SubmissionStatus
from domain.models import AuditReportRow, Base, CashUpSubmissionRow, NotificationRow, UserRow

logger = logging.getLogger("cashup.data_layer.sql")

# Columns an upsert must never overwrite
_UPSERT_KEEP = {"id", "user_id", "date_key"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _insert_for(dialect_name: str):
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Audit report upsert is not supported on {dialect_name}")
    return insert


class SqlCashupStore(CashupRepository, UserDirectory):
    """SQLAlchemy-backed store"""

    def __init__(self, engine: Engine, create_tables: bool = True):
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        if create_tables:
            Base.metadata.create_all(engine)

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "SqlCashupStore":
        """Build a store; in-memory SQLite shares one connection across threads."""
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            engine = create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            engine = create_engine(database_url, echo=echo, pool_pre_ping=True)
        logger.info(f"SQL store connected: {engine.url.render_as_string(hide_password=True)}")
        return cls(engine)

    # =========================================================================
    # USER DIRECTORY
    # =========================================================================

    def add_user(self, user: UserRecord) -> UserRecord:
        with self._session_factory.begin() as session:
            session.merge(UserRow(id=user.id, name=user.name))
        return user

    def get_user(self, user_id: str) -> UserRecord | None:
        with self._session_factory() as session:
            row = session.get(UserRow, user_id)
            return UserRecord(id=row.id, name=row.name) if row else None

    def find_users_by_name(self, name: str) -> list[UserRecord]:
        wanted = name.strip().lower()
        with self._session_factory() as session:
            rows = session.scalars(select(UserRow).where(func.lower(func.trim(UserRow.name)) == wanted)).all()
            return [UserRecord(id=r.id, name=r.name) for r in rows]

    # =========================================================================
    # SUBMISSIONS
    # =========================================================================

    def create_submission(self, submission: CashUpSubmission) -> CashUpSubmission:
        if not submission.id:
            submission.id = uuid.uuid4().hex
        submission.created_at = submission.created_at or _utcnow()
        submission.updated_at = submission.created_at
        with self._session_factory.begin() as session:
            session.add(self._submission_row(submission))
        return self.get_submission(submission.id)

    def get_submission(self, submission_id: str) -> CashUpSubmission | None:
        with self._session_factory() as session:
            row = session.get(CashUpSubmissionRow, submission_id)
            return self._to_submission(row) if row else None

    def save_submission(self, submission: CashUpSubmission) -> CashUpSubmission:
        submission.updated_at = _utcnow()
        with self._session_factory.begin() as session:
            session.merge(self._submission_row(submission))
        return self.get_submission(submission.id)

    def list_submissions(self, user_id: str | None = None, on_date: date | None = None) -> list[CashUpSubmission]:
        stmt = select(CashUpSubmissionRow)
        if user_id:
            stmt = stmt.where(CashUpSubmissionRow.user_id == user_id)
        if on_date:
            stmt = stmt.where(CashUpSubmissionRow.date == on_date)
        stmt = stmt.order_by(CashUpSubmissionRow.created_at.desc())
        with self._session_factory() as session:
            return [self._to_submission(r) for r in session.scalars(stmt).all()]

    # =========================================================================
    # AUDIT REPORTS
    # =========================================================================

    def upsert_audit_report(self, report: AuditReport) -> AuditReport:
        values = {
            "id": report.id or uuid.uuid4().hex,
            "user_id": report.user_id,
            "date_key": report.date_key,
            "employee_name_from_report": report.employee_name_from_report,
            "report_from_date_key": report.report_from_date_key,
            "report_to_date_key": report.report_to_date_key,
            "file_url": report.file_url,
            "file_name": report.file_name,
            "income_total": report.income_total,
            "expense_total": report.expense_total,
            "net_total": report.net_total,
            "uploaded_by_id": report.uploaded_by_id,
            "uploaded_by_name": report.uploaded_by_name,
            "uploaded_at": report.uploaded_at or _utcnow(),
        }
        insert = _insert_for(self._engine.dialect.name)
        stmt = insert(AuditReportRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "date_key"],
            set_={k: stmt.excluded[k] for k in values if k not in _UPSERT_KEEP},
        )
        with self._session_factory.begin() as session:
            session.execute(stmt)
        return self.get_audit_report(report.user_id, report.date_key)

    def get_audit_report(self, user_id: str, date_key: str) -> AuditReport | None:
        stmt = select(AuditReportRow).where(AuditReportRow.user_id == user_id, AuditReportRow.date_key == date_key)
        with self._session_factory() as session:
            row = session.scalars(stmt).first()
            return self._to_audit_report(row) if row else None

    def list_audit_reports(
        self,
        user_id: str | None = None,
        date_key: str | None = None,
        limit: int = 50,
    ) -> list[AuditReport]:
        stmt = select(AuditReportRow)
        if user_id:
            stmt = stmt.where(AuditReportRow.user_id == user_id)
        if date_key:
            stmt = stmt.where(AuditReportRow.date_key == date_key)
        stmt = stmt.order_by(AuditReportRow.uploaded_at.desc()).limit(limit)
        with self._session_factory() as session:
            return [self._to_audit_report(r) for r in session.scalars(stmt).all()]

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    def add_notification(self, notification: Notification) -> Notification:
        row = NotificationRow(
            id=notification.id or uuid.uuid4().hex,
            recipient_user_id=notification.recipient_user_id,
            actor_user_id=notification.actor_user_id,
            type=notification.type.value,
            title=notification.title,
            message=notification.message,
            link=notification.link,
            severity=notification.severity.value,
            data=notification.data,
            read_at=notification.read_at,
            created_at=notification.created_at or _utcnow(),
        )
        with self._session_factory.begin() as session:
            session.add(row)
        return self._to_notification(row)

    def list_notifications(self, recipient_user_id: str) -> list[Notification]:
        stmt = (
            select(NotificationRow)
            .where(NotificationRow.recipient_user_id == recipient_user_id)
            .order_by(NotificationRow.created_at)
        )
        with self._session_factory() as session:
            return [self._to_notification(r) for r in session.scalars(stmt).all()]

    # =========================================================================
    # MAPPING
    # =========================================================================

    @staticmethod
    def _submission_row(s: CashUpSubmission) -> CashUpSubmissionRow:
        return CashUpSubmissionRow(
            id=s.id,
            user_id=s.user_id,
            date=s.date,
            total_amount=s.total_amount,
            status=SubmissionStatus(s.status).value,
            is_late_submission=s.is_late_submission,
            submitted_at=s.submitted_at,
            submitted_by_id=s.submitted_by_id,
            submitted_by_name=s.submitted_by_name,
            reviewed_at=s.reviewed_at,
            reviewed_by_id=s.reviewed_by_id,
            reviewed_by_name=s.reviewed_by_name,
            review_notes=list(s.review_notes),
            audit_report=s.audit_report.to_dict() if s.audit_report else None,
            created_at=s.created_at,
            updated_at=s.updated_at,
        )

    @staticmethod
    def _to_submission(row: CashUpSubmissionRow) -> CashUpSubmission:
        return CashUpSubmission(
            id=row.id,
            user_id=row.user_id,
            date=row.date,
            total_amount=row.total_amount,
            status=SubmissionStatus(row.status),
            is_late_submission=bool(row.is_late_submission),
            submitted_at=row.submitted_at,
            submitted_by_id=row.submitted_by_id,
            submitted_by_name=row.submitted_by_name,
            reviewed_at=row.reviewed_at,
            reviewed_by_id=row.reviewed_by_id,
            reviewed_by_name=row.reviewed_by_name,
            review_notes=list(row.review_notes or []),
            audit_report=AuditSnapshot.from_dict(row.audit_report),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_audit_report(row: AuditReportRow) -> AuditReport:
        return AuditReport(
            id=row.id,
            user_id=row.user_id,
            date_key=row.date_key,
            employee_name_from_report=row.employee_name_from_report,
            report_from_date_key=row.report_from_date_key,
            report_to_date_key=row.report_to_date_key,
            file_url=row.file_url,
            file_name=row.file_name,
            income_total=row.income_total,
            expense_total=row.expense_total,
            net_total=row.net_total,
            uploaded_by_id=row.uploaded_by_id,
            uploaded_by_name=row.uploaded_by_name,
            uploaded_at=row.uploaded_at,
        )

    @staticmethod
    def _to_notification(row: NotificationRow) -> Notification:
        return Notification(
            id=row.id,
            recipient_user_id=row.recipient_user_id,
            actor_user_id=row.actor_user_id,
            type=NotificationType(row.type),
            title=row.title,
            message=row.message,
            link=row.link,
            severity=NotificationSeverity(row.severity),
            data=row.data or {},
            read_at=row.read_at,
            created_at=row.created_at,
        )
