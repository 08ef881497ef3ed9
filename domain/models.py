"""
SQLAlchemy Models for the Cash-Up Engine
Defines: CashUpSubmissionRow, AuditReportRow, NotificationRow, UserRow
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _uuid() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRow(Base):
    """
    User directory entry (read-only for this engine)
    """

    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=_uuid)
    name = Column(String(300), nullable=False, index=True)


class CashUpSubmissionRow(Base):
    """
    Cash-up submission - one cashier, one calendar day
    """

    __tablename__ = "cashup_submissions"

    id = Column(String(64), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False)
    date = Column(Date, nullable=False)
    total_amount = Column(Float)

    status = Column(String(32), nullable=False, default="draft", index=True)
    is_late_submission = Column(Boolean, nullable=False, default=False)

    submitted_at = Column(DateTime(timezone=True))
    submitted_by_id = Column(String(64))
    submitted_by_name = Column(String(300))

    reviewed_at = Column(DateTime(timezone=True))
    reviewed_by_id = Column(String(64))
    reviewed_by_name = Column(String(300))
    review_notes = Column(JSON, nullable=False, default=list)

    # Denormalized reconciliation snapshot
    audit_report = Column(JSON)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (Index("idx_cashup_user_date", "user_id", "date"),)


class AuditReportRow(Base):
    """
    Standalone audit evidence, one per employee per day
    """

    __tablename__ = "cashup_audit_reports"

    id = Column(String(64), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    date_key = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD

    employee_name_from_report = Column(String(300), nullable=False)
    report_from_date_key = Column(String(10), nullable=False)
    report_to_date_key = Column(String(10), nullable=False)

    file_url = Column(String(1000))
    file_name = Column(String(500), nullable=False)

    income_total = Column(Float, nullable=False)
    expense_total = Column(Float, nullable=False)
    net_total = Column(Float, nullable=False)

    uploaded_by_id = Column(String(64))
    uploaded_by_name = Column(String(300))
    uploaded_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (UniqueConstraint("user_id", "date_key", name="uq_cashup_audit_user_date"),)


class NotificationRow(Base):
    """
    Notification request - delivery is owned by the notification subsystem
    """

    __tablename__ = "notifications"

    id = Column(String(64), primary_key=True, default=_uuid)
    recipient_user_id = Column(String(64), nullable=False, index=True)
    actor_user_id = Column(String(64))
    type = Column(String(64), nullable=False)
    title = Column(String(300), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(500))
    severity = Column(String(16), nullable=False)
    data = Column(JSON)
    read_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
