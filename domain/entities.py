"""
Domain entities for the Cash-Up Engine
Plain dataclasses shared by the services and every store adapter.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable

from domain.enums import NotificationSeverity, NotificationType, SubmissionStatus


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass
class Actor:
    """Authenticated caller with its role set"""

    id: str
    name: str = ""
    roles: frozenset[str] = frozenset()

    @classmethod
    def from_claims(cls, id: str, name: str = "", role: str | None = None, roles: Iterable[str] = ()) -> "Actor":
        merged = {r for r in [role, *roles] if r}
        return cls(id=str(id), name=name or "", roles=frozenset(merged))

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return any(r in self.roles for r in roles)


@dataclass
class UserRecord:
    """User directory entry"""

    id: str
    name: str


@dataclass
class AuditSnapshot:
    """Point-in-time copy of a reconciliation, embedded on a submission"""

    file_url: str | None
    file_name: str | None
    income_total: float
    expense_total: float
    net_total: float
    cashup_total: float
    delta: float
    balanced: bool
    uploaded_at: datetime | None = None
    uploaded_by_id: str | None = None
    uploaded_by_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_url": self.file_url,
            "file_name": self.file_name,
            "income_total": self.income_total,
            "expense_total": self.expense_total,
            "net_total": self.net_total,
            "cashup_total": self.cashup_total,
            "delta": self.delta,
            "balanced": self.balanced,
            "uploaded_at": _iso(self.uploaded_at),
            "uploaded_by_id": self.uploaded_by_id,
            "uploaded_by_name": self.uploaded_by_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "AuditSnapshot | None":
        if not data:
            return None
        return cls(
            file_url=data.get("file_url"),
            file_name=data.get("file_name"),
            income_total=data["income_total"],
            expense_total=data["expense_total"],
            net_total=data["net_total"],
            cashup_total=data["cashup_total"],
            delta=data["delta"],
            balanced=data["balanced"],
            uploaded_at=_parse_dt(data.get("uploaded_at")),
            uploaded_by_id=data.get("uploaded_by_id"),
            uploaded_by_name=data.get("uploaded_by_name"),
        )


@dataclass
class CashUpSubmission:
    """One cashier's declared cash position for one calendar date"""

    id: str
    user_id: str
    date: date
    total_amount: float | None = None
    status: SubmissionStatus = SubmissionStatus.DRAFT
    is_late_submission: bool = False

    submitted_at: datetime | None = None
    submitted_by_id: str | None = None
    submitted_by_name: str | None = None

    reviewed_at: datetime | None = None
    reviewed_by_id: str | None = None
    reviewed_by_name: str | None = None
    review_notes: list[str] = field(default_factory=list)

    audit_report: AuditSnapshot | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def date_key(self) -> str:
        return self.date.isoformat()

    def append_note(self, author: str, text: str, at: datetime) -> str:
        """Append a timestamped, attributed note and return it."""
        line = f"[{at.isoformat()}] {author}: {text}"
        self.review_notes.append(line)
        return line

    def stamp_reviewed(self, actor: Actor | None, at: datetime) -> None:
        self.reviewed_at = at
        self.reviewed_by_id = actor.id if actor else None
        self.reviewed_by_name = actor.name if actor else None


@dataclass
class AuditReport:
    """Standalone evidence keyed by (user_id, date_key)"""

    user_id: str
    date_key: str
    employee_name_from_report: str
    report_from_date_key: str
    report_to_date_key: str
    file_url: str | None
    file_name: str
    income_total: float
    expense_total: float
    net_total: float
    uploaded_by_id: str | None = None
    uploaded_by_name: str | None = None
    uploaded_at: datetime | None = None
    id: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.user_id, self.date_key)


@dataclass
class Notification:
    """Fire-and-forget record describing a balance-mismatch event"""

    recipient_user_id: str
    actor_user_id: str | None
    type: NotificationType
    title: str
    message: str
    link: str
    severity: NotificationSeverity
    data: dict[str, Any] = field(default_factory=dict)
    read_at: datetime | None = None
    created_at: datetime | None = None
    id: str | None = None
