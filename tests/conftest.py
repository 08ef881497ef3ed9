"""
Shared fixtures: in-memory workbooks, stores, actors, a fixed clock.
"""

import io
from datetime import date, datetime, timezone

import jwt
import pytest
from openpyxl import Workbook

from core.config import Settings, SettingsCache
from data_layer.evidence_storage import InMemoryEvidenceStorage
from data_layer.memory_store import MemoryCashupStore
from data_layer.sql_store import SqlCashupStore
from domain.entities import Actor, CashUpSubmission, UserRecord
from observability.metrics import MetricsRegistry
from services.cashup.audit_ingestion import AuditIngestionService
from services.cashup.submission_state_machine import SubmissionStateMachine
from services.notifications.notification_sink import NotificationSink, RepositoryNotificationSink

JWT_SECRET = "test-secret"

CASHUP_DATE = date(2026, 3, 2)
ON_TIME = datetime(2026, 3, 2, 18, 0, tzinfo=timezone.utc)


# =============================================================================
# Workbooks
# =============================================================================


def make_workbook(rows: list[list], sheet_title: str = "Transactions") -> bytes:
    """Build an .xlsx in memory from a list of rows."""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title
    for row in rows:
        ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def transaction_rows(income=(100, 50), expense=(30,), day: date = CASHUP_DATE) -> list[list]:
    stamp = datetime(day.year, day.month, day.day, 9, 0)
    rows = [["EffDate", "Transaction Type", "Amount", "Reference"]]
    rows += [[stamp, "INCOME", amount, f"in-{i}"] for i, amount in enumerate(income)]
    rows += [[stamp, "EXPENSE", amount, f"ex-{i}"] for i, amount in enumerate(expense)]
    return rows


def report_workbook(name: str = "John Smith", day: date = CASHUP_DATE, income=(100, 50), expense=(30,)) -> bytes:
    banner = [
        ["Branch 004 - Daily Ledger"],
        [f"TRANSACTION REPORT FOR {name} FROM {day.isoformat()} TO {day.isoformat()}"],
        [None],
    ]
    return make_workbook(banner + transaction_rows(income, expense, day))


# =============================================================================
# Clock / settings / metrics
# =============================================================================


class FixedClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime = ON_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def settings():
    return Settings(
        ENV="test",
        AUTH_ENABLED=True,
        AUTH_JWT_SECRET=JWT_SECRET,
        CASHUP_TIMEZONE="",
        STORAGE_BACKEND="memory",
        DATABASE_URL="memory://",
    )


@pytest.fixture
def metrics():
    return MetricsRegistry()


# =============================================================================
# Stores
# =============================================================================

USERS = [
    UserRecord(id="u-john", name="John Smith"),
    UserRecord(id="u-mary", name="Mary Jones"),
    UserRecord(id="u-rev", name="Rita Reviewer"),
]


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        store = MemoryCashupStore()
    else:
        store = SqlCashupStore.from_url("sqlite://")
    for user in USERS:
        store.add_user(user)
    return store


@pytest.fixture
def storage():
    return InMemoryEvidenceStorage()


class RecordingSink(NotificationSink):
    def __init__(self):
        self.sent = []

    def notify(self, notification):
        self.sent.append(notification)
        return notification


class FailingSink(NotificationSink):
    def __init__(self):
        self.attempts = 0

    def notify(self, notification):
        self.attempts += 1
        raise ConnectionError("notification service unavailable")


@pytest.fixture
def sink():
    return RecordingSink()


# =============================================================================
# Actors
# =============================================================================


@pytest.fixture
def cashier():
    return Actor(id="u-john", name="John Smith")


@pytest.fixture
def reviewer():
    return Actor(id="u-rev", name="Rita Reviewer", roles=frozenset({"cashup_reviewer"}))


@pytest.fixture
def admin():
    return Actor(id="u-admin", name="Ada Admin", roles=frozenset({"admin"}))


def make_token(sub: str, name: str = "", role: str | None = None, roles: list[str] | None = None) -> str:
    claims = {"sub": sub, "name": name}
    if role:
        claims["role"] = role
    if roles:
        claims["roles"] = roles
    return jwt.encode(claims, JWT_SECRET, algorithm="HS256")


def auth_header(sub: str, name: str = "", role: str | None = None, roles: list[str] | None = None) -> dict:
    return {"Authorization": f"Bearer {make_token(sub, name, role, roles)}"}


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def machine(store, sink, settings, metrics, clock):
    return SubmissionStateMachine(store, sink, settings, metrics=metrics, clock=clock)


@pytest.fixture
def ingestion(machine, store, storage, settings, metrics):
    return AuditIngestionService(machine, store, store, storage, settings, metrics=metrics)


@pytest.fixture
def draft(store):
    """John's draft for CASHUP_DATE declaring 120.00"""
    return store.create_submission(CashUpSubmission(id="", user_id="u-john", date=CASHUP_DATE, total_amount=120.0))


@pytest.fixture
def settings_cache(settings):
    return SettingsCache(ttl_seconds=3600, loader=lambda: settings)
