"""
Pydantic Schemas for the Cash-Up API
Request/Response models. JSON uses camelCase; Python uses snake_case.
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from domain.enums import EvidenceAction, ReviewDecision, SubmissionStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    def dump(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ==============================================================================
# REQUESTS
# ==============================================================================


class CreateCashupRequest(CamelModel):
    """Create own draft cashup"""

    date: date
    total_amount: float | None = None


class SubmitForReviewRequest(CamelModel):
    submission_id: str = Field(..., min_length=1)


class ReviewerNoteRequest(CamelModel):
    note: str


class ReviewDecisionRequest(CamelModel):
    decision: ReviewDecision
    note: str


# ==============================================================================
# SUBMISSIONS
# ==============================================================================


class AuditSnapshotSchema(CamelModel):
    file_url: str | None = None
    file_name: str | None = None
    income_total: float
    expense_total: float
    net_total: float
    cashup_total: float
    delta: float
    balanced: bool
    uploaded_at: datetime | None = None
    uploaded_by_id: str | None = None
    uploaded_by_name: str | None = None


class CashupSubmissionSchema(CamelModel):
    id: str
    user_id: str
    date: date
    total_amount: float | None = None
    status: SubmissionStatus
    is_late_submission: bool = False

    submitted_at: datetime | None = None
    submitted_by_id: str | None = None
    submitted_by_name: str | None = None

    reviewed_at: datetime | None = None
    reviewed_by_id: str | None = None
    reviewed_by_name: str | None = None
    review_notes: list[str] = []

    audit_report: AuditSnapshotSchema | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None


class CashupResponse(CamelModel):
    success: bool = True
    message: str | None = None
    cashup: CashupSubmissionSchema


class CashupListResponse(CamelModel):
    success: bool = True
    cashups: list[CashupSubmissionSchema]
    total: int


class SubmitForReviewResponse(CamelModel):
    success: bool = True
    message: str
    status: SubmissionStatus
    is_late_submission: bool


# ==============================================================================
# AUDIT EVIDENCE
# ==============================================================================


class LinkedAuditSchema(CamelModel):
    balanced: bool
    income_total: float
    expense_total: float
    net_total: float
    cashup_total: float
    delta: float
    rows_parsed: int
    sheet_name: str
    file_url: str | None = None
    file_name: str


class LinkedAuditUploadResponse(CamelModel):
    success: bool = True
    message: str
    action: EvidenceAction
    notify_failed: bool = False
    audit: LinkedAuditSchema


class DetectedSchema(CamelModel):
    employee_name: str | None = None
    date: str | None = None


class StandaloneAuditSchema(CamelModel):
    income_total: float
    expense_total: float
    net_total: float
    file_url: str | None = None
    file_name: str


class StandaloneAuditUploadResponse(CamelModel):
    success: bool = True
    message: str
    detected: DetectedSchema
    audit: StandaloneAuditSchema


class AuditReportSchema(CamelModel):
    id: str | None = None
    user_id: str
    date_key: str
    employee_name_from_report: str
    report_from_date_key: str
    report_to_date_key: str
    file_url: str | None = None
    file_name: str
    income_total: float
    expense_total: float
    net_total: float
    uploaded_at: datetime | None = None
    uploaded_by_id: str | None = None
    uploaded_by_name: str | None = None


class AuditReportListResponse(CamelModel):
    success: bool = True
    reports: list[AuditReportSchema]
    total: int


# ==============================================================================
# HEALTH
# ==============================================================================


class HealthResponse(CamelModel):
    status: str
    version: str
    env: str
    store: str
    storage: str
    metrics: dict[str, Any] = {}
