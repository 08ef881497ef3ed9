"""
Cash-Up API Routes
==================
Cashier submissions, reviewer decisions and audit evidence uploads.

Endpoints:
- GET  /cashups - List cashups (reviewers see all, others their own)
- POST /cashups - Create own draft cashup
- GET  /cashups/{id} - Get one cashup
- POST /cashups/submit-for-review - Submit a draft / resubmit after changes
- POST /cashups/{id}/audit-report - Upload evidence bound to a cashup
- POST /cashups/{id}/notes - Add reviewer note
- PUT  /cashups/{id}/review - Approve / reject / send back
- POST /audit-reports - Upload standalone evidence (employee + date read from the report)
- GET  /audit-reports - List stored standalone evidence
"""

import asyncio
import logging
from datetime import date

from fastapi import APIRouter, Depends, File, Query, UploadFile

from api.auth import get_current_actor
from api.dependencies import get_ingestion, get_settings, get_state_machine
from core.config import Settings
from core.constants import AUDIT_REPORT_LIST_DEFAULT_LIMIT, AUDIT_REPORT_LIST_MAX_LIMIT
from core.errors import ValidationError
from domain.entities import Actor
from domain.enums import EvidenceAction
from domain.schemas import (
    AuditReportListResponse,
    AuditReportSchema,
    CashupListResponse,
    CashupResponse,
    CashupSubmissionSchema,
    CreateCashupRequest,
    DetectedSchema,
    LinkedAuditSchema,
    LinkedAuditUploadResponse,
    ReviewDecisionRequest,
    ReviewerNoteRequest,
    StandaloneAuditSchema,
    StandaloneAuditUploadResponse,
    SubmitForReviewRequest,
    SubmitForReviewResponse,
)
from services.cashup.audit_ingestion import AuditIngestionService
from services.cashup.submission_state_machine import SubmissionStateMachine

logger = logging.getLogger("cashup.api.routes")

router = APIRouter(prefix="/cashups", tags=["Cashups"])
audit_router = APIRouter(prefix="/audit-reports", tags=["Audit Reports"])


async def _read_upload(file: UploadFile, settings: Settings) -> bytes:
    data = await file.read()
    if len(data) > settings.max_upload_bytes:
        raise ValidationError(f"File exceeds the {settings.MAX_UPLOAD_MB} MB upload limit", field="file")
    return data


# ===== Submissions =====


@router.get("")
def list_cashups(
    employee_id: str | None = Query(None, alias="employeeId"),
    on_date: date | None = Query(None, alias="date"),
    actor: Actor = Depends(get_current_actor),
    machine: SubmissionStateMachine = Depends(get_state_machine),
) -> dict:
    cashups = machine.list_visible(actor, employee_id=employee_id, on_date=on_date)
    return CashupListResponse(
        cashups=[CashupSubmissionSchema.model_validate(c) for c in cashups],
        total=len(cashups),
    ).dump()


@router.post("", status_code=201)
def create_cashup(
    body: CreateCashupRequest,
    actor: Actor = Depends(get_current_actor),
    machine: SubmissionStateMachine = Depends(get_state_machine),
) -> dict:
    created = machine.create_draft(actor, body.date, body.total_amount)
    return CashupResponse(message="Cashup draft created", cashup=CashupSubmissionSchema.model_validate(created)).dump()


@router.post("/submit-for-review")
def submit_for_review(
    body: SubmitForReviewRequest,
    actor: Actor = Depends(get_current_actor),
    ingestion: AuditIngestionService = Depends(get_ingestion),
) -> dict:
    outcome = ingestion.submit_for_review(actor, body.submission_id)
    return SubmitForReviewResponse(
        message="Cashup submitted for review",
        status=outcome.submission.status,
        is_late_submission=outcome.submission.is_late_submission,
    ).dump()


@router.get("/{submission_id}")
def get_cashup(
    submission_id: str,
    actor: Actor = Depends(get_current_actor),
    machine: SubmissionStateMachine = Depends(get_state_machine),
) -> dict:
    submission = machine.get_visible(actor, submission_id)
    return CashupResponse(cashup=CashupSubmissionSchema.model_validate(submission)).dump()


@router.post("/{submission_id}/notes")
def add_reviewer_note(
    submission_id: str,
    body: ReviewerNoteRequest,
    actor: Actor = Depends(get_current_actor),
    machine: SubmissionStateMachine = Depends(get_state_machine),
) -> dict:
    updated = machine.add_reviewer_note(actor, submission_id, body.note)
    return CashupResponse(message="Note added", cashup=CashupSubmissionSchema.model_validate(updated)).dump()


@router.put("/{submission_id}/review")
def review_cashup(
    submission_id: str,
    body: ReviewDecisionRequest,
    actor: Actor = Depends(get_current_actor),
    machine: SubmissionStateMachine = Depends(get_state_machine),
) -> dict:
    updated = machine.review(actor, submission_id, body.decision, body.note)
    return CashupResponse(
        message=f"Cashup {updated.status.value}",
        cashup=CashupSubmissionSchema.model_validate(updated),
    ).dump()


# ===== Audit evidence =====


@router.post("/{submission_id}/audit-report")
async def upload_linked_audit_report(
    submission_id: str,
    file: UploadFile = File(...),
    actor: Actor = Depends(get_current_actor),
    settings: Settings = Depends(get_settings),
    ingestion: AuditIngestionService = Depends(get_ingestion),
) -> dict:
    """Upload a transaction report for this cashup and reconcile it immediately."""
    data = await _read_upload(file, settings)
    outcome = await asyncio.to_thread(ingestion.upload_linked, actor, submission_id, file.filename, data)

    result = outcome.evidence.result
    totals = outcome.extracted.totals
    if outcome.evidence.action is EvidenceAction.SENT_BACK:
        message = "Audit report does not balance; cashup sent back for changes"
    else:
        message = "Audit report uploaded"

    return LinkedAuditUploadResponse(
        message=message,
        action=outcome.evidence.action,
        notify_failed=outcome.evidence.notify_failed,
        audit=LinkedAuditSchema(
            balanced=result.balanced,
            income_total=totals.income_total,
            expense_total=totals.expense_total,
            net_total=result.net_total,
            cashup_total=result.cashup_total,
            delta=result.delta,
            rows_parsed=totals.rows_parsed,
            sheet_name=totals.sheet_name,
            file_url=outcome.stored.url,
            file_name=outcome.file_name,
        ),
    ).dump()


@audit_router.post("")
async def upload_standalone_audit_report(
    file: UploadFile = File(...),
    actor: Actor = Depends(get_current_actor),
    settings: Settings = Depends(get_settings),
    ingestion: AuditIngestionService = Depends(get_ingestion),
) -> dict:
    """Upload a transaction report not tied to a cashup; it is matched on submit."""
    data = await _read_upload(file, settings)
    outcome = await asyncio.to_thread(ingestion.upload_standalone, actor, file.filename, data)

    report = outcome.report
    return StandaloneAuditUploadResponse(
        message="Audit report stored",
        detected=DetectedSchema(employee_name=outcome.employee_name, date=outcome.date_key),
        audit=StandaloneAuditSchema(
            income_total=report.income_total,
            expense_total=report.expense_total,
            net_total=report.net_total,
            file_url=report.file_url,
            file_name=report.file_name,
        ),
    ).dump()


@audit_router.get("")
def list_audit_reports(
    user_id: str | None = Query(None, alias="userId"),
    date_key: str | None = Query(None, alias="dateKey"),
    limit: int = Query(AUDIT_REPORT_LIST_DEFAULT_LIMIT, ge=1, le=AUDIT_REPORT_LIST_MAX_LIMIT),
    actor: Actor = Depends(get_current_actor),
    ingestion: AuditIngestionService = Depends(get_ingestion),
) -> dict:
    reports = ingestion.list_audit_reports(actor, user_id=user_id, date_key=date_key, limit=limit)
    return AuditReportListResponse(
        reports=[AuditReportSchema.model_validate(r) for r in reports],
        total=len(reports),
    ).dump()
