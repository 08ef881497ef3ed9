"""
Cash-Up Engine - Audit Ingestion
================================
Top-level flows behind the upload and submit endpoints.

Linked upload:     role gate -> validate -> lookup -> extract -> store file -> attach + reconcile
Standalone upload: role gate -> validate -> extract -> resolve employee -> store file -> upsert AuditReport
Submit:            delegated to the state machine (which picks up standalone evidence)
"""

import logging
from dataclasses import dataclass

from core.config import Settings
from core.constants import (
    AUDIT_REPORT_LIST_DEFAULT_LIMIT,
    AUDIT_REPORT_LIST_MAX_LIMIT,
    DEFAULT_EVIDENCE_FILE_NAME,
    EVIDENCE_FOLDER,
    EVIDENCE_UPLOAD_ROLES,
    METRIC_AUDIT_UPLOADS,
    ROLE_CASHUP_REVIEWER,
)
from core.errors import Forbidden, MetadataNotFound, ValidationError
from data_layer.evidence_storage import EvidenceStorage, StoredEvidence
from data_layer.repository import CashupRepository, UserDirectory
from domain.entities import Actor, AuditReport, UserRecord
from domain.enums import ExtractionMode
from observability.metrics import MetricsRegistry
from services.cashup.submission_state_machine import (
    EvidenceOutcome,
    SubmissionStateMachine,
    SubmitOutcome,
    require_roles,
)
from services.identity.identity_resolver import resolve_identity
from services.workbook.workbook_extractor import ExtractedWorkbook, extract_workbook

logger = logging.getLogger("cashup.ingestion")


@dataclass
class LinkedUploadOutcome:
    evidence: EvidenceOutcome
    extracted: ExtractedWorkbook
    stored: StoredEvidence
    file_name: str


@dataclass
class StandaloneUploadOutcome:
    employee_name: str
    date_key: str
    user: UserRecord
    report: AuditReport
    extracted: ExtractedWorkbook


def _require_file(file_name: str | None, data: bytes | None) -> str:
    if not data:
        raise ValidationError("file is required", field="file")
    return (file_name or "").strip() or DEFAULT_EVIDENCE_FILE_NAME


class AuditIngestionService:
    def __init__(
        self,
        state_machine: SubmissionStateMachine,
        repository: CashupRepository,
        directory: UserDirectory,
        storage: EvidenceStorage,
        settings: Settings,
        metrics: MetricsRegistry | None = None,
    ):
        self._machine = state_machine
        self._repository = repository
        self._directory = directory
        self._storage = storage
        self._settings = settings
        self._metrics = metrics or MetricsRegistry()

    def _extract(self, data: bytes, mode: ExtractionMode) -> ExtractedWorkbook:
        return extract_workbook(
            data,
            mode=mode,
            header_scan_rows=self._settings.HEADER_SCAN_ROWS,
            metadata_scan_rows=self._settings.METADATA_SCAN_ROWS,
        )

    # =========================================================================
    # Linked upload
    # =========================================================================

    def upload_linked(self, actor: Actor, submission_id: str, file_name: str | None, data: bytes) -> LinkedUploadOutcome:
        """
        Attach evidence to a known submission and reconcile it right away.

        Raises:
            Forbidden, ValidationError, SubmissionNotFound, InvalidStateTransition,
            NoWorksheet, HeaderNotFound, UnreadableWorkbook, StorageError
        """
        require_roles(actor, EVIDENCE_UPLOAD_ROLES)
        if not submission_id:
            raise ValidationError("submissionId is required", field="submissionId")
        file_name = _require_file(file_name, data)
        self._machine.check_evidence_target(actor, submission_id)

        extracted = self._extract(data, ExtractionMode.LINKED)
        totals = extracted.totals
        stored = self._storage.put(f"{EVIDENCE_FOLDER}/{submission_id}", file_name, data)

        evidence = self._machine.attach_evidence(
            actor,
            submission_id,
            income_total=totals.income_total,
            expense_total=totals.expense_total,
            file_url=stored.url,
            file_name=file_name,
        )
        self._metrics.increment(METRIC_AUDIT_UPLOADS, labels={"mode": ExtractionMode.LINKED.value})
        return LinkedUploadOutcome(evidence=evidence, extracted=extracted, stored=stored, file_name=file_name)

    # =========================================================================
    # Standalone upload
    # =========================================================================

    def upload_standalone(self, actor: Actor, file_name: str | None, data: bytes) -> StandaloneUploadOutcome:
        """
        Store evidence for (employee, date) read from the report itself.

        Works whether or not a submission exists yet; the evidence is
        reconciled when the employee submits for that date.

        Raises:
            Forbidden, ValidationError, NoWorksheet, HeaderNotFound, UnreadableWorkbook,
            MetadataNotFound, AmbiguousOrNoIdentity, NameMismatch, StorageError
        """
        require_roles(actor, EVIDENCE_UPLOAD_ROLES)
        file_name = _require_file(file_name, data)

        extracted = self._extract(data, ExtractionMode.STANDALONE)
        metadata = extracted.metadata
        employee_name = metadata.employee_name_from_report if metadata else None
        date_key = metadata.date_key if metadata else None
        if not employee_name or not date_key:
            raise MetadataNotFound(employee_name, date_key)

        user = resolve_identity(employee_name, self._directory, date_key)
        stored = self._storage.put(f"{EVIDENCE_FOLDER}/{user.id}/{date_key}", file_name, data)

        totals = extracted.totals
        report = self._repository.upsert_audit_report(
            AuditReport(
                user_id=user.id,
                date_key=date_key,
                employee_name_from_report=employee_name,
                report_from_date_key=metadata.report_from_date_key or date_key,
                report_to_date_key=metadata.report_to_date_key or date_key,
                file_url=stored.url,
                file_name=file_name,
                income_total=totals.income_total,
                expense_total=totals.expense_total,
                net_total=totals.net_total,
                uploaded_by_id=actor.id,
                uploaded_by_name=actor.name,
                uploaded_at=self._machine.now(),
            )
        )
        self._metrics.increment(METRIC_AUDIT_UPLOADS, labels={"mode": ExtractionMode.STANDALONE.value})
        logger.info(
            f"Standalone audit report stored for user {user.id} on {date_key}",
            extra={"user_id": user.id, "date_key": date_key},
        )
        return StandaloneUploadOutcome(
            employee_name=employee_name,
            date_key=date_key,
            user=user,
            report=report,
            extracted=extracted,
        )

    def list_audit_reports(
        self,
        actor: Actor,
        user_id: str | None = None,
        date_key: str | None = None,
        limit: int = AUDIT_REPORT_LIST_DEFAULT_LIMIT,
    ) -> list[AuditReport]:
        if not actor.has_role(ROLE_CASHUP_REVIEWER):
            raise Forbidden("Only cashup reviewers can list audit reports", required_roles=[ROLE_CASHUP_REVIEWER])
        limit = max(1, min(int(limit), AUDIT_REPORT_LIST_MAX_LIMIT))
        return self._repository.list_audit_reports(user_id=user_id, date_key=date_key, limit=limit)

    # =========================================================================
    # Submit
    # =========================================================================

    def submit_for_review(self, actor: Actor, submission_id: str) -> SubmitOutcome:
        if not submission_id:
            raise ValidationError("submissionId is required", field="submissionId")
        return self._machine.submit_for_review(actor, submission_id)
