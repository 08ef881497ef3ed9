"""
Cash-Up Engine - Error Taxonomy
===============================
Centralized error definitions for consistent error handling.
Every error carries the HTTP status the API layer answers with.
"""

from typing import Any, Dict, Optional


class CashupError(Exception):
    """
    Base exception for all cash-up engine errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional error details (dict)
    """

    status_code = 400

    def __init__(
        self,
        message: str,
        code: str = "CASHUP_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for API responses."""
        payload = {
            "success": False,
            "error": self.message,
            "code": self.code,
        }
        payload.update(self.details)
        return payload


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(CashupError):
    """Input validation failed (missing or malformed request fields)."""

    status_code = 422

    def __init__(self, message: str, field: str = None, details: Dict = None):
        details = dict(details or {})
        if field:
            details.setdefault("field", field)
        super().__init__(message, "VALIDATION_ERROR", details)
        self.field = field


# =============================================================================
# Extraction Errors
# =============================================================================


class ExtractionError(CashupError):
    """Spreadsheet could not be turned into totals."""

    def __init__(self, message: str, code: str = "EXTRACTION_ERROR", details: Dict = None):
        super().__init__(message, code, details)


class UnreadableWorkbook(ExtractionError):
    """Uploaded bytes are not a workbook we can open."""

    def __init__(self, reason: str):
        super().__init__(
            f"The uploaded file could not be read as a spreadsheet: {reason}",
            "UNREADABLE_WORKBOOK",
            {"reason": reason},
        )


class NoWorksheet(ExtractionError):
    """Workbook has no sheets."""

    def __init__(self):
        super().__init__("No worksheet found in the uploaded file.", "NO_WORKSHEET")


class HeaderNotFound(ExtractionError):
    """No TransactionType/Amount header row in the scanned rows."""

    def __init__(self, missing: list[str], scanned_rows: int):
        super().__init__(
            "Could not find the TransactionType/Amount header row in the spreadsheet.",
            "HEADER_NOT_FOUND",
            {"missingHeaders": list(missing), "scannedRows": scanned_rows},
        )
        self.missing = list(missing)


class MetadataNotFound(ExtractionError):
    """Standalone report lacks the employee name and/or reporting date."""

    def __init__(self, employee_name: Optional[str], date_key: Optional[str]):
        super().__init__(
            "Could not detect employee name and/or report date from the spreadsheet.",
            "METADATA_NOT_FOUND",
            {"detected": {"employeeName": employee_name, "date": date_key}},
        )


# =============================================================================
# Identity Errors
# =============================================================================


class AmbiguousOrNoIdentity(CashupError):
    """Detected report name did not resolve to exactly one user."""

    def __init__(self, employee_name: str, matches: int, date_key: Optional[str] = None):
        super().__init__(
            "Could not uniquely match the report employee to a user. "
            "Please upload via a specific cashup submission instead.",
            "AMBIGUOUS_OR_NO_IDENTITY",
            {"detected": {"employeeName": employee_name, "date": date_key}, "matches": matches},
        )
        self.employee_name = employee_name
        self.matches = matches


class NameMismatch(CashupError):
    """Resolved user's stored name is not contained in the detected name."""

    def __init__(self, employee_name: str, expected_name: str, date_key: Optional[str] = None):
        super().__init__(
            "Detected employee name does not match the resolved user name.",
            "NAME_MISMATCH",
            {
                "detected": {"employeeName": employee_name, "date": date_key},
                "expected": {"employeeName": expected_name, "date": date_key},
            },
        )


# =============================================================================
# Workflow Errors
# =============================================================================


class SubmissionNotFound(CashupError):
    """Cash-up submission id does not exist."""

    status_code = 404

    def __init__(self, submission_id: str):
        super().__init__(
            "Cash up submission not found",
            "SUBMISSION_NOT_FOUND",
            {"submissionId": submission_id},
        )
        self.submission_id = submission_id


class InvalidStateTransition(CashupError):
    """Transition is not legal from the submission's current status."""

    status_code = 409

    def __init__(self, action: str, current_status: str):
        super().__init__(
            f"Cannot {action}: current status is {current_status}",
            "INVALID_STATE_TRANSITION",
            {"action": action, "currentStatus": current_status},
        )
        self.current_status = current_status


# =============================================================================
# External Service Errors
# =============================================================================


class StorageError(CashupError):
    """Storage operation failed (MinIO/S3)."""

    status_code = 502

    def __init__(self, message: str, operation: str = None, details: Dict = None):
        super().__init__(message, "STORAGE_ERROR", details)
        self.operation = operation


# =============================================================================
# Auth Errors
# =============================================================================


class AuthError(CashupError):
    """Authentication error (missing or invalid credentials)."""

    status_code = 401

    def __init__(self, message: str, details: Dict = None):
        super().__init__(message, "AUTH_ERROR", details)


class Forbidden(CashupError):
    """Caller lacks the role or ownership the operation requires."""

    status_code = 403

    def __init__(self, message: str = "Forbidden", required_roles: Optional[list[str]] = None):
        details = {"requiredRoles": required_roles} if required_roles else {}
        super().__init__(message, "FORBIDDEN", details)


__all__ = [
    "CashupError",
    "ValidationError",
    "ExtractionError",
    "UnreadableWorkbook",
    "NoWorksheet",
    "HeaderNotFound",
    "MetadataNotFound",
    "AmbiguousOrNoIdentity",
    "NameMismatch",
    "SubmissionNotFound",
    "InvalidStateTransition",
    "StorageError",
    "AuthError",
    "Forbidden",
]
