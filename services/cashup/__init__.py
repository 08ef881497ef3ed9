"""Cash-Up Workflow Module"""

from .audit_ingestion import AuditIngestionService, LinkedUploadOutcome, StandaloneUploadOutcome
from .submission_state_machine import EvidenceOutcome, SubmissionStateMachine, SubmitOutcome

__all__ = [
    "AuditIngestionService",
    "LinkedUploadOutcome",
    "StandaloneUploadOutcome",
    "EvidenceOutcome",
    "SubmissionStateMachine",
    "SubmitOutcome",
]
