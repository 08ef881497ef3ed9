"""
Domain Enums for the Cash-Up Engine
Defines statuses and state machine transitions
"""

from enum import Enum


class SubmissionStatus(str, Enum):
    """Cash-up submission workflow status"""

    DRAFT = "draft"  # Cashier still uploading/adjusting receipts
    PENDING = "pending"  # Submitted for review
    NEEDS_CHANGES = "needs_changes"  # Sent back by a reviewer or a failed reconciliation
    RESOLVED = "resolved"  # Resubmitted after needs_changes
    APPROVED = "approved"  # Reviewer final decision
    REJECTED = "rejected"  # Reviewer final decision

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({SubmissionStatus.APPROVED, SubmissionStatus.REJECTED})

# Statuses submit-for-review may start from
SUBMITTABLE_STATUSES = frozenset({SubmissionStatus.DRAFT, SubmissionStatus.NEEDS_CHANGES})

# Statuses a reviewer decision may start from
REVIEWABLE_STATUSES = frozenset({SubmissionStatus.PENDING, SubmissionStatus.RESOLVED})


class ReviewDecision(str, Enum):
    """Reviewer decision on a submission"""

    APPROVE = "approve"
    REJECT = "reject"
    SEND_BACK = "send_back"

    @property
    def target_status(self) -> SubmissionStatus:
        return {
            ReviewDecision.APPROVE: SubmissionStatus.APPROVED,
            ReviewDecision.REJECT: SubmissionStatus.REJECTED,
            ReviewDecision.SEND_BACK: SubmissionStatus.NEEDS_CHANGES,
        }[self]


class EvidenceAction(str, Enum):
    """Outcome of attaching evidence to a submission"""

    STORED = "stored"
    SENT_BACK = "sent_back"


class ExtractionMode(str, Enum):
    """Workbook extraction mode"""

    LINKED = "linked"  # Bound to a submission id: totals only
    STANDALONE = "standalone"  # Unbound: totals plus employee/date metadata


class NotificationType(str, Enum):
    CASHUP_BALANCE_MISMATCH = "CASHUP_BALANCE_MISMATCH"


class NotificationSeverity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"
