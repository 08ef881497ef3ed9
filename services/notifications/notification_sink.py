"""
Cash-Up Engine - Notification Sink
==================================
Mismatch notifications are fire-and-forget: they are requested only after
the submission write is durable, and a failed delivery never unwinds it.
"""

import logging
from abc import ABC, abstractmethod

from core.constants import (
    METRIC_NOTIFICATION_FAILURES,
    MISMATCH_NOTIFICATION_MESSAGE,
    MISMATCH_NOTIFICATION_TITLE,
    NOTIFICATION_LINK_DASHBOARD,
)
from data_layer.repository import CashupRepository
from domain.entities import CashUpSubmission, Notification
from domain.enums import NotificationSeverity, NotificationType
from observability.metrics import MetricsRegistry
from services.reconciliation.reconciliation_evaluator import ReconciliationResult

logger = logging.getLogger("cashup.notifications")


class NotificationSink(ABC):
    @abstractmethod
    def notify(self, notification: Notification) -> Notification:
        """Deliver or persist a notification; may raise."""


class RepositoryNotificationSink(NotificationSink):
    """Writes notifications into the keyed store for the portal to pick up"""

    def __init__(self, repository: CashupRepository):
        self._repository = repository

    def notify(self, notification: Notification) -> Notification:
        return self._repository.add_notification(notification)


def build_mismatch_notification(
    submission: CashUpSubmission,
    income_total: float,
    expense_total: float,
    result: ReconciliationResult,
    actor_user_id: str | None = None,
) -> Notification:
    """Balance-mismatch notification for the submission owner."""
    return Notification(
        recipient_user_id=submission.user_id,
        actor_user_id=actor_user_id,
        type=NotificationType.CASHUP_BALANCE_MISMATCH,
        title=MISMATCH_NOTIFICATION_TITLE,
        message=MISMATCH_NOTIFICATION_MESSAGE,
        link=NOTIFICATION_LINK_DASHBOARD,
        severity=NotificationSeverity.WARNING,
        data={
            "cashupSubmissionId": submission.id,
            "date": submission.date_key,
            "audit": {
                "incomeTotal": income_total,
                "expenseTotal": expense_total,
                "netTotal": result.net_total,
                "cashupTotal": result.cashup_total,
                "delta": result.delta,
            },
        },
    )


def dispatch_best_effort(
    sink: NotificationSink,
    notification: Notification,
    metrics: MetricsRegistry | None = None,
) -> bool:
    """
    Attempt delivery once.

    Returns:
        True when delivery failed (the caller reports it as notifyFailed)
    """
    try:
        sink.notify(notification)
    except Exception:
        logger.exception(
            f"Failed to create mismatch notification for submission "
            f"{notification.data.get('cashupSubmissionId')}",
            extra={"user_id": notification.recipient_user_id},
        )
        if metrics is not None:
            metrics.increment(METRIC_NOTIFICATION_FAILURES)
        return True
    return False
