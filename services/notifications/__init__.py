"""Notification Sink Module"""

from .notification_sink import (
    NotificationSink,
    RepositoryNotificationSink,
    build_mismatch_notification,
    dispatch_best_effort,
)

__all__ = [
    "NotificationSink",
    "RepositoryNotificationSink",
    "build_mismatch_notification",
    "dispatch_best_effort",
]
