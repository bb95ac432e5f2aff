"""Notification package."""

from lesson_ledger.notifications.sink import (
    InMemoryNotificationSink,
    LoggingNotificationSink,
    Notification,
    NotificationSeverity,
    NotificationSink,
    Notifier,
)

__all__ = [
    "InMemoryNotificationSink",
    "LoggingNotificationSink",
    "Notification",
    "NotificationSeverity",
    "NotificationSink",
    "Notifier",
]
