"""
Notifications for the user interface.

The action layer reports outcomes (a student was added, a package ran
out of lessons, input was rejected) as notifications. Rendering them is
somebody else's job: a UI registers a sink and shows whatever arrives.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from itertools import count
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from lesson_ledger.coercion import utc_now
from lesson_ledger.config import get_settings

_notification_ids = count()


class NotificationSeverity(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class Notification(BaseModel):
    """A message for the user with an auto-dismiss delay."""

    id: int = Field(default_factory=lambda: next(_notification_ids))
    severity: NotificationSeverity
    message: str = Field(..., min_length=1)
    duration_ms: int = Field(..., ge=0)
    created_at: datetime = Field(default_factory=utc_now)


class NotificationSink(ABC):
    """Receives notifications produced by the action layer."""

    @abstractmethod
    def notify(self, notification: Notification) -> None:
        pass


class InMemoryNotificationSink(NotificationSink):
    """Collects notifications; the UI (or a test) reads and dismisses them."""

    def __init__(self):
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def dismiss(self, notification_id: int) -> None:
        self.notifications = [n for n in self.notifications if n.id != notification_id]

    def expired(self, now: Optional[datetime] = None) -> list[Notification]:
        """Notifications whose display time is over."""
        now = now or utc_now()
        return [
            n for n in self.notifications
            if (now - n.created_at).total_seconds() * 1000 >= n.duration_ms
        ]

    def messages(self, severity: Optional[NotificationSeverity] = None) -> list[str]:
        return [
            n.message for n in self.notifications
            if severity is None or n.severity == severity
        ]

    @property
    def last(self) -> Optional[Notification]:
        return self.notifications[-1] if self.notifications else None


class LoggingNotificationSink(NotificationSink):
    """Writes notifications to the structured log. Handy for headless use."""

    def __init__(self):
        self._logger = structlog.get_logger("lesson_ledger.notifications")

    def notify(self, notification: Notification) -> None:
        log = self._logger.error if notification.severity == NotificationSeverity.ERROR else self._logger.info
        log(
            "notification",
            severity=notification.severity.value,
            message=notification.message,
            duration_ms=notification.duration_ms,
        )


class Notifier:
    """
    Front end for the action layer.

    Picks the display duration for each severity: errors stay on screen
    longer than everything else.
    """

    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        duration_ms: Optional[int] = None,
        error_duration_ms: Optional[int] = None,
    ):
        settings = get_settings().notifications
        self._sink = sink or LoggingNotificationSink()
        self._duration_ms = settings.duration_ms if duration_ms is None else duration_ms
        self._error_duration_ms = (
            settings.error_duration_ms if error_duration_ms is None else error_duration_ms
        )

    @property
    def sink(self) -> NotificationSink:
        return self._sink

    def _emit(self, severity: NotificationSeverity, message: str, duration_ms: int) -> Notification:
        notification = Notification(
            severity=severity,
            message=message,
            duration_ms=duration_ms,
        )
        self._sink.notify(notification)
        return notification

    def success(self, message: str) -> Notification:
        return self._emit(NotificationSeverity.SUCCESS, message, self._duration_ms)

    def error(self, message: str) -> Notification:
        return self._emit(NotificationSeverity.ERROR, message, self._error_duration_ms)

    def warning(self, message: str) -> Notification:
        return self._emit(NotificationSeverity.WARNING, message, self._duration_ms)

    def info(self, message: str) -> Notification:
        return self._emit(NotificationSeverity.INFO, message, self._duration_ms)
