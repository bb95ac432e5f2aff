"""
Audit Models for Lesson Ledger

Every change to the ledger is recorded as an audit event.
This provides:
1. A history of what happened to each student and package
2. Debugging information when counters look wrong
3. A trail of rejected operations (validation, exhausted packages)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from lesson_ledger.coercion import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every operation of the action layer has its own event type.
    """
    # Students
    STUDENT_ADDED = "student_added"
    STUDENT_UPDATED = "student_updated"
    STUDENT_DELETED = "student_deleted"

    # Packages
    PACKAGE_ADDED = "package_added"
    PACKAGE_UPDATED = "package_updated"
    PACKAGE_DELETED = "package_deleted"
    LESSON_SLOT_CONSUMED = "lesson_slot_consumed"
    LESSON_SLOT_RESTORED = "lesson_slot_restored"
    PACKAGE_EXHAUSTED = "package_exhausted"

    # Lessons
    LESSON_ADDED = "lesson_added"
    LESSON_UPDATED = "lesson_updated"
    LESSON_DELETED = "lesson_deleted"

    # Whole state
    SETTINGS_UPDATED = "settings_updated"
    STATE_IMPORTED = "state_imported"
    STATE_LOADED = "state_loaded"

    # Rejections and failures
    VALIDATION_FAILED = "validation_failed"
    SAVE_FAILED = "save_failed"
    LOAD_FAILED = "load_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every ledger operation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'student', 'package', 'lesson')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.student_added(student_id, name)
        event = AuditEventBuilder.slot_consumed(student_id, package_id, remaining)
    """

    @staticmethod
    def student_added(student_id: str, name: str, package_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STUDENT_ADDED,
            entity_type="student",
            entity_id=student_id,
            description=f"Student added: {name}",
            details={"name": name, "package_count": package_count},
        )

    @staticmethod
    def student_updated(student_id: str, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STUDENT_UPDATED,
            entity_type="student",
            entity_id=student_id,
            description=f"Student updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
        )

    @staticmethod
    def student_deleted(student_id: str, lessons_removed: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STUDENT_DELETED,
            entity_type="student",
            entity_id=student_id,
            description=f"Student deleted with {lessons_removed} lessons",
            details={"lessons_removed": lessons_removed},
        )

    @staticmethod
    def package_changed(
        event_type: AuditEventType,
        student_id: str,
        package_id: str,
        remaining: Optional[int] = None,
        total: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="package",
            entity_id=package_id,
            description=f"Package {event_type.value.split('_', 1)[-1]}",
            details={
                "student_id": student_id,
                "remaining_lessons": remaining,
                "total_lessons": total,
            },
        )

    @staticmethod
    def slot_consumed(student_id: str, package_id: str, remaining: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LESSON_SLOT_CONSUMED,
            entity_type="package",
            entity_id=package_id,
            description=f"Lesson slot consumed, {remaining} left",
            details={"student_id": student_id, "remaining_lessons": remaining},
        )

    @staticmethod
    def slot_restored(student_id: str, package_id: str, remaining: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LESSON_SLOT_RESTORED,
            entity_type="package",
            entity_id=package_id,
            description=f"Lesson slot restored, {remaining} left",
            details={"student_id": student_id, "remaining_lessons": remaining},
        )

    @staticmethod
    def package_exhausted(student_id: str, package_id: str, lesson_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PACKAGE_EXHAUSTED,
            severity=AuditSeverity.WARNING,
            entity_type="package",
            entity_id=package_id,
            description="Lesson update rejected: package has no lessons left",
            details={"student_id": student_id, "lesson_id": lesson_id},
        )

    @staticmethod
    def lesson_changed(
        event_type: AuditEventType,
        lesson_id: str,
        student_id: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="lesson",
            entity_id=lesson_id,
            description=f"Lesson {event_type.value.split('_', 1)[-1]}",
            details={"student_id": student_id, **(details or {})},
        )

    @staticmethod
    def settings_updated(fields: dict[str, Any]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_UPDATED,
            entity_type="settings",
            description="Settings updated",
            details={key: str(value) for key, value in fields.items()},
        )

    @staticmethod
    def state_replaced(
        event_type: AuditEventType,
        students: int,
        lessons: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="state",
            description=f"State {event_type.value.split('_', 1)[-1]}: "
                        f"{students} students, {lessons} lessons",
            details={"students": students, "lessons": lessons},
        )

    @staticmethod
    def validation_failed(operation: str, issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            description=f"{operation} rejected with {len(issues)} issues",
            details={"operation": operation, "issues": issues},
        )

    @staticmethod
    def storage_failed(
        event_type: AuditEventType,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.ERROR,
            entity_type="state",
            description=f"Storage failure: {event_type.value}",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
