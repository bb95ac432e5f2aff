"""
Data Models Package

This package contains all Pydantic models used by Lesson Ledger.
Everything stored, dispatched or audited conforms to these schemas.
"""

from lesson_ledger.models.ledger import (
    SCHEMA_VERSION,
    LedgerSettings,
    LedgerState,
    Lesson,
    LessonChanges,
    LessonDraft,
    LessonStatus,
    Package,
    PackageDraft,
    Student,
    StudentDraft,
)
from lesson_ledger.models.actions import (
    Action,
    AddLesson,
    AddStudent,
    DeleteLesson,
    DeleteStudent,
    LedgerAction,
    SetState,
    UpdateLesson,
    UpdateSettings,
    UpdateStudent,
)
from lesson_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from lesson_ledger.models.validation import (
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Ledger models
    "SCHEMA_VERSION",
    "LedgerSettings",
    "LedgerState",
    "Lesson",
    "LessonChanges",
    "LessonDraft",
    "LessonStatus",
    "Package",
    "PackageDraft",
    "Student",
    "StudentDraft",
    # Reducer actions
    "Action",
    "AddLesson",
    "AddStudent",
    "DeleteLesson",
    "DeleteStudent",
    "LedgerAction",
    "SetState",
    "UpdateLesson",
    "UpdateSettings",
    "UpdateStudent",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
]
