"""
Schema versioning and migration.

Anything read from storage or imported by the user passes through
``migrate`` before it reaches the store. Migration never fails: fields
that are missing or malformed get safe defaults, and records that cannot
be repaired (a lesson without a student or a start time, a package with
no lessons) are dropped.

Running ``migrate`` on its own output gives the same state back.
"""

from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import structlog

from lesson_ledger.coercion import (
    parse_flag,
    parse_int,
    parse_money,
    parse_timestamp,
    round_money,
    utc_now,
)
from lesson_ledger.config import LedgerDefaults, get_settings
from lesson_ledger.ids import new_id
from lesson_ledger.models.ledger import (
    MAX_LESSON_DURATION,
    MIN_LESSON_DURATION,
    SCHEMA_VERSION,
    LedgerSettings,
    LedgerState,
    Lesson,
    LessonStatus,
    Package,
    Student,
)
from lesson_ledger.reducer import sort_lessons, sort_students

logger = structlog.get_logger(__name__)

UNNAMED_STUDENT = "Unnamed student"
MAX_NAME_LENGTH = 200


def default_state(defaults: Optional[LedgerDefaults] = None) -> LedgerState:
    """A fresh, empty ledger using the configured defaults."""
    defaults = defaults or get_settings().defaults
    return LedgerState(
        settings=LedgerSettings(
            default_lesson_duration=defaults.default_lesson_duration,
            default_lesson_price=round_money(defaults.default_lesson_price),
        )
    )


def _pick(item: Mapping, *keys: str) -> Any:
    """First non-None value among ``keys``. Accepts camelCase and snake_case."""
    for key in keys:
        value = item.get(key)
        if value is not None:
            return value
    return None


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def _timestamps(item: Mapping, now: datetime) -> tuple[datetime, datetime]:
    created = parse_timestamp(_pick(item, "createdAt", "created_at")) or now
    updated = parse_timestamp(_pick(item, "updatedAt", "updated_at")) or created
    return created, updated


def _migrate_settings(raw: Any, base: LedgerSettings) -> LedgerSettings:
    if not isinstance(raw, Mapping):
        return base

    duration = parse_int(_pick(raw, "defaultLessonDuration", "default_lesson_duration"))
    if duration is None or not MIN_LESSON_DURATION <= duration <= MAX_LESSON_DURATION:
        duration = base.default_lesson_duration

    price = parse_money(_pick(raw, "defaultLessonPrice", "default_lesson_price"))
    if price is None or price < 0:
        price = base.default_lesson_price

    return LedgerSettings(default_lesson_duration=duration, default_lesson_price=price)


def _migrate_package(item: Any, now: datetime) -> Optional[Package]:
    if not isinstance(item, Mapping):
        return None

    total = parse_int(_pick(item, "totalLessons", "total_lessons", "count"), 0)
    if total <= 0:
        return None

    remaining = parse_int(_pick(item, "remainingLessons", "remaining_lessons", "rest"))
    if remaining is None:
        remaining = total
    remaining = max(0, min(total, remaining))

    price = parse_money(item.get("price"), Decimal("0"))
    created, updated = _timestamps(item, now)

    return Package(
        id=_text(item.get("id")) or new_id(),
        price=max(Decimal("0"), price),
        total_lessons=total,
        remaining_lessons=remaining,
        created_at=created,
        updated_at=updated,
    )


def _migrate_student(item: Any, now: datetime) -> Optional[Student]:
    if not isinstance(item, Mapping):
        return None

    packages = [
        package for package in (
            _migrate_package(raw_package, now)
            for raw_package in _as_list(item.get("packages"))
        )
        if package is not None
    ]
    created, updated = _timestamps(item, now)

    return Student(
        id=_text(item.get("id")) or new_id(),
        name=_text(item.get("name"))[:MAX_NAME_LENGTH] or UNNAMED_STUDENT,
        contact=_text(item.get("contact")),
        notes=_text(item.get("notes")),
        archived=parse_flag(item.get("archived")),
        created_at=created,
        updated_at=updated,
        packages=packages,
    )


def _migrate_lesson(item: Any, settings: LedgerSettings, now: datetime) -> Optional[Lesson]:
    if not isinstance(item, Mapping):
        return None

    student_id = _text(_pick(item, "studentId", "student_id"))
    start = parse_timestamp(item.get("start"))
    if not student_id or start is None:
        return None

    duration = parse_int(_pick(item, "durationMinutes", "duration_minutes"))
    if duration is None or not MIN_LESSON_DURATION <= duration <= MAX_LESSON_DURATION:
        duration = settings.default_lesson_duration

    price = parse_money(item.get("price"), settings.default_lesson_price)
    status = (
        LessonStatus.COMPLETED
        if _text(item.get("status")).lower() == LessonStatus.COMPLETED.value
        else LessonStatus.SCHEDULED
    )
    created, updated = _timestamps(item, now)

    return Lesson(
        id=_text(item.get("id")) or new_id(),
        student_id=student_id,
        package_id=_text(_pick(item, "packageId", "package_id")) or None,
        start=start,
        duration_minutes=duration,
        price=max(Decimal("0"), price),
        notes=_text(item.get("notes")),
        status=status,
        refunded=parse_flag(item.get("refunded")),
        created_at=created,
        updated_at=updated,
    )


def _collect(records: list, build) -> tuple[list, int]:
    """Build every record, dropping those that come back empty or invalid."""
    built = []
    dropped = 0
    for record in records:
        try:
            result = build(record)
        except ValueError as e:
            # pydantic ValidationError included
            logger.warning("migration_record_invalid", error=str(e))
            result = None
        if result is None:
            dropped += 1
        else:
            built.append(result)
    return built, dropped


def migrate(raw: Any, defaults: Optional[LedgerDefaults] = None) -> LedgerState:
    """
    Normalize arbitrary persisted data into the current schema.

    Args:
        raw: Decoded document, a ``LedgerState``, or anything else.
        defaults: Defaults for a fresh ledger. Uses configuration if omitted.

    Returns:
        A valid ``LedgerState`` stamped with ``SCHEMA_VERSION``.
    """
    if isinstance(raw, LedgerState):
        raw = raw.to_document()
    if not isinstance(raw, Mapping):
        if raw is not None:
            logger.warning("migration_reset", reason="not a mapping", type=type(raw).__name__)
        return default_state(defaults)

    source_version = raw.get("version")
    now = utc_now()
    settings = _migrate_settings(raw.get("settings"), default_state(defaults).settings)

    students, students_dropped = _collect(
        _as_list(raw.get("students")),
        lambda item: _migrate_student(item, now),
    )
    lessons, lessons_dropped = _collect(
        _as_list(raw.get("lessons")),
        lambda item: _migrate_lesson(item, settings, now),
    )

    if students_dropped or lessons_dropped or source_version != SCHEMA_VERSION:
        logger.info(
            "state_migrated",
            source_version=source_version,
            target_version=SCHEMA_VERSION,
            students=len(students),
            lessons=len(lessons),
            students_dropped=students_dropped,
            lessons_dropped=lessons_dropped,
        )

    return LedgerState(
        version=SCHEMA_VERSION,
        students=sort_students(students),
        lessons=sort_lessons(lessons),
        settings=settings,
    )
