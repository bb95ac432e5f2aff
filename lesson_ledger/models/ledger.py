"""
Core Data Models for Lesson Ledger

These models define the shape of everything the ledger stores:
students, their prepaid lesson packages, lessons and settings.

DESIGN DECISION: Entities are frozen Pydantic v2 models. The reducer
never edits a model in place; it builds new ones with ``model_copy``.
Two states can therefore be compared with ``==`` and an old state handed
to an observer can never change underneath it.

Persisted documents use camelCase keys (``totalLessons``, ``createdAt``)
while Python code uses snake_case attributes.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from lesson_ledger.coercion import (
    MAX_AMOUNT,
    MAX_WHOLE_NUMBER,
    parse_int,
    parse_money,
    parse_timestamp,
    round_money,
    to_utc,
    utc_now,
)
from lesson_ledger.ids import new_id

SCHEMA_VERSION = 2
MIN_LESSON_DURATION = 15
MAX_LESSON_DURATION = 24 * 60

# Decimal in memory, a plain JSON number on disk. Exact up to MAX_AMOUNT.
Money = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class LessonStatus(str, Enum):
    """
    Lesson status.

    There is no "cancelled" state: a cancelled lesson is deleted.
    Legacy documents carrying "cancelled" are read back as scheduled.
    """
    SCHEDULED = "scheduled"
    COMPLETED = "completed"


# =============================================================================
# ENTITIES
# =============================================================================

class LedgerModel(BaseModel):
    """Base for persisted entities."""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class Package(LedgerModel):
    """
    A prepaid bundle of lessons at a fixed per-lesson price.

    ``consumed_lessons`` is derived from the total/remaining pair and is
    never stored on its own; any value found in input is ignored.
    """

    id: str = Field(default_factory=new_id, min_length=1)
    price: Money = Field(
        default=Decimal("0"),
        ge=0,
        le=MAX_AMOUNT,
        description="Price of one lesson in this package",
    )
    total_lessons: int = Field(default=0, ge=0, le=MAX_WHOLE_NUMBER)
    remaining_lessons: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return to_utc(v)

    @model_validator(mode="after")
    def validate_counts(self) -> "Package":
        """Remaining lessons can never exceed the total."""
        if self.remaining_lessons > self.total_lessons:
            raise ValueError("Remaining lessons cannot exceed total lessons")
        return self

    @computed_field(alias="consumedLessons")
    @property
    def consumed_lessons(self) -> int:
        return self.total_lessons - self.remaining_lessons

    @property
    def remaining_value(self) -> Decimal:
        """Prepaid value still left in the package."""
        return round_money(self.price * self.remaining_lessons)

    def with_counts(
        self,
        total_lessons: Optional[int] = None,
        remaining_lessons: Optional[int] = None,
        price: Optional[Decimal] = None,
        at: Optional[datetime] = None,
    ) -> "Package":
        """
        Return a copy with new counters, clamped into a valid range.

        ``remaining_lessons`` is clamped into ``[0, total_lessons]`` after the
        new total has been applied.
        """
        total = self.total_lessons if total_lessons is None else max(0, total_lessons)
        remaining = self.remaining_lessons if remaining_lessons is None else remaining_lessons
        remaining = max(0, min(total, remaining))
        return self.model_copy(update={
            "total_lessons": total,
            "remaining_lessons": remaining,
            "price": self.price if price is None else round_money(max(Decimal("0"), price)),
            "updated_at": at or utc_now(),
        })


class Student(LedgerModel):
    """A student and the packages they have bought."""

    id: str = Field(default_factory=new_id, min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    contact: str = ""
    notes: str = ""
    archived: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    packages: list[Package] = Field(default_factory=list)

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return to_utc(v)

    def get_package(self, package_id: Optional[str]) -> Optional[Package]:
        for package in self.packages:
            if package.id == package_id:
                return package
        return None

    @property
    def remaining_lessons(self) -> int:
        return sum(package.remaining_lessons for package in self.packages)

    @property
    def remaining_value(self) -> Decimal:
        return round_money(sum(
            (package.remaining_value for package in self.packages),
            Decimal("0"),
        ))


class Lesson(LedgerModel):
    """A scheduled or completed lesson."""

    id: str = Field(default_factory=new_id, min_length=1)
    student_id: str = Field(..., min_length=1)
    package_id: Optional[str] = Field(
        default=None,
        description="Package this lesson is billed against, if any",
    )
    start: datetime
    duration_minutes: int = Field(default=60, ge=MIN_LESSON_DURATION, le=MAX_LESSON_DURATION)
    price: Money = Field(default=Decimal("0"), ge=0, le=MAX_AMOUNT)
    notes: str = ""
    status: LessonStatus = LessonStatus.SCHEDULED
    refunded: bool = Field(
        default=False,
        description="Whether the package slot of this lesson was given back",
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("start", "created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return to_utc(v)

    @property
    def end(self) -> datetime:
        try:
            return self.start + timedelta(minutes=self.duration_minutes)
        except OverflowError:
            return datetime.max.replace(tzinfo=timezone.utc)

    @property
    def is_completed(self) -> bool:
        return self.status == LessonStatus.COMPLETED


class LedgerSettings(LedgerModel):
    """User-editable defaults stored alongside the data."""

    default_lesson_duration: int = Field(default=60, ge=MIN_LESSON_DURATION, le=MAX_LESSON_DURATION)
    default_lesson_price: Money = Field(default=Decimal("0"), ge=0, le=MAX_AMOUNT)


class LedgerState(LedgerModel):
    """
    The whole ledger.

    This is the single root the store holds and the unit that is
    persisted and migrated.
    """

    version: int = SCHEMA_VERSION
    students: list[Student] = Field(default_factory=list)
    lessons: list[Lesson] = Field(default_factory=list)
    settings: LedgerSettings = Field(default_factory=LedgerSettings)

    def get_student(self, student_id: Optional[str]) -> Optional[Student]:
        for student in self.students:
            if student.id == student_id:
                return student
        return None

    def get_lesson(self, lesson_id: Optional[str]) -> Optional[Lesson]:
        for lesson in self.lessons:
            if lesson.id == lesson_id:
                return lesson
        return None

    def lessons_for_student(self, student_id: str) -> list[Lesson]:
        return [lesson for lesson in self.lessons if lesson.student_id == student_id]

    def to_document(self) -> dict[str, Any]:
        """JSON-compatible persisted form."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# INPUT MODELS - what callers hand to the action layer
# =============================================================================

class DraftModel(BaseModel):
    """Base for caller input. Loosely typed values are coerced, not rejected."""
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)


class PackageDraft(DraftModel):
    """A package to create: ``count`` lessons at ``price`` each."""

    count: int = 10
    price: Decimal = Decimal("1600")

    @field_validator("count", mode="before")
    @classmethod
    def coerce_count(cls, v: Any) -> int:
        return parse_int(v, 0)

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, v: Any) -> Decimal:
        return parse_money(v, Decimal("0"))

    @property
    def is_valid(self) -> bool:
        return self.count > 0 and self.price > 0


class StudentDraft(DraftModel):
    """A new student with their initial packages."""

    name: str = ""
    contact: str = ""
    notes: str = ""
    packages: list[PackageDraft] = Field(default_factory=list)

    @field_validator("name", "contact", "notes", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class LessonDraft(DraftModel):
    """
    A lesson to book.

    ``duration_minutes`` and ``price`` may be omitted; the action layer
    fills them from the ledger settings.
    """

    student_id: str = ""
    start: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    price: Optional[Decimal] = None
    notes: str = ""
    package_id: Optional[str] = None

    @field_validator("start", mode="before")
    @classmethod
    def coerce_start(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)

    @field_validator("duration_minutes", mode="before")
    @classmethod
    def coerce_duration(cls, v: Any) -> Optional[int]:
        return parse_int(v)

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, v: Any) -> Optional[Decimal]:
        return parse_money(v)

    @field_validator("student_id", "notes", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("package_id", mode="before")
    @classmethod
    def empty_to_none(cls, v: Any) -> Any:
        return v or None


class LessonChanges(LessonDraft):
    """
    Edits to an existing lesson.

    Only fields the caller actually passed are applied; check
    ``model_fields_set``.
    """

    status: Optional[LessonStatus] = None
    refunded: Optional[bool] = None

    @field_validator("status", mode="before")
    @classmethod
    def collapse_cancelled(cls, v: Any) -> Any:
        if v == "cancelled":
            return LessonStatus.SCHEDULED
        return v
