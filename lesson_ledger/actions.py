"""
Action Layer for Lesson Ledger

This module holds the operations a user interface calls: add a
student, book a lesson, move a lesson to another package and so on.

DESIGN DECISION: The action layer owns the business rules.
- It validates input and fills derived fields (ids, timestamps,
  defaults from settings, clamped counters)
- It turns every outcome into a notification for the user
- It never raises for an expected condition; callers get the created
  or updated entity back, or None

The reducer below it only reshapes data. Anything that needs a decision
("is there a slot left in this package?") is decided here, before the
first action is dispatched.

Booking and billing are separate steps: ``add_lesson`` does not take a
slot from a package. Callers that bill at booking time follow it with
``consume_lesson_slot``.
"""

import functools
import json
from decimal import Decimal
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from lesson_ledger.audit import AuditLogger
from lesson_ledger.coercion import parse_flag, parse_int, parse_money, round_money, utc_now
from lesson_ledger.config import get_settings
from lesson_ledger.errors import PackageExhaustedError, PackageNotFoundError
from lesson_ledger.migration import MAX_NAME_LENGTH, migrate
from lesson_ledger.models.actions import (
    AddLesson,
    AddStudent,
    DeleteLesson,
    DeleteStudent,
    SetState,
    UpdateLesson,
    UpdateSettings,
    UpdateStudent,
)
from lesson_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from lesson_ledger.models.ledger import (
    LedgerState,
    Lesson,
    LessonChanges,
    LessonDraft,
    Package,
    PackageDraft,
    Student,
    StudentDraft,
)
from lesson_ledger.models.validation import ValidationIssue, ValidationResult
from lesson_ledger.notifications import NotificationSink, Notifier
from lesson_ledger.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryStorage,
    JsonFileStorage,
)
from lesson_ledger.store import LedgerStore
from lesson_ledger.validation import LedgerValidator

logger = structlog.get_logger(__name__)

STUDENT_FIELDS = ("name", "contact", "notes", "archived")
LESSON_FIELDS = ("start", "duration_minutes", "price", "notes", "status", "refunded")


def ledger_operation(failure_message: str, default: Any = None):
    """
    Wrap a public action so that nothing escapes to the caller.

    Malformed input becomes a validation warning, anything else is
    logged, audited and shown as ``failure_message``.
    """
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self: "LedgerActions", *args, **kwargs):
            try:
                return method(self, *args, **kwargs)
            except ValidationError as e:
                self._reject(ValidationResult(
                    operation=method.__name__,
                    issues=[
                        ValidationIssue(
                            field=".".join(str(part) for part in error["loc"]) or "input",
                            issue_type=error["type"],
                            message=error["msg"],
                            severity="error",
                        )
                        for error in e.errors()
                    ],
                ))
                return default
            except Exception as e:
                logger.exception("action_failed", operation=method.__name__)
                self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"operation": method.__name__},
                )
                self._notifier.error(failure_message)
                return default
        return wrapper
    return decorator


def _slot_change(
    state: LedgerState,
    student_id: str,
    package_id: Optional[str],
    delta: int,
) -> Optional[tuple[UpdateStudent, Package]]:
    """
    Action that moves a package's remaining count by ``delta``.

    The count is clamped into ``[0, total]``. Returns None when the
    package does not exist or the clamp leaves the count unchanged.
    """
    student = state.get_student(student_id)
    package = student.get_package(package_id) if student else None
    if package is None:
        return None

    now = utc_now()
    updated = package.with_counts(remaining_lessons=package.remaining_lessons + delta, at=now)
    if updated.remaining_lessons == package.remaining_lessons:
        return None

    packages = [updated if p.id == package.id else p for p in student.packages]
    action = UpdateStudent(
        student_id=student.id,
        patch={"packages": packages, "updated_at": now},
    )
    return action, updated


class LedgerActions:
    """
    Operations on the ledger.

    Every method reads the current state, decides, dispatches and
    reports. All of it happens inside one store batch, so two callers
    can never interleave between the decision and the commit.
    """

    def __init__(
        self,
        store: LedgerStore,
        notifier: Optional[Notifier] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
    ):
        self._store = store
        self._notifier = notifier or Notifier()
        self._audit_logger = audit_logger or AuditLogger()
        self._validator = validator or LedgerValidator()

    @property
    def state(self) -> LedgerState:
        return self._store.state

    @property
    def store(self) -> LedgerStore:
        return self._store

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _reject(self, result: ValidationResult) -> None:
        """Report a failed validation. The state is left alone."""
        self._audit_logger.log_validation_failed(result)
        self._notifier.warning(self._validator.get_user_friendly_summary(result))

    def _audit(self, events: list[AuditEvent]) -> None:
        for event in events:
            self._audit_logger.log(event)

    # =========================================================================
    # STUDENTS
    # =========================================================================

    @ledger_operation("Could not add the student")
    def add_student(
        self,
        name: str,
        contact: str = "",
        notes: str = "",
        packages: Optional[list[Any]] = None,
    ) -> Optional[Student]:
        """
        Create a student with their first packages.

        Args:
            name: Student name, trimmed. Required.
            contact: Free-form contact details.
            notes: Free-form notes.
            packages: Package drafts (``PackageDraft`` or dicts with
                ``count`` and ``price``). Defaults to one standard package.
                Rows without lessons or price are skipped.

        Returns:
            The new student, or None if the input was rejected.
        """
        draft = StudentDraft(
            name=name,
            contact=contact,
            notes=notes,
            packages=[PackageDraft()] if packages is None else packages,
        )
        result = self._validator.validate_new_student(draft)
        if result.has_errors:
            self._reject(result)
            return None

        now = utc_now()
        student = Student(
            name=draft.name[:MAX_NAME_LENGTH],
            contact=draft.contact,
            notes=draft.notes,
            created_at=now,
            updated_at=now,
            packages=[
                Package(
                    price=round_money(package.price),
                    total_lessons=package.count,
                    remaining_lessons=package.count,
                    created_at=now,
                    updated_at=now,
                )
                for package in draft.packages
                if package.is_valid
            ],
        )
        self._store.dispatch(AddStudent(student=student))

        self._audit_logger.log(AuditEventBuilder.student_added(
            student.id, student.name, len(student.packages),
        ))
        for warning in result.warnings:
            self._notifier.warning(warning)
        self._notifier.success(f'Student "{student.name}" added')
        return student

    @ledger_operation("Could not update the student")
    def update_student(self, student_id: str, **fields: Any) -> Optional[Student]:
        """
        Change name, contact, notes or the archived flag.

        Unknown fields are ignored. An unknown student is a silent no-op.
        """
        fields = {key: value for key, value in fields.items() if key in STUDENT_FIELDS}

        with self._store.batch() as batch:
            if batch.state.get_student(student_id) is None:
                return None

            result = self._validator.validate_student_update(fields)
            if result.has_errors:
                self._reject(result)
                return None

            patch: dict[str, Any] = {}
            for key, value in fields.items():
                if key == "archived":
                    patch[key] = parse_flag(value)
                else:
                    patch[key] = ("" if value is None else str(value)).strip()
            if "name" in patch:
                patch["name"] = patch["name"][:MAX_NAME_LENGTH]
            patch["updated_at"] = utc_now()

            batch.dispatch(UpdateStudent(student_id=student_id, patch=patch))
            student = batch.state.get_student(student_id)

        self._audit_logger.log(AuditEventBuilder.student_updated(student_id, sorted(fields)))
        self._notifier.success("Student details updated")
        return student

    @ledger_operation("Could not delete the student", default=False)
    def delete_student(self, student_id: str) -> bool:
        """Remove a student together with all of their lessons."""
        with self._store.batch() as batch:
            if batch.state.get_student(student_id) is None:
                return False
            lessons_removed = len(batch.state.lessons_for_student(student_id))
            batch.dispatch(DeleteStudent(student_id=student_id))

        self._audit_logger.log(AuditEventBuilder.student_deleted(student_id, lessons_removed))
        self._notifier.warning("Student and all their lessons deleted")
        return True

    # =========================================================================
    # PACKAGES
    # =========================================================================

    @ledger_operation("Could not add the package")
    def add_package(
        self,
        student_id: str,
        count: Any = 10,
        price: Any = Decimal("1600"),
    ) -> Optional[Package]:
        """Sell the student a new package of ``count`` lessons at ``price`` each."""
        with self._store.batch() as batch:
            student = batch.state.get_student(student_id)
            if student is None:
                return None

            result = self._validator.validate_package(count, price=price)
            if result.has_errors:
                self._reject(result)
                return None

            now = utc_now()
            total = parse_int(count)
            package = Package(
                price=parse_money(price),
                total_lessons=total,
                remaining_lessons=total,
                created_at=now,
                updated_at=now,
            )
            batch.dispatch(UpdateStudent(
                student_id=student_id,
                patch={"packages": [*student.packages, package], "updated_at": now},
            ))

        self._audit_logger.log(AuditEventBuilder.package_changed(
            AuditEventType.PACKAGE_ADDED, student_id, package.id,
            remaining=package.remaining_lessons, total=package.total_lessons,
        ))
        self._notifier.success("Package added")
        return package

    @ledger_operation("Could not update the package")
    def update_package(
        self,
        student_id: str,
        package_id: str,
        total_lessons: Any = None,
        remaining_lessons: Any = None,
        price: Any = None,
    ) -> Optional[Package]:
        """
        Edit a package's counters or price.

        Omitted values are kept. Remaining lessons are clamped into
        ``[0, total]``; the clamp is reported as a warning.
        """
        with self._store.batch() as batch:
            student = batch.state.get_student(student_id)
            package = student.get_package(package_id) if student else None
            if package is None:
                return None

            result = self._validator.validate_package(
                package.total_lessons if total_lessons is None else total_lessons,
                remaining_lessons,
                price,
                operation="update_package",
            )
            if result.has_errors:
                self._reject(result)
                return None

            now = utc_now()
            updated = package.with_counts(
                total_lessons=parse_int(total_lessons),
                remaining_lessons=parse_int(remaining_lessons),
                price=parse_money(price),
                at=now,
            )
            batch.dispatch(UpdateStudent(
                student_id=student_id,
                patch={
                    "packages": [updated if p.id == package_id else p for p in student.packages],
                    "updated_at": now,
                },
            ))

        self._audit_logger.log(AuditEventBuilder.package_changed(
            AuditEventType.PACKAGE_UPDATED, student_id, package_id,
            remaining=updated.remaining_lessons, total=updated.total_lessons,
        ))
        for warning in result.warnings:
            self._notifier.warning(warning)
        self._notifier.success("Package updated")
        return updated

    @ledger_operation("Could not delete the package", default=False)
    def delete_package(self, student_id: str, package_id: str) -> bool:
        """
        Remove a package from a student.

        The last package cannot be removed. Lessons billed against the
        package keep their reference.
        """
        with self._store.batch() as batch:
            student = batch.state.get_student(student_id)
            if student is None or student.get_package(package_id) is None:
                return False

            if len(student.packages) <= 1:
                self._reject(ValidationResult(
                    operation="delete_package",
                    issues=[ValidationIssue(
                        field="packages",
                        issue_type="last_package",
                        message="A student needs at least one package",
                        severity="error",
                    )],
                ))
                return False

            batch.dispatch(UpdateStudent(
                student_id=student_id,
                patch={
                    "packages": [p for p in student.packages if p.id != package_id],
                    "updated_at": utc_now(),
                },
            ))

        self._audit_logger.log(AuditEventBuilder.package_changed(
            AuditEventType.PACKAGE_DELETED, student_id, package_id,
        ))
        self._notifier.warning("Package deleted")
        return True

    def consume_lesson_slot(self, student_id: str, package_id: str) -> Optional[Package]:
        """
        Take one lesson from a package.

        Silent no-op for an unknown student or package and for a package
        that is already empty: the count never drops below zero. Check
        ``remaining_lessons`` first if running out must be reported.

        Returns:
            The updated package, or None if nothing changed.
        """
        return self._move_slot(student_id, package_id, -1)

    def restore_lesson_slot(self, student_id: str, package_id: str) -> Optional[Package]:
        """Give one lesson back to a package, never above its total."""
        return self._move_slot(student_id, package_id, 1)

    def _move_slot(self, student_id: str, package_id: str, delta: int) -> Optional[Package]:
        with self._store.batch() as batch:
            change = _slot_change(batch.state, student_id, package_id, delta)
            if change is None:
                return None
            action, package = change
            batch.dispatch(action)

        builder = AuditEventBuilder.slot_consumed if delta < 0 else AuditEventBuilder.slot_restored
        self._audit_logger.log(builder(student_id, package_id, package.remaining_lessons))
        return package

    # =========================================================================
    # LESSONS
    # =========================================================================

    @ledger_operation("Could not add the lesson")
    def add_lesson(
        self,
        student_id: str,
        start: Any,
        duration_minutes: Any = None,
        price: Any = None,
        notes: str = "",
        package_id: Optional[str] = None,
    ) -> Optional[Lesson]:
        """
        Book a lesson.

        Duration and price default to the ledger settings. The lesson
        starts out scheduled and not refunded. No package slot is taken.
        """
        draft = LessonDraft(
            student_id=student_id,
            start=start,
            duration_minutes=duration_minutes,
            price=price,
            notes=notes,
            package_id=package_id,
        )

        with self._store.batch() as batch:
            result = self._validator.validate_new_lesson(batch.state, draft)
            if result.has_errors:
                self._reject(result)
                return None

            settings = batch.state.settings
            now = utc_now()
            lesson = Lesson(
                student_id=draft.student_id,
                package_id=draft.package_id,
                start=draft.start,
                duration_minutes=draft.duration_minutes or settings.default_lesson_duration,
                price=max(
                    Decimal("0"),
                    settings.default_lesson_price if draft.price is None else draft.price,
                ),
                notes=draft.notes,
                created_at=now,
                updated_at=now,
            )
            batch.dispatch(AddLesson(lesson=lesson))

        self._audit_logger.log(AuditEventBuilder.lesson_changed(
            AuditEventType.LESSON_ADDED, lesson.id, lesson.student_id,
            details={"start": lesson.start.isoformat(), "package_id": lesson.package_id},
        ))
        self._notifier.success("Lesson scheduled")
        return lesson

    @ledger_operation("Could not update the lesson")
    def update_lesson(self, lesson_id: str, **changes: Any) -> Optional[Lesson]:
        """
        Edit a lesson and keep package counters in step.

        When the package or the refunded flag changes, at most one slot
        is restored to the old package and at most one consumed from the
        new one:

        - same package, refund turned on: restore
        - same package, refund turned off: consume
        - new package: restore the old one unless it was already
          refunded, consume the new one unless the lesson is refunded

        Every consume is checked before anything is dispatched. A missing
        or empty package aborts the whole update.

        Omitting ``package_id`` (or passing None) keeps the current package.
        """
        edit = LessonChanges(**changes)
        passed = edit.model_fields_set

        try:
            with self._store.batch() as batch:
                lesson = batch.state.get_lesson(lesson_id)
                if lesson is None:
                    return None

                result = self._validator.validate_lesson_changes(lesson, edit)
                if result.has_errors:
                    self._reject(result)
                    return None

                old_package = lesson.package_id
                new_package = edit.package_id or old_package
                was_refunded = lesson.refunded
                refunded = was_refunded if edit.refunded is None else edit.refunded

                restore, consume = None, None
                if new_package != old_package:
                    if not was_refunded:
                        restore = old_package
                    if not refunded:
                        consume = new_package
                elif not was_refunded and refunded:
                    restore = old_package
                elif was_refunded and not refunded:
                    consume = new_package

                student = batch.state.get_student(lesson.student_id)
                if consume:
                    package = student.get_package(consume) if student else None
                    if package is None:
                        raise PackageNotFoundError(lesson.student_id, consume)
                    if package.remaining_lessons <= 0:
                        raise PackageExhaustedError(lesson.student_id, consume)

                events: list[AuditEvent] = []
                for package_id, delta in ((restore, 1), (consume, -1)):
                    if not package_id:
                        continue
                    change = _slot_change(batch.state, lesson.student_id, package_id, delta)
                    if change is None:
                        continue
                    action, package = change
                    batch.dispatch(action)
                    builder = (
                        AuditEventBuilder.slot_consumed if delta < 0
                        else AuditEventBuilder.slot_restored
                    )
                    events.append(builder(lesson.student_id, package_id, package.remaining_lessons))

                patch: dict[str, Any] = {
                    key: getattr(edit, key)
                    for key in LESSON_FIELDS
                    if key in passed and getattr(edit, key) is not None
                }
                if "price" in patch:
                    patch["price"] = max(Decimal("0"), patch["price"])
                patch["package_id"] = new_package
                patch["refunded"] = refunded
                patch["updated_at"] = utc_now()

                batch.dispatch(UpdateLesson(lesson_id=lesson_id, patch=patch))
                updated = batch.state.get_lesson(lesson_id)

        except PackageNotFoundError as e:
            self._audit_logger.log(AuditEventBuilder.validation_failed(
                "update_lesson",
                [{"field": "package_id", "type": "not_found", "message": str(e)}],
            ))
            self._notifier.error("Package not found. Add a package to the student first")
            return None
        except PackageExhaustedError as e:
            self._audit_logger.log(AuditEventBuilder.package_exhausted(
                e.student_id, e.package_id, lesson_id,
            ))
            self._notifier.warning("The selected package has no lessons left")
            return None

        events.append(AuditEventBuilder.lesson_changed(
            AuditEventType.LESSON_UPDATED, lesson_id, updated.student_id,
            details={"fields": sorted(patch)},
        ))
        self._audit(events)
        self._notifier.success("Lesson updated")
        return updated

    @ledger_operation("Could not delete the lesson", default=False)
    def delete_lesson(self, lesson_id: str) -> bool:
        """
        Remove a lesson.

        A completed lesson that took a package slot and was not refunded
        gives the slot back first, in the same commit.
        """
        events: list[AuditEvent] = []

        with self._store.batch() as batch:
            lesson = batch.state.get_lesson(lesson_id)
            if lesson is None:
                return False

            if lesson.is_completed and lesson.package_id and not lesson.refunded:
                change = _slot_change(batch.state, lesson.student_id, lesson.package_id, 1)
                if change is not None:
                    action, package = change
                    batch.dispatch(action)
                    events.append(AuditEventBuilder.slot_restored(
                        lesson.student_id, package.id, package.remaining_lessons,
                    ))

            batch.dispatch(DeleteLesson(lesson_id=lesson_id))

        events.append(AuditEventBuilder.lesson_changed(
            AuditEventType.LESSON_DELETED, lesson_id, lesson.student_id,
        ))
        self._audit(events)
        self._notifier.warning("Lesson deleted")
        return True

    # =========================================================================
    # WHOLE STATE AND SETTINGS
    # =========================================================================

    @ledger_operation("Could not import the data")
    def set_state_from_import(self, raw: Any) -> Optional[LedgerState]:
        """
        Replace the ledger with imported data.

        ``raw`` is a decoded document or JSON text. It is migrated first,
        so anything that parses as JSON produces a usable ledger.
        """
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError as e:
                self._reject(ValidationResult(
                    operation="set_state_from_import",
                    issues=[ValidationIssue(
                        field="document",
                        issue_type="invalid_json",
                        message=f"Imported data is not valid JSON: {e.msg}",
                        severity="error",
                    )],
                ))
                return None

        state = migrate(raw)
        self._store.dispatch(SetState(state=state))

        self._audit_logger.log(AuditEventBuilder.state_replaced(
            AuditEventType.STATE_IMPORTED,
            students=len(state.students),
            lessons=len(state.lessons),
        ))
        self._notifier.success(
            f"Imported {len(state.students)} students and {len(state.lessons)} lessons"
        )
        return state

    @ledger_operation("Could not update the lesson price")
    def update_default_lesson_price(self, value: Any) -> Optional[Decimal]:
        """
        Set the price used for lessons booked without one.

        Returns the price in effect afterwards, or None if rejected.
        """
        with self._store.batch() as batch:
            current = batch.state.settings.default_lesson_price
            result = self._validator.validate_default_price(value, current)
            if result.has_errors:
                self._reject(result)
                return None
            if result.issues:
                self._notifier.info(result.issues[0].message)
                return current

            price = parse_money(value)
            batch.dispatch(UpdateSettings(patch={"default_lesson_price": price}))

        self._audit_logger.log(AuditEventBuilder.settings_updated({"default_lesson_price": price}))
        self._notifier.success("Lesson price updated")
        return price

    @ledger_operation("Could not update the lesson length")
    def update_default_lesson_duration(self, value: Any) -> Optional[int]:
        """Set the length used for lessons booked without one."""
        with self._store.batch() as batch:
            result = self._validator.validate_default_duration(value)
            if result.has_errors:
                self._reject(result)
                return None

            duration = parse_int(value)
            if duration == batch.state.settings.default_lesson_duration:
                self._notifier.info("Lesson length is unchanged")
                return duration

            batch.dispatch(UpdateSettings(patch={"default_lesson_duration": duration}))

        self._audit_logger.log(AuditEventBuilder.settings_updated({"default_lesson_duration": duration}))
        self._notifier.success("Lesson length updated")
        return duration

    def export_state(self) -> dict[str, Any]:
        """The current ledger as a JSON-compatible document."""
        return self._store.state.to_document()


def create_ledger_components(
    use_storage: bool = True,
    sink: Optional[NotificationSink] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> tuple[LedgerActions, LedgerStore]:
    """
    Factory function to create all ledger components.

    Args:
        use_storage: Whether to keep the ledger in the configured JSON file.
                    Set to False for an in-memory ledger.
        sink: Where notifications go. Logged if None.
        audit_storage: Where audit events go. Defaults to an in-memory
                    store holding the most recent events only.

    Returns:
        (actions, store)
    """
    if audit_storage is None:
        audit_storage = InMemoryAuditStorage(
            max_events=get_settings().app.audit_history_limit,
        )
    audit_logger = AuditLogger(audit_storage)

    if use_storage:
        try:
            storage = JsonFileStorage()
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            storage = InMemoryStorage()
    else:
        storage = InMemoryStorage()

    store = LedgerStore(storage, audit_logger)
    actions = LedgerActions(
        store,
        notifier=Notifier(sink),
        audit_logger=audit_logger,
    )
    return actions, store
