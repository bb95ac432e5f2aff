"""
Request Validation

DESIGN DECISION: Input is checked in the action layer before anything
is dispatched. The reducer trusts its input and never rejects.

Two kinds of finding:

ERRORS:
- Missing student name or lesson start
- Reference to a student or package that does not exist
- Durations off the 15 minute grid
- Packages without lessons or without a price

WARNINGS:
- Input that will be repaired instead of rejected (clamped counters,
  discarded package rows)

IMPORTANT: Validation never edits the request. It reports what it
found and the action layer decides what to do with it.
"""

from decimal import Decimal
from typing import Any, Optional

from lesson_ledger.coercion import parse_int, parse_money
from lesson_ledger.models.ledger import (
    MAX_LESSON_DURATION,
    LedgerState,
    Lesson,
    LessonChanges,
    LessonDraft,
    StudentDraft,
)
from lesson_ledger.models.validation import ValidationIssue, ValidationResult

DURATION_STEP = 15


class LedgerValidator:
    """
    Validates action-layer requests against the current ledger state.

    All methods are pure: they read the state they are given and return a
    ``ValidationResult``.
    """

    def _duration_issues(self, duration: Optional[int]) -> list[ValidationIssue]:
        if duration is None:
            return []
        if duration < DURATION_STEP or duration % DURATION_STEP:
            return [ValidationIssue(
                field="duration_minutes",
                issue_type="invalid_value",
                message=f"Lesson length must be a multiple of {DURATION_STEP} minutes",
                severity="error",
                suggested_fix=f"Use {DURATION_STEP}, 30, 45, 60 ... minutes",
            )]
        if duration > MAX_LESSON_DURATION:
            return [ValidationIssue(
                field="duration_minutes",
                issue_type="invalid_value",
                message="Lesson length cannot exceed 24 hours",
                severity="error",
            )]
        return []

    # =========================================================================
    # STUDENTS
    # =========================================================================

    def validate_new_student(self, draft: StudentDraft) -> ValidationResult:
        """
        Check a new student before it is created.

        Package rows with no lessons or no price are dropped later; each
        dropped row is reported as a warning. At least one usable row must
        remain.
        """
        issues = []

        if not draft.name:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Enter the student's name",
                severity="error",
            ))

        usable = [package for package in draft.packages if package.is_valid]
        discarded = len(draft.packages) - len(usable)
        if not usable:
            issues.append(ValidationIssue(
                field="packages",
                issue_type="missing",
                message="Add at least one valid lesson package",
                severity="error",
                suggested_fix="A package needs a lesson count and a price above zero",
            ))
        elif discarded:
            issues.append(ValidationIssue(
                field="packages",
                issue_type="discarded",
                message=f"{discarded} package(s) without lessons or price were skipped",
                severity="warning",
            ))

        return ValidationResult(operation="add_student", issues=issues)

    def validate_student_update(self, fields: dict[str, Any]) -> ValidationResult:
        """An update may leave out the name but may not blank it."""
        issues = []

        if "name" in fields and not str(fields["name"] or "").strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Student name cannot be empty",
                severity="error",
            ))

        return ValidationResult(operation="update_student", issues=issues)

    # =========================================================================
    # PACKAGES
    # =========================================================================

    def validate_package(
        self,
        total_lessons: Any,
        remaining_lessons: Any = None,
        price: Any = None,
        operation: str = "add_package",
    ) -> ValidationResult:
        """
        Check package counters and price as typed by the user.

        Remaining above total is not an error: it is clamped and reported
        as a warning.
        """
        issues = []

        total = parse_int(total_lessons)
        if total is None or total <= 0:
            issues.append(ValidationIssue(
                field="total_lessons",
                issue_type="invalid_value",
                message="A package needs at least one lesson",
                severity="error",
            ))

        if price is not None:
            amount = parse_money(price)
            if amount is None or amount <= 0:
                issues.append(ValidationIssue(
                    field="price",
                    issue_type="invalid_value",
                    message="Package price must be greater than zero",
                    severity="error",
                ))

        remaining = parse_int(remaining_lessons)
        if remaining is not None and total is not None and total > 0:
            if remaining > total:
                issues.append(ValidationIssue(
                    field="remaining_lessons",
                    issue_type="clamped",
                    message=f"Remaining lessons reduced to the package total ({total})",
                    severity="warning",
                ))
            elif remaining < 0:
                issues.append(ValidationIssue(
                    field="remaining_lessons",
                    issue_type="clamped",
                    message="Remaining lessons raised to zero",
                    severity="warning",
                ))

        return ValidationResult(operation=operation, issues=issues)

    # =========================================================================
    # LESSONS
    # =========================================================================

    def validate_new_lesson(self, state: LedgerState, draft: LessonDraft) -> ValidationResult:
        """
        Check a lesson booking.

        Stops after the first missing required field, the way a form
        highlights one problem at a time.
        """
        issues = []

        student = state.get_student(draft.student_id) if draft.student_id else None
        if student is None:
            issues.append(ValidationIssue(
                field="student_id",
                issue_type="not_found" if draft.student_id else "missing",
                message="Choose a student",
                severity="error",
            ))
            return ValidationResult(operation="add_lesson", issues=issues)

        if draft.start is None:
            issues.append(ValidationIssue(
                field="start",
                issue_type="missing",
                message="Enter the lesson date and time",
                severity="error",
            ))
            return ValidationResult(operation="add_lesson", issues=issues)

        issues.extend(self._duration_issues(draft.duration_minutes))

        if draft.package_id and student.get_package(draft.package_id) is None:
            issues.append(ValidationIssue(
                field="package_id",
                issue_type="not_found",
                message="Package not found. Add a package to the student first",
                severity="error",
            ))

        return ValidationResult(operation="add_lesson", issues=issues)

    def validate_lesson_changes(
        self,
        lesson: Lesson,
        changes: LessonChanges,
    ) -> ValidationResult:
        """Check the edited fields of an existing lesson."""
        issues = []
        passed = changes.model_fields_set

        if "start" in passed and changes.start is None:
            issues.append(ValidationIssue(
                field="start",
                issue_type="invalid_value",
                message="Enter the lesson date and time",
                severity="error",
            ))

        if "duration_minutes" in passed:
            issues.extend(self._duration_issues(changes.duration_minutes))

        return ValidationResult(operation="update_lesson", issues=issues)

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def validate_default_price(self, value: Any, current: Decimal) -> ValidationResult:
        """A default price must be positive. Re-entering the same price is only noted."""
        issues = []
        amount = parse_money(value)

        if amount is None or amount <= 0:
            issues.append(ValidationIssue(
                field="default_lesson_price",
                issue_type="invalid_value",
                message="Lesson price must be greater than zero",
                severity="error",
            ))
        elif amount == current:
            issues.append(ValidationIssue(
                field="default_lesson_price",
                issue_type="unchanged",
                message="Lesson price is unchanged",
                severity="info",
            ))

        return ValidationResult(operation="update_default_lesson_price", issues=issues)

    def validate_default_duration(self, value: Any) -> ValidationResult:
        duration = parse_int(value)
        if duration is None:
            issues = [ValidationIssue(
                field="default_lesson_duration",
                issue_type="invalid_value",
                message="Enter the lesson length in minutes",
                severity="error",
            )]
        else:
            issues = self._duration_issues(duration)
        return ValidationResult(operation="update_default_lesson_duration", issues=issues)

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        One line for a notification.

        The first error wins; without errors, the warnings are joined.
        """
        first_error = result.first_error
        if first_error is not None:
            return first_error.message
        if result.warnings:
            return "; ".join(result.warnings)
        return "All checks passed"
