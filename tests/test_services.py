"""Tests for notifications, audit logging, configuration and validation."""

import pytest
from datetime import timedelta
from decimal import Decimal

from lesson_ledger.audit import AuditLogger
from lesson_ledger.config import (
    LedgerDefaults,
    NotificationSettings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)
from lesson_ledger.models import (
    AuditEventBuilder,
    AuditEventType,
    LessonDraft,
    PackageDraft,
    StudentDraft,
    ValidationIssue,
    ValidationResult,
)
from lesson_ledger.models.audit import AuditEvent
from lesson_ledger.notifications import (
    InMemoryNotificationSink,
    LoggingNotificationSink,
    NotificationSeverity,
    Notifier,
)
from lesson_ledger.migration import migrate
from lesson_ledger.services.storage import AuditStorageInterface, InMemoryAuditStorage
from lesson_ledger.validation import LedgerValidator


class BrokenAuditStorage(AuditStorageInterface):
    def append_event(self, event: AuditEvent) -> bool:
        raise ConnectionError("audit store offline")

    def get_events_by_entity(self, entity_type, entity_id):
        return []

    def get_recent_events(self, limit=100):
        return []


class TestNotifier:
    """Tests for Notifier and the sinks."""

    def test_durations_by_severity(self):
        """Test that errors stay up longer."""
        sink = InMemoryNotificationSink()
        notifier = Notifier(sink, duration_ms=4000, error_duration_ms=5000)

        assert notifier.success("ok").duration_ms == 4000
        assert notifier.warning("hm").duration_ms == 4000
        assert notifier.info("fyi").duration_ms == 4000
        assert notifier.error("bad").duration_ms == 5000
        assert sink.messages() == ["ok", "hm", "fyi", "bad"]
        assert sink.messages(NotificationSeverity.ERROR) == ["bad"]

    def test_default_durations_from_settings(self):
        """Test the configured defaults."""
        notifier = Notifier(InMemoryNotificationSink())
        assert notifier.success("ok").duration_ms == 4000
        assert notifier.error("bad").duration_ms == 5000

    def test_ids_are_unique(self):
        """Test that notifications can be told apart for dismissal."""
        notifier = Notifier(InMemoryNotificationSink())
        assert notifier.info("a").id != notifier.info("a").id

    def test_dismiss_and_expire(self):
        """Test removing notifications by id and by age."""
        sink = InMemoryNotificationSink()
        notifier = Notifier(sink, duration_ms=1000, error_duration_ms=5000)
        short = notifier.info("short")
        long = notifier.error("long")

        later = short.created_at + timedelta(seconds=2)
        assert sink.expired(later) == [short]

        sink.dismiss(short.id)
        assert sink.notifications == [long]

    def test_logging_sink(self):
        """Test that the logging sink accepts every severity."""
        notifier = Notifier(LoggingNotificationSink())
        notifier.success("ok")
        notifier.error("bad")

    def test_empty_message_rejected(self):
        """Test that a notification needs text."""
        with pytest.raises(ValueError):
            Notifier(InMemoryNotificationSink()).info("")


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_persists_events(self):
        """Test that events reach the audit store."""
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        assert logger.log(AuditEventBuilder.student_added("s1", "Anna", 1)) is True
        assert len(storage) == 1
        assert storage.get_events_by_entity("student", "s1")[0].details["name"] == "Anna"

    def test_empty_store_receives_first_event(self):
        """Test that an audit store with no events yet is still written to."""
        storage = InMemoryAuditStorage()
        assert len(storage) == 0

        AuditLogger(storage).log(AuditEventBuilder.student_deleted("s1", 0))
        assert len(storage) == 1

    def test_bounded_store_drops_oldest(self):
        """Test the history limit of the in-memory audit store."""
        storage = InMemoryAuditStorage(max_events=2)
        logger = AuditLogger(storage)
        for student_id in ("s1", "s2", "s3"):
            logger.log(AuditEventBuilder.student_deleted(student_id, 0))

        assert len(storage) == 2
        assert [event.entity_id for event in storage.get_recent_events()] == ["s3", "s2"]
        assert storage.get_events_by_entity("student", "s1") == []

    def test_local_only(self):
        """Test logging without a store."""
        assert AuditLogger().log(AuditEventBuilder.settings_updated({"x": 1})) is True

    def test_storage_failure_never_raises(self):
        """Test that a broken audit store does not break the caller."""
        logger = AuditLogger(BrokenAuditStorage())
        assert logger.log(AuditEventBuilder.student_deleted("s1", 0)) is False

    def test_validation_failure_records_errors_only(self):
        """Test the validation_failed helper."""
        storage = InMemoryAuditStorage()
        AuditLogger(storage).log_validation_failed(ValidationResult(
            operation="add_student",
            issues=[
                ValidationIssue(field="name", issue_type="missing", message="m", severity="error"),
                ValidationIssue(field="packages", issue_type="discarded", message="w", severity="warning"),
            ],
        ))
        event = storage.get_recent_events(1)[0]
        assert event.event_type == AuditEventType.VALIDATION_FAILED
        assert event.details["issues"] == [{"field": "name", "type": "missing", "message": "m"}]

    def test_recent_events_newest_first(self):
        """Test the audit store ordering."""
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        logger.log_storage_failure(AuditEventType.SAVE_FAILED, "first")
        logger.log_error("RuntimeError", "second")
        recent = storage.get_recent_events(2)
        assert [event.error_message for event in recent] == ["second", "first"]
        assert storage.get_recent_events(0) == []


class TestConfiguration:
    """Tests for pydantic-settings configuration."""

    def test_defaults(self):
        """Test the built-in values."""
        assert LedgerDefaults().default_lesson_duration == 60
        assert NotificationSettings().error_duration_ms == 5000
        assert StorageSettings().state_path.name == "lesson-ledger-state-v2.json"
        assert get_settings().app.audit_history_limit == 1000

    def test_environment_overrides(self, monkeypatch, tmp_path):
        """Test reading values from the environment."""
        monkeypatch.setenv("LESSON_LEDGER_DEFAULT_LESSON_PRICE", "1500")
        monkeypatch.setenv("LESSON_LEDGER_STORAGE_DIRECTORY", str(tmp_path))
        monkeypatch.setenv("LESSON_LEDGER_STORAGE_KEY", "backup")

        assert LedgerDefaults().default_lesson_price == Decimal("1500")
        assert StorageSettings().state_path == tmp_path / "backup.json"

    def test_fresh_ledger_uses_environment(self, monkeypatch):
        """Test that configured defaults reach a new ledger."""
        monkeypatch.setenv("LESSON_LEDGER_DEFAULT_LESSON_DURATION", "90")
        assert migrate(None).settings.default_lesson_duration == 90

    def test_key_cannot_be_a_path(self):
        """Test that the storage key stays a plain file name."""
        with pytest.raises(ValueError):
            StorageSettings(key="../elsewhere")

    def test_validate_all_settings(self, monkeypatch):
        """Test the startup check."""
        assert validate_all_settings() == {
            "storage": True,
            "notifications": True,
            "defaults": True,
            "app": True,
        }

        monkeypatch.setenv("LESSON_LEDGER_NOTIFY_DURATION_MS", "-1")
        results = validate_all_settings()
        assert results["notifications"] is False
        assert "notifications_error" in results

    def test_settings_cached(self):
        """Test that get_settings returns one instance."""
        assert get_settings() is get_settings()


class TestLedgerValidator:
    """Tests for LedgerValidator outside the action layer."""

    def test_new_student_ok(self):
        """Test a valid student."""
        draft = StudentDraft(name="Anna", packages=[PackageDraft()])
        assert LedgerValidator().validate_new_student(draft).is_valid

    def test_new_student_reports_each_problem(self):
        """Test that both the name and the packages are checked."""
        result = LedgerValidator().validate_new_student(StudentDraft(name="", packages=[]))
        assert [issue.field for issue in result.issues] == ["name", "packages"]

    def test_new_lesson_duration_grid(self):
        """Test 15 minute steps."""
        state = migrate({"students": [{"id": "s1", "name": "Anna"}]})
        validator = LedgerValidator()
        for minutes, ok in [(15, True), (45, True), (90, True), (1440, True), (20, False), (10, False), (1455, False)]:
            draft = LessonDraft(student_id="s1", start="2024-03-05T10:00:00Z", duration_minutes=minutes)
            assert validator.validate_new_lesson(state, draft).is_valid is ok

    def test_package_negative_remaining_warns(self):
        """Test the lower clamp warning."""
        result = LedgerValidator().validate_package(5, -2, 1000)
        assert result.is_valid
        assert result.warnings == ["Remaining lessons raised to zero"]

    def test_summary_text(self):
        """Test the notification text for a result."""
        validator = LedgerValidator()
        assert validator.get_user_friendly_summary(ValidationResult(operation="x")) == "All checks passed"
        result = validator.validate_package(0, price="abc")
        assert validator.get_user_friendly_summary(result) == "A package needs at least one lesson"
