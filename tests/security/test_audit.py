"""Tests for the audit trail."""

from structlog.testing import capture_logs

from sortguard.security.audit import AuditLogger
from sortguard.security.sensitive import REDACTED


class TestAuditLogger:
    def test_records_structured_event(self) -> None:
        audit = AuditLogger()

        with capture_logs() as logs:
            audit.record("read_file", "/data/notes.txt", "success", bytes_read=12)

        assert len(logs) == 1
        event = logs[0]
        assert event["event"] == "audit.success"
        assert event["operation"] == "read_file"
        assert event["path"] == "/data/notes.txt"
        assert event["bytes_read"] == 12
        assert event["component"] == "audit"
        assert event["log_level"] == "info"

    def test_failures_log_at_warning(self) -> None:
        audit = AuditLogger()

        with capture_logs() as logs:
            audit.record("read_file", "/data/notes.txt", "failure", error="not_found")

        assert logs[0]["log_level"] == "warning"
        assert logs[0]["error"] == "not_found"

    def test_sensitive_paths_are_redacted(self) -> None:
        audit = AuditLogger()

        with capture_logs() as logs:
            audit.record("read_file", "/home/u/.env", "start")

        assert logs[0]["path"] == f"/home/u/{REDACTED}"
