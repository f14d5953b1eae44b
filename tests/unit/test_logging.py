from structlog.testing import capture_logs

from app.infrastructure.observability.logging import log_notification_outcome, log_sync_result


def test_sync_result_logs_warning_on_failure():
    with capture_logs() as logs:
        log_sync_result("leetcode", {"success": False, "error": "down", "duration_ms": 12.5})

    [entry] = logs
    assert entry["log_level"] == "warning"
    assert entry["platform"] == "leetcode"
    assert entry["error"] == "down"
    assert entry["kind"] == "platform_sync"


def test_notification_outcome_fields():
    with capture_logs() as logs:
        log_notification_outcome(
            "notif-1", "user-1", "RETRYING", sent=[], failed=[], next_retry_at="2026-03-02T12:05:00+00:00"
        )
        log_notification_outcome("notif-2", "user-1", "FAILED", sent=[], failed=["email"])

    assert logs[0]["log_level"] == "info"
    assert logs[0]["next_retry_at"] == "2026-03-02T12:05:00+00:00"
    assert logs[1]["log_level"] == "warning"
    assert logs[1]["failed_channels"] == ["email"]
    assert "next_retry_at" not in logs[1]
