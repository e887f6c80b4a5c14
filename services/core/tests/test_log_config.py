"""Tests for structured logging helpers."""

import structlog
from structlog.testing import capture_logs

from services.core.log_config import get_logger, import_context, log_api_call, log_processing_batch


class TestImportContext:

    def test_binds_and_unbinds(self):
        with import_context(organization_id="org-1", domain="pledge"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["organization_id"] == "org-1"
            assert bound["domain"] == "pledge"

        assert "organization_id" not in structlog.contextvars.get_contextvars()


class TestLogProcessingBatch:

    def test_success(self):
        with capture_logs() as logs:
            log_processing_batch(get_logger("test"), "batch-1", items_processed=4, duration_ms=12.345)

        assert logs[0]["event"] == "Batch processing completed successfully"
        assert logs[0]["success_rate"] == 100.0
        assert logs[0]["duration_ms"] == 12.35

    def test_failures_logged_as_warning(self):
        with capture_logs() as logs:
            log_processing_batch(get_logger("test"), "batch-1", items_processed=3, items_failed=1)

        assert logs[0]["log_level"] == "warning"
        assert logs[0]["success_rate"] == 75.0

    def test_empty_batch(self):
        with capture_logs() as logs:
            log_processing_batch(get_logger("test"), "batch-1", items_processed=0)

        assert logs[0]["success_rate"] == 0


class TestLogApiCall:

    def test_levels(self):
        with capture_logs() as logs:
            log_api_call(get_logger("test"), "GET", "https://example.com/a.csv", status_code=200)
            log_api_call(get_logger("test"), "GET", "https://example.com/a.csv", status_code=404)
            log_api_call(get_logger("test"), "GET", "https://example.com/a.csv", status_code=503)

        assert [entry["log_level"] for entry in logs] == ["info", "warning", "error"]
