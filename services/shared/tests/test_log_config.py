"""Tests for structured logging helpers."""

from unittest.mock import MagicMock

from services.shared.log_config import log_database_operation, log_processing_batch


class TestLogProcessingBatch:

    def test_success_logs_info(self):
        logger = MagicMock()

        log_processing_batch(logger, "batch-1", items_processed=10, duration_ms=12.345)

        logger.info.assert_called_once()
        _, context = logger.info.call_args
        assert context["success_rate"] == 100.0
        assert context["duration_ms"] == 12.35

    def test_failures_log_warning(self):
        logger = MagicMock()

        log_processing_batch(logger, "batch-1", items_processed=99, items_failed=1, skipped=3)

        logger.warning.assert_called_once()
        _, context = logger.warning.call_args
        assert context["success_rate"] == 99.0
        assert context["skipped"] == 3

    def test_empty_batch(self):
        logger = MagicMock()

        log_processing_batch(logger, "batch-1", items_processed=0)

        _, context = logger.info.call_args
        assert context["success_rate"] == 0


class TestLogDatabaseOperation:

    def test_context(self):
        logger = MagicMock()

        log_database_operation(logger, "update", table="donations", rows_affected=1, donation_id=7)

        _, context = logger.info.call_args
        assert context == {
            "operation": "UPDATE",
            "table": "donations",
            "rows_affected": 1,
            "donation_id": 7,
        }
