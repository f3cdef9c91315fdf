"""Tests for the structured logging utilities."""

import logging
from unittest.mock import MagicMock, patch

from excel_consolidator.utils.logging import (
    LogContext,
    PerformanceMetrics,
    ProgressTracker,
    StructuredLogFormatter,
    StructuredLogger,
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
    timed_operation,
)


def bound_context() -> str:
    """Render the context prefix the formatter would put on a message."""
    record = logging.makeLogRecord({"msg": ""})
    return StructuredLogFormatter("%(message)s").format(record).strip()


class TestContextVariables:
    """Tests for context variable management."""

    def test_defaults_are_empty(self) -> None:
        """Context should start empty."""
        assert get_request_id() is None
        assert bound_context() == ""

    def test_clear_context(self) -> None:
        """Clear context should reset all context variables."""
        set_request_id("req-1")
        with LogContext(merge_id="merge-1", source="a.xlsx"):
            clear_context()
            assert get_request_id() is None
            assert bound_context() == ""

    def test_setting_request_id_to_none_removes_it(self) -> None:
        set_request_id("req-1")
        set_request_id(None)
        assert get_request_id() is None


class TestPerformanceMetrics:
    """Tests for PerformanceMetrics class."""

    def test_to_dict_excludes_zero_counters(self) -> None:
        """to_dict should only report counters that were set."""
        metrics = PerformanceMetrics(operation="merge")
        metrics.duration_seconds = 0.5
        metrics.rows_written = 12

        assert metrics.to_dict() == {
            "operation": "merge",
            "duration_seconds": 0.5,
            "rows_written": 12,
        }

    def test_finish_records_duration(self) -> None:
        metrics = PerformanceMetrics(operation="merge")
        duration = metrics.finish()
        assert metrics.finished is True
        assert duration == metrics.duration_seconds >= 0


class TestStructuredLogger:
    """Tests for StructuredLogger class."""

    def setup_method(self) -> None:
        self.logger = get_logger("test_logger")
        self.logger.logger.setLevel(logging.DEBUG)

    def test_get_logger_returns_structured_logger(self) -> None:
        assert isinstance(self.logger, StructuredLogger)
        assert isinstance(self.logger.logger, logging.Logger)

    def test_render_appends_fields(self) -> None:
        """Key-value pairs follow the message after a separator."""
        msg = self.logger._render("Merged sheet", {"sheet": "Data", "rows": 4})
        assert msg == "Merged sheet | sheet=Data, rows=4"

    @patch.object(logging.Logger, "log")
    def test_warning_logging(self, mock_log: MagicMock) -> None:
        self.logger.warning("Skipping range", ref="A1:B2")
        level, message = mock_log.call_args[0]
        assert level == logging.WARNING
        assert message == "Skipping range | ref=A1:B2"

    @patch.object(logging.Logger, "log")
    def test_exception_includes_traceback(self, mock_log: MagicMock) -> None:
        self.logger.exception("Merge failed")
        assert mock_log.call_args[0][0] == logging.ERROR
        assert mock_log.call_args[1]["exc_info"] is True

    @patch.object(logging.Logger, "log")
    def test_disabled_level_is_skipped(self, mock_log: MagicMock) -> None:
        self.logger.logger.setLevel(logging.WARNING)
        self.logger.debug("Classified sheet", total_row=5)
        mock_log.assert_not_called()

    @patch.object(logging.Logger, "log")
    def test_log_progress(self, mock_info: MagicMock) -> None:
        """log_progress should include counts and percentage."""
        self.logger.log_progress("Merging", current=1, total=4, details="a.xlsx")
        message = mock_info.call_args[0][1]
        assert "Progress: Merging" in message
        assert "25.0%" in message
        assert "details=a.xlsx" in message


class TestLogContext:
    """Tests for LogContext context manager."""

    def test_merge_id_and_extra_values(self) -> None:
        with LogContext(merge_id="m-1", source="a.xlsx"):
            assert bound_context() == "[merge_id=m-1 source=a.xlsx]"

        assert bound_context() == ""

    def test_nested_contexts_accumulate(self) -> None:
        with LogContext(merge_id="m-1", source="a.xlsx"):
            with LogContext(sheet="Data"):
                assert bound_context() == "[merge_id=m-1 source=a.xlsx sheet=Data]"
            assert bound_context() == "[merge_id=m-1 source=a.xlsx]"

    def test_none_values_are_ignored(self) -> None:
        with LogContext(merge_id="m-1", sheet=None):
            assert bound_context() == "[merge_id=m-1]"

    def test_request_id_restored(self) -> None:
        set_request_id("outer")
        with LogContext(request_id="inner"):
            assert get_request_id() == "inner"
        assert get_request_id() == "outer"


class TestTimedOperation:
    @patch.object(StructuredLogger, "log_performance")
    def test_logs_metrics_even_on_error(self, mock_log: MagicMock) -> None:
        """Metrics are logged when the block raises."""
        logger = get_logger("test")
        try:
            with timed_operation(logger, "merge") as metrics:
                metrics.files_processed = 2
                raise RuntimeError("stop")
        except RuntimeError:
            pass

        logged = mock_log.call_args[0][0]
        assert logged.operation == "merge"
        assert logged.files_processed == 2


class TestProgressTracker:
    @patch.object(StructuredLogger, "log_progress")
    def test_update_with_interval(self, mock_log: MagicMock) -> None:
        """update should respect log_interval and always log the last item."""
        logger = get_logger("test")
        tracker = ProgressTracker(logger, "Merging", total=3, log_interval=2)
        tracker.update()
        assert mock_log.call_count == 0
        tracker.update()
        tracker.update()
        assert mock_log.call_count == 2


class TestStructuredLogFormatter:
    """Tests for StructuredLogFormatter class."""

    def _record(self) -> logging.LogRecord:
        return logging.LogRecord(
            "test", logging.INFO, __file__, 1, "Copied row", None, None
        )

    def test_prefixes_context(self) -> None:
        formatter = StructuredLogFormatter("%(message)s")
        with LogContext(request_id="r-1", merge_id="m-1", sheet="Data"):
            output = formatter.format(self._record())
        assert output == "[request_id=r-1 merge_id=m-1 sheet=Data] Copied row"

    def test_no_prefix_without_context(self) -> None:
        formatter = StructuredLogFormatter("%(message)s")
        assert formatter.format(self._record()) == "Copied row"


class TestConfigureLogging:
    def test_structured_formatter_installed(self) -> None:
        configure_logging(level="DEBUG")
        root_logger = logging.getLogger()
        assert root_logger.level == logging.DEBUG
        assert isinstance(root_logger.handlers[0].formatter, StructuredLogFormatter)
        configure_logging(level=logging.INFO)
