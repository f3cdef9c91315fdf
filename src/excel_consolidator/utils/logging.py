"""Structured logging for the Excel consolidator.

Log lines carry the request and merge they belong to, plus any scoped
context (source file, sheet), without threading those values through every
call. Everything lives in one ``contextvars`` mapping, so the context follows
the request into ``asyncio.to_thread`` workers.

    logger = get_logger(__name__)

    with LogContext(merge_id="m-1", source="north.xlsx"):
        logger.info("Copied rows", rows=12)
        # ... [merge_id=m-1 source=north.xlsx] Copied rows | rows=12
"""

import logging
import time
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_RESERVED_KEYS = ("request_id", "merge_id")

_log_context: ContextVar[Mapping[str, Any]] = ContextVar(
    "log_context", default=MappingProxyType({})
)


def _update_context(**values: Any) -> None:
    context = dict(_log_context.get())
    for key, value in values.items():
        if value is None:
            context.pop(key, None)
        else:
            context[key] = value
    _log_context.set(context)


def get_request_id() -> str | None:
    """Return the request ID bound to the current context, if any."""
    return _log_context.get().get("request_id")


def set_request_id(request_id: str | None) -> None:
    _update_context(request_id=request_id)


def clear_context() -> None:
    _log_context.set(MappingProxyType({}))


def _context_prefix() -> str:
    context = _log_context.get()
    ordered = [key for key in _RESERVED_KEYS if key in context]
    ordered += [key for key in context if key not in _RESERVED_KEYS]
    if not ordered:
        return ""
    return "[" + " ".join(f"{key}={context[key]}" for key in ordered) + "]"


@dataclass
class PerformanceMetrics:
    """Timing and counters of one merge, logged when the merge ends."""

    operation: str
    files_processed: int = 0
    sheets_processed: int = 0
    rows_written: int = 0
    custom_metrics: dict[str, Any] = field(default_factory=dict)
    started_at: float = field(default_factory=time.perf_counter)
    duration_seconds: float = 0.0
    finished: bool = False

    def finish(self) -> float:
        self.duration_seconds = round(time.perf_counter() - self.started_at, 4)
        self.finished = True
        return self.duration_seconds

    def to_dict(self) -> dict[str, Any]:
        """Operation and duration, plus every counter that is non-zero."""
        data: dict[str, Any] = {
            "operation": self.operation,
            "duration_seconds": self.duration_seconds,
        }
        for name in ("files_processed", "sheets_processed", "rows_written"):
            value = getattr(self, name)
            if value:
                data[name] = value
        if self.custom_metrics:
            data["custom_metrics"] = self.custom_metrics
        return data


class StructuredLogFormatter(logging.Formatter):
    """Formatter that puts the bound log context in front of each message."""

    def format(self, record: logging.LogRecord) -> str:
        prefix = _context_prefix()
        if not prefix:
            return super().format(record)

        original = record.msg
        record.msg = f"{prefix} {original}"
        try:
            return super().format(record)
        finally:
            record.msg = original


class StructuredLogger:
    """A ``logging.Logger`` front that appends ``key=value`` fields.

    ``logger.info("Merge completed", files=2, rows=40)`` is emitted as
    ``Merge completed | files=2, rows=40``.
    """

    def __init__(self, name: str) -> None:
        self._logger = logging.getLogger(name)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @staticmethod
    def _render(message: str, fields: Mapping[str, Any]) -> str:
        if not fields:
            return message
        rendered = ", ".join(f"{key}={value}" for key, value in fields.items())
        return f"{message} | {rendered}"

    def _emit(
        self,
        level: int,
        message: str,
        fields: Mapping[str, Any],
        exc_info: bool = False,
    ) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, self._render(message, fields), exc_info=exc_info)

    def debug(self, message: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._emit(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._emit(logging.WARNING, message, fields)

    def error(self, message: str, exc_info: bool = False, **fields: Any) -> None:
        self._emit(logging.ERROR, message, fields, exc_info=exc_info)

    def exception(self, message: str, **fields: Any) -> None:
        """Log at ERROR level with the active exception's traceback."""
        self._emit(logging.ERROR, message, fields, exc_info=True)

    def log_performance(self, metrics: PerformanceMetrics) -> None:
        self.info(f"Performance: {metrics.operation}", **metrics.to_dict())

    def log_progress(
        self,
        stage: str,
        current: int,
        total: int,
        details: str | None = None,
    ) -> None:
        """Log ``current`` of ``total`` items done, with a percentage."""
        percentage = current / total * 100 if total else 0.0
        fields: dict[str, Any] = {
            "current": current,
            "total": total,
            "percentage": f"{percentage:.1f}%",
        }
        if details:
            fields["details"] = details
        self.info(f"Progress: {stage}", **fields)


class LogContext:
    """Bind key/values to every log line emitted inside the ``with`` block.

    ``request_id`` and ``merge_id`` replace the current IDs; other keys are
    added on top of the enclosing context. The previous context is restored
    on exit.
    """

    def __init__(self, **values: Any) -> None:
        self._values = values
        self._token: Token[Mapping[str, Any]] | None = None

    def __enter__(self) -> "LogContext":
        context = dict(_log_context.get())
        context.update(
            {key: value for key, value in self._values.items() if value is not None}
        )
        self._token = _log_context.set(context)
        return self

    def __exit__(self, *exc: Any) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


@contextmanager
def timed_operation(
    logger: StructuredLogger, operation: str
) -> Generator[PerformanceMetrics, None, None]:
    """Yield a metrics object and log it when the block exits, even on error."""
    metrics = PerformanceMetrics(operation=operation)
    try:
        yield metrics
    finally:
        metrics.finish()
        logger.log_performance(metrics)


def configure_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
    use_structured_formatter: bool = True,
) -> None:
    """Install a single stderr handler on the root logger.

    Any handlers configured earlier are replaced.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    formatter_class = (
        StructuredLogFormatter if use_structured_formatter else logging.Formatter
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter_class(format_string or DEFAULT_FORMAT))
    logging.basicConfig(level=level, handlers=[handler], force=True)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)


class ProgressTracker:
    """Log progress every ``log_interval`` items and when the last one is done."""

    def __init__(
        self,
        logger: StructuredLogger,
        stage: str,
        total: int,
        log_interval: int = 1,
    ) -> None:
        self._logger = logger
        self._stage = stage
        self._total = total
        self._log_interval = max(log_interval, 1)
        self._done = 0
        self._started_at = time.perf_counter()

    @property
    def done(self) -> int:
        return self._done

    def update(self, increment: int = 1, details: str | None = None) -> None:
        self._done += increment
        if self._done % self._log_interval == 0 or self._done >= self._total:
            self._logger.log_progress(self._stage, self._done, self._total, details)

    def complete(self) -> float:
        """Log the stage as finished and return its duration in seconds."""
        duration = time.perf_counter() - self._started_at
        self._logger.info(
            f"Completed: {self._stage}",
            total_items=self._total,
            duration_seconds=f"{duration:.2f}",
        )
        return duration
