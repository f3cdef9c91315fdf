"""Utilities package for the Excel consolidator.

This package provides:
- Centralized exception classes (exceptions.py)
- Structured logging utilities (logging.py)
"""

from excel_consolidator.utils.exceptions import (
    ConfigError,
    ConfigParseError,
    ConsolidatorError,
    ErrorCode,
    FileError,
    FileTooLargeError,
    MergeError,
    NoFilesProvidedError,
    SerializationError,
    TooManyFilesError,
    UnsupportedFormatError,
    WorkbookParseError,
)
from excel_consolidator.utils.logging import (
    LogContext,
    StructuredLogger,
    get_logger,
    get_request_id,
    set_request_id,
)

__all__ = [
    # Exceptions
    "ConfigError",
    "ConfigParseError",
    "ConsolidatorError",
    "ErrorCode",
    "FileError",
    "FileTooLargeError",
    "MergeError",
    "NoFilesProvidedError",
    "SerializationError",
    "TooManyFilesError",
    "UnsupportedFormatError",
    "WorkbookParseError",
    # Logging
    "LogContext",
    "StructuredLogger",
    "get_logger",
    "get_request_id",
    "set_request_id",
]
