"""Exception hierarchy for the Excel consolidator.

Every error the service raises on purpose derives from ``ConsolidatorError``
and carries a stable error code plus the HTTP status the API answers with::

    ConsolidatorError
    ├── FileError (400)
    │   ├── NoFilesProvidedError
    │   ├── UnsupportedFormatError
    │   ├── TooManyFilesError
    │   └── FileTooLargeError (413)
    ├── ConfigError (400)
    │   └── ConfigParseError
    └── MergeError (500)
        ├── WorkbookParseError
        └── SerializationError
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable error codes.

    E1xxx uploads, E2xxx merge configuration, E4xxx merge engine,
    E9xxx anything unexpected.
    """

    NO_FILES_PROVIDED = "E1001"
    FILE_TOO_LARGE = "E1002"
    UNSUPPORTED_FORMAT = "E1003"
    TOO_MANY_FILES = "E1004"
    FILE_READ_ERROR = "E1005"

    INVALID_CONFIG = "E2001"
    CONFIG_PARSE_ERROR = "E2002"

    MERGE_FAILED = "E4001"
    WORKBOOK_PARSE_FAILED = "E4002"
    SERIALIZATION_FAILED = "E4003"

    INTERNAL_ERROR = "E9001"


class ConsolidatorError(Exception):
    """Base exception for all consolidator errors.

    Attributes:
        message: Human-readable description.
        error_code: Code from ``ErrorCode``.
        details: Extra structured data echoed in API error bodies.
        http_status: Status code the API responds with.
    """

    http_status: int = 500
    default_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        error_code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details: dict[str, Any] = dict(details or {})

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"


# =============================================================================
# Upload errors (E1xxx)
# =============================================================================


class FileError(ConsolidatorError):
    """Problem with the uploaded files themselves."""

    http_status = 400
    default_code = ErrorCode.FILE_READ_ERROR

    def __init__(
        self,
        message: str,
        error_code: ErrorCode | None = None,
        filename: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        merged = dict(details or {})
        if filename:
            merged["filename"] = filename
        super().__init__(message, error_code, merged)
        self.filename = filename


class NoFilesProvidedError(FileError):
    default_code = ErrorCode.NO_FILES_PROVIDED

    def __init__(self, message: str = "No files provided") -> None:
        super().__init__(message)


class UnsupportedFormatError(FileError):
    """The upload's extension is not a spreadsheet workbook format."""

    default_code = ErrorCode.UNSUPPORTED_FORMAT

    def __init__(
        self,
        filename: str,
        extension: str,
        supported: list[str] | None = None,
    ) -> None:
        details: dict[str, Any] = {"extension": extension}
        if supported:
            details["supported_extensions"] = supported
        super().__init__(
            f"Unsupported file format: {extension or '(none)'}",
            filename=filename,
            details=details,
        )
        self.extension = extension


class TooManyFilesError(FileError):
    default_code = ErrorCode.TOO_MANY_FILES

    def __init__(self, file_count: int, max_files: int) -> None:
        super().__init__(
            f"Too many files ({file_count}); at most {max_files} "
            "files can be merged at once",
            details={"file_count": file_count, "max_files": max_files},
        )


class FileTooLargeError(FileError):
    """A single upload is above the configured size limit."""

    http_status = 413
    default_code = ErrorCode.FILE_TOO_LARGE

    def __init__(
        self,
        file_size: int,
        max_size: int,
        filename: str | None = None,
    ) -> None:
        super().__init__(
            f"{filename or 'File'} is {file_size} bytes; "
            f"the limit is {max_size} bytes",
            filename=filename,
            details={"file_size_bytes": file_size, "max_size_bytes": max_size},
        )
        self.file_size = file_size
        self.max_size = max_size


# =============================================================================
# Configuration errors (E2xxx)
# =============================================================================


class ConfigError(ConsolidatorError):
    http_status = 400
    default_code = ErrorCode.INVALID_CONFIG


class ConfigParseError(ConfigError):
    """The ``config`` form field is not JSON or fails validation.

    ``errors`` holds one ``"field: problem"`` line per validation failure.
    """

    default_code = ErrorCode.CONFIG_PARSE_ERROR

    def __init__(
        self,
        message: str = "Failed to parse merge configuration",
        errors: list[str] | None = None,
    ) -> None:
        self.errors = list(errors or [])
        super().__init__(message, details={"errors": self.errors} if errors else None)


# =============================================================================
# Merge errors (E4xxx)
# =============================================================================


class MergeError(ConsolidatorError):
    http_status = 500
    default_code = ErrorCode.MERGE_FAILED


class WorkbookParseError(MergeError):
    """A source document could not be opened as a workbook."""

    default_code = ErrorCode.WORKBOOK_PARSE_FAILED

    def __init__(self, filename: str, reason: str) -> None:
        super().__init__(
            f"Could not read '{filename}' as a spreadsheet workbook",
            details={"filename": filename, "reason": reason},
        )
        self.filename = filename
        self.reason = reason


class SerializationError(MergeError):
    """The output could not be written, even after the value-only rebuild."""

    default_code = ErrorCode.SERIALIZATION_FAILED

    def __init__(self, reason: str) -> None:
        super().__init__(
            "Failed to write the consolidated workbook",
            details={"reason": reason},
        )
        self.reason = reason
