"""Pydantic models for merge configuration and API responses."""

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from excel_consolidator.services.columns import column_letter_to_number

_COLUMN_LETTERS = re.compile(r"^[A-Z]{1,2}$")


class MergeConfig(BaseModel):
    """Declarative settings for one merge call.

    Serialized with camelCase keys, e.g.::

        {"includeTotal": true, "startRow": 2, "startColumn": "A",
         "endColumn": "Z", "includeSignature": true}
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    include_total: bool = Field(
        default=True,
        alias="includeTotal",
        description="Copy the TOTAL row and keep unlabelled subtotal rows",
    )
    start_row: int = Field(
        default=2,
        ge=1,
        alias="startRow",
        description="First row of the table; rows above it form the header block",
    )
    start_column: str = Field(
        default="A",
        alias="startColumn",
        description="First column letter of the copied window",
    )
    end_column: str = Field(
        default="Z",
        alias="endColumn",
        description="Last column letter of the copied window",
    )
    include_signature: bool = Field(
        default=True,
        alias="includeSignature",
        description="Append the first signature section once at the end",
    )

    @field_validator("start_column", "end_column", mode="before")
    @classmethod
    def normalize_column(cls, v: Any) -> Any:
        """Strip and upper-case column letters."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("start_column", "end_column")
    @classmethod
    def validate_column(cls, v: str) -> str:
        """Validate the column is one or two letters A-Z."""
        if not _COLUMN_LETTERS.match(v):
            raise ValueError(f"Column must be one or two letters A-Z, got {v!r}")
        return v

    @model_validator(mode="after")
    def validate_window(self) -> "MergeConfig":
        """Validate the start column does not come after the end column."""
        if self.start_column_index > self.end_column_index:
            raise ValueError(
                f"startColumn ({self.start_column}) must not come after "
                f"endColumn ({self.end_column})"
            )
        return self

    @property
    def start_column_index(self) -> int:
        return column_letter_to_number(self.start_column)

    @property
    def end_column_index(self) -> int:
        return column_letter_to_number(self.end_column)


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: str
    version: str


class ErrorDetail(BaseModel):
    """Standard error response model."""

    detail: str = Field(..., description="Error message")
    error_code: str | None = Field(
        default=None, description="Machine-readable error code (e.g., E1001)"
    )
    details: dict[str, Any] | None = Field(
        default=None, description="Additional error details"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for tracing and debugging"
    )
