"""Dataclasses describing merge inputs, ranges and results."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from openpyxl.worksheet.worksheet import Worksheet

from excel_consolidator.services.columns import column_number_to_letter


@dataclass(frozen=True)
class SourceFile:
    """A single input workbook held fully in memory."""

    filename: str
    content: bytes

    @classmethod
    def from_path(cls, path: Path) -> SourceFile:
        return cls(filename=path.name, content=path.read_bytes())

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class MergeRange:
    """A rectangular block of merged cells, 1-based and inclusive."""

    start_row: int
    start_col: int
    end_row: int
    end_col: int

    def is_within(
        self, row_start: int, row_end: int, col_start: int, col_end: int
    ) -> bool:
        """Return True when the range lies entirely inside the given box."""
        return (
            row_start <= self.start_row
            and self.end_row <= row_end
            and col_start <= self.start_col
            and self.end_col <= col_end
        )

    def shifted(self, row_delta: int) -> MergeRange:
        """Return the same range moved ``row_delta`` rows down."""
        return MergeRange(
            start_row=self.start_row + row_delta,
            start_col=self.start_col,
            end_row=self.end_row + row_delta,
            end_col=self.end_col,
        )

    @property
    def ref(self) -> str:
        """A1-style reference, e.g. ``"A1:C2"``."""
        return (
            f"{column_number_to_letter(self.start_col)}{self.start_row}:"
            f"{column_number_to_letter(self.end_col)}{self.end_row}"
        )


@dataclass(frozen=True)
class SignatureSection:
    """The signature block captured from the first sheet that has one."""

    worksheet: Worksheet
    first_row: int
    last_row: int

    @property
    def row_count(self) -> int:
        return self.last_row - self.first_row + 1


@dataclass
class MergeStats:
    """Counters describing what a merge call wrote."""

    files_processed: int = 0
    sheets_processed: int = 0
    sheets_skipped: int = 0
    header_rows: int = 0
    data_rows: int = 0
    total_rows: int = 0
    subtotal_rows_skipped: int = 0
    signature_rows: int = 0
    merged_ranges: int = 0
    used_fallback: bool = False

    @property
    def rows_written(self) -> int:
        return self.header_rows + self.data_rows + self.total_rows + self.signature_rows


@dataclass
class MergeResult:
    """Serialized output workbook plus merge statistics."""

    content: bytes
    stats: MergeStats = field(default_factory=MergeStats)
