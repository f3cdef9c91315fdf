"""Row classification heuristics for source worksheets.

Three independent checks decide how the merge treats a row:

* the *total row* is the first row labelled exactly ``TOTAL``;
* a *subtotal row* is sparse, carries one to three figures and no labels;
* the *signature row* is the first row holding a sign-off label, and starts
  the trailing signature section of the sheet.

Every check only looks at the configured column window.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterator, Sequence
from enum import Enum
from typing import Any

from openpyxl.worksheet.worksheet import Worksheet

from excel_consolidator.services.cell_values import cell_text, extract_cell_value

TOTAL_LABEL = "TOTAL"

SUBTOTAL_MIN_EMPTY_RATIO = 0.70
SUBTOTAL_MIN_NUMERIC = 1
SUBTOTAL_MAX_NUMERIC = 3

# Plain decimal literal; "nan", "inf" and "1_000" stay text.
NUMBER_PATTERN = re.compile(r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?")

# Creator, receiver and signature labels in Vietnamese and English.
SIGNATURE_KEYWORDS: tuple[str, ...] = (
    "người lập phiếu",
    "người lập biểu",
    "người lập",
    "người nhận",
    "người giao",
    "thủ kho",
    "kế toán trưởng",
    "ký tên",
    "chữ ký",
    "prepared by",
    "received by",
    "delivered by",
    "signature",
)


class CellKind(str, Enum):
    """Coarse content class of a cell used by the subtotal heuristic."""

    EMPTY = "empty"
    NUMERIC = "numeric"
    TEXT = "text"


def _window_rows(
    worksheet: Worksheet, start_col: int, end_col: int
) -> Iterator[tuple[int, list[Any]]]:
    """Yield ``(row_number, extracted values)`` for every row of the sheet."""
    for row_number, cells in enumerate(
        worksheet.iter_rows(
            min_row=1,
            max_row=worksheet.max_row,
            min_col=start_col,
            max_col=end_col,
        ),
        start=1,
    ):
        yield row_number, [extract_cell_value(cell) for cell in cells]


def _normalize_label(value: Any) -> str:
    text = unicodedata.normalize("NFC", cell_text(value))
    return " ".join(text.split()).lower()


def is_total_label(value: Any) -> bool:
    """Return True when the value reads exactly ``TOTAL`` (any case)."""
    return cell_text(value).upper() == TOTAL_LABEL


def is_signature_label(value: Any) -> bool:
    """Return True when the value contains one of the signature keywords."""
    label = _normalize_label(value)
    if not label:
        return False
    return any(keyword in label for keyword in SIGNATURE_KEYWORDS)


def find_total_row(worksheet: Worksheet, start_col: int, end_col: int) -> int | None:
    """Return the first row whose window holds a cell reading ``TOTAL``."""
    for row_number, values in _window_rows(worksheet, start_col, end_col):
        if any(is_total_label(value) for value in values):
            return row_number
    return None


def find_signature_row(
    worksheet: Worksheet, start_col: int, end_col: int
) -> int | None:
    """Return the first row whose window holds a signature keyword."""
    for row_number, values in _window_rows(worksheet, start_col, end_col):
        if any(is_signature_label(value) for value in values):
            return row_number
    return None


def classify_cell(value: Any) -> CellKind:
    """Classify a cell value as empty, numeric or text.

    Strings that are plain decimal numbers once thousands separators are removed
    ("424,595") count as numeric. Booleans and dates count as text.
    """
    if value is None:
        return CellKind.EMPTY
    if isinstance(value, bool):
        return CellKind.TEXT
    if isinstance(value, (int, float)):
        return CellKind.NUMERIC

    text = cell_text(value)
    if not text:
        return CellKind.EMPTY
    if NUMBER_PATTERN.fullmatch(text.replace(",", "")):
        return CellKind.NUMERIC
    return CellKind.TEXT


def is_subtotal_row(values: Sequence[Any]) -> bool:
    """Return True when the window values look like an unlabelled subtotal.

    The row must be at least 70% empty, hold between one and three numeric
    cells and no text at all.
    """
    total_cells = len(values)
    if total_cells == 0:
        return False

    kinds = [classify_cell(value) for value in values]
    empty_count = kinds.count(CellKind.EMPTY)
    numeric_count = kinds.count(CellKind.NUMERIC)
    text_count = kinds.count(CellKind.TEXT)

    return (
        empty_count / total_cells >= SUBTOTAL_MIN_EMPTY_RATIO
        and SUBTOTAL_MIN_NUMERIC <= numeric_count <= SUBTOTAL_MAX_NUMERIC
        and text_count == 0
    )


def row_window_values(
    worksheet: Worksheet, row_number: int, start_col: int, end_col: int
) -> list[Any]:
    """Return the extracted values of one row restricted to the window."""
    for cells in worksheet.iter_rows(
        min_row=row_number,
        max_row=row_number,
        min_col=start_col,
        max_col=end_col,
    ):
        return [extract_cell_value(cell) for cell in cells]
    return []
