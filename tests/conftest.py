from __future__ import annotations

from collections.abc import Callable
from io import BytesIO
from typing import Any

import pytest
from openpyxl import Workbook, load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from excel_consolidator.excel_document import SourceFile
from excel_consolidator.utils.logging import clear_context

Rows = list[list[Any]]


def build_workbook(sheets: dict[str, Rows]) -> Workbook:
    """Build a workbook with one sheet per entry, rows appended from row 1."""
    wb = Workbook()
    wb.remove(wb.active)
    for title, rows in sheets.items():
        ws = wb.create_sheet(title)
        for row in rows:
            ws.append(row)
    return wb


def workbook_bytes(wb: Workbook) -> bytes:
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def sheet_values(ws: Worksheet, max_col: int | None = None) -> Rows:
    """Return all rows of a sheet as lists of values."""
    return [
        list(row)
        for row in ws.iter_rows(
            min_row=1, max_col=max_col or ws.max_column, values_only=True
        )
    ]


@pytest.fixture(autouse=True)
def _clear_log_context() -> None:
    clear_context()


@pytest.fixture
def make_source() -> Callable[..., SourceFile]:
    """Factory building an in-memory SourceFile.

    Accepts either a list of rows (single sheet named "Sheet1") or a
    mapping of sheet title to rows, plus an optional ``customize`` callback
    that receives the Workbook before it is saved.
    """

    def _make(
        content: Rows | dict[str, Rows],
        filename: str = "input.xlsx",
        customize: Callable[[Workbook], None] | None = None,
    ) -> SourceFile:
        sheets = content if isinstance(content, dict) else {"Sheet1": content}
        wb = build_workbook(sheets)
        if customize is not None:
            customize(wb)
        return SourceFile(filename=filename, content=workbook_bytes(wb))

    return _make


@pytest.fixture
def read_output() -> Callable[..., Worksheet]:
    """Load the consolidated sheet from merge output bytes."""

    def _read(content: bytes, sheet_name: str = "Consolidated") -> Worksheet:
        return load_workbook(BytesIO(content))[sheet_name]

    return _read


@pytest.fixture
def inventory_rows() -> Rows:
    """A small goods-issue sheet: title, table header, data, total, signature."""
    return [
        ["PHIẾU XUẤT KHO", None, None],
        ["Item", "Qty", "Amount"],
        ["Widget", 2, 200],
        ["Gadget", 1, 150],
        ["TOTAL", 3, 350],
        ["Người lập phiếu", None, "Người nhận"],
        ["Nguyễn Văn A", None, "Trần Thị B"],
    ]


@pytest.fixture
def make_workbook() -> Callable[[dict[str, Rows]], Workbook]:
    return build_workbook


@pytest.fixture
def values_of() -> Callable[..., Rows]:
    return sheet_values
