"""Tests for the cell value extractor."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

import pytest
from openpyxl import Workbook
from openpyxl.cell.rich_text import CellRichText, TextBlock
from openpyxl.cell.text import InlineFont
from openpyxl.worksheet.formula import ArrayFormula

from excel_consolidator.services.cell_values import (
    cell_text,
    extract_cell_value,
    extract_value,
)


class TestExtractValue:
    def test_none_stays_none(self) -> None:
        assert extract_value(None) is None

    @pytest.mark.parametrize(
        "value",
        [
            "plain",
            "2024-01-15",
            "15/01/2024",
            42,
            3.14,
            Decimal("1.50"),
            True,
            datetime(2024, 1, 15, 8, 30),
            date(2024, 1, 15),
            time(8, 30),
        ],
    )
    def test_scalars_are_returned_unchanged(self, value: object) -> None:
        assert extract_value(value) == value
        assert type(extract_value(value)) is type(value)

    def test_date_like_string_survives_verbatim(self) -> None:
        assert extract_value(" 01/02/2024 ") == " 01/02/2024 "

    def test_rich_text_runs_are_concatenated(self) -> None:
        rich = CellRichText(
            ["Người ", TextBlock(InlineFont(b=True), "nhận"), " hàng"]
        )
        assert extract_value(rich) == "Người nhận hàng"

    def test_formula_objects_resolve_to_none(self) -> None:
        assert extract_value(ArrayFormula("A1:A2", "=A1*2")) is None

    def test_containers_are_shallow_copied(self) -> None:
        source = [1, 2]
        result = extract_value(source)
        assert result == source
        assert result is not source

    def test_unknown_objects_degrade_to_none(self) -> None:
        assert extract_value(object()) is None

    @pytest.mark.parametrize(
        "value",
        [
            "text",
            12,
            CellRichText(["a", TextBlock(InlineFont(i=True), "b")]),
            datetime(2023, 5, 1),
        ],
    )
    def test_extraction_is_idempotent(self, value: object) -> None:
        once = extract_value(value)
        assert extract_value(once) == once


class TestExtractCellValue:
    def test_formula_cell_without_cached_result_is_none(self) -> None:
        ws = Workbook().active
        ws["A1"] = "=SUM(B1:B2)"
        assert ws["A1"].data_type == "f"
        assert extract_cell_value(ws["A1"]) is None

    def test_value_cell(self) -> None:
        ws = Workbook().active
        ws["A1"] = 99.5
        assert extract_cell_value(ws["A1"]) == 99.5

    def test_empty_cell(self) -> None:
        ws = Workbook().active
        assert extract_cell_value(ws["C3"]) is None


def test_cell_text_trims_and_stringifies() -> None:
    assert cell_text("  Total ") == "Total"
    assert cell_text(5) == "5"
    assert cell_text(None) == ""
