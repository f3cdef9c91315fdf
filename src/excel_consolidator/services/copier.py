"""Copy rows, column widths and merged ranges between worksheets.

Source and target usually live in different workbooks. Style objects are
always copied, never shared: openpyxl's ``copy()`` of a style round-trips it
through XML, which yields an independent font/fill/border/alignment tree that
is then registered in the target workbook's own style tables.
"""

from __future__ import annotations

import re
from copy import copy

from openpyxl.cell.cell import Cell, MergedCell
from openpyxl.worksheet.cell_range import CellRange
from openpyxl.worksheet.worksheet import Worksheet

from excel_consolidator.excel_document import MergeRange
from excel_consolidator.services.cell_values import extract_cell_value
from excel_consolidator.services.columns import (
    column_letter_to_number,
    column_number_to_letter,
)
from excel_consolidator.utils.logging import get_logger

logger = get_logger(__name__)

_RANGE_REF = re.compile(r"^\$?([A-Z]+)\$?(\d+):\$?([A-Z]+)\$?(\d+)$")


def parse_range_ref(ref: str) -> MergeRange | None:
    """Parse an ``"A1:C3"`` reference; return None when it is malformed."""
    match = _RANGE_REF.match(ref.strip().upper())
    if match is None:
        return None
    start_letters, start_row, end_letters, end_row = match.groups()
    merge_range = MergeRange(
        start_row=int(start_row),
        start_col=column_letter_to_number(start_letters),
        end_row=int(end_row),
        end_col=column_letter_to_number(end_letters),
    )
    if (
        merge_range.start_row < 1
        or merge_range.start_row > merge_range.end_row
        or merge_range.start_col > merge_range.end_col
    ):
        return None
    return merge_range


def copy_cell_style(source: Cell | MergedCell, target: Cell | MergedCell) -> None:
    """Copy font, fill, border, alignment, protection and number format."""
    if not source.has_style:
        return
    target.font = copy(source.font)
    target.fill = copy(source.fill)
    target.border = copy(source.border)
    target.alignment = copy(source.alignment)
    target.protection = copy(source.protection)
    target.number_format = source.number_format


def write_value(target: Cell, value: object) -> None:
    """Assign a resolved value, keeping ``=``-prefixed strings literal."""
    target.value = value
    if isinstance(value, str) and target.data_type == "f":
        target.data_type = "s"


def copy_row(
    source_ws: Worksheet,
    target_ws: Worksheet,
    source_row: int,
    target_row: int,
    start_col: int,
    end_col: int,
) -> None:
    """Copy one row's window into ``target_row`` at the same column positions.

    Values go through the cell value extractor, so formulas land as their
    cached results. Empty source cells still pass on their formatting.
    """
    for col in range(start_col, end_col + 1):
        source_cell = source_ws.cell(row=source_row, column=col)
        value = extract_cell_value(source_cell)
        if value is None and not source_cell.has_style:
            continue

        target_cell = target_ws.cell(row=target_row, column=col)
        if isinstance(target_cell, MergedCell):
            continue
        if value is not None:
            write_value(target_cell, value)
        copy_cell_style(source_cell, target_cell)

    source_dim = source_ws.row_dimensions.get(source_row)
    if source_dim is not None and source_dim.height is not None:
        target_ws.row_dimensions[target_row].height = source_dim.height


def copy_column_widths(
    source_ws: Worksheet, target_ws: Worksheet, start_col: int, end_col: int
) -> int:
    """Copy explicit column widths inside the window; return how many were set."""
    copied = 0
    for key, dimension in list(source_ws.column_dimensions.items()):
        if not dimension.width:
            continue
        first = dimension.min or column_letter_to_number(key)
        last = dimension.max or first
        for col in range(max(first, start_col), min(last, end_col) + 1):
            target_ws.column_dimensions[column_number_to_letter(col)].width = (
                dimension.width
            )
            copied += 1
    return copied


def _collides(target_ws: Worksheet, merge_range: MergeRange) -> bool:
    candidate = CellRange(merge_range.ref)
    return any(
        not candidate.isdisjoint(existing) for existing in target_ws.merged_cells.ranges
    )


def copy_merged_ranges(
    source_ws: Worksheet,
    target_ws: Worksheet,
    source_row_start: int,
    source_row_end: int,
    target_row_start: int,
    start_col: int,
    end_col: int,
) -> int:
    """Recreate merged ranges of a copied block on the target sheet.

    Every source range fully inside ``[source_row_start, source_row_end]`` x
    ``[start_col, end_col]`` is translated so that ``source_row_start`` lands
    on ``target_row_start``. Malformed references and ranges that would
    overlap an existing target merge are skipped.

    Returns:
        Number of ranges merged on the target sheet.
    """
    row_delta = target_row_start - source_row_start
    created = 0
    for source_range in list(source_ws.merged_cells.ranges):
        merge_range = parse_range_ref(source_range.coord)
        if merge_range is None:
            logger.debug("Skipping malformed merge range", ref=source_range.coord)
            continue
        if not merge_range.is_within(
            source_row_start, source_row_end, start_col, end_col
        ):
            continue

        translated = merge_range.shifted(row_delta)
        if _collides(target_ws, translated):
            logger.debug(
                "Skipping merge range that overlaps an existing one",
                ref=translated.ref,
                sheet=target_ws.title,
            )
            continue
        target_ws.merge_cells(translated.ref)
        created += 1
    return created
