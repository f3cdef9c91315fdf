"""Normalize openpyxl cell contents into portable scalar values.

Workbooks are parsed with ``data_only=True`` so formula cells already carry
their last cached result, and with ``rich_text=True`` so styled text comes
back as :class:`~openpyxl.cell.rich_text.CellRichText`. The helpers here turn
whatever a cell holds into a plain string, number, boolean or date, and never
hand back a formula expression.
"""

from __future__ import annotations

import copy
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

from openpyxl.cell.cell import Cell, MergedCell
from openpyxl.cell.rich_text import CellRichText, TextBlock
from openpyxl.worksheet.formula import ArrayFormula, DataTableFormula

_SCALAR_TYPES = (str, bool, int, float, Decimal, datetime, date, time, timedelta)

_FORMULA_TYPES = (ArrayFormula, DataTableFormula)


def extract_value(value: Any) -> Any:
    """Return the display-independent value of a raw cell value.

    Rich text is flattened to the concatenation of its runs, formula objects
    resolve to ``None`` (no cached result is available for them), scalars are
    returned unchanged and any other container is shallow-copied. Applying
    this function to its own output returns the same value.
    """
    if value is None:
        return None
    if isinstance(value, CellRichText):
        return "".join(
            run.text if isinstance(run, TextBlock) else str(run) for run in value
        )
    if isinstance(value, _FORMULA_TYPES):
        return None
    if isinstance(value, _SCALAR_TYPES):
        return value
    if isinstance(value, (list, tuple, dict, set)):
        return copy.copy(value)
    return None


def extract_cell_value(cell: Cell | MergedCell) -> Any:
    """Return the resolved value of ``cell``, or ``None`` when it is empty.

    A cell typed as a formula only reaches this point when its workbook was
    loaded without cached values, in which case there is nothing to resolve.
    """
    if cell.data_type == "f":
        return None
    return extract_value(cell.value)


def cell_text(value: Any) -> str:
    """Render an extracted value as trimmed text for keyword matching."""
    if value is None:
        return ""
    return str(value).strip()
