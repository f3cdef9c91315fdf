"""Services for the Excel consolidator."""

from excel_consolidator.services.classifier import (
    find_signature_row,
    find_total_row,
    is_subtotal_row,
)
from excel_consolidator.services.columns import (
    column_letter_to_number,
    column_number_to_letter,
)

__all__ = [
    "column_letter_to_number",
    "column_number_to_letter",
    "find_signature_row",
    "find_total_row",
    "is_subtotal_row",
]
