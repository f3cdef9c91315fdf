"""Merge many workbooks into one consolidated worksheet.

The merge walks every input file, then every sheet, then every row, and
appends rows to the output sheet at a cursor that only moves forward:

1. Rows above ``startRow`` of the first processed sheet are copied once as
   the header block.
2. Data rows are copied with their column positions preserved. The first
   sheet starts at ``startRow``; later sheets start one row further down to
   drop their repeated table header.
3. The ``TOTAL`` row is copied only when totals are included. Unlabelled
   subtotal rows are dropped when totals are excluded.
4. The first signature section met anywhere is captured once and appended
   after every data row of every file.
"""

from __future__ import annotations

import uuid
import zipfile
from collections.abc import Callable, Sequence
from io import BytesIO
from xml.etree.ElementTree import ParseError

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from excel_consolidator.config import OutputBase, settings
from excel_consolidator.excel_document import (
    MergeResult,
    MergeStats,
    SignatureSection,
    SourceFile,
)
from excel_consolidator.models import MergeConfig
from excel_consolidator.services.cell_values import extract_cell_value
from excel_consolidator.services.classifier import (
    find_signature_row,
    find_total_row,
    is_subtotal_row,
    row_window_values,
)
from excel_consolidator.services.copier import (
    copy_cell_style,
    copy_column_widths,
    copy_merged_ranges,
    copy_row,
    write_value,
)
from excel_consolidator.utils.exceptions import (
    NoFilesProvidedError,
    SerializationError,
    WorkbookParseError,
)
from excel_consolidator.utils.logging import (
    LogContext,
    ProgressTracker,
    get_logger,
    timed_operation,
)

logger = get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_PARSE_ERRORS = (
    InvalidFileException,
    zipfile.BadZipFile,
    ParseError,
    KeyError,
    ValueError,
    TypeError,
    OSError,
)


def load_source_workbook(source: SourceFile, *, data_only: bool = True) -> Workbook:
    """Parse an in-memory workbook, wrapping parser failures.

    Raises:
        WorkbookParseError: If the bytes are not a readable workbook.
    """
    try:
        return load_workbook(
            BytesIO(source.content), data_only=data_only, rich_text=True
        )
    except _PARSE_ERRORS as exc:
        raise WorkbookParseError(source.filename, str(exc)) from exc


def serialize_workbook(workbook: Workbook) -> bytes:
    """Write the workbook to an in-memory xlsx document."""
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class _OutputCursor:
    """Next free row of the output sheet; it never moves backwards."""

    def __init__(self) -> None:
        self.row = 1

    def advance(self, rows: int = 1) -> int:
        """Reserve ``rows`` rows and return the first reserved row."""
        first = self.row
        self.row += rows
        return first


class ExcelMerger:
    """Consolidate workbooks into a single sheet.

    One instance can serve many merge calls; all working state (parsed
    workbooks, cursor, signature slot, statistics) is local to a call.
    """

    def __init__(
        self,
        output_sheet_name: str | None = None,
        output_base: OutputBase | None = None,
        serializer: Callable[[Workbook], bytes] | None = None,
    ) -> None:
        self.output_sheet_name = output_sheet_name or settings.output_sheet_name
        self.output_base = output_base or settings.output_base
        self._serialize = serializer or serialize_workbook

    def merge(self, sources: Sequence[SourceFile], config: MergeConfig) -> MergeResult:
        """Merge ``sources`` in order and return the serialized workbook.

        Raises:
            NoFilesProvidedError: If ``sources`` is empty.
            WorkbookParseError: If any source cannot be parsed.
            SerializationError: If the output cannot be written even after a
                value-only rebuild.
        """
        if not sources:
            raise NoFilesProvidedError()

        with (
            LogContext(merge_id=str(uuid.uuid4())),
            timed_operation(logger, "merge") as metrics,
        ):
            run = _MergeRun(self.output_sheet_name, self.output_base, config)
            workbook = run.execute(sources)

            try:
                content = self._serialize(workbook)
            except Exception as exc:
                logger.warning(
                    "Output serialization failed, rebuilding from values",
                    error=f"{type(exc).__name__}: {exc}",
                )
                content = self._serialize_rebuilt(run, workbook)
                run.stats.used_fallback = True

            metrics.files_processed = run.stats.files_processed
            metrics.sheets_processed = run.stats.sheets_processed
            metrics.rows_written = run.stats.rows_written

        logger.info(
            "Merge completed",
            files=run.stats.files_processed,
            sheets=run.stats.sheets_processed,
            rows=run.stats.rows_written,
            output_bytes=len(content),
        )
        return MergeResult(content=content, stats=run.stats)

    def _serialize_rebuilt(self, run: _MergeRun, workbook: Workbook) -> bytes:
        try:
            rebuilt = rebuild_from_values(workbook, run.value_sources)
            return self._serialize(rebuilt)
        except Exception as exc:
            logger.error(
                "Value-only rebuild failed",
                error=f"{type(exc).__name__}: {exc}",
            )
            raise SerializationError(f"{type(exc).__name__}: {exc}") from exc


class _MergeRun:
    """State of one merge call."""

    def __init__(
        self, output_sheet_name: str, output_base: OutputBase, config: MergeConfig
    ) -> None:
        self.output_sheet_name = output_sheet_name
        self.output_base = output_base
        self.config = config
        self.start_col = config.start_column_index
        self.end_col = config.end_column_index
        self.stats = MergeStats()
        self.cursor = _OutputCursor()
        self.signature: SignatureSection | None = None
        self.header_done = False
        # Data-only sheets used to resolve values if the output must be rebuilt.
        self.value_sources: dict[str, Worksheet] = {}
        self.output_ws: Worksheet | None = None

    def execute(self, sources: Sequence[SourceFile]) -> Workbook:
        workbook = self._create_output(sources[0])
        tracker = ProgressTracker(logger, "Merging files", total=len(sources))

        for file_index, source in enumerate(sources):
            with LogContext(source=source.filename):
                source_wb = load_source_workbook(source)
                if file_index == 0 and self.output_base is OutputBase.FIRST_INPUT:
                    self.value_sources = {
                        ws.title: ws
                        for ws in source_wb.worksheets
                        if ws.title != self.output_sheet_name
                    }
                self._merge_workbook(source_wb)
                self.stats.files_processed += 1
            tracker.update(details=source.filename)

        self._append_signature()
        tracker.complete()
        return workbook

    def _create_output(self, first_source: SourceFile) -> Workbook:
        if self.output_base is OutputBase.FIRST_INPUT:
            workbook = load_source_workbook(first_source, data_only=False)
            # Output is always served as .xlsx, even from an .xltx/.xltm input.
            workbook.template = False
            if self.output_sheet_name in workbook.sheetnames:
                del workbook[self.output_sheet_name]
            self.output_ws = workbook.create_sheet(self.output_sheet_name)
        else:
            workbook = Workbook()
            self.output_ws = workbook.active
            self.output_ws.title = self.output_sheet_name
        return workbook

    @property
    def output(self) -> Worksheet:
        assert self.output_ws is not None
        return self.output_ws

    def _merge_workbook(self, source_wb: Workbook) -> None:
        for sheet in source_wb.worksheets:
            if sheet.title == self.output_sheet_name:
                logger.debug("Skipping previous output sheet", sheet=sheet.title)
                self.stats.sheets_skipped += 1
                continue
            with LogContext(sheet=sheet.title):
                self._merge_sheet(sheet)
            self.stats.sheets_processed += 1

    def _merge_sheet(self, sheet: Worksheet) -> None:
        config = self.config
        total_row = find_total_row(sheet, self.start_col, self.end_col)
        signature_row = find_signature_row(sheet, self.start_col, self.end_col)
        last_row = sheet.max_row

        logger.debug(
            "Classified sheet",
            total_row=total_row,
            signature_row=signature_row,
            last_row=last_row,
        )

        if not self.header_done:
            copy_column_widths(sheet, self.output, self.start_col, self.end_col)
            self._copy_header(sheet)
            first_data_row = config.start_row
            self.header_done = True
        else:
            first_data_row = config.start_row + 1

        for row_number in range(first_data_row, last_row + 1):
            if row_number == total_row:
                if config.include_total:
                    self._copy_single_row(sheet, row_number)
                    self.stats.total_rows += 1
                continue

            if signature_row is not None and row_number >= signature_row:
                if config.include_signature and self.signature is None:
                    self.signature = SignatureSection(
                        worksheet=sheet,
                        first_row=signature_row,
                        last_row=last_row,
                    )
                    logger.debug(
                        "Captured signature section",
                        first_row=signature_row,
                        rows=self.signature.row_count,
                    )
                break

            if not config.include_total and is_subtotal_row(
                row_window_values(sheet, row_number, self.start_col, self.end_col)
            ):
                self.stats.subtotal_rows_skipped += 1
                continue

            self._copy_single_row(sheet, row_number)
            self.stats.data_rows += 1

    def _copy_header(self, sheet: Worksheet) -> None:
        header_rows = min(self.config.start_row - 1, sheet.max_row)
        if header_rows < 1:
            return
        self.stats.header_rows += self._copy_block(sheet, 1, header_rows)

    def _copy_single_row(self, sheet: Worksheet, row_number: int) -> None:
        target_row = self.cursor.advance()
        copy_row(
            sheet, self.output, row_number, target_row, self.start_col, self.end_col
        )
        self.stats.merged_ranges += copy_merged_ranges(
            sheet,
            self.output,
            row_number,
            row_number,
            target_row,
            self.start_col,
            self.end_col,
        )

    def _copy_block(self, sheet: Worksheet, first_row: int, last_row: int) -> int:
        """Copy rows ``first_row..last_row`` with the merges they contain."""
        row_count = last_row - first_row + 1
        target_start = self.cursor.advance(row_count)
        for offset in range(row_count):
            copy_row(
                sheet,
                self.output,
                first_row + offset,
                target_start + offset,
                self.start_col,
                self.end_col,
            )
        self.stats.merged_ranges += copy_merged_ranges(
            sheet,
            self.output,
            first_row,
            last_row,
            target_start,
            self.start_col,
            self.end_col,
        )
        return row_count

    def _append_signature(self) -> None:
        if self.signature is None:
            return
        section = self.signature
        self.stats.signature_rows += self._copy_block(
            section.worksheet, section.first_row, section.last_row
        )


def rebuild_from_values(
    workbook: Workbook, value_sources: dict[str, Worksheet] | None = None
) -> Workbook:
    """Re-create every sheet of ``workbook`` using only resolved values.

    Formula objects are dropped. When ``value_sources`` holds a data-only
    copy of a sheet with the same title, values are read from it instead so
    that carried-over input sheets keep their cached results.
    """
    value_sources = value_sources or {}
    rebuilt = Workbook()
    rebuilt.remove(rebuilt.active)

    for sheet in workbook.worksheets:
        target = rebuilt.create_sheet(sheet.title)
        values = value_sources.get(sheet.title, sheet)

        for row in sheet.iter_rows():
            for cell in row:
                target_cell = target.cell(row=cell.row, column=cell.column)
                source_cell = values.cell(row=cell.row, column=cell.column)
                value = extract_cell_value(source_cell)
                if value is not None:
                    write_value(target_cell, value)
                copy_cell_style(cell, target_cell)

        for key, dimension in sheet.column_dimensions.items():
            if dimension.width:
                target.column_dimensions[key].width = dimension.width
        for index, dimension in sheet.row_dimensions.items():
            if dimension.height is not None:
                target.row_dimensions[index].height = dimension.height
        for merged in list(sheet.merged_cells.ranges):
            target.merge_cells(merged.coord)

    return rebuilt
