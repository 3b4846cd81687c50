"""Workbook inspection: sheet listing and row previews before upload."""

import io
import logging
import zipfile
from dataclasses import dataclass, field
from typing import Any

from openpyxl import load_workbook

from ledgerimport.errors import SheetError
from ledgerimport.models import SpreadsheetFile

logger = logging.getLogger(__name__)

VALID_EXTENSIONS = {"xlsx", "xlsm"}

DEFAULT_PREVIEW_ROWS = 10


@dataclass(frozen=True)
class SheetInfo:
    """Name and used-range size of one worksheet."""

    sheet_name: str
    row_count: int
    column_count: int


@dataclass(frozen=True)
class WorkbookAnalysis:
    """Sheets found in an uploaded workbook."""

    file_name: str
    sheets: list[SheetInfo] = field(default_factory=list)

    @property
    def sheet_names(self) -> list[str]:
        return [sheet.sheet_name for sheet in self.sheets]

    @property
    def single_sheet(self) -> str | None:
        """Name of the only sheet, or None when there is a choice to make."""
        if len(self.sheets) == 1:
            return self.sheets[0].sheet_name
        return None


@dataclass(frozen=True)
class SheetPreview:
    """Header row and the first data rows of a worksheet."""

    sheet_name: str
    headers: list[str]
    rows: list[list[Any]]
    total_rows: int


def is_valid_workbook(source: SpreadsheetFile) -> bool:
    """Check the file extension against the workbook types openpyxl reads."""
    return source.extension in VALID_EXTENSIONS


def _open(source: SpreadsheetFile):
    if not is_valid_workbook(source):
        raise SheetError(
            f"Unsupported file type '.{source.extension}'. Allowed: "
            + ", ".join(sorted(VALID_EXTENSIONS))
        )
    try:
        return load_workbook(filename=io.BytesIO(source.content), read_only=True, data_only=True)
    except (zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
        raise SheetError(f"Failed to read Excel file {source.filename}: {e}") from e


def _dimensions(ws) -> tuple[int, int]:
    """Row and column count of a worksheet's used range.

    Read-only worksheets only know their size when the file records it,
    otherwise the rows are counted.
    """
    if ws.max_row is not None and ws.max_column is not None:
        return ws.max_row, ws.max_column

    rows = 0
    columns = 0
    for row in ws.iter_rows(values_only=True):
        rows += 1
        columns = max(columns, len(row))
    return rows, columns


def analyze_workbook(source: SpreadsheetFile) -> WorkbookAnalysis:
    """List the sheets of a workbook with their sizes.

    Raises:
        SheetError: If the file is not a readable workbook.
    """
    wb = _open(source)
    try:
        sheets = []
        for ws in wb.worksheets:
            rows, columns = _dimensions(ws)
            sheets.append(SheetInfo(sheet_name=ws.title, row_count=rows, column_count=columns))
    finally:
        wb.close()

    logger.debug("Analyzed %s: %d sheet(s)", source.filename, len(sheets))
    return WorkbookAnalysis(file_name=source.filename, sheets=sheets)


def preview_sheet(
    source: SpreadsheetFile,
    sheet_name: str,
    max_rows: int = DEFAULT_PREVIEW_ROWS,
) -> SheetPreview:
    """Read the header row and up to ``max_rows`` data rows of a sheet.

    Blank header cells are named "Column N" and every row is padded to the
    header width so columns line up.

    Raises:
        SheetError: If the workbook cannot be read or the sheet is missing.
    """
    wb = _open(source)
    try:
        if sheet_name not in wb.sheetnames:
            raise SheetError(f'Sheet "{sheet_name}" not found')

        ws = wb[sheet_name]
        total_rows, total_columns = _dimensions(ws)
        row_iter = ws.iter_rows(values_only=True)

        raw_headers = next(row_iter, ())
        width = max(total_columns, len(raw_headers))
        headers = []
        for i in range(width):
            value = raw_headers[i] if i < len(raw_headers) else None
            text = str(value).strip() if value is not None else ""
            headers.append(text or f"Column {i + 1}")

        rows: list[list[Any]] = []
        for row_values in row_iter:
            if len(rows) >= max_rows:
                break
            rows.append(
                [
                    row_values[i] if i < len(row_values) and row_values[i] is not None else ""
                    for i in range(width)
                ]
            )
    finally:
        wb.close()

    return SheetPreview(sheet_name=sheet_name, headers=headers, rows=rows, total_rows=total_rows)
