"""
Turn uploaded spreadsheet bytes into a header row plus data rows.

Knows nothing about loans or contributions: it only guarantees a rectangular-ish
grid of raw cell values (str, int, float, datetime or None) and a trimmed header.
Supports .xlsx (openpyxl) and delimited text (.csv).

Usage:
  sheet = decode_table(content, "loans.xlsx")
  columns = sheet.column_index(required=("ref_no", "staff_no"))
  for row in sheet.rows:
      row.number, row.cells
"""
from __future__ import annotations

import csv
import io
import zipfile
from typing import Any, Iterable, NamedTuple, Optional, Sequence

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from services.errors import EmptySheet, MissingHeaders, UnreadableFile

ZIP_MAGIC = b"PK\x03\x04"
# Legacy .xls (OLE2 compound document)
OLE2_MAGIC = b"\xd0\xcf\x11\xe0"


class SheetRow(NamedTuple):
    number: int  # 1-based line in the sheet, header is line 1
    cells: list[Any]


class DecodedSheet:
    def __init__(self, headers: list[Optional[str]], rows: list[SheetRow], sheet_name: Optional[str] = None):
        self.headers = headers
        self.rows = rows
        self.sheet_name = sheet_name

    def column_index(self, required: Sequence[str], optional: Sequence[str] = ()) -> dict[str, int]:
        """Map header name -> column position, raising MissingHeaders if any required name is absent."""
        positions: dict[str, int] = {}
        for position, name in enumerate(self.headers):
            if name and name not in positions:
                positions[name] = position
        missing = [h for h in required if h not in positions]
        if missing:
            raise MissingHeaders(missing)
        wanted = set(required) | set(optional)
        return {name: pos for name, pos in positions.items() if name in wanted}


def decode_table(content: bytes, file_name: str = "") -> DecodedSheet:
    if not content:
        raise EmptySheet("File is empty")
    if content.startswith(OLE2_MAGIC):
        raise UnreadableFile("Legacy .xls files are not supported; save the sheet as .xlsx or .csv")
    if content.startswith(ZIP_MAGIC):
        grid, sheet_name = _read_xlsx(content)
    elif file_name.lower().endswith((".xlsx", ".xlsm")):
        raise UnreadableFile(f"{file_name} is not a valid Excel workbook")
    else:
        grid, sheet_name = _read_delimited(content), None
    return _to_sheet(grid, sheet_name)


def _read_xlsx(content: bytes) -> tuple[list[list[Any]], Optional[str]]:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as e:
        raise UnreadableFile(f"Could not read the uploaded workbook: {e}") from e
    try:
        if not workbook.worksheets:
            raise EmptySheet("Excel file is empty or has no sheets")
        # Data lives on the first sheet, as in the download templates
        sheet = workbook.worksheets[0]
        grid = [list(row) for row in sheet.iter_rows(values_only=True)]
        return grid, sheet.title
    finally:
        workbook.close()


def _read_delimited(content: bytes) -> list[list[Any]]:
    if b"\x00" in content:
        raise UnreadableFile("File is neither an .xlsx workbook nor delimited text")
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise UnreadableFile("Delimited files must be UTF-8 encoded") from e
    delimiter = _guess_delimiter(text.split("\n", 1)[0])
    try:
        return [list(row) for row in csv.reader(io.StringIO(text), delimiter=delimiter)]
    except csv.Error as e:
        raise UnreadableFile(f"Could not parse delimited file: {e}") from e


def _guess_delimiter(header_line: str) -> str:
    """Comma unless the header row is clearly split by tabs or semicolons."""
    counts = {d: header_line.count(d) for d in (",", ";", "\t")}
    best = max(counts, key=counts.get)
    return best if counts[best] else ","


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _clean_header(value: Any) -> Optional[str]:
    if _is_blank(value):
        return None
    return str(value).strip()


def _to_sheet(grid: Iterable[list[Any]], sheet_name: Optional[str]) -> DecodedSheet:
    lines = list(grid)
    header_at = next((i for i, cells in enumerate(lines) if not all(_is_blank(c) for c in cells)), None)
    if header_at is None:
        raise EmptySheet("Sheet has no header row")
    headers = [_clean_header(c) for c in lines[header_at]]
    width = len(headers)
    rows: list[SheetRow] = []
    for offset, cells in enumerate(lines[header_at + 1:], start=header_at + 2):
        if all(_is_blank(c) for c in cells):
            continue
        padded = list(cells) + [None] * (width - len(cells))
        rows.append(SheetRow(number=offset, cells=padded))
    if not rows:
        raise EmptySheet("Sheet has no data rows")
    return DecodedSheet(headers=headers, rows=rows, sheet_name=sheet_name)
