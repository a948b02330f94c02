"""
Coerce raw cell values into typed candidate-record fields.

Never rejects anything: a value that cannot be coerced becomes None and the
validator decides whether that matters (it still sees the raw cell in
``CandidateRecord.source``).
"""
from __future__ import annotations

import math
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional

from dateutil import parser as date_parser
from openpyxl.utils.datetime import from_excel

from ingestion.decoder import SheetRow
from schemas.records import CandidateRecord

TEXT = "text"
NUMBER = "number"
DATE = "date"

# Two unrelated fallbacks: a date string that leaves any part out parses differently under each
_DATE_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 2, 2))
_SERIAL_TEXT = re.compile(r"^\d+(\.\d+)?$")


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def coerce_text(value: Any) -> Optional[str]:
    if is_blank(value):
        return None
    # Staff and registration numbers typed into Excel come back as floats
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.date().isoformat()
    return str(value).strip()


def coerce_number(value: Any) -> Optional[float]:
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace(",", ""))
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def date_from_serial(serial: float) -> Optional[date]:
    """Spreadsheet day serial (1900 system, fractional part = time of day) -> calendar date."""
    if serial < 1:
        return None
    try:
        converted = from_excel(serial)
    except (OverflowError, ValueError):
        return None
    if isinstance(converted, datetime):
        return converted.date()
    return None


def coerce_date(value: Any) -> Optional[date]:
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return date_from_serial(float(value))
    if isinstance(value, str):
        return _date_from_text(value.strip())
    return None


def _date_from_text(text: str) -> Optional[date]:
    # CSV files carry spreadsheet serials as plain digits; 20250115 is too large for one
    if _SERIAL_TEXT.match(text):
        serial_date = date_from_serial(float(text))
        if serial_date is not None:
            return serial_date
    try:
        parsed = {date_parser.parse(text, default=default).date() for default in _DATE_DEFAULTS}
    except (ValueError, OverflowError):
        return None
    # Year, month and day must all come from the cell
    if len(parsed) != 1:
        return None
    return parsed.pop()


COERCERS: dict[str, Callable[[Any], Any]] = {
    TEXT: coerce_text,
    NUMBER: coerce_number,
    DATE: coerce_date,
}


def normalize_row(
    row: SheetRow,
    columns: dict[str, int],
    candidate_model: type[CandidateRecord],
    field_types: dict[str, str],
) -> CandidateRecord:
    source = {name: row.cells[pos] if pos < len(row.cells) else None for name, pos in columns.items()}
    values = {field: COERCERS[kind](source.get(field)) for field, kind in field_types.items()}
    return candidate_model(row_number=row.number, source=source, **values)
