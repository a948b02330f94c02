"""
Response shaping: ORM rows to camelCase JSON-ready dicts.
Key conversion uses Pydantic's alias_generators so responses match the request schemas.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable

from pydantic.alias_generators import to_camel


def to_camel_key(s: str) -> str:
    """Convert a single snake_case key to camelCase (first letter lower)."""
    return to_camel(s)


def jsonable(value: Any) -> Any:
    """Decimals become floats, dates ISO strings; everything else passes through."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def columns_to_camel(obj: Any, exclude: Iterable[str] = ()) -> dict[str, Any]:
    """Serialize every mapped column of an ORM object with camelCase keys."""
    skipped = set(exclude)
    return {
        to_camel_key(column.key): jsonable(getattr(obj, column.key))
        for column in obj.__table__.columns
        if column.key not in skipped
    }
