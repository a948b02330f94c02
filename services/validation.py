"""
Row-level validation of candidate records.

Each rule is an independent check returning a message or None; every rule runs
for every row so the operator sees all defects of a row at once. Pure functions
only: the same candidate always yields the same outcome.
"""
from __future__ import annotations

from typing import Any, Callable, Iterable, Optional, Sequence

from sqlalchemy import Column, Integer, Numeric, String

from ingestion.normalizer import is_blank
from schemas.records import CandidateRecord, ValidationOutcome

Rule = Callable[[CandidateRecord], Optional[str]]


def required(field: str) -> Rule:
    def check(record: CandidateRecord) -> Optional[str]:
        if getattr(record, field) is None:
            return f"Missing {field}"
        return None

    return check


def required_number(field: str) -> Rule:
    def check(record: CandidateRecord) -> Optional[str]:
        if getattr(record, field) is None:
            return f"Invalid or missing {field}"
        return None

    return check


def optional_number(field: str) -> Rule:
    def check(record: CandidateRecord) -> Optional[str]:
        if not is_blank(record.source.get(field)) and getattr(record, field) is None:
            return f"Invalid {field}"
        return None

    return check


def optional_integer(field: str) -> Rule:
    def check(record: CandidateRecord) -> Optional[str]:
        if is_blank(record.source.get(field)):
            return None
        value = getattr(record, field)
        if value is None or not float(value).is_integer():
            return f"Invalid {field}"
        return None

    return check


def non_negative(field: str) -> Rule:
    def check(record: CandidateRecord) -> Optional[str]:
        value = getattr(record, field)
        if value is not None and value < 0:
            return f"{field} must not be negative"
        return None

    return check


def optional_date(field: str) -> Rule:
    def check(record: CandidateRecord) -> Optional[str]:
        if not is_blank(record.source.get(field)) and getattr(record, field) is None:
            return f"Invalid {field} format"
        return None

    return check


def required_date(field: str) -> Rule:
    def check(record: CandidateRecord) -> Optional[str]:
        if getattr(record, field) is None:
            return f"Invalid or missing {field} format"
        return None

    return check


# Largest value a 32-bit INTEGER column holds on every supported backend
MAX_INTEGER = 2**31 - 1


def fits_column(column: Column, value: Any) -> bool:
    """Whether the staging column can store the coerced value as-is."""
    if value is None:
        return True
    column_type = column.type
    if isinstance(column_type, String) and column_type.length:
        return len(str(value)) <= column_type.length
    if isinstance(column_type, Integer):
        return abs(value) <= MAX_INTEGER
    if isinstance(column_type, Numeric) and column_type.precision is not None:
        scale = column_type.scale or 0
        return round(abs(value), scale) < 10 ** (column_type.precision - scale)
    return True


def storable(field: str, column: Column) -> Rule:
    def check(record: CandidateRecord) -> Optional[str]:
        if fits_column(column, getattr(record, field)):
            return None
        if isinstance(column.type, String):
            return f"{field} exceeds {column.type.length} characters"
        return f"{field} is out of range"

    return check


def storage_rules(table_columns: Any, fields: Iterable[str]) -> tuple[Rule, ...]:
    """One size/range rule per field, read off the staging table's column types."""
    return tuple(storable(field, table_columns[field]) for field in fields if field in table_columns)


LOAN_RULES: tuple[Rule, ...] = (
    required("staff_no"),
    required("reg_no"),
    required("loan_type"),
    required_number("amount_requested"),
    non_negative("amount_requested"),
    optional_number("monthly_repayment"),
    optional_integer("repayment_period"),
    optional_number("interest_rate"),
    optional_date("date_applied"),
)

CONTRIBUTION_RULES: tuple[Rule, ...] = (
    required("reg_no"),
    required("staff_no"),
    required("contribution_type"),
    required_number("amount"),
    # Unlike loans, a contribution cannot be posted without its date
    required_date("contribution_date"),
)

TRANSACTION_RULES: tuple[Rule, ...] = (
    required("reg_no"),
    required("staff_no"),
    required("transaction_type_name"),
    required("transaction_mode"),
    required_number("amount"),
    required_date("transaction_date"),
)


def validate_record(record: CandidateRecord, rules: Sequence[Rule]) -> ValidationOutcome:
    errors = [message for message in (rule(record) for rule in rules) if message]
    return ValidationOutcome(is_valid=not errors, errors=errors)
