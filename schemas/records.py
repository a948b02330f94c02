from __future__ import annotations

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, Field


class CandidateRecord(BaseModel):
    """A spreadsheet row after type coercion, before validation.

    ``source`` keeps the raw cell values keyed by header so the validator can
    tell an empty cell from one that failed to coerce.
    """

    row_number: int
    source: dict[str, Any] = Field(default_factory=dict)


class LoanCandidate(CandidateRecord):
    ref_no: Optional[str] = None
    staff_no: Optional[str] = None
    reg_no: Optional[str] = None
    loan_type: Optional[str] = None
    amount_requested: Optional[float] = None
    monthly_repayment: Optional[float] = None
    repayment_period: Optional[float] = None
    interest_rate: Optional[float] = None
    purpose: Optional[str] = None
    date_applied: Optional[date] = None


class ContributionCandidate(CandidateRecord):
    reg_no: Optional[str] = None
    staff_no: Optional[str] = None
    contribution_type: Optional[str] = None
    contribution_date: Optional[date] = None
    amount: Optional[float] = None


class TransactionCandidate(CandidateRecord):
    reg_no: Optional[str] = None
    staff_no: Optional[str] = None
    transaction_type_name: Optional[str] = None
    transaction_date: Optional[date] = None
    transaction_mode: Optional[str] = None
    amount: Optional[float] = None
    description: Optional[str] = None


class ValidationOutcome(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)

    @property
    def joined_errors(self) -> Optional[str]:
        """Storage form of the defect list: None when valid, else semicolon-joined."""
        return "; ".join(self.errors) if self.errors else None
