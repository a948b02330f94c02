"""
Record-kind descriptors: one generic decode -> normalize -> validate -> stage ->
promote pipeline, parameterized per kind of upload (loan, contribution,
transaction).

A kind declares its headers, how cells map to candidate fields, its rule set,
its staging table and how a valid staged row becomes a production ledger row.
"""
from __future__ import annotations

import abc
from datetime import datetime
from decimal import Decimal
from typing import Any, NamedTuple, Optional

from database import Base
from ingestion.decoder import SheetRow
from ingestion.normalizer import DATE, NUMBER, TEXT, normalize_row
from models import (
    Contribution,
    Loan,
    StagedContribution,
    StagedLoan,
    StagedTransaction,
    Transaction,
    TransactionType,
)
from models.staged import INVALID, VALID
from schemas.records import (
    CandidateRecord,
    ContributionCandidate,
    LoanCandidate,
    TransactionCandidate,
    ValidationOutcome,
)
from services.validation import (
    CONTRIBUTION_RULES,
    LOAN_RULES,
    TRANSACTION_RULES,
    Rule,
    fits_column,
    storage_rules,
    validate_record,
)
from utils.logging import get_logger

log = get_logger(__name__)


class Promotion(NamedTuple):
    record: Base
    # Signed change to the member's balance for the row's type, None if untouched
    balance_delta: Optional[Decimal] = None


class RecordKind(abc.ABC):
    name: str  # URL segment, e.g. "loans"
    label: str  # singular, used in file names and messages
    upload_kind: str  # value stored on UploadBatch.upload_kind
    required_headers: tuple[str, ...]
    optional_headers: tuple[str, ...] = ()
    field_types: dict[str, str]
    candidate_model: type[CandidateRecord]
    staged_model: type[Base]
    rules: tuple[Rule, ...]
    # Staged attribute holding the transaction type name resolved at approval
    type_field: str
    template_rows: tuple[tuple[Any, ...], ...] = ()

    def __init__(self) -> None:
        self.storage_rules = storage_rules(self.staged_model.__table__.columns, self.field_types)

    @property
    def headers(self) -> tuple[str, ...]:
        return self.required_headers + self.optional_headers

    def normalize(self, row: SheetRow, columns: dict[str, int]) -> CandidateRecord:
        return normalize_row(row, columns, self.candidate_model, self.field_types)

    def validate(self, candidate: CandidateRecord) -> ValidationOutcome:
        return validate_record(candidate, self.rules + self.storage_rules)

    def to_staged(self, candidate: CandidateRecord, outcome: ValidationOutcome, batch_id: str) -> Base:
        columns = self.staged_model.__table__.columns
        values = {}
        for field in self.field_types:
            value = getattr(candidate, field)
            # Already reported by a storage rule; the row is Invalid and the raw cell is not kept
            values[field] = value if fits_column(columns[field], value) else None
        return self.staged_model(
            upload_batch_id=batch_id,
            row_number=candidate.row_number,
            validation_status=VALID if outcome.is_valid else INVALID,
            validation_errors=outcome.joined_errors,
            **self._staged_values(values),
        )

    def _staged_values(self, values: dict[str, Any]) -> dict[str, Any]:
        return values

    @abc.abstractmethod
    def promote(
        self,
        staged: Any,
        transaction_type: TransactionType,
        batch_id: str,
        approved_at: datetime,
    ) -> Promotion:  # pragma: no cover - interface only
        """Build the production ledger row for one valid staged row."""
        raise NotImplementedError


class LoanKind(RecordKind):
    name = "loans"
    label = "loan"
    upload_kind = "Loan"
    required_headers = (
        "ref_no",
        "staff_no",
        "reg_no",
        "loan_type",
        "amount_requested",
        "monthly_repayment",
        "repayment_period",
        "interest_rate",
        "purpose",
        "date_applied",
    )
    field_types = {
        "ref_no": TEXT,
        "staff_no": TEXT,
        "reg_no": TEXT,
        "loan_type": TEXT,
        "amount_requested": NUMBER,
        "monthly_repayment": NUMBER,
        "repayment_period": NUMBER,
        "interest_rate": NUMBER,
        "purpose": TEXT,
        "date_applied": DATE,
    }
    candidate_model = LoanCandidate
    staged_model = StagedLoan
    rules = LOAN_RULES
    type_field = "loan_type"
    template_rows = (
        ("LN001", "M001", "REG001", "Personal Loan", 500000.00, 45833.33, 12, 12.5, "Home improvement", "2025-01-15"),
        ("LN002", "M002", "REG002", "Emergency Loan", 200000.00, 34666.67, 6, 10.0, "Medical emergency", "2025-01-15"),
        ("LN003", "M003", "REG003", "Business Loan", 1000000.00, 48000.00, 24, 15.0, "Small business expansion", "2025-01-15"),
    )

    def _staged_values(self, values: dict[str, Any]) -> dict[str, Any]:
        period = values.get("repayment_period")
        values["repayment_period"] = int(period) if period is not None and float(period).is_integer() else None
        return values

    def promote(self, staged, transaction_type, batch_id, approved_at):
        loan = Loan(
            ref_no=staged.ref_no or f"{batch_id}-{staged.id}",
            staff_no=staged.staff_no,
            reg_no=staged.reg_no,
            transaction_type_id=transaction_type.id,
            amount_requested=staged.amount_requested,
            monthly_repayment=staged.monthly_repayment,
            repayment_period=staged.repayment_period,
            interest_rate=staged.interest_rate,
            purpose=staged.purpose,
            status="Approved",
            date_applied=staged.date_applied,
            date_approved=approved_at,
            remaining_balance=staged.amount_requested,
            upload_batch_id=batch_id,
        )
        return Promotion(record=loan)


class ContributionKind(RecordKind):
    name = "contributions"
    label = "contribution"
    upload_kind = "Contribution"
    required_headers = ("reg_no", "staff_no", "contribution_type", "contribution_date", "amount")
    field_types = {
        "reg_no": TEXT,
        "staff_no": TEXT,
        "contribution_type": TEXT,
        "contribution_date": DATE,
        "amount": NUMBER,
    }
    candidate_model = ContributionCandidate
    staged_model = StagedContribution
    rules = CONTRIBUTION_RULES
    type_field = "contribution_type"
    template_rows = (
        ("REG001", "M001", "Savings", "2025-01-31", 25000.00),
        ("REG002", "M002", "Share Capital", "2025-01-31", 10000.00),
    )

    def promote(self, staged, transaction_type, batch_id, approved_at):
        contribution = Contribution(
            reg_no=staged.reg_no,
            staff_no=staged.staff_no,
            transaction_type_id=transaction_type.id,
            contribution_date=staged.contribution_date,
            amount=staged.amount,
            upload_batch_id=batch_id,
        )
        return Promotion(record=contribution, balance_delta=Decimal(str(staged.amount)))


class TransactionKind(RecordKind):
    name = "transactions"
    label = "transaction"
    upload_kind = "Transaction"
    required_headers = (
        "reg_no",
        "staff_no",
        "transaction_type_name",
        "transaction_date",
        "transaction_mode",
        "amount",
    )
    optional_headers = ("description",)
    field_types = {
        "reg_no": TEXT,
        "staff_no": TEXT,
        "transaction_type_name": TEXT,
        "transaction_date": DATE,
        "transaction_mode": TEXT,
        "amount": NUMBER,
        "description": TEXT,
    }
    candidate_model = TransactionCandidate
    staged_model = StagedTransaction
    rules = TRANSACTION_RULES
    type_field = "transaction_type_name"
    template_rows = (
        ("REG001", "M001", "Savings", "2025-02-03", "Bank Transfer", 15000.00, "February savings"),
        ("REG002", "M002", "Withdrawal", "2025-02-04", "Cash", 5000.00, ""),
    )

    def promote(self, staged, transaction_type, batch_id, approved_at):
        transaction = Transaction(
            reg_no=staged.reg_no,
            staff_no=staged.staff_no,
            transaction_type_id=transaction_type.id,
            transaction_date=staged.transaction_date,
            transaction_mode=staged.transaction_mode,
            amount=staged.amount,
            description=staged.description or f"Batch Upload - {staged.transaction_type_name}",
            status="Completed",
            reference_no=batch_id,
        )
        amount = Decimal(str(staged.amount))
        if transaction_type.is_credit:
            delta = amount
        elif transaction_type.is_debit:
            delta = -amount
        else:
            log.warning(
                "Transaction type %s is neither credit nor debit; balance for %s not updated",
                transaction_type.type_name,
                staged.reg_no,
            )
            delta = None
        return Promotion(record=transaction, balance_delta=delta)


RECORD_KINDS: dict[str, RecordKind] = {
    kind.name: kind for kind in (LoanKind(), ContributionKind(), TransactionKind())
}


def get_record_kind(name: str) -> Optional[RecordKind]:
    return RECORD_KINDS.get(name)
