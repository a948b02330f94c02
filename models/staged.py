from sqlalchemy import Column, Date, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import declared_attr

from database import Base

VALID = "Valid"
INVALID = "Invalid"


class StagedRecordMixin:
    """Columns every staged table shares: owning batch, file position and validation outcome."""

    id = Column(Integer, primary_key=True, autoincrement=True)
    row_number = Column(Integer, nullable=False)
    validation_status = Column(String(16), nullable=False, index=True)
    validation_errors = Column(Text, nullable=True)

    @declared_attr
    def upload_batch_id(cls):
        return Column(
            String(64),
            ForeignKey("upload_batches.batch_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )


class StagedLoan(StagedRecordMixin, Base):
    __tablename__ = "temp_loans"

    ref_no = Column(String(64), nullable=True)
    staff_no = Column(String(64), nullable=True)
    reg_no = Column(String(64), nullable=True)
    loan_type = Column(String(128), nullable=True)
    amount_requested = Column(Numeric(15, 2), nullable=True)
    monthly_repayment = Column(Numeric(15, 2), nullable=True)
    repayment_period = Column(Integer, nullable=True)
    interest_rate = Column(Numeric(7, 2), nullable=True)
    purpose = Column(String(255), nullable=True)
    date_applied = Column(Date, nullable=True)


class StagedContribution(StagedRecordMixin, Base):
    __tablename__ = "temp_contributions"

    reg_no = Column(String(64), nullable=True)
    staff_no = Column(String(64), nullable=True)
    contribution_type = Column(String(128), nullable=True)
    contribution_date = Column(Date, nullable=True)
    amount = Column(Numeric(15, 2), nullable=True)


class StagedTransaction(StagedRecordMixin, Base):
    __tablename__ = "temp_transactions"

    reg_no = Column(String(64), nullable=True)
    staff_no = Column(String(64), nullable=True)
    transaction_type_name = Column(String(128), nullable=True)
    transaction_date = Column(Date, nullable=True)
    transaction_mode = Column(String(64), nullable=True)
    amount = Column(Numeric(15, 2), nullable=True)
    description = Column(String(255), nullable=True)
