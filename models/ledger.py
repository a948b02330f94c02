from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    func,
)

from database import Base


class TransactionType(Base):
    __tablename__ = "transaction_types"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type_name = Column(String(128), unique=True, nullable=False, index=True)
    is_credit = Column(Boolean, nullable=False, default=False)
    is_debit = Column(Boolean, nullable=False, default=False)


class Loan(Base):
    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ref_no = Column(String(128), unique=True, nullable=False, index=True)
    staff_no = Column(String(64), nullable=False, index=True)
    reg_no = Column(String(64), nullable=False, index=True)
    transaction_type_id = Column(Integer, ForeignKey("transaction_types.id"), nullable=False)
    amount_requested = Column(Numeric(15, 2), nullable=False)
    monthly_repayment = Column(Numeric(15, 2), nullable=True)
    repayment_period = Column(Integer, nullable=True)
    interest_rate = Column(Numeric(7, 2), nullable=True)
    purpose = Column(String(255), nullable=True)
    status = Column(String(32), nullable=False, default="Approved")
    date_applied = Column(Date, nullable=True)
    date_approved = Column(DateTime(timezone=True), nullable=True)
    remaining_balance = Column(Numeric(15, 2), nullable=False)
    upload_batch_id = Column(String(64), ForeignKey("upload_batches.batch_id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Contribution(Base):
    __tablename__ = "contributions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reg_no = Column(String(64), nullable=False, index=True)
    staff_no = Column(String(64), nullable=False)
    transaction_type_id = Column(Integer, ForeignKey("transaction_types.id"), nullable=False)
    contribution_date = Column(Date, nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    upload_batch_id = Column(String(64), ForeignKey("upload_batches.batch_id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reg_no = Column(String(64), nullable=False, index=True)
    staff_no = Column(String(64), nullable=False)
    transaction_type_id = Column(Integer, ForeignKey("transaction_types.id"), nullable=False)
    transaction_date = Column(Date, nullable=False)
    transaction_mode = Column(String(64), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    description = Column(String(255), nullable=True)
    status = Column(String(32), nullable=False, default="Completed")
    # Batch id the posting came from
    reference_no = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class MemberBalance(Base):
    __tablename__ = "member_balances"

    reg_no = Column(String(64), primary_key=True)
    transaction_type_id = Column(Integer, ForeignKey("transaction_types.id"), primary_key=True)
    current_balance = Column(Numeric(15, 2), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
