import enum

from sqlalchemy import Column, DateTime, Integer, String, Text, func

from database import Base


class BatchStatus(str, enum.Enum):
    PENDING = "Pending"
    PENDING_VALIDATION = "PendingValidation"
    VALIDATED = "Validated"
    APPROVED = "Approved"
    REJECTED = "Rejected"


OPEN_STATUSES = (
    BatchStatus.PENDING.value,
    BatchStatus.PENDING_VALIDATION.value,
    BatchStatus.VALIDATED.value,
)
TERMINAL_STATUSES = (BatchStatus.APPROVED.value, BatchStatus.REJECTED.value)

# Statuses shown to operators for review; Pending never outlives the staging transaction
REVIEWABLE_STATUSES = (BatchStatus.VALIDATED.value, BatchStatus.PENDING_VALIDATION.value)


def derive_status(invalid_records: int) -> str:
    """Status a freshly staged batch settles in, from its invalid row count."""
    if invalid_records == 0:
        return BatchStatus.VALIDATED.value
    return BatchStatus.PENDING_VALIDATION.value


class UploadBatch(Base):
    __tablename__ = "upload_batches"

    batch_id = Column(String(64), primary_key=True, index=True)
    file_name = Column(String(512), nullable=False)
    upload_kind = Column(String(32), nullable=False, index=True)
    uploaded_by = Column(String(128), nullable=True)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    total_records = Column(Integer, nullable=False, default=0)
    valid_records = Column(Integer, nullable=False, default=0)
    invalid_records = Column(Integer, nullable=False, default=0)
    status = Column(String(32), nullable=False, default=BatchStatus.PENDING.value, index=True)

    approved_by = Column(String(128), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(String(128), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_approvable(self) -> bool:
        """Single gate shared by the approval engine and the pending-batch view."""
        return not self.is_terminal and (self.invalid_records or 0) == 0
