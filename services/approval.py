"""
Operator decisions on staged batches.

Approve promotes every valid staged row of a batch into the production ledger
and closes the batch; reject closes it with a reason and leaves the staged rows
for audit. Both run in one transaction and both refuse a batch that is already
Approved or Rejected.

The batch row is re-read with SELECT ... FOR UPDATE inside the transaction and
closed with an UPDATE guarded on the open statuses, so of two concurrent
decisions on one batch exactly one commits and the other gets
InvalidBatchState.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, NamedTuple, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from models import BatchStatus, MemberBalance, TransactionType, UploadBatch
from models.batch import OPEN_STATUSES
from models.staged import VALID
from services.errors import (
    BatchNotApprovable,
    BatchNotFound,
    InvalidBatchState,
    RejectionReasonRequired,
    UnknownTransactionType,
)
from services.record_kinds import RecordKind
from utils.logging import get_logger

log = get_logger(__name__)


class DecisionOutcome(NamedTuple):
    batch: UploadBatch
    records_processed: int


async def approve_batch(
    session: AsyncSession,
    kind: RecordKind,
    batch_id: Optional[str],
    approved_by: str,
) -> DecisionOutcome:
    if not batch_id:
        raise BatchNotFound(None)
    async with session.begin():
        batch = await _lock_open_batch(session, kind, batch_id, "approved")
        if not batch.is_approvable:
            raise BatchNotApprovable(batch_id, batch.invalid_records)

        result = await session.execute(
            select(kind.staged_model)
            .where(
                kind.staged_model.upload_batch_id == batch_id,
                kind.staged_model.validation_status == VALID,
            )
            .order_by(kind.staged_model.row_number)
        )
        staged_rows = result.scalars().all()
        types = await _resolve_transaction_types(
            session, (getattr(row, kind.type_field) for row in staged_rows)
        )

        approved_at = datetime.now(timezone.utc)
        deltas: dict[tuple[str, int], Decimal] = defaultdict(Decimal)
        for row in staged_rows:
            transaction_type = types[getattr(row, kind.type_field)]
            promotion = kind.promote(row, transaction_type, batch_id, approved_at)
            session.add(promotion.record)
            if promotion.balance_delta is not None:
                deltas[(row.reg_no, transaction_type.id)] += promotion.balance_delta
        await session.flush()
        await _apply_balance_deltas(session, deltas)

        await _close_batch(
            session,
            batch,
            "approved",
            status=BatchStatus.APPROVED.value,
            approved_by=approved_by,
            approved_at=approved_at,
        )

    log.info("Approved %s batch %s by %s: %d record(s) promoted", kind.label, batch_id, approved_by, len(staged_rows))
    return DecisionOutcome(batch=batch, records_processed=len(staged_rows))


async def reject_batch(
    session: AsyncSession,
    kind: RecordKind,
    batch_id: Optional[str],
    reason: Optional[str],
    rejected_by: str,
) -> DecisionOutcome:
    if not batch_id:
        raise BatchNotFound(None)
    reason = (reason or "").strip()
    if not reason:
        raise RejectionReasonRequired()
    async with session.begin():
        batch = await _lock_open_batch(session, kind, batch_id, "rejected")
        await _close_batch(
            session,
            batch,
            "rejected",
            status=BatchStatus.REJECTED.value,
            rejection_reason=reason,
            rejected_by=rejected_by,
            rejected_at=datetime.now(timezone.utc),
        )

    log.info("Rejected %s batch %s by %s: %s", kind.label, batch_id, rejected_by, reason)
    return DecisionOutcome(batch=batch, records_processed=0)


async def _lock_open_batch(session: AsyncSession, kind: RecordKind, batch_id: str, action: str) -> UploadBatch:
    result = await session.execute(
        select(UploadBatch)
        .where(UploadBatch.batch_id == batch_id, UploadBatch.upload_kind == kind.upload_kind)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    batch = result.scalar_one_or_none()
    if batch is None:
        raise BatchNotFound(batch_id)
    if batch.is_terminal:
        raise InvalidBatchState(batch_id, batch.status, action)
    return batch


async def _close_batch(session: AsyncSession, batch: UploadBatch, action: str, **values: Any) -> None:
    result = await session.execute(
        update(UploadBatch)
        .where(UploadBatch.batch_id == batch.batch_id, UploadBatch.status.in_(OPEN_STATUSES))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Another request closed the batch after our read
        current = await session.scalar(select(UploadBatch.status).where(UploadBatch.batch_id == batch.batch_id))
        raise InvalidBatchState(batch.batch_id, current or "unknown", action)
    for key, value in values.items():
        set_committed_value(batch, key, value)


async def _resolve_transaction_types(session: AsyncSession, names: Iterable[str]) -> dict[str, TransactionType]:
    wanted = set(names)
    if not wanted:
        return {}
    result = await session.execute(select(TransactionType).where(TransactionType.type_name.in_(wanted)))
    found = {t.type_name: t for t in result.scalars().all()}
    missing = sorted(wanted - found.keys())
    if missing:
        raise UnknownTransactionType(missing)
    return found


async def _apply_balance_deltas(session: AsyncSession, deltas: dict[tuple[str, int], Decimal]) -> None:
    for (reg_no, type_id), delta in deltas.items():
        balance = await session.get(MemberBalance, (reg_no, type_id), with_for_update=True)
        if balance is None:
            session.add(MemberBalance(reg_no=reg_no, transaction_type_id=type_id, current_balance=delta))
        else:
            balance.current_balance = Decimal(str(balance.current_balance or 0)) + delta
    await session.flush()
