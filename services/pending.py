from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import UploadBatch
from models.batch import REVIEWABLE_STATUSES
from services.errors import BatchNotFound
from services.record_kinds import RecordKind


async def list_pending_records(session: AsyncSession, kind: RecordKind) -> list[tuple[Any, UploadBatch]]:
    """
    Staged rows of every batch of this kind still awaiting a decision, newest
    batch first and in file order within a batch. Read-only; nothing is re-validated.
    """
    staged = kind.staged_model
    result = await session.execute(
        select(staged, UploadBatch)
        .join(UploadBatch, UploadBatch.batch_id == staged.upload_batch_id)
        .where(
            UploadBatch.upload_kind == kind.upload_kind,
            UploadBatch.status.in_(REVIEWABLE_STATUSES),
        )
        .order_by(UploadBatch.uploaded_at.desc(), UploadBatch.batch_id, staged.row_number)
    )
    return [(row, batch) for row, batch in result.all()]


async def get_batch(session: AsyncSession, batch_id: str) -> UploadBatch:
    result = await session.execute(select(UploadBatch).where(UploadBatch.batch_id == batch_id))
    batch = result.scalar_one_or_none()
    if batch is None:
        raise BatchNotFound(batch_id)
    return batch
