from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from ingestion.decoder import decode_table
from models import BatchStatus, UploadBatch
from models.batch import derive_status
from schemas.records import CandidateRecord, ValidationOutcome
from services.record_kinds import RecordKind
from utils.logging import get_logger

log = get_logger(__name__)

PreparedRow = tuple[CandidateRecord, ValidationOutcome]


def prepare_rows(kind: RecordKind, content: bytes, file_name: str) -> list[PreparedRow]:
    """
    Decode, normalize and validate an upload without touching the database.
    Raises UnreadableFile / EmptySheet / MissingHeaders before any row is looked at.
    """
    sheet = decode_table(content, file_name)
    columns = sheet.column_index(kind.required_headers, kind.optional_headers)
    prepared: list[PreparedRow] = []
    for row in sheet.rows:
        candidate = kind.normalize(row, columns)
        prepared.append((candidate, kind.validate(candidate)))
    return prepared


async def stage_upload(
    session: AsyncSession,
    kind: RecordKind,
    content: bytes,
    file_name: str,
    uploaded_by: Optional[str] = None,
) -> UploadBatch:
    prepared = prepare_rows(kind, content, file_name)
    return await stage_batch(session, kind, file_name, prepared, uploaded_by)


async def stage_batch(
    session: AsyncSession,
    kind: RecordKind,
    file_name: str,
    prepared: Sequence[PreparedRow],
    uploaded_by: Optional[str] = None,
) -> UploadBatch:
    """
    Persist a batch and all of its rows, valid and invalid, as one transaction.
    Any failure rolls everything back: no batch row and no staged rows survive.
    """
    batch_id = str(uuid.uuid4())
    async with session.begin():
        batch = UploadBatch(
            batch_id=batch_id,
            file_name=file_name,
            upload_kind=kind.upload_kind,
            uploaded_by=uploaded_by,
            uploaded_at=datetime.now(timezone.utc),
            total_records=0,
            valid_records=0,
            invalid_records=0,
            status=BatchStatus.PENDING.value,
        )
        session.add(batch)
        await session.flush()

        session.add_all([kind.to_staged(candidate, outcome, batch_id) for candidate, outcome in prepared])
        await session.flush()

        valid = sum(1 for _, outcome in prepared if outcome.is_valid)
        await _finalize_counts(session, batch, total=len(prepared), valid=valid)

    log.info(
        "Staged %s batch %s from %s: %d total, %d valid, %d invalid (%s)",
        kind.label,
        batch.batch_id,
        file_name,
        batch.total_records,
        batch.valid_records,
        batch.invalid_records,
        batch.status,
    )
    return batch


async def _finalize_counts(session: AsyncSession, batch: UploadBatch, total: int, valid: int) -> None:
    invalid = total - valid
    batch.total_records = total
    batch.valid_records = valid
    batch.invalid_records = invalid
    batch.status = derive_status(invalid)
    await session.flush()
