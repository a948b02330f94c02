from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Header, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from models import UploadBatch
from schemas.batch import BatchDecision, BatchRejection, DecisionResult, UploadSummary
from services.approval import approve_batch, reject_batch
from services.errors import NoFileProvided, UploadTooLarge
from services.pending import get_batch, list_pending_records
from services.record_kinds import RECORD_KINDS, RecordKind
from services.staging import stage_upload
from utils.serialization import columns_to_camel, jsonable


async def get_operator(x_operator_id: Optional[str] = Header(None)) -> str:
    """Operator identity forwarded by the auth gateway; authentication itself happens upstream."""
    return (x_operator_id or "").strip() or settings.default_operator


def _batch_to_response(batch: UploadBatch) -> dict[str, Any]:
    out = columns_to_camel(batch)
    out["approvable"] = batch.is_approvable
    return out


def _staged_to_response(row: Any, batch: UploadBatch) -> dict[str, Any]:
    out = columns_to_camel(row, exclude=("upload_batch_id",))
    out["batchId"] = row.upload_batch_id
    out["batchStatus"] = batch.status
    out["fileName"] = batch.file_name
    out["uploadedAt"] = jsonable(batch.uploaded_at)
    out["approvable"] = batch.is_approvable
    return out


def _upload_summary(batch: UploadBatch) -> dict[str, Any]:
    summary = UploadSummary(
        batch_id=batch.batch_id,
        message=(
            f"File processed successfully. Batch ID: {batch.batch_id}. "
            f"Records: {batch.total_records} total, {batch.valid_records} valid, "
            f"{batch.invalid_records} invalid. Status: {batch.status}"
        ),
        total=batch.total_records,
        valid=batch.valid_records,
        invalid=batch.invalid_records,
        status=batch.status,
    )
    return summary.model_dump(by_alias=True)


def build_batch_router(kind: RecordKind) -> APIRouter:
    """Upload, pending-review and decision endpoints for one record kind."""
    router = APIRouter(prefix=f"/api/{kind.name}", tags=[kind.name])

    @router.post("/upload", status_code=201)
    async def upload_batch(
        file: Optional[UploadFile] = File(None),
        db: AsyncSession = Depends(get_db),
        operator: str = Depends(get_operator),
    ):
        if file is None or not file.filename:
            raise NoFileProvided()
        content = await file.read(settings.max_upload_bytes + 1)
        if len(content) > settings.max_upload_bytes:
            raise UploadTooLarge(settings.max_upload_bytes)
        batch = await stage_upload(db, kind, content, file.filename, uploaded_by=operator)
        return _upload_summary(batch)

    @router.get("/pending")
    async def list_pending(db: AsyncSession = Depends(get_db)):
        rows = await list_pending_records(db, kind)
        return [_staged_to_response(row, batch) for row, batch in rows]

    @router.post("/batches/approve")
    async def approve(
        body: Optional[BatchDecision] = None,
        db: AsyncSession = Depends(get_db),
        operator: str = Depends(get_operator),
    ):
        outcome = await approve_batch(db, kind, body.batch_id if body else None, approved_by=operator)
        return DecisionResult(
            batch_id=outcome.batch.batch_id,
            status=outcome.batch.status,
            message=(
                f"Batch {outcome.batch.batch_id} approved successfully. "
                f"{outcome.records_processed} {kind.name} processed."
            ),
            records_processed=outcome.records_processed,
        ).model_dump(by_alias=True)

    @router.post("/batches/reject")
    async def reject(
        body: Optional[BatchRejection] = None,
        db: AsyncSession = Depends(get_db),
        operator: str = Depends(get_operator),
    ):
        outcome = await reject_batch(
            db,
            kind,
            body.batch_id if body else None,
            body.rejection_reason if body else None,
            rejected_by=operator,
        )
        return DecisionResult(
            batch_id=outcome.batch.batch_id,
            status=outcome.batch.status,
            message=f"Batch {outcome.batch.batch_id} rejected successfully.",
        ).model_dump(by_alias=True)

    return router


kind_routers = [build_batch_router(kind) for kind in RECORD_KINDS.values()]

router = APIRouter(prefix="/api/batches", tags=["batches"])


@router.get("/{batch_id}")
async def get_batch_detail(batch_id: str, db: AsyncSession = Depends(get_db)):
    batch = await get_batch(db, batch_id)
    return _batch_to_response(batch)
