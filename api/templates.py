from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from ingestion.templates import XLSX_MEDIA_TYPE, build_template
from services.record_kinds import get_record_kind

router = APIRouter(prefix="/api/templates", tags=["templates"])


@router.get("/{kind_name}")
async def download_template(kind_name: str):
    kind = get_record_kind(kind_name)
    if kind is None:
        raise HTTPException(status_code=404, detail=f"No upload template for '{kind_name}'")
    content = build_template(f"{kind.label.title()} Template", kind.headers, kind.template_rows)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{kind.label}_upload_template.xlsx"'},
    )
