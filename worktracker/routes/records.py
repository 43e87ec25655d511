from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, File, HTTPException, Query, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field

from worktracker.application import get_record_service
from worktracker.core.tables import UnknownTableError
from worktracker.core.uploads import save_upload
from worktracker.core.validation import RecordValidationError
from worktracker.extractors import module_sheet

router = APIRouter(tags=["records"])

MEDIA_TYPES = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv",
}


def _table_not_found(table: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"unknown table: {table}")


@router.get("/tables")
def list_tables() -> dict:
    service = get_record_service()
    return {"items": service.list_tables()}


@router.get("/tables/{table}/records")
def list_records(
    table: str,
    search: str | None = Query(default=None),
    regional: str | None = Query(default=None),
) -> dict:
    service = get_record_service()
    try:
        items = service.list_records(table, search=search, regional=regional)
    except UnknownTableError as exc:
        raise _table_not_found(table) from exc
    return {"items": items}


@router.post("/tables/{table}/records")
def create_record(table: str, payload: dict[str, Any]) -> dict:
    service = get_record_service()
    try:
        return service.create_record(table, payload)
    except UnknownTableError as exc:
        raise _table_not_found(table) from exc
    except RecordValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/tables/{table}/records/{record_id}")
def get_record(table: str, record_id: str) -> dict:
    service = get_record_service()
    try:
        return service.get_record(table, record_id)
    except UnknownTableError as exc:
        raise _table_not_found(table) from exc
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="record not found") from exc


@router.put("/tables/{table}/records/{record_id}")
def update_record(table: str, record_id: str, payload: dict[str, Any]) -> dict:
    if not payload:
        raise HTTPException(status_code=400, detail="no updates provided")
    service = get_record_service()
    try:
        return service.update_record(table, record_id, payload)
    except UnknownTableError as exc:
        raise _table_not_found(table) from exc
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="record not found") from exc
    except RecordValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.delete("/tables/{table}/records/{record_id}")
def delete_record(table: str, record_id: str) -> dict:
    service = get_record_service()
    try:
        removed = service.delete_record(table, record_id)
    except UnknownTableError as exc:
        raise _table_not_found(table) from exc
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="record not found") from exc
    return {"deleted": removed["id"]}


@router.get("/tables/{table}/export")
def export_table(table: str, format: str = Query(default="xlsx")) -> Response:
    if format not in MEDIA_TYPES:
        raise HTTPException(status_code=400, detail="format must be xlsx or csv")
    service = get_record_service()
    try:
        content = service.export_table(table, format)
    except UnknownTableError as exc:
        raise _table_not_found(table) from exc
    headers = {"Content-Disposition": f'attachment; filename="{table}.{format}"'}
    return Response(content=content, media_type=MEDIA_TYPES[format], headers=headers)


@router.post("/tables/module_tracker/import")
def import_modules(file: UploadFile = File(...)) -> dict:
    """Upload a module tracker spreadsheet and create one record per row."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="Uploaded file must have a filename")
    try:
        path = save_upload("module_tracker", file.filename, file.file)
    finally:
        file.file.close()

    try:
        parsed = module_sheet.parse(path)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    service = get_record_service()
    try:
        created = service.import_records("module_tracker", parsed.rows)
    except RecordValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "imported": len(created),
        "skipped": parsed.skipped,
        "unmapped_columns": parsed.unmapped_columns,
    }


@router.get("/activity")
def list_activity(limit: int = Query(default=50, ge=1, le=500)) -> dict:
    service = get_record_service()
    return {"items": service.list_activity(limit)}


class BulkUpdateRequest(BaseModel):
    ids: list[str] = Field(min_length=1)
    changes: dict[str, Any]


class BulkIdsRequest(BaseModel):
    ids: list[str] = Field(min_length=1)


class ApproveBastRequest(BulkIdsRequest):
    approved_on: date | None = None


@router.post("/tables/{table}/bulk-update")
def bulk_update(table: str, payload: BulkUpdateRequest) -> dict:
    """Set the same fields (status, RFS status, ATP doc, ...) on several records."""
    service = get_record_service()
    try:
        items = service.bulk_update(table, payload.ids, payload.changes)
    except UnknownTableError as exc:
        raise _table_not_found(table) from exc
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"record not found: {exc.args[0]}") from exc
    except RecordValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"updated": len(items), "items": items}


@router.post("/tables/{table}/bulk-delete")
def bulk_delete(table: str, payload: BulkIdsRequest) -> dict:
    service = get_record_service()
    try:
        deleted = service.bulk_delete(table, payload.ids)
    except UnknownTableError as exc:
        raise _table_not_found(table) from exc
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"record not found: {exc.args[0]}") from exc
    return {"deleted": deleted}


@router.post("/tables/work_trackers/approve-bast")
def approve_bast(payload: ApproveBastRequest) -> dict:
    service = get_record_service()
    try:
        items = service.approve_bast(payload.ids, payload.approved_on)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"record not found: {exc.args[0]}") from exc
    except RecordValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"updated": len(items), "items": items}
