from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from worktracker.application import get_record_service
from worktracker.core import aggregation
from worktracker.core.alerts import AlertSettings

router = APIRouter(prefix="/summary", tags=["summary"])

GROUP_FIELDS = ("by_region", "by_partner")


def _serialise(summary: BaseModel, top: int | None) -> dict[str, Any]:
    data = summary.model_dump(mode="json")
    if top is not None:
        for name in GROUP_FIELDS:
            if name in data:
                groups = getattr(summary, name)
                data[name] = [group.model_dump(mode="json") for group in aggregation.top_groups(groups, top)]
    return data


def _rows(payload: dict[str, Any], key: str) -> list | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise HTTPException(status_code=400, detail=f"{key} must be a list of records")
    return value


@router.get("/work-trackers")
def work_tracker_summary(
    regional: str | None = Query(default=None),
    top: int | None = Query(default=None, ge=1),
) -> dict:
    service = get_record_service()
    return _serialise(service.summarize_work_trackers(regional=regional), top)


@router.get("/modules")
def module_summary(top: int | None = Query(default=None, ge=1)) -> dict:
    service = get_record_service()
    return _serialise(service.summarize_modules(), top)


@router.get("/smart-locks")
def smart_lock_summary(top: int | None = Query(default=None, ge=1)) -> dict:
    service = get_record_service()
    return _serialise(service.summarize_smart_locks(), top)


@router.post("/{kind}")
def summarize_payload(kind: str, payload: dict[str, Any], top: int | None = Query(default=None, ge=1)) -> dict:
    """Run the dashboard rollups over records supplied in the request body."""
    records = _rows(payload, "records") or []
    if kind == "work-trackers":
        summary: BaseModel = aggregation.summarize_work_trackers(
            records,
            _rows(payload, "pic"),
            _rows(payload, "cars"),
            _rows(payload, "cctv"),
        )
    elif kind == "modules":
        summary = aggregation.summarize_modules(records)
    elif kind == "smart-locks":
        summary = aggregation.summarize_smart_locks(records)
    else:
        raise HTTPException(status_code=404, detail=f"unknown summary: {kind}")
    return _serialise(summary, top)


@router.get("/alerts")
def alerts(
    today: date | None = Query(default=None),
    bast_deadline_days: int = Query(default=3, ge=0),
    car_expiry_days: int = Query(default=30, ge=0),
    on_hold_days: int = Query(default=14, ge=0),
) -> dict:
    """BAST deadlines, long On Hold jobs and expiring car documents."""
    settings = AlertSettings(
        bast_deadline_days=bast_deadline_days,
        car_expiry_days=car_expiry_days,
        on_hold_days=on_hold_days,
    )
    items = get_record_service().list_alerts(today=today, settings=settings)
    return {
        "items": [item.model_dump(mode="json") for item in items],
        "high_priority": sum(1 for item in items if item.priority == "high" or item.overdue),
    }
