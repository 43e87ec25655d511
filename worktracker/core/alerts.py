"""Deadline alerts derived from work trackers and the car fleet.

Three kinds of alert are raised:

* a submitted BAST still unapproved as its approval window
  (``BAST_APPROVAL_WINDOW_DAYS`` after submission) closes or has passed,
* a job left On Hold for at least ``on_hold_days`` since it was created,
* a car registration (STNK), tax (pajak) or roadworthiness (KIR) document
  expiring within ``car_expiry_days`` or already expired.

Like the summaries, the derivation keeps no state and skips rows it cannot
read instead of raising.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import date, timedelta
from typing import Any

import pandas as pd
from pydantic import BaseModel

from worktracker.core.coerce import clean_text
from worktracker.core.statuses import WorkStatus

logger = logging.getLogger(__name__)

BAST_APPROVAL_WINDOW_DAYS = 14

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

ALERT_PRIORITIES = {
    "bast_deadline": "high",
    "car_stnk_expiring": "high",
    "car_pajak_expiring": "high",
    "car_kir_expiring": "medium",
    "on_hold_reminder": "medium",
}

CAR_DOCUMENTS = (
    ("masa_berlaku_stnk", "car_stnk_expiring", "STNK"),
    ("masa_berlaku_pajak", "car_pajak_expiring", "Pajak"),
    ("masa_berlaku_kir", "car_kir_expiring", "KIR"),
)


class AlertSettings(BaseModel):
    bast_deadline_days: int = 3
    car_expiry_days: int = 30
    on_hold_days: int = 14


class Alert(BaseModel):
    id: str
    type: str
    priority: str
    title: str
    message: str
    table: str
    record_id: str | None = None
    due: date
    days_left: int | None = None
    overdue: bool = False


def _parse_date(value: Any) -> date | None:
    text = clean_text(value)
    if text is None:
        return None
    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def _rows(records: Iterable[Any] | None) -> list[Mapping[str, Any]]:
    if records is None:
        return []
    rows = []
    for raw in records:
        if isinstance(raw, Mapping):
            rows.append(raw)
        else:
            logger.warning("Skipping non-mapping row (%s) in alert derivation", type(raw).__name__)
    return rows


def _countdown_alert(
    kind: str,
    label: str,
    subject: str,
    due: date,
    today: date,
    window: int,
    table: str,
    record_id: str | None,
) -> Alert | None:
    days_left = (due - today).days
    if days_left > window:
        return None
    overdue = days_left <= 0
    if overdue:
        title = f"{label} overdue: {subject}"
        message = f"{label} is {abs(days_left)} day(s) past due"
    else:
        title = f"{label} due: {subject}"
        message = f"{label} due in {days_left} day(s)"
    return Alert(
        id=f"{kind}_{record_id}",
        type=kind,
        priority=ALERT_PRIORITIES[kind],
        title=title,
        message=message,
        table=table,
        record_id=record_id,
        due=due,
        days_left=days_left,
        overdue=overdue,
    )


def derive_alerts(
    work_trackers: Iterable[Any] | None,
    cars: Iterable[Any] | None = None,
    *,
    today: date,
    settings: AlertSettings | None = None,
) -> list[Alert]:
    """Return alerts ordered by priority, then by days left (soonest first)."""

    settings = settings or AlertSettings()
    alerts: list[Alert] = []

    for row in _rows(work_trackers):
        record_id = clean_text(row.get("id"))
        site = clean_text(row.get("site_name")) or record_id or "-"

        submitted = _parse_date(row.get("bast_submit_date") or row.get("date_submit"))
        approved = clean_text(row.get("bast_approve_date") or row.get("date_approve"))
        if submitted is not None and approved is None:
            deadline = submitted + timedelta(days=BAST_APPROVAL_WINDOW_DAYS)
            alert = _countdown_alert(
                "bast_deadline",
                "BAST approval",
                site,
                deadline,
                today,
                settings.bast_deadline_days,
                "work_trackers",
                record_id,
            )
            if alert is not None:
                alerts.append(alert)

        if WorkStatus.from_raw(row.get("status_pekerjaan") or row.get("work_status")) is WorkStatus.ON_HOLD:
            created = _parse_date(row.get("created_at"))
            if created is not None:
                held = (today - created).days
                if held >= settings.on_hold_days:
                    alerts.append(
                        Alert(
                            id=f"on_hold_{record_id}",
                            type="on_hold_reminder",
                            priority=ALERT_PRIORITIES["on_hold_reminder"],
                            title=f"On Hold: {site}",
                            message=f"This job has been on hold for {held} days",
                            table="work_trackers",
                            record_id=record_id,
                            due=created,
                        )
                    )

    for row in _rows(cars):
        record_id = clean_text(row.get("id"))
        plate = clean_text(row.get("nomor_polisi")) or record_id or "-"
        for field, kind, label in CAR_DOCUMENTS:
            expiry = _parse_date(row.get(field))
            if expiry is None:
                continue
            alert = _countdown_alert(
                kind, label, plate, expiry, today, settings.car_expiry_days, "car_data", record_id
            )
            if alert is not None:
                alerts.append(alert)

    return sorted(alerts, key=lambda alert: (PRIORITY_ORDER[alert.priority], alert.days_left or 0))
