"""Derived operational-status rollups for the summary dashboards.

Each ``summarize_*`` function takes an already-loaded collection of records
(mappings or record models) and returns a fresh summary model.  The functions
keep no state and never mutate their input, so they are safe to call from any
thread on independent snapshots.

Malformed rows never raise: a row that is not a mapping, or that cannot be
validated, still counts towards ``total`` as an empty record.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any, Callable, TypeVar

from pydantic import BaseModel, ValidationError

from worktracker.core.coerce import decimal_or_zero, pct, percent, round_half_up
from worktracker.core.schema import (
    CarRecord,
    CctvRecord,
    GroupTally,
    ModuleRecord,
    ModuleSummary,
    PicRecord,
    SmartLockRecord,
    SmartLockSummary,
    WorkTrackerRecord,
    WorkTrackerSummary,
)
from worktracker.core.statuses import (
    LONG_AGING_PRIORITY,
    ActiveStatus,
    BastStatus,
    ConnectionStatus,
    LockInstallState,
    ProgressStatus,
    WorkStatus,
)

logger = logging.getLogger(__name__)

# Historical reports use these cut-offs; they are not configurable.
WIP_AGING_THRESHOLD_DAYS = 90
BAST_AGING_THRESHOLD_DAYS = 14

R = TypeVar("R", bound=BaseModel)


def _coerce_record(model: type[R], raw: Any) -> R:
    if isinstance(raw, model):
        return raw
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    if not isinstance(raw, Mapping):
        logger.warning("Treating non-mapping %s row (%s) as empty", model.__name__, type(raw).__name__)
        return model()
    try:
        return model.model_validate(dict(raw))
    except ValidationError as exc:  # pragma: no cover - validators coerce every field
        logger.warning("Treating invalid %s row as empty: %s", model.__name__, exc)
        return model()


def _coerce_records(model: type[R], records: Iterable[Any] | None) -> list[R]:
    if records is None:
        return []
    return [_coerce_record(model, raw) for raw in records]


def _count(items: Iterable[R], predicate: Callable[[R], bool]) -> int:
    return sum(1 for item in items if predicate(item))


def _group(items: Iterable[R], key: Callable[[R], str], completed: Callable[[R], bool]) -> list[GroupTally]:
    tallies: dict[str, list[int]] = {}
    for item in items:
        counts = tallies.setdefault(key(item), [0, 0])
        counts[0] += 1
        if completed(item):
            counts[1] += 1
    return [
        GroupTally(key=name, total=total, completed=done, progress=percent(done, total))
        for name, (total, done) in tallies.items()
    ]


def top_groups(groups: Iterable[GroupTally], limit: int | None = None) -> list[GroupTally]:
    """Order groups by descending total; ties keep their first-seen order."""

    ordered = sorted(groups, key=lambda group: group.total, reverse=True)
    return ordered if limit is None else ordered[:limit]


# ----------------------------------------------------------------------
# work trackers
# ----------------------------------------------------------------------
def _aged_beyond(record: WorkTrackerRecord, days: int) -> bool:
    return record.aging_days is not None and record.aging_days > days


def _is_approved(record: WorkTrackerRecord) -> bool:
    return record.bast is BastStatus.APPROVED


def _needs_bast(record: WorkTrackerRecord) -> bool:
    return (
        record.work_status is WorkStatus.CLOSE
        and record.bast_status is None
        and record.date_submit is None
        and record.date_approve is None
    )


def _is_outstanding_wip(record: WorkTrackerRecord) -> bool:
    if _is_approved(record):
        return False
    return _aged_beyond(record, WIP_AGING_THRESHOLD_DAYS) or record.work_status is WorkStatus.ON_HOLD


def _is_outstanding_bast(record: WorkTrackerRecord) -> bool:
    return record.bast is BastStatus.WAITING and _aged_beyond(record, BAST_AGING_THRESHOLD_DAYS)


def _average_aging(records: list[WorkTrackerRecord]) -> int:
    aged = [record.aging_days for record in records if record.aging_days]
    if not aged:
        return 0
    return int(round_half_up(sum(aged, Decimal("0")) / len(aged)))


def summarize_work_trackers(
    records: Iterable[Any] | None,
    pic_records: Iterable[Any] | None = None,
    car_records: Iterable[Any] | None = None,
    cctv_records: Iterable[Any] | None = None,
) -> WorkTrackerSummary:
    trackers = _coerce_records(WorkTrackerRecord, records)
    pics = _coerce_records(PicRecord, pic_records)
    cars = _coerce_records(CarRecord, car_records)
    cameras = _coerce_records(CctvRecord, cctv_records)

    total = len(trackers)
    close = _count(trackers, lambda r: r.work_status is WorkStatus.CLOSE)

    return WorkTrackerSummary(
        total=total,
        open=_count(trackers, lambda r: r.work_status is WorkStatus.OPEN),
        on_hold=_count(trackers, lambda r: r.work_status is WorkStatus.ON_HOLD),
        close=close,
        completion_rate=percent(close, total),
        bast_approved=_count(trackers, _is_approved),
        bast_waiting=_count(trackers, lambda r: r.bast is BastStatus.WAITING),
        bast_need_create=_count(trackers, _needs_bast),
        outstanding_wip=_count(trackers, _is_outstanding_wip),
        outstanding_bast=_count(trackers, _is_outstanding_bast),
        avg_aging=_average_aging(trackers),
        by_region=_group(trackers, lambda r: r.regional, lambda r: r.work_status is WorkStatus.CLOSE),
        total_pic=len(pics),
        active_pic=_count(pics, lambda p: p.validation_status is ActiveStatus.ACTIVE),
        total_cars=len(cars),
        active_cars=_count(cars, lambda c: c.status is ActiveStatus.ACTIVE),
        total_cctv=len(cameras),
        cctv_online=_count(cameras, lambda c: c.connection_status is ConnectionStatus.ONLINE),
        cctv_offline=_count(cameras, lambda c: c.connection_status is ConnectionStatus.OFFLINE),
    )


# ----------------------------------------------------------------------
# installation modules
# ----------------------------------------------------------------------
def _module_done(record: ModuleRecord) -> bool:
    return record.install_status is ProgressStatus.DONE or record.rfs_status is ProgressStatus.DONE


def summarize_modules(records: Iterable[Any] | None) -> ModuleSummary:
    modules = _coerce_records(ModuleRecord, records)
    total = len(modules)
    done = _count(modules, _module_done)

    return ModuleSummary(
        total=total,
        done=done,
        pending=total - done,
        progress=percent(done, total),
        hold=_count(modules, lambda m: m.rfs_status is ProgressStatus.HOLD),
        with_atp=_count(modules, lambda m: m.doc_atp is ProgressStatus.DONE),
        by_region=_group(modules, lambda m: m.region, _module_done),
        by_partner=_group(modules, lambda m: m.partner, _module_done),
        total_gap=sum((decimal_or_zero(m.gap) for m in modules), Decimal("0")),
        total_module_qty=sum((decimal_or_zero(m.module_qty) for m in modules), Decimal("0")),
        total_install_qty=sum((decimal_or_zero(m.install_qty) for m in modules), Decimal("0")),
    )


# ----------------------------------------------------------------------
# smart locks
# ----------------------------------------------------------------------
def summarize_smart_locks(records: Iterable[Any] | None) -> SmartLockSummary:
    locks = _coerce_records(SmartLockRecord, records)
    total = len(locks)

    def state_count(state: LockInstallState) -> int:
        return _count(locks, lambda lock: state.matches(lock.install_state))

    counters = {
        "installed": state_count(LockInstallState.INSTALLED),
        "need_install": state_count(LockInstallState.NEED_INSTALL),
        "need_relocated": state_count(LockInstallState.NEED_RELOCATED),
        "lost": state_count(LockInstallState.LOST),
        "long_aging": _count(locks, lambda lock: lock.priority_flag == LONG_AGING_PRIORITY),
    }

    return SmartLockSummary(
        total=total,
        progress=percent(counters["installed"], total),
        percentages={name: pct(value, total) for name, value in counters.items()},
        by_region=_group(
            locks,
            lambda lock: lock.region,
            lambda lock: LockInstallState.INSTALLED.matches(lock.install_state),
        ),
        **counters,
    )


__all__ = [
    "BAST_AGING_THRESHOLD_DAYS",
    "WIP_AGING_THRESHOLD_DAYS",
    "pct",
    "summarize_modules",
    "summarize_smart_locks",
    "summarize_work_trackers",
    "top_groups",
]
