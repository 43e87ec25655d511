from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from worktracker.core.coerce import clean_text, raw_text, safe_decimal
from worktracker.core.statuses import (
    ActiveStatus,
    BastStatus,
    ConnectionStatus,
    ProgressStatus,
    WorkStatus,
)

UNKNOWN_GROUP = "Unknown"


def _group_key(value: Any) -> str:
    return clean_text(value) or UNKNOWN_GROUP


class TrackerRecord(BaseModel):
    """Common base: lenient validation, raw column names accepted."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    id: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str | None:
        return clean_text(value)


class WorkTrackerRecord(TrackerRecord):
    work_status: WorkStatus | None = Field(
        default=None, validation_alias=AliasChoices("work_status", "status_pekerjaan", "workStatus")
    )
    bast_status: str | None = Field(
        default=None, validation_alias=AliasChoices("bast_status", "status_bast", "bastStatus")
    )
    aging_days: Decimal | None = Field(
        default=None, validation_alias=AliasChoices("aging_days", "agingDays")
    )
    date_submit: str | None = Field(
        default=None, validation_alias=AliasChoices("date_submit", "bast_submit_date", "dateSubmit")
    )
    date_approve: str | None = Field(
        default=None, validation_alias=AliasChoices("date_approve", "bast_approve_date", "dateApprove")
    )
    regional: str = UNKNOWN_GROUP

    @field_validator("work_status", mode="before")
    @classmethod
    def _resolve_work_status(cls, value: Any) -> WorkStatus | None:
        return WorkStatus.from_raw(value)

    @field_validator("bast_status", mode="before")
    @classmethod
    def _keep_raw_status(cls, value: Any) -> str | None:
        return raw_text(value)

    @field_validator("date_submit", "date_approve", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str | None:
        return clean_text(value)

    @field_validator("aging_days", mode="before")
    @classmethod
    def _coerce_aging(cls, value: Any) -> Decimal | None:
        return safe_decimal(value)

    @field_validator("regional", mode="before")
    @classmethod
    def _coerce_regional(cls, value: Any) -> str:
        return _group_key(value)

    @property
    def bast(self) -> BastStatus | None:
        return BastStatus.from_raw(self.bast_status)


class PicRecord(TrackerRecord):
    validation_status: ActiveStatus | None = Field(
        default=None, validation_alias=AliasChoices("validation_status", "validasi", "validationStatus")
    )
    regional: str = UNKNOWN_GROUP

    @field_validator("validation_status", mode="before")
    @classmethod
    def _resolve_status(cls, value: Any) -> ActiveStatus | None:
        return ActiveStatus.from_raw(value)

    @field_validator("regional", mode="before")
    @classmethod
    def _coerce_regional(cls, value: Any) -> str:
        return _group_key(value)


class CarRecord(TrackerRecord):
    status: ActiveStatus | None = Field(
        default=None, validation_alias=AliasChoices("status_mobil", "status")
    )

    @field_validator("status", mode="before")
    @classmethod
    def _resolve_status(cls, value: Any) -> ActiveStatus | None:
        return ActiveStatus.from_raw(value)


class CctvRecord(TrackerRecord):
    connection_status: ConnectionStatus | None = Field(
        default=None, validation_alias=AliasChoices("connection_status", "status", "connectionStatus")
    )
    regional: str = UNKNOWN_GROUP

    @field_validator("connection_status", mode="before")
    @classmethod
    def _resolve_status(cls, value: Any) -> ConnectionStatus | None:
        return ConnectionStatus.from_raw(value)

    @field_validator("regional", mode="before")
    @classmethod
    def _coerce_regional(cls, value: Any) -> str:
        return _group_key(value)


class ModuleRecord(TrackerRecord):
    install_status: ProgressStatus | None = Field(
        default=None, validation_alias=AliasChoices("install_status", "installStatus")
    )
    rfs_status: ProgressStatus | None = Field(
        default=None, validation_alias=AliasChoices("rfs_status", "rfsStatus")
    )
    doc_atp: ProgressStatus | None = Field(
        default=None, validation_alias=AliasChoices("doc_atp", "docAtp")
    )
    region: str = Field(default=UNKNOWN_GROUP, validation_alias=AliasChoices("region", "kab_kota"))
    partner: str = Field(default=UNKNOWN_GROUP, validation_alias=AliasChoices("partner", "mitra"))
    gap: Decimal | None = None
    module_qty: Decimal | None = Field(
        default=None, validation_alias=AliasChoices("module_qty", "moduleQty")
    )
    install_qty: Decimal | None = Field(
        default=None, validation_alias=AliasChoices("install_qty", "installQty")
    )

    @field_validator("install_status", "rfs_status", "doc_atp", mode="before")
    @classmethod
    def _resolve_progress(cls, value: Any) -> ProgressStatus | None:
        return ProgressStatus.from_raw(value)

    @field_validator("region", "partner", mode="before")
    @classmethod
    def _coerce_group(cls, value: Any) -> str:
        return _group_key(value)

    @field_validator("gap", "module_qty", "install_qty", mode="before")
    @classmethod
    def _coerce_quantity(cls, value: Any) -> Decimal | None:
        return safe_decimal(value)


class SmartLockRecord(TrackerRecord):
    install_state: str | None = Field(
        default=None, validation_alias=AliasChoices("install_state", "status_new", "installState")
    )
    priority_flag: str | None = Field(
        default=None, validation_alias=AliasChoices("priority_flag", "priority", "priorityFlag")
    )
    region: str = Field(default=UNKNOWN_GROUP, validation_alias=AliasChoices("region", "pti_reg"))

    @field_validator("install_state", "priority_flag", mode="before")
    @classmethod
    def _keep_raw_text(cls, value: Any) -> str | None:
        return raw_text(value)

    @field_validator("region", mode="before")
    @classmethod
    def _coerce_region(cls, value: Any) -> str:
        return _group_key(value)


class GroupTally(BaseModel):
    key: str
    total: int = 0
    completed: int = 0
    progress: int = 0


class WorkTrackerSummary(BaseModel):
    total: int = 0
    open: int = 0
    on_hold: int = 0
    close: int = 0
    completion_rate: int = 0
    bast_approved: int = 0
    bast_waiting: int = 0
    bast_need_create: int = 0
    outstanding_wip: int = 0
    outstanding_bast: int = 0
    avg_aging: int = 0
    by_region: list[GroupTally] = Field(default_factory=list)
    total_pic: int = 0
    active_pic: int = 0
    total_cars: int = 0
    active_cars: int = 0
    total_cctv: int = 0
    cctv_online: int = 0
    cctv_offline: int = 0


class ModuleSummary(BaseModel):
    total: int = 0
    done: int = 0
    pending: int = 0
    progress: int = 0
    hold: int = 0
    with_atp: int = 0
    by_region: list[GroupTally] = Field(default_factory=list)
    by_partner: list[GroupTally] = Field(default_factory=list)
    total_gap: Decimal = Decimal("0")
    total_module_qty: Decimal = Decimal("0")
    total_install_qty: Decimal = Decimal("0")


class SmartLockSummary(BaseModel):
    total: int = 0
    installed: int = 0
    need_install: int = 0
    need_relocated: int = 0
    lost: int = 0
    long_aging: int = 0
    progress: int = 0
    percentages: dict[str, float] = Field(default_factory=dict)
    by_region: list[GroupTally] = Field(default_factory=list)
