"""Application service layer for record tables and dashboards."""
from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Iterable, Sequence

from worktracker.core import aggregation
from worktracker.core.alerts import Alert, AlertSettings, derive_alerts
from worktracker.core.schema import ModuleSummary, SmartLockSummary, WorkTrackerSummary
from worktracker.core.statuses import BastStatus
from worktracker.core.tables import TABLES, TableDefinition, get_table
from worktracker.core.validation import RecordValidationError, validate_record
from worktracker.domain import ActivityEntry
from worktracker.exporters.excel import export_csv, export_xlsx
from worktracker.infrastructure import InMemoryRecordRepository, RecordRepository, get_sheets_client

logger = logging.getLogger(__name__)

EXPORT_FORMATS = {"xlsx", "csv"}
SYSTEM_FIELDS = {"id", "created_at", "updated_at"}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class RecordService:
    """Coordinates record CRUD, the spreadsheet mirror and summaries."""

    def __init__(self, repository: RecordRepository) -> None:
        self._repository = repository

    # ------------------------------------------------------------------
    # catalogue & queries
    # ------------------------------------------------------------------
    def list_tables(self) -> list[dict[str, object]]:
        return [definition.describe() for definition in TABLES.values()]

    def list_records(
        self,
        table: str,
        *,
        search: str | None = None,
        regional: str | None = None,
    ) -> list[dict[str, Any]]:
        get_table(table)
        rows = self._repository.list_rows(table)
        if regional:
            rows = [row for row in rows if row.get("regional") == regional]
        if search:
            keyword = search.strip().lower()
            rows = [
                row
                for row in rows
                if any(keyword in str(value).lower() for value in row.values() if value is not None)
            ]
        return rows

    def get_record(self, table: str, record_id: str) -> dict[str, Any]:
        get_table(table)
        row = self._repository.get(table, record_id)
        if row is None:
            raise KeyError(record_id)
        return row

    # ------------------------------------------------------------------
    # mutations
    # ------------------------------------------------------------------
    def _prepare(self, definition: TableDefinition, payload: dict[str, Any]) -> dict[str, Any]:
        data = {key: value for key, value in payload.items() if key not in SYSTEM_FIELDS}
        validate_record(definition, data)
        return data

    def _insert(self, definition: TableDefinition, data: dict[str, Any]) -> dict[str, Any]:
        timestamp = _now()
        record = {"id": str(uuid.uuid4()), **data, "created_at": timestamp, "updated_at": timestamp}
        stored = self._repository.insert(definition.name, record)
        self._record_activity("insert", definition, stored)
        self._mirror("insert", definition, stored)
        return stored

    def create_record(self, table: str, payload: dict[str, Any]) -> dict[str, Any]:
        definition = get_table(table)
        return self._insert(definition, self._prepare(definition, payload))

    def update_record(self, table: str, record_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        definition = get_table(table)
        current = self.get_record(table, record_id)
        updates = {key: value for key, value in changes.items() if key not in SYSTEM_FIELDS}
        validate_record(definition, {**current, **updates})

        updates["updated_at"] = _now()
        stored = self._repository.update(table, record_id, updates)
        self._record_activity("update", definition, stored)
        self._mirror("update", definition, stored)
        return stored

    def delete_record(self, table: str, record_id: str) -> dict[str, Any]:
        definition = get_table(table)
        self.get_record(table, record_id)
        removed = self._repository.delete(table, record_id)
        self._record_activity("delete", definition, removed)
        self._mirror("delete", definition, None, record_id=record_id)
        return removed

    def import_records(self, table: str, rows: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        """Create one record per row; nothing is stored unless every row is valid."""
        definition = get_table(table)
        prepared: list[dict[str, Any]] = []
        for index, row in enumerate(rows, start=1):
            try:
                prepared.append(self._prepare(definition, row))
            except RecordValidationError as exc:
                raise RecordValidationError(f"row {index}: {exc}") from exc

        created = [self._insert(definition, data) for data in prepared]
        logger.info("Imported %d row(s) into %s", len(created), table)
        return created

    def bulk_update(self, table: str, record_ids: Sequence[str], changes: dict[str, Any]) -> list[dict[str, Any]]:
        """Apply the same changes to several records, all or none."""
        definition = get_table(table)
        updates = {key: value for key, value in changes.items() if key not in SYSTEM_FIELDS}
        if not updates:
            raise RecordValidationError("no updates provided")
        ids = list(dict.fromkeys(record_ids))
        for record_id in ids:
            validate_record(definition, {**self.get_record(table, record_id), **updates})

        updated = [self.update_record(table, record_id, updates) for record_id in ids]
        logger.info("Bulk updated %d record(s) in %s: %s", len(updated), table, ", ".join(sorted(updates)))
        return updated

    def bulk_delete(self, table: str, record_ids: Sequence[str]) -> list[str]:
        get_table(table)
        ids = list(dict.fromkeys(record_ids))
        for record_id in ids:
            self.get_record(table, record_id)

        for record_id in ids:
            self.delete_record(table, record_id)
        logger.info("Bulk deleted %d record(s) from %s", len(ids), table)
        return ids

    def approve_bast(self, record_ids: Sequence[str], approved_on: date | None = None) -> list[dict[str, Any]]:
        """Mark the BAST of several work trackers as approved on ``approved_on``."""
        approved_on = approved_on or datetime.now(timezone.utc).date()
        return self.bulk_update(
            "work_trackers",
            record_ids,
            {"status_bast": BastStatus.APPROVED.value, "bast_approve_date": approved_on.isoformat()},
        )

    def list_activity(self, limit: int | None = 50) -> list[dict[str, Any]]:
        return self._repository.list_activity(limit)

    # ------------------------------------------------------------------
    # summaries
    # ------------------------------------------------------------------
    def _regional_rows(self, table: str, regional: str | None) -> list[dict[str, Any]]:
        rows = self._repository.list_rows(table)
        if regional:
            rows = [row for row in rows if row.get("regional") == regional]
        return rows

    def summarize_work_trackers(self, regional: str | None = None) -> WorkTrackerSummary:
        """Roll up work trackers with the PIC, car and CCTV counts.

        ``regional`` narrows work trackers, PICs and cameras. Cars carry no
        regional column, so fleet counts always cover every car.
        """
        return aggregation.summarize_work_trackers(
            self._regional_rows("work_trackers", regional),
            self._regional_rows("pic_data", regional),
            self._repository.list_rows("car_data"),
            self._regional_rows("cctv_data", regional),
        )

    def summarize_modules(self) -> ModuleSummary:
        return aggregation.summarize_modules(self._repository.list_rows("module_tracker"))

    def summarize_smart_locks(self) -> SmartLockSummary:
        return aggregation.summarize_smart_locks(self._repository.list_rows("smartlock_data"))

    def list_alerts(self, today: date | None = None, settings: AlertSettings | None = None) -> list[Alert]:
        return derive_alerts(
            self._repository.list_rows("work_trackers"),
            self._repository.list_rows("car_data"),
            today=today or datetime.now(timezone.utc).date(),
            settings=settings,
        )

    # ------------------------------------------------------------------
    # export
    # ------------------------------------------------------------------
    def export_table(self, table: str, fmt: str = "xlsx") -> bytes:
        definition = get_table(table)
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"unsupported export format: {fmt}")
        rows = self._repository.list_rows(table)
        if fmt == "csv":
            return export_csv(rows, definition.columns)
        return export_xlsx(rows, definition.columns)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _record_activity(self, action: str, definition: TableDefinition, record: dict[str, Any]) -> None:
        label = next((str(record[name]) for name in definition.required if record.get(name)), None)
        self._repository.add_activity(
            ActivityEntry(
                action=action,
                table=definition.name,
                record_id=str(record["id"]),
                at=_now(),
                summary=label,
            )
        )

    def _mirror(
        self,
        action: str,
        definition: TableDefinition,
        record: dict[str, Any] | None,
        *,
        record_id: str | None = None,
    ) -> None:
        if not definition.mirrored:
            return
        record_id = record_id or (str(record["id"]) if record else None)
        result = get_sheets_client().push(action, definition.name, record, record_id)
        if result.skipped:
            logger.debug("Spreadsheet mirror not configured, %s %s/%s not pushed", action, definition.name, record_id)
        elif not result.success:
            logger.warning("Spreadsheet mirror push failed for %s/%s: %s", definition.name, record_id, result.error)

    # ------------------------------------------------------------------
    # testing helpers
    # ------------------------------------------------------------------
    def reset(self) -> None:
        self._repository.reset()


_repository = InMemoryRecordRepository()
_service = RecordService(_repository)


def get_record_service() -> RecordService:
    """Return the singleton record service for the process."""

    return _service


def reset_record_state() -> None:
    """Reset the in-memory store (used in tests)."""

    _service.reset()
