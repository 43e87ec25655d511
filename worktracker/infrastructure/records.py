"""Infrastructure layer for record persistence."""
from __future__ import annotations

from collections import deque
from dataclasses import asdict
from typing import Any, Protocol

from worktracker.domain import ActivityEntry, TableState

ACTIVITY_LOG_LIMIT = 1000


class RecordRepository(Protocol):
    """Persistence contract for record tables."""

    def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]: ...

    def get(self, table: str, record_id: str) -> dict[str, Any] | None: ...

    def update(self, table: str, record_id: str, changes: dict[str, Any]) -> dict[str, Any]: ...

    def delete(self, table: str, record_id: str) -> dict[str, Any]: ...

    def list_rows(self, table: str) -> list[dict[str, Any]]: ...

    def add_activity(self, entry: ActivityEntry) -> None: ...

    def list_activity(self, limit: int | None = None) -> list[dict[str, Any]]: ...

    def reset(self) -> None: ...


class InMemoryRecordRepository:
    """Simple in-memory repository for fast iteration and tests."""

    def __init__(self, activity_limit: int = ACTIVITY_LOG_LIMIT) -> None:
        self._tables: dict[str, TableState] = {}
        self._activity: deque[ActivityEntry] = deque(maxlen=activity_limit)

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    def _ensure_table(self, table: str) -> TableState:
        state = self._tables.get(table)
        if state is None:
            state = TableState(name=table)
            self._tables[table] = state
        return state

    # ------------------------------------------------------------------
    # CRUD operations
    # ------------------------------------------------------------------
    def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        state = self._ensure_table(table)
        state.rows[str(record["id"])] = dict(record)
        return dict(record)

    def get(self, table: str, record_id: str) -> dict[str, Any] | None:
        state = self._tables.get(table)
        if state is None:
            return None
        row = state.rows.get(record_id)
        return dict(row) if row is not None else None

    def update(self, table: str, record_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        state = self._ensure_table(table)
        if record_id not in state.rows:
            raise KeyError(record_id)
        state.rows[record_id].update(changes)
        return dict(state.rows[record_id])

    def delete(self, table: str, record_id: str) -> dict[str, Any]:
        state = self._ensure_table(table)
        return state.rows.pop(record_id)

    def list_rows(self, table: str) -> list[dict[str, Any]]:
        state = self._tables.get(table)
        return [dict(row) for row in state.rows.values()] if state else []

    def add_activity(self, entry: ActivityEntry) -> None:
        self._activity.append(entry)

    def list_activity(self, limit: int | None = None) -> list[dict[str, Any]]:
        entries = [asdict(entry) for entry in reversed(self._activity)]
        return entries if limit is None else entries[:limit]

    def reset(self) -> None:
        self._tables.clear()
        self._activity.clear()
