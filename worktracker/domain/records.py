"""Domain entities for record storage."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class ActivityEntry:
    """One create/update/delete applied to a record table."""

    action: str
    table: str
    record_id: str
    at: str
    summary: str | None = None


@dataclass(slots=True)
class TableState:
    """Rows of a single table kept in memory, keyed by record id."""

    name: str
    rows: dict[str, dict[str, Any]] = field(default_factory=dict)
