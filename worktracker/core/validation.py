from __future__ import annotations

from typing import Any

from worktracker.core.coerce import clean_text, safe_decimal
from worktracker.core.tables import TableDefinition

NUMERIC_FIELDS = {"aging_days", "module_qty", "install_qty", "gap"}
# gap is module_qty - install_qty and goes negative on over-installed sites
NON_NEGATIVE_FIELDS = {"aging_days", "module_qty", "install_qty"}


class RecordValidationError(Exception):
    """Raised when a submitted record fails table rules."""


def validate_record(definition: TableDefinition, record: dict[str, Any]) -> None:
    missing = [name for name in definition.required if clean_text(record.get(name)) is None]
    if missing:
        raise RecordValidationError(f"{definition.name}: missing required field(s) {', '.join(missing)}")
    for name in sorted(NUMERIC_FIELDS & record.keys()):
        value = record[name]
        if clean_text(value) is None:
            continue
        number = safe_decimal(value)
        if number is None:
            raise RecordValidationError(f"{name} must be numeric")
        if number < 0 and name in NON_NEGATIVE_FIELDS:
            raise RecordValidationError(f"{name} cannot be negative")
