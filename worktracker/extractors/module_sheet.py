"""Parser for the module tracker import spreadsheet."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any

import pandas as pd
import yaml

from worktracker.core.coerce import clean_text, safe_decimal

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"
EXCEL_EPOCH = date(1899, 12, 30)
DATE_FIELDS = {"rfs_date"}


def _load_mapping() -> dict:
    path = CONFIG_DIR / "module_columns.yaml"
    with path.open("r", encoding="utf-8") as fp:
        return yaml.safe_load(fp) or {}


MAPPING = _load_mapping()


@dataclass
class ModuleParseResult:
    rows: list[dict[str, Any]]
    skipped: int = 0
    unmapped_columns: list[str] = field(default_factory=list)


def _normalise_columns(dataframe: pd.DataFrame) -> pd.DataFrame:
    renamed = {col: str(col).strip() for col in dataframe.columns}
    dataframe = dataframe.rename(columns=renamed)
    return dataframe.dropna(how="all")


def _to_int(value: Any) -> int:
    number = safe_decimal(value)
    return int(number) if number is not None else 0


def _to_iso_date(value: Any) -> str | None:
    if isinstance(value, (datetime, pd.Timestamp)):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if value != value:
            return None
        # Excel serial day number
        return (EXCEL_EPOCH + timedelta(days=int(value))).isoformat()
    text = clean_text(value)
    if text is None or "-" not in text:
        return None
    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date().isoformat()


def _cell(value: Any) -> Any:
    """Convert a pandas cell to a plain Python value, ``None`` when empty."""

    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        return value
    if isinstance(value, (datetime, date)):
        return value
    if hasattr(value, "item"):
        value = value.item()
    if isinstance(value, str):
        return value.strip() or None
    return value


def parse(path: Path, sheet_name: str | int = 0) -> ModuleParseResult:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        dataframe = pd.read_csv(path)
    elif suffix in {".xlsx", ".xls"}:
        dataframe = pd.read_excel(path, sheet_name=sheet_name)
    else:
        raise ValueError(f"unsupported import file type: {suffix or path.name}")
    dataframe = _normalise_columns(dataframe)

    lookup = {str(key).strip().upper(): target for key, target in (MAPPING.get("columns") or {}).items()}
    numeric = set(MAPPING.get("numeric") or [])

    column_targets: dict[str, str] = {}
    unmapped: list[str] = []
    for column in dataframe.columns:
        target = lookup.get(column.upper())
        if target:
            column_targets[column] = target
        else:
            unmapped.append(column)
    if unmapped:
        logger.info("Ignoring unmapped module import columns: %s", ", ".join(unmapped))

    rows: list[dict[str, Any]] = []
    skipped = 0
    for _, raw in dataframe.iterrows():
        row: dict[str, Any] = {}
        for column, target in column_targets.items():
            value = _cell(raw.get(column))
            if target in numeric:
                row[target] = _to_int(value)
            elif target in DATE_FIELDS:
                row[target] = _to_iso_date(value)
            else:
                row[target] = value

        site_id = clean_text(row.get("site_id"))
        if site_id is None:
            skipped += 1
            continue
        row["site_id"] = site_id
        if not clean_text(row.get("install_status")):
            row["install_status"] = "Done" if row.get("rfs_status") == "Done" else "Pending"
        rows.append(row)

    return ModuleParseResult(rows=rows, skipped=skipped, unmapped_columns=unmapped)
