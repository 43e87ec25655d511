from __future__ import annotations

from io import BytesIO
from typing import Any, Iterable, Sequence

import pandas as pd
from openpyxl import Workbook
from openpyxl.utils import get_column_letter

MAX_COLUMN_WIDTH = 50


def _resolve_columns(rows: list[dict[str, Any]], columns: Sequence[str] | None) -> list[str]:
    ordered: list[str] = list(columns or [])
    for row in rows:
        for key in row.keys():
            if key not in ordered:
                ordered.append(key)
    return ordered


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return str(value)
    return value


def export_xlsx(rows: Iterable[dict[str, Any]], columns: Sequence[str] | None = None) -> bytes:
    """Write rows to a single ``Data`` sheet with auto-sized columns."""

    records = list(rows)
    headers = _resolve_columns(records, columns)

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Data"
    sheet.append(headers)
    for record in records:
        sheet.append([_cell(record.get(header)) for header in headers])

    for index, header in enumerate(headers, start=1):
        longest = max([len(header)] + [len(str(_cell(record.get(header)))) for record in records])
        sheet.column_dimensions[get_column_letter(index)].width = min(longest + 2, MAX_COLUMN_WIDTH)

    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def export_csv(rows: Iterable[dict[str, Any]], columns: Sequence[str] | None = None) -> bytes:
    records = list(rows)
    df = pd.DataFrame(records, columns=_resolve_columns(records, columns))
    return df.to_csv(index=False).encode("utf-8")
