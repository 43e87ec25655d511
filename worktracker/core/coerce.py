"""Zero-value coercion helpers shared by the record schema and the engine."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any


def clean_text(value: Any) -> str | None:
    """Return ``value`` as stripped text, or ``None`` when it carries nothing."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value != value:  # NaN from spreadsheets
        return None
    text = str(value).strip()
    return text or None


def raw_text(value: Any) -> str | None:
    """Return ``value`` as text with its whitespace kept, or ``None`` when blank.

    Status columns are compared verbatim, so ``"Close "`` must not read as
    ``"Close"``.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value != value:
        return None
    text = value if isinstance(value, str) else str(value)
    return text if text.strip() else None


def safe_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool) or value == "":
        return None
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def decimal_or_zero(value: Any) -> Decimal:
    """Quantity accessor: absent or non-numeric values count as ``0``."""

    result = safe_decimal(value)
    return result if result is not None else Decimal("0")


def round_half_up(value: Decimal, places: int = 0) -> Decimal:
    exponent = Decimal(1).scaleb(-places)
    return value.quantize(exponent, rounding=ROUND_HALF_UP)


def percent(part: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(round_half_up(Decimal(part) * 100 / Decimal(total)))


def pct(part: int, total: int) -> float:
    """Share of ``total`` as a percentage with one decimal place."""

    if total <= 0:
        return 0.0
    return float(round_half_up(Decimal(part) * 100 / Decimal(total), 1))
