from __future__ import annotations

import math
import re
from calendar import monthrange
from datetime import date, datetime
from typing import Any, Mapping, Optional

from dateutil import parser as date_parser


# Provider writes the literal string "None" for fields it could not fill.
MISSING_SENTINELS = {"None", "none", "null", "-", ""}

ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
NO_YEAR = datetime(1, 1, 1)


def is_missing(value: Any) -> bool:
    """Return True for null, absent or provider-sentinel values."""

    if value is None:
        return True
    if isinstance(value, str) and value.strip() in MISSING_SENTINELS:
        return True
    return False


def to_number(value: Any, default: float = 0.0) -> float:
    """Convert a raw numeric field to float, falling back to ``default``."""

    if is_missing(value) or isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.replace(",", "").strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def to_optional_number(value: Any) -> Optional[float]:
    """Like :func:`to_number` but keeps missing values as ``None``."""

    if is_missing(value):
        return None
    number = to_number(value, default=math.nan)
    return None if math.isnan(number) else number


def quarter_of_month(month: int) -> int:
    """Return the calendar quarter (1-4) containing ``month``."""

    return (month - 1) // 3 + 1


def last_day_of_month(year: int, month: int) -> date:
    """Return last calendar day of given month."""

    return date(year, month, monthrange(year, month)[1])


def _parse_date_string(value: str) -> Optional[date]:
    value = value.strip()
    if not value or value in MISSING_SENTINELS:
        return None
    match = ISO_DATE_RE.match(value)
    if match:
        try:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            return None
    try:
        parsed = date_parser.parse(value, default=NO_YEAR)
    except (ValueError, OverflowError):
        return None
    # Missing month or day fall back to January 1; a missing year drops the value.
    if parsed.year == NO_YEAR.year:
        return None
    return parsed.date()


def _parse_date_mapping(value: Mapping[str, Any]) -> Optional[date]:
    year = value.get("year")
    if year is None and value.get("fiscalYear") is not None:
        year = value.get("fiscalYear")
    month = value.get("month")
    if month is None:
        fiscal_quarter = value.get("fiscalQuarter")
        if isinstance(fiscal_quarter, str):
            fiscal_quarter = fiscal_quarter.strip().upper().lstrip("Q")
        month = int(to_number(fiscal_quarter)) * 3 - 2 if fiscal_quarter is not None else 1
    try:
        return date(int(year), int(month), 1)
    except (TypeError, ValueError):
        return None


def parse_end_date(value: Any) -> Optional[date]:
    """Return the calendar date encoded by a raw ``endDate`` value.

    Accepts ISO strings (including the provider's nanosecond form
    ``2024-03-31T00:00:00.000000000``), any other string dateutil can read,
    ``{"year", "month"}`` and ``{"fiscalYear", "fiscalQuarter"}`` mappings,
    ``date``/``datetime`` values and objects exposing ``end_date`` (such as a
    period key). Anything else yields ``None``; callers drop those records.
    """

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return _parse_date_string(value)
    if isinstance(value, Mapping):
        return _parse_date_mapping(value)
    end_date = getattr(value, "end_date", None)
    if isinstance(end_date, date):
        return end_date
    return None
