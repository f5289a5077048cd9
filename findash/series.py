from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .providers.utils import last_day_of_month, parse_end_date, quarter_of_month

LOGGER = logging.getLogger(__name__)

QUARTER_LABEL_RE = re.compile(r"^Q([1-4])\s+(\d{4})$")
YEAR_LABEL_RE = re.compile(r"^(\d{4})$")


@dataclass(frozen=True, order=True)
class PeriodKey:
    """Fiscal period: a bare year, or a year plus quarter 1-4."""

    year: int
    quarter: Optional[int] = None

    def __post_init__(self) -> None:
        if self.quarter is not None and not 1 <= self.quarter <= 4:
            raise ValueError(f"quarter must be 1-4, got {self.quarter}")

    @property
    def is_quarterly(self) -> bool:
        return self.quarter is not None

    @property
    def label(self) -> str:
        if self.quarter is None:
            return str(self.year)
        return f"Q{self.quarter} {self.year}"

    @property
    def end_date(self) -> date:
        if self.quarter is None:
            return date(self.year, 12, 31)
        return last_day_of_month(self.year, self.quarter * 3)

    @classmethod
    def from_date(cls, value: date, quarterly: bool) -> "PeriodKey":
        if quarterly:
            return cls(value.year, quarter_of_month(value.month))
        return cls(value.year)

    @classmethod
    def parse_label(cls, label: str) -> Optional["PeriodKey"]:
        label = (label or "").strip()
        match = QUARTER_LABEL_RE.match(label)
        if match:
            return cls(int(match.group(2)), int(match.group(1)))
        match = YEAR_LABEL_RE.match(label)
        if match:
            return cls(int(match.group(1)))
        return None

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class DataPoint:
    """One value of a series; ``None`` marks a value that could not be computed."""

    period: PeriodKey
    value: Optional[float]

    @property
    def label(self) -> str:
        return self.period.label

    def to_dict(self) -> dict:
        return {"year": self.period.label, "value": 0 if self.value is None else self.value}


Series = Tuple[DataPoint, ...]


def parse_period(value: Any, quarterly: bool) -> Optional[PeriodKey]:
    """Return the period a raw end date falls in, or ``None`` when unparseable."""

    if isinstance(value, PeriodKey):
        if value.is_quarterly != quarterly:
            return None
        return value
    parsed = parse_end_date(value)
    if parsed is None:
        return None
    return PeriodKey.from_date(parsed, quarterly)


def series_values(series: Series) -> List[Optional[float]]:
    return [point.value for point in series]


def series_to_list(series: Series) -> List[dict]:
    return [point.to_dict() for point in series]


def filter_recent(series: Series, years: int, quarterly: bool = False) -> Series:
    """Keep the trailing ``years`` worth of points."""

    if years <= 0:
        return ()
    count = years * 4 if quarterly else years
    return tuple(series[-count:])


class SeriesNormalizer:
    """Turn raw period records into a sorted, de-duplicated :data:`Series`.

    ``extractor`` receives each raw record and returns its value (or ``None``).
    Records whose end date cannot be parsed are dropped. When two records land
    in the same period, the one with the later end date wins.
    """

    def __init__(self, date_field: str = "endDate") -> None:
        self.date_field = date_field

    def _record_date(self, record: Any) -> Any:
        if isinstance(record, dict):
            return record.get(self.date_field)
        if isinstance(record, DataPoint):
            return record.period
        return getattr(record, "end_date", None)

    def parse_records(self, records: Any, quarterly: bool) -> List[Tuple[date, PeriodKey, Any]]:
        """Return ``(end_date, period, record)`` for each usable record, sorted by date."""

        if not isinstance(records, (list, tuple)):
            if records is not None:
                LOGGER.debug("Ignoring non-list payload of type %s", type(records).__name__)
            return []
        parsed: List[Tuple[date, PeriodKey, Any]] = []
        for record in records:
            if not isinstance(record, dict) and not hasattr(record, "end_date") and not isinstance(record, DataPoint):
                LOGGER.debug("Ignoring malformed record %r", record)
                continue
            raw_date = self._record_date(record)
            period = parse_period(raw_date, quarterly)
            if period is None:
                LOGGER.debug("Dropping record with unparseable end date %r", raw_date)
                continue
            end = parse_end_date(raw_date) or period.end_date
            parsed.append((end, period, record))
        parsed.sort(key=lambda item: (item[0], item[1]))
        latest: Dict[PeriodKey, Tuple[date, PeriodKey, Any]] = {}
        for item in parsed:
            latest[item[1]] = item
        return sorted(latest.values(), key=lambda item: item[1])

    def normalize(
        self,
        records: Any,
        extractor: Callable[[Any], Optional[float]],
        quarterly: bool = False,
    ) -> Series:
        return tuple(
            DataPoint(period, extractor(record)) for _, period, record in self.parse_records(records, quarterly)
        )


def series_from_pairs(pairs: Iterable[Tuple[str, Optional[float]]]) -> Series:
    """Build a series from ``(label, value)`` pairs, mainly for fixtures and reports."""

    points = []
    for label, value in pairs:
        period = PeriodKey.parse_label(label)
        if period is None:
            raise ValueError(f"invalid period label: {label!r}")
        points.append(DataPoint(period, value))
    points.sort(key=lambda point: point.period)
    return tuple(points)
