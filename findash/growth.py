from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from .series import Series

CAGR_WINDOWS = (1, 3, 5, 10)
# Minimum history before the longer windows are reported at all.
LONG_WINDOW_MIN_POINTS = {
    False: {5: 6, 10: 11},
    True: {5: 24, 10: 44},
}
YOY_LOOKBACK = 6


def _values(series: Series) -> List[float]:
    return [point.value or 0.0 for point in series]


def growth_rate(start: float, end: float, years: int) -> float:
    """Annualised growth from ``start`` to ``end``, sign-aware for losses.

    A positive start that turns into a loss over more than one year has no
    real annualised rate; ``-1.0`` is returned as a sentinel in that case.
    """

    if start == 0:
        return 0.0
    if start < 0 < end:
        return (end - start) / abs(start) / years
    if start < 0 and end < 0:
        if abs(end) < abs(start):
            return (1 + (abs(start) - abs(end)) / abs(start)) ** (1 / years) - 1
        return -((1 + (abs(end) - abs(start)) / abs(start)) ** (1 / years) - 1)
    ratio = end / start
    if ratio < 0:
        if years == 1:
            return ratio - 1
        return -1.0
    return ratio ** (1 / years) - 1


def cagr(series: Series, years: int, quarterly: bool = False) -> float:
    """Compound annual growth over ``years``; 0 when history is too short.

    Quarterly series compare trailing-four-quarter sums: the latest four
    quarters against the four quarters ending ``years`` earlier.
    """

    values = _values(series)
    if years <= 0 or len(values) < years + 1:
        return 0.0
    if not quarterly:
        return growth_rate(values[-1 - years], values[-1], years)
    window = years * 4 + 4
    if len(values) < window:
        return 0.0
    start_idx = len(values) - window
    start = sum(values[start_idx:start_idx + 4])
    end = sum(values[-4:])
    return growth_rate(start, end, years)


def cagr_summary(series: Series, quarterly: bool = False) -> Dict[str, Optional[float]]:
    """CAGR percentages over 1, 3, 5 and 10 years keyed ``1Y``..``10Y``."""

    minimums = LONG_WINDOW_MIN_POINTS[quarterly]
    summary: Dict[str, Optional[float]] = {}
    for years in CAGR_WINDOWS:
        needed = minimums.get(years, 0)
        if len(series) < needed:
            summary[f"{years}Y"] = None
            continue
        summary[f"{years}Y"] = cagr(series, years, quarterly) * 100
    return summary


@dataclass(frozen=True)
class YearOverYear:
    current_label: str
    previous_label: str
    growth: float
    description: str

    def to_dict(self) -> dict:
        return {
            "current": self.current_label,
            "previous": self.previous_label,
            "growth": self.growth,
            "description": self.description,
        }


def year_over_year(series: Series, turned_positive: str = "Turned positive") -> Optional[YearOverYear]:
    """Compare the latest point with the same quarter a year earlier.

    The matching quarter is searched up to six points back so gaps in the
    history do not break the comparison. Returns ``None`` when no such point
    exists or when the earlier value is zero.
    """

    if len(series) < 2:
        return None
    latest = series[-1]
    previous = None
    for offset in range(1, YOY_LOOKBACK + 1):
        idx = len(series) - 1 - offset
        if idx < 0:
            break
        if series[idx].period.quarter == latest.period.quarter:
            previous = series[idx]
            break
    if previous is None:
        return None
    current_value = latest.value or 0.0
    previous_value = previous.value or 0.0
    if previous_value == 0:
        return None
    base = abs(previous_value)
    if previous_value < 0 < current_value:
        growth = (current_value - previous_value) / base * 100
        description = turned_positive
    elif previous_value < 0 and current_value < 0:
        if abs(current_value) < base:
            growth = (base - abs(current_value)) / base * 100
            description = "Reduced loss"
        else:
            growth = -(abs(current_value) - base) / base * 100
            description = "Increased loss"
    else:
        growth = (current_value - previous_value) / base * 100
        description = "Growth" if growth >= 0 else "Decline"
    return YearOverYear(latest.label, previous.label, growth, description)


class GrowthAnalyzer:
    """Growth figures for one series; see :func:`cagr` and :func:`year_over_year`."""

    cagr = staticmethod(cagr)
    summary = staticmethod(cagr_summary)
    year_over_year = staticmethod(year_over_year)
