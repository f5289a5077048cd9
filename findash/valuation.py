from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional

import pandas as pd

from .metrics import FinancialDataSet
from .providers.models import PricePoint
from .series import PeriodKey, Series

LOGGER = logging.getLogger(__name__)

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
TRAILING_QUARTERS = 4
RATIOS = ("pe", "ps", "pfcf", "pocf")


@dataclass(frozen=True)
class ValuationPoint:
    year: int
    month: int
    price: float
    pe: Optional[float] = None
    ps: Optional[float] = None
    pfcf: Optional[float] = None
    pocf: Optional[float] = None

    @property
    def label(self) -> str:
        return f"{MONTH_NAMES[self.month - 1]} {self.year}"

    def to_dict(self) -> dict:
        return {
            "date": self.label,
            "price": self.price,
            "pe": self.pe,
            "ps": self.ps,
            "pfcf": self.pfcf,
            "pocf": self.pocf,
        }


def reference_date(period: PeriodKey) -> date:
    """Middle of the last month of a quarter."""

    return date(period.year, (period.quarter or 4) * 3, 15)


def _value(series: Series, idx: int) -> float:
    if idx < len(series):
        return series[idx].value or 0.0
    return 0.0


def _ratio(price: float, trailing: float, shares: float) -> Optional[float]:
    if trailing <= 0 or shares <= 0:
        return None
    return price / (trailing / shares)


class ValuationAligner:
    """Attach trailing-four-quarter valuation multiples to monthly closes."""

    def match_quarter(self, periods: List[PeriodKey], when: date) -> int:
        """Index of the quarter a price date is valued against.

        An exact calendar-quarter match wins. Otherwise the latest quarter whose
        reference date is on or before ``when``; earlier prices use quarter 0.
        """

        target = PeriodKey.from_date(when, quarterly=True)
        for idx, period in enumerate(periods):
            if period == target:
                return idx
        if when < reference_date(periods[0]):
            return 0
        best = -1
        best_date: Optional[date] = None
        for idx, period in enumerate(periods):
            ref = reference_date(period)
            if ref <= when and (best_date is None or ref > best_date):
                best, best_date = idx, ref
        return best if best >= 0 else 0

    def align(self, data: FinancialDataSet, prices: Iterable[PricePoint]) -> List[ValuationPoint]:
        revenue = data.get("revenue").quarterly
        if not revenue:
            LOGGER.warning("No quarterly revenue for %s; skipping valuation", data.symbol)
            return []
        earnings = data.get("netIncome").quarterly
        fcf = data.get("freeCashFlow").quarterly
        ocf = data.get("operatingCashFlow").quarterly
        shares = data.get("sharesOutstanding").quarterly
        periods = [point.period for point in revenue]

        monthly: Dict[tuple, tuple] = {}
        for point in sorted(prices, key=lambda p: p.date):
            idx = self.match_quarter(periods, point.date)
            monthly[(point.date.year, point.date.month)] = (idx, point.close)

        results: List[ValuationPoint] = []
        for (year, month), (idx, price) in sorted(monthly.items()):
            included = [idx - j for j in range(TRAILING_QUARTERS) if idx - j >= 0]
            ratios = dict.fromkeys(RATIOS)
            if len(included) == TRAILING_QUARTERS:
                share_count = _value(shares, idx)
                ratios["pe"] = _ratio(price, sum(_value(earnings, i) for i in included), share_count)
                ratios["ps"] = _ratio(price, sum(_value(revenue, i) for i in included), share_count)
                ratios["pfcf"] = _ratio(price, sum(_value(fcf, i) for i in included), share_count)
                ratios["pocf"] = _ratio(price, sum(_value(ocf, i) for i in included), share_count)
            results.append(ValuationPoint(year=year, month=month, price=price, **ratios))
        return results


def valuation_stats(points: Iterable[ValuationPoint], metric: str) -> Optional[Dict[str, float]]:
    """Min, median and max of one ratio across the points that have it."""

    values = [getattr(point, metric) for point in points]
    values = [value for value in values if value is not None]
    if not values:
        return None
    column = pd.Series(values, dtype=float)
    return {"min": float(column.min()), "median": float(column.median()), "max": float(column.max())}


@dataclass(frozen=True)
class ValuationReport:
    symbol: str
    points: tuple = ()

    def stats(self) -> Dict[str, Optional[Dict[str, float]]]:
        return {metric: valuation_stats(self.points, metric) for metric in RATIOS}

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "metrics": [point.to_dict() for point in self.points],
            "stats": self.stats(),
        }
