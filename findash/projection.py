from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from .providers.models import EarningsReport
from .series import PeriodKey, Series

DEFAULT_GROWTH_RATE = 15.0
DEFAULT_MULTIPLE = 22.0
DEFAULT_DESIRED_RETURN = 15.0
DEFAULT_PE = 20.0
DEFAULT_PFCF = 20.0
PROJECTION_YEARS = 5


@dataclass(frozen=True)
class ProjectionPoint:
    year: int
    price: float
    per_share: float

    def to_dict(self) -> dict:
        return {"year": str(self.year), "price": self.price, "perShare": self.per_share}


@dataclass(frozen=True)
class Projection:
    final_per_share: float
    final_price: float
    cagr: float
    entry_price: float
    points: Tuple[ProjectionPoint, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "finalPerShare": self.final_per_share,
            "finalPrice": self.final_price,
            "cagr": self.cagr,
            "entryPrice": self.entry_price,
            "points": [point.to_dict() for point in self.points],
        }


class ProjectionEngine:
    """Project a price path from a per-share figure, a growth rate and an exit multiple."""

    def __init__(self, years: int = PROJECTION_YEARS) -> None:
        self.years = years

    def project(
        self,
        per_share: Optional[float],
        price: float,
        growth_pct: float = DEFAULT_GROWTH_RATE,
        multiple: float = DEFAULT_MULTIPLE,
        desired_pct: float = DEFAULT_DESIRED_RETURN,
        start_year: Optional[int] = None,
    ) -> Optional[Projection]:
        if not per_share or price <= 0:
            return None
        years = self.years
        final_per_share = per_share
        for _ in range(years):
            final_per_share *= 1 + growth_pct / 100
        final_price = final_per_share * multiple
        if final_price <= 0:
            return None
        cagr = ((final_price / price) ** (1 / years) - 1) * 100
        entry_price = final_price / (1 + desired_pct / 100) ** years
        start_year = start_year or date.today().year
        points = [ProjectionPoint(start_year, price, per_share)]
        for i in range(1, years + 1):
            points.append(
                ProjectionPoint(
                    start_year + i,
                    price * (1 + cagr / 100) ** i,
                    per_share * (1 + growth_pct / 100) ** i,
                )
            )
        return Projection(final_per_share, final_price, cagr, entry_price, tuple(points))


def _report(item: Any) -> Optional[EarningsReport]:
    if isinstance(item, EarningsReport):
        return item
    if isinstance(item, Mapping):
        return EarningsReport.from_raw(item)
    return None


def _report_sort_key(report: EarningsReport) -> date:
    if report.end_date is not None:
        return report.end_date
    period = PeriodKey.parse_label(report.quarter or "")
    return period.end_date if period else date.min


def ttm_eps(reports: Iterable[Any]) -> Optional[float]:
    """Sum of the four most recent reported EPS figures, rounded to cents.

    ``None`` when fewer than four reports exist or none of the latest four
    carries a numeric EPS.
    """

    parsed = [report for report in (_report(item) for item in reports or []) if report is not None]
    if len(parsed) < 4:
        return None
    latest = sorted(parsed, key=_report_sort_key, reverse=True)[:4]
    values = [report.reported_eps for report in latest if report.reported_eps is not None]
    if not values:
        return None
    return round(sum(values), 2)


def estimate_eps(price: float, pe: Optional[float]) -> Optional[float]:
    """EPS implied by price and P/E, or by a P/E of 20 when none is known."""

    if price and pe and pe > 0:
        return round(price / pe, 2)
    if price and price > 0:
        return round(price / DEFAULT_PE, 2)
    return None


@dataclass(frozen=True)
class FcfInputs:
    per_share: Optional[float]
    pfcf: float


def fcf_per_share(fcf: Series, price: float, market_cap: Optional[float]) -> FcfInputs:
    """FCF per share derived from market cap and trailing four-quarter FCF."""

    if len(fcf) < 4 or not price or not market_cap:
        return FcfInputs(None, DEFAULT_PFCF)
    ttm_fcf = sum(point.value or 0.0 for point in fcf[-4:])
    if ttm_fcf == 0:
        return FcfInputs(None, DEFAULT_PFCF)
    pfcf = market_cap / ttm_fcf
    return FcfInputs(round(price / pfcf, 2), round(pfcf, 2))


def projection_inputs(reports: List[Any], price: float, pe: Optional[float]) -> Optional[float]:
    """Per-share earnings for a projection: reported TTM EPS, else an estimate."""

    eps = ttm_eps(reports)
    if eps is not None:
        return eps
    return estimate_eps(price, pe)
