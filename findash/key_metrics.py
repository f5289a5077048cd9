from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .growth import YearOverYear, year_over_year
from .metrics import FinancialDataSet
from .providers.models import StockQuote

POSITIVE = "positive"
NEGATIVE = "negative"
NEUTRAL = "neutral"


@dataclass(frozen=True)
class KeyMetric:
    label: str
    value: str
    change: str
    change_type: str

    def to_dict(self) -> dict:
        return {"label": self.label, "value": self.value, "change": self.change, "changeType": self.change_type}


def format_currency(value: Optional[float], compact: bool = False) -> str:
    if value is None:
        return "N/A"
    if compact:
        for threshold, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K")):
            if abs(value) >= threshold:
                return f"${value / threshold:.2f}{suffix}"
    return f"${value:,.2f}"


def signed_percent(value: float) -> str:
    return f"{'+' if value >= 0 else ''}{value:.2f}%"


def percent_or_na(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:.2f}%"


def _latest(series) -> Optional[float]:
    return series[-1].value if series else None


def market_cap(quote: StockQuote, data: FinancialDataSet) -> Optional[float]:
    if quote.market_cap:
        return quote.market_cap
    shares = _latest(data.get("sharesOutstanding").quarterly)
    if shares and quote.price:
        return quote.price * shares
    return None


def pe_ratio(quote: StockQuote, data: FinancialDataSet) -> Optional[float]:
    if quote.pe_ratio is not None:
        return quote.pe_ratio
    income = _latest(data.get("netIncome").annual)
    shares = _latest(data.get("sharesOutstanding").annual)
    if not income or not shares or not quote.price:
        return None
    return quote.price / (income / shares)


def fcf_yield(data: FinancialDataSet, cap: Optional[float]) -> float:
    quarterly = data.get("freeCashFlow").quarterly
    if len(quarterly) < 4 or not cap or cap <= 0:
        return 0.0
    ttm = sum(point.value or 0.0 for point in quarterly[-4:])
    return ttm / cap * 100


def _yoy_metric(label: str, yoy: Optional[YearOverYear], series) -> KeyMetric:
    if yoy is None:
        return KeyMetric(label, signed_percent(0.0), "No comparable quarter", NEUTRAL)
    previous = next(point.value for point in series if point.label == yoy.previous_label)
    return KeyMetric(
        label,
        signed_percent(yoy.growth),
        f"{yoy.description} (Last Year: {format_currency(previous or 0.0, True)})",
        POSITIVE if yoy.growth >= 0 else NEGATIVE,
    )


def _band(value: Optional[float], good: float) -> str:
    if value and value > good:
        return POSITIVE
    if value and value > 0:
        return NEUTRAL
    return NEGATIVE


def key_metrics(quote: StockQuote, data: FinancialDataSet) -> List[KeyMetric]:
    """Headline metrics grid for a quote and its derived financials."""

    cap = market_cap(quote, data)
    pe = pe_ratio(quote, data)
    revenue = data.get("revenue").quarterly
    earnings = data.get("netIncome").quarterly
    fcf = fcf_yield(data, cap)

    if quote.forward_pe and quote.pe_ratio:
        pe_change_type = POSITIVE if quote.forward_pe < quote.pe_ratio else NEGATIVE
    else:
        pe_change_type = NEUTRAL

    return [
        KeyMetric(
            "Market Cap",
            format_currency(cap, True),
            f"{signed_percent(quote.change_percent)} Today",
            POSITIVE if quote.change_percent >= 0 else NEGATIVE,
        ),
        KeyMetric(
            "P/E Ratio",
            f"{pe:.2f}" if pe is not None else "N/A",
            f"Forward P/E: {quote.forward_pe:.2f}" if quote.forward_pe else "No forward data",
            pe_change_type,
        ),
        _yoy_metric("Revenue YoY", year_over_year(revenue), revenue),
        _yoy_metric("Earnings YoY", year_over_year(earnings, turned_positive="Turned profitable"), earnings),
        KeyMetric("Dividend Yield", percent_or_na(quote.dividend_yield), "Annual payout", NEUTRAL),
        KeyMetric("ROE", percent_or_na(quote.roe), "Return on Equity", _band(quote.roe, 15)),
        KeyMetric("ROA", percent_or_na(quote.roa), "Return on Assets", _band(quote.roa, 5)),
        KeyMetric(
            "FCF Yield",
            f"{fcf:.2f}%" if fcf > 0 else "N/A",
            "Free Cash Flow / Market Cap",
            _band(fcf, 5),
        ),
    ]
