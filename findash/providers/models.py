from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Optional

from .utils import parse_end_date, to_number, to_optional_number


@dataclass(frozen=True)
class FundamentalRecord:
    """One fiscal period of fundamentals for one symbol, as received."""

    end_date: Optional[date]
    total_revenue: float = 0.0
    net_income: float = 0.0
    cash_and_short_term_investments: float = 0.0
    short_term_investments: Any = None
    long_term_debt: float = 0.0
    common_stock_shares_outstanding: float = 0.0
    cost_of_goods_and_services_sold: float = 0.0
    operating_cashflow: float = 0.0
    capital_expenditures: float = 0.0
    dividend_payout: float = 0.0

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "FundamentalRecord":
        return cls(
            end_date=parse_end_date(raw.get("endDate")),
            total_revenue=to_number(raw.get("totalRevenue")),
            net_income=to_number(raw.get("netIncome")),
            cash_and_short_term_investments=to_number(raw.get("cashAndShortTermInvestments")),
            short_term_investments=raw.get("shortTermInvestments"),
            long_term_debt=to_number(raw.get("longTermDebt")),
            common_stock_shares_outstanding=to_number(raw.get("commonStockSharesOutstanding")),
            cost_of_goods_and_services_sold=to_number(raw.get("costofGoodsAndServicesSold")),
            operating_cashflow=to_number(raw.get("operatingCashflow")),
            capital_expenditures=to_number(raw.get("capitalExpenditures")),
            dividend_payout=to_number(raw.get("dividendPayout")),
        )


@dataclass(frozen=True)
class DividendRecord:
    """A single dividend payment event."""

    paid_on: Optional[date]
    amount: float

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "DividendRecord":
        return cls(paid_on=parse_end_date(raw.get("Date")), amount=to_number(raw.get("Dividends")))


@dataclass(frozen=True)
class EarningsReport:
    """Quarterly EPS report keyed by end date or by a ``Q1 2024`` label."""

    end_date: Optional[date]
    quarter: Optional[str]
    reported_eps: Optional[float]

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "EarningsReport":
        quarter = raw.get("quarter")
        return cls(
            end_date=parse_end_date(raw.get("endDate")),
            quarter=str(quarter).strip() if quarter else None,
            reported_eps=to_optional_number(raw.get("reportedEPS")),
        )


@dataclass(frozen=True)
class PricePoint:
    """Monthly closing price."""

    date: date
    close: float


@dataclass
class StockQuote:
    """Live quote and summary statistics for a symbol."""

    symbol: str
    name: str
    exchange: str
    price: float
    change: float
    change_percent: float
    last_updated: str
    pe_ratio: Optional[float] = None
    forward_pe: Optional[float] = None
    dividend_yield: Optional[float] = None
    market_cap: Optional[float] = None
    volume: Optional[float] = None
    avg_volume: Optional[float] = None
    high_52_week: Optional[float] = None
    low_52_week: Optional[float] = None
    beta: Optional[float] = None
    roa: Optional[float] = None
    roe: Optional[float] = None
    earnings_date: Optional[str] = None
    ex_dividend_date: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "exchange": self.exchange,
            "price": self.price,
            "change": self.change,
            "changePercent": self.change_percent,
            "lastUpdated": self.last_updated,
            "peRatio": self.pe_ratio,
            "forwardPE": self.forward_pe,
            "dividendYield": self.dividend_yield,
            "marketCap": self.market_cap,
            "volume": self.volume,
            "avgVolume": self.avg_volume,
            "high52Week": self.high_52_week,
            "low52Week": self.low_52_week,
            "beta": self.beta,
            "roa": self.roa,
            "roe": self.roe,
            "earningsDate": self.earnings_date,
            "exDividendDate": self.ex_dividend_date,
        }


@dataclass
class MarketIndex:
    """Headline index or commodity quote."""

    symbol: str
    name: str
    price: float
    change: float
    change_percent: float

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "price": self.price,
            "change": self.change,
            "changePercent": self.change_percent,
        }
