from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

from .providers.models import DividendRecord, FundamentalRecord
from .providers.utils import to_number
from .series import DataPoint, PeriodKey, Series, SeriesNormalizer, series_to_list

LOGGER = logging.getLogger(__name__)

METRICS = (
    "revenue",
    "netIncome",
    "cash",
    "debt",
    "sharesOutstanding",
    "grossMargin",
    "netMargin",
    "freeCashFlow",
    "capex",
    "operatingCashFlow",
    "payoutRatio",
)
FLOW_METRICS = ("revenue", "netIncome", "freeCashFlow", "capex", "operatingCashFlow")
BALANCE_METRICS = ("cash", "debt", "sharesOutstanding", "payoutRatio")
MARGIN_METRICS = ("grossMargin", "netMargin")


@dataclass(frozen=True)
class MetricSeries:
    annual: Series = ()
    quarterly: Series = ()
    ttm: Series = ()

    def to_dict(self, include_ttm: bool = True) -> dict:
        out = {"annual": series_to_list(self.annual), "quarterly": series_to_list(self.quarterly)}
        if include_ttm:
            out["ttm"] = series_to_list(self.ttm)
        return out


@dataclass(frozen=True)
class FinancialDataSet:
    """All derived series for one symbol, keyed by metric name."""

    symbol: str
    metrics: Mapping[str, MetricSeries] = field(default_factory=dict)
    dividends: Series = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "metrics", MappingProxyType(dict(self.metrics)))

    def __getitem__(self, name: str) -> MetricSeries:
        return self.metrics[name]

    def get(self, name: str) -> MetricSeries:
        return self.metrics.get(name, MetricSeries())

    @property
    def is_empty(self) -> bool:
        return not any(series.annual or series.quarterly for series in self.metrics.values())

    def to_dict(self) -> dict:
        out = {name: series.to_dict() for name, series in self.metrics.items()}
        out["dividends"] = {"quarterly": series_to_list(self.dividends)}
        return out


def _fundamental_records(raw: Any) -> List[FundamentalRecord]:
    if not isinstance(raw, (list, tuple)):
        return []
    records = []
    for item in raw:
        if isinstance(item, FundamentalRecord):
            records.append(item)
        elif isinstance(item, Mapping):
            records.append(FundamentalRecord.from_raw(item))
        else:
            LOGGER.debug("Ignoring malformed fundamentals record %r", item)
    return records


def _cash(record: FundamentalRecord) -> float:
    short_term = record.short_term_investments
    if short_term is None or short_term == "None":
        return record.cash_and_short_term_investments
    return record.cash_and_short_term_investments + to_number(short_term)


def _optional(value: Any) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return float(value)


class DerivedMetricsBuilder:
    """Build a :class:`FinancialDataSet` from raw annual, quarterly and dividend records.

    Derivation runs in two phases: raw per-period fields are laid out in a
    frame (including auxiliary columns such as the dividend payout), then
    every metric column is mapped to fresh :class:`DataPoint` tuples.
    """

    def __init__(self, normalizer: Optional[SeriesNormalizer] = None) -> None:
        self.normalizer = normalizer or SeriesNormalizer()

    def frame(self, raw: Any, quarterly: bool) -> pd.DataFrame:
        rows = []
        for end, period, record in self.normalizer.parse_records(_fundamental_records(raw), quarterly):
            rows.append(
                {
                    "period": period,
                    "end_date": end,
                    "revenue": record.total_revenue,
                    "netIncome": record.net_income,
                    "cogs": record.cost_of_goods_and_services_sold,
                    "cash": _cash(record),
                    "debt": record.long_term_debt,
                    "sharesOutstanding": record.common_stock_shares_outstanding,
                    "operatingCashFlow": record.operating_cashflow,
                    "capitalExpenditures": record.capital_expenditures,
                    "dividendPayout": record.dividend_payout,
                }
            )
        return pd.DataFrame(rows)

    @staticmethod
    def derive(df: pd.DataFrame, quarterly: bool) -> pd.DataFrame:
        if df.empty:
            return df
        df = df.copy()
        revenue = df["revenue"]
        df["freeCashFlow"] = df["operatingCashFlow"] - df["capitalExpenditures"]
        df["capex"] = df["capitalExpenditures"].abs()
        df["grossMargin"] = ((revenue - df["cogs"]) / revenue * 100).where((revenue != 0) & (df["cogs"] != 0))
        df["netMargin"] = (df["netIncome"] / revenue * 100).where((revenue != 0) & (df["netIncome"] != 0))
        if quarterly:
            income = df["netIncome"].rolling(4, min_periods=4).sum()
            payout = df["dividendPayout"].rolling(4, min_periods=4).sum()
            ratio = (payout / income * 100).where(income > 0, 0.0)
            df["payoutRatio"] = ratio.where(income.notna())
        else:
            df["payoutRatio"] = (df["dividendPayout"] / df["netIncome"] * 100).where(df["netIncome"] > 0, 0.0)
        return df

    @staticmethod
    def ttm(df: pd.DataFrame) -> pd.DataFrame:
        """Trailing-twelve-month view of a derived quarterly frame."""

        if len(df) < 4:
            return pd.DataFrame(columns=["period", *METRICS])
        out = pd.DataFrame({"period": df["period"]})
        for name in FLOW_METRICS:
            out[name] = df[name].rolling(4, min_periods=4).sum()
        for name in BALANCE_METRICS:
            out[name] = df[name]
        for name in MARGIN_METRICS:
            out[name] = df[name].fillna(0.0).rolling(4, min_periods=4).mean()
        return out.iloc[3:]

    @staticmethod
    def to_series(df: pd.DataFrame, column: str) -> Series:
        if df.empty or column not in df:
            return ()
        return tuple(DataPoint(period, _optional(value)) for period, value in zip(df["period"], df[column]))

    def dividends(self, raw: Any) -> Series:
        """Sum dividend events per calendar quarter of their payment date."""

        if not isinstance(raw, (list, tuple)):
            return ()
        if len(raw) == 1 and isinstance(raw[0], Mapping) and raw[0].get("Date") == "empty":
            return ()
        rows = []
        for item in raw:
            if not isinstance(item, Mapping):
                continue
            event = DividendRecord.from_raw(item)
            if not event.amount or event.paid_on is None:
                LOGGER.debug("Skipping dividend event %r", item)
                continue
            rows.append({"period": PeriodKey.from_date(event.paid_on, quarterly=True), "amount": event.amount})
        if not rows:
            return ()
        totals = pd.DataFrame(rows).groupby("period", sort=True)["amount"].sum()
        return tuple(DataPoint(period, float(amount)) for period, amount in totals.items())

    def build(self, symbol: str, annual: Any, quarterly: Any, dividends: Any = None) -> FinancialDataSet:
        annual_df = self.derive(self.frame(annual, quarterly=False), quarterly=False)
        quarterly_df = self.derive(self.frame(quarterly, quarterly=True), quarterly=True)
        ttm_df = self.ttm(quarterly_df) if not quarterly_df.empty else pd.DataFrame()
        metrics: Dict[str, MetricSeries] = {}
        for name in METRICS:
            metrics[name] = MetricSeries(
                annual=self.to_series(annual_df, name),
                quarterly=self.to_series(quarterly_df, name),
                ttm=self.to_series(ttm_df, name),
            )
        return FinancialDataSet(symbol=symbol.upper(), metrics=metrics, dividends=self.dividends(dividends))
