from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from .cache import FINDASH_QUOTE_TTL_SECONDS, TTLCache
from .key_metrics import KeyMetric, key_metrics, market_cap
from .metrics import DerivedMetricsBuilder, FinancialDataSet
from .projection import (
    DEFAULT_DESIRED_RETURN,
    DEFAULT_GROWTH_RATE,
    DEFAULT_MULTIPLE,
    Projection,
    ProjectionEngine,
    fcf_per_share,
    projection_inputs,
)
from .providers import MarketIndex, StockDataProvider, StockQuote, SymbolBundle
from .providers.aggregator import MAX_COMPARISONS
from .valuation import ValuationAligner, ValuationReport

LOGGER = logging.getLogger(__name__)


class DashboardService:
    """Serve derived dashboard data for a symbol, consulting the cache first."""

    def __init__(
        self,
        provider: Optional[StockDataProvider] = None,
        cache: Optional[TTLCache] = None,
        builder: Optional[DerivedMetricsBuilder] = None,
    ) -> None:
        self.provider = provider or StockDataProvider()
        self.cache = cache if cache is not None else TTLCache()
        self.builder = builder or DerivedMetricsBuilder()
        self.aligner = ValuationAligner()
        self.engine = ProjectionEngine()

    def _build(self, symbol: str, annual: Any, quarterly: Any, dividends: Any) -> Optional[FinancialDataSet]:
        if not annual and not quarterly:
            LOGGER.warning("No fundamentals available for %s", symbol)
            return None
        return self.builder.build(symbol, annual, quarterly, dividends)

    def get_financial_data(self, symbol: str, nocache: bool = False) -> Optional[FinancialDataSet]:
        symbol = symbol.upper()
        key = f"financial_data_{symbol}"
        if nocache:
            self.cache.delete(key)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        data = self._build(
            symbol,
            self.provider.get_annual(symbol),
            self.provider.get_quarterly(symbol),
            self.provider.get_dividends(symbol),
        )
        if data is not None:
            self.cache.set(key, data)
        return data

    def get_stock_info(self, symbol: str) -> Optional[StockQuote]:
        symbol = symbol.upper()
        key = f"stock_info_{symbol}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        quote = self.provider.get_quote(symbol)
        if quote is not None:
            self.cache.set(key, quote, FINDASH_QUOTE_TTL_SECONDS)
        return quote

    def get_earnings(self, symbol: str) -> List[Any]:
        symbol = symbol.upper()
        key = f"earnings_{symbol}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        earnings = self.provider.get_earnings(symbol)
        if earnings:
            self.cache.set(key, earnings)
        return earnings

    def get_valuation(self, symbol: str) -> Optional[ValuationReport]:
        symbol = symbol.upper()
        key = f"valuation_metrics_{symbol}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        data = self.get_financial_data(symbol)
        if data is None:
            return None
        prices = self.provider.get_monthly_prices(symbol)
        if not prices:
            LOGGER.warning("No price history for %s; valuation unavailable", symbol)
            return None
        report = ValuationReport(symbol, tuple(self.aligner.align(data, prices)))
        self.cache.set(key, report, FINDASH_QUOTE_TTL_SECONDS)
        return report

    def get_market_indices(self) -> List[MarketIndex]:
        key = "market_indices_data"
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        indices = self.provider.get_market_indices()
        if indices:
            self.cache.set(key, indices, FINDASH_QUOTE_TTL_SECONDS)
        return indices

    def get_key_metrics(self, symbol: str) -> List[KeyMetric]:
        quote = self.get_stock_info(symbol)
        data = self.get_financial_data(symbol)
        if quote is None or data is None:
            return []
        return key_metrics(quote, data)

    def _store_bundle(self, bundle: SymbolBundle) -> Optional[FinancialDataSet]:
        data = self._build(bundle.symbol, bundle.annual, bundle.quarterly, bundle.dividends)
        if data is not None:
            self.cache.set(f"financial_data_{bundle.symbol}", data)
        if bundle.quote is not None:
            self.cache.set(f"stock_info_{bundle.symbol}", bundle.quote, FINDASH_QUOTE_TTL_SECONDS)
        if bundle.earnings:
            self.cache.set(f"earnings_{bundle.symbol}", bundle.earnings)
        return data

    def get_comparison(self, symbol: str, others: Iterable[str]) -> Dict[str, FinancialDataSet]:
        """Derived data for ``symbol`` and its comparison symbols, in request order."""

        symbols = [symbol.upper()]
        for other in others:
            other = other.upper()
            if other not in symbols and len(symbols) <= MAX_COMPARISONS:
                symbols.append(other)
        result: Dict[str, FinancialDataSet] = {}
        missing = []
        for sym in symbols:
            cached = self.cache.get(f"financial_data_{sym}")
            if cached is not None:
                result[sym] = cached
            elif sym not in missing:
                missing.append(sym)
        if missing:
            for sym, bundle in self.provider.fetch_many(missing).items():
                data = self._store_bundle(bundle)
                if data is not None:
                    result[sym] = data
        return {sym: result[sym] for sym in symbols if sym in result}

    def get_projection(
        self,
        symbol: str,
        mode: str = "earnings",
        growth_pct: float = DEFAULT_GROWTH_RATE,
        multiple: float = DEFAULT_MULTIPLE,
        desired_pct: float = DEFAULT_DESIRED_RETURN,
    ) -> Optional[Projection]:
        quote = self.get_stock_info(symbol)
        if quote is None:
            return None
        if mode == "earnings":
            per_share = projection_inputs(self.get_earnings(symbol), quote.price, quote.pe_ratio)
        elif mode == "fcf":
            data = self.get_financial_data(symbol)
            if data is None:
                return None
            fcf = data.get("freeCashFlow").quarterly
            per_share = fcf_per_share(fcf, quote.price, market_cap(quote, data)).per_share
        else:
            raise ValueError(f"unknown projection mode: {mode}")
        return self.engine.project(per_share, quote.price, growth_pct, multiple, desired_pct)
