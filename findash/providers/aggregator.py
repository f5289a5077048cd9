from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from .models import MarketIndex, PricePoint, StockQuote
from .realtime_db import RealtimeDatabase
from .yahoo_finance import YahooFinanceProvider

LOGGER = logging.getLogger(__name__)

PRICE_HISTORY_START_YEAR = int(os.environ.get("PRICE_HISTORY_START_YEAR", "2005"))
MAX_COMPARISONS = int(os.environ.get("MAX_COMPARISONS", "3"))
FETCH_WORKERS = int(os.environ.get("FETCH_WORKERS", "4"))


def _as_list(payload: Any) -> List[Any]:
    # The database returns arrays as objects keyed by index once an entry is deleted.
    if isinstance(payload, list):
        return [item for item in payload if item is not None]
    if isinstance(payload, dict):
        return [item for item in payload.values() if item is not None]
    return []


@dataclass(frozen=True)
class SymbolBundle:
    """Every raw input needed to derive the dashboard for one symbol."""

    symbol: str
    annual: List[Any] = field(default_factory=list)
    quarterly: List[Any] = field(default_factory=list)
    dividends: List[Any] = field(default_factory=list)
    earnings: List[Any] = field(default_factory=list)
    quote: Optional[StockQuote] = None

    @property
    def has_fundamentals(self) -> bool:
        return bool(self.annual or self.quarterly)


class StockDataProvider:
    """Fetch raw fundamentals and market data, treating upstream failures as no data."""

    def __init__(
        self,
        db: Optional[RealtimeDatabase] = None,
        market: Optional[YahooFinanceProvider] = None,
    ) -> None:
        self.db = db or RealtimeDatabase()
        self.market = market or YahooFinanceProvider()

    def _fetch_documents(self, kind: str, getter, symbol: str) -> List[Any]:
        try:
            payload = getter(symbol)
        except Exception as exc:
            LOGGER.debug("Realtime DB %s fetch failed for %s: %s", kind, symbol, exc)
            return []
        records = _as_list(payload)
        if payload is not None and not records:
            LOGGER.debug("Unexpected %s payload for %s: %r", kind, symbol, type(payload))
        return records

    def get_annual(self, symbol: str) -> List[Any]:
        return self._fetch_documents("annual", self.db.get_annual, symbol)

    def get_quarterly(self, symbol: str) -> List[Any]:
        return self._fetch_documents("quarterly", self.db.get_quarterly, symbol)

    def get_dividends(self, symbol: str) -> List[Any]:
        return self._fetch_documents("dividend", self.db.get_dividends, symbol)

    def get_earnings(self, symbol: str) -> List[Any]:
        return self._fetch_documents("earnings", self.db.get_earnings, symbol)

    def get_quote(self, symbol: str) -> Optional[StockQuote]:
        try:
            return self.market.get_quote(symbol)
        except Exception as exc:
            LOGGER.debug("Yahoo quote fetch failed for %s: %s", symbol, exc)
            return None

    def get_monthly_prices(self, symbol: str, start: Optional[date] = None) -> List[PricePoint]:
        start = start or date(PRICE_HISTORY_START_YEAR, 1, 1)
        try:
            return self.market.get_monthly_prices(symbol, start)
        except Exception as exc:
            LOGGER.debug("Yahoo price history fetch failed for %s: %s", symbol, exc)
            return []

    def get_market_indices(self) -> List[MarketIndex]:
        try:
            return self.market.get_market_indices()
        except Exception as exc:
            LOGGER.debug("Yahoo market index fetch failed: %s", exc)
            return []

    def fetch_bundle(self, symbol: str) -> SymbolBundle:
        symbol = symbol.upper()
        return SymbolBundle(
            symbol=symbol,
            annual=self.get_annual(symbol),
            quarterly=self.get_quarterly(symbol),
            dividends=self.get_dividends(symbol),
            earnings=self.get_earnings(symbol),
            quote=self.get_quote(symbol),
        )

    def fetch_many(self, symbols: Iterable[str]) -> Dict[str, SymbolBundle]:
        """Fetch the primary symbol plus up to ``MAX_COMPARISONS`` others concurrently."""

        unique: List[str] = []
        for symbol in symbols:
            symbol = symbol.upper()
            if symbol and symbol not in unique:
                unique.append(symbol)
        unique = unique[: MAX_COMPARISONS + 1]
        if not unique:
            return {}
        with ThreadPoolExecutor(max_workers=min(FETCH_WORKERS, len(unique))) as executor:
            futures = {symbol: executor.submit(self.fetch_bundle, symbol) for symbol in unique}
            return {symbol: future.result() for symbol, future in futures.items()}
