from __future__ import annotations

import logging
import os
from datetime import date, datetime, timezone
from typing import Any, List, Optional

import requests
from dateutil import tz

from .models import MarketIndex, PricePoint, StockQuote
from .utils import to_optional_number


LOGGER = logging.getLogger(__name__)

YAHOO_TIMEOUT_SECONDS = float(os.environ.get("YAHOO_TIMEOUT_SECONDS", "30"))
EASTERN = tz.gettz("America/New_York")

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/118.0.0.0 Safari/537.36"
)

MARKET_INDICES = {
    "SPY": "S&P 500",
    "QQQ": "Nasdaq",
    "^DJI": "Dow",
    "BTC-USD": "Bitcoin",
    "GC=F": "Gold",
    "CL=F": "Oil",
}


def _raw(node: Any, key: str) -> Optional[float]:
    """Read a quoteSummary field, which may be a bare number or ``{"raw": ...}``."""

    if not isinstance(node, dict):
        return None
    value = node.get(key)
    if isinstance(value, dict):
        value = value.get("raw")
    return to_optional_number(value)


def _raw_date(node: Any, key: str) -> Optional[str]:
    if not isinstance(node, dict):
        return None
    value = node.get(key)
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, dict):
        value = value.get("raw")
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc).date().isoformat()
    except (TypeError, ValueError, OverflowError):
        return None


def _percent(value: Optional[float]) -> Optional[float]:
    return value * 100 if value else None


class YahooFinanceProvider:
    """Fetch quotes and monthly price history from Yahoo Finance."""

    CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart/{symbol}"
    SUMMARY_URL = "https://query2.finance.yahoo.com/v10/finance/quoteSummary/{symbol}"
    SUMMARY_MODULES = ("price", "summaryDetail", "defaultKeyStatistics", "financialData", "calendarEvents")

    def __init__(self, session: Optional[requests.Session] = None) -> None:
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)

    def _get_json(self, url: str, params: Optional[dict] = None) -> dict:
        resp = self.session.get(url, params=params, timeout=YAHOO_TIMEOUT_SECONDS)
        resp.raise_for_status()
        return resp.json()

    def _quote_summary(self, symbol: str, modules) -> Optional[dict]:
        data = self._get_json(self.SUMMARY_URL.format(symbol=symbol), params={"modules": ",".join(modules)})
        results = (data.get("quoteSummary") or {}).get("result") or []
        return results[0] if results else None

    def get_quote(self, symbol: str) -> Optional[StockQuote]:
        summary = self._quote_summary(symbol, self.SUMMARY_MODULES)
        if not summary:
            return None
        price = summary.get("price") or {}
        detail = summary.get("summaryDetail") or {}
        financial = summary.get("financialData") or {}
        calendar = summary.get("calendarEvents") or {}
        earnings = calendar.get("earnings") if isinstance(calendar, dict) else None
        return StockQuote(
            symbol=symbol,
            name=price.get("longName") or price.get("shortName") or symbol,
            exchange=price.get("exchangeName") or "NASDAQ",
            price=_raw(price, "regularMarketPrice") or 0.0,
            change=_raw(price, "regularMarketChange") or 0.0,
            change_percent=(_raw(price, "regularMarketChangePercent") or 0.0) * 100,
            last_updated=datetime.now(EASTERN).strftime("%B %d, %Y %I:%M %p"),
            pe_ratio=_raw(detail, "trailingPE"),
            forward_pe=_raw(detail, "forwardPE"),
            dividend_yield=_percent(_raw(detail, "dividendYield")) or 0.0,
            market_cap=_raw(detail, "marketCap") or _raw(price, "marketCap"),
            volume=_raw(detail, "volume"),
            avg_volume=_raw(detail, "averageVolume"),
            high_52_week=_raw(detail, "fiftyTwoWeekHigh"),
            low_52_week=_raw(detail, "fiftyTwoWeekLow"),
            beta=_raw(detail, "beta"),
            roa=_percent(_raw(financial, "returnOnAssets")),
            roe=_percent(_raw(financial, "returnOnEquity")),
            earnings_date=_raw_date(earnings, "earningsDate"),
            ex_dividend_date=_raw_date(calendar, "exDividendDate"),
        )

    def get_monthly_prices(self, symbol: str, start: date, end: Optional[date] = None) -> List[PricePoint]:
        end = end or date.today()
        params = {
            "period1": int(datetime(start.year, start.month, start.day, tzinfo=timezone.utc).timestamp()),
            "period2": int(datetime(end.year, end.month, end.day, 23, 59, tzinfo=timezone.utc).timestamp()),
            "interval": "1mo",
        }
        data = self._get_json(self.CHART_URL.format(symbol=symbol), params=params)
        results = (data.get("chart") or {}).get("result") or []
        if not results:
            return []
        result = results[0]
        timestamps = result.get("timestamp") or []
        quotes = (result.get("indicators") or {}).get("quote") or [{}]
        closes = quotes[0].get("close") or []
        points: List[PricePoint] = []
        for ts, close in zip(timestamps, closes):
            if close is None:
                continue
            day = datetime.fromtimestamp(int(ts), tz=timezone.utc).date()
            points.append(PricePoint(date=day, close=float(close)))
        return points

    def get_market_indices(self) -> List[MarketIndex]:
        indices: List[MarketIndex] = []
        for symbol, name in MARKET_INDICES.items():
            try:
                summary = self._quote_summary(symbol, ("price", "summaryDetail"))
            except Exception as exc:
                LOGGER.debug("Yahoo index fetch failed for %s: %s", symbol, exc)
                continue
            price = (summary or {}).get("price") or {}
            indices.append(
                MarketIndex(
                    symbol=symbol,
                    name=name,
                    price=_raw(price, "regularMarketPrice") or 0.0,
                    change=_raw(price, "regularMarketChange") or 0.0,
                    change_percent=(_raw(price, "regularMarketChangePercent") or 0.0) * 100,
                )
            )
        return indices
