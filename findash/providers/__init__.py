"""Raw data providers for the dashboard."""

from .aggregator import StockDataProvider, SymbolBundle
from .models import (
    DividendRecord,
    EarningsReport,
    FundamentalRecord,
    MarketIndex,
    PricePoint,
    StockQuote,
)
from .realtime_db import RealtimeDatabase
from .yahoo_finance import YahooFinanceProvider

__all__ = [
    "StockDataProvider",
    "SymbolBundle",
    "RealtimeDatabase",
    "YahooFinanceProvider",
    "FundamentalRecord",
    "DividendRecord",
    "EarningsReport",
    "PricePoint",
    "StockQuote",
    "MarketIndex",
]
