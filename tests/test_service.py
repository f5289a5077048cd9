from datetime import date

import pytest

from findash.cache import TTLCache
from findash.providers.aggregator import SymbolBundle
from findash.providers.models import MarketIndex, PricePoint, StockQuote
from findash.service import DashboardService


QUARTER_ENDS = ["03-31", "06-30", "09-30", "12-31"]


def quarterly_records(count=8):
    return [
        {
            "endDate": f"{2020 + i // 4}-{QUARTER_ENDS[i % 4]}",
            "totalRevenue": 100 + i,
            "netIncome": 10,
            "operatingCashflow": 20,
            "capitalExpenditures": 5,
            "commonStockSharesOutstanding": 10,
        }
        for i in range(count)
    ]


ANNUAL = [
    {"endDate": "2020-12-31", "totalRevenue": 1000, "netIncome": 100, "commonStockSharesOutstanding": 10},
    {"endDate": "2021-12-31", "totalRevenue": 1500, "netIncome": 200, "commonStockSharesOutstanding": 10},
]


class StubProvider:
    def __init__(self, missing=()):
        self.missing = set(missing)
        self.calls = {}

    def _count(self, name):
        self.calls[name] = self.calls.get(name, 0) + 1

    def get_annual(self, symbol):
        self._count("annual")
        return [] if symbol in self.missing else ANNUAL

    def get_quarterly(self, symbol):
        self._count("quarterly")
        return [] if symbol in self.missing else quarterly_records()

    def get_dividends(self, symbol):
        return [{"Date": "empty"}]

    def get_earnings(self, symbol):
        self._count("earnings")
        return [{"quarter": f"Q{q} 2021", "reportedEPS": 1.0} for q in (1, 2, 3, 4)]

    def get_quote(self, symbol):
        self._count("quote")
        return StockQuote(symbol, symbol, "NASDAQ", 80.0, 1.0, 1.25, "now", pe_ratio=20.0, market_cap=800.0)

    def get_monthly_prices(self, symbol, start=None):
        return [PricePoint(date(2021, 12, 1), 80.0), PricePoint(date(2019, 1, 1), 40.0)]

    def get_market_indices(self):
        self._count("indices")
        return [MarketIndex("SPY", "S&P 500", 500.0, 1.0, 0.2)]

    def fetch_many(self, symbols):
        self._count("fetch_many")
        bundles = {}
        for symbol in symbols:
            if symbol in self.missing:
                bundles[symbol] = SymbolBundle(symbol)
            else:
                bundles[symbol] = SymbolBundle(symbol, annual=ANNUAL, quarterly=quarterly_records())
        return bundles


def make_service(**kwargs):
    provider = StubProvider(**kwargs)
    return DashboardService(provider=provider, cache=TTLCache()), provider


def test_financial_data_is_cached_and_nocache_refetches():
    service, provider = make_service()
    first = service.get_financial_data("aapl")
    second = service.get_financial_data("AAPL")

    assert first is second
    assert provider.calls["annual"] == 1
    assert first["revenue"].annual[-1].value == 1500.0

    service.get_financial_data("AAPL", nocache=True)
    assert provider.calls["annual"] == 2


def test_financial_data_none_when_no_fundamentals():
    service, _ = make_service(missing={"NONE"})
    assert service.get_financial_data("NONE") is None
    assert service.get_valuation("NONE") is None


def test_stock_info_cached():
    service, provider = make_service()
    assert service.get_stock_info("AAPL").price == 80.0
    service.get_stock_info("AAPL")
    assert provider.calls["quote"] == 1


def test_valuation_report():
    service, _ = make_service()
    report = service.get_valuation("AAPL")

    assert [p.label for p in report.points] == ["Jan 2019", "Dec 2021"]
    assert report.points[0].pe is None
    assert report.points[1].pe == pytest.approx(20.0)
    assert service.get_valuation("AAPL") is report


def test_key_metrics_from_quote_and_data():
    service, _ = make_service()
    metrics = {m.label: m for m in service.get_key_metrics("AAPL")}

    assert metrics["P/E Ratio"].value == "20.00"
    assert metrics["Revenue YoY"].change_type == "positive"
    assert metrics["FCF Yield"].value == "7.50%"


def test_comparison_uses_cache_and_concurrent_fetch():
    service, provider = make_service(missing={"ZZZ"})
    service.get_financial_data("AAPL")

    result = service.get_comparison("AAPL", ["msft", "ZZZ"])

    assert list(result) == ["AAPL", "MSFT"]
    assert provider.calls["fetch_many"] == 1
    assert service.cache.has("financial_data_MSFT")


def test_market_indices_cached():
    service, provider = make_service()
    assert service.get_market_indices()[0].name == "S&P 500"
    service.get_market_indices()
    assert provider.calls["indices"] == 1


def test_projection_modes():
    service, _ = make_service()

    earnings = service.get_projection("AAPL", growth_pct=0, multiple=20)
    assert earnings.points[0].per_share == pytest.approx(4.0)
    assert earnings.final_price == pytest.approx(80.0)

    fcf = service.get_projection("AAPL", mode="fcf")
    assert fcf.points[0].per_share == pytest.approx(80.0 / (800.0 / 60.0))

    with pytest.raises(ValueError):
        service.get_projection("AAPL", mode="dividends")
