import pytest

from findash.metrics import DerivedMetricsBuilder
from findash.series import PeriodKey


def quarter_dates(count, start_year=2020):
    ends = ["03-31", "06-30", "09-30", "12-31"]
    return [f"{start_year + i // 4}-{ends[i % 4]}" for i in range(count)]


def quarterly_records(income, payout=None, **fields):
    payout = payout or [0] * len(income)
    records = []
    for idx, end in enumerate(quarter_dates(len(income))):
        record = {"endDate": end, "netIncome": income[idx], "dividendPayout": payout[idx]}
        for key, values in fields.items():
            record[key] = values[idx]
        records.append(record)
    return records


def values(series):
    return [point.value for point in series]


def test_end_to_end_annual_revenue_and_net_margin():
    annual = [
        {"endDate": "2020-12-31", "totalRevenue": 1000, "netIncome": 100},
        {"endDate": "2021-12-31", "totalRevenue": 1500, "netIncome": 200},
    ]
    data = DerivedMetricsBuilder().build("test", annual, [], [])
    out = data.to_dict()

    assert data.symbol == "TEST"
    assert out["revenue"]["annual"] == [{"year": "2020", "value": 1000.0}, {"year": "2021", "value": 1500.0}]
    margins = [point["value"] for point in out["netMargin"]["annual"]]
    assert margins == [pytest.approx(10.0), pytest.approx(13.3333, rel=1e-4)]
    assert out["revenue"]["quarterly"] == []
    assert out["dividends"] == {"quarterly": []}


def test_gross_margin_needs_revenue_and_cogs():
    annual = [
        {"endDate": "2020-12-31", "totalRevenue": 200, "costofGoodsAndServicesSold": 50},
        {"endDate": "2021-12-31", "totalRevenue": 200, "costofGoodsAndServicesSold": "None"},
        {"endDate": "2022-12-31", "totalRevenue": 0, "costofGoodsAndServicesSold": 50},
    ]
    data = DerivedMetricsBuilder().build("X", annual, [], [])
    assert values(data["grossMargin"].annual) == [pytest.approx(75.0), None, None]
    assert [p["value"] for p in data["grossMargin"].to_dict()["annual"]] == [pytest.approx(75.0), 0, 0]


def test_cash_ignores_missing_short_term_investments():
    annual = [
        {"endDate": "2020-12-31", "cashAndShortTermInvestments": 100, "shortTermInvestments": "None"},
        {"endDate": "2021-12-31", "cashAndShortTermInvestments": 100, "shortTermInvestments": 25},
        {"endDate": "2022-12-31", "cashAndShortTermInvestments": 100},
    ]
    data = DerivedMetricsBuilder().build("X", annual, [], [])
    assert values(data["cash"].annual) == [100.0, 125.0, 100.0]


@pytest.mark.parametrize("short_term, expected", [(None, 100.0), ("None", 100.0), ("12.5", 112.5), ("-", 100.0)])
def test_cash_adds_short_term_investments_unless_null(short_term, expected):
    annual = [{"endDate": "2020-12-31", "cashAndShortTermInvestments": 100, "shortTermInvestments": short_term}]
    data = DerivedMetricsBuilder().build("X", annual, [], [])
    assert values(data["cash"].annual) == [expected]


def test_free_cash_flow_and_capex():
    annual = [{"endDate": "2020-12-31", "operatingCashflow": 500, "capitalExpenditures": 120}]
    data = DerivedMetricsBuilder().build("X", annual, [], [])
    assert values(data["freeCashFlow"].annual) == [380.0]
    assert values(data["capex"].annual) == [120.0]
    assert values(data["operatingCashFlow"].annual) == [500.0]


def test_annual_payout_ratio():
    annual = [
        {"endDate": "2020-12-31", "netIncome": 200, "dividendPayout": 50},
        {"endDate": "2021-12-31", "netIncome": -10, "dividendPayout": 50},
    ]
    data = DerivedMetricsBuilder().build("X", annual, [], [])
    assert values(data["payoutRatio"].annual) == [pytest.approx(25.0), 0.0]


def test_quarterly_payout_ratio_uses_rolling_four_quarters():
    records = quarterly_records([10, 10, 10, 10, 10], payout=[1, 1, 1, 1, 2])
    data = DerivedMetricsBuilder().build("X", [], records, [])
    ratios = values(data["payoutRatio"].quarterly)

    assert ratios[:3] == [None, None, None]
    assert ratios[3] == pytest.approx(10.0)
    assert ratios[4] == pytest.approx(12.5)
    exported = [p["value"] for p in data["payoutRatio"].to_dict()["quarterly"]]
    assert exported[:3] == [0, 0, 0]


def test_quarterly_payout_ratio_zero_when_rolling_income_not_positive():
    records = quarterly_records([5, -10, -10, 5], payout=[1, 1, 1, 1])
    data = DerivedMetricsBuilder().build("X", [], records, [])
    assert values(data["payoutRatio"].quarterly)[3] == 0.0


def test_ttm_series():
    records = quarterly_records(
        [1, 2, 3, 4, 5],
        totalRevenue=[10, 10, 10, 10, 20],
        longTermDebt=[7, 8, 9, 10, 11],
    )
    data = DerivedMetricsBuilder().build("X", [], records, [])

    assert [p.label for p in data["revenue"].ttm] == ["Q4 2020", "Q1 2021"]
    assert values(data["revenue"].ttm) == [40.0, 50.0]
    assert values(data["netIncome"].ttm) == [10.0, 14.0]
    assert values(data["debt"].ttm) == [10.0, 11.0]
    assert values(data["netMargin"].ttm)[0] == pytest.approx((10 + 20 + 30 + 40) / 4)


def test_ttm_empty_with_fewer_than_four_quarters():
    data = DerivedMetricsBuilder().build("X", [], quarterly_records([1, 2, 3]), [])
    assert data["revenue"].ttm == ()
    assert len(data["revenue"].quarterly) == 3


def test_dividends_summed_per_quarter():
    events = [
        {"Date": "2024-02-10", "Dividends": 0.2},
        {"Date": "2024-03-15", "Dividends": 0.3},
        {"Date": "2023-11-10", "Dividends": "0.25"},
        {"Date": "2024-05-10", "Dividends": 0},
        {"Date": "not a date", "Dividends": 1.0},
    ]
    data = DerivedMetricsBuilder().build("X", [], [], events)
    assert [p.period for p in data.dividends] == [PeriodKey(2023, 4), PeriodKey(2024, 1)]
    assert values(data.dividends) == [pytest.approx(0.25), pytest.approx(0.5)]


def test_dividend_sentinel_yields_empty_series_and_payout_degrades():
    records = quarterly_records([10, 10, 10, 10])
    data = DerivedMetricsBuilder().build("X", [], records, [{"Date": "empty"}])
    assert data.dividends == ()
    assert values(data["payoutRatio"].quarterly) == [None, None, None, 0.0]


def test_malformed_payloads_do_not_raise():
    data = DerivedMetricsBuilder().build("X", {"bad": True}, "nope", None)
    assert data.is_empty
    assert data.to_dict()["revenue"] == {"annual": [], "quarterly": [], "ttm": []}


def test_dataset_is_read_only():
    data = DerivedMetricsBuilder().build("X", [{"endDate": "2020-12-31", "totalRevenue": 1}], [], [])
    with pytest.raises(TypeError):
        data.metrics["revenue"] = None
