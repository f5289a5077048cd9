import pytest

from findash.projection import (
    DEFAULT_PFCF,
    ProjectionEngine,
    estimate_eps,
    fcf_per_share,
    projection_inputs,
    ttm_eps,
)
from findash.series import series_from_pairs


def test_project_compounds_and_builds_path():
    projection = ProjectionEngine().project(5.0, 100.0, growth_pct=10, multiple=20, desired_pct=15, start_year=2026)

    assert projection.final_per_share == pytest.approx(5 * 1.1 ** 5)
    assert projection.final_price == pytest.approx(100 * 1.1 ** 5)
    assert projection.cagr == pytest.approx(10.0)
    assert projection.entry_price == pytest.approx(100 * 1.1 ** 5 / 1.15 ** 5)
    assert [p.year for p in projection.points] == [2026, 2027, 2028, 2029, 2030, 2031]
    assert projection.points[0].price == 100.0
    assert projection.points[-1].price == pytest.approx(projection.final_price)
    assert projection.points[2].per_share == pytest.approx(5 * 1.1 ** 2)
    assert projection.to_dict()["points"][0] == {"year": "2026", "price": 100.0, "perShare": 5.0}


@pytest.mark.parametrize(
    "per_share, price, multiple",
    [(None, 100.0, 20), (0.0, 100.0, 20), (5.0, 0.0, 20), (5.0, -1.0, 20), (-5.0, 100.0, 20), (5.0, 100.0, 0)],
)
def test_project_returns_none_for_unusable_inputs(per_share, price, multiple):
    assert ProjectionEngine().project(per_share, price, multiple=multiple) is None


def test_ttm_eps_sums_latest_four_by_end_date():
    reports = [
        {"endDate": "2023-03-31", "reportedEPS": 9.0},
        {"endDate": "2024-03-31", "reportedEPS": 1.0},
        {"endDate": "2023-12-31", "reportedEPS": "1.10"},
        {"endDate": "2023-09-30", "reportedEPS": 1.2},
        {"endDate": "2023-06-30", "reportedEPS": 1.333},
    ]
    assert ttm_eps(reports) == pytest.approx(4.63)


def test_ttm_eps_sorts_by_quarter_label_and_skips_non_numeric():
    reports = [
        {"quarter": "Q1 2023", "reportedEPS": 5},
        {"quarter": "Q2 2023", "reportedEPS": "n/a"},
        {"quarter": "Q3 2023", "reportedEPS": 1},
        {"quarter": "Q4 2023", "reportedEPS": 2},
        {"quarter": "Q1 2024", "reportedEPS": 3},
    ]
    assert ttm_eps(reports) == pytest.approx(6.0)


def test_ttm_eps_needs_four_reports():
    assert ttm_eps([{"quarter": "Q1 2024", "reportedEPS": 1}] * 3) is None
    assert ttm_eps([]) is None


def test_estimate_eps_fallbacks():
    assert estimate_eps(100.0, 25.0) == 4.0
    assert estimate_eps(100.0, None) == 5.0
    assert estimate_eps(0.0, None) is None


def test_projection_inputs_prefers_reported_eps():
    reports = [{"quarter": f"Q{q} 2023", "reportedEPS": 1} for q in (1, 2, 3, 4)]
    assert projection_inputs(reports, 100.0, 50.0) == 4.0
    assert projection_inputs([], 100.0, 50.0) == 2.0


def test_fcf_per_share_from_market_cap():
    fcf = series_from_pairs([(f"Q{q} 2023", 25.0) for q in (1, 2, 3, 4)])
    inputs = fcf_per_share(fcf, price=50.0, market_cap=2000.0)
    assert inputs.pfcf == pytest.approx(20.0)
    assert inputs.per_share == pytest.approx(2.5)


def test_fcf_per_share_defaults_without_history():
    fcf = series_from_pairs([("Q1 2023", 25.0)])
    inputs = fcf_per_share(fcf, price=50.0, market_cap=2000.0)
    assert inputs.per_share is None
    assert inputs.pfcf == DEFAULT_PFCF
