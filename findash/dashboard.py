"""Write a dashboard report (JSON, valuation CSV and Markdown summary) for one symbol."""

from __future__ import annotations

import argparse
import json
import os
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import pandas as pd
from dateutil import tz

from .growth import cagr_summary
from .key_metrics import KeyMetric
from .metrics import FinancialDataSet
from .projection import DEFAULT_DESIRED_RETURN, DEFAULT_GROWTH_RATE, DEFAULT_MULTIPLE, Projection
from .providers import StockQuote
from .service import DashboardService
from .valuation import ValuationReport

EASTERN = tz.gettz("America/New_York")
TODAY = datetime.now(EASTERN).strftime("%Y%m%d")
REPORTS_DIR = os.environ.get("FINDASH_REPORTS_DIR", "reports")

GROWTH_METRICS = ("revenue", "netIncome", "freeCashFlow")


def growth_table(data: FinancialDataSet) -> Dict[str, dict]:
    table = {}
    for name in GROWTH_METRICS:
        series = data.get(name)
        table[name] = {
            "annual": cagr_summary(series.annual, quarterly=False),
            "quarterly": cagr_summary(series.quarterly, quarterly=True),
        }
    return table


def perc(value: Optional[float]) -> str:
    if value is None or pd.isna(value):
        return ""
    return f"{value:.1f}%"


def ratio(value: Optional[float]) -> str:
    if value is None or pd.isna(value):
        return ""
    return f"{value:.1f}x"


def valuation_frame(report: Optional[ValuationReport]) -> pd.DataFrame:
    if report is None:
        return pd.DataFrame(columns=["date", "price", "pe", "ps", "pfcf", "pocf"])
    return pd.DataFrame([point.to_dict() for point in report.points], columns=["date", "price", "pe", "ps", "pfcf", "pocf"])


def build_payload(
    symbol: str,
    quote: Optional[StockQuote],
    data: FinancialDataSet,
    metrics: List[KeyMetric],
    report: Optional[ValuationReport],
    projection: Optional[Projection],
    comparison: Dict[str, FinancialDataSet],
    indices: Iterable,
) -> dict:
    return {
        "symbol": symbol,
        "generatedAt": datetime.now(EASTERN).isoformat(),
        "stock": quote.to_dict() if quote else None,
        "financial": data.to_dict(),
        "growth": growth_table(data),
        "keyMetrics": [metric.to_dict() for metric in metrics],
        "valuation": report.to_dict() if report else None,
        "projection": projection.to_dict() if projection else None,
        "comparison": {
            sym: {name: other.get(name).to_dict() for name in GROWTH_METRICS}
            for sym, other in comparison.items()
            if sym != symbol
        },
        "marketIndices": [index.to_dict() for index in indices],
    }


def compose_markdown(
    symbol: str,
    quote: Optional[StockQuote],
    data: FinancialDataSet,
    metrics: List[KeyMetric],
    report: Optional[ValuationReport],
    projection: Optional[Projection],
    comparison: Dict[str, FinancialDataSet],
    errors: Iterable[str],
) -> str:
    title = f"# {symbol} dashboard ({TODAY} ET)\n"
    lines: List[str] = [title]
    if quote:
        lines.append(f"- {quote.name} ({quote.exchange}): **${quote.price:,.2f}** ({quote.change_percent:+.2f}%)\n")

    if metrics:
        lines += ["\n### Key metrics\n", "|Metric|Value|Change|", "|---|---:|---|"]
        lines += [f"|{m.label}|{m.value}|{m.change}|" for m in metrics]

    lines += ["\n### Growth (CAGR)\n", "|Metric|Basis|1Y|3Y|5Y|10Y|", "|---|---|---:|---:|---:|---:|"]
    for name, bases in growth_table(data).items():
        for basis, summary in bases.items():
            lines.append(
                f"|{name}|{basis}|{perc(summary['1Y'])}|{perc(summary['3Y'])}|"
                f"{perc(summary['5Y'])}|{perc(summary['10Y'])}|"
            )

    if report and report.points:
        lines += ["\n### Valuation (trailing four quarters)\n", "|Ratio|Min|Median|Max|Latest|", "|---|---:|---:|---:|---:|"]
        latest = report.points[-1]
        for name, stats in report.stats().items():
            if stats is None:
                lines.append(f"|{name}|||||")
                continue
            lines.append(
                f"|{name}|{ratio(stats['min'])}|{ratio(stats['median'])}|{ratio(stats['max'])}|"
                f"{ratio(getattr(latest, name))}|"
            )

    if projection:
        lines += [
            "\n### Five-year projection\n",
            f"- Final price: ${projection.final_price:,.2f}",
            f"- Implied CAGR: {projection.cagr:.2f}%",
            f"- Entry price for target return: ${projection.entry_price:,.2f}",
        ]

    others = [sym for sym in comparison if sym != symbol]
    if others:
        lines += ["\n### Comparison (revenue CAGR, annual)\n", "|Symbol|1Y|3Y|5Y|", "|---|---:|---:|---:|"]
        for sym in [symbol] + others:
            if sym not in comparison:
                continue
            summary = cagr_summary(comparison[sym].get("revenue").annual)
            lines.append(f"|{sym}|{perc(summary['1Y'])}|{perc(summary['3Y'])}|{perc(summary['5Y'])}|")

    errors = list(errors)
    if errors:
        lines.append("\n### Notes\n")
        lines += [f"- {err}" for err in errors]
    return "\n".join(lines) + "\n"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("symbol", help="Ticker symbol, e.g. AAPL")
    parser.add_argument("--compare", nargs="*", default=[], help="Up to three symbols to compare against")
    parser.add_argument("--mode", choices=("earnings", "fcf"), default="earnings", help="Projection basis")
    parser.add_argument("--growth", type=float, default=DEFAULT_GROWTH_RATE, help="Annual growth rate (%%)")
    parser.add_argument("--multiple", type=float, default=DEFAULT_MULTIPLE, help="Exit P/E or P/FCF multiple")
    parser.add_argument("--desired-return", type=float, default=DEFAULT_DESIRED_RETURN, help="Target annual return (%%)")
    parser.add_argument("--nocache", action="store_true", help="Drop cached financial data first")
    parser.add_argument("--output-dir", default=REPORTS_DIR)
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None, service: Optional[DashboardService] = None) -> int:
    args = parse_args(argv)
    symbol = args.symbol.upper()
    os.makedirs(args.output_dir, exist_ok=True)
    report_json = os.path.join(args.output_dir, f"{symbol}_{TODAY}.json")
    report_csv = os.path.join(args.output_dir, f"{symbol}_{TODAY}_valuation.csv")
    report_md = os.path.join(args.output_dir, f"{symbol}_{TODAY}.md")

    service = service or DashboardService()
    errors: List[str] = []

    print(f"[dashboard] {symbol}: financial data")
    data = service.get_financial_data(symbol, nocache=args.nocache)
    if data is None:
        print(f"[dashboard] {symbol}: no financial data, nothing to report.")
        with open(report_md, "w", encoding="utf-8") as f:
            f.write(f"# {symbol} dashboard ({TODAY} ET)\n\nFinancial data for {symbol} not found.\n")
        return 1

    print(f"[dashboard] {symbol}: quote and key metrics")
    quote = service.get_stock_info(symbol)
    if quote is None:
        errors.append(f"{symbol}: quote unavailable")
    metrics = service.get_key_metrics(symbol)

    print(f"[dashboard] {symbol}: valuation history")
    report = service.get_valuation(symbol)
    if report is None:
        errors.append(f"{symbol}: price history unavailable, valuation skipped")

    projection = service.get_projection(
        symbol, mode=args.mode, growth_pct=args.growth, multiple=args.multiple, desired_pct=args.desired_return
    )
    if projection is None:
        errors.append(f"{symbol}: not enough data for a {args.mode} projection")

    comparison: Dict[str, FinancialDataSet] = {}
    if args.compare:
        print(f"[dashboard] {symbol}: comparing with {', '.join(args.compare)}")
        comparison = service.get_comparison(symbol, args.compare)
        for other in args.compare:
            if other.upper() not in comparison:
                errors.append(f"{other.upper()}: financial data unavailable for comparison")

    indices = service.get_market_indices()

    payload = build_payload(symbol, quote, data, metrics, report, projection, comparison, indices)
    with open(report_json, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
    valuation_frame(report).to_csv(report_csv, index=False, encoding="utf-8")
    with open(report_md, "w", encoding="utf-8") as f:
        f.write(compose_markdown(symbol, quote, data, metrics, report, projection, comparison, errors))

    print("Saved:", report_json, report_csv, report_md)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
