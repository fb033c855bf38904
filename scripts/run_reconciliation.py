#!/usr/bin/env python3
"""
Run a reconciliation pass over HubSpot deal and company exports.

Usage:
    python scripts/run_reconciliation.py
    python scripts/run_reconciliation.py --deals deals.csv --companies companies.csv
    python scripts/run_reconciliation.py --search acme --join-key id
    python scripts/run_reconciliation.py --export results.json
"""

import argparse
import csv
import json
import sys
from collections.abc import Mapping
from dataclasses import fields, is_dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import settings
from processing.models import Strategy
from processing.reconciler import Reconciler, ReconcilerConfig
from processing.revenue_validation import summarize_validation


def load_rows(path: Path) -> list[dict]:
    """Read a CSV export into header-keyed rows."""
    with open(path, newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        return [row for row in reader if any((v or "").strip() for v in row.values() if isinstance(v, str))]


def to_jsonable(value):
    """Recursively convert result objects to JSON-compatible values."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value


def export_result(result, path: Path) -> None:
    """Dump the derived collections as JSON."""
    payload = {
        "stats": to_jsonable(result.stats),
        "mappings": to_jsonable(result.mappings),
        "domain_relationships": to_jsonable(result.domain_relationships),
        "brands": to_jsonable(result.brand_report.metrics),
        "revenue_validation": to_jsonable(result.revenue_validation),
        "filtered": [
            {"strategy": rel.strategy.value, "type": rel.type.value, **to_jsonable(rel.relationship)}
            for rel in result.filtered
        ],
    }
    with open(path, "w") as f:
        json.dump(payload, f, indent=2)


def main():
    parser = argparse.ArgumentParser(
        description="Reconcile deals with companies and report relationship metrics"
    )
    parser.add_argument("--deals", type=Path, default=Path(settings.DEALS_CSV), help="Deals CSV export")
    parser.add_argument(
        "--companies", type=Path, default=Path(settings.COMPANIES_CSV), help="Companies CSV export"
    )
    parser.add_argument("--search", default="", help="Free-text relationship filter")
    parser.add_argument(
        "--join-key",
        choices=["name", "id"],
        default=settings.REVENUE_JOIN_KEY,
        help="Company key for revenue validation",
    )
    parser.add_argument(
        "--attribution",
        choices=["full", "split"],
        default=settings.BRAND_ATTRIBUTION,
        help="Credit each brand the full budget, or split it across a deal's brands",
    )
    parser.add_argument("--export", type=Path, help="Write results as JSON to this path")
    parser.add_argument("--limit", type=int, default=10, help="Rows to show per table")

    args = parser.parse_args()

    for path in (args.deals, args.companies):
        if not path.exists():
            print(f"Error: file not found: {path}")
            sys.exit(1)

    deal_rows = load_rows(args.deals)
    company_rows = load_rows(args.companies)

    config = ReconcilerConfig(
        brand_attribution=args.attribution,
        revenue_join_key=args.join_key,
        high_performer_win_rate=settings.HIGH_PERFORMER_WIN_RATE,
        fuzzy_threshold=settings.FUZZY_MATCH_THRESHOLD,
    )
    result = Reconciler(config).run(deal_rows, company_rows, search_term=args.search)
    stats = result.stats

    print("=" * 60)
    print("RELATIONSHIP MAPPING")
    print("=" * 60)
    print(f"Deals:              {stats.total_deals}")
    print(f"Companies:          {stats.total_companies}")
    print(f"Total revenue:      ${stats.total_revenue:,.2f}")
    print(f"Average deal size:  ${stats.average_deal_size:,.2f}")
    print(f"Won / open / lost:  {stats.closed_won_deals} / {stats.open_deals} / {stats.lost_deals}")
    print(f"Win rate:           {stats.win_rate:.1f}%")
    print("=" * 60)

    print(f"\nEnhanced ID: {stats.direct_mappings} mapped, {stats.unmapped_deals} unmapped "
          f"({stats.mapping_coverage:.1f}% coverage)")
    print(f"  Companies with deals: {stats.mapped_companies}")
    print(f"  Open pipeline:        ${stats.open_pipeline_value:,.2f}")

    domains = result.domain_summary
    print(f"\nDomain: {stats.domain_relationships} relationships across {domains['domains']} domains "
          f"({domains['parents']} parents, {domains['children']} children)")

    report = result.brand_report
    print(f"\nBrands ({report.attribution.value} attribution): {report.total_brands} brands, "
          f"${report.total_brand_revenue:,.2f}")
    for metric in report.metrics[:args.limit]:
        print(f"  {metric.brand:<30} ${metric.revenue:>14,.2f}  {metric.deal_count:>4} deals  "
              f"{metric.win_rate:5.1f}% won")

    summary = summarize_validation(list(result.revenue_validation))
    print(f"\nRevenue validation (by {result.revenue_join_key.value}): {summary['companies']} companies, "
          f"{stats.high_performing_companies} high performing")
    rows = sorted(result.revenue_validation, key=lambda r: r.total_media_budget, reverse=True)
    for row in rows[:args.limit]:
        accuracy = f"  accuracy {row.accuracy:.1f}%" if row.accuracy is not None else ""
        print(f"  {row.company_name[:30]:<30} ${row.total_media_budget:>14,.2f}  "
              f"{row.win_rate:5.1f}% won{accuracy}")

    if args.search:
        direct = sum(1 for rel in result.filtered if rel.strategy is Strategy.ENHANCED_ID)
        print(f"\nSearch '{args.search}': {len(result.filtered)} relationships "
              f"({direct} Enhanced ID, {len(result.filtered) - direct} Domain)")

    if args.export:
        export_result(result, args.export)
        print(f"\nResults exported to: {args.export}")


if __name__ == "__main__":
    main()
