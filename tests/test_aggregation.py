#!/usr/bin/env python3
"""
Tests for brand attribution and revenue validation.
"""

import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from processing.brand_attribution import BrandAttributionAggregator
from processing.entity_resolution import DirectIdResolver
from processing.models import BrandAttribution, Company, Deal, RevenueJoinKey
from processing.revenue_validation import (
    RevenueValidator,
    revenue_accuracy,
    summarize_validation,
)


def brand_deals():
    return [
        Deal(record_id="1", name="Spring Launch", budget=Decimal("5000"), amount=Decimal("4000"),
             brands=("Acme", "Zed"), campaign_brand="Acme;Zed", stage="Closed Won",
             pipeline="Media", primary_company_id="10", close_date=date(2025, 4, 30)),
        Deal(record_id="2", name="Summer Push", budget=Decimal("3000"), brands=("Acme",),
             campaign_brand="Acme", stage="Proposal", pipeline="Media",
             primary_company_id="10", close_date=date(2025, 6, 2)),
        Deal(record_id="3", name="Zed Promo", budget=Decimal("1000"), brands=("Zed",),
             campaign_brand="Zed", stage="Closed Lost", pipeline="Events",
             primary_company_id="20"),
        Deal(record_id="4", name="Untagged", budget=Decimal("700")),
    ]


def test_brand_full_attribution():
    """Multi-brand deals credit the full budget to every brand."""
    print("\n=== BRAND ATTRIBUTION TESTS ===\n")
    report = BrandAttributionAggregator().aggregate(brand_deals())

    acme = report.get("Acme")
    zed = report.get("Zed")
    assert acme.revenue == Decimal("8000")
    assert zed.revenue == Decimal("6000")
    assert report.total_brand_revenue == Decimal("14000")
    # Exceeds the 9000 tagged deal budget: intentional double count
    assert report.total_brand_revenue > sum(d.budget for d in brand_deals()[:3])
    print("✓ Full budget credited to each brand")

    assert acme.deal_count == 2
    assert acme.avg_deal_size == Decimal("4000")
    assert acme.company_count == 1
    assert acme.win_rate == 50.0
    assert dict(acme.pipelines) == {"Media": 2}
    assert dict(acme.stages) == {"Closed Won": 1, "Proposal": 1}
    assert dict(acme.monthly_revenue) == {"2025-04": Decimal("5000"), "2025-06": Decimal("3000")}
    print("✓ Per-brand counts, histograms and monthly revenue")

    assert zed.company_count == 2
    assert zed.win_rate == 50.0
    assert dict(zed.monthly_revenue) == {"2025-04": Decimal("5000")}

    assert [m.brand for m in report.metrics] == ["Acme", "Zed"]
    assert report.total_brands == 2
    assert report.get("Untagged") is None
    print("✓ Metrics ordered by revenue")


def test_brand_split_attribution():
    """Split mode divides a multi-brand budget and totals reconcile to deal revenue."""
    report = BrandAttributionAggregator(BrandAttribution.SPLIT).aggregate(brand_deals())

    assert report.get("Acme").revenue == Decimal("5500")
    assert report.get("Zed").revenue == Decimal("3500")
    assert report.total_brand_revenue == Decimal("9000")
    assert report.get("Acme").deal_count == 2
    assert report.attribution is BrandAttribution.SPLIT
    print("✓ Split attribution reconciles to tagged deal revenue")


def test_brand_split_remainder():
    """Uneven splits round to cents and the last brand absorbs the remainder."""
    deals = [
        Deal(record_id="1", budget=Decimal("1000"), brands=("Acme", "Bolt", "Zed"),
             stage="Proposal", close_date=date(2025, 5, 1)),
    ]
    report = BrandAttributionAggregator(BrandAttribution.SPLIT).aggregate(deals)

    assert report.total_brand_revenue == Decimal("1000")
    assert report.get("Acme").revenue == Decimal("333.33")
    assert report.get("Bolt").revenue == Decimal("333.33")
    assert report.get("Zed").revenue == Decimal("333.34")
    assert dict(report.get("Zed").monthly_revenue) == {"2025-05": Decimal("333.34")}
    print("✓ Three-way split sums back to the budget")

    fine = [Deal(record_id="2", budget=Decimal("0.001"), brands=("Acme", "Zed"))]
    report = BrandAttributionAggregator(BrandAttribution.SPLIT).aggregate(fine)
    assert report.total_brand_revenue == Decimal("0.001")


def test_brand_attribution_from_string():
    assert BrandAttributionAggregator("split").attribution is BrandAttribution.SPLIT
    with pytest.raises(ValueError):
        BrandAttributionAggregator("half")


def test_brand_win_rate_uses_stage_text():
    """Explicit won flag does not count toward brand win rate."""
    deals = [
        Deal(record_id="1", budget=Decimal("100"), brands=("Acme",), stage="Contract Sent", is_closed_won=True),
        Deal(record_id="2", budget=Decimal("100"), brands=("Acme",), stage="closed WON"),
    ]
    report = BrandAttributionAggregator().aggregate(deals)
    assert report.get("Acme").win_rate == 50.0


def revenue_deals():
    return [
        Deal(record_id="1", name="Spring Launch", budget=Decimal("5000"), amount=Decimal("4000"),
             stage="Closed Won", primary_company_id="10",
             associated_companies=("Acme Corp", "Zed Holdings")),
        Deal(record_id="2", name="Summer Push", budget=Decimal("3000"), amount=Decimal("1000"),
             stage="Proposal", primary_company_id="10", associated_companies=("Acme Corp",)),
        Deal(record_id="3", name="Zed Promo", budget=Decimal("1000"), stage="Closed Lost",
             primary_company_id="20", associated_companies=("Zed Holdings",)),
        Deal(record_id="4", name="Zero Deal", budget=Decimal("0"), associated_companies=("Ghost Inc",)),
        Deal(record_id="5", name="Flagged", budget=Decimal("200"), stage="Negotiation",
             is_closed_won=True, associated_companies=("Unlisted Partners",)),
    ]


def revenue_companies():
    return [
        Company(record_id="10", name="Acme Corp", total_revenue=Decimal("10000")),
        Company(record_id="20", name="Zed Holdings", total_revenue=Decimal("0")),
    ]


def test_revenue_by_name():
    """Name-keyed validation credits every co-listed company in full."""
    print("\n=== REVENUE VALIDATION TESTS ===\n")
    rows = RevenueValidator(RevenueJoinKey.NAME, fuzzy_threshold=85).validate(
        revenue_deals(), revenue_companies(), []
    )
    by_name = {row.company_name: row for row in rows}

    assert set(by_name) == {"Acme Corp", "Zed Holdings", "Unlisted Partners"}
    print("✓ Zero-revenue companies are not emitted")

    acme = by_name["Acme Corp"]
    assert acme.total_media_budget == Decimal("8000")
    assert acme.total_po_amount == Decimal("5000")
    assert acme.deal_count == 2
    assert (acme.won_deals, acme.open_deals, acme.lost_deals) == (1, 1, 0)
    assert acme.win_rate == 50.0
    assert acme.avg_media_budget == Decimal("4000")
    assert acme.avg_po_amount == Decimal("2500")
    assert [d.name for d in acme.deals] == ["Spring Launch", "Summer Push"]
    assert acme.company_id == "10"
    assert acme.accuracy is None
    print("✓ Name-keyed totals and classification")

    zed = by_name["Zed Holdings"]
    assert zed.total_media_budget == Decimal("6000")
    assert (zed.won_deals, zed.open_deals, zed.lost_deals) == (1, 0, 1)

    flagged = by_name["Unlisted Partners"]
    assert flagged.won_deals == 1
    assert flagged.company_id is None
    print("✓ Explicit won flag counts as won")


def test_revenue_by_id():
    """Identifier-keyed validation follows Direct-ID mappings and scores accuracy."""
    deals = revenue_deals()
    companies = revenue_companies()
    mappings = DirectIdResolver().resolve(deals, companies).mappings

    rows = RevenueValidator(RevenueJoinKey.ID).validate(deals, companies, mappings)
    by_id = {row.company_id: row for row in rows}

    assert set(by_id) == {"10", "20"}
    acme = by_id["10"]
    assert acme.company_name == "Acme Corp"
    assert acme.total_media_budget == Decimal("8000")
    assert acme.declared_revenue == Decimal("10000")
    assert acme.accuracy == pytest.approx(80.0)

    zed = by_id["20"]
    assert zed.total_media_budget == Decimal("1000")
    assert zed.lost_deals == 1
    assert zed.accuracy == 0.0
    print("✓ Identifier-keyed totals and accuracy")


def test_revenue_accuracy():
    assert revenue_accuracy(Decimal("1000"), Decimal("1000")) == 100.0
    assert revenue_accuracy(Decimal("1000"), Decimal("750")) == pytest.approx(75.0)
    assert revenue_accuracy(Decimal("1000"), Decimal("1250")) == pytest.approx(75.0)
    assert revenue_accuracy(Decimal("1000"), Decimal("5000")) == 0.0
    assert revenue_accuracy(Decimal("0"), Decimal("5000")) == 0.0
    print("✓ Accuracy formula clamps at zero")


def test_summarize_validation():
    rows = RevenueValidator(RevenueJoinKey.NAME).validate(revenue_deals(), revenue_companies(), [])
    summary = summarize_validation(rows)
    assert summary["companies"] == 3
    assert summary["total_media_budget"] == Decimal("14200")
    assert summary["total_po_amount"] == Decimal("9000")

    empty = summarize_validation([])
    assert empty["companies"] == 0
    assert empty["average_win_rate"] == 0.0


if __name__ == "__main__":
    tests = [
        ("Full Brand Attribution", test_brand_full_attribution),
        ("Split Brand Attribution", test_brand_split_attribution),
        ("Split Remainder", test_brand_split_remainder),
        ("Attribution From String", test_brand_attribution_from_string),
        ("Brand Win Rate", test_brand_win_rate_uses_stage_text),
        ("Revenue By Name", test_revenue_by_name),
        ("Revenue By ID", test_revenue_by_id),
        ("Revenue Accuracy", test_revenue_accuracy),
        ("Validation Summary", test_summarize_validation),
    ]

    all_passed = True
    for name, test in tests:
        try:
            test()
            print(f"{name}: PASSED")
        except AssertionError as e:
            print(f"{name}: FAILED ({e})")
            all_passed = False

    sys.exit(0 if all_passed else 1)
