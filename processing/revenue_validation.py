"""
Revenue Validator

Rebuilds per-company revenue from deals. Two join keys exist and a pass
uses exactly one of them:

- NAME: every name in the deal's free-text "Associated Company" list gets
  the deal's full budget and PO amount (co-listed companies double count).
  Each name is linked back to a company record for reference only.
- ID: deals are attributed through their Direct-ID mapping, and the summed
  budget is compared with the company's declared revenue:

      accuracy = max(0, 100 - |declared - calculated| / declared * 100)

  with accuracy 0 when nothing is declared.

Companies whose aggregated budget and PO are both zero are not emitted.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from config.logging import logger
from config.settings import settings
from processing.entity_resolution.matchers import CompanyNameMatcher
from processing.models import (
    Company,
    CompanyRevenueAnalysis,
    Deal,
    DealOutcome,
    DealSummary,
    Mapping,
    RevenueJoinKey,
)


@dataclass
class _CompanyTotals:
    """Running totals for one company while deals are scanned."""
    company_name: str
    total_media_budget: Decimal = Decimal("0")
    total_po_amount: Decimal = Decimal("0")
    won_deals: int = 0
    open_deals: int = 0
    lost_deals: int = 0
    deals: list[DealSummary] = field(default_factory=list)

    @property
    def deal_count(self) -> int:
        return len(self.deals)

    def add(self, summary: DealSummary, outcome: DealOutcome) -> None:
        self.total_media_budget += summary.media_budget
        self.total_po_amount += summary.po_amount
        self.deals.append(summary)
        if outcome is DealOutcome.WON:
            self.won_deals += 1
        elif outcome is DealOutcome.LOST:
            self.lost_deals += 1
        else:
            self.open_deals += 1

    def is_empty(self) -> bool:
        return self.total_media_budget == 0 and self.total_po_amount == 0

    def build(self, **extra) -> CompanyRevenueAnalysis:
        count = self.deal_count
        return CompanyRevenueAnalysis(
            company_name=self.company_name,
            total_media_budget=self.total_media_budget,
            total_po_amount=self.total_po_amount,
            deal_count=count,
            won_deals=self.won_deals,
            open_deals=self.open_deals,
            lost_deals=self.lost_deals,
            win_rate=self.won_deals / count * 100 if count else 0.0,
            avg_media_budget=self.total_media_budget / count if count else Decimal("0"),
            avg_po_amount=self.total_po_amount / count if count else Decimal("0"),
            deals=tuple(self.deals),
            **extra,
        )


def revenue_accuracy(declared: Decimal, calculated: Decimal) -> float:
    """How closely declared revenue matches revenue computed from deals."""
    if not declared:
        return 0.0
    deviation = abs(declared - calculated) / declared * 100
    return max(0.0, 100.0 - float(deviation))


def _summary(deal: Deal) -> DealSummary:
    return DealSummary(
        name=deal.name,
        stage=deal.stage,
        media_budget=deal.budget,
        po_amount=deal.amount,
        close_date=deal.close_date,
    )


def _mapping_outcome(mapping: Mapping) -> DealOutcome:
    if mapping.is_closed_won:
        return DealOutcome.WON
    if "lost" in mapping.deal_stage.lower():
        return DealOutcome.LOST
    return DealOutcome.OPEN


class RevenueValidator:
    """
    Per-company revenue reconciliation.

    Usage:
        validator = RevenueValidator(RevenueJoinKey.ID)
        rows = validator.validate(deals, companies, mappings)
    """

    def __init__(
        self,
        join_key: RevenueJoinKey = RevenueJoinKey.NAME,
        fuzzy_threshold: Optional[int] = None,
    ):
        self.join_key = RevenueJoinKey(join_key)
        self.fuzzy_threshold = (
            fuzzy_threshold if fuzzy_threshold is not None else settings.FUZZY_MATCH_THRESHOLD
        )

    def validate(
        self,
        deals: list[Deal],
        companies: list[Company],
        mappings: list[Mapping],
    ) -> list[CompanyRevenueAnalysis]:
        if self.join_key is RevenueJoinKey.ID:
            rows = self._validate_by_id(companies, mappings)
        else:
            rows = self._validate_by_name(deals, companies)

        logger.info(f"Revenue validation ({self.join_key.value}): {len(rows)} companies with revenue")
        return rows

    def _validate_by_name(
        self,
        deals: list[Deal],
        companies: list[Company],
    ) -> list[CompanyRevenueAnalysis]:
        totals: dict[str, _CompanyTotals] = {}

        for deal in deals:
            summary = _summary(deal)
            outcome = deal.outcome
            for name in deal.associated_companies:
                if name not in totals:
                    totals[name] = _CompanyTotals(company_name=name)
                totals[name].add(summary, outcome)

        matcher = CompanyNameMatcher(companies, threshold=self.fuzzy_threshold)
        rows = []
        for name, company_totals in totals.items():
            if company_totals.is_empty():
                continue
            match = matcher.match(name)
            if match.is_match:
                rows.append(
                    company_totals.build(company_id=match.company.record_id, match_score=match.score)
                )
            else:
                logger.debug(f"No company record for associated name '{name}'")
                rows.append(company_totals.build())
        return rows

    def _validate_by_id(
        self,
        companies: list[Company],
        mappings: list[Mapping],
    ) -> list[CompanyRevenueAnalysis]:
        companies_by_id = {}
        for company in companies:
            companies_by_id.setdefault(company.record_id, company)

        # Mappings carry the deal fields, no second join against deals
        totals: dict[str, _CompanyTotals] = {}
        for mapping in mappings:
            if mapping.company_id not in totals:
                totals[mapping.company_id] = _CompanyTotals(company_name=mapping.company_name)
            summary = DealSummary(
                name=mapping.deal_name,
                stage=mapping.deal_stage,
                media_budget=mapping.amount,
                po_amount=mapping.po_amount,
                close_date=mapping.close_date,
            )
            totals[mapping.company_id].add(summary, _mapping_outcome(mapping))

        rows = []
        for company_id, company_totals in totals.items():
            if company_totals.is_empty():
                continue
            company = companies_by_id.get(company_id)
            declared = company.total_revenue if company else Decimal("0")
            rows.append(
                company_totals.build(
                    company_id=company_id,
                    declared_revenue=declared,
                    accuracy=revenue_accuracy(declared, company_totals.total_media_budget),
                )
            )
        return rows


def summarize_validation(rows: list[CompanyRevenueAnalysis]) -> dict:
    """Headline figures for the revenue validation table."""
    if not rows:
        return {
            "companies": 0,
            "total_media_budget": Decimal("0"),
            "total_po_amount": Decimal("0"),
            "average_win_rate": 0.0,
            "average_po_amount": Decimal("0"),
        }
    return {
        "companies": len(rows),
        "total_media_budget": sum((r.total_media_budget for r in rows), Decimal("0")),
        "total_po_amount": sum((r.total_po_amount for r in rows), Decimal("0")),
        "average_win_rate": sum(r.win_rate for r in rows) / len(rows),
        "average_po_amount": sum((r.avg_po_amount for r in rows), Decimal("0")) / len(rows),
    }
