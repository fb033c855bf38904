"""
Reconciliation pass

Runs every strategy over one pair of deal/company tables:

1. Normalize raw rows into Deal and Company records
2. Direct-ID mapping (confidence 100)
3. Domain clustering, using Direct-ID deal counts for parent selection (confidence 75)
4. Brand attribution
5. Revenue validation (one join key per pass)
6. Combine, filter, and compute strategy statistics

A pass is a pure function of its inputs and config. Nothing is cached
between calls; changed source data means a new pass.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from config.logging import logger
from config.settings import settings
from processing.brand_attribution import BrandAttributionAggregator
from processing.combiner import combine_relationships, filter_relationships
from processing.entity_resolution import DirectIdResolver, DomainResolver
from processing.models import (
    BrandAttribution,
    BrandReport,
    CombinedRelationship,
    Company,
    CompanyRevenueAnalysis,
    Deal,
    DomainGroup,
    DomainRelationship,
    Mapping,
    RevenueJoinKey,
    StrategyStats,
)
from processing.normalizer import normalize_companies, normalize_deals
from processing.revenue_validation import RevenueValidator
from processing.stats import compute_strategy_stats


@dataclass
class ReconcilerConfig:
    """Configuration for a reconciliation pass."""
    # Full budget per brand, or budget divided across a deal's brands
    brand_attribution: BrandAttribution = BrandAttribution.FULL

    # Company key for revenue validation
    revenue_join_key: RevenueJoinKey = RevenueJoinKey.NAME

    # Win rate (percent) above which a company counts as high performing
    high_performer_win_rate: float = 50.0

    # Fuzzy threshold (0-100) linking associated names to company records
    fuzzy_threshold: int = 85

    def __post_init__(self):
        # Accept plain strings from settings or the CLI; unknown values raise ValueError
        self.brand_attribution = BrandAttribution(self.brand_attribution)
        self.revenue_join_key = RevenueJoinKey(self.revenue_join_key)

    @classmethod
    def from_settings(cls) -> "ReconcilerConfig":
        return cls(
            brand_attribution=settings.BRAND_ATTRIBUTION,
            revenue_join_key=settings.REVENUE_JOIN_KEY,
            high_performer_win_rate=settings.HIGH_PERFORMER_WIN_RATE,
            fuzzy_threshold=settings.FUZZY_MATCH_THRESHOLD,
        )


@dataclass(frozen=True)
class ReconciliationResult:
    """Everything the display layer needs from one pass."""
    deals: tuple[Deal, ...]
    companies: tuple[Company, ...]
    mappings: tuple[Mapping, ...]
    unmapped_deals: int
    domain_groups: tuple[DomainGroup, ...]
    domain_relationships: tuple[DomainRelationship, ...]
    brand_report: BrandReport
    revenue_validation: tuple[CompanyRevenueAnalysis, ...]
    revenue_join_key: RevenueJoinKey
    combined: tuple[CombinedRelationship, ...]
    filtered: tuple[CombinedRelationship, ...]
    search_term: str
    stats: StrategyStats

    @property
    def domain_summary(self) -> dict[str, int]:
        return DomainResolver().summarize(list(self.domain_groups))

    def search(self, term: Optional[str]) -> tuple[CombinedRelationship, ...]:
        """Re-filter the combined relationships without rerunning the pass."""
        return filter_relationships(self.combined, term)


class Reconciler:
    """
    Multi-strategy deal/company reconciliation.

    Usage:
        reconciler = Reconciler()
        result = reconciler.run(deal_rows, company_rows, search_term="acme")
        print(result.stats.mapping_coverage)
    """

    def __init__(self, config: Optional[ReconcilerConfig] = None):
        self.config = config or ReconcilerConfig.from_settings()
        self.direct_id_resolver = DirectIdResolver()
        self.domain_resolver = DomainResolver()
        self.brand_aggregator = BrandAttributionAggregator(self.config.brand_attribution)
        self.revenue_validator = RevenueValidator(
            self.config.revenue_join_key,
            fuzzy_threshold=self.config.fuzzy_threshold,
        )

    def run(
        self,
        deal_rows: Iterable[Any],
        company_rows: Iterable[Any],
        search_term: Optional[str] = "",
    ) -> ReconciliationResult:
        """Run one full pass over raw export rows."""
        deals = normalize_deals(deal_rows)
        companies = normalize_companies(company_rows)
        return self.run_records(deals, companies, search_term)

    def run_records(
        self,
        deals: list[Deal],
        companies: list[Company],
        search_term: Optional[str] = "",
    ) -> ReconciliationResult:
        """Run one full pass over already-normalized records."""
        logger.info(f"Reconciling {len(deals)} deals against {len(companies)} companies")

        direct = self.direct_id_resolver.resolve(deals, companies)
        mappings = direct.mappings

        domain_groups = self.domain_resolver.group(companies, mappings)
        domain_relationships = self.domain_resolver.build_relationships(domain_groups, mappings)

        brand_report = self.brand_aggregator.aggregate(deals)
        revenue_rows = self.revenue_validator.validate(deals, companies, mappings)

        combined = combine_relationships(mappings, domain_relationships)
        filtered = filter_relationships(combined, search_term)

        stats = compute_strategy_stats(
            deals,
            companies,
            mappings,
            domain_relationships,
            revenue_rows,
            total_brands=brand_report.total_brands,
            high_performer_win_rate=self.config.high_performer_win_rate,
        )

        return ReconciliationResult(
            deals=tuple(deals),
            companies=tuple(companies),
            mappings=tuple(mappings),
            unmapped_deals=direct.unmapped_count,
            domain_groups=tuple(domain_groups),
            domain_relationships=tuple(domain_relationships),
            brand_report=brand_report,
            revenue_validation=tuple(revenue_rows),
            revenue_join_key=self.config.revenue_join_key,
            combined=combined,
            filtered=filtered,
            search_term=search_term or "",
            stats=stats,
        )


def reconcile(
    deal_rows: Iterable[Any],
    company_rows: Iterable[Any],
    search_term: Optional[str] = "",
    config: Optional[ReconcilerConfig] = None,
) -> ReconciliationResult:
    """Convenience wrapper for a single pass."""
    return Reconciler(config).run(deal_rows, company_rows, search_term)
