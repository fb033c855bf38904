"""
Strategy statistics over a full reconciliation pass.

Always computed over the complete deal and company inputs, never the
filtered view. Revenue figures use deal budget only.
"""

from collections import Counter
from decimal import Decimal
from typing import Optional

from config.logging import logger
from processing.models import (
    UNKNOWN,
    CompanyRevenueAnalysis,
    Company,
    Deal,
    DealOutcome,
    DomainRelationship,
    Mapping,
    StrategyStats,
    frozen_counts,
)

TOP_STAGE_LIMIT = 10


def classify_deal(deal: Deal) -> Optional[DealOutcome]:
    """
    Won if flagged or the stage says "won", lost if the stage says "lost",
    open otherwise unless the stage is some other "closed" state.
    """
    if deal.is_won:
        return DealOutcome.WON
    stage = deal.stage.lower()
    if "lost" in stage:
        return DealOutcome.LOST
    if "closed" in stage:
        return None
    return DealOutcome.OPEN


def _percent(part: int, whole: int) -> float:
    return part / whole * 100 if whole else 0.0


def compute_strategy_stats(
    deals: list[Deal],
    companies: list[Company],
    mappings: list[Mapping],
    domain_relationships: list[DomainRelationship],
    revenue_rows: list[CompanyRevenueAnalysis],
    total_brands: int,
    high_performer_win_rate: float = 50.0,
) -> StrategyStats:
    """Build the StrategyStats for one pass."""
    total_deals = len(deals)
    total_revenue = sum((deal.budget for deal in deals), Decimal("0"))

    outcomes = Counter(classify_deal(deal) for deal in deals)
    won = outcomes[DealOutcome.WON]
    lost = outcomes[DealOutcome.LOST]
    open_count = outcomes[DealOutcome.OPEN]

    pipeline_distribution = Counter(deal.pipeline or UNKNOWN for deal in deals)
    stage_distribution = Counter(deal.stage or UNKNOWN for deal in deals)

    mapped_stages = Counter(m.deal_stage for m in mappings)
    open_pipeline_value = sum(
        (
            m.amount for m in mappings
            if not m.is_closed_won and "lost" not in m.deal_stage.lower()
        ),
        Decimal("0"),
    )

    stats = StrategyStats(
        total_deals=total_deals,
        total_companies=len(companies),
        direct_mappings=len(mappings),
        unmapped_deals=total_deals - len(mappings),
        domain_relationships=len(domain_relationships),
        total_brands=total_brands,
        high_performing_companies=sum(
            1 for row in revenue_rows if row.win_rate > high_performer_win_rate
        ),
        total_revenue=total_revenue,
        average_deal_size=total_revenue / total_deals if total_deals else Decimal("0"),
        closed_won_deals=won,
        open_deals=open_count,
        lost_deals=lost,
        win_rate=_percent(won, total_deals),
        open_rate=_percent(open_count, total_deals),
        loss_rate=_percent(lost, total_deals),
        mapping_coverage=_percent(len(mappings), total_deals),
        pipeline_distribution=frozen_counts(pipeline_distribution),
        stage_distribution=frozen_counts(stage_distribution),
        mapped_companies=len({m.company_id for m in mappings}),
        mapped_revenue=sum((m.amount for m in mappings), Decimal("0")),
        open_pipeline_value=open_pipeline_value,
        top_mapped_stages=tuple(mapped_stages.most_common(TOP_STAGE_LIMIT)),
    )

    logger.info(
        f"Stats: {total_deals} deals, ${total_revenue:,.2f} revenue, "
        f"{stats.win_rate:.1f}% win rate, {stats.mapping_coverage:.1f}% mapped"
    )
    return stats
