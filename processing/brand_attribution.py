"""
Brand Attribution Aggregator

Explodes each deal's campaign brand tags and accumulates revenue, deal
counts, pipeline/stage histograms and associated companies per brand.

A deal tagged with N brands is credited to each of them. Under FULL
attribution every brand receives the whole budget, so the sum over brands
can exceed total deal revenue. SPLIT attribution divides the budget by N in
whole cents and gives the rounding remainder to the last brand, so the
shares always sum back to the budget.
"""

from collections import Counter, defaultdict
from decimal import ROUND_DOWN, Decimal, getcontext
from types import MappingProxyType

from config.logging import logger
from processing.models import BrandAttribution, BrandMetric, BrandReport, Deal, frozen_counts


class BrandAttributionAggregator:
    """
    Usage:
        report = BrandAttributionAggregator().aggregate(deals)
        top = report.metrics[:10]
    """

    def __init__(self, attribution: BrandAttribution = BrandAttribution.FULL):
        self.attribution = BrandAttribution(attribution)

    def aggregate(self, deals: list[Deal]) -> BrandReport:
        revenue: dict[str, Decimal] = defaultdict(Decimal)
        deal_counts: Counter = Counter()
        pipelines: dict[str, Counter] = defaultdict(Counter)
        stages: dict[str, Counter] = defaultdict(Counter)
        companies: dict[str, set[str]] = defaultdict(set)
        monthly: dict[str, dict[str, Decimal]] = defaultdict(lambda: defaultdict(Decimal))

        for deal in deals:
            if not deal.brands:
                continue
            month = deal.close_date.strftime("%Y-%m") if deal.close_date else None

            for brand, credit in zip(deal.brands, self._credits(deal)):
                revenue[brand] += credit
                deal_counts[brand] += 1
                pipelines[brand][deal.pipeline] += 1
                stages[brand][deal.stage] += 1
                if month:
                    monthly[brand][month] += credit
                if deal.primary_company_id:
                    companies[brand].add(deal.primary_company_id)

        metrics = [
            self._build_metric(
                brand,
                revenue[brand],
                deal_counts[brand],
                pipelines[brand],
                stages[brand],
                companies[brand],
                monthly[brand],
            )
            for brand in revenue
        ]
        # Presentation order only
        metrics.sort(key=lambda m: m.revenue, reverse=True)

        report = BrandReport(metrics=tuple(metrics), attribution=self.attribution)
        logger.info(
            f"Brand attribution ({self.attribution.value}): {report.total_brands} brands, "
            f"${report.total_brand_revenue:,.2f} attributed"
        )
        return report

    def _credits(self, deal: Deal) -> list[Decimal]:
        """Credit for each of the deal's brands, in tag order."""
        count = len(deal.brands)
        if self.attribution is not BrandAttribution.SPLIT or count == 1:
            return [deal.budget] * count

        # Cents, or the budget's own precision when finer, within the context precision
        exponent = min(deal.budget.as_tuple().exponent, -2)
        exponent = max(exponent, deal.budget.adjusted() - getcontext().prec + 1)
        share = (deal.budget / count).quantize(Decimal(1).scaleb(exponent), rounding=ROUND_DOWN)
        return [share] * (count - 1) + [deal.budget - share * (count - 1)]

    def _build_metric(
        self,
        brand: str,
        revenue: Decimal,
        deal_count: int,
        pipelines: Counter,
        stages: Counter,
        companies: set[str],
        monthly: dict[str, Decimal],
    ) -> BrandMetric:
        won = sum(count for stage, count in stages.items() if "won" in stage.lower())
        return BrandMetric(
            brand=brand,
            revenue=revenue,
            deal_count=deal_count,
            avg_deal_size=revenue / deal_count,
            company_count=len(companies),
            win_rate=won / deal_count * 100,
            pipelines=frozen_counts(pipelines),
            stages=frozen_counts(stages),
            monthly_revenue=MappingProxyType(dict(sorted(monthly.items()))),
        )
