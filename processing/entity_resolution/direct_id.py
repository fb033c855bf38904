"""
Direct-ID resolution: deals linked to their primary company by identifier.
"""

from dataclasses import dataclass, field
from typing import Iterable

from config.logging import logger
from processing.models import DIRECT_ID_CONFIDENCE, Company, Deal, Mapping


@dataclass
class DirectIdResult:
    """Mappings from one Direct-ID pass plus its coverage."""
    mappings: list[Mapping] = field(default_factory=list)
    total_deals: int = 0
    unmapped_count: int = 0
    missing_reference: int = 0
    unknown_reference: int = 0

    @property
    def coverage(self) -> float:
        """Percentage of deals that produced a mapping."""
        if not self.total_deals:
            return 0.0
        return len(self.mappings) / self.total_deals * 100


class DirectIdResolver:
    """
    Links each deal to at most one company via the primary company reference.

    Identifiers are compared as strings. Deals without a reference, or whose
    reference matches no company, are left out and only show up in the
    unmapped count.

    Usage:
        result = DirectIdResolver().resolve(deals, companies)
        for mapping in result.mappings:
            ...
    """

    def build_index(self, companies: Iterable[Company]) -> dict[str, Company]:
        """Map company id to company. The first record wins on duplicate ids."""
        index: dict[str, Company] = {}
        duplicates = 0
        for company in companies:
            if not company.record_id:
                continue
            if company.record_id in index:
                duplicates += 1
                continue
            index[company.record_id] = company

        if duplicates:
            logger.warning(f"Ignored {duplicates} companies with duplicate Record IDs")
        return index

    def resolve(self, deals: list[Deal], companies: list[Company]) -> DirectIdResult:
        """Run Direct-ID resolution over all deals."""
        index = self.build_index(companies)
        result = DirectIdResult(total_deals=len(deals))

        for deal in deals:
            reference = deal.primary_company_id
            if not reference:
                result.missing_reference += 1
                continue

            company = index.get(reference)
            if company is None:
                result.unknown_reference += 1
                logger.debug(f"No company for deal {deal.record_id} reference {reference}")
                continue

            result.mappings.append(self._build_mapping(deal, company))

        result.unmapped_count = result.missing_reference + result.unknown_reference
        logger.info(
            f"Direct ID Mapping: {len(result.mappings)} mapped, "
            f"{result.unmapped_count} unmapped ({result.coverage:.1f}% coverage)"
        )
        return result

    def _build_mapping(self, deal: Deal, company: Company) -> Mapping:
        return Mapping(
            deal_id=deal.record_id,
            deal_name=deal.name,
            company_id=company.record_id,
            company_name=company.name,
            amount=deal.budget,
            po_amount=deal.amount,
            campaign_brand=deal.campaign_brand,
            deal_stage=deal.stage,
            pipeline=deal.pipeline,
            close_date=deal.close_date,
            create_date=deal.create_date,
            is_closed_won=deal.is_won,
            confidence=DIRECT_ID_CONFIDENCE,
        )
