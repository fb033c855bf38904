"""
CRM Relationship Mapper - Data Models

Typed records produced by normalization and the derived collections of a
reconciliation pass. Everything here is frozen: a pass allocates fresh
objects and the display layer only reads them.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum as PyEnum
from types import MappingProxyType
from typing import Mapping as MappingType, Optional, Union


# Confidence policy constants
DIRECT_ID_CONFIDENCE = 100
DOMAIN_CONFIDENCE = 75

UNKNOWN = "Unknown"


# Enums
class Strategy(PyEnum):
    ENHANCED_ID = "Enhanced ID"
    DOMAIN = "Domain"


class RelationshipType(PyEnum):
    DEAL_COMPANY = "deal-company"
    PARENT_CHILD = "parent-child"


class BrandAttribution(PyEnum):
    """How a multi-brand deal's budget is credited to its brands."""
    FULL = "full"    # Every tagged brand receives the full budget
    SPLIT = "split"  # Budget divided evenly across tagged brands


class RevenueJoinKey(PyEnum):
    """Which deal field links a deal to a company for revenue validation."""
    NAME = "name"  # Free-text "Associated Company" list
    ID = "id"      # Primary company reference, via Direct-ID mappings


class DealOutcome(PyEnum):
    WON = "won"
    LOST = "lost"
    OPEN = "open"


def frozen_counts(counts: MappingType[str, int]) -> MappingType[str, int]:
    """Return a read-only copy of a histogram."""
    return MappingProxyType(dict(counts))


# Source records
@dataclass(frozen=True)
class Deal:
    """A normalized deal row."""
    record_id: str
    name: str = "Unnamed Deal"
    budget: Decimal = Decimal("0")
    amount: Decimal = Decimal("0")
    stage: str = UNKNOWN
    pipeline: str = UNKNOWN
    campaign_brand: str = ""
    brands: tuple[str, ...] = ()
    primary_company_id: Optional[str] = None
    associated_company: str = ""
    associated_companies: tuple[str, ...] = ()
    close_date: Optional[date] = None
    create_date: Optional[date] = None
    is_closed_won: bool = False

    @property
    def is_won(self) -> bool:
        """Won by explicit flag or by stage text."""
        return self.is_closed_won or "won" in self.stage.lower()

    @property
    def outcome(self) -> DealOutcome:
        if self.is_won:
            return DealOutcome.WON
        if "lost" in self.stage.lower():
            return DealOutcome.LOST
        return DealOutcome.OPEN


@dataclass(frozen=True)
class Company:
    """A normalized company row."""
    record_id: str
    name: str = "Unnamed Company"
    domain: Optional[str] = None
    total_revenue: Decimal = Decimal("0")


# Resolver outputs
@dataclass(frozen=True)
class Mapping:
    """Deal linked to its primary company by identifier."""
    deal_id: str
    deal_name: str
    company_id: str
    company_name: str
    amount: Decimal  # Deal budget, never the PO amount
    po_amount: Decimal = Decimal("0")
    campaign_brand: str = ""
    deal_stage: str = UNKNOWN
    pipeline: str = UNKNOWN
    close_date: Optional[date] = None
    create_date: Optional[date] = None
    is_closed_won: bool = False
    relationship: str = "primary"
    confidence: int = DIRECT_ID_CONFIDENCE


@dataclass(frozen=True)
class DomainRelationship:
    """
    Parent/child link between two companies sharing a root domain.

    This only records DNS co-location. It is a heuristic, not evidence of
    corporate structure.
    """
    parent_id: str
    parent_name: str
    child_id: str
    child_name: str
    domain: str
    parent_deal_count: int = 0
    parent_revenue: Decimal = Decimal("0")
    basis: str = "domain"
    confidence: int = DOMAIN_CONFIDENCE


@dataclass(frozen=True)
class DomainGroup:
    """Companies sharing one root domain, with the selected parent."""
    domain: str
    members: tuple[Company, ...]
    parent: Company

    @property
    def children(self) -> tuple[Company, ...]:
        return tuple(c for c in self.members if c is not self.parent)


@dataclass(frozen=True)
class BrandMetric:
    """Accumulated deal metrics for one campaign brand."""
    brand: str
    revenue: Decimal
    deal_count: int
    avg_deal_size: Decimal
    company_count: int
    win_rate: float
    pipelines: MappingType[str, int] = field(default_factory=lambda: frozen_counts({}))
    stages: MappingType[str, int] = field(default_factory=lambda: frozen_counts({}))
    monthly_revenue: MappingType[str, Decimal] = field(
        default_factory=lambda: MappingProxyType({})
    )


@dataclass(frozen=True)
class BrandReport:
    """Brand metrics for a pass, ordered by revenue descending."""
    metrics: tuple[BrandMetric, ...]
    attribution: BrandAttribution = BrandAttribution.FULL

    @property
    def total_brands(self) -> int:
        return len(self.metrics)

    @property
    def total_brand_revenue(self) -> Decimal:
        return sum((m.revenue for m in self.metrics), Decimal("0"))

    def get(self, brand: str) -> Optional[BrandMetric]:
        for metric in self.metrics:
            if metric.brand == brand:
                return metric
        return None


@dataclass(frozen=True)
class DealSummary:
    """Per-deal line kept on a company's revenue analysis."""
    name: str
    stage: str
    media_budget: Decimal
    po_amount: Decimal
    close_date: Optional[date] = None


@dataclass(frozen=True)
class CompanyRevenueAnalysis:
    """Revenue computed from a company's deals."""
    company_name: str
    total_media_budget: Decimal
    total_po_amount: Decimal
    deal_count: int
    won_deals: int
    open_deals: int
    lost_deals: int
    win_rate: float
    avg_media_budget: Decimal
    avg_po_amount: Decimal
    deals: tuple[DealSummary, ...] = ()
    # Identifier-keyed validation only
    company_id: Optional[str] = None
    declared_revenue: Optional[Decimal] = None
    accuracy: Optional[float] = None
    # Name-keyed validation only: best company record for the free-text name
    match_score: Optional[float] = None


@dataclass(frozen=True)
class CombinedRelationship:
    """Mapping or DomainRelationship tagged with the strategy that found it."""
    strategy: Strategy
    type: RelationshipType
    relationship: Union[Mapping, DomainRelationship]

    @property
    def confidence(self) -> int:
        return self.relationship.confidence

    def search_fields(self) -> list[str]:
        """Text fields the free-text filter looks at."""
        rel = self.relationship
        if isinstance(rel, Mapping):
            return [rel.deal_name, rel.company_name, rel.campaign_brand]
        return [rel.parent_name, rel.child_name]


@dataclass(frozen=True)
class StrategyStats:
    """Process-wide statistics, recomputed every pass over the full inputs."""
    total_deals: int
    total_companies: int
    direct_mappings: int
    unmapped_deals: int
    domain_relationships: int
    total_brands: int
    high_performing_companies: int
    total_revenue: Decimal
    average_deal_size: Decimal
    closed_won_deals: int
    open_deals: int
    lost_deals: int
    win_rate: float
    open_rate: float
    loss_rate: float
    mapping_coverage: float
    pipeline_distribution: MappingType[str, int]
    stage_distribution: MappingType[str, int]
    mapped_companies: int = 0
    mapped_revenue: Decimal = Decimal("0")
    open_pipeline_value: Decimal = Decimal("0")
    top_mapped_stages: tuple[tuple[str, int], ...] = ()
