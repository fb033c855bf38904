"""
Domain Clustering Resolver

Groups companies by root domain and infers a parent for each group:

a) Companies with a blank domain are not grouped
b) Root domain = last two labels of the lower-cased, "www."-stripped domain
c) Groups of one produce nothing
d) Parent = most Direct-ID deals, then highest declared revenue, then first seen
e) Every other member becomes a child of the parent (confidence 75)

The root domain rule is deliberately naive: "mail.acme.co.uk" clusters under
"co.uk". A shared domain says the companies share DNS, nothing about
ownership.
"""

from collections import Counter
from typing import Iterable, Optional

from config.logging import logger
from processing.models import (
    DOMAIN_CONFIDENCE,
    Company,
    DomainGroup,
    DomainRelationship,
    Mapping,
)


def root_domain(domain: Optional[str]) -> Optional[str]:
    """
    Clustering key for a company domain.

    >>> root_domain("www.Acme.com")
    'acme.com'
    >>> root_domain("mail.acme.co.uk")
    'co.uk'
    """
    if not domain or not isinstance(domain, str):
        return None

    cleaned = domain.strip().lower()
    if cleaned.startswith("www."):
        cleaned = cleaned[4:]
    cleaned = cleaned.strip()
    if not cleaned:
        return None

    return ".".join(cleaned.split(".")[-2:])


class DomainResolver:
    """
    Infers parent/child relationships among companies sharing a root domain.

    Usage:
        resolver = DomainResolver()
        relationships = resolver.resolve(companies, mappings)
        summary = resolver.summarize(resolver.group(companies, mappings))
    """

    def group(
        self,
        companies: Iterable[Company],
        mappings: Iterable[Mapping] = (),
    ) -> list[DomainGroup]:
        """Partition companies by root domain, keeping groups of two or more."""
        buckets: dict[str, list[Company]] = {}
        for company in companies:
            key = root_domain(company.domain)
            if key is None:
                continue
            buckets.setdefault(key, []).append(company)

        deal_counts = Counter(m.company_id for m in mappings)

        groups = []
        for domain, members in buckets.items():
            if len(members) < 2:
                continue
            parent = self._select_parent(members, deal_counts)
            groups.append(DomainGroup(domain=domain, members=tuple(members), parent=parent))

        return groups

    def resolve(
        self,
        companies: Iterable[Company],
        mappings: Iterable[Mapping] = (),
    ) -> list[DomainRelationship]:
        """Emit one relationship per non-parent member of every domain group."""
        mappings = list(mappings)
        return self.build_relationships(self.group(companies, mappings), mappings)

    def build_relationships(
        self,
        groups: Iterable[DomainGroup],
        mappings: Iterable[Mapping] = (),
    ) -> list[DomainRelationship]:
        deal_counts = Counter(m.company_id for m in mappings)
        relationships = []

        for group in groups:
            parent = group.parent
            for child in group.children:
                relationships.append(
                    DomainRelationship(
                        parent_id=parent.record_id,
                        parent_name=parent.name,
                        child_id=child.record_id,
                        child_name=child.name,
                        domain=group.domain,
                        parent_deal_count=deal_counts.get(parent.record_id, 0),
                        parent_revenue=parent.total_revenue,
                        confidence=DOMAIN_CONFIDENCE,
                    )
                )

        logger.info(f"Domain mapping: {len(relationships)} parent/child relationships")
        return relationships

    def summarize(self, groups: list[DomainGroup]) -> dict[str, int]:
        """Counts shown next to the domain relationship table."""
        return {
            "domains": len(groups),
            "parents": len({g.parent.record_id for g in groups}),
            "children": len({c.record_id for g in groups for c in g.children}),
        }

    def _select_parent(self, members: list[Company], deal_counts: Counter) -> Company:
        """Highest deal count wins, then highest revenue; ties keep the first."""
        parent = members[0]
        for candidate in members[1:]:
            candidate_deals = deal_counts.get(candidate.record_id, 0)
            parent_deals = deal_counts.get(parent.record_id, 0)
            if candidate_deals > parent_deals:
                parent = candidate
            elif candidate_deals == parent_deals and candidate.total_revenue > parent.total_revenue:
                parent = candidate
        return parent
