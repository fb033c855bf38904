"""
Merges resolver outputs into one tagged relationship sequence and applies
the free-text search filter over it.
"""

from typing import Iterable, Optional

from processing.models import (
    CombinedRelationship,
    DomainRelationship,
    Mapping,
    RelationshipType,
    Strategy,
)


def combine_relationships(
    mappings: Iterable[Mapping],
    domain_relationships: Iterable[DomainRelationship],
) -> tuple[CombinedRelationship, ...]:
    """Direct-ID mappings first, then domain relationships, each in resolver order."""
    combined = [
        CombinedRelationship(
            strategy=Strategy.ENHANCED_ID,
            type=RelationshipType.DEAL_COMPANY,
            relationship=mapping,
        )
        for mapping in mappings
    ]
    combined.extend(
        CombinedRelationship(
            strategy=Strategy.DOMAIN,
            type=RelationshipType.PARENT_CHILD,
            relationship=rel,
        )
        for rel in domain_relationships
    )
    return tuple(combined)


def filter_relationships(
    combined: tuple[CombinedRelationship, ...],
    search_term: Optional[str],
) -> tuple[CombinedRelationship, ...]:
    """
    Case-insensitive substring match on deal, company, parent, child and
    brand names. A blank term returns the sequence untouched.
    """
    if not search_term or not search_term.strip():
        return combined

    needle = search_term.strip().lower()
    return tuple(
        rel for rel in combined
        if any(needle in text.lower() for text in rel.search_fields() if text)
    )


def by_strategy(
    combined: Iterable[CombinedRelationship],
    strategy: Strategy,
) -> list[CombinedRelationship]:
    return [rel for rel in combined if rel.strategy is strategy]
