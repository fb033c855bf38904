"""
Entity Resolution Module

Deal-to-company and company-to-company linking strategies:
- Direct-ID matching on the primary company reference (confidence 100)
- Root-domain clustering of companies (confidence 75)
- Fuzzy name matching of free-text company references (rapidfuzz)
"""

from processing.entity_resolution.direct_id import DirectIdResolver, DirectIdResult
from processing.entity_resolution.domain import DomainResolver, root_domain
from processing.entity_resolution.matchers import CompanyNameMatcher, NameMatch

__all__ = [
    "DirectIdResolver",
    "DirectIdResult",
    "DomainResolver",
    "root_domain",
    "CompanyNameMatcher",
    "NameMatch",
]
