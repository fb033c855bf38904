"""
Company name matching for free-text company references.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from rapidfuzz import fuzz, process

from processing.models import Company


@dataclass
class NameMatch:
    """Result of a company name lookup."""
    company: Optional[Company] = None
    score: float = 0.0
    details: dict = field(default_factory=dict)

    @property
    def is_match(self) -> bool:
        return self.company is not None and self.score > 0

    def __repr__(self) -> str:
        if self.company:
            return f"<NameMatch({self.company.name}, score={self.score:.1f})>"
        return "<NameMatch(no match)>"


class CompanyNameMatcher:
    """
    Matches free-text company names (e.g. a deal's "Associated Company"
    entries) against company records using rapidfuzz.

    Scoring weights:
    - Token sort ratio: 40% (handles word reordering)
    - Token set ratio: 40% (handles partial matches)
    - Ratio: 20% (standard similarity)

    The candidate index is built once in __init__; lookups never rescan
    the company list.
    """

    # Common suffixes to normalize
    CORPORATE_SUFFIXES = [
        r"\bInc\.?$", r"\bIncorporated$", r"\bCorp\.?$", r"\bCorporation$",
        r"\bLLC$", r"\bL\.L\.C\.?$", r"\bLtd\.?$", r"\bLimited$",
        r"\bLLP$", r"\bL\.L\.P\.?$", r"\bLP$", r"\bL\.P\.?$",
        r"\bCo\.?$", r"\bCompany$", r"\bPC$", r"\bP\.C\.?$",
        r",\s*$",  # Trailing commas
    ]

    def __init__(self, companies: Iterable[Company], threshold: int = 85):
        """
        Initialize matcher.

        Args:
            companies: Candidate company records
            threshold: Minimum score (0-100) to consider a match
        """
        self.threshold = threshold
        self._companies: list[Company] = []
        self._exact: dict[str, Company] = {}
        self._choices: list[str] = []

        for company in companies:
            normalized = self.normalize_name(company.name)
            if not normalized:
                continue
            self._companies.append(company)
            self._choices.append(normalized)
            self._exact.setdefault(normalized, company)

    def match(self, name: str) -> NameMatch:
        """Find the best company for a free-text name."""
        if not name or len(name.strip()) < 2:
            return NameMatch()

        normalized = self.normalize_name(name)
        if not normalized:
            return NameMatch()

        exact = self._exact.get(normalized)
        if exact is not None:
            return NameMatch(company=exact, score=100.0, details={"normalized_name": normalized})

        if not self._choices:
            return NameMatch()

        best = process.extractOne(
            normalized,
            self._choices,
            scorer=self._combined_scorer,
            score_cutoff=self.threshold,
        )
        if best is None:
            return NameMatch()

        _, score, position = best
        company = self._companies[position]
        return NameMatch(
            company=company,
            score=float(score),
            details={
                "input_name": name,
                "normalized_name": normalized,
                "matched_name": company.name,
            },
        )

    def normalize_name(self, name: str) -> str:
        """
        Normalize company name for comparison.

        - Uppercase
        - Remove corporate suffixes
        - Normalize whitespace
        - Remove special characters
        """
        if not name:
            return ""

        normalized = name.upper().strip()

        # Remove corporate suffixes
        for pattern in self.CORPORATE_SUFFIXES:
            normalized = re.sub(pattern, "", normalized, flags=re.IGNORECASE).strip()

        # Normalize whitespace and special chars
        normalized = re.sub(r"[^\w\s]", " ", normalized)
        normalized = re.sub(r"\s+", " ", normalized).strip()

        return normalized

    def _combined_scorer(self, s1: str, s2: str, **kwargs) -> float:
        """
        Combined scoring using multiple fuzzy algorithms.

        Note: **kwargs accepts score_cutoff and other params from rapidfuzz.
        """
        token_sort = fuzz.token_sort_ratio(s1, s2)
        token_set = fuzz.token_set_ratio(s1, s2)
        ratio = fuzz.ratio(s1, s2)

        return (token_sort * 0.4) + (token_set * 0.4) + (ratio * 0.2)
