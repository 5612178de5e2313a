"""In-memory filtering of opportunity records.

Every constraint that is set must hold (logical AND). The location constraint
understands the common city abbreviations in both directions, so a query for
``NYC`` matches "New York, NY" and a query for ``San Francisco`` matches
"SF Bay Area".
"""

from __future__ import annotations

import random
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TypeVar

from opportunity_radar.schemas.opportunities import CanonicalOpportunity

DEFAULT_LIMIT = 5

LOCATION_ABBREVIATIONS: dict[str, str] = {
    "ny": "new york",
    "nyc": "new york",
    "sf": "san francisco",
    "la": "los angeles",
    "dc": "washington",
    "chi": "chicago",
    "atl": "atlanta",
    "bos": "boston",
    "sea": "seattle",
}

RecordT = TypeVar("RecordT", bound=CanonicalOpportunity)


@dataclass(slots=True, frozen=True)
class LocationTerms:
    """Substrings and whole-word abbreviations that satisfy one location query."""

    phrases: frozenset[str]
    abbreviations: frozenset[str]

    def matches(self, location: str | None) -> bool:
        haystack = (location or "").lower()
        if not haystack:
            return False
        if any(phrase in haystack for phrase in self.phrases):
            return True
        return any(re.search(rf"\b{re.escape(abbr)}\b", haystack) for abbr in self.abbreviations)


def location_terms(query: str) -> LocationTerms:
    normalized = " ".join(query.lower().split())
    phrases: set[str] = {normalized}
    abbreviations: set[str] = set()

    expanded = LOCATION_ABBREVIATIONS.get(normalized)
    if expanded:
        # "la" as a raw substring would match "Atlanta"; keep the abbreviation word-bounded.
        phrases = {expanded}
        abbreviations.add(normalized)

    for abbr, full in LOCATION_ABBREVIATIONS.items():
        if full in phrases:
            abbreviations.add(abbr)
    return LocationTerms(phrases=frozenset(phrases), abbreviations=frozenset(abbreviations))


@dataclass(slots=True)
class OpportunityFilters:
    category: str | None = None
    compensation: str | None = None
    is_remote: bool | None = None
    location: str | None = None
    skills: list[str] = field(default_factory=list)
    keyword: str | None = None
    limit: int | None = DEFAULT_LIMIT
    offset: int = 0
    shuffle: bool = False


@dataclass(slots=True)
class FilterResult:
    items: list
    total: int


def matches(record: CanonicalOpportunity, filters: OpportunityFilters) -> bool:
    if filters.category and filters.category != "all" and record.category != filters.category:
        return False
    if filters.compensation and record.compensation != filters.compensation:
        return False
    if filters.is_remote is not None and record.is_remote != filters.is_remote:
        return False

    location = (filters.location or "").strip()
    if location and not location_terms(location).matches(record.location):
        return False

    wanted_skills = {skill.strip().lower() for skill in filters.skills if skill and skill.strip()}
    if wanted_skills and not wanted_skills & {skill.lower() for skill in record.skills}:
        return False

    keyword = (filters.keyword or "").strip().lower()
    if keyword:
        searchable = " ".join((record.title, record.description, record.organization)).lower()
        if keyword not in searchable:
            return False
    return True


def apply_filters(
    records: Iterable[RecordT],
    filters: OpportunityFilters,
    *,
    rng: random.Random | None = None,
) -> FilterResult:
    """Filter, optionally shuffle, then page. ``total`` counts matches before paging."""
    selected = [record for record in records if matches(record, filters)]
    total = len(selected)

    if filters.shuffle:
        (rng or random.Random()).shuffle(selected)

    start = max(0, filters.offset)
    if filters.limit is None:
        page = selected[start:]
    else:
        page = selected[start : start + max(0, filters.limit)]
    return FilterResult(items=page, total=total)
