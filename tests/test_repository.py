from __future__ import annotations

import asyncio
from typing import Any

from opportunity_radar.services.filters import OpportunityFilters
from opportunity_radar.services.repository import PostgresRepository


class RecordingPool:
    def __init__(self) -> None:
        self.queries: list[tuple[str, tuple[Any, ...]]] = []

    async def fetchval(self, query: str, *args: Any) -> int:
        self.queries.append((query, args))
        return 0

    async def fetch(self, query: str, *args: Any) -> list[Any]:
        self.queries.append((query, args))
        return []


def _list_with(filters: OpportunityFilters) -> RecordingPool:
    pool = RecordingPool()
    repository = PostgresRepository("postgresql://unused", min_pool_size=1, max_pool_size=1)
    repository._pool = pool  # type: ignore[assignment]
    items, total = asyncio.run(repository.list_opportunities(filters))
    assert (items, total) == ([], 0)
    return pool


def test_keyword_is_bound_as_plain_text_not_a_like_pattern() -> None:
    pool = _list_with(OpportunityFilters(keyword=" 100%_Off ", limit=None))

    count_sql, count_args = pool.queries[0]
    assert "ilike" not in count_sql.lower()
    assert "strpos(" in count_sql
    assert count_args == ("100%_off",)


def test_location_phrases_use_substring_and_abbreviations_use_word_regex() -> None:
    pool = _list_with(OpportunityFilters(location="NYC", limit=10, offset=5))

    count_sql, count_args = pool.queries[0]
    assert "ilike" not in count_sql.lower()
    assert "new york" in count_args
    assert r"\mnyc\M" in count_args
    assert r"\mny\M" in count_args

    page_sql, page_args = pool.queries[1]
    assert page_args[-2:] == (10, 5)
    assert "order by o.posted_date desc nulls last" in page_sql


def test_unset_filters_only_restrict_to_active_rows() -> None:
    pool = _list_with(OpportunityFilters(category="all", limit=None))

    count_sql, count_args = pool.queries[0]
    assert count_sql.strip().endswith("where o.is_active = true")
    assert count_args == ()
