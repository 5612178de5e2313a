from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import TypeVar

import asyncpg  # type: ignore[import-untyped]
import pytest

from opportunity_radar.services.filters import OpportunityFilters
from opportunity_radar.services.repository import PostgresRepository
from opportunity_radar.services.upsert import upsert_opportunities

T = TypeVar("T")


@pytest.fixture(scope="session")
def database_url() -> str:
    url = os.getenv("OR_TEST_DATABASE_URL") or os.getenv("DATABASE_URL")
    if not url:
        pytest.skip("integration tests require OR_DATABASE_URL or DATABASE_URL")
    return url


def _run(database_url: str, scenario: Callable[[PostgresRepository], Awaitable[T]]) -> T:
    # The asyncpg pool is bound to one event loop, so each scenario gets its own repository.
    async def runner() -> T:
        repository = PostgresRepository(database_url, min_pool_size=1, max_pool_size=2)
        try:
            await repository.ensure_schema()
            conn = await asyncpg.connect(database_url)
            try:
                await conn.execute("truncate table saved_opportunities, opportunities")
            finally:
                await conn.close()
            return await scenario(repository)
        finally:
            await repository.close()

    return asyncio.run(runner())


def _titles(items) -> list[str]:
    return sorted(item.title for item in items)


def test_upsert_is_idempotent_and_updates_in_place(database_url: str, make_opportunity) -> None:
    async def scenario(repository: PostgresRepository):
        batch = [make_opportunity(external_id=f"ext-{index}", title=f"Role {index}") for index in range(3)]
        first = await upsert_opportunities(repository, batch)
        second = await upsert_opportunities(repository, batch)

        original = await repository.get_opportunity_by_external_id("test-source", "ext-0")
        await upsert_opportunities(repository, [make_opportunity(external_id="ext-0", title="Renamed role")])
        updated = await repository.get_opportunity_by_external_id("test-source", "ext-0")
        return first, second, original, updated, await repository.count_opportunities()

    first, second, original, updated, count = _run(database_url, scenario)

    assert (first.inserted, first.updated, first.failed) == (3, 0, 0)
    assert (second.inserted, second.updated, second.failed) == (0, 3, 0)
    assert count == 3
    assert updated.id == original.id
    assert updated.title == "Renamed role"
    assert updated.created_at == original.created_at
    assert updated.updated_at >= original.updated_at


def test_records_without_external_id_always_insert(database_url: str, make_opportunity) -> None:
    async def scenario(repository: PostgresRepository):
        batch = [make_opportunity(external_id=""), make_opportunity(external_id=None)]
        await upsert_opportunities(repository, batch)
        stats = await upsert_opportunities(repository, batch)
        return stats, await repository.count_opportunities()

    stats, count = _run(database_url, scenario)

    assert stats.inserted == 2
    assert stats.updated == 0
    assert count == 4


def test_list_filters_match_the_in_memory_predicates(database_url: str, make_opportunity) -> None:
    now = datetime.now(timezone.utc)
    records = [
        make_opportunity(
            external_id="1",
            title="Genomics Research Aide",
            category="research",
            location="New York, NY",
            skills=["Python", "R"],
            posted_date=now,
        ),
        make_opportunity(
            external_id="2",
            title="Growth Intern",
            description="100% remote role",
            category="startup",
            location="Remote",
            is_remote=True,
            posted_date=now - timedelta(days=2),
        ),
        make_opportunity(
            external_id="3",
            title="snake_case linter maintainer",
            category="nonprofit",
            location="Atlanta, GA",
            compensation="unpaid",
        ),
        make_opportunity(
            external_id="4",
            title="Lab Coordinator",
            category="research",
            location="Los Angeles, CA",
            posted_date=now - timedelta(days=1),
        ),
    ]

    async def scenario(repository: PostgresRepository):
        await upsert_opportunities(repository, records)

        async def titles(**kwargs) -> list[str]:
            items, _ = await repository.list_opportunities(OpportunityFilters(limit=None, **kwargs))
            return _titles(items)

        ordered, total = await repository.list_opportunities(OpportunityFilters(limit=None))
        return {
            "ordered": [item.title for item in ordered],
            "total": total,
            "category": await titles(category="research"),
            "remote": await titles(is_remote=True),
            "compensation": await titles(compensation="unpaid"),
            "skills": await titles(skills=["python", "go"]),
            "nyc": await titles(location="NYC"),
            "la": await titles(location="LA"),
            "keyword": await titles(keyword="GENOMICS"),
            "underscore": await titles(keyword="_"),
            "percent": await titles(keyword="100%"),
            "paged": await repository.list_opportunities(OpportunityFilters(limit=1, offset=1)),
        }

    result = _run(database_url, scenario)

    assert result["ordered"] == [
        "Genomics Research Aide",
        "Lab Coordinator",
        "Growth Intern",
        "snake_case linter maintainer",
    ]
    assert result["total"] == 4
    assert result["category"] == ["Genomics Research Aide", "Lab Coordinator"]
    assert result["remote"] == ["Growth Intern"]
    assert result["compensation"] == ["snake_case linter maintainer"]
    assert result["skills"] == ["Genomics Research Aide"]
    assert result["nyc"] == ["Genomics Research Aide"]
    assert result["la"] == ["Lab Coordinator"]
    assert result["keyword"] == ["Genomics Research Aide"]
    assert result["underscore"] == ["snake_case linter maintainer"]
    assert result["percent"] == ["Growth Intern"]
    paged_items, paged_total = result["paged"]
    assert paged_total == 4
    assert [item.title for item in paged_items] == ["Lab Coordinator"]


def test_saving_twice_keeps_one_row_and_updates_the_note(database_url: str, make_opportunity) -> None:
    async def scenario(repository: PostgresRepository):
        created = await repository.create_opportunity(make_opportunity())
        await repository.save_opportunity("u-1", created.id, "apply soon")
        await repository.save_opportunity("u-1", created.id, "applied")
        saved = await repository.list_saved_opportunities("u-1")
        other_user = await repository.list_saved_opportunities("u-2")

        await repository.remove_saved_opportunity("u-1", created.id)
        await repository.remove_saved_opportunity("u-1", created.id)
        after_remove = await repository.list_saved_opportunities("u-1")
        still_stored = await repository.get_opportunity(created.id)
        return created, saved, other_user, after_remove, still_stored

    created, saved, other_user, after_remove, still_stored = _run(database_url, scenario)

    assert len(saved) == 1
    assert saved[0].notes == "applied"
    assert saved[0].opportunity.id == created.id
    assert other_user == []
    assert after_remove == []
    assert still_stored.id == created.id
