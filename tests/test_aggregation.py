from __future__ import annotations

import asyncio

import httpx

from opportunity_radar.schemas.opportunities import CanonicalOpportunity
from opportunity_radar.services.aggregation import AggregationCoordinator, AggregationResult, run_aggregation_pass
from opportunity_radar.services.store import InMemoryRepository
from opportunity_radar.sources.base import FetchHints, SourceAdapter, SourceOutcome
from opportunity_radar.sources.errors import ProviderUnavailableError


class StubAdapter(SourceAdapter):
    def __init__(
        self,
        source: str,
        categories: set[str],
        *,
        records: int = 1,
        error: Exception | None = None,
        always_included: bool = False,
    ) -> None:
        super().__init__(use_static_fallback=False)
        self.source = source
        self.categories = frozenset(categories)
        self.always_included = always_included
        self._records = records
        self._error = error

    async def fetch_live(self, client: httpx.AsyncClient, hints: FetchHints) -> list[CanonicalOpportunity]:
        await asyncio.sleep(0)
        if self._error is not None:
            raise self._error
        category = next(iter(self.categories)) if self.categories else None
        return [
            CanonicalOpportunity(
                title=f"{self.source} listing {index}",
                category=category,
                source=self.source,
                external_id=f"{self.source}-{index}",
            )
            for index in range(self._records)
        ]


class EscapingAdapter(StubAdapter):
    async def collect(self, client: httpx.AsyncClient, hints: FetchHints | None = None) -> SourceOutcome:
        raise RuntimeError("collect contract broken")


def _adapters() -> list[SourceAdapter]:
    return [
        StubAdapter("research-a", {"research"}, records=2),
        StubAdapter("startup-a", {"startup"}, records=3),
        StubAdapter("nonprofit-a", {"nonprofit", "volunteer"}, records=1),
        StubAdapter("challenges", {"competition"}, records=1, always_included=True),
    ]


def test_select_scopes_by_category_and_keeps_always_included() -> None:
    coordinator = AggregationCoordinator(_adapters())

    assert [adapter.source for adapter in coordinator.select("research")] == ["research-a", "challenges"]
    assert [adapter.source for adapter in coordinator.select("volunteer")] == ["nonprofit-a", "challenges"]
    assert len(coordinator.select(None)) == 4
    assert len(coordinator.select("all")) == 4


def test_partial_failures_keep_successful_records() -> None:
    adapters = [
        StubAdapter("ok-1", {"research"}, records=2),
        StubAdapter("down", {"research"}, error=ProviderUnavailableError("down", "status 503")),
        StubAdapter("ok-2", {"research"}, records=3),
        StubAdapter("broken", {"research"}, error=ValueError("unexpected shape")),
    ]

    result = asyncio.run(AggregationCoordinator(adapters).aggregate())

    assert len(result.records) == 5
    assert {outcome.source for outcome in result.succeeded} == {"ok-1", "ok-2"}
    assert {outcome.source for outcome in result.failed} == {"down", "broken"}
    failed = {outcome.source: outcome.error for outcome in result.failed}
    assert failed["down"] == "down: status 503"
    assert failed["broken"] == "ValueError: unexpected shape"


def test_every_adapter_failing_yields_empty_result_not_error() -> None:
    adapters = [
        StubAdapter("a", {"research"}, error=ProviderUnavailableError("a", "status 500")),
        StubAdapter("b", {"research"}, error=ProviderUnavailableError("b", "status 500")),
    ]

    result = asyncio.run(AggregationCoordinator(adapters).aggregate("research"))

    assert result.records == []
    assert len(result.failed) == 2


def test_escaped_adapter_exception_becomes_failed_outcome() -> None:
    adapters = [EscapingAdapter("escaper", {"research"}), StubAdapter("fine", {"research"}, records=1)]

    result = asyncio.run(AggregationCoordinator(adapters).aggregate())

    assert len(result.records) == 1
    assert result.failed[0].source == "escaper"
    assert "collect contract broken" in (result.failed[0].error or "")


def test_no_matching_adapters_returns_empty_result() -> None:
    coordinator = AggregationCoordinator([StubAdapter("research-a", {"research"})])
    assert asyncio.run(coordinator.aggregate("hackathon")) == AggregationResult()


def test_aggregation_pass_upserts_fetched_records() -> None:
    repository = InMemoryRepository()
    coordinator = AggregationCoordinator(_adapters())

    report = asyncio.run(run_aggregation_pass(coordinator, repository, trigger="manual"))

    assert report.trigger == "manual"
    assert report.fetched == 7
    assert report.stats.inserted == 7
    assert report.stats.updated == 0
    assert asyncio.run(repository.count_opportunities()) == 7
