"""Concurrent fan-out over the discovery adapters.

Each selected adapter is queried at the same time on one shared HTTP client.
The coordinator waits for every adapter to settle; a failing adapter only
contributes a failed outcome, never an exception.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache

import httpx
from opentelemetry import trace

from opportunity_radar.core.config import get_settings
from opportunity_radar.schemas.opportunities import CanonicalOpportunity
from opportunity_radar.services.repository import OpportunityRepository
from opportunity_radar.services.upsert import UpsertStats, upsert_opportunities
from opportunity_radar.sources.base import FetchHints, SourceAdapter, SourceOutcome
from opportunity_radar.sources.registry import build_default_registry

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(slots=True)
class AggregationResult:
    records: list[CanonicalOpportunity] = field(default_factory=list)
    outcomes: list[SourceOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[SourceOutcome]:
        return [outcome for outcome in self.outcomes if outcome.ok]

    @property
    def failed(self) -> list[SourceOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]


@dataclass(slots=True)
class RefreshReport:
    trigger: str
    started_at: datetime
    finished_at: datetime
    fetched: int
    stats: UpsertStats
    outcomes: list[SourceOutcome]


class AggregationCoordinator:
    def __init__(
        self,
        adapters: Sequence[SourceAdapter],
        *,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.adapters = list(adapters)
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def select(self, category: str | None = None) -> list[SourceAdapter]:
        if not category or category == "all":
            return list(self.adapters)
        return [
            adapter
            for adapter in self.adapters
            if category in adapter.categories or adapter.always_included
        ]

    async def aggregate(
        self,
        category: str | None = None,
        hints: FetchHints | None = None,
    ) -> AggregationResult:
        selected = self.select(category)
        hints = hints or FetchHints(category=category)
        with tracer.start_as_current_span("aggregation.fan_out") as span:
            span.set_attribute("aggregation.category", category or "all")
            span.set_attribute("aggregation.adapter_count", len(selected))
            if not selected:
                logger.info("no adapters registered for category=%s", category)
                return AggregationResult()

            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                settled = await asyncio.gather(
                    *(adapter.collect(client, hints) for adapter in selected),
                    return_exceptions=True,
                )

            result = AggregationResult()
            for adapter, item in zip(selected, settled):
                if isinstance(item, BaseException):
                    if isinstance(item, asyncio.CancelledError):
                        raise item
                    logger.error("adapter escaped containment source=%s error=%r", adapter.source, item)
                    outcome = SourceOutcome(source=adapter.source, error=f"{type(item).__name__}: {item}")
                else:
                    outcome = item
                result.outcomes.append(outcome)
                result.records.extend(outcome.records)

            span.set_attribute("aggregation.record_count", len(result.records))
            span.set_attribute("aggregation.failed_sources", len(result.failed))
            logger.info(
                "aggregation finished category=%s records=%s sources_ok=%s sources_failed=%s",
                category or "all",
                len(result.records),
                len(result.succeeded),
                len(result.failed),
            )
            return result


async def run_aggregation_pass(
    coordinator: AggregationCoordinator,
    repository: OpportunityRepository,
    *,
    trigger: str,
) -> RefreshReport:
    """Fetch from every adapter and upsert whatever came back."""
    started_at = datetime.now(timezone.utc)
    with tracer.start_as_current_span("aggregation.pass") as span:
        span.set_attribute("aggregation.trigger", trigger)
        result = await coordinator.aggregate()
        stats = await upsert_opportunities(repository, result.records)
        span.set_attribute("aggregation.inserted", stats.inserted)
        span.set_attribute("aggregation.updated", stats.updated)
        span.set_attribute("aggregation.failed", stats.failed)
    return RefreshReport(
        trigger=trigger,
        started_at=started_at,
        finished_at=datetime.now(timezone.utc),
        fetched=len(result.records),
        stats=stats,
        outcomes=result.outcomes,
    )


@lru_cache
def get_coordinator() -> AggregationCoordinator:
    settings = get_settings()
    return AggregationCoordinator(
        build_default_registry(settings),
        timeout_seconds=settings.provider_timeout_seconds,
    )
