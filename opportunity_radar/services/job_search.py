from __future__ import annotations

import logging
from collections.abc import Sequence
from functools import lru_cache

import httpx
from opentelemetry import trace

from opportunity_radar.core.config import get_settings
from opportunity_radar.schemas.jobs import JobOut, JobSearchOut, SalaryStatsOut
from opportunity_radar.schemas.opportunities import CanonicalOpportunity
from opportunity_radar.sources.base import FetchHints, SearchPage, SourceAdapter
from opportunity_radar.sources.errors import AllProvidersExhaustedError
from opportunity_radar.sources.jobs import AdzunaAdapter
from opportunity_radar.sources.registry import build_adzuna, build_job_search_chain

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class FallbackChain:
    """Try providers one at a time, in order, until one returns records.

    Only the first non-empty page is returned; pages are never merged. When
    every provider fails or comes back empty a single
    ``AllProvidersExhaustedError`` carries each provider's reason.
    """

    def __init__(self, adapters: Sequence[SourceAdapter], *, capability: str = "job search") -> None:
        self.adapters = list(adapters)
        self.capability = capability

    async def search(self, client: httpx.AsyncClient, hints: FetchHints) -> SearchPage:
        failures: dict[str, str] = {}
        with tracer.start_as_current_span("fallback_chain.search") as span:
            span.set_attribute("fallback_chain.capability", self.capability)
            for position, adapter in enumerate(self.adapters):
                try:
                    page = await adapter.search(client, hints)
                except Exception as exc:
                    failures[adapter.source] = str(exc) or type(exc).__name__
                    logger.warning(
                        "%s provider failed source=%s position=%s error=%s",
                        self.capability,
                        adapter.source,
                        position,
                        exc,
                    )
                    continue

                if not page.records:
                    failures[adapter.source] = "no results"
                    logger.info("%s provider returned nothing source=%s", self.capability, adapter.source)
                    continue

                span.set_attribute("fallback_chain.source", adapter.source)
                span.set_attribute("fallback_chain.position", position)
                if position:
                    logger.info("%s served by fallback provider source=%s", self.capability, adapter.source)
                return page

            span.set_attribute("fallback_chain.exhausted", True)
        raise AllProvidersExhaustedError(self.capability, failures)


def to_job(record: CanonicalOpportunity) -> JobOut:
    return JobOut(
        id=record.external_id,
        title=record.title,
        company=record.organization,
        location=record.location,
        description=record.description,
        is_remote=record.is_remote,
        salary_min=record.salary_min,
        salary_max=record.salary_max,
        contract_type=record.duration,
        created=record.posted_date,
        redirect_url=record.application_url,
        source=record.source,
    )


class JobSearchService:
    def __init__(
        self,
        chain: FallbackChain,
        *,
        details_provider: AdzunaAdapter | None = None,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.chain = chain
        self.details_provider = details_provider
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport)

    async def search_jobs(self, hints: FetchHints) -> JobSearchOut:
        async with self._client() as client:
            page = await self.chain.search(client, hints)
        return JobSearchOut(
            jobs=[to_job(record) for record in page.records],
            total_count=page.total_count,
            source=page.source,
        )

    async def get_job(self, job_id: str) -> JobOut | None:
        if self.details_provider is None:
            return None
        async with self._client() as client:
            record = await self.details_provider.job_details(client, job_id)
        return to_job(record) if record is not None else None

    async def salary_stats(self, *, title: str | None = None, location: str | None = None) -> SalaryStatsOut | None:
        if self.details_provider is None:
            return None
        async with self._client() as client:
            stats = await self.details_provider.salary_stats(client, title=title, location=location)
        return SalaryStatsOut(**stats) if stats is not None else None


@lru_cache
def get_job_search_service() -> JobSearchService:
    settings = get_settings()
    return JobSearchService(
        FallbackChain(build_job_search_chain(settings)),
        details_provider=build_adzuna(settings),
        timeout_seconds=settings.provider_timeout_seconds,
    )
