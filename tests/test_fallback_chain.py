from __future__ import annotations

import asyncio

import httpx
import pytest

from opportunity_radar.schemas.opportunities import CanonicalOpportunity
from opportunity_radar.services.job_search import FallbackChain, JobSearchService
from opportunity_radar.sources.base import FetchHints, SearchPage, SourceAdapter
from opportunity_radar.sources.errors import AllProvidersExhaustedError, ProviderUnavailableError
from opportunity_radar.sources.jobs import AdzunaAdapter, CoreSignalAdapter


class ScriptedProvider(SourceAdapter):
    def __init__(self, source: str, *, records: int = 0, error: Exception | None = None, calls: list[str]) -> None:
        super().__init__()
        self.source = source
        self._records = records
        self._error = error
        self._calls = calls

    async def fetch_live(self, client: httpx.AsyncClient, hints: FetchHints) -> list[CanonicalOpportunity]:
        self._calls.append(self.source)
        if self._error is not None:
            raise self._error
        return [
            CanonicalOpportunity(title=f"{self.source} job {index}", source=self.source, external_id=str(index))
            for index in range(self._records)
        ]


def _search(chain: FallbackChain) -> SearchPage:
    async def run() -> SearchPage:
        async with httpx.AsyncClient() as client:
            return await chain.search(client, FetchHints(keyword="python"))

    return asyncio.run(run())


def test_primary_success_never_consults_secondary() -> None:
    calls: list[str] = []
    chain = FallbackChain(
        [
            ScriptedProvider("primary", records=2, calls=calls),
            ScriptedProvider("secondary", records=5, calls=calls),
        ]
    )

    page = _search(chain)

    assert calls == ["primary"]
    assert page.source == "primary"
    assert len(page.records) == 2


def test_primary_failure_falls_back_to_secondary() -> None:
    calls: list[str] = []
    chain = FallbackChain(
        [
            ScriptedProvider("primary", error=ProviderUnavailableError("primary", "status 500"), calls=calls),
            ScriptedProvider("secondary", records=3, calls=calls),
        ]
    )

    page = _search(chain)

    assert calls == ["primary", "secondary"]
    assert page.source == "secondary"
    assert {record.source for record in page.records} == {"secondary"}


def test_empty_primary_counts_as_miss() -> None:
    calls: list[str] = []
    chain = FallbackChain(
        [
            ScriptedProvider("primary", records=0, calls=calls),
            ScriptedProvider("secondary", records=1, calls=calls),
        ]
    )

    page = _search(chain)

    assert calls == ["primary", "secondary"]
    assert page.source == "secondary"


def test_unexpected_exception_also_falls_through() -> None:
    calls: list[str] = []
    chain = FallbackChain(
        [
            ScriptedProvider("primary", error=KeyError("results"), calls=calls),
            ScriptedProvider("secondary", records=1, calls=calls),
        ]
    )

    assert _search(chain).source == "secondary"


def test_exhaustion_raises_single_error_with_every_reason() -> None:
    calls: list[str] = []
    chain = FallbackChain(
        [
            ScriptedProvider("primary", error=ProviderUnavailableError("primary", "timed out after 15.0s"), calls=calls),
            ScriptedProvider("secondary", records=0, calls=calls),
        ]
    )

    with pytest.raises(AllProvidersExhaustedError) as exc_info:
        _search(chain)

    assert calls == ["primary", "secondary"]
    assert exc_info.value.failures == {"primary": "primary: timed out after 15.0s", "secondary": "no results"}
    assert "all job search providers failed" in str(exc_info.value)


def test_job_search_service_maps_secondary_page_to_jobs() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.coresignal.com":
            return httpx.Response(status_code=502, request=request)
        return httpx.Response(
            status_code=200,
            json={
                "count": 40,
                "results": [
                    {
                        "id": "a-1",
                        "title": "Data Analyst",
                        "company": {"display_name": "Initech"},
                        "location": {"display_name": "Chicago, IL"},
                        "redirect_url": "https://adzuna.example/a-1",
                        "contract_type": "contract",
                    }
                ],
            },
            request=request,
        )

    adzuna = AdzunaAdapter(app_id="id", app_key="key")
    service = JobSearchService(
        FallbackChain([CoreSignalAdapter(api_key="k"), adzuna]),
        details_provider=adzuna,
        transport=httpx.MockTransport(handler),
    )

    result = asyncio.run(service.search_jobs(FetchHints(keyword="data")))

    assert result.source == "adzuna"
    assert result.total_count == 40
    job = result.jobs[0]
    assert job.id == "a-1"
    assert job.company == "Initech"
    assert job.contract_type == "contract"
    assert job.redirect_url == "https://adzuna.example/a-1"


def test_missing_credentials_exhaust_the_chain() -> None:
    service = JobSearchService(FallbackChain([CoreSignalAdapter(), AdzunaAdapter()]))

    with pytest.raises(AllProvidersExhaustedError) as exc_info:
        asyncio.run(service.search_jobs(FetchHints()))

    assert set(exc_info.value.failures) == {"coresignal", "adzuna"}
