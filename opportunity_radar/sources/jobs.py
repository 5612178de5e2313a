from __future__ import annotations

import logging
from typing import Any

import httpx

from opportunity_radar.core.urls import normalize_url
from opportunity_radar.schemas.opportunities import CanonicalOpportunity
from opportunity_radar.sources.base import (
    FetchHints,
    SearchPage,
    SourceAdapter,
    as_float,
    as_text,
    mentions_remote,
    parse_timestamp,
)
from opportunity_radar.sources.errors import ProviderError, ProviderParseError, ProviderUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_RESULTS_PER_PAGE = 20


class CoreSignalAdapter(SourceAdapter):
    """Primary job search provider. POSTs a JSON filter body."""

    source = "coresignal"
    name = "CoreSignal"
    default_url = "https://api.coresignal.com/cdapi/v2"

    def __init__(self, *, api_key: str | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key

    async def fetch_live(self, client: httpx.AsyncClient, hints: FetchHints) -> list[CanonicalOpportunity]:
        page = await self.search(client, hints)
        return page.records

    async def search(self, client: httpx.AsyncClient, hints: FetchHints) -> SearchPage:
        if not self.api_key:
            raise ProviderUnavailableError(self.source, "API key not configured")

        search_filters: dict[str, Any] = {}
        if hints.keyword:
            search_filters["title"] = hints.keyword
        if hints.location:
            search_filters["location"] = hints.location
        if hints.contract_type:
            search_filters["employment_type"] = hints.contract_type
        logger.debug("coresignal search filters=%s", search_filters)

        response = await self._request(
            client,
            "POST",
            f"{self.url.rstrip('/')}/job/search/filter",
            json=search_filters,
            headers={"accept": "application/json", "apikey": self.api_key},
        )
        records = self.parse(self._json(response))
        per_page = hints.limit or DEFAULT_RESULTS_PER_PAGE
        return SearchPage(source=self.source, records=records[:per_page], total_count=len(records))

    def parse(self, payload: Any) -> list[CanonicalOpportunity]:
        if isinstance(payload, dict):
            payload = payload.get("data")
        if not isinstance(payload, list):
            raise ProviderParseError(self.source, "expected a JSON array or an object with a data array")

        records: list[CanonicalOpportunity] = []
        for job in payload:
            if not isinstance(job, dict):
                continue
            job_id = as_text(job.get("id"))
            location = as_text(job.get("location")) or "Unknown Location"
            remote_allowed = job.get("remote_allowed")
            records.append(
                CanonicalOpportunity(
                    title=as_text(job.get("title")) or "No Title",
                    description=as_text(job.get("description")) or "No description available",
                    organization=as_text(job.get("company_name")) or "Unknown Company",
                    location=location,
                    is_remote=remote_allowed if isinstance(remote_allowed, bool) else mentions_remote(location),
                    compensation="paid" if job.get("salary_min") or job.get("salary_max") else None,
                    application_url=f"https://coresignal.com/job/{job_id}" if job_id else None,
                    source=self.source,
                    external_id=job_id,
                    tags=[tag for tag in (as_text(job.get("employment_type")), as_text(job.get("seniority"))) if tag],
                    salary_min=as_float(job.get("salary_min")),
                    salary_max=as_float(job.get("salary_max")),
                    duration=as_text(job.get("employment_type")),
                    posted_date=parse_timestamp(job.get("time_posted")),
                )
            )
        return records


class AdzunaAdapter(SourceAdapter):
    """Secondary job search provider; query-string GET returning ``results`` and ``count``."""

    source = "adzuna"
    name = "Adzuna"
    default_url = "https://api.adzuna.com/v1/api/jobs/us"

    def __init__(self, *, app_id: str | None = None, app_key: str | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.app_id = app_id
        self.app_key = app_key

    @property
    def base_url(self) -> str:
        return self.url.rstrip("/")

    def _credentials(self) -> dict[str, str]:
        if not self.app_id or not self.app_key:
            raise ProviderUnavailableError(self.source, "app id/key not configured")
        return {"app_id": self.app_id, "app_key": self.app_key}

    async def fetch_live(self, client: httpx.AsyncClient, hints: FetchHints) -> list[CanonicalOpportunity]:
        page = await self.search(client, hints)
        return page.records

    async def search(self, client: httpx.AsyncClient, hints: FetchHints) -> SearchPage:
        params: dict[str, Any] = {
            **self._credentials(),
            "results_per_page": hints.limit or DEFAULT_RESULTS_PER_PAGE,
            "page": hints.page or 1,
        }
        if hints.keyword:
            params["what"] = hints.keyword
        if hints.location:
            params["where"] = hints.location
        if hints.max_distance:
            params["distance"] = hints.max_distance
        if hints.salary_min:
            params["salary_min"] = hints.salary_min
        if hints.salary_max:
            params["salary_max"] = hints.salary_max
        if hints.contract_type:
            params["contract_type"] = hints.contract_type

        response = await self._request(client, "GET", f"{self.base_url}/search", params=params)
        payload = self._json(response)
        if not isinstance(payload, dict):
            raise ProviderParseError(self.source, "expected a JSON object")
        results = payload.get("results") or []
        if not isinstance(results, list):
            raise ProviderParseError(self.source, "results field is not a list")

        records = [self.parse_job(job) for job in results if isinstance(job, dict)]
        total = payload.get("count")
        return SearchPage(
            source=self.source,
            records=records,
            total_count=int(total) if isinstance(total, (int, float)) else len(records),
        )

    def parse_job(self, job: dict[str, Any]) -> CanonicalOpportunity:
        company = job.get("company") if isinstance(job.get("company"), dict) else {}
        location_obj = job.get("location") if isinstance(job.get("location"), dict) else {}
        location = as_text(location_obj.get("display_name")) or "Unknown Location"
        title = as_text(job.get("title")) or "No Title"
        redirect_url = as_text(job.get("redirect_url"))
        salary_min = as_float(job.get("salary_min"))
        salary_max = as_float(job.get("salary_max"))
        contract_type = as_text(job.get("contract_type"))
        return CanonicalOpportunity(
            title=title,
            description=as_text(job.get("description")) or "No description available",
            organization=as_text(company.get("display_name")) or "Unknown Company",
            location=location,
            is_remote=mentions_remote(location, title),
            compensation="paid" if salary_min or salary_max else None,
            application_url=normalize_url(redirect_url) if redirect_url else None,
            source=self.source,
            external_id=as_text(job.get("id")),
            tags=[contract_type] if contract_type else [],
            salary_min=salary_min,
            salary_max=salary_max,
            duration=contract_type,
            posted_date=parse_timestamp(job.get("created")),
        )

    async def job_details(self, client: httpx.AsyncClient, job_id: str) -> CanonicalOpportunity | None:
        try:
            response = await self._request(
                client,
                "GET",
                f"{self.base_url}/details/{job_id}",
                params=self._credentials(),
            )
        except ProviderUnavailableError as exc:
            if exc.status_code == 404:
                return None
            raise

        payload = self._json(response)
        if not isinstance(payload, dict):
            raise ProviderParseError(self.source, "expected a JSON object")
        return self.parse_job(payload)

    async def salary_stats(
        self,
        client: httpx.AsyncClient,
        *,
        title: str | None = None,
        location: str | None = None,
    ) -> dict[str, float] | None:
        try:
            params: dict[str, Any] = self._credentials()
            if title:
                params["what"] = title
            if location:
                params["where"] = location
            response = await self._request(client, "GET", f"{self.base_url}/salary", params=params)
            payload = self._json(response)
        except ProviderError as exc:
            logger.warning("salary stats unavailable: %s", exc)
            return None

        if not isinstance(payload, dict):
            logger.warning("salary stats unavailable: unexpected payload type=%s", type(payload).__name__)
            return None
        return {
            "min": as_float(payload.get("min")) or 0.0,
            "max": as_float(payload.get("max")) or 0.0,
            "median": as_float(payload.get("median")) or 0.0,
        }
