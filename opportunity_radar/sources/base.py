"""Provider adapter contract shared by every external opportunity source.

An adapter turns one provider's wire format into ``CanonicalOpportunity``
records. ``fetch_live`` is allowed to raise ``ProviderError``; ``collect`` and
``fetch`` never do, so one broken provider cannot abort its siblings.
"""

from __future__ import annotations

import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
from opentelemetry import trace

from opportunity_radar.schemas.opportunities import CanonicalOpportunity
from opportunity_radar.sources.errors import ProviderError, ProviderParseError, ProviderUnavailableError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_USER_AGENT = "OpportunityRadar/1.0"
_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


@dataclass(slots=True)
class FetchHints:
    keyword: str | None = None
    location: str | None = None
    category: str | None = None
    remote: bool | None = None
    limit: int | None = None
    page: int = 1
    salary_min: float | None = None
    salary_max: float | None = None
    contract_type: str | None = None
    max_distance: int | None = None


@dataclass(slots=True)
class SearchPage:
    source: str
    records: list[CanonicalOpportunity]
    total_count: int


@dataclass(slots=True)
class SourceOutcome:
    source: str
    records: list[CanonicalOpportunity] = field(default_factory=list)
    error: str | None = None
    used_static_fallback: bool = False
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


class SourceAdapter(ABC):
    source: str = ""
    name: str = ""
    categories: frozenset[str] = frozenset()
    always_included: bool = False
    uses_static_fallback: bool = False
    default_url: str = ""

    def __init__(
        self,
        *,
        url: str | None = None,
        timeout_seconds: float = 15.0,
        user_agent: str = DEFAULT_USER_AGENT,
        use_static_fallback: bool | None = None,
    ) -> None:
        self.url = url or self.default_url
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        if use_static_fallback is not None:
            self.uses_static_fallback = use_static_fallback

    def __repr__(self) -> str:
        return f"{type(self).__name__}(source={self.source!r})"

    @abstractmethod
    async def fetch_live(self, client: httpx.AsyncClient, hints: FetchHints) -> list[CanonicalOpportunity]:
        """Query the provider; raise ProviderError on any failure."""

    def static_fallback(self) -> list[CanonicalOpportunity]:
        return []

    async def search(self, client: httpx.AsyncClient, hints: FetchHints) -> SearchPage:
        records = await self.fetch_live(client, hints)
        return SearchPage(source=self.source, records=records, total_count=len(records))

    async def collect(self, client: httpx.AsyncClient, hints: FetchHints | None = None) -> SourceOutcome:
        hints = hints or FetchHints()
        started_at = time.perf_counter()
        with tracer.start_as_current_span("source.collect") as span:
            span.set_attribute("source.id", self.source)
            try:
                records = await self.fetch_live(client, hints)
            except ProviderError as exc:
                error = str(exc)
                logger.warning("provider failed source=%s error=%s", self.source, exc)
            except Exception as exc:
                error = f"{type(exc).__name__}: {exc}"
                logger.exception("provider raised unexpectedly source=%s", self.source)
            else:
                elapsed_ms = (time.perf_counter() - started_at) * 1000.0
                span.set_attribute("source.record_count", len(records))
                logger.info(
                    "provider returned source=%s records=%s duration_ms=%.2f",
                    self.source,
                    len(records),
                    elapsed_ms,
                )
                return SourceOutcome(source=self.source, records=records, elapsed_ms=elapsed_ms)

            span.set_attribute("source.error", error)
            fallback = self.static_fallback() if self.uses_static_fallback else []
            if fallback:
                logger.info("using static fallback source=%s records=%s", self.source, len(fallback))
            return SourceOutcome(
                source=self.source,
                records=fallback,
                error=error,
                used_static_fallback=bool(fallback),
                elapsed_ms=(time.perf_counter() - started_at) * 1000.0,
            )

    async def fetch(self, client: httpx.AsyncClient, hints: FetchHints | None = None) -> list[CanonicalOpportunity]:
        outcome = await self.collect(client, hints)
        return outcome.records

    async def _request(self, client: httpx.AsyncClient, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = {"User-Agent": self.user_agent, **kwargs.pop("headers", {})}
        try:
            response = await client.request(method, url, headers=headers, timeout=self.timeout_seconds, **kwargs)
        except httpx.TimeoutException as exc:
            raise ProviderUnavailableError(self.source, f"timed out after {self.timeout_seconds}s") from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(self.source, f"request failed: {exc}") from exc

        if not response.is_success:
            raise ProviderUnavailableError(
                self.source,
                f"status {response.status_code}",
                status_code=response.status_code,
            )
        return response

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderParseError(self.source, "response body is not valid JSON") from exc


def as_text(value: Any) -> str | None:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def as_text_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [text for text in (as_text(item) for item in value) if text]


def as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        try:
            dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def days_from_now(days: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


def clean_description(raw: str | None, *, max_chars: int = 200) -> str:
    if not raw:
        return "No description available"
    cleaned = _WS_RE.sub(" ", _TAG_RE.sub("", raw)).strip()
    if not cleaned:
        return "No description available"
    if len(cleaned) > max_chars:
        cleaned = cleaned[: max_chars - 3] + "..."
    return cleaned


def mentions_remote(*locations: str | None) -> bool:
    return any("remote" in location.lower() for location in locations if location)
