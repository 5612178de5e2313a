from __future__ import annotations

import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

import httpx

from opportunity_radar.core.urls import normalize_url
from opportunity_radar.schemas.opportunities import CanonicalOpportunity
from opportunity_radar.sources.base import (
    FetchHints,
    SourceAdapter,
    as_text,
    as_text_list,
    clean_description,
    mentions_remote,
    parse_timestamp,
)
from opportunity_radar.sources.errors import ProviderParseError, ProviderUnavailableError

MAX_LISTINGS = 10


class ChallengeGovAdapter(SourceAdapter):
    """Federal prize competitions published as an XML feed."""

    source = "challenge.gov"
    name = "Challenge.gov"
    categories = frozenset({"competition", "hackathon"})
    always_included = True
    default_url = "https://www.challenge.gov/challenges.xml"

    async def fetch_live(self, client: httpx.AsyncClient, hints: FetchHints) -> list[CanonicalOpportunity]:
        response = await self._request(client, "GET", self.url, headers={"Accept": "application/xml"})
        return self.parse(response.text)

    def parse(self, xml_text: str) -> list[CanonicalOpportunity]:
        try:
            root = ET.fromstring(xml_text)
        except ET.ParseError as exc:
            raise ProviderParseError(self.source, f"invalid XML: {exc}") from exc

        challenges = [root] if root.tag == "challenge" else root.findall("challenge")
        records: list[CanonicalOpportunity] = []
        for challenge in challenges:
            title = _element_text(challenge, "title")
            if not title:
                continue
            challenge_id = _element_text(challenge, "id")
            url = _element_text(challenge, "url") or (
                f"https://www.challenge.gov/challenge/{challenge_id}" if challenge_id else "https://www.challenge.gov"
            )
            records.append(
                CanonicalOpportunity(
                    title=title,
                    description=clean_description(
                        _element_text(challenge, "description") or _element_text(challenge, "summary")
                    ),
                    organization=_element_text(challenge, "agency") or "U.S. Government",
                    category="competition",
                    location="Remote",
                    is_remote=True,
                    application_url=normalize_url(url),
                    deadline=parse_timestamp(_element_text(challenge, "submission-end")),
                    source=self.source,
                    external_id=challenge_id,
                    tags=["government", "challenge", "prize"],
                    duration=_challenge_duration(challenge),
                )
            )
            if len(records) >= MAX_LISTINGS:
                break
        return records


class RapidApiInternshipsAdapter(SourceAdapter):
    source = "rapidapi"
    name = "RapidAPI Internships"
    categories = frozenset({"internship"})
    default_url = "https://internships-api.p.rapidapi.com/internships"

    def __init__(self, *, api_key: str | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key

    async def fetch_live(self, client: httpx.AsyncClient, hints: FetchHints) -> list[CanonicalOpportunity]:
        if not self.api_key:
            raise ProviderUnavailableError(self.source, "API key not configured")

        location = hints.location or "United States"
        response = await self._request(
            client,
            "GET",
            self.url,
            params={"search": hints.keyword or "internship", "location": location},
            headers={
                "X-RapidAPI-Key": self.api_key,
                "X-RapidAPI-Host": urlparse(self.url).netloc,
            },
        )
        return self.parse(self._json(response), default_location=location)

    def parse(self, payload: Any, *, default_location: str = "United States") -> list[CanonicalOpportunity]:
        if isinstance(payload, list):
            internships = payload
        elif isinstance(payload, dict):
            internships = payload.get("internships") or payload.get("results") or []
        else:
            raise ProviderParseError(self.source, "expected a JSON object or array")
        if not isinstance(internships, list):
            raise ProviderParseError(self.source, "internships field is not a list")

        records: list[CanonicalOpportunity] = []
        for internship in internships[:MAX_LISTINGS]:
            if not isinstance(internship, dict):
                continue
            location = as_text(internship.get("location")) or default_location
            url = as_text(internship.get("url")) or as_text(internship.get("apply_url"))
            records.append(
                CanonicalOpportunity(
                    title=as_text(internship.get("title"))
                    or as_text(internship.get("job_title"))
                    or "Internship Position",
                    description=clean_description(as_text(internship.get("description"))),
                    organization=as_text(internship.get("company"))
                    or as_text(internship.get("company_name"))
                    or "Company",
                    category="internship",
                    location=location,
                    is_remote=bool(internship.get("remote") or internship.get("is_remote")),
                    application_url=normalize_url(url) if url else None,
                    deadline=parse_timestamp(internship.get("deadline")),
                    source=self.source,
                    external_id=as_text(internship.get("id")),
                    tags=["internship"],
                    duration=as_text(internship.get("duration")) or "Summer",
                )
            )
        return records


class GitHubInternshipsAdapter(SourceAdapter):
    """Community-maintained internship listings (flat JSON array on GitHub)."""

    source = "github"
    name = "GitHub Internships"
    categories = frozenset({"internship"})
    default_url = (
        "https://raw.githubusercontent.com/SimplifyJobs/Summer2026-Internships/dev/.github/scripts/listings.json"
    )

    async def fetch_live(self, client: httpx.AsyncClient, hints: FetchHints) -> list[CanonicalOpportunity]:
        response = await self._request(client, "GET", self.url)
        return self.parse(self._json(response))

    def parse(self, payload: Any) -> list[CanonicalOpportunity]:
        if not isinstance(payload, list):
            raise ProviderParseError(self.source, "expected a JSON array of listings")

        records: list[CanonicalOpportunity] = []
        for listing in payload:
            if not isinstance(listing, dict) or listing.get("active") is False:
                continue
            company = as_text(listing.get("company_name"))
            locations = as_text_list(listing.get("locations"))
            terms = as_text_list(listing.get("terms"))
            url = as_text(listing.get("url")) or as_text(listing.get("application_link"))
            records.append(
                CanonicalOpportunity(
                    title=as_text(listing.get("title")) or (f"{company} Internship" if company else "Tech Internship"),
                    description=", ".join(terms) or "Software engineering internship opportunity",
                    organization=company or "Tech Company",
                    category="internship",
                    location=", ".join(locations) or "Various Locations",
                    is_remote=mentions_remote(*locations),
                    application_url=normalize_url(url) if url else None,
                    source=self.source,
                    external_id=as_text(listing.get("id")),
                    tags=["internship", "tech"],
                    duration=as_text(listing.get("season")) or "Summer 2026",
                    posted_date=_epoch_or_iso(listing.get("date_posted")),
                )
            )
            if len(records) >= MAX_LISTINGS:
                break
        return records


def _element_text(element: ET.Element, tag: str) -> str | None:
    return as_text(element.findtext(tag))


def _challenge_duration(challenge: ET.Element) -> str:
    duration = _element_text(challenge, "duration")
    if duration:
        return duration
    if _element_text(challenge, "submission-start") and _element_text(challenge, "submission-end"):
        return "Limited Time"
    return "Ongoing"


def _epoch_or_iso(value: Any) -> datetime | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    return parse_timestamp(value)
