from __future__ import annotations

from opportunity_radar.core.config import Settings
from opportunity_radar.sources.base import SourceAdapter
from opportunity_radar.sources.beyond_jobs import (
    ChallengeGovAdapter,
    GitHubInternshipsAdapter,
    RapidApiInternshipsAdapter,
)
from opportunity_radar.sources.jobs import AdzunaAdapter, CoreSignalAdapter
from opportunity_radar.sources.opportunities import (
    CampusOrgsAdapter,
    JustServeAdapter,
    NsfReuAdapter,
    RemoteOkAdapter,
    UsaJobsAdapter,
)


def _common(settings: Settings) -> dict:
    return {
        "timeout_seconds": settings.provider_timeout_seconds,
        "user_agent": settings.provider_user_agent,
    }


def build_default_registry(settings: Settings) -> list[SourceAdapter]:
    """Every discovery adapter, in the order their outcomes are reported."""
    common = _common(settings)
    fallback = settings.static_fallback_enabled
    return [
        NsfReuAdapter(url=settings.nsf_reu_url, use_static_fallback=fallback, **common),
        RemoteOkAdapter(url=settings.remoteok_url, use_static_fallback=fallback, **common),
        UsaJobsAdapter(url=settings.usajobs_url, **common),
        JustServeAdapter(url=settings.justserve_url, use_static_fallback=fallback, **common),
        CampusOrgsAdapter(use_static_fallback=True, **common),
        ChallengeGovAdapter(url=settings.challenge_gov_url, **common),
        RapidApiInternshipsAdapter(url=settings.rapidapi_internships_url, api_key=settings.rapidapi_key, **common),
        GitHubInternshipsAdapter(url=settings.github_internships_url, **common),
    ]


def build_coresignal(settings: Settings) -> CoreSignalAdapter:
    return CoreSignalAdapter(
        url=settings.coresignal_base_url,
        api_key=settings.coresignal_api_key,
        **_common(settings),
    )


def build_adzuna(settings: Settings) -> AdzunaAdapter:
    return AdzunaAdapter(
        url=settings.adzuna_base_url,
        app_id=settings.adzuna_app_id,
        app_key=settings.adzuna_app_key,
        **_common(settings),
    )


def build_job_search_chain(settings: Settings) -> list[SourceAdapter]:
    """Job search providers in fallback order: primary first."""
    return [build_coresignal(settings), build_adzuna(settings)]
