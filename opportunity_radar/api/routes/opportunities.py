from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status as http_status

from opportunity_radar.api.dependencies import get_scheduler
from opportunity_radar.jobs.scheduler import AggregationInProgressError
from opportunity_radar.schemas.opportunities import (
    Compensation,
    DiscoveryOut,
    OpportunityCategory,
    OpportunityListOut,
    OpportunityOut,
    RefreshOut,
    SourceOutcomeOut,
)
from opportunity_radar.services.aggregation import get_coordinator
from opportunity_radar.services.filters import OpportunityFilters, apply_filters
from opportunity_radar.services.repository import (
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    get_repository,
)
from opportunity_radar.sources.base import FetchHints, SourceOutcome

router = APIRouter()


def _outcome_out(outcome: SourceOutcome) -> SourceOutcomeOut:
    return SourceOutcomeOut(
        source=outcome.source,
        ok=outcome.ok,
        record_count=len(outcome.records),
        used_static_fallback=outcome.used_static_fallback,
        error=outcome.error,
        elapsed_ms=round(outcome.elapsed_ms, 2),
    )


@router.get("", response_model=OpportunityListOut)
async def list_opportunities(
    category: OpportunityCategory | None = Query(default=None),
    location: str | None = Query(default=None, min_length=1),
    compensation: Compensation | None = Query(default=None),
    is_remote: bool | None = Query(default=None),
    skills: list[str] = Query(default=[]),
    q: str | None = Query(default=None, min_length=1),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    repository=Depends(get_repository),
) -> OpportunityListOut:
    filters = OpportunityFilters(
        category=category,
        compensation=compensation,
        is_remote=is_remote,
        location=location,
        skills=skills,
        keyword=q,
        limit=limit,
        offset=offset,
    )
    try:
        items, total = await repository.list_opportunities(filters)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return OpportunityListOut(items=items, total=total)


@router.get("/discover", response_model=DiscoveryOut)
async def discover_opportunities(
    category: OpportunityCategory | Literal["all"] = Query(default="all"),
    keyword: str | None = Query(default=None, min_length=1),
    location: str | None = Query(default=None, min_length=1),
    compensation: Compensation | None = Query(default=None),
    is_remote: bool | None = Query(default=None),
    skills: list[str] = Query(default=[]),
    limit: int = Query(default=5, ge=1, le=50),
    shuffle: bool = Query(default=False),
    coordinator=Depends(get_coordinator),
) -> DiscoveryOut:
    hints = FetchHints(
        keyword=keyword,
        location=location,
        category=None if category == "all" else category,
        remote=is_remote,
        limit=limit,
    )
    result = await coordinator.aggregate(hints.category, hints)
    # Category scoping happens in adapter selection so always-included feeds still surface.
    filtered = apply_filters(
        result.records,
        OpportunityFilters(
            compensation=compensation,
            is_remote=is_remote,
            location=location,
            skills=skills,
            keyword=keyword,
            limit=limit,
            shuffle=shuffle,
        ),
    )
    return DiscoveryOut(
        items=filtered.items,
        total=filtered.total,
        sources=[_outcome_out(outcome) for outcome in result.outcomes],
    )


@router.post("/refresh", response_model=RefreshOut)
async def refresh_opportunities(scheduler=Depends(get_scheduler)) -> RefreshOut:
    try:
        report = await scheduler.run_once(trigger="manual", raise_errors=True)
    except AggregationInProgressError as exc:
        raise HTTPException(status_code=http_status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return RefreshOut(
        trigger=report.trigger,
        started_at=report.started_at,
        finished_at=report.finished_at,
        fetched=report.fetched,
        inserted=report.stats.inserted,
        updated=report.stats.updated,
        failed=report.stats.failed,
        sources=[_outcome_out(outcome) for outcome in report.outcomes],
    )


@router.get("/{opportunity_id}", response_model=OpportunityOut)
async def get_opportunity(opportunity_id: str, repository=Depends(get_repository)) -> OpportunityOut:
    try:
        return await repository.get_opportunity(opportunity_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
