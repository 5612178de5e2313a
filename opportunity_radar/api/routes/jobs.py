from fastapi import APIRouter, Depends, HTTPException, Query, status as http_status

from opportunity_radar.schemas.jobs import JobOut, JobSearchOut, SalaryStatsOut
from opportunity_radar.services.job_search import get_job_search_service
from opportunity_radar.sources.base import FetchHints
from opportunity_radar.sources.errors import AllProvidersExhaustedError, ProviderError

router = APIRouter()


@router.get("/search", response_model=JobSearchOut)
async def search_jobs(
    query: str | None = Query(default=None, min_length=1),
    location: str | None = Query(default=None, min_length=1),
    page: int = Query(default=1, ge=1),
    results_per_page: int = Query(default=20, ge=1, le=50),
    salary_min: float | None = Query(default=None, ge=0),
    salary_max: float | None = Query(default=None, ge=0),
    contract_type: str | None = Query(default=None, min_length=1),
    max_distance: int | None = Query(default=None, ge=1),
    service=Depends(get_job_search_service),
) -> JobSearchOut:
    hints = FetchHints(
        keyword=query,
        location=location,
        limit=results_per_page,
        page=page,
        salary_min=salary_min,
        salary_max=salary_max,
        contract_type=contract_type,
        max_distance=max_distance,
    )
    try:
        return await service.search_jobs(hints)
    except AllProvidersExhaustedError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.get("/salary-stats", response_model=SalaryStatsOut)
async def salary_stats(
    title: str | None = Query(default=None, min_length=1),
    location: str | None = Query(default=None, min_length=1),
    service=Depends(get_job_search_service),
) -> SalaryStatsOut:
    stats = await service.salary_stats(title=title, location=location)
    if stats is None:
        raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail="salary statistics unavailable")
    return stats


@router.get("/{job_id}", response_model=JobOut)
async def get_job(job_id: str, service=Depends(get_job_search_service)) -> JobOut:
    try:
        job = await service.get_job(job_id)
    except ProviderError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if job is None:
        raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail="job not found")
    return job
