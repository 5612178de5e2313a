from fastapi import HTTPException, Request, status as http_status

from opportunity_radar.jobs.scheduler import AggregationScheduler


def get_scheduler(request: Request) -> AggregationScheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail="scheduler not initialized")
    return scheduler
