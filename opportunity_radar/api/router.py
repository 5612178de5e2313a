from fastapi import APIRouter

from opportunity_radar.api.routes import health, jobs, opportunities, saved, scheduler

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(opportunities.router, prefix="/opportunities", tags=["opportunities"])
api_router.include_router(saved.router, prefix="/users/{user_id}/saved-opportunities", tags=["saved"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
api_router.include_router(scheduler.router, prefix="/scheduler", tags=["scheduler"])
