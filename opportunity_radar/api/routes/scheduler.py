from fastapi import APIRouter, Depends

from opportunity_radar.api.dependencies import get_scheduler
from opportunity_radar.schemas.scheduler import SchedulerStatusOut

router = APIRouter()


@router.get("/status", response_model=SchedulerStatusOut)
async def scheduler_status(scheduler=Depends(get_scheduler)) -> SchedulerStatusOut:
    return SchedulerStatusOut(**scheduler.status())
