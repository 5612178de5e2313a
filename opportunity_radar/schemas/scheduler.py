from datetime import datetime

from pydantic import BaseModel


class SchedulerStatusOut(BaseModel):
    enabled: bool
    started: bool
    running: bool
    startup_delay_seconds: float
    interval_seconds: float
    last_run_trigger: str | None = None
    last_run_started_at: datetime | None = None
    last_run_finished_at: datetime | None = None
    last_run_stats: dict[str, int] | None = None
    last_error: str | None = None
    next_run_at: datetime | None = None
