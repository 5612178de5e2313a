from datetime import datetime

from pydantic import BaseModel, Field


class JobOut(BaseModel):
    id: str | None = None
    title: str
    company: str
    location: str
    description: str
    is_remote: bool = False
    salary_min: float | None = None
    salary_max: float | None = None
    contract_type: str | None = None
    created: datetime | None = None
    redirect_url: str | None = None
    source: str


class JobSearchOut(BaseModel):
    jobs: list[JobOut] = Field(default_factory=list)
    total_count: int
    source: str


class SalaryStatsOut(BaseModel):
    min: float
    max: float
    median: float
