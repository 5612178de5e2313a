from datetime import datetime
from typing import Literal, get_args

from pydantic import BaseModel, Field

OpportunityCategory = Literal[
    "research",
    "startup",
    "nonprofit",
    "student-org",
    "volunteer",
    "internship",
    "hackathon",
    "competition",
    "apprenticeship",
    "externship",
]
Compensation = Literal["paid", "unpaid", "stipend", "academic-credit", "equity"]

OPPORTUNITY_CATEGORIES: frozenset[str] = frozenset(get_args(OpportunityCategory))


class CanonicalOpportunity(BaseModel):
    title: str
    description: str = ""
    organization: str = ""
    category: OpportunityCategory | None = None
    location: str = ""
    is_remote: bool = False
    compensation: Compensation | None = None
    requirements: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    application_url: str | None = None
    contact_email: str | None = None
    deadline: datetime | None = None
    source: str
    external_id: str | None = None
    estimated_hours: int | None = None
    duration: str | None = None
    salary_min: float | None = None
    salary_max: float | None = None
    posted_date: datetime | None = None

    def identity_key(self) -> tuple[str, str] | None:
        """(source, external_id), or None when the provider gave no stable id."""
        external_id = (self.external_id or "").strip()
        if not external_id:
            return None
        return self.source, external_id


class OpportunityOut(CanonicalOpportunity):
    id: str
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class OpportunityListOut(BaseModel):
    items: list[OpportunityOut]
    total: int


class SourceOutcomeOut(BaseModel):
    source: str
    ok: bool
    record_count: int
    used_static_fallback: bool = False
    error: str | None = None
    elapsed_ms: float


class DiscoveryOut(BaseModel):
    items: list[CanonicalOpportunity]
    total: int
    sources: list[SourceOutcomeOut]


class RefreshOut(BaseModel):
    trigger: str
    started_at: datetime
    finished_at: datetime
    fetched: int
    inserted: int
    updated: int
    failed: int
    sources: list[SourceOutcomeOut]


class SaveOpportunityRequest(BaseModel):
    opportunity_id: str
    notes: str | None = None


class SavedOpportunityOut(BaseModel):
    user_id: str
    opportunity: OpportunityOut
    notes: str | None = None
    saved_at: datetime
