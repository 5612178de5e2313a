from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from opportunity_radar.schemas.opportunities import CanonicalOpportunity, OpportunityOut, SavedOpportunityOut
from opportunity_radar.services.filters import OpportunityFilters, apply_filters
from opportunity_radar.services.repository import RepositoryNotFoundError


def _sort_key(opportunity: OpportunityOut) -> tuple:
    posted = opportunity.posted_date
    return (posted is None, -(posted.timestamp() if posted else 0.0), -opportunity.created_at.timestamp())


class InMemoryRepository:
    """Process-local store used when no database is configured, and in tests."""

    def __init__(self) -> None:
        self.opportunities: dict[str, OpportunityOut] = {}
        self.saved: dict[tuple[str, str], dict] = {}

    async def ensure_schema(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def count_opportunities(self) -> int:
        return sum(1 for opportunity in self.opportunities.values() if opportunity.is_active)

    async def get_opportunity_by_external_id(self, source: str, external_id: str) -> OpportunityOut | None:
        if not external_id:
            return None
        matches = [
            opportunity
            for opportunity in self.opportunities.values()
            if opportunity.source == source and opportunity.external_id == external_id
        ]
        if not matches:
            return None
        return min(matches, key=lambda opportunity: opportunity.created_at)

    async def create_opportunity(self, record: CanonicalOpportunity) -> OpportunityOut:
        now = datetime.now(timezone.utc)
        opportunity = OpportunityOut(id=str(uuid4()), created_at=now, updated_at=now, **record.model_dump())
        self.opportunities[opportunity.id] = opportunity
        return opportunity

    async def update_opportunity(self, opportunity_id: str, record: CanonicalOpportunity) -> OpportunityOut:
        existing = self.opportunities.get(opportunity_id)
        if existing is None:
            raise RepositoryNotFoundError("opportunity not found")
        updated = OpportunityOut(
            id=existing.id,
            is_active=existing.is_active,
            created_at=existing.created_at,
            updated_at=datetime.now(timezone.utc),
            **record.model_dump(),
        )
        self.opportunities[opportunity_id] = updated
        return updated

    async def get_opportunity(self, opportunity_id: str) -> OpportunityOut:
        opportunity = self.opportunities.get(opportunity_id)
        if opportunity is None:
            raise RepositoryNotFoundError("opportunity not found")
        return opportunity

    async def list_opportunities(self, filters: OpportunityFilters) -> tuple[list[OpportunityOut], int]:
        active = sorted(
            (opportunity for opportunity in self.opportunities.values() if opportunity.is_active),
            key=_sort_key,
        )
        result = apply_filters(active, filters)
        return result.items, result.total

    async def save_opportunity(self, user_id: str, opportunity_id: str, notes: str | None = None) -> SavedOpportunityOut:
        opportunity = await self.get_opportunity(opportunity_id)
        key = (user_id, opportunity_id)
        entry = self.saved.get(key)
        if entry is None:
            entry = {"notes": notes, "saved_at": datetime.now(timezone.utc)}
            self.saved[key] = entry
        else:
            entry["notes"] = notes
        return SavedOpportunityOut(user_id=user_id, opportunity=opportunity, **entry)

    async def list_saved_opportunities(self, user_id: str) -> list[SavedOpportunityOut]:
        saved = [
            SavedOpportunityOut(user_id=owner, opportunity=self.opportunities[opportunity_id], **entry)
            for (owner, opportunity_id), entry in self.saved.items()
            if owner == user_id and opportunity_id in self.opportunities
        ]
        return sorted(saved, key=lambda item: item.saved_at, reverse=True)

    async def remove_saved_opportunity(self, user_id: str, opportunity_id: str) -> None:
        self.saved.pop((user_id, opportunity_id), None)
