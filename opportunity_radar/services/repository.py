from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Protocol

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from opportunity_radar.core.config import get_settings
from opportunity_radar.schemas.opportunities import (
    CanonicalOpportunity,
    OpportunityOut,
    SavedOpportunityOut,
)
from opportunity_radar.services.filters import OpportunityFilters, location_terms

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


class OpportunityRepository(Protocol):
    async def ensure_schema(self) -> None: ...

    async def count_opportunities(self) -> int: ...

    async def get_opportunity_by_external_id(self, source: str, external_id: str) -> OpportunityOut | None: ...

    async def create_opportunity(self, record: CanonicalOpportunity) -> OpportunityOut: ...

    async def update_opportunity(self, opportunity_id: str, record: CanonicalOpportunity) -> OpportunityOut: ...

    async def get_opportunity(self, opportunity_id: str) -> OpportunityOut: ...

    async def list_opportunities(self, filters: OpportunityFilters) -> tuple[list[OpportunityOut], int]: ...

    async def save_opportunity(
        self, user_id: str, opportunity_id: str, notes: str | None = None
    ) -> SavedOpportunityOut: ...

    async def list_saved_opportunities(self, user_id: str) -> list[SavedOpportunityOut]: ...

    async def remove_saved_opportunity(self, user_id: str, opportunity_id: str) -> None: ...

    async def close(self) -> None: ...


SCHEMA_SQL = """
create table if not exists opportunities (
  id uuid primary key default gen_random_uuid(),
  title text not null,
  description text not null default '',
  organization text not null default '',
  category text,
  location text not null default '',
  is_remote boolean not null default false,
  compensation text,
  requirements text[] not null default '{}',
  skills text[] not null default '{}',
  tags text[] not null default '{}',
  application_url text,
  contact_email text,
  deadline timestamptz,
  source text not null,
  external_id text,
  estimated_hours integer,
  duration text,
  salary_min double precision,
  salary_max double precision,
  posted_date timestamptz,
  is_active boolean not null default true,
  created_at timestamptz not null default now(),
  updated_at timestamptz not null default now()
);
create index if not exists idx_opportunities_source_external_id on opportunities(source, external_id);
create index if not exists idx_opportunities_category on opportunities(category);
create table if not exists saved_opportunities (
  user_id text not null,
  opportunity_id uuid not null references opportunities(id) on delete cascade,
  notes text,
  saved_at timestamptz not null default now(),
  primary key (user_id, opportunity_id)
);
"""

OPPORTUNITY_COLUMNS = (
    "title",
    "description",
    "organization",
    "category",
    "location",
    "is_remote",
    "compensation",
    "requirements",
    "skills",
    "tags",
    "application_url",
    "contact_email",
    "deadline",
    "source",
    "external_id",
    "estimated_hours",
    "duration",
    "salary_min",
    "salary_max",
    "posted_date",
)

OPPORTUNITY_FIELDS_SQL = ", ".join(
    ["o.id::text as id", *(f"o.{column}" for column in OPPORTUNITY_COLUMNS), "o.is_active", "o.created_at", "o.updated_at"]
)
SELECT_OPPORTUNITY_SQL = f"select {OPPORTUNITY_FIELDS_SQL} from opportunities o"

ORDER_BY_SQL = "o.posted_date desc nulls last, o.created_at desc, o.id asc"


class PostgresRepository:
    def __init__(self, database_url: str | None, min_pool_size: int, max_pool_size: int) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def ensure_schema(self) -> None:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            await conn.execute(SCHEMA_SQL)
        logger.info("database schema ensured")

    async def count_opportunities(self) -> int:
        pool = await self._get_pool()
        count = await pool.fetchval("select count(*) from opportunities where is_active = true")
        return int(count or 0)

    async def get_opportunity_by_external_id(self, source: str, external_id: str) -> OpportunityOut | None:
        if not external_id:
            return None
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            {SELECT_OPPORTUNITY_SQL}
            where o.source = $1 and o.external_id = $2
            order by o.created_at asc
            limit 1
            """,
            source,
            external_id,
        )
        return self._row_to_opportunity(row) if row is not None else None

    async def create_opportunity(self, record: CanonicalOpportunity) -> OpportunityOut:
        pool = await self._get_pool()
        values = self._record_values(record)
        placeholders = ", ".join(f"${index}" for index in range(1, len(values) + 1))
        row = await pool.fetchrow(
            f"""
            with inserted as (
              insert into opportunities ({", ".join(OPPORTUNITY_COLUMNS)})
              values ({placeholders})
              returning *
            )
            select {OPPORTUNITY_FIELDS_SQL} from inserted o
            """,
            *values,
        )
        return self._row_to_opportunity(row)

    async def update_opportunity(self, opportunity_id: str, record: CanonicalOpportunity) -> OpportunityOut:
        pool = await self._get_pool()
        values = self._record_values(record)
        assignments = ", ".join(f"{column} = ${index}" for index, column in enumerate(OPPORTUNITY_COLUMNS, start=2))
        try:
            row = await pool.fetchrow(
                f"""
                with updated as (
                  update opportunities
                  set {assignments}, updated_at = now()
                  where id = $1::uuid
                  returning *
                )
                select {OPPORTUNITY_FIELDS_SQL} from updated o
                """,
                opportunity_id,
                *values,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("opportunity not found") from exc
        if row is None:
            raise RepositoryNotFoundError("opportunity not found")
        return self._row_to_opportunity(row)

    async def get_opportunity(self, opportunity_id: str) -> OpportunityOut:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(f"{SELECT_OPPORTUNITY_SQL} where o.id = $1::uuid", opportunity_id)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("opportunity not found") from exc
        if row is None:
            raise RepositoryNotFoundError("opportunity not found")
        return self._row_to_opportunity(row)

    async def list_opportunities(self, filters: OpportunityFilters) -> tuple[list[OpportunityOut], int]:
        pool = await self._get_pool()
        conditions: list[str] = ["o.is_active = true"]
        params: list[Any] = []

        def bind(value: Any) -> str:
            params.append(value)
            return f"${len(params)}"

        if filters.category and filters.category != "all":
            conditions.append(f"o.category = {bind(filters.category)}")
        if filters.compensation:
            conditions.append(f"o.compensation = {bind(filters.compensation)}")
        if filters.is_remote is not None:
            conditions.append(f"o.is_remote = {bind(filters.is_remote)}")

        location = (filters.location or "").strip()
        if location:
            terms = location_terms(location)
            clauses = [f"strpos(lower(o.location), {bind(phrase)}) > 0" for phrase in sorted(terms.phrases)]
            for abbr in sorted(terms.abbreviations):
                word_pattern = r"\m" + abbr + r"\M"
                clauses.append(f"o.location ~* {bind(word_pattern)}")
            conditions.append(f"({' or '.join(clauses)})")

        skills = [skill.strip().lower() for skill in filters.skills if skill and skill.strip()]
        if skills:
            conditions.append(
                f"exists (select 1 from unnest(o.skills) as s(skill) where lower(s.skill) = any({bind(skills)}::text[]))"
            )

        # Plain substring search; user text never becomes a LIKE pattern.
        keyword = (filters.keyword or "").strip().lower()
        if keyword:
            searchable = "lower(concat_ws(' ', o.title, o.description, o.organization))"
            conditions.append(f"strpos({searchable}, {bind(keyword)}) > 0")

        where_sql = " and ".join(conditions)
        total = await pool.fetchval(f"select count(*) from opportunities o where {where_sql}", *params)

        page_params = list(params)
        limit_sql = ""
        if filters.limit is not None:
            page_params.append(filters.limit)
            limit_sql = f"limit ${len(page_params)}"
        page_params.append(max(0, filters.offset))
        offset_sql = f"offset ${len(page_params)}"

        rows = await pool.fetch(
            f"""
            {SELECT_OPPORTUNITY_SQL}
            where {where_sql}
            order by {ORDER_BY_SQL}
            {limit_sql} {offset_sql}
            """,
            *page_params,
        )
        return [self._row_to_opportunity(row) for row in rows], int(total or 0)

    async def save_opportunity(self, user_id: str, opportunity_id: str, notes: str | None = None) -> SavedOpportunityOut:
        opportunity = await self.get_opportunity(opportunity_id)
        pool = await self._get_pool()
        row = await pool.fetchrow(
            """
            insert into saved_opportunities (user_id, opportunity_id, notes)
            values ($1, $2::uuid, $3)
            on conflict (user_id, opportunity_id)
            do update set notes = excluded.notes
            returning user_id, notes, saved_at
            """,
            user_id,
            opportunity.id,
            notes,
        )
        return SavedOpportunityOut(
            user_id=row["user_id"],
            opportunity=opportunity,
            notes=row["notes"],
            saved_at=row["saved_at"],
        )

    async def list_saved_opportunities(self, user_id: str) -> list[SavedOpportunityOut]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select
              s.user_id,
              s.notes,
              s.saved_at,
              {OPPORTUNITY_FIELDS_SQL}
            from saved_opportunities s
            join opportunities o on o.id = s.opportunity_id
            where s.user_id = $1
            order by s.saved_at desc
            """,
            user_id,
        )
        return [
            SavedOpportunityOut(
                user_id=row["user_id"],
                opportunity=self._row_to_opportunity(row),
                notes=row["notes"],
                saved_at=row["saved_at"],
            )
            for row in rows
        ]

    async def remove_saved_opportunity(self, user_id: str, opportunity_id: str) -> None:
        pool = await self._get_pool()
        try:
            await pool.execute(
                "delete from saved_opportunities where user_id = $1 and opportunity_id = $2::uuid",
                user_id,
                opportunity_id,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("saved opportunity not found") from exc

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("OR_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=15,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    @staticmethod
    def _record_values(record: CanonicalOpportunity) -> list[Any]:
        data = record.model_dump()
        return [data[column] for column in OPPORTUNITY_COLUMNS]

    @staticmethod
    def _row_to_opportunity(row: asyncpg.Record) -> OpportunityOut:
        data = {column: row[column] for column in OPPORTUNITY_COLUMNS}
        for column in ("requirements", "skills", "tags"):
            data[column] = list(data[column] or [])
        return OpportunityOut(
            id=row["id"],
            is_active=row["is_active"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            **data,
        )


@lru_cache
def get_repository() -> OpportunityRepository:
    settings = get_settings()
    if settings.database_url:
        return PostgresRepository(
            database_url=settings.database_url,
            min_pool_size=settings.database_pool_min_size,
            max_pool_size=settings.database_pool_max_size,
        )

    from opportunity_radar.services.store import InMemoryRepository

    logger.info("OR_DATABASE_URL not set; using in-memory opportunity store")
    return InMemoryRepository()
