from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from opportunity_radar.schemas.opportunities import CanonicalOpportunity
from opportunity_radar.services.repository import OpportunityRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UpsertStats:
    inserted: int = 0
    updated: int = 0
    failed: int = 0

    @property
    def processed(self) -> int:
        return self.inserted + self.updated + self.failed


async def upsert_opportunities(
    repository: OpportunityRepository,
    records: Iterable[CanonicalOpportunity],
) -> UpsertStats:
    """Insert new records and overwrite known ones, keyed by (source, external_id).

    Records without an external id are always inserted. One record failing to
    store is logged and counted; the rest are still processed.
    """
    stats = UpsertStats()
    for record in records:
        try:
            identity = record.identity_key()
            existing = None
            if identity is not None:
                existing = await repository.get_opportunity_by_external_id(*identity)

            if existing is not None:
                await repository.update_opportunity(existing.id, record)
                stats.updated += 1
            else:
                await repository.create_opportunity(record)
                stats.inserted += 1
        except Exception:
            stats.failed += 1
            logger.exception(
                "failed to store opportunity source=%s external_id=%s title=%s",
                record.source,
                record.external_id,
                record.title,
            )

    logger.info(
        "upsert finished inserted=%s updated=%s failed=%s",
        stats.inserted,
        stats.updated,
        stats.failed,
    )
    return stats
