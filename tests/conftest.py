from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any

import pytest

os.environ.setdefault("OR_OTEL_ENABLED", "false")
os.environ.setdefault("OR_SCHEDULER_ENABLED", "false")
# Route tests run against the in-memory store; the Postgres integration tests
# pick the URL back up from OR_TEST_DATABASE_URL.
_database_url = os.environ.pop("OR_DATABASE_URL", None)
if _database_url:
    os.environ.setdefault("OR_TEST_DATABASE_URL", _database_url)

from opportunity_radar.schemas.opportunities import CanonicalOpportunity  # noqa: E402


@pytest.fixture
def make_opportunity() -> Callable[..., CanonicalOpportunity]:
    def factory(**overrides: Any) -> CanonicalOpportunity:
        fields: dict[str, Any] = {
            "title": "Research Assistant",
            "description": "Help run lab experiments",
            "organization": "Example University",
            "category": "research",
            "location": "Boston, MA",
            "source": "test-source",
            "external_id": "ext-1",
        }
        fields.update(overrides)
        return CanonicalOpportunity(**fields)

    return factory
