from __future__ import annotations

import random

from opportunity_radar.services.filters import OpportunityFilters, apply_filters, location_terms


def _catalog(make_opportunity):
    return [
        make_opportunity(
            title="Machine Learning Research Intern",
            description="Train models for protein folding",
            organization="Bio Lab",
            category="research",
            location="New York, NY",
            compensation="stipend",
            skills=["Python", "PyTorch"],
            external_id="r-1",
        ),
        make_opportunity(
            title="Food Bank Volunteer",
            description="Sort donations on weekends",
            organization="City Food Bank",
            category="nonprofit",
            location="Atlanta, GA",
            compensation="unpaid",
            skills=["Logistics"],
            external_id="n-1",
        ),
        make_opportunity(
            title="Frontend Engineer",
            description="Build dashboards with React",
            organization="LA Startup Studio",
            category="startup",
            location="Los Angeles, CA",
            is_remote=True,
            compensation="equity",
            skills=["React", "TypeScript"],
            external_id="s-1",
        ),
        make_opportunity(
            title="Data Science Fellow",
            description="Civic analytics with python notebooks",
            organization="SF Civic Data",
            category="research",
            location="SF Bay Area",
            compensation="paid",
            skills=["python", "SQL"],
            external_id="r-2",
        ),
    ]


def test_no_filters_returns_default_page_size(make_opportunity) -> None:
    records = _catalog(make_opportunity) * 2
    result = apply_filters(records, OpportunityFilters())

    assert len(result.items) == 5
    assert result.total == 8


def test_predicates_are_combined_with_and(make_opportunity) -> None:
    records = _catalog(make_opportunity)

    result = apply_filters(records, OpportunityFilters(category="research", compensation="paid", limit=None))
    assert [record.external_id for record in result.items] == ["r-2"]

    result = apply_filters(records, OpportunityFilters(category="startup", is_remote=True))
    assert [record.external_id for record in result.items] == ["s-1"]

    result = apply_filters(records, OpportunityFilters(category="startup", is_remote=False))
    assert result.items == []
    assert result.total == 0


def test_keyword_matches_any_text_field_case_insensitively(make_opportunity) -> None:
    records = _catalog(make_opportunity)

    by_title = apply_filters(records, OpportunityFilters(keyword="machine LEARNING"))
    by_description = apply_filters(records, OpportunityFilters(keyword="PYTHON"))
    by_organization = apply_filters(records, OpportunityFilters(keyword="food bank"))

    assert [record.external_id for record in by_title.items] == ["r-1"]
    assert [record.external_id for record in by_description.items] == ["r-2"]
    assert [record.external_id for record in by_organization.items] == ["n-1"]


def test_skills_require_non_empty_intersection(make_opportunity) -> None:
    records = _catalog(make_opportunity)

    result = apply_filters(records, OpportunityFilters(skills=["PYTHON", "Go"]))
    assert [record.external_id for record in result.items] == ["r-1", "r-2"]

    result = apply_filters(records, OpportunityFilters(skills=["Rust"]))
    assert result.items == []


def test_location_expands_abbreviations_both_ways(make_opportunity) -> None:
    records = _catalog(make_opportunity)

    def ids(location: str) -> list[str]:
        return [record.external_id for record in apply_filters(records, OpportunityFilters(location=location)).items]

    assert ids("NYC") == ["r-1"]
    assert ids("ny") == ["r-1"]
    assert ids("new york") == ["r-1"]
    assert ids("San Francisco") == ["r-2"]
    assert ids("SF") == ["r-2"]
    assert ids("LA") == ["s-1"]
    assert ids("atlanta") == ["n-1"]


def test_short_abbreviations_do_not_match_inside_words() -> None:
    terms = location_terms("LA")
    assert terms.matches("Los Angeles, CA")
    assert terms.matches("LA Metro")
    assert not terms.matches("Atlanta, GA")
    assert not terms.matches("Lagos")


def test_offset_and_limit_page_after_filtering(make_opportunity) -> None:
    records = _catalog(make_opportunity)

    result = apply_filters(records, OpportunityFilters(limit=2, offset=1))

    assert [record.external_id for record in result.items] == ["n-1", "s-1"]
    assert result.total == 4


def test_shuffle_happens_before_truncation(make_opportunity) -> None:
    records = [make_opportunity(external_id=f"id-{index}") for index in range(20)]

    first = apply_filters(records, OpportunityFilters(limit=5, shuffle=True), rng=random.Random(7))
    second = apply_filters(records, OpportunityFilters(limit=5, shuffle=True), rng=random.Random(7))
    unshuffled = apply_filters(records, OpportunityFilters(limit=5))

    assert [record.external_id for record in first.items] == [record.external_id for record in second.items]
    assert first.total == 20
    assert len(first.items) == 5
    assert {record.external_id for record in first.items} <= {record.external_id for record in records}
    assert [record.external_id for record in unshuffled.items] == [f"id-{index}" for index in range(5)]
    assert [record.external_id for record in records] == [f"id-{index}" for index in range(20)]
