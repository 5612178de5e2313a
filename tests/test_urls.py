from opportunity_radar.core.urls import canonical_hash, normalize_url, url_identity


def test_normalize_url_strips_tracking_and_sorts_query() -> None:
    normalized = normalize_url("HTTPS://Example.edu:443/jobs/role/?utm_source=feed&b=2&a=1&fbclid=xyz")
    assert normalized == "https://example.edu/jobs/role?a=1&b=2"


def test_normalize_url_leaves_non_web_links_alone() -> None:
    assert normalize_url("  mailto:hackathon@university.edu ") == "mailto:hackathon@university.edu"
    assert normalize_url("/relative/path?utm_source=x") == "/relative/path?utm_source=x"


def test_url_identity_is_stable_across_tracking_variants() -> None:
    first = url_identity("https://reu.example.edu/bio/?utm_campaign=spring")
    second = url_identity("https://reu.example.edu/bio")
    assert first == second
    assert first is not None and len(first) == 32
    assert first == canonical_hash("https://reu.example.edu/bio")[:32]


def test_url_identity_is_none_for_blank_links() -> None:
    assert url_identity(None) is None
    assert url_identity("   ") is None
