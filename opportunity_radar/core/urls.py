import hashlib
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

TRACKING_KEYS = {"ref", "fbclid", "gclid"}
LINK_SCHEMES = {"http", "https"}
DEFAULT_PORTS = {"http": "80", "https": "443"}


def _is_tracking_param(key: str) -> bool:
    lowered = key.lower()
    return lowered.startswith("utm_") or lowered in TRACKING_KEYS


def _strip_default_port(scheme: str, netloc: str) -> str:
    host, separator, port = netloc.rpartition(":")
    if separator and port == DEFAULT_PORTS.get(scheme):
        return host
    return netloc


def _clean_query(query: str) -> str:
    kept = sorted(
        (pair for pair in parse_qsl(query, keep_blank_values=True) if not _is_tracking_param(pair[0])),
        key=lambda pair: pair[0],
    )
    return urlencode(kept, doseq=True)


def normalize_url(raw_url: str) -> str:
    """Canonical form of a provider application link.

    Non-web links (``mailto:`` and friends) and relative paths are returned
    stripped but otherwise untouched.
    """
    stripped = raw_url.strip()
    parsed = urlparse(stripped)
    scheme = parsed.scheme.lower()
    if scheme not in LINK_SCHEMES or not parsed.netloc:
        return stripped

    path = parsed.path.rstrip("/") or "/"
    netloc = _strip_default_port(scheme, parsed.netloc.lower())
    return urlunparse((scheme, netloc, path, "", _clean_query(parsed.query), ""))


def canonical_hash(normalized_url: str) -> str:
    return hashlib.sha256(normalized_url.encode("utf-8")).hexdigest()


def url_identity(raw_url: str | None) -> str | None:
    """Provider-native pseudo id for feeds that only expose a link per listing."""
    if not raw_url or not raw_url.strip():
        return None
    return canonical_hash(normalize_url(raw_url))[:32]
