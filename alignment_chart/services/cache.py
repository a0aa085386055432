"""
Cache Keys - Alignment Chart
alignment_chart/services/cache.py

Handle normalization, versioned cache-key fingerprints and TTL constants for
the shared analysis cache.

Key format: "<namespace>:<schema-version>:<subject>", e.g.
    analysis-linkedin:v1:https://www.linkedin.com/in/alice

Each enrichment source gets its own namespace so switching providers can
never serve a cached shape produced by another one. Bumping the schema
version (CACHE_SCHEMA_VERSION) orphans every older entry; they age out via TTL.
"""
import re

from alignment_chart.config import settings
from alignment_chart.models.enumerations import EnrichmentSource

# TTL constants (in seconds)
TTL_ANALYSIS = settings.CACHE_TTL_ANALYSIS  # 14 days by default

CACHE_NAMESPACES = {
    EnrichmentSource.LINKEDIN: "analysis-linkedin",
    EnrichmentSource.TWITTER: "analysis-twitter",
}

_PROFILE_URL_PREFIX = re.compile(
    r"^(?:https?://)?(?:www\.|mobile\.)?"
    r"(?:linkedin\.com/in/|x\.com/|twitter\.com/)",
    re.IGNORECASE,
)


def normalize_handle(raw: str) -> str:
    """
    Reduce user input to a bare handle.

    Trims whitespace, strips a profile-URL prefix (linkedin.com/in/, x.com/,
    twitter.com/), any query string or trailing path, and a leading '@'.
    Case is preserved.
    """
    handle = (raw or "").strip()
    handle = _PROFILE_URL_PREFIX.sub("", handle)
    handle = handle.split("?", 1)[0].split("#", 1)[0]
    handle = handle.strip("/").split("/", 1)[0]
    return handle.lstrip("@").strip()


def cache_namespace(source: EnrichmentSource) -> str:
    return CACHE_NAMESPACES[EnrichmentSource(source)]


def build_cache_key(
    source: EnrichmentSource,
    subject: str,
    schema_version: str = settings.CACHE_SCHEMA_VERSION,
) -> str:
    """Build the versioned fingerprint for an analysis request."""
    return f"{cache_namespace(source)}:{schema_version}:{subject}"
