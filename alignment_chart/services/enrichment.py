"""
Enrichment Clients - Alignment Chart
alignment_chart/services/enrichment.py

Profile fetchers that turn a handle into a NormalizedProfile.

    LinkedInEnrichmentClient  - Scrapin person-activities endpoint
    TwitterEnrichmentClient   - Exa contents endpoint for x.com profiles

fetch() returns None when the provider has no posts for the handle and
raises UpstreamFetchError when the provider is unreachable or answers with a
non-2xx status or an unparseable body.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from alignment_chart.config import settings
from alignment_chart.core.exceptions import UpstreamFetchError
from alignment_chart.core.logging import get_logger
from alignment_chart.models.enumerations import EnrichmentSource
from alignment_chart.models.profile import NormalizedProfile, PostAuthor, ProfilePost

logger = get_logger(__name__)


@runtime_checkable
class EnrichmentClient(Protocol):
    source: EnrichmentSource

    def subject(self, handle: str) -> str:
        """Canonical request subject (profile URL) used in the cache key."""
        ...

    async def fetch(self, handle: str) -> Optional[NormalizedProfile]:
        ...

    async def close(self) -> None:
        ...


# ---------------------------------------------------------------------------
# Provider response shapes
# ---------------------------------------------------------------------------

class _LinkedInAuthor(BaseModel):
    model_config = ConfigDict(extra="ignore")

    authorName: Optional[str] = None
    authorImage: Optional[str] = None


class _LinkedInPost(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: Optional[str] = None
    reactionsCount: Optional[int] = None
    commentsCount: Optional[int] = None
    activityDate: Optional[str] = None
    author: Optional[_LinkedInAuthor] = None


class _LinkedInResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: bool = False
    posts: List[_LinkedInPost] = Field(default_factory=list)


class _ExaResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    url: str = ""
    title: Optional[str] = None
    author: Optional[str] = None
    publishedDate: Optional[str] = None
    text: Optional[str] = None


class _ExaResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    results: List[_ExaResult] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Base HTTP client
# ---------------------------------------------------------------------------

class _HttpEnrichmentClient:
    source: EnrichmentSource

    def __init__(self, timeout: Optional[float] = None, http_client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self._http = http_client

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeout)
        return self._http

    async def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            resp = await self.http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise UpstreamFetchError(f"{self.source.value} request failed: {e}", source=self.source.value) from e
        if resp.status_code >= 400:
            raise UpstreamFetchError(
                f"{self.source.value} API error: {resp.status_code} {resp.text[:200]}",
                source=self.source.value,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamFetchError(f"{self.source.value} returned invalid JSON", source=self.source.value) from e

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None


class LinkedInEnrichmentClient(_HttpEnrichmentClient):
    """Fetch recent LinkedIn posts for a public profile."""

    source = EnrichmentSource.LINKEDIN

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(timeout=timeout, http_client=http_client)
        if api_key is None and settings.LINKEDIN_API_KEY:
            api_key = settings.LINKEDIN_API_KEY.get_secret_value()
        self.api_key = api_key or ""
        self.api_url = api_url or settings.LINKEDIN_API_URL

    def subject(self, handle: str) -> str:
        return f"https://www.linkedin.com/in/{handle}"

    async def fetch(self, handle: str) -> Optional[NormalizedProfile]:
        profile_url = self.subject(handle)
        logger.info("enrichment_fetch_started", source=self.source.value, profile_url=profile_url)

        raw = await self._request(
            "GET",
            self.api_url,
            params={"apikey": self.api_key, "linkedInUrl": profile_url},
        )
        try:
            data = _LinkedInResponse.model_validate(raw)
        except ValidationError as e:
            raise UpstreamFetchError("LinkedIn response did not match expected shape", source=self.source.value) from e

        if not data.success or not data.posts:
            logger.info("enrichment_profile_empty", source=self.source.value, profile_url=profile_url)
            return None

        posts = [
            ProfilePost(
                text=p.text,
                reactions=max(0, p.reactionsCount or 0),
                comments=max(0, p.commentsCount or 0),
                posted_at=p.activityDate,
                author=PostAuthor(name=p.author.authorName, image=p.author.authorImage) if p.author else None,
            )
            for p in data.posts
            if p.text and p.text.strip()
        ]
        logger.info("enrichment_fetch_completed", source=self.source.value, posts=len(posts))
        return NormalizedProfile(handle=handle, source=self.source, posts=posts)


class TwitterEnrichmentClient(_HttpEnrichmentClient):
    """Fetch an X profile page through Exa and split it into posts."""

    source = EnrichmentSource.TWITTER

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(timeout=timeout, http_client=http_client)
        if api_key is None and settings.EXA_API_KEY:
            api_key = settings.EXA_API_KEY.get_secret_value()
        self.api_key = api_key or ""
        self.api_url = api_url or settings.EXA_API_URL

    def subject(self, handle: str) -> str:
        return f"https://x.com/{handle}"

    async def fetch(self, handle: str) -> Optional[NormalizedProfile]:
        profile_url = self.subject(handle)
        logger.info("enrichment_fetch_started", source=self.source.value, profile_url=profile_url)

        raw = await self._request(
            "POST",
            self.api_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={"ids": [profile_url], "text": True, "livecrawl": "always"},
        )
        # Some gateways wrap the payload in {"data": {...}}
        if isinstance(raw, dict) and isinstance(raw.get("data"), dict):
            raw = raw["data"]
        try:
            data = _ExaResponse.model_validate(raw)
        except ValidationError as e:
            raise UpstreamFetchError("Exa response did not match expected shape", source=self.source.value) from e

        if not data.results:
            return None

        result = data.results[0]
        author = PostAuthor(name=result.author) if result.author else None
        posts = [
            ProfilePost(text=chunk, posted_at=result.publishedDate, author=author)
            for chunk in split_profile_text(result.text)
        ]
        if not posts:
            logger.info("enrichment_profile_empty", source=self.source.value, profile_url=profile_url)
            return None
        logger.info("enrichment_fetch_completed", source=self.source.value, posts=len(posts))
        return NormalizedProfile(handle=handle, source=self.source, posts=posts)


def split_profile_text(text: str, min_chars: int = 3) -> List[str]:
    """Split crawled profile text into post-sized chunks on blank lines."""
    chunks = []
    for block in (text or "").replace("\r\n", "\n").split("\n\n"):
        block = block.strip()
        if len(block) >= min_chars:
            chunks.append(block)
    return chunks


def build_enrichment_client(source: Optional[str] = None) -> EnrichmentClient:
    source = EnrichmentSource(source or settings.ENRICHMENT_SOURCE)
    if source == EnrichmentSource.TWITTER:
        return TwitterEnrichmentClient()
    return LinkedInEnrichmentClient()
