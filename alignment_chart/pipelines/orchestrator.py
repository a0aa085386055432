"""
pipelines/orchestrator.py

Cache-aside analysis pipeline: handle -> AlignmentResult.

Class: PipelineOrchestrator
Method: analyze(handle) -> AnalysisOutcome

Pipeline steps:
  1. Normalize handle, build the versioned cache key
  2. RemoteCache.get  -> hit returns immediately (cached=True), no upstream calls
  3. EnrichmentClient.fetch  -> None / error fails the run, nothing cached
  4. build_prompt_payload    -> top-N posts, truncated
  5. Scorer.score            -> scores clamped to [-100, 100]
  6. RemoteCache.set(key, result, TTL)  -> cached=False

analyze() never raises. Failures at steps 3-5 come back as a neutral
(0, 0) result with is_error=True and are never written to the cache, so the
next call retries upstream.

Concurrent analyze() calls for the same key in one process share a single
in-flight run.
"""

import asyncio
from typing import Dict, Optional

from pydantic import ValidationError

from alignment_chart.config import settings
from alignment_chart.core.exceptions import ProfileNotFound, ScoringError, UpstreamFetchError
from alignment_chart.core.logging import get_logger
from alignment_chart.models.alignment import AlignmentResult, AnalysisOutcome
from alignment_chart.models.enumerations import ErrorKind
from alignment_chart.services.cache import build_cache_key, normalize_handle
from alignment_chart.services.enrichment import EnrichmentClient
from alignment_chart.services.redis_cache import RedisCache
from alignment_chart.services.scorer import PLATFORM_LABELS, Scorer, build_prompt_payload

logger = get_logger(__name__)


class PipelineOrchestrator:
    """Compose RemoteCache, EnrichmentClient and Scorer into analyze()."""

    def __init__(
        self,
        cache: RedisCache,
        enrichment: EnrichmentClient,
        scorer: Scorer,
        ttl_seconds: Optional[int] = None,
        schema_version: Optional[str] = None,
        max_posts: Optional[int] = None,
        max_post_chars: Optional[int] = None,
        dedupe_in_flight: bool = True,
    ):
        self.cache = cache
        self.enrichment = enrichment
        self.scorer = scorer
        self.ttl_seconds = ttl_seconds or settings.CACHE_TTL_ANALYSIS
        self.schema_version = schema_version or settings.CACHE_SCHEMA_VERSION
        self.max_posts = max_posts or settings.PROMPT_MAX_POSTS
        self.max_post_chars = max_post_chars or settings.PROMPT_MAX_POST_CHARS
        self.dedupe_in_flight = dedupe_in_flight
        self._in_flight: Dict[str, asyncio.Future] = {}

    @property
    def platform(self) -> str:
        return PLATFORM_LABELS[self.enrichment.source]

    def cache_key(self, handle: str) -> str:
        clean = normalize_handle(handle)
        return build_cache_key(self.enrichment.source, self.enrichment.subject(clean), self.schema_version)

    # ------------------------------------------------------------------
    # Main pipeline
    # ------------------------------------------------------------------

    async def analyze(self, handle: str) -> AnalysisOutcome:
        clean = normalize_handle(handle)
        if not clean:
            return self._failure(ErrorKind.PROFILE_NOT_FOUND, clean, "")

        key = self.cache_key(clean)

        # 1. Cache first
        cached = await self.cache.get(key, AlignmentResult)
        if cached is not None:
            logger.info("analysis_cache_hit", cache_key=key)
            return AnalysisOutcome.success(cached, key, cached=True)

        # 2. Miss - run the pipeline (shared with concurrent callers for the same key)
        if not self.dedupe_in_flight:
            return await self._run(clean, key)

        future = self._in_flight.get(key)
        if future is None:
            future = asyncio.ensure_future(self._run(clean, key))
            self._in_flight[key] = future
            future.add_done_callback(lambda f, k=key: self._forget(k, f))
        else:
            logger.info("analysis_joined_in_flight", cache_key=key)
        return await asyncio.shield(future)

    def _forget(self, key: str, future: asyncio.Future) -> None:
        if self._in_flight.get(key) is future:
            del self._in_flight[key]

    async def _run(self, clean: str, key: str) -> AnalysisOutcome:
        logger.info("analysis_cache_miss", cache_key=key)
        try:
            result = await self._compute(clean)
        except ProfileNotFound as e:
            logger.warning("analysis_profile_not_found", cache_key=key, error=str(e))
            return self._failure(ErrorKind.PROFILE_NOT_FOUND, clean, key)
        except UpstreamFetchError as e:
            logger.error("analysis_upstream_failed", cache_key=key, error=str(e))
            return self._failure(ErrorKind.UPSTREAM, clean, key)
        except ScoringError as e:
            logger.error("analysis_scoring_failed", cache_key=key, error=str(e))
            return self._failure(ErrorKind.SCORING, clean, key)
        except Exception:
            logger.error("analysis_unexpected_error", cache_key=key, exc_info=True)
            return self._failure(ErrorKind.UNEXPECTED, clean, key)

        await self.cache.set(key, result, self.ttl_seconds)
        logger.info(
            "analysis_completed",
            cache_key=key,
            lawful_chaotic=result.lawful_chaotic,
            good_evil=result.good_evil,
        )
        return AnalysisOutcome.success(result, key, cached=False)

    async def _compute(self, clean: str) -> AlignmentResult:
        # 3. Enrichment
        profile = await self.enrichment.fetch(clean)
        if profile is None or not profile.posts:
            raise ProfileNotFound(clean, source=self.enrichment.source.value)

        # 4. Bounded prompt payload
        payload = build_prompt_payload(profile, self.max_posts, self.max_post_chars)

        # 5. Score; validate and clamp whatever the scorer hands back
        scored = await self.scorer.score(payload)
        try:
            if isinstance(scored, AlignmentResult):
                scored = scored.model_dump()
            result = AlignmentResult.model_validate(scored)
        except ValidationError as e:
            raise ScoringError(f"Scorer returned an invalid shape: {e}") from e

        author = profile.author
        if author is not None:
            result = result.model_copy(update={
                "author_name": author.name or result.author_name,
                "author_image": author.image or result.author_image,
            })
        return result

    # ------------------------------------------------------------------
    # Helper methods
    # ------------------------------------------------------------------

    def _failure(self, kind: ErrorKind, clean: str, key: str) -> AnalysisOutcome:
        explanation = (
            f"Error analyzing {self.platform} profile for username '{clean}'... "
            f"Please check that you entered a valid {self.platform} username and try again later."
        )
        return AnalysisOutcome.failure(kind, explanation, cache_key=key)
