"""
Dependencies - Alignment Chart
alignment_chart/core/dependencies.py

FastAPI dependency injection for the pipeline and session components.
"""

from functools import lru_cache

from alignment_chart.pipelines.orchestrator import PipelineOrchestrator
from alignment_chart.services.avatar import AvatarResolver
from alignment_chart.services.enrichment import EnrichmentClient, build_enrichment_client
from alignment_chart.services.redis_cache import RedisCache
from alignment_chart.services.scorer import LLMScorer, Scorer
from alignment_chart.session.local_store import LocalStore
from alignment_chart.session.reconciler import OptimisticStateReconciler


@lru_cache()
def get_remote_cache() -> RedisCache:
    """Get cached RedisCache instance."""
    return RedisCache()


@lru_cache()
def get_enrichment_client() -> EnrichmentClient:
    """Get the enrichment client for the configured source."""
    return build_enrichment_client()


@lru_cache()
def get_scorer() -> Scorer:
    return LLMScorer()


@lru_cache()
def get_avatar_resolver() -> AvatarResolver:
    return AvatarResolver()


@lru_cache()
def get_orchestrator() -> PipelineOrchestrator:
    """Get the shared orchestrator; in-flight dedup only works on a single instance."""
    return PipelineOrchestrator(
        cache=get_remote_cache(),
        enrichment=get_enrichment_client(),
        scorer=get_scorer(),
    )


@lru_cache()
def get_local_store() -> LocalStore:
    return LocalStore()


@lru_cache()
def get_reconciler() -> OptimisticStateReconciler:
    """Get the session reconciler backed by the local store."""
    return OptimisticStateReconciler(
        orchestrator=get_orchestrator(),
        avatars=get_avatar_resolver(),
        store=get_local_store(),
    )
