"""
Services module for the alignment chart: remote cache, enrichment providers,
LLM scorer and avatar resolution.
"""

from alignment_chart.services.cache import build_cache_key, normalize_handle, TTL_ANALYSIS
from alignment_chart.services.redis_cache import RedisCache

__all__ = [
    "build_cache_key",
    "normalize_handle",
    "RedisCache",
    "TTL_ANALYSIS",
]
