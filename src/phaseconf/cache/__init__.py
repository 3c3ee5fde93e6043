# src/phaseconf/cache/__init__.py
"""TTL result cache and its background sweeper."""

from phaseconf.cache.result_cache import CacheKey, CacheMetrics, ResultCache
from phaseconf.cache.sweeper import CacheSweeper

__all__ = [
    "CacheKey",
    "CacheMetrics",
    "CacheSweeper",
    "ResultCache",
]
