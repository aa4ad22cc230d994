"""In-memory TTL cache."""

from dipscore.infrastructure.cache.cache_manager import CACHE_TTL_SECONDS, CacheManager

__all__ = ["CacheManager", "CACHE_TTL_SECONDS"]
