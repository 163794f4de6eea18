"""
Persistence helpers

In-memory result caching for manual checks.
"""

from .cache import CacheEntry, ResultCache, make_cache_key

__all__ = ["CacheEntry", "ResultCache", "make_cache_key"]
