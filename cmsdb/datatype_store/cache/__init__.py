"""
Cache module for the data type store.

Only the derived pre-value collections are cached; entity reads always
go to the store.
"""

from .prevalue_cache import DEFAULT_MAX_ENTRIES, DEFAULT_TTL_SECONDS, PreValueCache

__all__ = [
    "PreValueCache",
    "DEFAULT_TTL_SECONDS",
    "DEFAULT_MAX_ENTRIES",
]
