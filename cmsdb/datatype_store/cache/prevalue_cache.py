"""
Pre-value collection cache.

Memoizes each data type's materialized PreValueCollection, keyed by the
data type id, with a sliding expiration: every hit restarts the entry's
timer, so only entries left unread for ttl_seconds expire.

Invariants:
    - One entry per data type id
    - Entries change only through set/get_or_compute/invalidate/clear
      or expiry; reads never alter a cached value
    - Writers invalidate after their transaction commits; correctness for
      write-then-read in this process relies on that, not on the TTL
    - A collection read before an invalidation of its id is never stored
      after that invalidation

Thread safety:
    TTLCache is not thread-safe, so every access holds an internal lock.
    compute callbacks run outside the lock. Every invalidate/clear
    advances a version counter; a reader takes token() before it starts
    reading the store and stores with store_if_current(), which drops the
    collection when its id was invalidated after the token was taken.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from cachetools import TTLCache

from ..models import PreValue, PreValueCollection

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 20 * 60
DEFAULT_MAX_ENTRIES = 1024


class PreValueCache:
    """Process-wide cache of pre-value collections.

    Construct one at startup and pass it to the repositories that need
    it; there is no module-level instance.

    Example:
        >>> cache = PreValueCache(ttl_seconds=1200)
        >>> cache.get_or_compute(42, lambda: load_collection(42))
        >>> cache.invalidate(42)
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        maxsize: int = DEFAULT_MAX_ENTRIES,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            ttl_seconds: Inactivity window before an entry expires
            maxsize: Maximum number of cached data types
            timer: Clock used for expiry (injectable for tests)
        """
        self.ttl_seconds = ttl_seconds
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_seconds, timer=timer)
        self._lock = threading.Lock()
        self._version = 0
        self._invalidated_at: Dict[int, int] = {}
        self._cleared_at = 0

    def __contains__(self, data_type_id: int) -> bool:
        with self._lock:
            return data_type_id in self._cache

    def __len__(self) -> int:
        with self._lock:
            self._cache.expire()
            return len(self._cache)

    def token(self) -> int:
        """Current version; take it before reading the store."""
        with self._lock:
            return self._version

    def get(self, data_type_id: int) -> Optional[PreValueCollection]:
        """Return the cached collection and slide its expiry, if present."""
        with self._lock:
            collection = self._cache.get(data_type_id)
            if collection is not None:
                # Re-inserting restarts the TTL
                self._cache[data_type_id] = collection
            return collection

    def set(self, data_type_id: int, collection: PreValueCollection) -> None:
        with self._lock:
            self._cache[data_type_id] = collection

    def store_if_current(
        self,
        data_type_id: int,
        collection: PreValueCollection,
        token: int,
    ) -> bool:
        """Store a collection unless its id was invalidated since token.

        Args:
            data_type_id: Owning data type
            collection: Collection read from the store
            token: Value of token() taken before the read started

        Returns:
            True if the collection was stored
        """
        with self._lock:
            stale = self._cleared_at > token or self._invalidated_at.get(data_type_id, 0) > token
            if not stale:
                self._cache[data_type_id] = collection

        if stale:
            logger.debug(
                "Dropped pre-value collection read before an invalidation",
                extra={"data_type_id": data_type_id},
            )
        return not stale

    def get_or_compute(
        self,
        data_type_id: int,
        compute: Callable[[], PreValueCollection],
        token: Optional[int] = None,
    ) -> PreValueCollection:
        """Serve from cache or compute and store.

        Args:
            data_type_id: Owning data type
            compute: Builds the collection from the store on a miss
            token: Value of token() taken before the caller's read
                began; taken here when omitted

        Returns:
            The cached or freshly computed collection
        """
        if token is None:
            token = self.token()

        collection = self.get(data_type_id)
        if collection is not None:
            return collection

        logger.debug("Pre-value cache miss", extra={"data_type_id": data_type_id})
        collection = compute()
        self.store_if_current(data_type_id, collection, token)
        return collection

    def invalidate(self, data_type_id: int) -> bool:
        """Drop the entry for a data type.

        Returns:
            True if an entry was removed
        """
        with self._lock:
            self._version += 1
            self._invalidated_at[data_type_id] = self._version
            removed = self._cache.pop(data_type_id, None) is not None
        logger.debug(
            "Invalidated pre-value cache entry",
            extra={"data_type_id": data_type_id, "removed": removed},
        )
        return removed

    def clear(self) -> None:
        with self._lock:
            self._version += 1
            self._cleared_at = self._version
            self._invalidated_at.clear()
            self._cache.clear()

    def find_pre_value(self, pre_value_id: int) -> Optional[Tuple[int, PreValue]]:
        """Search every cached collection for a pre-value id.

        Returns:
            (owning data type id, pre-value), or None if no cached
            collection holds it
        """
        with self._lock:
            self._cache.expire()
            entries = list(self._cache.items())

        for data_type_id, collection in entries:
            pre_value = collection.find(pre_value_id)
            if pre_value is not None:
                return data_type_id, pre_value
        return None
