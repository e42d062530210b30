"""TTL cache for API responses.

Each entry is a :class:`~kingdomapi.models.CacheEntry` holding the decoded
response body and the clock reading at which it expires. Expiry is checked
lazily: :meth:`ResponseCache.get` treats an entry as absent once
``now >= expiry`` and evicts it on the spot.

Cache keys are ``endpoint`` followed by the params serialised as sorted-key
JSON, so ``{"a": 1, "b": 2}`` and ``{"b": 2, "a": 1}`` resolve to the same
entry.

There is no size bound or LRU eviction. A mobile-style client issues a
modest variety of requests, and expired entries are dropped as they are
read or when :meth:`ResponseCache.purge_expired` runs.

Values are deep-copied on the way in and on the way out, so a caller that
mutates a returned body never changes what the next reader sees.

See Also:
    :class:`~kingdomapi.models.CacheConfig` -- ``enabled``, ``ttl_seconds``
    and ``persist``.
"""

from __future__ import annotations

import copy
import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, MutableMapping, Optional

import diskcache

from kingdomapi.models import CacheConfig, CacheEntry

logger = logging.getLogger(__name__)


def canonical_json(value: Any) -> str:
    """Serialise *value* deterministically (sorted keys, compact separators)."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


class ResponseCache:
    """Key -> (value, expiry) store with lazy TTL eviction.

    Args:
        config: Cache configuration (``enabled``, ``ttl_seconds``, ``persist``).
        clock: Returns the current time in seconds. Defaults to
            :func:`time.time` so that persisted entries stay meaningful
            across process restarts.
        cache_dir: Root directory for the persistent store. Required only
            when ``config.persist`` is on; a ``responses/`` subdirectory is
            created inside it.

    Example::

        cache = ResponseCache(CacheConfig(ttl_seconds=60))
        key = cache.make_key("/content/templates", {"platform": "ig"})
        cache.set(key, [{"id": "t1"}])
        assert cache.get(key) == [{"id": "t1"}]
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.time,
        cache_dir: str | Path | None = None,
    ) -> None:
        self._config = config or CacheConfig()
        self._clock = clock
        self._disk: Optional[diskcache.Cache] = None
        self._entries: MutableMapping[str, CacheEntry]
        if self._config.persist:
            if cache_dir is None:
                from kingdomapi.config import get_cache_dir

                cache_dir = get_cache_dir()
            self._disk = diskcache.Cache(str(Path(cache_dir) / "responses"))
            self._entries = self._disk
        else:
            self._entries = {}
        self._hits = 0
        self._misses = 0

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def default_ttl(self) -> float:
        return self._config.ttl_seconds

    @staticmethod
    def make_key(endpoint: str, params: Any = None) -> str:
        """Build a cache key from *endpoint* and canonically serialised *params*."""
        if params is None or params == {}:
            return endpoint
        return f"{endpoint}:{canonical_json(params)}"

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value for *key*, or *default* on a miss.

        An entry whose expiry has been reached is evicted and reported as a
        miss.
        """
        if not self._config.enabled:
            return default
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return default
        if self._clock() >= entry.expiry:
            self._evict(key)
            self._misses += 1
            return default
        self._hits += 1
        return copy.deepcopy(entry.data)

    def contains(self, key: str) -> bool:
        """Return ``True`` if *key* holds a live entry, without touching hit counters."""
        entry = self._entries.get(key) if self._config.enabled else None
        return entry is not None and self._clock() < entry.expiry

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store *value* under *key* until ``now + ttl``, replacing any prior entry.

        Args:
            key: Cache key, usually from :meth:`make_key`.
            value: The decoded response body.
            ttl: Lifetime in seconds. Defaults to ``config.ttl_seconds``.
        """
        if not self._config.enabled:
            return
        lifetime = self._config.ttl_seconds if ttl is None else ttl
        self._entries[key] = CacheEntry(data=copy.deepcopy(value), expiry=self._clock() + lifetime)

    def invalidate(self, key: str) -> bool:
        """Remove a single entry. Returns ``True`` if it existed."""
        return self._evict(key)

    def clear(self, pattern: Optional[str] = None) -> int:
        """Remove every entry, or only those whose key contains *pattern*.

        Returns:
            The number of entries removed.
        """
        if pattern is None:
            count = len(self._entries)
            self._entries.clear()
            return count
        doomed = [key for key in list(self._entries) if pattern in key]
        for key in doomed:
            self._evict(key)
        return len(doomed)

    def purge_expired(self) -> int:
        """Drop every expired entry now rather than waiting for it to be read."""
        now = self._clock()
        doomed = []
        for key in list(self._entries):
            entry = self._entries.get(key)
            if entry is not None and now >= entry.expiry:
                doomed.append(key)
        for key in doomed:
            self._evict(key)
        return len(doomed)

    def keys(self) -> list[str]:
        return sorted(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, Any]:
        """Return cache statistics.

        Returns:
            A ``dict`` with ``enabled``, ``persistent``, ``size``, ``keys``,
            ``hits``, ``misses`` and ``ttl_seconds``.
        """
        return {
            "enabled": self._config.enabled,
            "persistent": self._disk is not None,
            "size": len(self._entries),
            "keys": self.keys(),
            "hits": self._hits,
            "misses": self._misses,
            "ttl_seconds": self._config.ttl_seconds,
        }

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache`, if any."""
        if self._disk is not None:
            self._disk.close()

    def _evict(self, key: str) -> bool:
        try:
            del self._entries[key]
        except KeyError:
            return False
        logger.debug("Evicted cache entry %s", key)
        return True
