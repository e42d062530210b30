"""TTL response caching for kingdomapi.

This package provides :class:`ResponseCache`, the key -> (value, expiry) store
that :class:`~kingdomapi.client.KingdomAPIClient` consults before issuing
cacheable GETs and content generation calls. Keys are built from the endpoint
plus canonically serialised parameters by :meth:`ResponseCache.make_key`.

Entries live in memory by default, or in a :mod:`diskcache` directory when
:attr:`~kingdomapi.models.CacheConfig.persist` is enabled.
"""

from kingdomapi.cache.response_cache import ResponseCache

__all__ = ["ResponseCache"]
