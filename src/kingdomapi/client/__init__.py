"""HTTP client module for kingdomapi.

Provides :class:`KingdomAPIClient`, the asynchronous wrapper around
:class:`httpx.AsyncClient`, together with the two pieces of machinery it
composes:

- :class:`RequestDeduplicator` -- collapses identical concurrent calls.
- :class:`SlidingWindowRateLimiter` -- per-endpoint client-side throttling.

Example::

    from kingdomapi.client import KingdomAPIClient

    async with KingdomAPIClient() as client:
        status = await client.health_check()
"""

from kingdomapi.client.async_client import KingdomAPIClient
from kingdomapi.client.dedup import RequestDeduplicator
from kingdomapi.client.rate_limiter import SlidingWindowRateLimiter

__all__ = ["KingdomAPIClient", "RequestDeduplicator", "SlidingWindowRateLimiter"]
