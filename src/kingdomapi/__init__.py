"""kingdomapi -- async client for the Kingdom Collective unified API.

This package wraps outbound HTTP calls to the unified backend with the
cross-cutting concerns every Kingdom app needs: bearer-token injection with
single-flight refresh on 401, a TTL response cache, in-flight request
deduplication, and a per-endpoint sliding-window rate limiter.

Typical usage::

    from kingdomapi import KingdomAPIClient

    async with KingdomAPIClient() as client:
        templates = await client.get("/content/templates", {"platform": "ig"})

Modules:
    client: :class:`KingdomAPIClient` and its rate limiter / deduplicator.
    cache: The TTL :class:`~kingdomapi.cache.ResponseCache`.
    auth: Token stores and the token refresh flow.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration loading and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Typer CLI for poking at the API from a terminal.
"""

__version__ = "0.1.0"

from kingdomapi.client import KingdomAPIClient  # noqa: E402

__all__ = ["KingdomAPIClient", "__version__"]
