"""Asynchronous client for the Kingdom Collective unified API.

:class:`KingdomAPIClient` wraps :class:`httpx.AsyncClient` and layers the
client-side concerns every app screen relies on around each call:

1. **Auth injection** -- ``Authorization: Bearer <userToken>`` from the
   :class:`~kingdomapi.auth.TokenStore`, plus the ``x-app-*`` headers.
2. **Response cache** -- GETs (and content generation) are answered from the
   :class:`~kingdomapi.cache.ResponseCache` while the entry is fresh.
3. **Rate limiting** -- a per-endpoint sliding window refuses calls before
   any network I/O with :class:`~kingdomapi.exceptions.RateLimitExceeded`.
4. **Deduplication** -- identical concurrent calls share one network round
   trip via :class:`~kingdomapi.client.dedup.RequestDeduplicator`.
5. **Token refresh** -- an HTTP 401 triggers one shared refresh; the call
   still fails with :class:`~kingdomapi.exceptions.AuthExpiredError` and the
   caller decides whether to re-issue it.

Nothing is retried automatically. Every collaborator (transport, token
store, clock, cache, limiter, deduplicator) can be injected, which is how the
test-suite substitutes a fake clock and an :class:`httpx.MockTransport`.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, BinaryIO, Callable, Mapping, Optional

import httpx
from pydantic import ValidationError

from kingdomapi.auth import FileTokenStore, TokenRefresher, TokenStore
from kingdomapi.cache import ResponseCache
from kingdomapi.cache.response_cache import canonical_json
from kingdomapi.client.dedup import RequestDeduplicator
from kingdomapi.client.rate_limiter import SlidingWindowRateLimiter
from kingdomapi.client.response import error_message, extract_response_data, parse_envelope
from kingdomapi.endpoints import ApiEndpoints
from kingdomapi.exceptions import (
    AuthError,
    AuthExpiredError,
    ConnectionError_,
    KingdomAPIError,
    NotFoundError,
    RequestError,
    ServerError,
)
from kingdomapi.models import ClientConfig, ContentGenerationRequest

logger = logging.getLogger(__name__)

_MISSING = object()

# A 401 from these means the submitted credentials were wrong, not that the
# session expired.
_CREDENTIAL_ENDPOINTS = frozenset({ApiEndpoints.AUTH_LOGIN, ApiEndpoints.AUTH_REGISTER})


class KingdomAPIClient:
    """Cached, deduplicated, rate-limited client for the unified API.

    Args:
        config: Connection, cache, rate-limit and dedup settings.
        token_store: Source of the bearer token. Defaults to a
            :class:`~kingdomapi.auth.FileTokenStore` in the data directory.
        http_client: Pre-built transport. When omitted, one is created from
            *config* and closed by :meth:`aclose`.
        clock: Returns the current time in seconds; shared by the default
            cache and rate limiter.
        cache: Response cache. Defaults to one built from ``config.cache``.
        rate_limiter: Defaults to one built from ``config.rate_limit``.
        deduplicator: Defaults to a fresh
            :class:`~kingdomapi.client.dedup.RequestDeduplicator`.

    Example::

        async with KingdomAPIClient(token_store=MemoryTokenStore()) as client:
            content = await client.generate_content(
                {"prompt": "Morning devotional", "platform": "ig", "tone": "casual"}
            )
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        token_store: Optional[TokenStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
        cache: Optional[ResponseCache] = None,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        deduplicator: Optional[RequestDeduplicator] = None,
    ) -> None:
        self._config = config or ClientConfig()
        self._store = token_store if token_store is not None else FileTokenStore()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=self._config.timeout,
            verify=self._config.verify_ssl,
            follow_redirects=True,
        )
        self._cache = cache or ResponseCache(self._config.cache, clock=clock)
        self._limiter = rate_limiter or SlidingWindowRateLimiter(
            self._config.rate_limit, clock=clock
        )
        self._dedup = deduplicator or RequestDeduplicator()
        self._refresher = TokenRefresher(
            self._store,
            self._http,
            headers=self.get_request_headers(),
        )

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> KingdomAPIClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the transport (when this client created it) and the cache."""
        if self._owns_http:
            await self._http.aclose()
        self._cache.close()

    # ------------------------------------------------------------------ #
    # Collaborators
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def token_store(self) -> TokenStore:
        return self._store

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def rate_limiter(self) -> SlidingWindowRateLimiter:
        return self._limiter

    @property
    def deduplicator(self) -> RequestDeduplicator:
        return self._dedup

    @property
    def refresher(self) -> TokenRefresher:
        return self._refresher

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def get(
        self,
        endpoint: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        use_cache: bool = True,
        ttl: Optional[float] = None,
    ) -> Any:
        """Send a GET, answering from the cache while a fresh entry exists.

        Args:
            endpoint: Path relative to ``config.base_url``.
            params: Query parameters. Their order never affects caching or
                deduplication.
            use_cache: ``False`` skips the cache lookup and store for this call.
            ttl: Cache lifetime in seconds. Defaults to ``cache.ttl_seconds``.

        Returns:
            The decoded response body.

        Raises:
            RateLimitExceeded: The endpoint's window is full (no I/O happened).
            AuthExpiredError: HTTP 401, after the refresh flow ran.
            HTTPError: Any other non-2xx status.
            ConnectionError_: Network failure or timeout.
        """
        params = dict(params) if params else None
        cache_key = ResponseCache.make_key(endpoint, params) if use_cache else None
        return await self._call(
            "GET", endpoint, params=params, cache_key=cache_key, ttl=ttl,
        )

    async def post(
        self,
        endpoint: str,
        body: Any = None,
        *,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """Send a POST. Never cached.

        Identical bodies sent while a call is in flight (or within
        ``dedup.post_release_delay`` seconds of it succeeding) are answered by
        that call instead of reaching the network again.
        """
        return await self._call(
            "POST",
            endpoint,
            body=body,
            headers=headers,
            release_delay=self._config.dedup.post_release_delay,
        )

    async def put(self, endpoint: str, body: Any = None) -> Any:
        """Send a PUT. Deduplicated while in flight, never cached."""
        return await self._call("PUT", endpoint, body=body)

    async def delete(self, endpoint: str) -> Any:
        """Send a DELETE. Deduplicated while in flight, never cached."""
        return await self._call("DELETE", endpoint)

    async def upload_file(
        self,
        endpoint: str,
        file: str | Path | bytes | BinaryIO,
        *,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> Any:
        """Upload *file* as the ``file`` field of a multipart POST.

        Uploads count against the endpoint's rate limit but are never cached
        or deduplicated; two uploads of the same file are two uploads.

        Args:
            endpoint: Upload path, usually ``ApiEndpoints.FILES_UPLOAD``.
            file: A filesystem path, raw bytes, or an open binary file.
            filename: Name sent with the part. Defaults to the path's or
                file object's base name, else ``"upload"``.
            content_type: MIME type of the part. Defaults to
                ``application/octet-stream``.
        """
        if isinstance(file, (str, Path)):
            path = Path(file)
            content: bytes | BinaryIO = path.read_bytes()
            filename = filename or path.name
        else:
            content = file
            name = getattr(file, "name", None)
            if not filename and isinstance(name, str):
                filename = Path(name).name
        part = (filename or "upload", content, content_type or "application/octet-stream")

        self._limiter.check(self._rate_key(endpoint))
        return await self._send("POST", endpoint, files={"file": part})

    # ------------------------------------------------------------------ #
    # Domain helpers
    # ------------------------------------------------------------------ #

    async def generate_content(
        self,
        request: ContentGenerationRequest | Mapping[str, Any],
        *,
        ttl: Optional[float] = None,
    ) -> Any:
        """Generate content, reusing a cached result for an identical request.

        The cache and deduplication keys come from the request's field values
        (prompt, platform, tone, ...) so the same logical request always hits
        the same entry. Results are kept for ``cache.generation_ttl_seconds``
        (one hour by default).
        """
        if not isinstance(request, ContentGenerationRequest):
            request = ContentGenerationRequest.model_validate(dict(request))
        payload = request.to_payload()
        endpoint = ApiEndpoints.CONTENT_GENERATE
        return await self._call(
            "POST",
            endpoint,
            body=payload,
            cache_key=ResponseCache.make_key(endpoint, payload),
            ttl=ttl if ttl is not None else self._config.cache.generation_ttl_seconds,
            release_delay=self._config.dedup.post_release_delay,
        )

    async def get_content_templates(
        self,
        category: Optional[str] = None,
        platform: Optional[str] = None,
    ) -> Any:
        """List content templates, cached for ``cache.templates_ttl_seconds``."""
        params = {
            name: value
            for name, value in (("category", category), ("platform", platform))
            if value
        }
        return await self.get(
            ApiEndpoints.CONTENT_TEMPLATES,
            params or None,
            ttl=self._config.cache.templates_ttl_seconds,
        )

    async def get_favorites(self) -> Any:
        return await self.get(ApiEndpoints.CONTENT_FAVORITES)

    async def add_to_favorites(self, item: Mapping[str, Any]) -> Any:
        """Save a favorite and drop the cached favorites listing."""
        result = await self.post(ApiEndpoints.CONTENT_FAVORITES, dict(item))
        self._cache.clear(ApiEndpoints.CONTENT_FAVORITES)
        return result

    async def health_check(self) -> Any:
        """Return the uncached body of ``GET /health``."""
        return await self.get(ApiEndpoints.HEALTH, use_cache=False)

    async def get_metrics(self) -> Any:
        """Return the uncached body of ``GET /metrics``."""
        return await self.get(ApiEndpoints.METRICS, use_cache=False)

    async def login(self, email: str, password: str) -> Any:
        """Log in and persist the returned access and refresh tokens.

        Raises:
            AuthError: The backend rejected the credentials (HTTP 401, or
                ``success: false``), sent no token, or sent a body that is
                not a valid envelope.
        """
        body = await self.post(
            ApiEndpoints.AUTH_LOGIN, {"email": email, "password": password}
        )
        try:
            envelope = parse_envelope(body)
        except ValidationError as exc:
            raise AuthError(f"Malformed login response: {exc}") from exc
        data = envelope.data if isinstance(envelope.data, dict) else {}
        top = body if isinstance(body, dict) else {}
        token = data.get("accessToken") or data.get("token") or top.get("token")
        if not envelope.success or not token:
            detail = None if envelope.success else error_message(body)
            raise AuthError(detail or "Login failed")
        self._store.save_tokens(token, data.get("refreshToken") or top.get("refreshToken"))
        return body

    async def logout(self) -> None:
        """Log out remotely (best effort) and always clear local tokens and cache."""
        try:
            await self.post(ApiEndpoints.AUTH_LOGOUT)
        except KingdomAPIError as exc:
            logger.warning("Remote logout failed: %s", exc)
        finally:
            self._store.clear_tokens()
            self._cache.clear()

    # ------------------------------------------------------------------ #
    # Cache and queue management
    # ------------------------------------------------------------------ #

    def clear_cache(self, pattern: Optional[str] = None) -> int:
        """Drop every cached response, or those whose key contains *pattern*."""
        return self._cache.clear(pattern)

    def get_cache_stats(self) -> dict[str, Any]:
        """Cache statistics plus the in-flight request count and keys."""
        stats = self._cache.stats()
        stats["in_flight"] = len(self._dedup)
        stats["in_flight_keys"] = self._dedup.keys()
        return stats

    def clear_queue(self) -> None:
        """Forget all in-flight registrations (running calls still finish)."""
        self._dedup.clear()

    def get_request_headers(self) -> dict[str, str]:
        """Headers sent with every request, excluding ``Authorization``."""
        return {
            "Content-Type": "application/json",
            "User-Agent": self._config.user_agent,
            "x-app-id": self._config.app_id,
            "x-app-version": self._config.app_version,
            "x-api-version": self._config.api_version,
        }

    def get_api_config(self) -> dict[str, Any]:
        return self._config.model_dump(mode="json")

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _call(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[dict[str, Any]] = None,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        cache_key: Optional[str] = None,
        ttl: Optional[float] = None,
        release_delay: float = 0.0,
    ) -> Any:
        """Cache lookup, rate-limit check, then a deduplicated network call."""
        if cache_key is not None:
            cached = self._cache.get(cache_key, _MISSING)
            if cached is not _MISSING:
                logger.debug("Cache hit for %s", cache_key)
                return cached

        signature = self._signature(method, endpoint, params if method == "GET" else body)
        # Joining an in-flight call costs no network I/O, so only new calls count.
        if not self._dedup.is_in_flight(signature):
            self._limiter.check(self._rate_key(endpoint))

        async def _network_call() -> Any:
            data = await self._send(method, endpoint, params=params, body=body, headers=headers)
            if cache_key is not None:
                self._cache.set(cache_key, data, ttl)
            return data

        return await self._dedup.dedupe(signature, _network_call, release_delay)

    async def _send(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        files: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Perform one HTTP exchange and map the outcome to a body or an exception."""
        request_headers = self.get_request_headers()
        if files:
            # httpx sets the multipart boundary itself.
            del request_headers["Content-Type"]
        token = self._store.get_access_token()
        if token:
            request_headers["Authorization"] = f"Bearer {token}"
        if headers:
            request_headers.update(headers)

        kwargs: dict[str, Any] = {"headers": request_headers}
        if params:
            kwargs["params"] = params
        if files:
            kwargs["files"] = files
        elif body is not None:
            kwargs["json"] = body

        started = time.perf_counter()
        try:
            response = await self._http.request(method, endpoint, **kwargs)
        except httpx.TimeoutException as exc:
            raise ConnectionError_(f"{method} {endpoint} timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise ConnectionError_(f"{method} {endpoint} failed: {exc}") from exc

        logger.debug(
            "%s %s -> %s in %.0f ms",
            method,
            endpoint,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )

        if response.status_code == 401 and self._rate_key(endpoint) in _CREDENTIAL_ENDPOINTS:
            raise AuthError(self._status_message(response), 401)
        if response.status_code == 401:
            refreshed = await self._refresher.refresh(token)
            raise AuthExpiredError(
                self._status_message(response), refreshed=refreshed
            )
        self._map_response_error(response)
        return extract_response_data(response)

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return
        message = self._status_message(response)
        if status in (401, 403):
            raise AuthError(message, status)
        if status == 404:
            raise NotFoundError(message, status)
        if status >= 500:
            raise ServerError(message, status)
        raise RequestError(message, status)

    @staticmethod
    def _status_message(response: httpx.Response) -> str:
        detail = error_message(extract_response_data(response))
        prefix = f"HTTP {response.status_code}"
        return f"{prefix}: {detail}" if detail else prefix

    @staticmethod
    def _signature(method: str, endpoint: str, payload: Any) -> str:
        if payload is None:
            return f"{method} {endpoint}"
        return f"{method} {endpoint} {canonical_json(payload)}"

    @staticmethod
    def _rate_key(endpoint: str) -> str:
        return endpoint.split("?", 1)[0]

