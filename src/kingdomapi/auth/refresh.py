"""Single-flight access-token refresh.

When a request comes back with HTTP 401, the client hands the token it sent
to :meth:`TokenRefresher.refresh`. Concurrent 401s share one refresh call,
and a 401 for a token that has already been replaced does not trigger a
second exchange.

A failed refresh is not raised. It is logged, both stored tokens are
cleared (the logout signal for the rest of the app), and ``False`` is
returned; the caller still reports the original 401.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional

import httpx

from kingdomapi.auth.token_store import TokenStore
from kingdomapi.client.response import extract_response_data, parse_envelope
from kingdomapi.endpoints import ApiEndpoints

logger = logging.getLogger(__name__)


class TokenRefresher:
    """Exchange the stored refresh token for a new access token.

    Args:
        token_store: Where the tokens are read from and written to.
        http_client: Transport used for the refresh call. The call bypasses
            the client's cache, deduplicator and rate limiter.
        endpoint: Refresh endpoint path.
        headers: Extra headers (app identification) sent with the call.
    """

    def __init__(
        self,
        token_store: TokenStore,
        http_client: httpx.AsyncClient,
        endpoint: str = ApiEndpoints.AUTH_REFRESH,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._store = token_store
        self._http = http_client
        self._endpoint = endpoint
        self._headers = dict(headers or {})
        self._pending: Optional[asyncio.Task[bool]] = None
        self.refresh_count = 0

    @property
    def in_progress(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def refresh(self, failed_token: Optional[str] = None) -> bool:
        """Refresh the access token once, sharing the call with concurrent callers.

        Args:
            failed_token: The access token the rejected request carried. If
                the store already holds a different token, a refresh has
                already happened and no new call is made.

        Returns:
            ``True`` if a usable access token is stored afterwards.
        """
        if self.in_progress:
            assert self._pending is not None
            return await asyncio.shield(self._pending)

        current = self._store.get_access_token()
        if failed_token is not None and current is not None and current != failed_token:
            logger.debug("Access token already replaced; skipping refresh")
            return True

        self._pending = asyncio.ensure_future(self._do_refresh())
        return await asyncio.shield(self._pending)

    async def _do_refresh(self) -> bool:
        refresh_token = self._store.get_refresh_token()
        if not refresh_token:
            logger.info("No refresh token stored; clearing session")
            self._store.clear_tokens()
            return False

        self.refresh_count += 1
        try:
            response = await self._http.post(
                self._endpoint,
                json={"refreshToken": refresh_token},
                headers=self._headers,
            )
        except httpx.HTTPError as exc:
            logger.warning("Token refresh failed: %s", exc)
            self._store.clear_tokens()
            return False

        body = extract_response_data(response)
        access_token, rotated = self._read_tokens(body)
        if response.is_success and access_token:
            self._store.save_tokens(access_token, rotated)
            logger.info("Access token refreshed")
            return True

        logger.warning("Token refresh rejected with HTTP %s", response.status_code)
        self._store.clear_tokens()
        return False

    @staticmethod
    def _read_tokens(body: Any) -> tuple[Optional[str], Optional[str]]:
        try:
            envelope = parse_envelope(body)
        except ValueError:
            return None, None
        if not envelope.success or not isinstance(envelope.data, dict):
            return None, None
        data = envelope.data
        access = data.get("accessToken") or data.get("token")
        rotated = data.get("refreshToken")
        return (
            access if isinstance(access, str) else None,
            rotated if isinstance(rotated, str) else None,
        )
