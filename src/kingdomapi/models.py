"""Canonical Pydantic models shared across all kingdomapi modules.

The models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`CacheConfig`, :class:`RateLimitConfig`, :class:`DedupConfig`,
    and :class:`ClientConfig`.

**Wire models** -- shapes exchanged with the unified backend:
    :class:`ApiResponse` (the ``{success, data, error}`` envelope),
    :class:`ContentGenerationRequest`, and :class:`CacheEntry`.

All models use Pydantic v2. Wire models accept both the camelCase names the
backend speaks and their snake_case field names.
"""

from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

DEFAULT_BASE_URL = "https://api.kingdomcollective.pro"


# --- Client Config ---


class CacheConfig(BaseModel):
    """Response cache settings for :class:`ClientConfig`."""

    enabled: bool = Field(default=True, description="Enable response caching")
    ttl_seconds: float = Field(default=300, description="Default cache TTL in seconds")
    generation_ttl_seconds: float = Field(
        default=3600, description="TTL for content generation results"
    )
    templates_ttl_seconds: float = Field(
        default=600, description="TTL for content template listings"
    )
    persist: bool = Field(
        default=False,
        description="Keep cached responses on disk between runs",
    )


class RateLimitConfig(BaseModel):
    """Sliding-window limits applied per endpoint."""

    enabled: bool = True
    max_requests: int = Field(default=60, description="Accepted calls per window")
    window_seconds: float = Field(default=60, description="Trailing window length")


class DedupConfig(BaseModel):
    """In-flight request deduplication settings."""

    post_release_delay: float = Field(
        default=1.0,
        description="Seconds a settled POST stays registered to absorb double submits",
    )


class ClientConfig(BaseModel):
    """Connection settings for :class:`~kingdomapi.client.KingdomAPIClient`.

    Loaded from ``~/.config/kingdomapi/config.json`` by
    :func:`~kingdomapi.config.load_config`; environment variables and CLI flags
    override individual fields (see :func:`~kingdomapi.config.resolve_config`).
    """

    base_url: str = Field(default=DEFAULT_BASE_URL, description="Unified API base URL")
    timeout: float = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = True
    app_id: str = Field(default="kingdom-collective", description="Sent as x-app-id")
    app_version: str = Field(default="1.0.0", description="Sent as x-app-version")
    api_version: str = Field(default="v1", description="Sent as x-api-version")
    user_agent: str = "Kingdom-Collective-API-Client/1.0"
    cache: CacheConfig = Field(default_factory=CacheConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    dedup: DedupConfig = Field(default_factory=DedupConfig)


# --- Wire models ---


class ApiResponse(BaseModel, Generic[T]):
    """The ``{success, data, error}`` envelope used by the unified API.

    ``error`` is usually a string, but some services send an object such as
    ``{"code": "BAD_CREDENTIALS"}``; :func:`~kingdomapi.client.response.error_message`
    turns either form into display text.

    Example::

        ApiResponse.model_validate({"success": True, "data": {"id": "1"}})
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    success: bool = False
    data: Optional[T] = None
    error: Any = None
    message: Optional[str] = None
    status_code: Optional[int] = Field(default=None, alias="statusCode")


class ContentGenerationRequest(BaseModel):
    """Input for ``POST /content/generate``.

    Two requests with the same field values map to the same cache and
    deduplication key, whatever order the caller built them in.
    """

    model_config = ConfigDict(populate_by_name=True)

    prompt: str
    platform: Optional[str] = None
    tone: Optional[str] = None
    content_type: Optional[str] = Field(default=None, alias="contentType")
    faith_mode: bool = Field(default=False, alias="faithMode")
    settings: dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """Return the camelCase JSON body, omitting unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class CacheEntry(BaseModel):
    """A cached response body and the clock reading at which it expires."""

    data: Any = None
    expiry: float
