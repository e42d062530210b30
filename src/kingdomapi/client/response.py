"""Helpers for decoding unified-API responses.

The backend wraps most payloads in an ``{success, data, error}`` envelope.
The client itself returns decoded bodies untouched; these helpers are for
callers (and the token refresh flow) that need to look inside the envelope.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from kingdomapi.models import ApiResponse


def extract_response_data(response: httpx.Response) -> Any:
    """Extract the body from an HTTP response.

    Returns:
        A JSON-decoded object, a ``str`` of raw text when the body is not
        JSON, or ``None`` if the body is empty.
    """
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def parse_envelope(body: Any) -> ApiResponse[Any]:
    """Interpret *body* as an :class:`~kingdomapi.models.ApiResponse`.

    Bodies that are not envelopes (anything without a ``success`` key) are
    treated as a successful payload in their own right.
    """
    if isinstance(body, dict) and "success" in body:
        return ApiResponse[Any].model_validate(body)
    return ApiResponse[Any](success=True, data=body)


def error_message(body: Any) -> Optional[str]:
    """Pick the most useful error text out of an error response body."""
    if isinstance(body, dict):
        for field in ("error", "message", "detail"):
            value = body.get(field)
            if isinstance(value, dict):
                nested = value.get("message") or value.get("code")
                return str(nested) if nested else str(value)
            if value:
                return str(value)
        return None
    if isinstance(body, str) and body:
        return body[:200]
    return None
