"""Exception hierarchy for kingdomapi.

All exceptions inherit from :class:`KingdomAPIError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`kingdomapi.exit_codes`.
Library callers catch the specific subclasses; the CLI entry point catches
``KingdomAPIError`` and exits with the matching code.

Subclass hierarchy::

    KingdomAPIError (exit 1)
    +-- InvalidUsageError     (exit 2)
    +-- RateLimitExceeded     (exit 8)
    +-- HTTPError
    |   +-- AuthError         (exit 3)
    |   |   +-- AuthExpiredError
    |   +-- NotFoundError     (exit 4)
    |   +-- RequestError      (exit 7)
    |   +-- ServerError       (exit 5)
    +-- ConnectionError_      (exit 6)
    +-- ConfigError           (exit 1)
"""

from __future__ import annotations

from typing import Optional

from kingdomapi.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_RATE_LIMITED,
    EXIT_REQUEST_ERROR,
    EXIT_SERVER_ERROR,
)


class KingdomAPIError(Exception):
    """Base exception for all kingdomapi errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(KingdomAPIError):
    """Raised for invalid CLI arguments (e.g. a malformed ``--param``)."""

    exit_code = EXIT_INVALID_USAGE


class RateLimitExceeded(KingdomAPIError):
    """Raised before any network I/O when an endpoint's rate window is full.

    Args:
        endpoint: The rate-limit key (endpoint path) that was refused.
        retry_after: Seconds until the oldest recorded call leaves the window.
    """

    exit_code = EXIT_RATE_LIMITED

    def __init__(self, endpoint: str, retry_after: float = 0.0):
        super().__init__(
            f"Rate limit exceeded for {endpoint}; retry in {retry_after:.1f}s"
        )
        self.endpoint = endpoint
        self.retry_after = retry_after


class HTTPError(KingdomAPIError):
    """Base for errors derived from a non-2xx HTTP response.

    Args:
        message: Human-readable error description.
        status_code: The HTTP status returned by the server.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthError(HTTPError):
    """Raised when the API refuses the credentials (HTTP 401 / 403)."""

    exit_code = EXIT_AUTH_FAILURE


class AuthExpiredError(AuthError):
    """Raised on HTTP 401 after the token refresh flow has run.

    ``refreshed`` tells the caller whether a new access token is now stored,
    i.e. whether re-issuing the request is worthwhile.
    """

    def __init__(self, message: str, status_code: int = 401, refreshed: bool = False):
        super().__init__(message, status_code)
        self.refreshed = refreshed


class NotFoundError(HTTPError):
    """Raised when the API returns HTTP 404 (resource not found)."""

    exit_code = EXIT_NOT_FOUND


class RequestError(HTTPError):
    """Raised for HTTP 4xx responses other than 401, 403, and 404."""

    exit_code = EXIT_REQUEST_ERROR


class ServerError(HTTPError):
    """Raised when the API returns an HTTP 5xx server error."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(KingdomAPIError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ConfigError(KingdomAPIError):
    """Raised for configuration problems (invalid JSON, failed validation)."""

    exit_code = EXIT_GENERIC_FAILURE
