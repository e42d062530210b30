"""Numeric process exit codes used by the ``kingdomapi`` CLI.

Each constant maps to an error category and is referenced by the
corresponding :class:`~kingdomapi.exceptions.KingdomAPIError` subclass, so
shell wrappers can branch on the failure class without parsing stderr.

Example::

    $ kingdomapi get /content/favorites
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the stored token was rejected
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_AUTH_FAILURE = 3
"""Authentication failed or the access token expired (HTTP 401 / 403)."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API returned an HTTP 5xx server error."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_REQUEST_ERROR = 7
"""The API rejected the request with an HTTP 4xx status not covered above."""

EXIT_RATE_LIMITED = 8
"""The client-side rate limiter refused to send the request."""
