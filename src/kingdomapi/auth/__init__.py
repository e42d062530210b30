"""Token persistence and refresh for kingdomapi.

- :class:`TokenStore` -- abstract key-value store for the ``userToken`` and
  ``refreshToken`` strings.
- :class:`FileTokenStore` -- JSON file on disk, written atomically with
  ``0o600`` permissions.
- :class:`MemoryTokenStore` -- in-process store for tests and throwaway
  sessions.
- :class:`TokenRefresher` -- single-flight exchange of the refresh token for
  a new access token.
"""

from kingdomapi.auth.refresh import TokenRefresher
from kingdomapi.auth.token_store import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    FileTokenStore,
    MemoryTokenStore,
    TokenStore,
)

__all__ = [
    "ACCESS_TOKEN_KEY",
    "REFRESH_TOKEN_KEY",
    "FileTokenStore",
    "MemoryTokenStore",
    "TokenRefresher",
    "TokenStore",
]
