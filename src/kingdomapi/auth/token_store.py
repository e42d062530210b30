"""Persistent storage for the access and refresh tokens.

The client reads the access token before every request and only the refresh
flow (or an explicit login / logout) writes. Two string keys are used:
``userToken`` and ``refreshToken``.

:class:`FileTokenStore` keeps both in ``~/.local/share/kingdomapi/tokens.json``
(XDG) or the platform equivalent. Writes go through
:func:`~kingdomapi.config.atomic_write` with ``0o600`` permissions so the
tokens are never world-readable, even momentarily.
The file is read once per store instance, not once per request.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from kingdomapi.config import atomic_write, get_data_dir

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "userToken"
REFRESH_TOKEN_KEY = "refreshToken"


class TokenStore(ABC):
    """Abstract string key-value store holding auth tokens."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value stored under *key*, or ``None``."""
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value."""
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete *key*. A missing key is not an error."""
        ...

    def get_access_token(self) -> Optional[str]:
        return self.get(ACCESS_TOKEN_KEY)

    def get_refresh_token(self) -> Optional[str]:
        return self.get(REFRESH_TOKEN_KEY)

    def save_tokens(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        """Persist a new access token and, when given, a rotated refresh token."""
        self.set(ACCESS_TOKEN_KEY, access_token)
        if refresh_token:
            self.set(REFRESH_TOKEN_KEY, refresh_token)

    def clear_tokens(self) -> None:
        """Remove both tokens. Acts as the logout signal for the rest of the app."""
        self.remove(ACCESS_TOKEN_KEY)
        self.remove(REFRESH_TOKEN_KEY)


class MemoryTokenStore(TokenStore):
    """Token store backed by a plain dict.

    Example::

        store = MemoryTokenStore({"userToken": "tok123"})
        assert store.get_access_token() == "tok123"
    """

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class FileTokenStore(TokenStore):
    """Token store persisted as a single JSON object on disk.

    The file is read once and kept in memory; later reads never touch the
    disk. Writes update both. Call :meth:`reload` to pick up changes made
    by another process.

    Args:
        path: File to use. Defaults to ``<data dir>/tokens.json``.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else get_data_dir() / "tokens.json"
        self._cache: Optional[dict[str, str]] = None

    @property
    def path(self) -> Path:
        """The filesystem path of the token file."""
        return self._path

    def get(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)

    def reload(self) -> None:
        """Forget the in-memory copy so the next read goes to disk."""
        self._cache = None

    def _load(self) -> dict[str, str]:
        """Return a copy of the tokens, reading the file on first use.

        A missing or corrupt file counts as empty.
        """
        if self._cache is None:
            self._cache = self._read()
        return dict(self._cache)

    def _read(self) -> dict[str, str]:
        if not self._path.is_file():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, ValueError, OSError) as exc:
            logger.warning("Ignoring unreadable token file %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, str]) -> None:
        atomic_write(self._path, json.dumps(data, indent=2) + "\n", mode=0o600)
        self._cache = dict(data)
