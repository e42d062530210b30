"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for kingdomapi:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.kingdomapi/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Client config** -- A single :class:`~kingdomapi.models.ClientConfig`
  JSON file (``config.json``) holding the base URL, app identification,
  and cache / rate-limit / dedup settings.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, and the config file into the effective settings.

File writes go through :func:`atomic_write` so a crash never leaves a
half-written config or token file behind.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from kingdomapi.exceptions import ConfigError
from kingdomapi.models import ClientConfig

_APP_NAME = "kingdomapi"
_CONFIG_FILENAME = "config.json"

ENV_BASE_URL = "KINGDOM_API_BASE_URL"
ENV_APP_ID = "KINGDOM_APP_ID"
ENV_APP_VERSION = "KINGDOM_APP_VERSION"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform follows the XDG Base Directory layout (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/kingdomapi/`` (default ``~/.config/kingdomapi/``).
    On macOS/Windows: ``~/.kingdomapi/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Holds the persistent response cache when ``cache.persist`` is enabled.
    Its contents can be deleted at any time.

    On Linux/BSD: ``$XDG_CACHE_HOME/kingdomapi/`` (default ``~/.cache/kingdomapi/``).
    On macOS/Windows: ``~/.kingdomapi/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (tokens, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/kingdomapi/`` (default ``~/.local/share/kingdomapi/``).
    On macOS/Windows: ``~/.kingdomapi/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. When *mode* is
    given, permissions are applied to the temp file before any content is
    written. On any failure the temp file is removed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Client config ---


def config_path() -> Path:
    """Path to the client config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_config() -> ClientConfig:
    """Load the client configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~kingdomapi.models.ClientConfig`, or a
        default instance when the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = config_path()
    if not path.is_file():
        return ClientConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ClientConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: ClientConfig) -> None:
    """Persist the client configuration atomically to disk."""
    data = config.model_dump(mode="json")
    atomic_write(config_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def resolve_config(cli_base_url: Optional[str] = None) -> ClientConfig:
    """Resolve the effective client config.

    Precedence (high to low):
        1. CLI flags (``cli_base_url``)
        2. Environment variables (``KINGDOM_API_BASE_URL``,
           ``KINGDOM_APP_ID``, ``KINGDOM_APP_VERSION``)
        3. User config (``~/.config/kingdomapi/config.json``)
        4. Defaults
    """
    config = load_config()

    env_base_url = os.environ.get(ENV_BASE_URL)
    if env_base_url:
        config.base_url = env_base_url
    env_app_id = os.environ.get(ENV_APP_ID)
    if env_app_id:
        config.app_id = env_app_id
    env_app_version = os.environ.get(ENV_APP_VERSION)
    if env_app_version:
        config.app_version = env_app_version

    if cli_base_url is not None:
        config.base_url = cli_base_url

    return config
