"""Shared test fixtures for kingdomapi.

Provides an isolated config environment, a controllable clock, output
state management, and helpers for building a client on top of an
:class:`httpx.MockTransport`. These fixtures are discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest

from kingdomapi.auth import MemoryTokenStore
from kingdomapi.client import KingdomAPIClient
from kingdomapi.models import ClientConfig, DedupConfig
from kingdomapi.output import OutputFormat, OutputManager, reset_output, set_output

BASE_URL = "https://api.test"


class FakeClock:
    """Manually advanced replacement for :func:`time.time`."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams, the
    cached references go stale once the test finishes.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every XDG directory at *tmp_path* and clear KINGDOM_* variables.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("kingdomapi.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["KINGDOM_API_BASE_URL", "KINGDOM_APP_ID", "KINGDOM_APP_VERSION"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token_store() -> MemoryTokenStore:
    return MemoryTokenStore({"userToken": "tok-1", "refreshToken": "refresh-1"})


@pytest.fixture
def make_client(clock: FakeClock, token_store: MemoryTokenStore):
    """Factory building a :class:`KingdomAPIClient` around a mock handler.

    The handler may be sync or async, as :class:`httpx.MockTransport`
    accepts both. The POST release delay defaults to a short value so
    tests that wait it out stay fast.
    """

    def _factory(
        handler: Callable[[httpx.Request], Any],
        config: Optional[ClientConfig] = None,
    ) -> KingdomAPIClient:
        config = config or ClientConfig(
            base_url=BASE_URL, dedup=DedupConfig(post_release_delay=0.05)
        )
        http = httpx.AsyncClient(base_url=config.base_url, transport=httpx.MockTransport(handler))
        return KingdomAPIClient(config, token_store=token_store, http_client=http, clock=clock)

    return _factory


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
