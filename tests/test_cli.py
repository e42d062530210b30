"""Tests for the ``kingdomapi`` Typer CLI.

Each test swaps :func:`kingdomapi.app.build_client` for a factory that
wires the client to an :class:`httpx.MockTransport` and an in-memory token
store, so no request leaves the process.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from kingdomapi import __version__
from kingdomapi.app import app
from kingdomapi.auth import MemoryTokenStore
from kingdomapi.client import KingdomAPIClient
from kingdomapi.config import load_config
from kingdomapi.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class FakeBackend:
    """Records requests and answers from a path -> (status, body) table."""

    def __init__(self, routes: dict[str, tuple[int, Any]] | None = None) -> None:
        self.routes = routes or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.routes.get(request.url.path, (200, {"success": True, "data": None}))
        return httpx.Response(status, json=body)


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def cli_tokens() -> MemoryTokenStore:
    return MemoryTokenStore()


@pytest.fixture(autouse=True)
def _patched_client(isolated_config: Path, monkeypatch, backend, cli_tokens) -> None:
    def _build(config):
        http = httpx.AsyncClient(base_url=config.base_url, transport=httpx.MockTransport(backend))
        return KingdomAPIClient(config, token_store=cli_tokens, http_client=http)

    monkeypatch.setattr("kingdomapi.app.build_client", _build)


class TestGlobalOptions:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_base_url_flag_reaches_client(self, cli_runner, backend) -> None:
        result = cli_runner.invoke(app, ["--json", "--base-url", "https://staging.test", "health"])
        assert result.exit_code == 0
        assert str(backend.requests[0].url) == "https://staging.test/health"


class TestRequestCommands:
    def test_health_json(self, cli_runner, backend) -> None:
        backend.routes["/health"] = (200, {"status": "healthy"})
        result = cli_runner.invoke(app, ["--json", "health"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"status": "healthy"}

    def test_get_with_params(self, cli_runner, backend) -> None:
        result = cli_runner.invoke(
            app, ["--json", "get", "/content/templates", "-P", "platform=ig", "-P", "category=faith"]
        )
        assert result.exit_code == 0
        params = backend.requests[0].url.params
        assert params["platform"] == "ig"
        assert params["category"] == "faith"

    def test_get_malformed_param(self, cli_runner, backend) -> None:
        result = cli_runner.invoke(app, ["get", "/products", "-P", "oops"])
        assert result.exit_code == EXIT_INVALID_USAGE
        assert "key=value" in result.output
        assert backend.requests == []

    def test_post_json_body(self, cli_runner, backend) -> None:
        result = cli_runner.invoke(
            app, ["--json", "post", "/content/favorites", "--body", '{"contentId": "c1"}']
        )
        assert result.exit_code == 0
        assert json.loads(backend.requests[0].content) == {"contentId": "c1"}

    def test_generate(self, cli_runner, backend) -> None:
        backend.routes["/content/generate"] = (200, {"success": True, "data": {"text": "Amen"}})
        result = cli_runner.invoke(
            app, ["--json", "generate", "--prompt", "Sunday post", "--platform", "ig", "--faith-mode"]
        )
        assert result.exit_code == 0
        assert json.loads(result.stdout)["data"] == {"text": "Amen"}
        sent = json.loads(backend.requests[0].content)
        assert sent["faithMode"] is True
        assert sent["prompt"] == "Sunday post"

    def test_server_error_exit_code(self, cli_runner, backend) -> None:
        backend.routes["/metrics"] = (502, {"error": "bad gateway"})
        result = cli_runner.invoke(app, ["metrics"])
        assert result.exit_code == EXIT_SERVER_ERROR
        assert "bad gateway" in result.output

    def test_not_found_exit_code(self, cli_runner, backend) -> None:
        backend.routes["/products/42"] = (404, {"error": "missing"})
        result = cli_runner.invoke(app, ["get", "/products/42"])
        assert result.exit_code == EXIT_NOT_FOUND

    def test_upload_file(self, cli_runner, backend, isolated_config: Path) -> None:
        source = isolated_config / "flyer.pdf"
        source.write_bytes(b"%PDF-1.7")
        backend.routes["/files/upload"] = (200, {"success": True, "data": {"id": "f9"}})

        result = cli_runner.invoke(
            app, ["--json", "upload", str(source), "--content-type", "application/pdf"]
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout)["data"]["id"] == "f9"
        sent = backend.requests[0]
        assert sent.method == "POST"
        assert b'filename="flyer.pdf"' in sent.content
        assert b"Content-Type: application/pdf" in sent.content


class TestSessionCommands:
    def test_login_saves_tokens(self, cli_runner, backend, cli_tokens) -> None:
        backend.routes["/auth/login"] = (
            200,
            {"success": True, "data": {"accessToken": "a1", "refreshToken": "r1"}},
        )
        result = cli_runner.invoke(app, ["login", "--email", "me@test", "--password", "pw"])
        assert result.exit_code == 0
        assert cli_tokens.get_access_token() == "a1"
        assert cli_tokens.get_refresh_token() == "r1"

    def test_login_error_object_exit_code(self, cli_runner, backend, cli_tokens) -> None:
        backend.routes["/auth/login"] = (
            200,
            {"success": False, "error": {"code": "BAD_CREDENTIALS"}},
        )
        result = cli_runner.invoke(app, ["login", "--email", "me@test", "--password", "pw"])
        assert result.exit_code == EXIT_AUTH_FAILURE
        assert "BAD_CREDENTIALS" in result.output
        assert cli_tokens.get_access_token() is None

    def test_logout_clears_tokens(self, cli_runner, cli_tokens) -> None:
        cli_tokens.save_tokens("a1", "r1")
        result = cli_runner.invoke(app, ["logout"])
        assert result.exit_code == 0
        assert cli_tokens.get_access_token() is None


class TestCacheCommands:
    def test_stats_json(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--json", "--quiet", "cache", "stats"])
        assert result.exit_code == 0
        rows = {row["stat"]: row["value"] for row in json.loads(result.stdout)}
        assert rows["size"] == "0"
        assert rows["in_flight"] == "0"

    def test_clear(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["cache", "clear", "favorites"])
        assert result.exit_code == 0
        assert "Removed 0" in result.output


class TestConfigCommands:
    def test_show_reflects_cli_override(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--json", "--base-url", "https://cli.test", "config", "show"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["base_url"] == "https://cli.test"

    def test_set_base_url_persists(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["config", "set-base-url", "https://saved.test"])
        assert result.exit_code == 0
        assert load_config().base_url == "https://saved.test"
