"""Typer application and CLI entry point for kingdomapi.

The ``kingdomapi`` command is a thin operator tool over
:class:`~kingdomapi.client.KingdomAPIClient`: check backend health, issue
ad-hoc GET/POST calls, upload files, generate content, and manage the
stored session.

Each command resolves the effective :class:`~kingdomapi.models.ClientConfig`
(see :func:`~kingdomapi.config.resolve_config`), builds a client with
:func:`build_client`, and runs one coroutine on a fresh event loop.
:class:`~kingdomapi.exceptions.KingdomAPIError` is reported on stderr and
turned into the matching exit code; anything else produces a crash log
under the data directory.
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import typer
from rich.logging import RichHandler

from kingdomapi import __version__
from kingdomapi.client import KingdomAPIClient
from kingdomapi.config import get_data_dir, load_config, resolve_config, save_config
from kingdomapi.endpoints import ApiEndpoints
from kingdomapi.exceptions import InvalidUsageError, KingdomAPIError
from kingdomapi.exit_codes import EXIT_GENERIC_FAILURE
from kingdomapi.models import ClientConfig, ContentGenerationRequest
from kingdomapi.output import (
    OutputFormat,
    OutputManager,
    debug,
    error,
    format_response,
    get_output,
    info,
    set_output,
    success,
)

app = typer.Typer(
    name="kingdomapi",
    help="Talk to the Kingdom Collective unified API.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
cache_app = typer.Typer(help="Response cache management.", no_args_is_help=True)
config_app = typer.Typer(help="Client configuration.", no_args_is_help=True)
app.add_typer(cache_app, name="cache")
app.add_typer(config_app, name="config")


def build_client(config: ClientConfig) -> KingdomAPIClient:
    """Create the client used by every command. Tests replace this factory."""
    return KingdomAPIClient(config)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"kingdomapi {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True,
        help="Show version and exit.",
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Override the API base URL."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Install the output manager and stash shared options on the context."""
    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    if verbose:
        _configure_logging(logging.DEBUG)

    ctx.ensure_object(dict)
    ctx.obj["base_url"] = base_url


def _configure_logging(level: int) -> None:
    """Send ``kingdomapi`` library logs to stderr through Rich."""
    logger = logging.getLogger("kingdomapi")
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        logger.addHandler(RichHandler(show_path=False, markup=False))
    logger.setLevel(level)


def _run(ctx: typer.Context, action: Callable[[KingdomAPIClient], Awaitable[Any]]) -> Any:
    """Run *action* against a fresh client, mapping library errors to exit codes."""
    config = resolve_config(cli_base_url=(ctx.obj or {}).get("base_url"))
    debug(f"Using {config.base_url}")

    async def _runner() -> Any:
        async with build_client(config) as client:
            return await action(client)

    try:
        return asyncio.run(_runner())
    except KingdomAPIError as exc:
        error(str(exc))
        raise typer.Exit(exc.exit_code) from exc


def _parse_params(pairs: list[str]) -> dict[str, str]:
    params: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise InvalidUsageError(f"Expected key=value, got {pair!r}")
        params[name] = value
    return params


def _parse_body(body: Optional[str]) -> Any:
    """Parse *body* as JSON if possible, returning the raw string on failure."""
    if body is None:
        return None
    try:
        return json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return body


# ------------------------------------------------------------------ #
# Request commands
# ------------------------------------------------------------------ #


@app.command()
def health(ctx: typer.Context) -> None:
    """Check backend health (GET /health, never cached)."""
    format_response(_run(ctx, lambda client: client.health_check()))


@app.command()
def metrics(ctx: typer.Context) -> None:
    """Show backend metrics (GET /metrics, never cached)."""
    format_response(_run(ctx, lambda client: client.get_metrics()))


@app.command("get")
def get_command(
    ctx: typer.Context,
    endpoint: str = typer.Argument(..., help="Endpoint path, e.g. /content/templates."),
    param: list[str] = typer.Option(
        [], "--param", "-P", help="Query parameter as key=value (repeatable)."
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the response cache."),
) -> None:
    """Send a GET request and print the response body."""
    try:
        params = _parse_params(param)
    except InvalidUsageError as exc:
        error(str(exc))
        raise typer.Exit(exc.exit_code) from exc
    format_response(
        _run(ctx, lambda client: client.get(endpoint, params or None, use_cache=not no_cache))
    )


@app.command("post")
def post_command(
    ctx: typer.Context,
    endpoint: str = typer.Argument(..., help="Endpoint path."),
    body: Optional[str] = typer.Option(None, "--body", "-b", help="Request body (JSON)."),
) -> None:
    """Send a POST request and print the response body."""
    payload = _parse_body(body)
    format_response(_run(ctx, lambda client: client.post(endpoint, payload)))


@app.command()
def upload(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to upload."),
    endpoint: str = typer.Option(
        ApiEndpoints.FILES_UPLOAD, "--endpoint", "-e", help="Upload endpoint path."
    ),
    content_type: Optional[str] = typer.Option(
        None, "--content-type", help="MIME type of the file part."
    ),
) -> None:
    """Upload a file as multipart form data."""
    format_response(
        _run(ctx, lambda client: client.upload_file(endpoint, path, content_type=content_type))
    )


@app.command()
def generate(
    ctx: typer.Context,
    prompt: str = typer.Option(..., "--prompt", help="What to generate."),
    platform: Optional[str] = typer.Option(None, "--platform", help="Target platform."),
    tone: Optional[str] = typer.Option(None, "--tone", help="Tone of voice."),
    faith_mode: bool = typer.Option(False, "--faith-mode", help="Enable Faith Mode."),
) -> None:
    """Generate content via POST /content/generate."""
    request = ContentGenerationRequest(
        prompt=prompt, platform=platform, tone=tone, faith_mode=faith_mode
    )
    format_response(_run(ctx, lambda client: client.generate_content(request)))


# ------------------------------------------------------------------ #
# Session commands
# ------------------------------------------------------------------ #


@app.command()
def login(
    ctx: typer.Context,
    email: str = typer.Option(..., "--email", prompt=True),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True),
) -> None:
    """Log in and store the session tokens."""
    _run(ctx, lambda client: client.login(email, password))
    success("Logged in.")


@app.command()
def logout(ctx: typer.Context) -> None:
    """Log out and clear the stored session tokens."""
    _run(ctx, lambda client: client.logout())
    success("Logged out.")


# ------------------------------------------------------------------ #
# Cache and config commands
# ------------------------------------------------------------------ #


@cache_app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show response cache statistics."""

    async def _stats(client: KingdomAPIClient) -> dict[str, Any]:
        return client.get_cache_stats()

    stats = _run(ctx, _stats)
    if not stats.get("persistent"):
        info("Cache is in-memory; enable cache.persist to keep entries between runs.")
    rows = [[name, str(value)] for name, value in stats.items() if name != "keys"]
    get_output().print_table(["stat", "value"], rows, title="Response cache")


@cache_app.command("clear")
def cache_clear(
    ctx: typer.Context,
    pattern: Optional[str] = typer.Argument(None, help="Only clear keys containing this text."),
) -> None:
    """Clear cached responses."""

    async def _clear(client: KingdomAPIClient) -> int:
        return client.clear_cache(pattern)

    removed = _run(ctx, _clear)
    success(f"Removed {removed} cached response(s).")


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Print the effective client configuration."""
    config = resolve_config(cli_base_url=(ctx.obj or {}).get("base_url"))
    format_response(config.model_dump(mode="json"))


@config_app.command("set-base-url")
def config_set_base_url(url: str = typer.Argument(..., help="New API base URL.")) -> None:
    """Persist a new API base URL in the user config file."""
    config = load_config()
    config.base_url = url
    save_config(config)
    success(f"Base URL set to {url}")


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``kingdomapi`` console script."""
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except KingdomAPIError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
