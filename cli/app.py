from __future__ import annotations

from typing import Optional

import typer
import uvicorn

from app.main import create_app
from errors import ConfigurationError
from logging_config import configure_logging
from metrics.registry import build_default_registry
from providers.purpleair import build_default_provider
from services.poller import build_default_poller
from settings import Settings, get_settings

CONFIG_ERROR_EXIT_CODE = 2

app = typer.Typer(
    help="Export PurpleAir sensor readings and their AQI as metrics.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _load_settings() -> Settings:
    try:
        return get_settings()
    except ConfigurationError as exc:
        typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=CONFIG_ERROR_EXIT_CODE) from exc


@app.callback()
def main() -> None:
    """Entry point for the CLI."""


@app.command("serve")
def serve_command(
    host: Optional[str] = typer.Option(
        None,
        "--host",
        help="Bind address (defaults to BIND_HOST env or 0.0.0.0).",
    ),
    port: Optional[int] = typer.Option(
        None,
        "--port",
        "-p",
        help="Bind port (defaults to BIND_PORT env or 3000).",
    ),
) -> None:
    """Poll the configured sensors and serve /metrics until interrupted."""
    settings = _load_settings()
    configure_logging(settings.log_level)

    uvicorn.run(
        create_app(),
        host=host or settings.bind_host,
        port=port or settings.bind_port,
        log_config=None,
    )


@app.command("poll-once")
def poll_once_command() -> None:
    """Run a single poll cycle and print the resulting metrics."""
    settings = _load_settings()
    configure_logging(settings.log_level)

    poller = build_default_poller()
    try:
        outcome = poller.run_cycle()
    finally:
        poller.stop()
        build_default_poller.cache_clear()
        build_default_provider().close()
        build_default_provider.cache_clear()

    typer.echo(build_default_registry().render(), nl=False)
    if outcome and not any(outcome.values()):
        typer.secho("Every sensor failed to poll.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
