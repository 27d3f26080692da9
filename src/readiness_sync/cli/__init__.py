"""readiness-sync command line interface."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from readiness_sync import __version__
from readiness_sync.cli.commands import register_commands

app = typer.Typer(
    name="readiness-sync",
    help="Propagate dependency readiness across monday.com boards",
    add_completion=False,
    no_args_is_help=True,
)


def _configure_logging(verbose: bool) -> None:
    root = logging.getLogger("readiness_sync")
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    if any(isinstance(handler, RichHandler) for handler in root.handlers):
        return
    handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=verbose)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"readiness-sync {__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        envvar="READINESS_SYNC_CONFIG",
        help="Path to readiness-sync.yaml",
    ),
    token: Optional[str] = typer.Option(None, "--token", help="API token (overrides MONDAY_API_TOKEN)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True),
) -> None:
    """Cross-board readiness reconciliation."""
    del version
    _configure_logging(verbose)
    ctx.obj = {"config_path": config, "token": token}


register_commands(app)


def main() -> None:
    app()


__all__ = ["app", "main"]
