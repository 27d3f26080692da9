"""Shared helpers for readiness-sync commands."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from readiness_sync.client import BoardClient
from readiness_sync.config import ReconcilerConfig, load_config
from readiness_sync.credentials import require_token
from readiness_sync.errors import ReadinessSyncError
from readiness_sync.models import RunSummary

console = Console()

T = TypeVar("T")


def state(ctx: typer.Context) -> dict[str, Any]:
    obj = ctx.find_root().obj
    return obj if isinstance(obj, dict) else {}


def load_runtime_config(ctx: typer.Context) -> ReconcilerConfig:
    config_path: Path | None = state(ctx).get("config_path")
    return load_config(config_path)


@contextmanager
def open_client(ctx: typer.Context, config: ReconcilerConfig) -> Iterator[BoardClient]:
    token = require_token(state(ctx).get("token"))
    client = BoardClient(token, config)
    try:
        yield client
    finally:
        client.close()


def print_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, sort_keys=True, default=str))


def run_or_exit(fn: Callable[[], T]) -> T:
    """Run a command body, turning run-level failures into exit code 1."""
    try:
        return fn()
    except (ReadinessSyncError, ValueError) as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from exc


def render_summary(summary: RunSummary, *, show_skipped: bool = True) -> None:
    title = "Full sweep" if summary.mode.value == "full_sweep" else f"Targeted run ({summary.trigger_item_id})"
    if summary.dry_run:
        title += " [dim](dry run)[/dim]"

    table = Table(title=title, show_lines=False)
    table.add_column("Item", style="cyan")
    table.add_column("Result")
    table.add_column("Reason", style="dim")
    for outcome in summary.outcomes:
        if outcome.updated:
            result = "[green]updated[/green]"
        elif outcome.would_update:
            result = "[yellow]would update[/yellow]"
        elif show_skipped:
            result = "skipped"
        else:
            continue
        table.add_row(outcome.item_name or outcome.item_id, result, outcome.reason)

    if table.row_count:
        console.print(table)

    console.print(f"- processed: {summary.processed}")
    if summary.dry_run:
        console.print(f"- would update: {summary.would_update}")
    else:
        console.print(f"- updated: {summary.updated}")
    console.print(f"- skipped: {summary.skipped}")
    if summary.deferred:
        console.print(f"- [yellow]not started: {summary.deferred}[/yellow]")
