"""Board inspection commands."""

from __future__ import annotations

import typer
from rich.table import Table

from readiness_sync.checks import run_checks
from readiness_sync.cli import helpers


def check_command(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Render check results as JSON"),
) -> None:
    """Verify the token and that configured boards, columns and labels still match."""

    def _run() -> bool:
        config = helpers.load_runtime_config(ctx).validate()
        with helpers.open_client(ctx, config) as client:
            results = run_checks(client, config)

        ok = all(result.ok for result in results)
        if as_json:
            helpers.print_json({"ok": ok, "checks": [result.to_dict() for result in results]})
            return ok

        for result in results:
            mark = "[green]ok[/green]" if result.ok else "[red]FAIL[/red]"
            helpers.console.print(f"{mark} {result.name}: {result.detail}")
        return ok

    if not helpers.run_or_exit(_run):
        raise typer.Exit(1)


def labels_command(
    ctx: typer.Context,
    board_id: str = typer.Argument(..., help="Board id"),
    column_id: str = typer.Argument(..., help="Status column id"),
    as_json: bool = typer.Option(False, "--json", help="Render labels as JSON"),
) -> None:
    """Show the index -> label map of a status column."""

    def _run() -> None:
        config = helpers.load_runtime_config(ctx)
        with helpers.open_client(ctx, config) as client:
            labels = client.fetch_status_labels(board_id, column_id)

        if as_json:
            helpers.print_json({"board_id": board_id, "column_id": column_id, "labels": labels})
            return

        table = Table(title=f"{column_id} on board {board_id}")
        table.add_column("Index", justify="right")
        table.add_column("Label")
        for index in sorted(labels):
            table.add_row(str(index), labels[index])
        helpers.console.print(table)

    helpers.run_or_exit(_run)
