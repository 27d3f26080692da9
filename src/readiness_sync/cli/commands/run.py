"""Reconciliation run commands: full sweep and targeted."""

from __future__ import annotations

import typer

from readiness_sync.checks import require_consistent
from readiness_sync.cli import helpers
from readiness_sync.orchestrator import Reconciler


def sweep_command(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="Report what would change without writing"),
    skip_check: bool = typer.Option(False, "--skip-check", help="Skip the board schema consistency check"),
    show_skipped: bool = typer.Option(True, "--show-skipped/--hide-skipped", help="List skipped items"),
    as_json: bool = typer.Option(False, "--json", help="Render the run summary as JSON"),
) -> None:
    """Reconcile every item on the dependent board."""

    def _run() -> None:
        config = helpers.load_runtime_config(ctx).validate()
        with helpers.open_client(ctx, config) as client:
            if not skip_check:
                require_consistent(client, config)
            summary = Reconciler(client, config).run_full_sweep(dry_run=dry_run or config.schedule.dry_run)

        if as_json:
            helpers.print_json(summary.to_dict())
            return
        helpers.render_summary(summary, show_skipped=show_skipped)

    helpers.run_or_exit(_run)


def targeted_command(
    ctx: typer.Context,
    item_id: str = typer.Argument(..., help="Dependency item id that changed"),
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="Report what would change without writing"),
    skip_check: bool = typer.Option(False, "--skip-check", help="Skip the board schema consistency check"),
    as_json: bool = typer.Option(False, "--json", help="Render the run summary as JSON"),
) -> None:
    """Reconcile only the dependent items linked to one dependency item."""

    def _run() -> None:
        config = helpers.load_runtime_config(ctx).validate()
        with helpers.open_client(ctx, config) as client:
            if not skip_check:
                require_consistent(client, config)
            summary = Reconciler(client, config).run_targeted(item_id, dry_run=dry_run)

        if as_json:
            helpers.print_json(summary.to_dict())
            return
        helpers.render_summary(summary)

    helpers.run_or_exit(_run)
