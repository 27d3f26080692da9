"""Webhook registration on the dependency board."""

from __future__ import annotations

from typing import Any, Optional

import typer

from readiness_sync.cli import helpers
from readiness_sync.errors import ConfigurationError

app = typer.Typer(help="Dependency board webhook commands")

_SPECIFIC_COLUMN_EVENT = "change_specific_column_value"


def _matches(hook: dict[str, Any], url: str, event: str) -> bool:
    if str(hook.get("event")) != event:
        return False
    # The webhooks query does not always expose the target URL.
    target = str(hook.get("url") or "")
    return not target or url in target


@app.command("list")
def list_command(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Render webhooks as JSON"),
) -> None:
    """List webhooks registered on the dependency board."""

    def _run() -> None:
        config = helpers.load_runtime_config(ctx).validate()
        with helpers.open_client(ctx, config) as client:
            hooks = client.list_webhooks(str(config.dependency.board_id))

        if as_json:
            helpers.print_json({"webhooks": hooks})
            return
        if not hooks:
            typer.echo("No webhooks registered")
            return
        typer.echo("Webhooks")
        for hook in hooks:
            typer.echo(f"- {hook.get('id')}: {hook.get('event')} {hook.get('config') or ''}".rstrip())

    helpers.run_or_exit(_run)


@app.command("setup")
def setup_command(
    ctx: typer.Context,
    url: Optional[str] = typer.Option(None, "--url", help="Public webhook URL (default: server.webhook_url)"),
    event: str = typer.Option("change_column_value", "--event", help="Webhook event type"),
    force: bool = typer.Option(False, "--force", help="Register even if a matching webhook exists"),
) -> None:
    """Register the status-change webhook unless it already exists."""

    def _run() -> None:
        config = helpers.load_runtime_config(ctx).validate()
        target_url = (url or config.server.webhook_url or "").strip()
        if not target_url:
            raise ConfigurationError("Missing --url (or server.webhook_url in the config file)")

        board_id = str(config.dependency.board_id)
        with helpers.open_client(ctx, config) as client:
            existing = [hook for hook in client.list_webhooks(board_id) if _matches(hook, target_url, event)]
            if existing and not force:
                typer.echo(f"Webhook already registered (id {existing[0].get('id')})")
                return

            hook_config = None
            if event == _SPECIFIC_COLUMN_EVENT:
                hook_config = {"columnId": config.dependency.status_column}
            hook = client.create_webhook(board_id, target_url, event=event, config=hook_config)

        typer.echo("Webhook registered")
        typer.echo(f"- id: {hook.get('id')}")
        typer.echo(f"- board: {board_id}")
        typer.echo(f"- event: {event}")
        typer.echo(f"- url: {target_url}")

    helpers.run_or_exit(_run)
