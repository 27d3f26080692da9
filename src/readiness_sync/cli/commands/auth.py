"""API token management."""

from __future__ import annotations

import os

import typer

from readiness_sync.cli import helpers
from readiness_sync.credentials import TOKEN_ENV_VAR, CredentialStore

app = typer.Typer(help="API token commands")


@app.command("set-token")
def set_token_command(
    token: str = typer.Option(..., "--token", prompt=True, hide_input=True, help="monday.com API token"),
) -> None:
    """Store the API token in ~/.readiness-sync/credentials."""

    def _run() -> None:
        store = CredentialStore()
        store.set_token(token)
        typer.echo(f"Token saved to {store.path}")

    helpers.run_or_exit(_run)


@app.command("clear")
def clear_command() -> None:
    """Remove the stored API token."""

    def _run() -> None:
        CredentialStore().clear()
        typer.echo("Stored token removed")

    helpers.run_or_exit(_run)


@app.command("status")
def status_command(
    ctx: typer.Context,
    verify: bool = typer.Option(False, "--verify", help="Call the API to confirm the token works"),
) -> None:
    """Show where the API token comes from."""

    def _run() -> None:
        if helpers.state(ctx).get("token"):
            source = "--token option"
        elif os.getenv(TOKEN_ENV_VAR, "").strip():
            source = f"{TOKEN_ENV_VAR} environment variable"
        elif CredentialStore().get_token():
            source = "credentials file"
        else:
            typer.echo("No API token configured")
            raise typer.Exit(1)

        typer.echo(f"Token source: {source}")
        if verify:
            config = helpers.load_runtime_config(ctx)
            with helpers.open_client(ctx, config) as client:
                me = client.whoami()
            typer.echo(f"Authenticated as {me.get('name')} ({me.get('email')})")

    helpers.run_or_exit(_run)
