"""Command registration for the readiness-sync CLI."""

from __future__ import annotations

import typer

from readiness_sync.cli.commands import auth, webhook
from readiness_sync.cli.commands.board import check_command, labels_command
from readiness_sync.cli.commands.run import sweep_command, targeted_command
from readiness_sync.cli.commands.serve import serve_command


def register_commands(app: typer.Typer) -> None:
    app.command("sweep")(sweep_command)
    app.command("targeted")(targeted_command)
    app.command("check")(check_command)
    app.command("labels")(labels_command)
    app.command("serve")(serve_command)
    app.add_typer(webhook.app, name="webhook")
    app.add_typer(auth.app, name="auth")


__all__ = ["register_commands"]
