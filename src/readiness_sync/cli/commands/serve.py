"""Long-running trigger server with optional scheduled sweeps."""

from __future__ import annotations

import logging
from typing import Optional

import typer

from readiness_sync.checks import require_consistent
from readiness_sync.cli import helpers
from readiness_sync.orchestrator import Reconciler
from readiness_sync.scheduler import SweepScheduler
from readiness_sync.server import build_server

logger = logging.getLogger(__name__)


def serve_command(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: Optional[int] = typer.Option(None, "--port", min=1, max=65535, help="Bind port (default from config)"),
    schedule: bool = typer.Option(True, "--schedule/--no-schedule", help="Run periodic full sweeps"),
    skip_check: bool = typer.Option(False, "--skip-check", help="Skip the board schema consistency check"),
) -> None:
    """Serve webhook and on-demand run endpoints until interrupted."""

    def _run() -> None:
        config = helpers.load_runtime_config(ctx).validate()
        with helpers.open_client(ctx, config) as client:
            if not skip_check:
                require_consistent(client, config)

            reconciler = Reconciler(client, config)
            server = build_server(reconciler, config, host=host, port=port)
            scheduler = SweepScheduler(reconciler, config.schedule) if schedule else None

            bound_host, bound_port = server.server_address[:2]
            helpers.console.print(f"Listening on http://{bound_host}:{bound_port}")
            helpers.console.print("- POST /webhook")
            helpers.console.print("- POST /sweep?dry=true|false")
            helpers.console.print("- POST /targeted/<item-id>")

            if scheduler is not None:
                scheduler.start()
            try:
                server.serve_forever()
            except KeyboardInterrupt:
                logger.info("Interrupted, shutting down")
            finally:
                if scheduler is not None:
                    scheduler.stop()
                server.server_close()

    helpers.run_or_exit(_run)
