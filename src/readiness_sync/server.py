"""HTTP trigger surface for the reconciler."""

from __future__ import annotations

import json
import logging
import threading
import urllib.parse
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Optional

from readiness_sync.config import ReconcilerConfig
from readiness_sync.errors import ReadinessSyncError
from readiness_sync.triggers import Runner, handle_notification, handle_tick

logger = logging.getLogger(__name__)

_TRUTHY_VALUES = {"1", "true", "yes", "on"}


class TriggerHandler(BaseHTTPRequestHandler):
    """Routes webhook deliveries and on-demand runs to the reconciler.

    Completed runs always answer 200 with the run summary, even when every
    item was skipped. Only run-level failures answer 500.
    """

    runner: Optional[Runner] = None
    config: Optional[ReconcilerConfig] = None

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A003 - signature from BaseHTTPRequestHandler
        logger.debug("%s - %s", self.address_string(), format % args)

    # Core helpers ---------------------------------------------------------

    def _send_json(self, status_code: int, payload: Dict[str, Any]) -> None:
        body = json.dumps(payload, default=str).encode()
        self.send_response(status_code)
        self.send_header("Content-type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-cache")
        self.end_headers()
        self.wfile.write(body)

    def _read_json(self) -> Any:
        content_length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(content_length) if content_length else b""
        if not body:
            return {}
        return json.loads(body.decode("utf-8"))

    def _run(self, action: Any) -> None:
        try:
            payload = action()
        except ReadinessSyncError as exc:
            logger.error("Run failed: %s", exc)
            self._send_json(500, {"status": "error", "error": str(exc)})
            return
        self._send_json(200, payload)

    # Routes ---------------------------------------------------------------

    def _handle_webhook(self) -> None:
        try:
            payload = self._read_json()
        except (UnicodeDecodeError, ValueError):
            self._send_json(400, {"status": "error", "error": "invalid_payload"})
            return
        self._run(lambda: handle_notification(payload, self.runner, self.config))

    def _handle_sweep(self, query: Dict[str, list[str]]) -> None:
        dry_values = query.get("dry") or query.get("dry_run") or ["false"]
        dry_run = dry_values[0].strip().lower() in _TRUTHY_VALUES
        self._run(lambda: handle_tick(self.runner, dry_run=dry_run))

    def _handle_targeted(self, item_id: str) -> None:
        if not item_id:
            self._send_json(400, {"status": "error", "error": "missing_item_id"})
            return

        def _targeted() -> Dict[str, Any]:
            summary = self.runner.run_targeted(item_id)
            return {"status": "ok", "action": "targeted", "summary": summary.to_dict()}

        self._run(_targeted)

    def do_POST(self) -> None:  # noqa: N802 (standard library name)
        parsed_path = urllib.parse.urlparse(self.path)
        path = parsed_path.path.rstrip("/")

        if path == "/webhook":
            self._handle_webhook()
        elif path == "/sweep":
            self._handle_sweep(urllib.parse.parse_qs(parsed_path.query))
        elif path.startswith("/targeted/"):
            self._handle_targeted(urllib.parse.unquote(path[len("/targeted/"):]).strip())
        else:
            self._send_json(404, {"status": "error", "error": "not_found"})

    def do_GET(self) -> None:  # noqa: N802
        self._send_json(404, {"status": "error", "error": "not_found"})


def build_server(runner: Runner, config: ReconcilerConfig, host: str | None = None, port: int | None = None) -> ThreadingHTTPServer:
    handler_class = type(
        "BoundTriggerHandler",
        (TriggerHandler,),
        {"runner": runner, "config": config},
    )
    server = ThreadingHTTPServer(
        (host or config.server.host, config.server.port if port is None else port),
        handler_class,
    )
    server.daemon_threads = True
    return server


def start_background(server: ThreadingHTTPServer) -> threading.Thread:
    thread = threading.Thread(target=server.serve_forever, name="trigger-server", daemon=True)
    thread.start()
    return thread
