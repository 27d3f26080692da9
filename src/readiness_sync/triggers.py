"""Maps inbound events onto reconciler runs.

Two payload shapes are accepted for status-change notifications: the flat
``{changedItemId, changedColumnId, newLabel}`` contract and the store's own
webhook envelope (``{"event": {"pulseId", "columnId", "value": {"label": {"text"}}}}``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from readiness_sync.config import ReconcilerConfig
from readiness_sync.models import RunSummary

logger = logging.getLogger(__name__)


class Runner(Protocol):
    def run_full_sweep(self, *, dry_run: bool = False) -> RunSummary: ...

    def run_targeted(self, dependency_item_id: str, *, dry_run: bool = False) -> RunSummary: ...


@dataclass(frozen=True)
class Notification:
    changed_item_id: str | None
    changed_column_id: str | None
    new_label: str | None
    board_id: str | None = None
    event_type: str | None = None


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _label_from_value(value: Any) -> str | None:
    if not isinstance(value, dict):
        return _text(value)
    label = value.get("label")
    if isinstance(label, dict):
        return _text(label.get("text"))
    return _text(label)


def parse_notification(payload: Any) -> Notification | None:
    """Parse a notification payload, or return None when it is not one."""
    if not isinstance(payload, dict):
        return None

    if any(key in payload for key in ("changedItemId", "changedColumnId", "newLabel")):
        return Notification(
            changed_item_id=_text(payload.get("changedItemId")),
            changed_column_id=_text(payload.get("changedColumnId")),
            new_label=_text(payload.get("newLabel")),
            board_id=_text(payload.get("boardId")),
            event_type=_text(payload.get("type")),
        )

    event = payload.get("event")
    if not isinstance(event, dict):
        return None
    return Notification(
        changed_item_id=_text(event.get("pulseId") or event.get("itemId")),
        changed_column_id=_text(event.get("columnId")),
        new_label=_label_from_value(event.get("value")),
        board_id=_text(event.get("boardId")),
        event_type=_text(event.get("type") or payload.get("type")),
    )


def skip_reason(notification: Notification, config: ReconcilerConfig) -> str | None:
    """Why a notification needs no run, or None when it should trigger one."""
    policy = config.dependency
    if notification.board_id and policy.board_id and notification.board_id != policy.board_id:
        return f"board {notification.board_id} is not the dependency board"
    if notification.changed_column_id != policy.status_column:
        return f"column {notification.changed_column_id or '<none>'} is not the dependency status column"
    if notification.new_label not in policy.qualifying_labels:
        return f"status '{notification.new_label or ''}' does not qualify"
    if not notification.changed_item_id:
        return "payload has no item id"
    return None


def handle_notification(payload: Any, runner: Runner, config: ReconcilerConfig) -> dict[str, Any]:
    """Acknowledge a webhook delivery, running a targeted reconcile when relevant.

    The challenge handshake used when a webhook is registered is echoed back
    unchanged.
    """
    if isinstance(payload, dict) and payload.get("challenge") is not None:
        return {"challenge": payload["challenge"]}

    notification = parse_notification(payload)
    if notification is None:
        return {"status": "ok", "action": "none", "reason": "not a status change notification"}

    reason = skip_reason(notification, config)
    if reason is not None:
        logger.debug("Ignoring notification for item %s: %s", notification.changed_item_id, reason)
        return {"status": "ok", "action": "none", "reason": reason}

    item_id = str(notification.changed_item_id)
    logger.info("Dependency item %s changed to '%s'; running targeted reconcile", item_id, notification.new_label)
    summary = runner.run_targeted(item_id)
    return {"status": "ok", "action": "targeted", "summary": summary.to_dict()}


def handle_tick(runner: Runner, *, dry_run: bool = False) -> dict[str, Any]:
    """Scheduled or on-demand full sweep."""
    summary = runner.run_full_sweep(dry_run=dry_run)
    return {"status": "ok", "action": "full_sweep", "summary": summary.to_dict()}
