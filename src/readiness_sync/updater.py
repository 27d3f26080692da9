"""Applies the readiness decision to one dependent item."""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from readiness_sync.config import DependentBoardConfig
from readiness_sync.errors import NetworkError, RemoteRejectedError
from readiness_sync.models import DependentItem, Evaluation, ReconciliationOutcome

logger = logging.getLogger(__name__)


class StatusWriter(Protocol):
    def update_dependent_status(self, item_id: str, index: int) -> None: ...


class StatusUpdater:
    """Idempotent status transition with dry-run support.

    Eligibility is judged only from the item state just fetched from the
    store, never from anything remembered across runs.
    """

    def __init__(
        self,
        writer: StatusWriter,
        policy: DependentBoardConfig,
        *,
        mutation_slots: threading.BoundedSemaphore | None = None,
    ) -> None:
        self.writer = writer
        self.policy = policy
        self._mutation_slots = mutation_slots or threading.BoundedSemaphore(1)

    def precheck(self, item: DependentItem) -> ReconciliationOutcome | None:
        """Return a skip outcome for items already in a terminal state."""
        label = (item.status_label or "").strip()
        if label and label in self.policy.terminal_labels:
            return ReconciliationOutcome(
                item_id=item.id,
                item_name=item.name,
                updated=False,
                reason=f"already {label}",
            )
        return None

    def apply(self, item: DependentItem, evaluation: Evaluation, *, dry_run: bool = False) -> ReconciliationOutcome:
        skipped = self.precheck(item)
        if skipped is not None:
            return skipped

        if evaluation.total_count == 0:
            return ReconciliationOutcome(item_id=item.id, item_name=item.name, updated=False, reason="no dependencies")

        if not evaluation.ready:
            return ReconciliationOutcome(item_id=item.id, item_name=item.name, updated=False, reason=evaluation.ratio)

        if dry_run:
            return ReconciliationOutcome(
                item_id=item.id,
                item_name=item.name,
                updated=False,
                would_update=True,
                reason="would update",
            )

        try:
            with self._mutation_slots:
                self.writer.update_dependent_status(item.id, self.policy.target_index)
        except (RemoteRejectedError, NetworkError) as exc:
            logger.warning("Status update for item %s failed: %s", item.id, exc)
            return ReconciliationOutcome(
                item_id=item.id,
                item_name=item.name,
                updated=False,
                reason=f"update failed: {exc}",
            )

        return ReconciliationOutcome(item_id=item.id, item_name=item.name, updated=True, reason="updated")
