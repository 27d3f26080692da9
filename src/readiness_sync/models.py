"""Data types shared by the reconciliation pipeline.

Column values arrive from the store as a polymorphic payload. They are
decoded once at the client boundary into the ``ColumnValue`` tagged union
(``StatusField``, ``LinkedItemsField``, ``OpaqueField``) so nothing past the
client ever handles raw GraphQL dictionaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Union


class DependencyStatus(StrEnum):
    """Readiness buckets for a dependency item's status label."""

    READY = "ready"
    EXCLUDED = "excluded"
    PENDING = "pending"


class RunMode(StrEnum):
    FULL_SWEEP = "full_sweep"
    TARGETED = "targeted"


@dataclass(frozen=True)
class StatusField:
    column_id: str
    label: str | None
    index: int | None = None


@dataclass(frozen=True)
class LinkedItemsField:
    """Linked item ids of one relation column, grouped by target board."""

    column_id: str
    target_board_id: str | None
    item_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class OpaqueField:
    column_id: str
    text: str | None = None


ColumnValue = Union[StatusField, LinkedItemsField, OpaqueField]


@dataclass(frozen=True)
class DependencyItem:
    """An upstream item. Only ever read by this engine."""

    id: str
    name: str = ""
    status_label: str | None = None
    links: tuple[LinkedItemsField, ...] = ()


@dataclass(frozen=True)
class DependentItem:
    """A downstream item whose status column this engine may transition."""

    id: str
    name: str = ""
    board_id: str | None = None
    status_label: str | None = None
    status_index: int | None = None
    relations: tuple[LinkedItemsField, ...] = ()


@dataclass(frozen=True)
class Evaluation:
    ready: bool
    ready_count: int
    total_count: int

    @property
    def ratio(self) -> str:
        return f"{self.ready_count}/{self.total_count} ready"


@dataclass(frozen=True)
class ReconciliationOutcome:
    """Per-item result of one run. Never persisted."""

    item_id: str
    updated: bool
    reason: str
    item_name: str = ""
    would_update: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "item_name": self.item_name,
            "updated": self.updated,
            "would_update": self.would_update,
            "reason": self.reason,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RunSummary:
    """Aggregate of a reconciliation run.

    ``skipped`` is always ``processed - updated`` so partial failure is visible
    without reading individual outcomes. ``deferred`` counts items that were
    never started because the run was cancelled or hit its deadline.
    """

    mode: RunMode
    dry_run: bool = False
    outcomes: list[ReconciliationOutcome] = field(default_factory=list)
    deferred: int = 0
    trigger_item_id: str | None = None
    started_at: datetime = field(default_factory=_utcnow)
    finished_at: datetime | None = None

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def updated(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.updated)

    @property
    def would_update(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.would_update)

    @property
    def skipped(self) -> int:
        return self.processed - self.updated

    def record(self, outcome: ReconciliationOutcome) -> None:
        self.outcomes.append(outcome)

    def finish(self) -> RunSummary:
        self.finished_at = _utcnow()
        return self

    def to_dict(self, *, include_outcomes: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "mode": self.mode.value,
            "dry_run": self.dry_run,
            "processed": self.processed,
            "updated": self.updated,
            "would_update": self.would_update,
            "skipped": self.skipped,
            "deferred": self.deferred,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
        if self.trigger_item_id is not None:
            payload["trigger_item_id"] = self.trigger_item_id
        if include_outcomes:
            payload["outcomes"] = [outcome.to_dict() for outcome in self.outcomes]
        return payload
