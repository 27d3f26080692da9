"""Reconciliation control loop.

Two entry points share one per-item pipeline::

    precheck terminal -> resolve dependency ids -> fetch statuses -> evaluate -> apply

``run_full_sweep`` walks the entire dependent board and catches anything a
dropped webhook missed. ``run_targeted`` starts from one dependency item that
just changed and only reconciles the dependents linked back to it.

Nothing is cached between or within runs. Every decision is taken from state
fetched from the store during the run, which is what makes overlapping runs
safe: a racing run sees the item already in its target state and skips it.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

from readiness_sync.config import ReconcilerConfig
from readiness_sync.errors import ConfigurationError, NotFoundError, ReadinessSyncError
from readiness_sync.models import (
    DependencyItem,
    DependencyStatus,
    DependentItem,
    ReconciliationOutcome,
    RunMode,
    RunSummary,
)
from readiness_sync.readiness import classify, evaluate
from readiness_sync.relations import dependency_ids, dependent_ids
from readiness_sync.updater import StatusUpdater

logger = logging.getLogger(__name__)


class ItemStore(Protocol):
    def fetch_dependent_items(self, item_ids: Iterable[str] | None = None) -> list[DependentItem]: ...

    def fetch_dependency_items(self, item_ids: Iterable[str]) -> list[DependencyItem]: ...

    def fetch_dependency_links(self, item_id: str) -> DependencyItem: ...

    def update_dependent_status(self, item_id: str, index: int) -> None: ...


class Reconciler:
    """Propagates dependency readiness onto the dependent board."""

    def __init__(
        self,
        store: ItemStore,
        config: ReconcilerConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.config = config.validate()
        self._clock = clock
        self.updater = StatusUpdater(
            store,
            config.dependent,
            mutation_slots=threading.BoundedSemaphore(config.run.max_concurrent_mutations),
        )

    # Entry points -----------------------------------------------------------

    def run_full_sweep(self, *, dry_run: bool = False, cancel: threading.Event | None = None) -> RunSummary:
        """Reconcile every item on the dependent board."""
        summary = RunSummary(mode=RunMode.FULL_SWEEP, dry_run=dry_run)
        items = self.store.fetch_dependent_items()
        logger.info("Full sweep: %d dependent items%s", len(items), " (dry run)" if dry_run else "")
        self._process(items, summary, dry_run=dry_run, cancel=cancel)
        return self._finish(summary)

    def run_targeted(
        self,
        dependency_item_id: str,
        *,
        dry_run: bool = False,
        cancel: threading.Event | None = None,
    ) -> RunSummary:
        """Reconcile only the dependents linked to one changed dependency item."""
        item_id = str(dependency_item_id).strip()
        summary = RunSummary(mode=RunMode.TARGETED, dry_run=dry_run, trigger_item_id=item_id)

        try:
            dependency = self.store.fetch_dependency_links(item_id)
        except NotFoundError:
            logger.warning("Dependency item %s not found; nothing to reconcile", item_id)
            return self._finish(summary)

        linked = dependent_ids(dependency.links, str(self.config.dependent.board_id))
        if not linked:
            logger.info("Dependency item %s (%s) has no dependent items linked", item_id, dependency.name)
            return self._finish(summary)

        items = self.store.fetch_dependent_items(sorted(linked))
        logger.info(
            "Targeted run for %s (%s): %d linked dependent items%s",
            item_id,
            dependency.name,
            len(items),
            " (dry run)" if dry_run else "",
        )
        self._process(items, summary, dry_run=dry_run, cancel=cancel)
        return self._finish(summary)

    # Pipeline ---------------------------------------------------------------

    def reconcile_item(self, item: DependentItem, *, dry_run: bool = False) -> ReconciliationOutcome:
        """Run the pipeline for one dependent item. Only configuration errors escape."""
        skipped = self.updater.precheck(item)
        if skipped is not None:
            return skipped

        ids = dependency_ids(
            item,
            str(self.config.dependent.relation_column),
            self.config.dependency.board_id,
        )
        try:
            statuses = self._dependency_statuses(ids)
        except ConfigurationError:
            raise
        except ReadinessSyncError as exc:
            return ReconciliationOutcome(
                item_id=item.id,
                item_name=item.name,
                updated=False,
                reason=f"dependency lookup failed: {exc}",
            )

        evaluation = evaluate(statuses, count_excluded=self.config.dependency.count_excluded)
        return self.updater.apply(item, evaluation, dry_run=dry_run)

    def _dependency_statuses(self, ids: frozenset[str]) -> list[DependencyStatus]:
        if not ids:
            return []

        policy = self.config.dependency
        try:
            dependencies = self.store.fetch_dependency_items(sorted(ids))
            missing: Sequence[str] = ()
        except NotFoundError as exc:
            logger.warning("Dependency items missing, counted as pending: %s", ", ".join(exc.missing_ids))
            dependencies = list(exc.found)
            missing = exc.missing_ids

        statuses = [classify(dependency.status_label, policy) for dependency in dependencies]
        statuses.extend(DependencyStatus.PENDING for _ in missing)
        return statuses

    def _process(
        self,
        items: Sequence[DependentItem],
        summary: RunSummary,
        *,
        dry_run: bool,
        cancel: threading.Event | None,
    ) -> None:
        if not items:
            return

        deadline = self._clock() + self.config.run.per_item_timeout_seconds * len(items)

        def should_stop() -> bool:
            return (cancel is not None and cancel.is_set()) or self._clock() >= deadline

        def guarded(item: DependentItem) -> ReconciliationOutcome | None:
            if should_stop():
                return None
            return self.reconcile_item(item, dry_run=dry_run)

        workers = self.config.run.max_workers
        if workers <= 1:
            results: list[ReconciliationOutcome | None] = []
            for index, item in enumerate(items):
                outcome = guarded(item)
                if outcome is None:
                    results.extend(None for _ in items[index:])
                    break
                results.append(outcome)
        else:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="reconcile") as pool:
                results = list(pool.map(guarded, items))

        for outcome in results:
            if outcome is None:
                summary.deferred += 1
                continue
            self._log_outcome(outcome)
            summary.record(outcome)

        if summary.deferred:
            logger.warning("Run stopped early; %d items were not started", summary.deferred)

    @staticmethod
    def _log_outcome(outcome: ReconciliationOutcome) -> None:
        label = outcome.item_name or outcome.item_id
        if outcome.updated:
            logger.info("Updated %s", label)
        elif outcome.would_update:
            logger.info("Would update %s", label)
        else:
            logger.info("Skipped %s: %s", label, outcome.reason)

    @staticmethod
    def _finish(summary: RunSummary) -> RunSummary:
        summary.finish()
        logger.info(
            "%s complete: processed=%d updated=%d would_update=%d skipped=%d deferred=%d",
            summary.mode.value,
            summary.processed,
            summary.updated,
            summary.would_update,
            summary.skipped,
            summary.deferred,
        )
        return summary
