"""Aggregate readiness rule for a dependent item's dependencies."""

from __future__ import annotations

from collections.abc import Iterable

from readiness_sync.config import DependencyBoardConfig
from readiness_sync.models import DependencyStatus, Evaluation


def classify(label: str | None, policy: DependencyBoardConfig) -> DependencyStatus:
    """Bucket a raw status label. Unknown and blank labels are pending."""
    if label is None:
        return DependencyStatus.PENDING
    text = label.strip()
    if text == policy.ready_label:
        return DependencyStatus.READY
    if text == policy.excluded_label:
        return DependencyStatus.EXCLUDED
    return DependencyStatus.PENDING


def evaluate(statuses: Iterable[DependencyStatus], *, count_excluded: bool = True) -> Evaluation:
    """Ready iff there is at least one dependency and every one qualifies.

    An empty dependency set is never ready, so items with no recorded
    dependencies are not fast-forwarded.
    """
    qualifying = {DependencyStatus.READY}
    if count_excluded:
        qualifying.add(DependencyStatus.EXCLUDED)

    total = 0
    ready = 0
    for status in statuses:
        total += 1
        if status in qualifying:
            ready += 1

    return Evaluation(ready=total > 0 and ready == total, ready_count=ready, total_count=total)
