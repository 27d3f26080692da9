"""Reconciler behaviour against an in-memory board store."""

from __future__ import annotations

import threading
import time

import pytest

from readiness_sync.errors import ConfigurationError, NetworkError, RemoteRejectedError
from readiness_sync.models import RunMode
from readiness_sync.orchestrator import Reconciler


def _outcome(summary, item_id):
    return next(outcome for outcome in summary.outcomes if outcome.item_id == item_id)


def test_all_dependencies_ready_or_excluded_updates_item(store, config) -> None:
    for item_id, status in (("e1", "QA Passed"), ("e2", "Cancelled"), ("e3", "QA Passed")):
        store.add_dependency(item_id, status)
    store.add_dependent("b1", "Waiting", ["e1", "e2", "e3"])

    summary = Reconciler(store, config).run_full_sweep()

    assert store.mutations == [("b1", 8)]
    outcome = _outcome(summary, "b1")
    assert outcome.updated is True
    assert (summary.processed, summary.updated, summary.skipped) == (1, 1, 0)


def test_partial_readiness_reports_ratio(store, config) -> None:
    store.add_dependency("e1", "QA Passed")
    store.add_dependency("e2", "Ordered")
    store.add_dependent("b1", "Waiting", ["e1", "e2"])

    summary = Reconciler(store, config).run_full_sweep()

    outcome = _outcome(summary, "b1")
    assert outcome.updated is False
    assert outcome.reason == "1/2 ready"
    assert store.mutations == []


def test_item_without_dependencies_is_never_fast_forwarded(store, config) -> None:
    store.add_dependent("b1", "Waiting", [])

    summary = Reconciler(store, config).run_full_sweep()

    assert _outcome(summary, "b1").reason == "no dependencies"
    assert store.mutations == []
    assert store.dependency_fetches == []


def test_terminal_item_is_skipped_without_fetching_dependencies(store, config) -> None:
    store.add_dependency("e1", "QA Passed")
    store.add_dependent("b1", "In Progress", ["e1"])

    summary = Reconciler(store, config).run_full_sweep()

    assert _outcome(summary, "b1").reason == "already In Progress"
    assert store.dependency_fetches == []
    assert store.mutations == []


def test_targeted_run_only_touches_linked_dependents(store, config) -> None:
    store.add_dependency("x", "QA Passed")
    store.add_dependency("y", "QA Passed")
    store.add_dependency("z", "Ordered")
    store.add_dependent("a", "Waiting", ["x", "y"])
    store.add_dependent("b", "Waiting", ["x", "z"])
    store.add_dependent("c", "Waiting", ["y"])

    summary = Reconciler(store, config).run_targeted("x")

    assert summary.mode is RunMode.TARGETED
    assert summary.trigger_item_id == "x"
    assert {outcome.item_id for outcome in summary.outcomes} == {"a", "b"}
    assert _outcome(summary, "a").updated is True
    assert _outcome(summary, "b").reason == "1/2 ready"
    assert store.mutations == [("a", 8)]


def test_targeted_run_ignores_links_to_other_boards(store, config) -> None:
    store.add_dependency("x", "QA Passed")
    store.add_dependent("a", "Waiting", ["x"])
    store.foreign_links["x"] = ["supplier-1"]

    summary = Reconciler(store, config).run_targeted("x")

    assert [outcome.item_id for outcome in summary.outcomes] == ["a"]


def test_targeted_run_for_unknown_item_is_empty(store, config) -> None:
    summary = Reconciler(store, config).run_targeted("missing")

    assert summary.processed == 0
    assert summary.finished_at is not None


def test_targeted_run_without_linked_dependents(store, config) -> None:
    store.add_dependency("x", "QA Passed")

    summary = Reconciler(store, config).run_targeted("x")

    assert summary.processed == 0
    assert store.mutations == []


def test_second_sweep_updates_nothing(store, config) -> None:
    store.add_dependency("e1", "QA Passed")
    store.add_dependency("e2", "Cancelled")
    store.add_dependent("b1", "Waiting", ["e1"])
    store.add_dependent("b2", None, ["e1", "e2"])
    store.add_dependent("b3", "Waiting", [])

    reconciler = Reconciler(store, config)
    first = reconciler.run_full_sweep()
    second = reconciler.run_full_sweep()

    assert first.updated == 2
    assert second.updated == 0
    assert {o.reason for o in second.outcomes if o.item_id in {"b1", "b2"}} == {"already To Do"}


def test_dry_run_never_mutates_and_matches_live_count(store, config, make_store) -> None:
    for item_id, status in (("e1", "QA Passed"), ("e2", "Ordered"), ("e3", "Cancelled")):
        store.add_dependency(item_id, status)
    store.add_dependent("b1", "Waiting", ["e1", "e3"])
    store.add_dependent("b2", "Waiting", ["e1", "e2"])
    store.add_dependent("b3", "Done", ["e1"])
    store.add_dependent("b4", None, ["e3"])

    dry = Reconciler(store, config).run_full_sweep(dry_run=True)

    assert store.mutations == []
    assert dry.dry_run is True
    assert dry.updated == 0
    assert dry.would_update == 2
    assert _outcome(dry, "b1").reason == "would update"

    live = Reconciler(store, config).run_full_sweep()
    assert live.updated == dry.would_update


def test_targeted_updates_are_subset_of_full_sweep(store, config, make_store) -> None:
    def populate(target) -> None:
        target.add_dependency("x", "QA Passed")
        target.add_dependency("y", "Cancelled")
        target.add_dependency("z", "Ordered")
        target.add_dependent("a", "Waiting", ["x", "y"])
        target.add_dependent("b", "Waiting", ["x", "z"])
        target.add_dependent("c", "Waiting", ["y"])
        target.add_dependent("d", "Waiting", ["x"])

    populate(store)
    twin = make_store(config)
    populate(twin)

    targeted = Reconciler(store, config).run_targeted("x")
    full = Reconciler(twin, config).run_full_sweep()

    targeted_updated = {o.item_id for o in targeted.outcomes if o.updated}
    full_updated = {o.item_id for o in full.outcomes if o.updated}
    assert targeted_updated == {"a", "d"}
    assert targeted_updated <= full_updated


def test_missing_dependency_counts_as_pending(store, config) -> None:
    store.add_dependency("e1", "QA Passed")
    store.add_dependent("b1", "Waiting", ["e1", "deleted"])

    summary = Reconciler(store, config).run_full_sweep()

    assert _outcome(summary, "b1").reason == "1/2 ready"
    assert store.mutations == []


def test_excluded_ignored_when_not_counted(store, make_config, make_store) -> None:
    config = make_config(count_excluded=False)
    store = make_store(config)
    store.add_dependency("e1", "QA Passed")
    store.add_dependency("e2", "Cancelled")
    store.add_dependent("b1", "Waiting", ["e1", "e2"])

    summary = Reconciler(store, config).run_full_sweep()

    assert _outcome(summary, "b1").reason == "1/2 ready"


def test_failed_update_does_not_abort_the_run(store, config) -> None:
    store.add_dependency("e1", "QA Passed")
    store.add_dependent("b1", "Waiting", ["e1"])
    store.add_dependent("b2", "Waiting", ["e1"])
    store.failing_updates["b1"] = RemoteRejectedError("invalid value")

    summary = Reconciler(store, config).run_full_sweep()

    assert _outcome(summary, "b1").reason == "update failed: invalid value"
    assert _outcome(summary, "b2").updated is True
    assert (summary.processed, summary.updated, summary.skipped) == (2, 1, 1)


def test_dependency_lookup_failure_is_per_item(store, config, monkeypatch) -> None:
    store.add_dependency("e1", "QA Passed")
    store.add_dependent("b1", "Waiting", ["e1"])
    store.add_dependent("b2", "Waiting", ["e1"])

    calls = {"count": 0}
    real_fetch = store.fetch_dependency_items

    def flaky(ids):
        calls["count"] += 1
        if calls["count"] == 1:
            raise NetworkError("connection reset")
        return real_fetch(ids)

    monkeypatch.setattr(store, "fetch_dependency_items", flaky)

    summary = Reconciler(store, config).run_full_sweep()

    assert _outcome(summary, "b1").reason.startswith("dependency lookup failed")
    assert _outcome(summary, "b2").updated is True


def test_configuration_error_aborts_the_run(store, config, monkeypatch) -> None:
    store.add_dependency("e1", "QA Passed")
    store.add_dependent("b1", "Waiting", ["e1"])

    def broken(ids):
        raise ConfigurationError("token revoked")

    monkeypatch.setattr(store, "fetch_dependency_items", broken)

    with pytest.raises(ConfigurationError):
        Reconciler(store, config).run_full_sweep()


def test_listing_failure_is_run_level(store, config, monkeypatch) -> None:
    def unreachable(item_ids=None):
        raise NetworkError("cannot reach store")

    monkeypatch.setattr(store, "fetch_dependent_items", unreachable)

    with pytest.raises(NetworkError):
        Reconciler(store, config).run_full_sweep()


def test_incomplete_config_is_rejected(store, make_config) -> None:
    config = make_config()
    config.dependent.relation_column = None

    with pytest.raises(ConfigurationError, match="dependent_board.relation_column"):
        Reconciler(store, config)


def test_cancel_stops_new_items(store, config) -> None:
    store.add_dependency("e1", "QA Passed")
    for item_id in ("b1", "b2", "b3"):
        store.add_dependent(item_id, "Waiting", ["e1"])

    cancel = threading.Event()
    real_update = store.update_dependent_status

    def update_then_cancel(item_id, index):
        real_update(item_id, index)
        cancel.set()

    store.update_dependent_status = update_then_cancel

    summary = Reconciler(store, config).run_full_sweep(cancel=cancel)

    assert summary.processed == 1
    assert summary.deferred == 2
    assert summary.updated == 1


def test_deadline_defers_remaining_items(store, make_config, make_store) -> None:
    config = make_config(per_item_timeout_seconds=10)
    store = make_store(config)
    store.add_dependency("e1", "QA Passed")
    for item_id in ("b1", "b2", "b3"):
        store.add_dependent(item_id, "Waiting", ["e1"])

    ticks = iter([0.0, 1.0, 31.0, 32.0])

    summary = Reconciler(store, config, clock=lambda: next(ticks)).run_full_sweep()

    assert summary.processed == 1
    assert summary.deferred == 2


def test_worker_pool_matches_sequential_results(make_config, make_store) -> None:
    config = make_config(max_workers=4, max_concurrent_mutations=2)
    store = make_store(config)
    for index in range(6):
        store.add_dependency(f"e{index}", "QA Passed" if index % 2 == 0 else "Ordered")
    for index in range(12):
        store.add_dependent(f"b{index}", "Waiting", [f"e{index % 6}"])

    summary = Reconciler(store, config).run_full_sweep()

    assert [outcome.item_id for outcome in summary.outcomes] == [f"b{index}" for index in range(12)]
    assert summary.updated == 6
    assert sorted(item_id for item_id, _ in store.mutations) == sorted(f"b{i}" for i in range(12) if (i % 6) % 2 == 0)


def test_summary_dict_contains_counts(store, config) -> None:
    store.add_dependency("e1", "QA Passed")
    store.add_dependent("b1", "Waiting", ["e1"])

    payload = Reconciler(store, config).run_full_sweep().to_dict()

    assert payload["mode"] == "full_sweep"
    assert payload["processed"] == 1
    assert payload["updated"] == 1
    assert payload["skipped"] == 0
    assert payload["outcomes"][0]["item_id"] == "b1"


def test_concurrent_mutations_are_capped(make_config, make_store) -> None:
    config = make_config(max_workers=4, max_concurrent_mutations=2)
    store = make_store(config)
    store.add_dependency("e1", "QA Passed")
    for index in range(8):
        store.add_dependent(f"b{index}", "Waiting", ["e1"])

    lock = threading.Lock()
    in_flight = {"now": 0, "peak": 0}
    real_update = store.update_dependent_status

    def slow_update(item_id, index):
        with lock:
            in_flight["now"] += 1
            in_flight["peak"] = max(in_flight["peak"], in_flight["now"])
        time.sleep(0.05)
        with lock:
            in_flight["now"] -= 1
        real_update(item_id, index)

    store.update_dependent_status = slow_update

    summary = Reconciler(store, config).run_full_sweep()

    assert summary.updated == 8
    assert 1 <= in_flight["peak"] <= 2
