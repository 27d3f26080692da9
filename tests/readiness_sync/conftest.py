from __future__ import annotations

from collections.abc import Iterable

import pytest

from readiness_sync.config import ReconcilerConfig
from readiness_sync.errors import NotFoundError, RemoteRejectedError
from readiness_sync.models import DependencyItem, DependentItem, LinkedItemsField

DEPENDENCY_BOARD = "100"
DEPENDENT_BOARD = "200"
OTHER_BOARD = "300"


class FakeBoardStore:
    """In-memory stand-in for the remote boards.

    Status changes are applied by index, the same way the real API does, so
    repeated runs observe their own writes.
    """

    def __init__(self, config: ReconcilerConfig) -> None:
        self.config = config
        self.dependent_labels = {8: "To Do", 1: "In Progress", 2: "Done", 5: "Waiting"}
        self.dependencies: dict[str, dict] = {}
        self.dependents: dict[str, dict] = {}
        self.mutations: list[tuple[str, int]] = []
        self.dependency_fetches: list[list[str]] = []
        self.failing_updates: dict[str, Exception] = {}
        self.foreign_links: dict[str, list[str]] = {}

    def add_dependency(self, item_id: str, status: str | None, name: str | None = None) -> None:
        self.dependencies[item_id] = {"name": name or f"EPO {item_id}", "status": status}

    def add_dependent(
        self,
        item_id: str,
        status: str | None,
        dependencies: Iterable[str] = (),
        name: str | None = None,
    ) -> None:
        self.dependents[item_id] = {
            "name": name or f"Batch {item_id}",
            "status": status,
            "dependencies": list(dependencies),
        }

    def _dependent(self, item_id: str) -> DependentItem:
        record = self.dependents[item_id]
        relations: tuple[LinkedItemsField, ...] = ()
        if record["dependencies"]:
            relations = (
                LinkedItemsField(
                    column_id=str(self.config.dependent.relation_column),
                    target_board_id=DEPENDENCY_BOARD,
                    item_ids=tuple(record["dependencies"]),
                ),
            )
        return DependentItem(
            id=item_id,
            name=record["name"],
            board_id=DEPENDENT_BOARD,
            status_label=record["status"],
            relations=relations,
        )

    def fetch_dependent_items(self, item_ids: Iterable[str] | None = None) -> list[DependentItem]:
        ids = list(self.dependents) if item_ids is None else [i for i in item_ids if i in self.dependents]
        return [self._dependent(item_id) for item_id in ids]

    def fetch_dependency_items(self, item_ids: Iterable[str]) -> list[DependencyItem]:
        ids = list(item_ids)
        self.dependency_fetches.append(ids)
        found = [
            DependencyItem(id=item_id, name=self.dependencies[item_id]["name"], status_label=self.dependencies[item_id]["status"])
            for item_id in ids
            if item_id in self.dependencies
        ]
        missing = [item_id for item_id in ids if item_id not in self.dependencies]
        if missing:
            raise NotFoundError(missing, found=found)
        return found

    def fetch_dependency_links(self, item_id: str) -> DependencyItem:
        if item_id not in self.dependencies:
            raise NotFoundError([item_id])
        linked = tuple(
            dependent_id
            for dependent_id, record in self.dependents.items()
            if item_id in record["dependencies"]
        )
        links = [
            LinkedItemsField(
                column_id="epo_back_link",
                target_board_id=DEPENDENT_BOARD,
                item_ids=linked,
            )
        ]
        if self.foreign_links.get(item_id):
            links.append(
                LinkedItemsField(
                    column_id="supplier_link",
                    target_board_id=OTHER_BOARD,
                    item_ids=tuple(self.foreign_links[item_id]),
                )
            )
        record = self.dependencies[item_id]
        return DependencyItem(id=item_id, name=record["name"], status_label=record["status"], links=tuple(links))

    def update_dependent_status(self, item_id: str, index: int) -> None:
        if item_id in self.failing_updates:
            raise self.failing_updates[item_id]
        if index not in self.dependent_labels:
            raise RemoteRejectedError(f"index {index} not in label set")
        self.mutations.append((item_id, index))
        self.dependents[item_id]["status"] = self.dependent_labels[index]


def build_config(*, count_excluded: bool = True, **run: object) -> ReconcilerConfig:
    return ReconcilerConfig.from_dict(
        {
            "dependency_board": {
                "board_id": DEPENDENCY_BOARD,
                "status_column": "deal_stage",
                "ready_label": "QA Passed",
                "ready_index": 11,
                "excluded_label": "Cancelled",
                "count_excluded": count_excluded,
            },
            "dependent_board": {
                "board_id": DEPENDENT_BOARD,
                "status_column": "bulk_status",
                "relation_column": "epo_link",
                "target_label": "To Do",
                "target_index": 8,
                "terminal_labels": ["To Do", "In Progress", "Done"],
            },
            "run": dict(run),
        }
    )


@pytest.fixture()
def config() -> ReconcilerConfig:
    return build_config()


@pytest.fixture()
def store(config: ReconcilerConfig) -> FakeBoardStore:
    return FakeBoardStore(config)


@pytest.fixture()
def make_config():
    return build_config


@pytest.fixture()
def make_store():
    return FakeBoardStore
