"""Startup consistency checks against the remote board schema.

Status changes are written by positional label index. If someone reorders the
labels of a status column, index 8 silently starts meaning something else, so
the expected label/index pairs are verified before any run is allowed to start.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from readiness_sync.config import ReconcilerConfig
from readiness_sync.errors import ConfigurationError

logger = logging.getLogger(__name__)


class SchemaSource(Protocol):
    def whoami(self) -> dict[str, Any]: ...

    def fetch_column(self, board_id: str, column_id: str) -> dict[str, Any]: ...

    def fetch_status_labels(self, board_id: str, column_id: str) -> dict[int, str]: ...


@dataclass(frozen=True)
class CheckResult:
    name: str
    ok: bool
    detail: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "ok": self.ok, "detail": self.detail}


def _label_at(labels: dict[int, str], index: int, expected: str, name: str) -> CheckResult:
    actual = labels.get(index)
    if actual == expected:
        return CheckResult(name, True, f"index {index} is '{expected}'")
    return CheckResult(name, False, f"expected '{expected}' at index {index}, found '{actual}'")


def _label_exists(labels: dict[int, str], expected: str, name: str) -> CheckResult:
    if expected in labels.values():
        return CheckResult(name, True, f"label '{expected}' present")
    return CheckResult(name, False, f"label '{expected}' missing")


def run_checks(source: SchemaSource, config: ReconcilerConfig) -> list[CheckResult]:
    """Run every check. Only a failure to authenticate stops early."""
    config.validate()
    results: list[CheckResult] = []

    me = source.whoami()
    results.append(CheckResult("api_token", True, f"authenticated as {me.get('name') or me.get('id')}"))

    dependency = config.dependency
    dependent = config.dependent

    try:
        labels = source.fetch_status_labels(str(dependency.board_id), str(dependency.status_column))
    except ConfigurationError as exc:
        results.append(CheckResult("dependency_status_column", False, str(exc)))
    else:
        results.append(CheckResult("dependency_status_column", True, f"{len(labels)} labels"))
        if dependency.ready_index is not None:
            results.append(_label_at(labels, dependency.ready_index, dependency.ready_label, "dependency_ready_label"))
        else:
            results.append(_label_exists(labels, dependency.ready_label, "dependency_ready_label"))
        if dependency.count_excluded:
            results.append(_label_exists(labels, dependency.excluded_label, "dependency_excluded_label"))

    try:
        labels = source.fetch_status_labels(str(dependent.board_id), str(dependent.status_column))
    except ConfigurationError as exc:
        results.append(CheckResult("dependent_status_column", False, str(exc)))
    else:
        results.append(CheckResult("dependent_status_column", True, f"{len(labels)} labels"))
        results.append(_label_at(labels, dependent.target_index, dependent.target_label, "dependent_target_label"))

    try:
        column = source.fetch_column(str(dependent.board_id), str(dependent.relation_column))
    except ConfigurationError as exc:
        results.append(CheckResult("dependent_relation_column", False, str(exc)))
    else:
        if column.get("type") == "board_relation":
            results.append(CheckResult("dependent_relation_column", True, f"'{column.get('title')}'"))
        else:
            results.append(
                CheckResult(
                    "dependent_relation_column",
                    False,
                    f"column is a {column.get('type')} column, not board_relation",
                )
            )

    return results


def require_consistent(source: SchemaSource, config: ReconcilerConfig) -> list[CheckResult]:
    """Run the checks and raise ConfigurationError if any failed."""
    results = run_checks(source, config)
    failures = [result for result in results if not result.ok]
    if failures:
        details = "; ".join(f"{result.name}: {result.detail}" for result in failures)
        raise ConfigurationError(f"Remote board schema does not match configuration: {details}")
    logger.info("Remote board schema matches configuration (%d checks)", len(results))
    return results
