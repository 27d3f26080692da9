"""Reconciler configuration stored in readiness-sync.yaml."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from readiness_sync.errors import ConfigurationError

CONFIG_ENV_VAR = "READINESS_SYNC_CONFIG"
API_URL_ENV_VAR = "READINESS_SYNC_API_URL"
DRY_RUN_ENV_VAR = "READINESS_SYNC_DRY_RUN"
DEFAULT_CONFIG_NAME = "readiness-sync.yaml"
DEFAULT_API_URL = "https://api.monday.com/v2"

_TRUTHY_VALUES = {"1", "true", "yes", "on"}
_MIN_TIMEOUT_SECONDS = 10.0
_MAX_TIMEOUT_SECONDS = 30.0


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _int_or_default(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float_or_default(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _bool_or_default(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip():
        return value.strip().lower() in _TRUTHY_VALUES
    return default


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key)
    return dict(value) if isinstance(value, dict) else {}


@dataclass(slots=True)
class ApiConfig:
    url: str = DEFAULT_API_URL
    version: str = "2024-01"
    timeout_seconds: float = 20.0
    max_attempts: int = 3
    page_size: int = 100

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ApiConfig":
        timeout = _float_or_default(data.get("timeout_seconds"), 20.0)
        return cls(
            url=_str_or_none(data.get("url")) or DEFAULT_API_URL,
            version=_str_or_none(data.get("version")) or "2024-01",
            timeout_seconds=min(max(timeout, _MIN_TIMEOUT_SECONDS), _MAX_TIMEOUT_SECONDS),
            max_attempts=max(1, _int_or_default(data.get("max_attempts"), 3)),
            page_size=min(max(1, _int_or_default(data.get("page_size"), 100)), 500),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "version": self.version,
            "timeout_seconds": self.timeout_seconds,
            "max_attempts": self.max_attempts,
            "page_size": self.page_size,
        }


@dataclass(slots=True)
class DependencyBoardConfig:
    """Upstream board whose status column gates dependents."""

    board_id: str | None = None
    status_column: str | None = None
    ready_label: str = "QA Passed"
    ready_index: int | None = 11
    excluded_label: str = "Cancelled"
    count_excluded: bool = True

    @property
    def qualifying_labels(self) -> tuple[str, ...]:
        if self.count_excluded:
            return (self.ready_label, self.excluded_label)
        return (self.ready_label,)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DependencyBoardConfig":
        ready_index = data.get("ready_index", 11)
        return cls(
            board_id=_str_or_none(data.get("board_id")),
            status_column=_str_or_none(data.get("status_column")),
            ready_label=_str_or_none(data.get("ready_label")) or "QA Passed",
            ready_index=None if ready_index is None else _int_or_default(ready_index, 11),
            excluded_label=_str_or_none(data.get("excluded_label")) or "Cancelled",
            count_excluded=_bool_or_default(data.get("count_excluded"), True),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "board_id": self.board_id,
            "status_column": self.status_column,
            "ready_label": self.ready_label,
            "ready_index": self.ready_index,
            "excluded_label": self.excluded_label,
            "count_excluded": self.count_excluded,
        }


@dataclass(slots=True)
class DependentBoardConfig:
    """Downstream board whose status column is written by the engine."""

    board_id: str | None = None
    status_column: str | None = None
    relation_column: str | None = None
    target_label: str = "To Do"
    target_index: int = 8
    terminal_labels: tuple[str, ...] = ("To Do", "Done")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DependentBoardConfig":
        target_label = _str_or_none(data.get("target_label")) or "To Do"
        raw_terminal = data.get("terminal_labels")
        if isinstance(raw_terminal, (list, tuple)):
            terminal = [str(label).strip() for label in raw_terminal if str(label).strip()]
        else:
            terminal = ["Done"]
        if target_label not in terminal:
            terminal.insert(0, target_label)
        return cls(
            board_id=_str_or_none(data.get("board_id")),
            status_column=_str_or_none(data.get("status_column")),
            relation_column=_str_or_none(data.get("relation_column")),
            target_label=target_label,
            target_index=_int_or_default(data.get("target_index"), 8),
            terminal_labels=tuple(terminal),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "board_id": self.board_id,
            "status_column": self.status_column,
            "relation_column": self.relation_column,
            "target_label": self.target_label,
            "target_index": self.target_index,
            "terminal_labels": list(self.terminal_labels),
        }


@dataclass(slots=True)
class RunConfig:
    max_workers: int = 1
    max_concurrent_mutations: int = 1
    per_item_timeout_seconds: float = 30.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunConfig":
        return cls(
            max_workers=max(1, _int_or_default(data.get("max_workers"), 1)),
            max_concurrent_mutations=max(1, _int_or_default(data.get("max_concurrent_mutations"), 1)),
            per_item_timeout_seconds=max(1.0, _float_or_default(data.get("per_item_timeout_seconds"), 30.0)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_workers": self.max_workers,
            "max_concurrent_mutations": self.max_concurrent_mutations,
            "per_item_timeout_seconds": self.per_item_timeout_seconds,
        }


@dataclass(slots=True)
class ScheduleConfig:
    interval_minutes: float = 15.0
    business_hours: tuple[int, int] | None = None
    weekdays_only: bool = True
    dry_run: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScheduleConfig":
        return cls(
            interval_minutes=max(1.0, _float_or_default(data.get("interval_minutes"), 15.0)),
            business_hours=parse_business_hours(data.get("business_hours")),
            weekdays_only=_bool_or_default(data.get("weekdays_only"), True),
            dry_run=_bool_or_default(data.get("dry_run"), False),
        )

    def to_dict(self) -> dict[str, Any]:
        hours = None
        if self.business_hours is not None:
            hours = f"{self.business_hours[0]}-{self.business_hours[1]}"
        return {
            "interval_minutes": self.interval_minutes,
            "business_hours": hours,
            "weekdays_only": self.weekdays_only,
            "dry_run": self.dry_run,
        }


@dataclass(slots=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8787
    webhook_url: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServerConfig":
        return cls(
            host=_str_or_none(data.get("host")) or "127.0.0.1",
            port=_int_or_default(data.get("port"), 8787),
            webhook_url=_str_or_none(data.get("webhook_url")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"host": self.host, "port": self.port, "webhook_url": self.webhook_url}


def parse_business_hours(value: Any) -> tuple[int, int] | None:
    """Parse ``"8-18"`` into ``(8, 18)``. Empty values disable the window."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    start_text, sep, end_text = text.partition("-")
    try:
        start, end = int(start_text), int(end_text)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid business_hours '{text}'. Expected e.g. 8-18.") from exc
    if not sep or not (0 <= start < end <= 24):
        raise ConfigurationError(f"Invalid business_hours '{text}'. Expected e.g. 8-18.")
    return (start, end)


@dataclass(slots=True)
class ReconcilerConfig:
    """Complete reconciler configuration."""

    api: ApiConfig = field(default_factory=ApiConfig)
    dependency: DependencyBoardConfig = field(default_factory=DependencyBoardConfig)
    dependent: DependentBoardConfig = field(default_factory=DependentBoardConfig)
    run: RunConfig = field(default_factory=RunConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ReconcilerConfig":
        if not isinstance(data, dict):
            return cls()
        return cls(
            api=ApiConfig.from_dict(_section(data, "api")),
            dependency=DependencyBoardConfig.from_dict(_section(data, "dependency_board")),
            dependent=DependentBoardConfig.from_dict(_section(data, "dependent_board")),
            run=RunConfig.from_dict(_section(data, "run")),
            schedule=ScheduleConfig.from_dict(_section(data, "schedule")),
            server=ServerConfig.from_dict(_section(data, "server")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "api": self.api.to_dict(),
            "dependency_board": self.dependency.to_dict(),
            "dependent_board": self.dependent.to_dict(),
            "run": self.run.to_dict(),
            "schedule": self.schedule.to_dict(),
            "server": self.server.to_dict(),
        }

    def validate(self) -> "ReconcilerConfig":
        """Raise ConfigurationError listing every missing identifier."""
        missing = [
            name
            for name, value in (
                ("dependency_board.board_id", self.dependency.board_id),
                ("dependency_board.status_column", self.dependency.status_column),
                ("dependent_board.board_id", self.dependent.board_id),
                ("dependent_board.status_column", self.dependent.status_column),
                ("dependent_board.relation_column", self.dependent.relation_column),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")
        if self.dependency.board_id == self.dependent.board_id:
            raise ConfigurationError("dependency_board and dependent_board must be different boards")
        return self


def resolve_config_path(explicit: Path | None = None) -> Path:
    if explicit is not None:
        return explicit
    from_env = os.getenv(CONFIG_ENV_VAR, "").strip()
    if from_env:
        return Path(from_env)
    return Path.cwd() / DEFAULT_CONFIG_NAME


def _apply_env_overrides(config: ReconcilerConfig) -> ReconcilerConfig:
    api_url = os.getenv(API_URL_ENV_VAR, "").strip()
    if api_url:
        config.api.url = api_url
    dry_run = os.getenv(DRY_RUN_ENV_VAR, "").strip()
    if dry_run:
        config.schedule.dry_run = dry_run.lower() in _TRUTHY_VALUES
    return config


def load_config(path: Path | None = None) -> ReconcilerConfig:
    """Load configuration from YAML, returning defaults when the file is absent."""
    config_path = resolve_config_path(path)
    if not config_path.exists():
        return _apply_env_overrides(ReconcilerConfig())

    yaml = YAML()
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            payload = yaml.load(handle) or {}
    except (OSError, YAMLError) as exc:
        raise ConfigurationError(f"Failed to parse {config_path}: {exc}") from exc

    section = payload.get("reconciler") if isinstance(payload, dict) else None
    return _apply_env_overrides(ReconcilerConfig.from_dict(section if isinstance(section, dict) else None))


def save_config(path: Path, config: ReconcilerConfig) -> None:
    """Persist configuration, preserving unrelated top-level sections."""
    path.parent.mkdir(parents=True, exist_ok=True)

    yaml = YAML()
    yaml.preserve_quotes = True

    payload: Any = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.load(handle) or {}
    if not isinstance(payload, dict):
        payload = {}

    payload["reconciler"] = config.to_dict()

    with path.open("w", encoding="utf-8") as handle:
        yaml.dump(payload, handle)
