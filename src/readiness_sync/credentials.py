"""API token storage in ~/.readiness-sync/credentials."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

import toml
from filelock import FileLock, Timeout

from readiness_sync.errors import ConfigurationError

TOKEN_ENV_VAR = "MONDAY_API_TOKEN"
_SECTION = "monday"


def _credentials_path() -> Path:
    return Path.home() / ".readiness-sync" / "credentials"


class CredentialStore:
    """Store the remote store API token in a TOML file with 600 permissions."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or _credentials_path()
        self.lock_path = self.path.with_suffix(".lock")

    def _acquire_lock(self) -> FileLock:
        return FileLock(self.lock_path, timeout=10)

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}

        try:
            with self._acquire_lock():
                raw = self.path.read_text(encoding="utf-8")
            payload = tomllib.loads(raw) if raw.strip() else {}
        except (tomllib.TOMLDecodeError, OSError, Timeout) as exc:
            raise ConfigurationError(f"Failed to load credentials from {self.path}: {exc}") from exc

        return payload if isinstance(payload, dict) else {}

    def save(self, payload: dict[str, Any]) -> None:
        self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        try:
            with self._acquire_lock():
                with open(self.path, "w", encoding="utf-8") as handle:
                    toml.dump(payload, handle)
                if os.name != "nt":
                    os.chmod(self.path, 0o600)
        except Timeout as exc:
            raise ConfigurationError(
                "Cannot acquire lock on credentials file. Another process may be using it."
            ) from exc

    def get_token(self) -> str | None:
        section = self.load().get(_SECTION)
        if not isinstance(section, dict):
            return None
        token = str(section.get("api_token") or "").strip()
        return token or None

    def set_token(self, token: str) -> None:
        token = token.strip()
        if not token:
            raise ConfigurationError("Refusing to store an empty API token")
        payload = self.load()
        section = payload.get(_SECTION)
        if not isinstance(section, dict):
            section = {}
        section["api_token"] = token
        payload[_SECTION] = section
        self.save(payload)

    def clear(self) -> None:
        payload = self.load()
        if _SECTION not in payload:
            return
        del payload[_SECTION]
        self.save(payload)


def resolve_token(explicit: str | None = None, store: CredentialStore | None = None) -> str | None:
    """Return the API token: explicit value, then environment, then the store."""
    candidate = (explicit or os.getenv(TOKEN_ENV_VAR) or "").strip()
    if candidate:
        return candidate
    return (store or CredentialStore()).get_token()


def require_token(explicit: str | None = None, store: CredentialStore | None = None) -> str:
    token = resolve_token(explicit, store)
    if not token:
        raise ConfigurationError(
            f"No API token configured. Set {TOKEN_ENV_VAR} or run 'readiness-sync auth set-token'."
        )
    return token
