"""Error taxonomy for board reconciliation.

Only :class:`ConfigurationError` is fatal to a run. Everything else is
recorded against the item being processed and the run moves on.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class ReadinessSyncError(RuntimeError):
    """Base class for reconciliation failures."""


class NetworkError(ReadinessSyncError):
    """Raised when the remote store cannot be reached after retries."""


class RemoteRejectedError(ReadinessSyncError):
    """Raised when the remote store answers with a well-formed error."""

    def __init__(self, message: str, *, status_code: int | None = None, errors: list[Any] | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.errors = list(errors or [])


class NotFoundError(ReadinessSyncError):
    """Raised when some requested ids are no longer present in the store.

    ``found`` carries whatever the store did return so callers can treat the
    missing ids conservatively instead of discarding the whole batch.
    """

    def __init__(self, missing_ids: Iterable[str], found: list[Any] | None = None) -> None:
        self.missing_ids = tuple(sorted(str(item_id) for item_id in missing_ids))
        self.found = list(found or [])
        super().__init__(f"Items not found: {', '.join(self.missing_ids)}")


class ConfigurationError(ReadinessSyncError):
    """Raised for missing credentials or unknown board/column identifiers."""
