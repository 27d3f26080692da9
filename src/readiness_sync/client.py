"""Typed client for the monday.com GraphQL API.

One ``BoardClient`` is built at process start and handed to the reconciler.
All methods are independent request/response pairs; the only shared state is
the read-only auth header, so the client is safe to use from worker threads.
"""

from __future__ import annotations

import json
import logging
import random
import time
from collections.abc import Callable, Iterable, Iterator, Sequence
from typing import Any

import httpx

from readiness_sync import queries
from readiness_sync.config import ReconcilerConfig
from readiness_sync.errors import ConfigurationError, NetworkError, NotFoundError, RemoteRejectedError
from readiness_sync.models import DependencyItem, DependentItem
from readiness_sync.relations import decode_column_values, linked_fields, status_field

logger = logging.getLogger(__name__)


def _chunks(values: Sequence[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(values), size):
        yield list(values[start : start + size])


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(str(value) for value in values))


class BoardClient:
    """Query/mutation wrapper with bounded retry on transport failures."""

    BASE_DELAY_SECONDS = 0.5
    MAX_DELAY_SECONDS = 8.0
    JITTER_SECONDS = 0.25

    def __init__(
        self,
        token: str,
        config: ReconcilerConfig,
        *,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not token:
            raise ConfigurationError("An API token is required to build the board client")
        self.config = config
        self.url = config.api.url
        self.max_attempts = config.api.max_attempts
        self.page_size = config.api.page_size
        self._sleep = sleep
        self._http = httpx.Client(
            timeout=httpx.Timeout(config.api.timeout_seconds),
            headers={
                "Authorization": token,
                "API-Version": config.api.version,
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    def __enter__(self) -> "BoardClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    # Transport ------------------------------------------------------------

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry ``attempt`` (0-indexed), without jitter."""
        return min(self.BASE_DELAY_SECONDS * (2**attempt), self.MAX_DELAY_SECONDS)

    def _post(self, payload: dict[str, Any]) -> httpx.Response:
        last_error: Exception | None = None
        for attempt in range(self.max_attempts):
            try:
                return self._http.post(self.url, json=payload)
            except httpx.TransportError as exc:
                last_error = exc
                if attempt + 1 >= self.max_attempts:
                    break
                delay = self.backoff_delay(attempt) + random.uniform(0, self.JITTER_SECONDS)
                logger.warning(
                    "Request to %s failed (attempt %d/%d): %s; retrying in %.2fs",
                    self.url,
                    attempt + 1,
                    self.max_attempts,
                    exc,
                    delay,
                )
                self._sleep(delay)
            except httpx.HTTPError as exc:
                raise NetworkError(f"Request to {self.url} failed: {exc}") from exc
        raise NetworkError(
            f"Cannot reach {self.url} after {self.max_attempts} attempts: {last_error}"
        ) from last_error

    def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run one GraphQL document and return its ``data`` object."""
        response = self._post({"query": query, "variables": variables or {}})

        if response.status_code in (401, 403):
            raise ConfigurationError(
                f"Remote store rejected the API token (HTTP {response.status_code})"
            )
        if not response.is_success:
            raise RemoteRejectedError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise RemoteRejectedError(
                "Remote store returned a non-JSON response", status_code=response.status_code
            ) from exc

        if not isinstance(body, dict):
            raise RemoteRejectedError("Remote store returned an unexpected payload")

        errors = body.get("errors")
        if errors:
            messages = [
                str(error.get("message")) if isinstance(error, dict) else str(error)
                for error in errors
            ]
            raise RemoteRejectedError("; ".join(messages), status_code=response.status_code, errors=errors)
        if body.get("error_message"):
            raise RemoteRejectedError(
                f"{body.get('error_code') or 'Error'}: {body['error_message']}",
                status_code=response.status_code,
            )

        data = body.get("data")
        if not isinstance(data, dict):
            raise RemoteRejectedError("Remote store response has no data object")
        logger.debug("GraphQL call ok (%d top-level keys)", len(data))
        return data

    # Decoding ---------------------------------------------------------------

    def _decode_dependent(self, raw: dict[str, Any], board_id: str | None = None) -> DependentItem:
        values = decode_column_values(raw.get("column_values"))
        status = status_field(values, str(self.config.dependent.status_column))
        board = raw.get("board")
        if isinstance(board, dict) and board.get("id") is not None:
            board_id = str(board["id"])
        return DependentItem(
            id=str(raw["id"]),
            name=str(raw.get("name") or ""),
            board_id=board_id,
            status_label=status.label if status else None,
            status_index=status.index if status else None,
            relations=linked_fields(values),
        )

    def _decode_dependency(self, raw: dict[str, Any]) -> DependencyItem:
        values = decode_column_values(raw.get("column_values"))
        status = status_field(values, str(self.config.dependency.status_column))
        return DependencyItem(
            id=str(raw["id"]),
            name=str(raw.get("name") or ""),
            status_label=status.label if status else None,
            links=linked_fields(values),
        )

    # Reads ------------------------------------------------------------------

    def _dependent_column_ids(self) -> list[str]:
        dependent = self.config.dependent
        return [str(dependent.status_column), str(dependent.relation_column)]

    def iter_dependent_pages(self) -> Iterator[list[DependentItem]]:
        """Yield the dependent board one page at a time until the cursor runs out."""
        board_id = str(self.config.dependent.board_id)
        column_ids = self._dependent_column_ids()

        data = self.execute(
            queries.BOARD_ITEMS_PAGE,
            {"boardIds": [board_id], "limit": self.page_size, "columnIds": column_ids},
        )
        boards = data.get("boards") or []
        if not boards:
            raise ConfigurationError(f"Dependent board {board_id} not found or not accessible")

        page = boards[0].get("items_page") or {}
        while True:
            items = [self._decode_dependent(raw, board_id) for raw in page.get("items") or []]
            if items:
                yield items
            cursor = page.get("cursor")
            if not cursor:
                return
            data = self.execute(
                queries.NEXT_ITEMS_PAGE,
                {"cursor": cursor, "limit": self.page_size, "columnIds": column_ids},
            )
            page = data.get("next_items_page") or {}

    def fetch_dependent_items(self, item_ids: Iterable[str] | None = None) -> list[DependentItem]:
        """Fetch dependent items with their status and expanded relation column.

        Without ``item_ids`` the whole board is paginated. With ids, unknown ids
        are silently dropped: an unlinked or deleted dependent has nothing left
        to reconcile.
        """
        if item_ids is None:
            return [item for page in self.iter_dependent_pages() for item in page]

        ids = _unique(item_ids)
        items: list[DependentItem] = []
        for chunk in _chunks(ids, self.page_size):
            data = self.execute(
                queries.ITEMS_BY_ID,
                {"ids": chunk, "limit": len(chunk), "columnIds": self._dependent_column_ids()},
            )
            items.extend(self._decode_dependent(raw) for raw in data.get("items") or [] if raw)
        return items

    def fetch_dependency_items(self, item_ids: Iterable[str]) -> list[DependencyItem]:
        """Fetch dependency statuses in batched calls.

        Raises NotFoundError carrying the items that were found when the store
        returns fewer items than requested.
        """
        ids = _unique(item_ids)
        if not ids:
            return []

        found: list[DependencyItem] = []
        column_ids = [str(self.config.dependency.status_column)]
        for chunk in _chunks(ids, self.page_size):
            data = self.execute(
                queries.ITEMS_BY_ID,
                {"ids": chunk, "limit": len(chunk), "columnIds": column_ids},
            )
            found.extend(self._decode_dependency(raw) for raw in data.get("items") or [] if raw)

        missing = set(ids) - {item.id for item in found}
        if missing:
            raise NotFoundError(missing, found=found)
        return found

    def fetch_dependency_links(self, item_id: str) -> DependencyItem:
        """Fetch one dependency item with every relation column expanded."""
        data = self.execute(queries.ITEM_RELATIONS, {"ids": [str(item_id)]})
        items = [raw for raw in data.get("items") or [] if raw]
        if not items:
            raise NotFoundError([str(item_id)])
        return self._decode_dependency(items[0])

    def fetch_column(self, board_id: str, column_id: str) -> dict[str, Any]:
        """Return a column's ``id``, ``title``, ``type`` and ``settings_str``."""
        data = self.execute(queries.BOARD_COLUMNS, {"boardIds": [str(board_id)], "columnIds": [column_id]})
        boards = data.get("boards") or []
        if not boards:
            raise ConfigurationError(f"Board {board_id} not found or not accessible")
        columns = [column for column in boards[0].get("columns") or [] if column.get("id") == column_id]
        if not columns:
            raise ConfigurationError(f"Column '{column_id}' not found on board {board_id}")
        return columns[0]

    def fetch_status_labels(self, board_id: str, column_id: str) -> dict[int, str]:
        """Return the ``{index: label}`` map of a status column."""
        column = self.fetch_column(board_id, column_id)
        if column.get("type") not in ("status", "color"):
            raise ConfigurationError(
                f"Column '{column_id}' on board {board_id} is a {column.get('type')} column, not a status column"
            )
        try:
            settings = json.loads(column.get("settings_str") or "{}")
        except json.JSONDecodeError as exc:
            raise RemoteRejectedError(f"Unreadable settings for column '{column_id}'") from exc

        labels = settings.get("labels") if isinstance(settings, dict) else None
        if not isinstance(labels, dict):
            return {}
        return {int(index): str(label) for index, label in labels.items() if str(index).lstrip("-").isdigit()}

    def whoami(self) -> dict[str, Any]:
        data = self.execute(queries.ME)
        me = data.get("me")
        if not isinstance(me, dict):
            raise ConfigurationError("API token is not associated with a user")
        return me

    def list_webhooks(self, board_id: str) -> list[dict[str, Any]]:
        data = self.execute(queries.LIST_WEBHOOKS, {"boardId": str(board_id)})
        return [hook for hook in data.get("webhooks") or [] if isinstance(hook, dict)]

    # Writes -----------------------------------------------------------------

    def update_dependent_status(self, item_id: str, index: int) -> None:
        """Set the dependent status column by positional label index."""
        dependent = self.config.dependent
        data = self.execute(
            queries.CHANGE_STATUS,
            {
                "itemId": str(item_id),
                "boardId": str(dependent.board_id),
                "columnId": str(dependent.status_column),
                "value": json.dumps({"index": int(index)}),
            },
        )
        result = data.get("change_column_value")
        if not isinstance(result, dict) or result.get("id") is None:
            raise RemoteRejectedError(f"Status change for item {item_id} returned no item")
        logger.debug("Set item %s status index to %d", item_id, index)

    def create_webhook(
        self,
        board_id: str,
        url: str,
        *,
        event: str = "change_column_value",
        config: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        data = self.execute(
            queries.CREATE_WEBHOOK,
            {
                "boardId": str(board_id),
                "url": url,
                "event": event,
                "config": json.dumps(config) if config else None,
            },
        )
        hook = data.get("create_webhook")
        if not isinstance(hook, dict):
            raise RemoteRejectedError("Webhook creation returned no webhook")
        return hook
