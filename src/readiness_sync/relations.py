"""Column value decoding and relation resolution.

The store reports relation columns through a type-specific fragment. Their
summary ``text``/``value`` is unreliable (often empty even when links exist),
so only the expanded ``linked_items``/``linked_item_ids`` keys are read here.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from readiness_sync.models import ColumnValue, DependentItem, LinkedItemsField, OpaqueField, StatusField

_RELATION_TYPES = {"board_relation", "BoardRelationValue"}
_STATUS_TYPES = {"status", "color", "StatusValue"}


def _status_index(raw: Mapping[str, Any]) -> int | None:
    index = raw.get("index")
    if index is None:
        value = raw.get("value")
        if isinstance(value, str) and value.strip():
            try:
                parsed = json.loads(value)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, dict):
                index = parsed.get("index")
    try:
        return int(index) if index is not None else None
    except (TypeError, ValueError):
        return None


def _decode_relation(column_id: str, raw: Mapping[str, Any]) -> list[LinkedItemsField]:
    grouped: dict[str | None, list[str]] = {}
    seen: set[str] = set()

    for linked in raw.get("linked_items") or []:
        if not isinstance(linked, dict) or linked.get("id") is None:
            continue
        item_id = str(linked["id"])
        if item_id in seen:
            continue
        seen.add(item_id)
        board = linked.get("board")
        board_id = str(board["id"]) if isinstance(board, dict) and board.get("id") is not None else None
        grouped.setdefault(board_id, []).append(item_id)

    for linked_id in raw.get("linked_item_ids") or []:
        item_id = str(linked_id)
        if item_id in seen:
            continue
        seen.add(item_id)
        grouped.setdefault(None, []).append(item_id)

    if not grouped:
        return [LinkedItemsField(column_id=column_id, target_board_id=None, item_ids=())]
    return [
        LinkedItemsField(column_id=column_id, target_board_id=board_id, item_ids=tuple(ids))
        for board_id, ids in grouped.items()
    ]


def decode_column_value(raw: Mapping[str, Any]) -> list[ColumnValue]:
    """Decode one raw column value. Relation columns may yield several fields."""
    column_id = str(raw.get("id") or "")
    column_type = raw.get("type") or raw.get("__typename")

    if column_type in _RELATION_TYPES or "linked_items" in raw or "linked_item_ids" in raw:
        return list(_decode_relation(column_id, raw))

    if column_type in _STATUS_TYPES or "label" in raw:
        label = raw.get("label") if raw.get("label") is not None else raw.get("text")
        label_text = str(label).strip() if label is not None else ""
        return [StatusField(column_id=column_id, label=label_text or None, index=_status_index(raw))]

    text = raw.get("text")
    return [OpaqueField(column_id=column_id, text=str(text) if text is not None else None)]


def decode_column_values(raw_values: Iterable[Any] | None) -> list[ColumnValue]:
    decoded: list[ColumnValue] = []
    for raw in raw_values or []:
        if isinstance(raw, Mapping):
            decoded.extend(decode_column_value(raw))
    return decoded


def status_field(values: Iterable[ColumnValue], column_id: str) -> StatusField | None:
    for value in values:
        if isinstance(value, StatusField) and value.column_id == column_id:
            return value
    return None


def linked_fields(values: Iterable[ColumnValue]) -> tuple[LinkedItemsField, ...]:
    return tuple(value for value in values if isinstance(value, LinkedItemsField))


def dependency_ids(
    item: DependentItem,
    relation_column: str,
    dependency_board_id: str | None = None,
) -> frozenset[str]:
    """Ids of the dependency items linked from ``item``.

    An item without the relation column, or with an empty one, resolves to an
    empty set. Links whose board is known and differs from the dependency
    board are ignored.
    """
    ids: set[str] = set()
    for linked in item.relations:
        if linked.column_id != relation_column:
            continue
        if dependency_board_id and linked.target_board_id and linked.target_board_id != dependency_board_id:
            continue
        ids.update(linked.item_ids)
    return frozenset(ids)


def dependent_ids(links: Iterable[LinkedItemsField], dependent_board_id: str) -> frozenset[str]:
    """Ids of dependent-board items reachable through a dependency item's relations."""
    ids: set[str] = set()
    for linked in links:
        if linked.target_board_id == dependent_board_id:
            ids.update(linked.item_ids)
    return frozenset(ids)
