"""In-memory record store -- process-local dicts, used for development and tests.

Ids are assigned per kind starting at 1 and are never reused, so a deleted
record's id keeps dangling instead of pointing at a newer record.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any

import structlog

from src.crm.records.store import (
    TIMESTAMPED_KINDS,
    RecordKind,
    RecordStore,
    SortSpec,
    plain_value,
)

logger = structlog.get_logger(__name__)


def _sort_key(value: Any) -> tuple[int, Any]:
    # None sorts before any real value
    return (0, 0) if value is None else (1, value)


class InMemoryRecordStore(RecordStore):
    """RecordStore backed by dicts keyed by record id.

    Returned records are deep copies; mutating them never changes stored state.
    """

    def __init__(self) -> None:
        self._records: dict[RecordKind, dict[int, dict[str, Any]]] = {
            kind: {} for kind in RecordKind
        }
        self._next_id: dict[RecordKind, int] = {kind: 1 for kind in RecordKind}

    async def query(
        self,
        kind: RecordKind,
        filters: dict[str, Any] | None = None,
        sort: list[SortSpec] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        records = list(self._records[kind].values())

        if filters:
            wanted = {k: plain_value(v) for k, v in filters.items()}
            records = [
                r for r in records
                if all(r.get(k) == v for k, v in wanted.items())
            ]

        # Apply sort keys last-to-first; stable sorts compose into a multi-key order
        for spec in reversed(sort or []):
            records.sort(
                key=lambda r, f=spec.field: _sort_key(r.get(f)),
                reverse=spec.descending,
            )

        if limit is not None:
            records = records[:limit]

        return [copy.deepcopy(r) for r in records]

    async def get_by_id(self, kind: RecordKind, record_id: int) -> dict[str, Any] | None:
        record = self._records[kind].get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def insert(self, kind: RecordKind, fields: dict[str, Any]) -> dict[str, Any]:
        record_id = self._next_id[kind]
        self._next_id[kind] += 1

        now = datetime.now(timezone.utc)
        record = {k: plain_value(v) for k, v in fields.items()}
        record["id"] = record_id
        if kind in TIMESTAMPED_KINDS:
            record["created_at"] = now
            record["updated_at"] = now
        else:
            record["timestamp"] = now

        self._records[kind][record_id] = record
        logger.debug("memory_store.inserted", kind=kind.value, record_id=record_id)
        return copy.deepcopy(record)

    async def patch(
        self, kind: RecordKind, record_id: int, fields: dict[str, Any]
    ) -> dict[str, Any] | None:
        record = self._records[kind].get(record_id)
        if record is None:
            return None

        for key, value in fields.items():
            if key == "id":
                continue
            record[key] = plain_value(value)
        if kind in TIMESTAMPED_KINDS:
            record["updated_at"] = datetime.now(timezone.utc)

        return copy.deepcopy(record)

    async def remove(self, kind: RecordKind, record_id: int) -> bool:
        removed = self._records[kind].pop(record_id, None)
        return removed is not None
