"""Record store abstract base class -- the storage contract the CRM core consumes.

Every backend (in-memory, SQL, a hosted REST service) implements this ABC for
the three record kinds. Records cross the boundary as plain dicts keyed by
snake_case field name; the core validates them into Pydantic read schemas.

Backends assign ``id`` and timestamps on insert, refresh ``updated_at`` on
patch, and wrap their own I/O failures in StoreError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from pydantic import BaseModel


class RecordKind(str, Enum):
    """Collections served by the record store."""

    CONTACTS = "contacts"
    DEALS = "deals"
    ACTIVITIES = "activities"


# Kinds whose records carry created_at/updated_at. Activities only get a timestamp.
TIMESTAMPED_KINDS: frozenset[RecordKind] = frozenset(
    {RecordKind.CONTACTS, RecordKind.DEALS}
)


class SortSpec(BaseModel):
    """Ordering for query results."""

    field: str
    descending: bool = False


def plain_value(value: Any) -> Any:
    """Unwrap enum members so backends store their raw values."""
    if isinstance(value, Enum):
        return value.value
    return value


class RecordStore(ABC):
    """Abstract interface for record persistence.

    Methods:
        query: List records of a kind matching equality filters.
        get_by_id: Fetch one record by id.
        insert: Persist a new record, returning it with assigned fields.
        patch: Update selected fields of a record.
        remove: Delete a record.
    """

    @abstractmethod
    async def query(
        self,
        kind: RecordKind,
        filters: dict[str, Any] | None = None,
        sort: list[SortSpec] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """List records matching all equality filters, optionally sorted and limited."""
        ...

    @abstractmethod
    async def get_by_id(self, kind: RecordKind, record_id: int) -> dict[str, Any] | None:
        """Fetch a record by id, None if absent."""
        ...

    @abstractmethod
    async def insert(self, kind: RecordKind, fields: dict[str, Any]) -> dict[str, Any]:
        """Insert a record, return it with id and timestamps assigned."""
        ...

    @abstractmethod
    async def patch(
        self, kind: RecordKind, record_id: int, fields: dict[str, Any]
    ) -> dict[str, Any] | None:
        """Update the given fields, return the updated record or None if absent."""
        ...

    @abstractmethod
    async def remove(self, kind: RecordKind, record_id: int) -> bool:
        """Delete a record, return False if it did not exist."""
        ...
