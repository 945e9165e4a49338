"""Activity logger -- append-only sink for deal lifecycle events.

The logger never reads or reasons about deal state: callers hand it a fully
resolved description. Reads return activities newest first.
"""

from __future__ import annotations

import structlog

from src.crm.core.exceptions import NotFoundError, ValidationError
from src.crm.deals.schemas import Activity, ActivityType
from src.crm.records.store import RecordKind, RecordStore, SortSpec

logger = structlog.get_logger(__name__)

_NEWEST_FIRST = [
    SortSpec(field="timestamp", descending=True),
    SortSpec(field="id", descending=True),
]


class ActivityLogger:
    """Appends immutable Activity records to the record store.

    Args:
        store: RecordStore holding the activities collection.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def record(
        self,
        deal_id: int | None,
        activity_type: ActivityType | str,
        description: str,
    ) -> Activity:
        """Append one activity stamped with the current time.

        Args:
            deal_id: Deal the activity refers to, None for non-deal events.
            activity_type: An ActivityType or a free-form string.
            description: Human-readable text, already resolved by the caller.

        Returns:
            The persisted Activity.

        Raises:
            ValidationError: If type or description is empty.
            StoreError: If the store rejects the insert.
        """
        type_value = (
            activity_type.value
            if isinstance(activity_type, ActivityType)
            else activity_type
        )
        errors: dict[str, str] = {}
        if not type_value or not type_value.strip():
            errors["type"] = "Activity type is required"
        if not description or not description.strip():
            errors["description"] = "Activity description is required"
        if errors:
            raise ValidationError(errors)

        record = await self._store.insert(
            RecordKind.ACTIVITIES,
            {"deal_id": deal_id, "type": type_value, "description": description},
        )
        activity = Activity.model_validate(record)
        logger.info(
            "activity.recorded",
            activity_id=activity.id,
            deal_id=deal_id,
            activity_type=type_value,
        )
        return activity

    async def get_all(self) -> list[Activity]:
        records = await self._store.query(RecordKind.ACTIVITIES, sort=_NEWEST_FIRST)
        return [Activity.model_validate(r) for r in records]

    async def get_by_id(self, activity_id: int) -> Activity:
        record = await self._store.get_by_id(RecordKind.ACTIVITIES, activity_id)
        if record is None:
            raise NotFoundError("Activity", activity_id)
        return Activity.model_validate(record)

    async def get_by_deal(self, deal_id: int) -> list[Activity]:
        """Activities for one deal, newest first. Survives deletion of the deal."""
        records = await self._store.query(
            RecordKind.ACTIVITIES, filters={"deal_id": deal_id}, sort=_NEWEST_FIRST
        )
        return [Activity.model_validate(r) for r in records]

    async def get_recent(self, limit: int = 10) -> list[Activity]:
        records = await self._store.query(
            RecordKind.ACTIVITIES, sort=_NEWEST_FIRST, limit=limit
        )
        return [Activity.model_validate(r) for r in records]
