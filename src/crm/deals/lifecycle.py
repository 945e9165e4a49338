"""Deal lifecycle manager -- create, update and delete deals with their side effects.

Owns the rules that tie a deal's stage to its probability and to the activity
log:

- A new deal starts in LEAD unless a stage is given, and takes the stage's
  default probability unless one is given.
- An update that supplies a stage but no probability resets probability to
  that stage's default. An explicit probability always wins.
- Creation emits one deal_created activity. An update whose merged stage
  differs from the stored stage emits exactly one stage_change activity.

The deal write and the activity write are two independent store calls.
Activity failures are logged, counted and reported through the optional
on_activity_failure callback; they never undo or fail the deal write.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from typing import Any

import structlog

from src.crm.core.exceptions import NotFoundError, ValidationError
from src.crm.core.monitoring import (
    activity_log_failures_total,
    deals_created_total,
    stage_transitions_total,
)
from src.crm.deals.activity import ActivityLogger
from src.crm.deals.schemas import (
    Activity,
    ActivityFailure,
    ActivityType,
    Deal,
    DealCreate,
    DealStage,
    DealUpdate,
)
from src.crm.records.store import RecordKind, RecordStore, SortSpec

logger = structlog.get_logger(__name__)

# Form messages, keyed by field.
_FIELD_MESSAGES: dict[str, str] = {
    "title": "Deal title is required",
    "contact_id": "Contact is required",
    "value": "Valid deal value is required",
    "expected_close_date": "Expected close date is required",
    "stage": "Stage is required",
    "probability": "Probability must be between 0 and 100",
}


def validate_deal_fields(fields: dict[str, Any], partial: bool = False) -> dict[str, str]:
    """Check deal input and return one message per invalid field.

    Args:
        fields: Field values to check. For a partial update, only the keys the
            caller actually set.
        partial: When True, absent fields are not required.

    Returns:
        Mapping of field name to message; empty when the input is valid.
    """
    errors: dict[str, str] = {}

    def _check(field: str) -> bool:
        return not partial or field in fields

    if _check("title"):
        title = fields.get("title")
        if not title or not title.strip():
            errors["title"] = _FIELD_MESSAGES["title"]

    if _check("contact_id") and fields.get("contact_id") is None:
        errors["contact_id"] = _FIELD_MESSAGES["contact_id"]

    if _check("value"):
        value = fields.get("value")
        if value is None or not math.isfinite(value) or value <= 0:
            errors["value"] = _FIELD_MESSAGES["value"]

    if _check("expected_close_date") and fields.get("expected_close_date") is None:
        errors["expected_close_date"] = _FIELD_MESSAGES["expected_close_date"]

    # Create falls back to LEAD; an update may not clear the stage
    if partial and "stage" in fields and fields["stage"] is None:
        errors["stage"] = _FIELD_MESSAGES["stage"]

    if "probability" in fields:
        probability = fields["probability"]
        if probability is None:
            if partial:
                errors["probability"] = _FIELD_MESSAGES["probability"]
        elif not 0 <= probability <= 100:
            errors["probability"] = _FIELD_MESSAGES["probability"]

    return errors


class DealLifecycleManager:
    """Create/update/delete deals and emit their activity records.

    Args:
        store: RecordStore holding the deals collection.
        activity_logger: Sink for deal_created and stage_change activities.
        on_activity_failure: Optional callback invoked with an ActivityFailure
            when an activity could not be recorded after a deal write.
    """

    def __init__(
        self,
        store: RecordStore,
        activity_logger: ActivityLogger,
        on_activity_failure: Callable[[ActivityFailure], None] | None = None,
    ) -> None:
        self._store = store
        self._activity_logger = activity_logger
        self._on_activity_failure = on_activity_failure

    # ── Reads ───────────────────────────────────────────────────────────────

    async def get_all(self) -> list[Deal]:
        records = await self._store.query(
            RecordKind.DEALS, sort=[SortSpec(field="id")]
        )
        return [Deal.model_validate(r) for r in records]

    async def get_by_id(self, deal_id: int) -> Deal:
        record = await self._store.get_by_id(RecordKind.DEALS, deal_id)
        if record is None:
            raise NotFoundError("Deal", deal_id)
        return Deal.model_validate(record)

    async def list_by_contact(self, contact_id: int) -> list[Deal]:
        """All deals referencing a contact, including orphans of a deleted contact."""
        records = await self._store.query(
            RecordKind.DEALS,
            filters={"contact_id": contact_id},
            sort=[SortSpec(field="id")],
        )
        return [Deal.model_validate(r) for r in records]

    # ── Mutations ───────────────────────────────────────────────────────────

    async def create(self, data: DealCreate) -> Deal:
        """Validate, default stage/probability, persist, then log deal_created.

        Raises:
            ValidationError: With every invalid field; nothing is written.
            StoreError: If the deal insert fails.
        """
        errors = validate_deal_fields(data.model_dump())
        if errors:
            raise ValidationError(errors)

        stage = data.stage or DealStage.LEAD
        probability = (
            data.probability
            if data.probability is not None
            else stage.default_probability
        )

        record = await self._store.insert(
            RecordKind.DEALS,
            {
                "title": data.title,
                "contact_id": data.contact_id,
                "value": data.value,
                "stage": stage,
                "probability": probability,
                "expected_close_date": data.expected_close_date,
            },
        )
        deal = Deal.model_validate(record)

        deals_created_total.labels(stage=deal.stage.value).inc()
        logger.info(
            "deal.created",
            deal_id=deal.id,
            contact_id=deal.contact_id,
            stage=deal.stage.value,
            probability=deal.probability,
        )

        await self._log_activity(
            deal.id,
            ActivityType.DEAL_CREATED,
            f'Deal "{deal.title}" was created',
        )
        return deal

    async def update(self, deal_id: int, data: DealUpdate) -> Deal:
        """Merge the fields the caller set and log a stage change if one happened.

        Raises:
            NotFoundError: If deal_id does not resolve.
            ValidationError: With every invalid field; nothing is written.
            StoreError: If the read or the patch fails.
        """
        current = await self.get_by_id(deal_id)

        changes = data.model_dump(exclude_unset=True)
        errors = validate_deal_fields(changes, partial=True)
        if errors:
            raise ValidationError(errors)

        if "stage" in changes and "probability" not in changes:
            changes["probability"] = changes["stage"].default_probability

        record = await self._store.patch(RecordKind.DEALS, deal_id, changes)
        if record is None:
            # Deleted between the read and the patch
            raise NotFoundError("Deal", deal_id)
        deal = Deal.model_validate(record)

        logger.info(
            "deal.updated",
            deal_id=deal.id,
            fields=sorted(changes),
        )

        if deal.stage != current.stage:
            stage_transitions_total.labels(
                from_stage=current.stage.value, to_stage=deal.stage.value
            ).inc()
            logger.info(
                "deal.stage_changed",
                deal_id=deal.id,
                from_stage=current.stage.value,
                to_stage=deal.stage.value,
            )
            await self._log_activity(
                deal.id,
                ActivityType.STAGE_CHANGE,
                f'Deal "{deal.title}" moved from {current.stage.value} to {deal.stage.value}',
            )

        return deal

    async def delete(self, deal_id: int) -> None:
        """Remove a deal. Its activities stay as history with a dangling deal_id.

        Raises:
            NotFoundError: If deal_id does not resolve.
        """
        removed = await self._store.remove(RecordKind.DEALS, deal_id)
        if not removed:
            raise NotFoundError("Deal", deal_id)
        logger.info("deal.deleted", deal_id=deal_id)

    # ── Activity side effect ────────────────────────────────────────────────

    async def _log_activity(
        self,
        deal_id: int,
        activity_type: ActivityType,
        description: str,
    ) -> Activity | None:
        """Record an activity; on failure report it and return None."""
        try:
            return await self._activity_logger.record(deal_id, activity_type, description)
        except Exception as exc:
            logger.warning(
                "deal.activity_log_failed",
                deal_id=deal_id,
                activity_type=activity_type.value,
                error=str(exc),
                exc_info=True,
            )
            activity_log_failures_total.labels(type=activity_type.value).inc()

            if self._on_activity_failure is not None:
                failure = ActivityFailure(
                    deal_id=deal_id,
                    type=activity_type.value,
                    description=description,
                    error=str(exc),
                )
                try:
                    self._on_activity_failure(failure)
                except Exception:
                    logger.error("deal.activity_failure_handler_error", exc_info=True)
            return None
