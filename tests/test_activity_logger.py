"""Tests for ActivityLogger -- append-only activity records, newest-first reads."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.crm.core.exceptions import NotFoundError, StoreError, ValidationError
from src.crm.deals.activity import ActivityLogger
from src.crm.deals.schemas import ActivityType


@pytest.mark.asyncio
async def test_record_assigns_id_and_timestamp(activity_logger):
    activity = await activity_logger.record(3, ActivityType.DEAL_CREATED, 'Deal "X" was created')

    assert activity.id == 1
    assert activity.deal_id == 3
    assert activity.type == "deal_created"
    assert activity.timestamp is not None


@pytest.mark.asyncio
async def test_record_accepts_free_form_type(activity_logger):
    activity = await activity_logger.record(None, "call_logged", "Called the buyer")

    assert activity.type == "call_logged"
    assert activity.deal_id is None


@pytest.mark.asyncio
async def test_record_rejects_empty_fields(activity_logger):
    with pytest.raises(ValidationError) as exc_info:
        await activity_logger.record(1, "", "   ")

    assert set(exc_info.value.errors) == {"type", "description"}
    assert await activity_logger.get_all() == []


@pytest.mark.asyncio
async def test_store_failure_propagates():
    store = MagicMock()
    store.insert = AsyncMock(side_effect=StoreError("down"))

    with pytest.raises(StoreError):
        await ActivityLogger(store).record(1, ActivityType.STAGE_CHANGE, "moved")


@pytest.mark.asyncio
async def test_reads_are_newest_first(activity_logger):
    for i in range(1, 4):
        await activity_logger.record(i, ActivityType.DEAL_CREATED, f"created {i}")

    activities = await activity_logger.get_all()
    assert [a.id for a in activities] == [3, 2, 1]


@pytest.mark.asyncio
async def test_get_recent_limits_results(activity_logger):
    for i in range(12):
        await activity_logger.record(1, ActivityType.DEAL_UPDATED, f"update {i}")

    assert len(await activity_logger.get_recent()) == 10
    recent = await activity_logger.get_recent(2)
    assert [a.description for a in recent] == ["update 11", "update 10"]


@pytest.mark.asyncio
async def test_get_by_deal_filters(activity_logger):
    await activity_logger.record(1, ActivityType.DEAL_CREATED, "one")
    await activity_logger.record(2, ActivityType.DEAL_CREATED, "two")
    await activity_logger.record(1, ActivityType.STAGE_CHANGE, "one moved")

    activities = await activity_logger.get_by_deal(1)
    assert [a.description for a in activities] == ["one moved", "one"]
    assert await activity_logger.get_by_deal(99) == []


@pytest.mark.asyncio
async def test_get_by_id(activity_logger):
    created = await activity_logger.record(1, ActivityType.DEAL_CREATED, "one")

    assert (await activity_logger.get_by_id(created.id)).description == "one"
    with pytest.raises(NotFoundError):
        await activity_logger.get_by_id(404)
