"""REST API endpoints for the activity log (read-only)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from src.crm.api.deps import get_activity_logger, http_error
from src.crm.core.exceptions import NotFoundError
from src.crm.deals.activity import ActivityLogger
from src.crm.deals.schemas import Activity

router = APIRouter(prefix="/activities", tags=["activities"])


@router.get("", response_model=list[Activity])
async def list_activities(
    limit: int | None = Query(default=None, ge=1, le=500, description="Most recent N"),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
) -> list[Activity]:
    """All activities newest first, or only the most recent `limit`."""
    if limit is not None:
        return await activity_logger.get_recent(limit)
    return await activity_logger.get_all()


@router.get("/{activity_id}", response_model=Activity)
async def get_activity(
    activity_id: int,
    activity_logger: ActivityLogger = Depends(get_activity_logger),
) -> Activity:
    try:
        return await activity_logger.get_by_id(activity_id)
    except NotFoundError as exc:
        raise http_error(exc) from exc
