"""Dashboard endpoint -- headline metrics, recent deals and recent activity."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.crm.api.deps import (
    get_activity_logger,
    get_contact_directory,
    get_pipeline_aggregator,
)
from src.crm.api.v1.deals import DealResponse, to_deal_response
from src.crm.config import get_settings
from src.crm.contacts.directory import ContactDirectory
from src.crm.deals.activity import ActivityLogger
from src.crm.deals.pipeline import PipelineAggregator
from src.crm.deals.schemas import Activity, DashboardMetrics

router = APIRouter(tags=["dashboard"])


class DashboardResponse(BaseModel):
    """Everything the dashboard page renders in one payload."""

    metrics: DashboardMetrics
    recent_deals: list[DealResponse] = Field(default_factory=list)
    recent_activities: list[Activity] = Field(default_factory=list)


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    aggregator: PipelineAggregator = Depends(get_pipeline_aggregator),
    directory: ContactDirectory = Depends(get_contact_directory),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
) -> DashboardResponse:
    settings = get_settings()

    metrics = await aggregator.dashboard()
    deals = await aggregator.recent(settings.DASHBOARD_RECENT_DEALS)
    # Names only; metrics count contacts through the aggregator
    contacts = await directory.get_all()
    activities = await activity_logger.get_recent(settings.DASHBOARD_RECENT_ACTIVITIES)

    return DashboardResponse(
        metrics=metrics,
        recent_deals=[to_deal_response(d, contacts) for d in deals],
        recent_activities=activities,
    )
