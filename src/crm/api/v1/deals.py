"""REST API endpoints for deals and the pipeline board.

Deal listings are joined against contacts so every row carries a
contact_name; a deal whose contact was deleted shows "Unknown Contact".
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from src.crm.api.deps import (
    get_activity_logger,
    get_contact_directory,
    get_deal_manager,
    get_pipeline_aggregator,
    http_error,
)
from src.crm.contacts.directory import ContactDirectory
from src.crm.contacts.schemas import Contact
from src.crm.core.exceptions import NotFoundError, ValidationError
from src.crm.deals.activity import ActivityLogger
from src.crm.deals.lifecycle import DealLifecycleManager
from src.crm.deals.pipeline import PipelineAggregator, contact_name_for, filter_deals
from src.crm.deals.schemas import (
    Activity,
    Deal,
    DealCreate,
    DealStage,
    DealUpdate,
    PipelineBoard,
)

router = APIRouter(prefix="/deals", tags=["deals"])


# ── Response Schemas ─────────────────────────────────────────────────────────


class DealResponse(Deal):
    """Deal joined with its contact's display name."""

    contact_name: str


def to_deal_response(deal: Deal, contacts: list[Contact]) -> DealResponse:
    return DealResponse(
        **deal.model_dump(),
        contact_name=contact_name_for(contacts, deal.contact_id),
    )


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.post("", response_model=Deal, status_code=201)
async def create_deal(
    body: DealCreate,
    manager: DealLifecycleManager = Depends(get_deal_manager),
) -> Deal:
    """Create a deal; stage and probability default from the stage table."""
    try:
        return await manager.create(body)
    except ValidationError as exc:
        raise http_error(exc) from exc


@router.get("", response_model=list[DealResponse])
async def list_deals(
    search: str = Query(default="", description="Match on title, contact name or company"),
    stage: DealStage | None = Query(default=None, description="Filter by stage"),
    manager: DealLifecycleManager = Depends(get_deal_manager),
    directory: ContactDirectory = Depends(get_contact_directory),
) -> list[DealResponse]:
    """List deals with optional search and stage filter."""
    deals = await manager.get_all()
    contacts = await directory.get_all()
    matched = filter_deals(deals, contacts, search=search, stage=stage)
    return [to_deal_response(d, contacts) for d in matched]


@router.get("/pipeline", response_model=PipelineBoard)
async def get_pipeline(
    aggregator: PipelineAggregator = Depends(get_pipeline_aggregator),
) -> PipelineBoard:
    """Pipeline view: every stage in order with its deals, count and value."""
    return await aggregator.board()


@router.get("/{deal_id}", response_model=DealResponse)
async def get_deal(
    deal_id: int,
    manager: DealLifecycleManager = Depends(get_deal_manager),
    directory: ContactDirectory = Depends(get_contact_directory),
) -> DealResponse:
    """Get a single deal by ID."""
    try:
        deal = await manager.get_by_id(deal_id)
    except NotFoundError as exc:
        raise http_error(exc) from exc
    contact = await directory.find(deal.contact_id)
    return to_deal_response(deal, [contact] if contact else [])


@router.patch("/{deal_id}", response_model=Deal)
async def update_deal(
    deal_id: int,
    body: DealUpdate,
    manager: DealLifecycleManager = Depends(get_deal_manager),
) -> Deal:
    """Update the provided fields of a deal; a stage change is logged."""
    try:
        return await manager.update(deal_id, body)
    except (NotFoundError, ValidationError) as exc:
        raise http_error(exc) from exc


@router.delete("/{deal_id}", status_code=204)
async def delete_deal(
    deal_id: int,
    manager: DealLifecycleManager = Depends(get_deal_manager),
) -> Response:
    """Delete a deal. Its activities are kept."""
    try:
        await manager.delete(deal_id)
    except NotFoundError as exc:
        raise http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{deal_id}/activities", response_model=list[Activity])
async def list_deal_activities(
    deal_id: int,
    activity_logger: ActivityLogger = Depends(get_activity_logger),
) -> list[Activity]:
    """Activity history of a deal, newest first. Works for deleted deals too."""
    return await activity_logger.get_by_deal(deal_id)
