"""FastAPI dependency helpers for the services wired onto app.state.

Each getter returns 503 when the service was not initialized, and
http_error() maps core errors onto HTTP responses.
"""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from src.crm.contacts.directory import ContactDirectory
from src.crm.core.exceptions import CRMError, NotFoundError, ValidationError
from src.crm.deals.activity import ActivityLogger
from src.crm.deals.lifecycle import DealLifecycleManager
from src.crm.deals.pipeline import PipelineAggregator


def _get_state(request: Request, name: str, label: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} not initialized",
        )
    return service


def get_deal_manager(request: Request) -> DealLifecycleManager:
    return _get_state(request, "deal_manager", "Deal management")


def get_contact_directory(request: Request) -> ContactDirectory:
    return _get_state(request, "contact_directory", "Contact directory")


def get_activity_logger(request: Request) -> ActivityLogger:
    return _get_state(request, "activity_logger", "Activity log")


def get_pipeline_aggregator(request: Request) -> PipelineAggregator:
    return _get_state(request, "pipeline_aggregator", "Pipeline aggregation")


def http_error(exc: CRMError) -> HTTPException:
    """Translate a core error into the HTTPException the caller should see."""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=422,
            detail={"errors": exc.errors},
        )
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
