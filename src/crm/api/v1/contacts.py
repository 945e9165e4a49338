"""REST API endpoints for contacts."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from src.crm.api.deps import get_contact_directory, get_deal_manager, http_error
from src.crm.contacts.directory import ContactDirectory
from src.crm.contacts.schemas import Contact, ContactCreate, ContactUpdate
from src.crm.core.exceptions import NotFoundError, ValidationError
from src.crm.deals.lifecycle import DealLifecycleManager
from src.crm.deals.schemas import Deal

router = APIRouter(prefix="/contacts", tags=["contacts"])


@router.post("", response_model=Contact, status_code=201)
async def create_contact(
    body: ContactCreate,
    directory: ContactDirectory = Depends(get_contact_directory),
) -> Contact:
    """Create a contact."""
    try:
        return await directory.create(body)
    except ValidationError as exc:
        raise http_error(exc) from exc


@router.get("", response_model=list[Contact])
async def list_contacts(
    search: str = Query(default="", description="Match on name, email or company"),
    directory: ContactDirectory = Depends(get_contact_directory),
) -> list[Contact]:
    """List contacts ordered by name, optionally filtered by a search term."""
    if search:
        return await directory.search(search)
    return await directory.get_all()


@router.get("/{contact_id}", response_model=Contact)
async def get_contact(
    contact_id: int,
    directory: ContactDirectory = Depends(get_contact_directory),
) -> Contact:
    """Get a single contact by ID."""
    try:
        return await directory.get_by_id(contact_id)
    except NotFoundError as exc:
        raise http_error(exc) from exc


@router.patch("/{contact_id}", response_model=Contact)
async def update_contact(
    contact_id: int,
    body: ContactUpdate,
    directory: ContactDirectory = Depends(get_contact_directory),
) -> Contact:
    """Update the provided fields of a contact."""
    try:
        return await directory.update(contact_id, body)
    except (NotFoundError, ValidationError) as exc:
        raise http_error(exc) from exc


@router.delete("/{contact_id}", status_code=204)
async def delete_contact(
    contact_id: int,
    directory: ContactDirectory = Depends(get_contact_directory),
) -> Response:
    """Delete a contact. Deals that reference it are kept."""
    try:
        await directory.delete(contact_id)
    except NotFoundError as exc:
        raise http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{contact_id}/deals", response_model=list[Deal])
async def list_contact_deals(
    contact_id: int,
    manager: DealLifecycleManager = Depends(get_deal_manager),
) -> list[Deal]:
    """Deals referencing a contact, including deals of a deleted contact."""
    return await manager.list_by_contact(contact_id)
