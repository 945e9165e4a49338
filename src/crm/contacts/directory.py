"""Contact directory -- CRUD and lookups for contacts.

Deleting a contact never cascades: deals keep their contact_id and readers
resolve it to "Unknown Contact". When an ActivityLogger is configured, new
contacts are announced with a best-effort contact_added activity.
"""

from __future__ import annotations

import re
from typing import Any

import structlog

from src.crm.contacts.schemas import Contact, ContactCreate, ContactUpdate
from src.crm.core.exceptions import NotFoundError, ValidationError
from src.crm.deals.activity import ActivityLogger
from src.crm.deals.schemas import ActivityType
from src.crm.records.store import RecordKind, RecordStore, SortSpec

logger = structlog.get_logger(__name__)

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")


def validate_contact_fields(fields: dict[str, Any], partial: bool = False) -> dict[str, str]:
    """Check contact input and return one message per invalid field."""
    errors: dict[str, str] = {}

    if not partial or "name" in fields:
        name = fields.get("name")
        if not name or not name.strip():
            errors["name"] = "Name is required"

    if not partial or "email" in fields:
        email = fields.get("email")
        if not email or not email.strip():
            errors["email"] = "Email is required"
        elif not EMAIL_PATTERN.fullmatch(email.strip()):
            errors["email"] = "Email is invalid"

    return errors


def _trimmed(fields: dict[str, Any]) -> dict[str, Any]:
    """Strip surrounding whitespace from name and email before they are stored."""
    return {
        k: v.strip() if k in ("name", "email") and isinstance(v, str) else v
        for k, v in fields.items()
    }


class ContactDirectory:
    """Owns contact create/update/delete and plain reads.

    Args:
        store: RecordStore holding the contacts collection.
        activity_logger: Optional sink for contact_added activities.
    """

    def __init__(
        self,
        store: RecordStore,
        activity_logger: ActivityLogger | None = None,
    ) -> None:
        self._store = store
        self._activity_logger = activity_logger

    async def get_all(self) -> list[Contact]:
        """All contacts ordered by name."""
        records = await self._store.query(
            RecordKind.CONTACTS,
            sort=[SortSpec(field="name"), SortSpec(field="id")],
        )
        return [Contact.model_validate(r) for r in records]

    async def find(self, contact_id: int) -> Contact | None:
        record = await self._store.get_by_id(RecordKind.CONTACTS, contact_id)
        if record is None:
            return None
        return Contact.model_validate(record)

    async def get_by_id(self, contact_id: int) -> Contact:
        contact = await self.find(contact_id)
        if contact is None:
            raise NotFoundError("Contact", contact_id)
        return contact

    async def search(self, term: str) -> list[Contact]:
        """Case-insensitive match on name, email or company."""
        contacts = await self.get_all()
        needle = term.strip().lower()
        if not needle:
            return contacts
        return [
            c for c in contacts
            if needle in c.name.lower()
            or needle in c.email.lower()
            or (c.company and needle in c.company.lower())
        ]

    async def count_companies(self) -> int:
        """Number of distinct non-empty companies across contacts."""
        contacts = await self.get_all()
        return len({c.company for c in contacts if c.company})

    async def create(self, data: ContactCreate) -> Contact:
        """Validate and persist a contact.

        Raises:
            ValidationError: If name is empty or email is missing/malformed.
        """
        fields = data.model_dump()
        errors = validate_contact_fields(fields)
        if errors:
            raise ValidationError(errors)

        record = await self._store.insert(RecordKind.CONTACTS, _trimmed(fields))
        contact = Contact.model_validate(record)
        logger.info("contact.created", contact_id=contact.id)

        if self._activity_logger is not None:
            try:
                await self._activity_logger.record(
                    None,
                    ActivityType.CONTACT_ADDED,
                    f'Contact "{contact.name}" was added',
                )
            except Exception as exc:
                logger.warning(
                    "contact.activity_log_failed",
                    contact_id=contact.id,
                    error=str(exc),
                    exc_info=True,
                )

        return contact

    async def update(self, contact_id: int, data: ContactUpdate) -> Contact:
        """Merge only the fields the caller set.

        Raises:
            NotFoundError: If contact_id does not resolve.
            ValidationError: If a provided name or email is invalid.
        """
        await self.get_by_id(contact_id)

        changes = data.model_dump(exclude_unset=True)
        errors = validate_contact_fields(changes, partial=True)
        if errors:
            raise ValidationError(errors)

        record = await self._store.patch(RecordKind.CONTACTS, contact_id, _trimmed(changes))
        if record is None:
            raise NotFoundError("Contact", contact_id)
        logger.info("contact.updated", contact_id=contact_id, fields=sorted(changes))
        return Contact.model_validate(record)

    async def delete(self, contact_id: int) -> None:
        """Remove a contact. Deals referencing it are left untouched.

        Raises:
            NotFoundError: If contact_id does not resolve.
        """
        removed = await self._store.remove(RecordKind.CONTACTS, contact_id)
        if not removed:
            raise NotFoundError("Contact", contact_id)
        logger.info("contact.deleted", contact_id=contact_id)
