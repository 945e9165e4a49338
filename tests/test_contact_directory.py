"""Tests for ContactDirectory -- validation, lookups, search and non-cascading delete."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.crm.contacts.directory import ContactDirectory, validate_contact_fields
from src.crm.contacts.schemas import ContactCreate, ContactUpdate
from src.crm.core.exceptions import NotFoundError, StoreError, ValidationError
from src.crm.deals.activity import ActivityLogger
from src.crm.deals.pipeline import UNKNOWN_CONTACT, contact_name_for
from src.crm.deals.schemas import DealCreate


def _make_contact_create(**overrides) -> ContactCreate:
    """Create a valid ContactCreate with sensible defaults."""
    defaults = {
        "name": "Alice Johnson",
        "email": "alice@acme.com",
        "company": "Acme Corp",
    }
    defaults.update(overrides)
    return ContactCreate(**defaults)


# ── Validation ──────────────────────────────────────────────────────────────


class TestValidation:
    def test_missing_name_and_email(self):
        errors = validate_contact_fields({"name": "", "email": ""})
        assert errors == {"name": "Name is required", "email": "Email is required"}

    @pytest.mark.parametrize("email", ["alice", "alice@acme", "alice @acme.com", "@acme"])
    def test_malformed_email(self, email):
        errors = validate_contact_fields({"name": "Alice", "email": email})
        assert errors == {"email": "Email is invalid"}

    def test_partial_skips_absent_fields(self):
        assert validate_contact_fields({"phone": "555-0100"}, partial=True) == {}


# ── CRUD ────────────────────────────────────────────────────────────────────


class TestCrud:
    @pytest.mark.asyncio
    async def test_create_and_get(self, contact_directory):
        contact = await contact_directory.create(_make_contact_create(phone="555-0100"))

        assert contact.id == 1
        assert contact.phone == "555-0100"
        assert (await contact_directory.get_by_id(contact.id)).email == "alice@acme.com"

    @pytest.mark.asyncio
    async def test_invalid_create_writes_nothing(self, contact_directory):
        with pytest.raises(ValidationError):
            await contact_directory.create(_make_contact_create(email="not-an-email"))
        assert await contact_directory.get_all() == []

    @pytest.mark.asyncio
    async def test_get_all_sorted_by_name(self, contact_directory):
        for name in ["Carol", "alice", "Bob"]:
            await contact_directory.create(_make_contact_create(name=name))

        names = [c.name for c in await contact_directory.get_all()]
        assert names == ["Bob", "Carol", "alice"]

    @pytest.mark.asyncio
    async def test_update_merges_only_set_fields(self, contact_directory):
        contact = await contact_directory.create(_make_contact_create())

        updated = await contact_directory.update(contact.id, ContactUpdate(company="Globex"))

        assert updated.company == "Globex"
        assert updated.name == "Alice Johnson"
        assert updated.email == "alice@acme.com"

    @pytest.mark.asyncio
    async def test_update_rejects_bad_email(self, contact_directory):
        contact = await contact_directory.create(_make_contact_create())
        with pytest.raises(ValidationError):
            await contact_directory.update(contact.id, ContactUpdate(email="nope"))

    @pytest.mark.asyncio
    async def test_create_reports_null_name_and_email(self, contact_directory):
        with pytest.raises(ValidationError) as exc_info:
            await contact_directory.create(_make_contact_create(name=None, email=None))
        assert exc_info.value.errors == {"name": "Name is required", "email": "Email is required"}

    @pytest.mark.asyncio
    async def test_create_stores_trimmed_name_and_email(self, contact_directory):
        contact = await contact_directory.create(
            _make_contact_create(name="  Alice Johnson ", email=" alice@acme.com ")
        )

        stored = await contact_directory.get_by_id(contact.id)
        assert stored.name == "Alice Johnson"
        assert stored.email == "alice@acme.com"

    @pytest.mark.asyncio
    async def test_update_stores_trimmed_email(self, contact_directory):
        contact = await contact_directory.create(_make_contact_create())

        updated = await contact_directory.update(
            contact.id, ContactUpdate(email=" alice.j@acme.com\t")
        )

        assert updated.email == "alice.j@acme.com"

    @pytest.mark.asyncio
    async def test_update_missing_contact_checked_before_validation(self, contact_directory):
        with pytest.raises(NotFoundError):
            await contact_directory.update(99, ContactUpdate(email="bad"))

    @pytest.mark.asyncio
    async def test_missing_contact(self, contact_directory):
        assert await contact_directory.find(5) is None
        with pytest.raises(NotFoundError):
            await contact_directory.get_by_id(5)
        with pytest.raises(NotFoundError):
            await contact_directory.update(5, ContactUpdate(name="X"))
        with pytest.raises(NotFoundError):
            await contact_directory.delete(5)


# ── Search ──────────────────────────────────────────────────────────────────


class TestSearch:
    @pytest.mark.asyncio
    async def test_search_name_email_company(self, contact_directory):
        await contact_directory.create(_make_contact_create())
        await contact_directory.create(
            _make_contact_create(name="Bob Smith", email="bob@globex.com", company="Globex")
        )

        assert [c.name for c in await contact_directory.search("alice")] == ["Alice Johnson"]
        assert [c.name for c in await contact_directory.search("GLOBEX")] == ["Bob Smith"]
        assert len(await contact_directory.search("")) == 2

    @pytest.mark.asyncio
    async def test_count_companies(self, contact_directory):
        await contact_directory.create(_make_contact_create())
        await contact_directory.create(_make_contact_create(name="Ann", company="Acme Corp"))
        await contact_directory.create(_make_contact_create(name="Bob", company="Globex"))
        await contact_directory.create(_make_contact_create(name="Eve", company=None))

        assert await contact_directory.count_companies() == 2


# ── Delete does not cascade ─────────────────────────────────────────────────


class TestDelete:
    @pytest.mark.asyncio
    async def test_deleted_contact_leaves_orphaned_deal(self, contact_directory, deal_manager):
        contact = await contact_directory.create(_make_contact_create())
        deal = await deal_manager.create(
            DealCreate(
                title="Acme Renewal",
                contact_id=contact.id,
                value=5000,
                expected_close_date="2025-01-01",
            )
        )

        await contact_directory.delete(contact.id)

        orphans = await deal_manager.list_by_contact(contact.id)
        assert [d.id for d in orphans] == [deal.id]
        contacts = await contact_directory.get_all()
        assert contact_name_for(contacts, deal.contact_id) == UNKNOWN_CONTACT


# ── contact_added activity ──────────────────────────────────────────────────


class TestContactAddedActivity:
    @pytest.mark.asyncio
    async def test_activity_recorded_when_logger_configured(self, store, activity_logger):
        directory = ContactDirectory(store, activity_logger=activity_logger)

        await directory.create(_make_contact_create())

        activities = await activity_logger.get_all()
        assert len(activities) == 1
        assert activities[0].type == "contact_added"
        assert activities[0].deal_id is None
        assert activities[0].description == 'Contact "Alice Johnson" was added'

    @pytest.mark.asyncio
    async def test_no_activity_without_logger(self, contact_directory, activity_logger):
        await contact_directory.create(_make_contact_create())
        assert await activity_logger.get_all() == []

    @pytest.mark.asyncio
    async def test_activity_failure_does_not_fail_create(self, store):
        failing = MagicMock(spec=ActivityLogger)
        failing.record = AsyncMock(side_effect=StoreError("down"))
        directory = ContactDirectory(store, activity_logger=failing)

        contact = await directory.create(_make_contact_create())

        assert (await directory.get_by_id(contact.id)).name == "Alice Johnson"
        failing.record.assert_awaited_once()
