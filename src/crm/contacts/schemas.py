"""Pydantic schemas for contacts."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class ContactCreate(BaseModel):
    """Input for creating a contact. Name and email are checked by the directory."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    notes: str | None = None


class ContactUpdate(BaseModel):
    """Partial update for a contact (all fields optional)."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    notes: str | None = None


class Contact(BaseModel):
    """A persisted contact."""

    id: int
    name: str
    email: str
    phone: str | None = None
    company: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
