"""Shared fixtures for the CRM core tests.

Provides an in-memory record store with ActivityLogger,
DealLifecycleManager and ContactDirectory wired to it.
"""

from __future__ import annotations

import pytest

from src.crm.contacts.directory import ContactDirectory
from src.crm.deals.activity import ActivityLogger
from src.crm.deals.lifecycle import DealLifecycleManager
from src.crm.records.memory import InMemoryRecordStore


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def activity_logger(store) -> ActivityLogger:
    return ActivityLogger(store)


@pytest.fixture
def deal_manager(store, activity_logger) -> DealLifecycleManager:
    return DealLifecycleManager(store, activity_logger)


@pytest.fixture
def contact_directory(store) -> ContactDirectory:
    return ContactDirectory(store)
