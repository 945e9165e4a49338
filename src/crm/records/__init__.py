"""Record store layer -- pluggable storage behind the CRM core.

Provides the RecordStore ABC with two implementations:
- InMemoryRecordStore: process-local dicts (development default, test fake)
- SqlRecordStore: async SQLAlchemy backend over the contacts/deals/activities tables
"""

from src.crm.records.memory import InMemoryRecordStore
from src.crm.records.store import RecordKind, RecordStore, SortSpec

__all__ = [
    "InMemoryRecordStore",
    "RecordKind",
    "RecordStore",
    "SortSpec",
]
