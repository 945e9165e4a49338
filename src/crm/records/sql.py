"""SQL record store -- async SQLAlchemy backend for the RecordStore contract.

Uses the session_factory callable pattern: each operation opens one session
from the factory, runs its statement(s) and commits. SQLAlchemy errors are
wrapped in StoreError so callers only see the core's error types.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator, Callable
from contextlib import aclosing, asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.crm.core.database import Base
from src.crm.core.exceptions import StoreError
from src.crm.records.models import ActivityModel, ContactModel, DealModel
from src.crm.records.store import (
    TIMESTAMPED_KINDS,
    RecordKind,
    RecordStore,
    SortSpec,
    plain_value,
)

logger = structlog.get_logger(__name__)

_MODELS: dict[RecordKind, type[Base]] = {
    RecordKind.CONTACTS: ContactModel,
    RecordKind.DEALS: DealModel,
    RecordKind.ACTIVITIES: ActivityModel,
}


def _model_to_record(model: Base) -> dict[str, Any]:
    """Convert a mapped row into a plain record dict."""
    return {
        column.key: getattr(model, column.key)
        for column in model.__table__.columns
    }


def _column(model_cls: type[Base], field: str) -> Any:
    if field not in model_cls.__table__.columns:
        raise StoreError(f"Unknown field for {model_cls.__tablename__}: {field}")
    return getattr(model_cls, field)


def _prepare_values(model_cls: type[Base], fields: dict[str, Any]) -> dict[str, Any]:
    values = {k: plain_value(v) for k, v in fields.items() if k != "id"}
    for key in values:
        _column(model_cls, key)
    return values


class SqlRecordStore(RecordStore):
    """RecordStore backed by a relational database via SQLAlchemy.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Take one session from the factory and close the factory afterwards."""
        async with aclosing(self._session_factory()) as sessions:
            async for session in sessions:
                yield session
                return
        raise StoreError("Session factory yielded no session")

    async def query(
        self,
        kind: RecordKind,
        filters: dict[str, Any] | None = None,
        sort: list[SortSpec] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        model_cls = _MODELS[kind]
        stmt = select(model_cls)
        for field, value in (filters or {}).items():
            stmt = stmt.where(_column(model_cls, field) == plain_value(value))
        for spec in sort or []:
            col = _column(model_cls, spec.field)
            stmt = stmt.order_by(col.desc() if spec.descending else col.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            async with self._session() as session:
                result = await session.execute(stmt)
                return [_model_to_record(m) for m in result.scalars().all()]
        except SQLAlchemyError as exc:
            logger.error("sql_store.query_failed", kind=kind.value, error=str(exc))
            raise StoreError(f"Query on {kind.value} failed: {exc}") from exc

    async def get_by_id(self, kind: RecordKind, record_id: int) -> dict[str, Any] | None:
        model_cls = _MODELS[kind]
        try:
            async with self._session() as session:
                model = await session.get(model_cls, record_id)
                if model is None:
                    return None
                return _model_to_record(model)
        except SQLAlchemyError as exc:
            logger.error(
                "sql_store.get_failed", kind=kind.value, record_id=record_id, error=str(exc)
            )
            raise StoreError(f"Read of {kind.value} {record_id} failed: {exc}") from exc

    async def insert(self, kind: RecordKind, fields: dict[str, Any]) -> dict[str, Any]:
        model_cls = _MODELS[kind]
        values = _prepare_values(model_cls, fields)

        now = datetime.now(timezone.utc)
        if kind in TIMESTAMPED_KINDS:
            values["created_at"] = now
            values["updated_at"] = now
        else:
            values["timestamp"] = now

        try:
            async with self._session() as session:
                model = model_cls(**values)
                session.add(model)
                await session.commit()
                await session.refresh(model)
                logger.debug("sql_store.inserted", kind=kind.value, record_id=model.id)
                return _model_to_record(model)
        except SQLAlchemyError as exc:
            logger.error("sql_store.insert_failed", kind=kind.value, error=str(exc))
            raise StoreError(f"Insert into {kind.value} failed: {exc}") from exc

    async def patch(
        self, kind: RecordKind, record_id: int, fields: dict[str, Any]
    ) -> dict[str, Any] | None:
        model_cls = _MODELS[kind]
        values = _prepare_values(model_cls, fields)

        try:
            async with self._session() as session:
                model = await session.get(model_cls, record_id)
                if model is None:
                    return None
                for key, value in values.items():
                    setattr(model, key, value)
                if kind in TIMESTAMPED_KINDS:
                    model.updated_at = datetime.now(timezone.utc)
                await session.commit()
                await session.refresh(model)
                return _model_to_record(model)
        except SQLAlchemyError as exc:
            logger.error(
                "sql_store.patch_failed", kind=kind.value, record_id=record_id, error=str(exc)
            )
            raise StoreError(f"Update of {kind.value} {record_id} failed: {exc}") from exc

    async def remove(self, kind: RecordKind, record_id: int) -> bool:
        model_cls = _MODELS[kind]
        stmt = delete(model_cls).where(model_cls.id == record_id)
        try:
            async with self._session() as session:
                result = await session.execute(stmt)
                await session.commit()
                return result.rowcount > 0
        except SQLAlchemyError as exc:
            logger.error(
                "sql_store.remove_failed", kind=kind.value, record_id=record_id, error=str(exc)
            )
            raise StoreError(f"Delete of {kind.value} {record_id} failed: {exc}") from exc
