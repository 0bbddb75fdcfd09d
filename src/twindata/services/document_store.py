"""Partitioned JSON document store backed by SQLite (or any async SQLAlchemy URL).

Uses SQLAlchemy's native async support with aiosqlite for non-blocking
database operations. Every operation is scoped to one container and one twin
partition; there is no way to address a document without its partition key.
"""

from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict
from sqlalchemy import String, func, or_, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import SQLModel, col

from twindata.errors import DocumentConflictError, InvalidInputError
from twindata.models.base import ensure_utc, utc_now
from twindata.models.enums import FilterOperator
from twindata.models.query import DocumentQuery, FieldFilter
from twindata.models.tables import DocumentRecord

ORDER_BY_CREATED = "_created_at"
ORDER_BY_UPDATED = "_updated_at"


class StoredDocument(BaseModel):
    """A document body together with its address and store timestamps."""

    container: str
    twin_id: str
    id: str
    body: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(frozen=True)


class DocumentStore:
    """Stores JSON documents in named containers partitioned by twin id.

    Accepts an AsyncEngine via dependency injection to support both
    persistent and in-memory databases for testing.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._engine = engine
        self._logger = logger or structlog.get_logger(__name__)

    async def initialize_schema(self) -> None:
        """Create database tables if they don't exist."""
        async with self._engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        self._logger.info("document_store_initialized")

    async def create_item(self, container: str, twin_id: str, item_id: str, body: dict[str, Any]) -> StoredDocument:
        """Insert a new document.

        Raises:
            DocumentConflictError: If a document with the same key exists.
            InvalidInputError: If any part of the key is empty.
        """
        _require_key(container, twin_id, item_id)
        now = utc_now()
        record = DocumentRecord(
            container=container,
            twin_id=twin_id,
            id=item_id,
            body=body,
            created_at=now,
            updated_at=now,
        )
        async with AsyncSession(self._engine, expire_on_commit=False) as session:
            existing = await session.get(DocumentRecord, _key(container, twin_id, item_id))
            if existing is not None:
                raise DocumentConflictError(container, item_id, twin_id)
            session.add(record)
            await session.commit()
            stored = self._record_to_document(record)
        self._logger.debug("document_created", container=container, twin_id=twin_id, item_id=item_id)
        return stored

    async def read_item(self, container: str, item_id: str, twin_id: str) -> StoredDocument | None:
        """Point lookup by key and partition.

        Returns:
            The stored document, or None when absent.
        """
        _require_key(container, twin_id, item_id)
        async with AsyncSession(self._engine, expire_on_commit=False) as session:
            record = await session.get(DocumentRecord, _key(container, twin_id, item_id))
            if record is None:
                return None
            return self._record_to_document(record)

    async def upsert_item(self, container: str, twin_id: str, item_id: str, body: dict[str, Any]) -> StoredDocument:
        """Replace the document body, inserting it when absent.

        The original ``created_at`` is kept on replacement.
        """
        _require_key(container, twin_id, item_id)
        now = utc_now()
        async with AsyncSession(self._engine, expire_on_commit=False) as session:
            record = await session.get(DocumentRecord, _key(container, twin_id, item_id))
            if record is None:
                record = DocumentRecord(
                    container=container,
                    twin_id=twin_id,
                    id=item_id,
                    body=body,
                    created_at=now,
                    updated_at=now,
                )
                session.add(record)
            else:
                record.body = body
                record.updated_at = now
            await session.commit()
            stored = self._record_to_document(record)
        self._logger.debug("document_upserted", container=container, twin_id=twin_id, item_id=item_id)
        return stored

    async def delete_item(self, container: str, item_id: str, twin_id: str) -> bool:
        """Delete a document.

        Returns:
            True if the document was deleted, False if not found.
        """
        _require_key(container, twin_id, item_id)
        async with AsyncSession(self._engine, expire_on_commit=False) as session:
            record = await session.get(DocumentRecord, _key(container, twin_id, item_id))
            if record is None:
                return False
            await session.delete(record)
            await session.commit()
        self._logger.debug("document_deleted", container=container, twin_id=twin_id, item_id=item_id)
        return True

    async def query_items(
        self, container: str, twin_id: str, query: DocumentQuery | None = None
    ) -> list[StoredDocument]:
        """Return the partition's documents matching ``query``.

        Args:
            container: Container name.
            twin_id: Partition key; always applied.
            query: Filters, text match, ordering and paging.

        Returns:
            Matching documents in the requested order.
        """
        query = query or DocumentQuery()
        statement = select(DocumentRecord).where(*self._conditions(container, twin_id, query))
        statement = statement.order_by(*self._ordering(query))
        if query.offset:
            statement = statement.offset(query.offset)
        if query.limit is not None:
            statement = statement.limit(query.limit)

        async with AsyncSession(self._engine, expire_on_commit=False) as session:
            result = await session.execute(statement)
            records = result.scalars().all()
            return [self._record_to_document(record) for record in records]

    async def count_items(self, container: str, twin_id: str, query: DocumentQuery | None = None) -> int:
        query = query or DocumentQuery()
        statement = select(func.count()).select_from(DocumentRecord).where(*self._conditions(container, twin_id, query))
        async with AsyncSession(self._engine, expire_on_commit=False) as session:
            result = await session.execute(statement)
            return int(result.scalar_one())

    def _conditions(self, container: str, twin_id: str, query: DocumentQuery) -> list[ColumnElement[bool]]:
        if not container or not twin_id:
            raise InvalidInputError("container and twin_id are required")
        conditions: list[ColumnElement[bool]] = [
            col(DocumentRecord.container) == container,
            col(DocumentRecord.twin_id) == twin_id,
        ]
        conditions.extend(_filter_condition(item) for item in query.filters)
        if query.text is not None:
            term = query.text.term.lower()
            conditions.append(
                or_(*(func.lower(_body_field(name).as_string(), type_=String).contains(term, autoescape=True)
                      for name in query.text.fields))
            )
        return conditions

    def _ordering(self, query: DocumentQuery) -> list[Any]:
        if query.order_by == ORDER_BY_UPDATED:
            primary: Any = col(DocumentRecord.updated_at)
        elif query.order_by is None or query.order_by == ORDER_BY_CREATED:
            primary = col(DocumentRecord.created_at)
        else:
            primary = _body_field(query.order_by).as_string()
        if query.descending:
            return [primary.desc(), col(DocumentRecord.id).desc()]
        return [primary.asc(), col(DocumentRecord.id).asc()]

    def _record_to_document(self, record: DocumentRecord) -> StoredDocument:
        """Convert a SQLModel record to a StoredDocument.

        SQLite doesn't preserve timezone info, so we restore UTC timezone.
        """
        return StoredDocument(
            container=record.container,
            twin_id=record.twin_id,
            id=record.id,
            body=dict(record.body or {}),
            created_at=ensure_utc(record.created_at),
            updated_at=ensure_utc(record.updated_at),
        )


def _key(container: str, twin_id: str, item_id: str) -> dict[str, str]:
    return {"container": container, "twin_id": twin_id, "id": item_id}


def _require_key(container: str, twin_id: str, item_id: str) -> None:
    missing = [name for name, value in (("container", container), ("twin_id", twin_id), ("id", item_id)) if not value]
    if missing:
        raise InvalidInputError(f"missing document key parts: {', '.join(missing)}")


def _body_field(name: str) -> Any:
    return col(DocumentRecord.body)[name]


def _filter_condition(item: FieldFilter) -> ColumnElement[bool]:
    field = _body_field(item.field)
    value = item.value

    if item.op == FilterOperator.CONTAINS:
        return func.lower(field.as_string(), type_=String).contains(str(value).lower(), autoescape=True)

    if isinstance(value, bool):
        expression, value = field.as_boolean(), value
    elif isinstance(value, datetime):
        # Timestamps are stored as ISO 8601 strings in UTC, which sort lexically.
        expression, value = field.as_string(), ensure_utc(value).isoformat()
    elif isinstance(value, int) and item.op == FilterOperator.EQ:
        expression = field.as_integer()
    elif isinstance(value, (int, float)):
        expression = field.as_float()
    else:
        expression = field.as_string()

    if item.op == FilterOperator.GTE:
        return expression >= value
    if item.op == FilterOperator.LTE:
        return expression <= value
    return expression == value


def create_async_engine_from_path(db_path: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine for the given database path.

    Args:
        db_path: Path to SQLite database file, or ":memory:" for in-memory.

    Returns:
        AsyncEngine instance configured for aiosqlite.
    """
    if db_path == ":memory:":
        url = "sqlite+aiosqlite:///:memory:"
    else:
        url = f"sqlite+aiosqlite:///{db_path}"
    return create_async_engine(url)


def create_async_engine_from_url(database_url: str) -> AsyncEngine:
    """Create an async engine from a full SQLAlchemy URL such as ``sqlite+aiosqlite:///twindata.db``."""
    return create_async_engine(database_url)


__all__ = [
    "DocumentStore",
    "ORDER_BY_CREATED",
    "ORDER_BY_UPDATED",
    "StoredDocument",
    "create_async_engine_from_path",
    "create_async_engine_from_url",
]
