"""Tenant-partitioned repository contract shared by every record type.

Each public method is a boundary: faults raised by the store or by model
validation are caught, logged with the operation, container, record id and
twin id, and returned as a failed ``Result`` whose ``error_kind`` tells the
caller whether retrying makes sense.
"""

from typing import Any, Awaitable, Callable, ClassVar, Generic, TypeVar

import structlog
from pydantic import BaseModel

from twindata.errors import DocumentNotFoundError, ErrorKind, InvalidInputError
from twindata.models.base import new_id, utc_now
from twindata.models.enums import RecordEventType
from twindata.models.events import RecordEvent
from twindata.models.query import DocumentQuery
from twindata.models.results import Result
from twindata.services.document_store import DocumentStore, StoredDocument
from twindata.services.outbox import RecordEventOutbox

E = TypeVar("E", bound=BaseModel)
V = TypeVar("V")

_QUIET_KINDS = frozenset({ErrorKind.NOT_FOUND, ErrorKind.INVALID_INPUT})


class TenantRepository(Generic[E]):
    """Create/read/update/delete/query for one container of ``E`` records.

    Subclasses set ``container`` and implement the wire mapping hooks.
    """

    container: ClassVar[str]

    def __init__(
        self,
        store: DocumentStore,
        outbox: RecordEventOutbox | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._store = store
        self._outbox = outbox
        self._logger = logger or structlog.get_logger(__name__)

    def to_wire(self, entity: E) -> dict[str, Any]:
        raise NotImplementedError

    def from_wire(self, body: dict[str, Any]) -> E:
        raise NotImplementedError

    def entity_id(self, entity: E) -> str | None:
        return getattr(entity, "id", None)

    def entity_twin_id(self, entity: E) -> str:
        return getattr(entity, "twin_id", "")

    def with_id(self, entity: E, item_id: str) -> E:
        return entity.model_copy(update={"id": item_id})

    def prepare_update(self, current: E, incoming: E) -> E:
        """Keep the stored creation time and stamp a new update time."""
        return incoming.model_copy(update={"created_at": getattr(current, "created_at", None), "updated_at": utc_now()})

    async def create(self, entity: E) -> Result[str]:
        """Persist a new record, assigning an id if it has none."""
        item_id = self.entity_id(entity) or new_id()
        twin_id = self.entity_twin_id(entity)

        async def action() -> str:
            if not twin_id:
                raise InvalidInputError("twin_id is required")
            prepared = self.with_id(entity, item_id)
            body = self.to_wire(prepared)
            await self._store.create_item(self.container, twin_id, item_id, body)
            self._publish(RecordEventType.CREATED, twin_id, item_id, body)
            return item_id

        result = await self._guard("create", action, item_id=item_id, twin_id=twin_id)
        if result:
            self._logger.info("record_created", container=self.container, item_id=item_id, twin_id=twin_id)
        return result

    async def get_by_id(self, item_id: str, twin_id: str) -> Result[E]:
        async def action() -> E:
            return await self._read(item_id, twin_id)

        return await self._guard("get_by_id", action, item_id=item_id, twin_id=twin_id)

    async def get_all_by_tenant(self, twin_id: str, query: DocumentQuery | None = None) -> Result[list[E]]:
        """List the tenant's records; a failed result still carries an empty list."""

        async def action() -> list[E]:
            documents = await self._store.query_items(self.container, twin_id, query)
            return self._parse_all(documents)

        return await self._guard("get_all_by_tenant", action, default=[], twin_id=twin_id)

    async def count(self, twin_id: str, query: DocumentQuery | None = None) -> Result[int]:
        async def action() -> int:
            return await self._store.count_items(self.container, twin_id, query)

        return await self._guard("count", action, default=0, twin_id=twin_id)

    async def update(self, entity: E) -> Result[E]:
        """Read the stored record, overlay the non-null fields of ``entity`` and write it back."""
        item_id = self.entity_id(entity)
        twin_id = self.entity_twin_id(entity)

        async def action() -> E:
            if not item_id or not twin_id:
                raise InvalidInputError("id and twin_id are required to update a record")
            current = await self._read(item_id, twin_id)
            incoming = self.prepare_update(current, entity)
            merged = dict(self.to_wire(current))
            merged.update({key: value for key, value in self.to_wire(incoming).items() if value is not None})
            updated = self.from_wire(merged)
            await self._store.upsert_item(self.container, twin_id, item_id, self.to_wire(updated))
            self._publish(RecordEventType.UPDATED, twin_id, item_id, merged)
            return updated

        return await self._guard("update", action, item_id=item_id, twin_id=twin_id)

    async def delete(self, item_id: str, twin_id: str) -> Result[None]:
        async def action() -> None:
            if not await self._store.delete_item(self.container, item_id, twin_id):
                raise DocumentNotFoundError(self.container, item_id, twin_id)
            self._publish(RecordEventType.DELETED, twin_id, item_id, {})

        result = await self._guard("delete", action, item_id=item_id, twin_id=twin_id)
        if result:
            self._logger.info("record_deleted", container=self.container, item_id=item_id, twin_id=twin_id)
        return result

    async def replace(self, entity: E) -> E:
        """Write ``entity`` as-is and publish an update event; callers handle errors."""
        item_id = self.entity_id(entity)
        twin_id = self.entity_twin_id(entity)
        if not item_id or not twin_id:
            raise InvalidInputError("id and twin_id are required")
        body = self.to_wire(entity)
        await self._store.upsert_item(self.container, twin_id, item_id, body)
        self._publish(RecordEventType.UPDATED, twin_id, item_id, body)
        return entity

    async def _read(self, item_id: str, twin_id: str) -> E:
        if not item_id or not twin_id:
            raise InvalidInputError("id and twin_id are required")
        document = await self._store.read_item(self.container, item_id, twin_id)
        if document is None:
            raise DocumentNotFoundError(self.container, item_id, twin_id)
        return self.from_wire(document.body)

    def _parse_all(self, documents: list[StoredDocument]) -> list[E]:
        entities: list[E] = []
        for document in documents:
            try:
                entities.append(self.from_wire(document.body))
            except (ValueError, TypeError, KeyError) as error:
                self._logger.warning(
                    "record_skipped_unreadable",
                    container=self.container,
                    item_id=document.id,
                    twin_id=document.twin_id,
                    error=str(error),
                )
        return entities

    def _publish(self, event_type: RecordEventType, twin_id: str, item_id: str, body: dict[str, Any]) -> None:
        if self._outbox is None:
            return
        self._outbox.publish(
            RecordEvent(
                event_type=event_type,
                container=self.container,
                twin_id=twin_id,
                record_id=item_id,
                payload=body,
            )
        )

    async def _guard(
        self,
        operation: str,
        action: Callable[[], Awaitable[V]],
        default: Any = None,
        **context: Any,
    ) -> Result[V]:
        try:
            value = await action()
        except Exception as error:
            result = Result.from_exception(error, value=default)
            log = self._logger.warning if result.error_kind in _QUIET_KINDS else self._logger.error
            log(
                f"{operation}_failed",
                container=self.container,
                error=result.error,
                error_kind=result.error_kind.value if result.error_kind else None,
                exc_info=result.error_kind not in _QUIET_KINDS,
                **context,
            )
            return result
        return Result.success(value)


__all__ = ["TenantRepository"]
