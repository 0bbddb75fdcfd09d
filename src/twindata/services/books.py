from typing import Any, ClassVar

from twindata.errors import ErrorKind
from twindata.models.base import new_id, utc_now
from twindata.models.book import BookMain, BookMainDocument
from twindata.models.query import DocumentQuery
from twindata.models.results import Result
from twindata.services.document_store import ORDER_BY_CREATED
from twindata.services.repository import TenantRepository


class BookRepository(TenantRepository[BookMainDocument]):
    """Books owned by a twin, stored as ``BookMainDocument`` envelopes.

    Creating a book publishes a ``record_created`` event; the books search
    index consumes it from the outbox instead of being called inline.
    """

    container: ClassVar[str] = "TwinBooks"

    def to_wire(self, entity: BookMainDocument) -> dict[str, Any]:
        return entity.to_wire()

    def from_wire(self, body: dict[str, Any]) -> BookMainDocument:
        return BookMainDocument.from_wire(body)

    def with_id(self, entity: BookMainDocument, item_id: str) -> BookMainDocument:
        book = entity.book_main_data.model_copy(update={"id": item_id})
        return entity.model_copy(update={"id": item_id, "book_main_data": book})

    def prepare_update(self, current: BookMainDocument, incoming: BookMainDocument) -> BookMainDocument:
        now = utc_now()
        book = incoming.book_main_data.model_copy(
            update={"created_at": current.book_main_data.created_at, "updated_at": now}
        )
        return incoming.model_copy(update={"created_at": current.created_at, "updated_at": now, "book_main_data": book})

    async def create_book_main(self, book: BookMain, twin_id: str) -> Result[str]:
        now = utc_now()
        book_id = book.id or new_id()
        envelope = BookMainDocument(
            id=book_id,
            twin_id=twin_id,
            book_main_data=book.model_copy(update={"id": book_id, "created_at": now, "updated_at": now}),
            created_at=now,
            updated_at=now,
        )
        return await self.create(envelope)

    async def get_book_mains_by_twin_id(self, twin_id: str) -> Result[list[BookMain]]:
        """Return the twin's books, newest first."""
        result = await self.get_all_by_tenant(twin_id, DocumentQuery(order_by=ORDER_BY_CREATED, descending=True))
        if not result:
            return result
        return Result.success([envelope.book_main_data for envelope in result.value or []])

    async def get_book_main_by_id(self, book_id: str, twin_id: str) -> Result[BookMain]:
        result = await self.get_by_id(book_id, twin_id)
        if not result:
            return result
        return Result.success(result.unwrap().book_main_data)

    async def update_book_main(self, book: BookMain, twin_id: str) -> Result[BookMain]:
        if not book.id:
            return Result.failure(ErrorKind.INVALID_INPUT, "book id is required to update a book")
        now = utc_now()
        envelope = BookMainDocument(
            id=book.id,
            twin_id=twin_id,
            book_main_data=book.model_copy(update={"updated_at": now}),
            created_at=now,
            updated_at=now,
        )
        result = await self.update(envelope)
        if not result:
            return result
        return Result.success(result.unwrap().book_main_data)

    async def delete_book_main(self, book_id: str, twin_id: str) -> Result[None]:
        return await self.delete(book_id, twin_id)


__all__ = ["BookRepository"]
