"""Search index of the books in a twin's library.

Kept in sync with the books container through record events: the factory
subscribes ``handle_record_event`` to the ``TwinBooks`` outbox channel.
"""

import re
from typing import Any

import chromadb
import structlog

from twindata.errors import ErrorKind, InvalidInputError, SearchIndexError
from twindata.models.base import utc_now
from twindata.models.book import BookMain, BookMainDocument
from twindata.models.enums import RecordEventType, SearchMode
from twindata.models.events import RecordEvent
from twindata.models.results import Result
from twindata.models.search import (
    IndexDefinition,
    IndexField,
    IndexInfo,
    SearchPage,
    SearchRequest,
    SemanticConfiguration,
)
from twindata.services.embeddings import Embedder
from twindata.services.search_index import SearchIndex

BOOKS_INDEX_NAME = "books-literature-index"

_INVALID_KEY_CHARS = re.compile(r"[^A-Za-z0-9_\-=]")


def books_index_definition(dimensions: int = 1536, name: str = BOOKS_INDEX_NAME) -> IndexDefinition:
    return IndexDefinition(
        name=name,
        fields=[
            IndexField(name="id", key=True, filterable=True),
            IndexField(name="Success", type="boolean", filterable=True, facetable=True),
            IndexField(name="BookID", filterable=True, searchable=True),
            IndexField(name="TwinID", filterable=True, searchable=True),
            IndexField(name="TituloLibro", sortable=True, searchable=True),
            IndexField(name="Author", filterable=True, facetable=True, searchable=True),
            IndexField(name="ISBN", filterable=True, searchable=True),
            IndexField(name="DescripcionAI", searchable=True),
            IndexField(name="detailHTMLReport", searchable=True),
            IndexField(name="ProcessingTimeMS", type="double", filterable=True, sortable=True),
            IndexField(name="AnalyzedAt", type="datetime", filterable=True, sortable=True),
            IndexField(name="Genero", filterable=True, facetable=True, searchable=True),
            IndexField(name="contenidoCompleto", searchable=True),
            IndexField(name="contenidoVector", type="vector"),
        ],
        vector_field="contenidoVector",
        vector_dimensions=dimensions,
        vector_profile="books-vector-profile",
        semantic=SemanticConfiguration(
            name="books-semantic-config",
            title_field="TituloLibro",
            content_fields=["DescripcionAI", "detailHTMLReport", "contenidoCompleto"],
            keyword_fields=["Author", "ISBN", "Genero"],
        ),
    )


def book_search_id(book_id: str, twin_id: str) -> str:
    return _INVALID_KEY_CHARS.sub("_", f"book-{book_id}-{twin_id}")


def build_book_content(book: BookMain) -> str:
    lines = [
        "INFORMACIÓN BÁSICA DEL LIBRO:",
        f"Título: {book.titulo}",
        f"Autor: {book.autor or 'Autor desconocido'}",
        f"Editorial: {book.editorial or 'Sin editorial'}",
        f"Año: {book.anio_publicacion or ''}",
        f"ISBN: {book.isbn or 'Sin ISBN'}",
        f"Género: {book.genero or 'Sin género'}",
        "",
        "DESCRIPCIÓN:",
        book.descripcion or "Sin descripción",
        "",
    ]
    if book.datos_ia is not None:
        lines += ["ANÁLISIS AI:", book.datos_ia.descripcion_ai or "Sin análisis AI", ""]
        technical = (book.datos_ia.model_extra or {}).get("INFORMACIÓN_TÉCNICA")
        if isinstance(technical, dict):
            lines.append("INFORMACIÓN TÉCNICA:")
            lines += [f"{key.replace('_', ' ')}: {value}" for key, value in technical.items()]
            lines.append("")
    if book.tags:
        lines += ["TAGS:", ", ".join(book.tags), ""]
    if book.opiniones:
        lines += ["OPINIONES:", book.opiniones]
    return "\n".join(lines)


class BooksIndex(SearchIndex):
    def __init__(
        self,
        client: chromadb.ClientAPI,
        embedder: Embedder | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
        dimensions: int = 1536,
        name: str = BOOKS_INDEX_NAME,
    ) -> None:
        super().__init__(client, books_index_definition(dimensions, name), embedder=embedder, logger=logger)

    async def create_index(self) -> Result[IndexInfo]:
        return await self.create_or_update_index()

    async def index_book_main(self, book: BookMain, twin_id: str, processing_time_ms: float = 0.0) -> Result[str]:
        """Index one book; re-indexing the same book for the same twin updates it."""
        if not book.id or not twin_id:
            return Result.failure(ErrorKind.INVALID_INPUT, "book id and twin_id are required")

        content = build_book_content(book)
        analysis = book.datos_ia
        description = (analysis.descripcion_ai if analysis else None) or book.descripcion or "Sin descripción"
        report = (analysis.detail_html_report if analysis else None) or "<div>Reporte no disponible</div>"
        document: dict[str, Any] = {
            "id": book_search_id(book.id, twin_id),
            "Success": True,
            "BookID": book.id,
            "TwinID": twin_id,
            "TituloLibro": book.titulo,
            "Author": book.autor or "Autor desconocido",
            "ISBN": book.isbn or "Sin ISBN",
            "DescripcionAI": description,
            "detailHTMLReport": report,
            "ProcessingTimeMS": processing_time_ms,
            "AnalyzedAt": utc_now(),
            "Genero": book.genero or "Sin género",
            "contenidoCompleto": content,
        }
        vector = await self.embed_text(content)
        if vector is not None:
            document["contenidoVector"] = vector

        result = await self.merge_or_upload([document], replace=True)
        if not result:
            return Result.failure(result.error_kind or ErrorKind.PERMANENT, result.error or "indexing failed")
        outcome = result.unwrap()[0]
        if not outcome.succeeded:
            return Result.failure(ErrorKind.PERMANENT, outcome.error or "indexing failed")
        self._logger.info("book_indexed", book_id=book.id, twin_id=twin_id, document_id=outcome.key)
        return Result.success(outcome.key)

    async def search(self, query: str, twin_id: str | None = None, top: int = 10) -> Result[SearchPage]:
        request = SearchRequest(
            text=query,
            mode=SearchMode.SEMANTIC,
            equals={"TwinID": twin_id} if twin_id else {},
            top=top,
        )
        result = await super().search(request)
        if result:
            self._logger.info("books_search_completed", twin_id=twin_id, count=len(result.unwrap().hits))
        return result

    async def delete_book(self, book_id: str) -> Result[int]:
        found = await self.find_ids({"BookID": book_id})
        if not found:
            return Result.failure(found.error_kind or ErrorKind.PERMANENT, found.error or "lookup failed", 0)
        if not found.unwrap():
            return Result.failure(ErrorKind.NOT_FOUND, f"book '{book_id}' is not indexed", 0)
        result = await self.delete_documents(found.unwrap())
        if result:
            self._logger.info("book_deleted_from_index", book_id=book_id, count=result.unwrap())
        return result

    async def handle_record_event(self, event: RecordEvent) -> None:
        """Outbox handler for the books container.

        Raises:
            InvalidInputError: If the event payload is not a stored book.
            SearchIndexError: If indexing failed, so the outbox retries.
        """
        if event.event_type == RecordEventType.DELETED:
            result = await self.delete_book(event.record_id)
            if not result and not result.not_found:
                raise SearchIndexError(result.error or "delete failed")
            return

        try:
            stored = BookMainDocument.from_wire(event.payload)
        except ValueError as error:
            raise InvalidInputError(f"event {event.event_id} does not carry a book: {error}") from error
        result = await self.index_book_main(stored.book_main_data, event.twin_id)
        if not result:
            raise SearchIndexError(result.error or "indexing failed")


__all__ = ["BOOKS_INDEX_NAME", "BooksIndex", "book_search_id", "books_index_definition", "build_book_content"]
