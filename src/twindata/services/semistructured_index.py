"""Search index of plain-text reports extracted from semistructured files."""

import asyncio
from typing import Any

import chromadb
import structlog

from twindata.errors import ErrorKind
from twindata.models.enums import SearchMode
from twindata.models.results import Result
from twindata.models.search import (
    IndexDefinition,
    IndexField,
    IndexInfo,
    SearchHit,
    SearchRequest,
    SemanticConfiguration,
)
from twindata.models.semistructured import (
    BatchUploadResult,
    SemistructuredDocument,
    SemistructuredSearchDocument,
    SemistructuredSearchOptions,
    UploadResult,
)
from twindata.services.embeddings import Embedder
from twindata.services.search_index import SearchIndex

SEMISTRUCTURED_INDEX_NAME = "semistructured-documents-index"
MIN_NEAREST_NEIGHBOURS = 50


def semistructured_index_definition(
    dimensions: int = 1536, name: str = SEMISTRUCTURED_INDEX_NAME
) -> IndexDefinition:
    return IndexDefinition(
        name=name,
        fields=[
            IndexField(name="id", key=True, filterable=True, sortable=True),
            IndexField(name="twinId", filterable=True, facetable=True, sortable=True, searchable=True),
            IndexField(name="documentType", filterable=True, facetable=True, searchable=True),
            IndexField(name="fileName", filterable=True, sortable=True, searchable=True),
            IndexField(name="processedAt", type="datetime", filterable=True, sortable=True, facetable=True),
            IndexField(name="reporteTextoPlano", searchable=True),
            IndexField(name="reporteTextoPlanoVector", type="vector"),
            IndexField(name="filePath", filterable=True, sortable=True, searchable=True),
            IndexField(name="containerName", filterable=True, facetable=True, searchable=True),
            IndexField(name="fileSize", type="int", filterable=True, sortable=True, facetable=True),
            IndexField(name="mimeType", filterable=True, facetable=True, searchable=True),
            IndexField(name="processingStatus", filterable=True, facetable=True, searchable=True),
            IndexField(name="metadata", searchable=True),
            IndexField(name="metadataFields"),
        ],
        vector_field="reporteTextoPlanoVector",
        vector_dimensions=dimensions,
        vector_profile="semistructured-vector-profile",
        semantic=SemanticConfiguration(
            name="semistructured-semantic-config",
            title_field="fileName",
            content_fields=["reporteTextoPlano"],
            keyword_fields=["documentType", "twinId"],
        ),
    )


def _to_index_document(document: SemistructuredDocument) -> dict[str, Any]:
    return {
        "id": document.id,
        "twinId": document.twin_id,
        "documentType": document.document_type,
        "fileName": document.file_name,
        "processedAt": document.processed_at,
        "reporteTextoPlano": document.reporte_texto_plano,
        "filePath": document.file_path,
        "containerName": document.container_name,
        "fileSize": document.file_size,
        "mimeType": document.mime_type,
        "processingStatus": document.processing_status,
        "metadata": document.metadata_text() or None,
        "metadataFields": document.metadata or None,
    }


def _from_index_document(data: dict[str, Any]) -> SemistructuredDocument:
    return SemistructuredDocument(
        id=data.get("id", ""),
        twin_id=data.get("twinId", ""),
        document_type=data.get("documentType", ""),
        file_name=data.get("fileName", ""),
        processed_at=data.get("processedAt"),
        reporte_texto_plano=data.get("reporteTextoPlano", ""),
        file_path=data.get("filePath"),
        container_name=data.get("containerName"),
        file_size=data.get("fileSize"),
        mime_type=data.get("mimeType"),
        processing_status=data.get("processingStatus"),
        metadata=data.get("metadataFields") or {},
    )


def _search_document(hit: SearchHit) -> SemistructuredSearchDocument:
    return SemistructuredSearchDocument(
        score=hit.score,
        reranker_score=hit.reranker_score,
        document=_from_index_document(hit.document),
        highlights=[caption for caption in hit.captions if caption],
    )


class SemistructuredIndex(SearchIndex):
    def __init__(
        self,
        client: chromadb.ClientAPI,
        embedder: Embedder | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
        dimensions: int = 1536,
        name: str = SEMISTRUCTURED_INDEX_NAME,
        max_embedding_chars: int = 8000,
        upload_concurrency: int = 5,
    ) -> None:
        definition = semistructured_index_definition(dimensions, name)
        super().__init__(client, definition, embedder=embedder, logger=logger)
        self._max_embedding_chars = max_embedding_chars
        self._upload_concurrency = upload_concurrency

    async def create_index(self) -> Result[IndexInfo]:
        return await self.create_or_update_index()

    async def upload_document(self, document: SemistructuredDocument) -> Result[UploadResult]:
        """Embed the plain-text report and merge the document into the index.

        The returned Result always carries an ``UploadResult``, failed or not.
        """
        if not document.is_valid():
            self._logger.warning("semistructured_document_invalid", document_id=document.id, twin_id=document.twin_id)
            error = "Document validation failed - missing required fields"
            return Result.failure(
                ErrorKind.INVALID_INPUT, error, UploadResult(success=False, document_id=document.id, error=error)
            )

        index_document = _to_index_document(document)
        vector = await self.embed_text(document.reporte_texto_plano[: self._max_embedding_chars])
        if vector is not None:
            index_document["reporteTextoPlanoVector"] = vector

        result = await self.merge_or_upload([index_document], replace=True)
        outcome = result.value[0] if result.value else None
        if not result or outcome is None or not outcome.succeeded:
            error = f"Error uploading document: {outcome.error if outcome else result.error}"
            self._logger.error("semistructured_document_upload_failed", document_id=document.id, error=error)
            return Result.failure(
                result.error_kind or ErrorKind.PERMANENT,
                error,
                UploadResult(success=False, document_id=document.id, error=error),
            )

        self._logger.info(
            "semistructured_document_uploaded",
            document_id=document.id,
            twin_id=document.twin_id,
            file_name=document.file_name,
            has_vector=vector is not None,
        )
        return Result.success(
            UploadResult(
                success=True,
                document_id=document.id,
                message=f"Document '{document.file_name}' uploaded successfully to semistructured index",
                index_name=self.name,
                has_vector_embeddings=vector is not None,
                vector_dimensions=len(vector) if vector else 0,
            )
        )

    async def upload_batch(self, documents: list[SemistructuredDocument]) -> Result[BatchUploadResult]:
        """Upload documents with a bounded number in flight.

        ``successful_uploads + failed_uploads`` always equals ``total_documents``.
        """
        if not documents:
            return Result.success(
                BatchUploadResult(
                    success=True, total_documents=0, successful_uploads=0, failed_uploads=0, message="No documents"
                )
            )

        semaphore = asyncio.Semaphore(self._upload_concurrency)

        async def upload(document: SemistructuredDocument) -> UploadResult:
            async with semaphore:
                result = await self.upload_document(document)
            return result.value or UploadResult(success=False, document_id=document.id, error=result.error)

        results = await asyncio.gather(*(upload(document) for document in documents))
        successful = sum(1 for result in results if result.success)
        failed = len(results) - successful
        self._logger.info(
            "semistructured_batch_uploaded", total=len(results), successful=successful, failed=failed
        )
        return Result.success(
            BatchUploadResult(
                success=failed == 0,
                total_documents=len(results),
                successful_uploads=successful,
                failed_uploads=failed,
                results=list(results),
                message=f"Uploaded {successful}/{len(results)} documents",
            )
        )

    async def search(
        self, query: str | None = None, options: SemistructuredSearchOptions | None = None
    ) -> Result[list[SemistructuredSearchDocument]]:
        """Hybrid semantic and vector search, optionally limited to one twin."""
        options = options or SemistructuredSearchOptions()
        request = SearchRequest(
            text=query or "*",
            mode=SearchMode.HYBRID,
            semantic_rerank=True,
            equals={"twinId": options.twin_id} if options.twin_id else {},
            top=options.size,
            page=options.page,
            knn=max(options.size, MIN_NEAREST_NEIGHBOURS),
        )
        result = await super().search(request)
        if not result:
            return Result.failure(result.error_kind or ErrorKind.PERMANENT, result.error or "search failed", [])
        documents = [_search_document(hit) for hit in result.unwrap().hits]
        self._logger.info("semistructured_search_completed", twin_id=options.twin_id, count=len(documents))
        return Result.success(documents)

    async def delete_document(self, document_id: str) -> Result[None]:
        result = await self.delete_documents([document_id])
        if not result:
            return Result.failure(result.error_kind or ErrorKind.PERMANENT, result.error or "delete failed")
        if result.unwrap() == 0:
            return Result.failure(ErrorKind.NOT_FOUND, f"document '{document_id}' is not indexed")
        self._logger.info("semistructured_document_deleted", document_id=document_id)
        return Result.success(None)


__all__ = ["SEMISTRUCTURED_INDEX_NAME", "SemistructuredIndex", "semistructured_index_definition"]
