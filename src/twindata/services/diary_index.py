"""Search index of diary entry analyses.

Each diary entry owns at most one search document. Its key is derived from
the entry id, so re-indexing an entry updates the existing document instead
of adding another one.
"""

import re
from typing import Any

import chromadb
import structlog

from twindata.errors import ErrorKind
from twindata.models.base import parse_datetime, utc_now
from twindata.models.diary import DiaryAnalysis, DiarySearchHit, DiarySearchPage, DiarySearchQuery
from twindata.models.results import Result
from twindata.models.search import (
    IndexDefinition,
    IndexField,
    IndexInfo,
    RangeFilter,
    SearchHit,
    SearchRequest,
    SemanticConfiguration,
)
from twindata.services.embeddings import Embedder
from twindata.services.search_index import SearchIndex, strip_html

DIARY_INDEX_NAME = "diary-analysis-index"
DIARY_ID_PREFIX = "diary_analysis_"

_INVALID_KEY_CHARS = re.compile(r"[^A-Za-z0-9_\-=]")


def diary_index_definition(dimensions: int = 1536, name: str = DIARY_INDEX_NAME) -> IndexDefinition:
    return IndexDefinition(
        name=name,
        fields=[
            IndexField(name="id", key=True, filterable=True),
            IndexField(name="TwinID", filterable=True),
            IndexField(name="Success", type="boolean", filterable=True, facetable=True),
            IndexField(name="DiaryEntryId", filterable=True, searchable=True),
            IndexField(name="ExecutiveSummary", searchable=True),
            IndexField(name="DetailedHtmlReport", searchable=True),
            IndexField(name="ProcessingTimeMs", type="double", filterable=True, sortable=True),
            IndexField(name="AnalyzedAt", type="datetime", filterable=True, sortable=True),
            IndexField(name="ErrorMessage", searchable=True),
            IndexField(name="MetadataKeys", searchable=True),
            IndexField(name="MetadataValues", searchable=True),
            IndexField(name="contenidoCompleto", searchable=True),
            IndexField(name="contenidoVector", type="vector"),
        ],
        vector_field="contenidoVector",
        vector_dimensions=dimensions,
        vector_profile="diary-analysis-vector-profile",
        semantic=SemanticConfiguration(
            name="diary-analysis-semantic-config",
            title_field="ExecutiveSummary",
            content_fields=["DetailedHtmlReport", "contenidoCompleto"],
            keyword_fields=["DiaryEntryId", "MetadataKeys", "MetadataValues"],
        ),
    )


def diary_search_id(entry_id: str) -> str:
    """Deterministic search key for a diary entry, restricted to the key alphabet."""
    return DIARY_ID_PREFIX + _INVALID_KEY_CHARS.sub("_", entry_id)


def build_combined_content(analysis: DiaryAnalysis) -> str:
    """Text embedded for vector search and indexed as ``contenidoCompleto``."""
    parts: list[str] = []
    if analysis.executive_summary:
        parts.append(f"Resumen ejecutivo: {analysis.executive_summary}")
    if analysis.detailed_html_report:
        parts.append(f"Reporte detallado HTML: {strip_html(analysis.detailed_html_report)}")
    parts.append(f"Análisis exitoso: {'Sí' if analysis.success else 'No'}")
    parts.append(f"Tiempo de procesamiento: {analysis.processing_time_ms:.2f} ms")
    parts.append(f"Fecha de análisis: {analysis.analyzed_at:%Y-%m-%d %H:%M}")
    parts.append(f"Entry ID: {analysis.diary_entry_id}")
    if analysis.error_message:
        parts.append(f"Error: {analysis.error_message}")
    for key, value in analysis.metadata.items():
        parts.append(f"{key}: {value}")
    return ". ".join(parts)


def _hit_from_search(hit: SearchHit) -> DiarySearchHit:
    document = hit.document
    return DiarySearchHit(
        id=hit.id,
        diary_entry_id=document.get("DiaryEntryId", ""),
        twin_id=document.get("TwinID"),
        executive_summary=document.get("ExecutiveSummary") or "",
        success=bool(document.get("Success", False)),
        processing_time_ms=float(document.get("ProcessingTimeMs") or 0.0),
        analyzed_at=parse_datetime(document.get("AnalyzedAt")),
        error_message=document.get("ErrorMessage"),
        detailed_html_report=document.get("DetailedHtmlReport"),
        search_score=hit.reranker_score if hit.reranker_score is not None else hit.score,
        highlights=[caption for caption in hit.captions if caption],
    )


class DiaryAnalysisIndex(SearchIndex):
    def __init__(
        self,
        client: chromadb.ClientAPI,
        embedder: Embedder | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
        dimensions: int = 1536,
        name: str = DIARY_INDEX_NAME,
    ) -> None:
        super().__init__(client, diary_index_definition(dimensions, name), embedder=embedder, logger=logger)

    async def create_index(self) -> Result[IndexInfo]:
        return await self.create_or_update_index()

    async def index_entry(self, analysis: DiaryAnalysis, twin_id: str | None = None) -> Result[str]:
        """Index or re-index one analysis.

        Returns:
            Result holding the search document key.
        """
        entry_id = analysis.diary_entry_id
        twin_id = twin_id or analysis.twin_id
        self._logger.info("diary_analysis_indexing", entry_id=entry_id, twin_id=twin_id, success=analysis.success)

        document_id = await self._resolve_document_id(entry_id)
        if not document_id:
            return document_id

        combined = build_combined_content(analysis)
        document: dict[str, Any] = {
            "id": document_id.unwrap(),
            "TwinID": twin_id,
            "Success": analysis.success,
            "DiaryEntryId": entry_id,
            "ExecutiveSummary": analysis.executive_summary,
            "DetailedHtmlReport": analysis.detailed_html_report,
            "ProcessingTimeMs": analysis.processing_time_ms,
            "AnalyzedAt": analysis.analyzed_at,
            "ErrorMessage": analysis.error_message or None,
            "contenidoCompleto": combined,
        }
        if analysis.metadata:
            document["MetadataKeys"] = ", ".join(analysis.metadata)
            values = ("" if value is None else str(value) for value in analysis.metadata.values())
            document["MetadataValues"] = " ".join(values)
        vector = await self.embed_text(combined)
        if vector is not None:
            document["contenidoVector"] = vector

        result = await self.merge_or_upload([document], replace=True)
        if not result:
            return Result.failure(result.error_kind or ErrorKind.PERMANENT, result.error or "indexing failed")
        outcome = result.unwrap()[0]
        if not outcome.succeeded:
            return Result.failure(ErrorKind.PERMANENT, outcome.error or "indexing failed")

        self._logger.info(
            "diary_analysis_indexed", entry_id=entry_id, document_id=outcome.key, has_vector=vector is not None
        )
        return Result.success(outcome.key)

    async def search(self, query: DiarySearchQuery) -> Result[DiarySearchPage]:
        equals: dict[str, Any] = {}
        if query.twin_id:
            equals["TwinID"] = query.twin_id
        if query.successful_only:
            equals["Success"] = True
        ranges = []
        if query.date_from or query.date_to:
            ranges.append(RangeFilter(field="AnalyzedAt", gte=query.date_from, lte=query.date_to))

        request = SearchRequest(
            text=query.search_text,
            mode=query.mode,
            equals=equals,
            ranges=ranges,
            top=query.top,
            page=query.page,
        )
        result = await super().search(request)
        if not result:
            return Result.failure(
                result.error_kind or ErrorKind.PERMANENT,
                result.error or "search failed",
                DiarySearchPage(page=query.page, page_size=query.top, search_query=query.search_text or ""),
            )

        page = result.unwrap()
        self._logger.info("diary_analysis_search_completed", mode=page.mode.value, count=len(page.hits))
        return Result.success(
            DiarySearchPage(
                results=[_hit_from_search(hit) for hit in page.hits],
                total_count=page.total_count,
                page=query.page,
                page_size=query.top,
                search_query=query.search_text or "",
                search_type=page.mode,
            )
        )

    async def delete_entry(self, entry_id: str) -> Result[int]:
        """Remove every search document belonging to ``entry_id``."""
        found = await self.find_ids({"DiaryEntryId": entry_id})
        if not found:
            return Result.failure(found.error_kind or ErrorKind.PERMANENT, found.error or "lookup failed", 0)
        ids = list(dict.fromkeys([diary_search_id(entry_id), *found.unwrap()]))

        result = await self.delete_documents(ids)
        if not result:
            return result
        if result.unwrap() == 0:
            return Result.failure(ErrorKind.NOT_FOUND, f"no diary analysis indexed for entry '{entry_id}'", 0)
        self._logger.info("diary_analysis_deleted", entry_id=entry_id, count=result.unwrap())
        return result

    async def get_by_entry_and_tenant(self, entry_id: str, twin_id: str) -> Result[DiarySearchHit]:
        found = await self.find_ids({"DiaryEntryId": entry_id, "TwinID": twin_id})
        if not found:
            return Result.failure(found.error_kind or ErrorKind.PERMANENT, found.error or "lookup failed")
        documents = await self.get_documents(found.unwrap()[:1])
        if not documents:
            return Result.failure(documents.error_kind or ErrorKind.PERMANENT, documents.error or "lookup failed")
        if not documents.unwrap():
            return Result.failure(
                ErrorKind.NOT_FOUND, f"no diary analysis for entry '{entry_id}' and twin '{twin_id}'"
            )
        document = documents.unwrap()[0]
        return Result.success(_hit_from_search(SearchHit(id=document["id"], score=1.0, document=document)))

    async def _resolve_document_id(self, entry_id: str) -> Result[str]:
        """Key for ``entry_id``: its existing document, else the deterministic key.

        A timestamp suffix is added only when the deterministic key already
        belongs to a different entry.
        """
        found = await self.find_ids({"DiaryEntryId": entry_id})
        if not found:
            return Result.failure(found.error_kind or ErrorKind.PERMANENT, found.error or "lookup failed")
        if found.unwrap():
            return Result.success(sorted(found.unwrap())[0])

        candidate = diary_search_id(entry_id)
        existing = await self.get_documents([candidate])
        if not existing:
            return Result.failure(existing.error_kind or ErrorKind.PERMANENT, existing.error or "lookup failed")
        if existing.unwrap() and existing.unwrap()[0].get("DiaryEntryId") != entry_id:
            candidate = f"{candidate}_{utc_now():%Y%m%d%H%M%S}"
            self._logger.warning("diary_analysis_key_collision", entry_id=entry_id, document_id=candidate)
        return Result.success(candidate)


__all__ = [
    "DIARY_INDEX_NAME",
    "DiaryAnalysisIndex",
    "build_combined_content",
    "diary_index_definition",
    "diary_search_id",
]
