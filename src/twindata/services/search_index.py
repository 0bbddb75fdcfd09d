"""Search index over a ChromaDB collection.

ChromaDB's Python client is synchronous, so we use asyncio.to_thread()
to wrap blocking operations and maintain async consistency with other services.

Each index document is kept as JSON in the collection's document slot. Fields
the definition marks as key, filterable, sortable or facetable are copied into
Chroma metadata so they can be used in ``where`` clauses; datetimes become
epoch seconds there so range filters work. The vector field travels in the
collection's embedding slot. Documents without a vector get a constant
placeholder embedding and ``has_vector = False`` so vector queries skip them.
"""

import asyncio
import html
import json
import math
import re
from typing import Any, Awaitable, Callable, TypeVar

import chromadb
import structlog
from pydantic_core import to_jsonable_python

from twindata.errors import SearchIndexError
from twindata.models.base import parse_datetime
from twindata.models.enums import SearchMode
from twindata.models.results import Result
from twindata.models.search import (
    IndexDefinition,
    IndexInfo,
    IndexingOutcome,
    RangeFilter,
    SearchAnswer,
    SearchHit,
    SearchPage,
    SearchRequest,
)
from twindata.services.embeddings import Embedder

HAS_VECTOR = "has_vector"
RRF_K = 60
TITLE_WEIGHT = 3.0
CONTENT_WEIGHT = 1.0
KEYWORD_WEIGHT = 2.0
MAX_RERANKER_SCORE = 4.0
ANSWER_MIN_COVERAGE = 0.5
MAX_ANSWERS = 3

_TAG_RE = re.compile(r"<[^>]+>")
_WORD_RE = re.compile(r"\w+")
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+|\n+")

V = TypeVar("V")
Where = dict[str, Any]


def strip_html(text: str) -> str:
    return re.sub(r"\s+", " ", html.unescape(_TAG_RE.sub(" ", text))).strip()


def tokenize(text: str) -> list[str]:
    return _WORD_RE.findall(strip_html(text).lower())


def combine_where(clauses: list[Where]) -> Where | None:
    """Chroma accepts a single clause directly and two or more under ``$and``."""
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def to_epoch(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    parsed = parse_datetime(value)
    if parsed is None:
        raise ValueError("expected a datetime value")
    return parsed.timestamp()


class SearchIndex:
    """Create, fill and query one search index backed by a Chroma collection.

    Accepts a ChromaDB Client via dependency injection to support both
    persistent (PersistentClient) and ephemeral (EphemeralClient) modes.
    Public methods never raise; they return ``Result`` values.
    """

    def __init__(
        self,
        client: chromadb.ClientAPI,
        definition: IndexDefinition,
        embedder: Embedder | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._client = client
        self._definition = definition
        self._embedder = embedder
        self._logger = logger or structlog.get_logger(__name__)
        self._collection: chromadb.Collection | None = None

    @property
    def name(self) -> str:
        return self._definition.name

    @property
    def definition(self) -> IndexDefinition:
        return self._definition

    @property
    def vector_enabled(self) -> bool:
        return self._definition.vector_field is not None and self._embedder is not None

    async def create_or_update_index(self) -> Result[IndexInfo]:
        """Create the collection if needed; safe to call repeatedly."""

        async def action() -> IndexInfo:
            self._collection = await asyncio.to_thread(
                self._client.get_or_create_collection,
                name=self.name,
                embedding_function=None,
                metadata=self._collection_metadata(),
            )
            count = await asyncio.to_thread(self._collection.count)
            return IndexInfo(
                index_name=self.name,
                fields_count=len(self._definition.fields),
                has_vector_search=self._definition.vector_field is not None,
                has_semantic_search=self._definition.semantic is not None,
                document_count=count,
            )

        result = await self._guard("create_or_update_index", action)
        if result:
            self._logger.info("search_index_ready", index=self.name, document_count=result.unwrap().document_count)
        return result

    async def embed_text(self, text: str) -> list[float] | None:
        """Embed ``text`` for the vector field, or None when that is not possible.

        Failures are logged and swallowed so callers can index without a vector.
        """
        if self._embedder is None or not text or not text.strip():
            return None
        try:
            return await self._embedder.embed(text)
        except Exception as error:
            self._logger.warning("embedding_failed", index=self.name, error=str(error))
            return None

    async def merge_or_upload(
        self, documents: list[dict[str, Any]], replace: bool = False
    ) -> Result[list[IndexingOutcome]]:
        """Upsert documents, overlaying their non-null fields on any stored version.

        With ``replace`` the stored version is discarded instead: fields the new
        document leaves out or sets to None are cleared, and a document without
        a vector is stored with the placeholder and ``has_vector`` False.

        Returns:
            One outcome per input document, in input order.
        """

        async def action() -> list[IndexingOutcome]:
            collection = self._require_collection()
            return await asyncio.to_thread(self._merge_or_upload_sync, collection, documents, replace)

        result = await self._guard("merge_or_upload", action, default=[])
        if result:
            outcomes = result.unwrap()
            failed = [outcome.key for outcome in outcomes if not outcome.succeeded]
            self._logger.debug("documents_indexed", index=self.name, count=len(outcomes), failed=len(failed))
        return result

    async def get_documents(self, ids: list[str]) -> Result[list[dict[str, Any]]]:
        """Fetch stored documents by key; unknown keys are skipped."""

        async def action() -> list[dict[str, Any]]:
            collection = self._require_collection()
            stored = await asyncio.to_thread(self._get_stored_sync, collection, ids)
            return [stored[item_id][0] for item_id in ids if item_id in stored]

        return await self._guard("get_documents", action, default=[])

    async def find_ids(self, equals: dict[str, Any]) -> Result[list[str]]:
        """Keys of every document whose metadata matches all of ``equals``."""

        async def action() -> list[str]:
            collection = self._require_collection()
            where = combine_where([self._equals_clause(field, value) for field, value in equals.items()])
            found = await asyncio.to_thread(collection.get, where=where, include=[])
            return list(found["ids"])

        return await self._guard("find_ids", action, default=[])

    async def delete_documents(self, ids: list[str]) -> Result[int]:
        """Delete documents by key.

        Returns:
            Number of documents that existed and were removed.
        """

        async def action() -> int:
            collection = self._require_collection()
            if not ids:
                return 0
            existing = await asyncio.to_thread(collection.get, ids=ids, include=[])
            present = list(existing["ids"])
            if present:
                await asyncio.to_thread(collection.delete, ids=present)
            return len(present)

        result = await self._guard("delete_documents", action, default=0)
        if result:
            self._logger.debug("documents_deleted", index=self.name, count=result.unwrap())
        return result

    async def count(self) -> Result[int]:
        async def action() -> int:
            return await asyncio.to_thread(self._require_collection().count)

        return await self._guard("count", action, default=0)

    async def search(self, request: SearchRequest) -> Result[SearchPage]:
        """Run a full-text, semantic, vector or hybrid query.

        Vector and hybrid modes fall back to full text when the query cannot
        be embedded.
        """

        async def action() -> SearchPage:
            collection = self._require_collection()
            query_vector: list[float] | None = None
            mode = request.mode
            if mode in (SearchMode.VECTOR, SearchMode.HYBRID):
                if request.has_text and self.vector_enabled:
                    query_vector = await self.embed_text(request.text or "")
                if query_vector is None:
                    self._logger.info("vector_search_unavailable", index=self.name, requested_mode=mode.value)
                    mode = SearchMode.FULL_TEXT
            return await asyncio.to_thread(self._search_sync, collection, request, mode, query_vector)

        result = await self._guard("search", action, default=SearchPage(page=request.page, page_size=request.top))
        if result:
            page = result.unwrap()
            self._logger.debug(
                "search_completed", index=self.name, mode=page.mode.value, hits=len(page.hits), total=page.total_count
            )
        return result

    def _require_collection(self) -> chromadb.Collection:
        if self._collection is None:
            raise SearchIndexError(f"index '{self.name}' not initialized. Call create_or_update_index() first.")
        return self._collection

    def _collection_metadata(self) -> dict[str, Any]:
        definition = self._definition
        return {
            "hnsw:space": definition.hnsw_space,
            "key_field": definition.key_field,
            "vector_field": definition.vector_field or "",
            "vector_dimensions": definition.vector_dimensions,
            "vector_profile": definition.vector_profile,
            "semantic_configuration": definition.semantic.name if definition.semantic else "",
            "fields": json.dumps([field.model_dump() for field in definition.fields]),
        }

    def _placeholder_vector(self) -> list[float]:
        dimensions = self._definition.vector_dimensions
        return [1.0 / math.sqrt(dimensions)] * dimensions

    def _get_stored_sync(
        self, collection: chromadb.Collection, ids: list[str]
    ) -> dict[str, tuple[dict[str, Any], list[float] | None]]:
        if not ids:
            return {}
        found = collection.get(ids=ids, include=["documents", "metadatas", "embeddings"])
        embeddings = found.get("embeddings")
        stored: dict[str, tuple[dict[str, Any], list[float] | None]] = {}
        for position, item_id in enumerate(found["ids"]):
            metadata = found["metadatas"][position] or {}
            vector = None
            if metadata.get(HAS_VECTOR) and embeddings is not None:
                vector = [float(value) for value in embeddings[position]]
            stored[item_id] = (json.loads(found["documents"][position]), vector)
        return stored

    def _merge_or_upload_sync(
        self, collection: chromadb.Collection, documents: list[dict[str, Any]], replace: bool = False
    ) -> list[IndexingOutcome]:
        key_field = self._definition.key_field
        vector_field = self._definition.vector_field
        outcomes: list[IndexingOutcome | None] = [None] * len(documents)
        keys = [str(document.get(key_field) or "") for document in documents]
        stored = {} if replace else self._get_stored_sync(collection, [key for key in keys if key])

        ids: list[str] = []
        sources: list[str] = []
        metadatas: list[dict[str, Any]] = []
        vectors: list[list[float]] = []
        pending: list[int] = []

        for position, (key, document) in enumerate(zip(keys, documents)):
            if not key:
                outcomes[position] = IndexingOutcome(key="", succeeded=False, error=f"missing key field '{key_field}'")
                continue
            try:
                incoming = to_jsonable_python(document)
                vector = incoming.pop(vector_field, None) if vector_field else None
                existing_source, existing_vector = stored.get(key, ({}, None))
                merged = dict(existing_source)
                merged.update({name: value for name, value in incoming.items() if value is not None})
                if vector is not None and len(vector) != self._definition.vector_dimensions:
                    raise SearchIndexError(
                        f"vector has {len(vector)} dimensions, expected {self._definition.vector_dimensions}"
                    )
                vector = vector if vector is not None else existing_vector
                metadatas.append(self._metadata_for(merged, has_vector=vector is not None))
                vectors.append(vector if vector is not None else self._placeholder_vector())
                sources.append(json.dumps(merged, ensure_ascii=False))
                ids.append(key)
                pending.append(position)
            except (SearchIndexError, TypeError, ValueError) as error:
                outcomes[position] = IndexingOutcome(key=key, succeeded=False, error=str(error))

        if ids:
            try:
                collection.upsert(ids=ids, embeddings=vectors, documents=sources, metadatas=metadatas)
            except Exception as error:
                self._logger.error("index_batch_failed", index=self.name, count=len(ids), error=str(error))
                for position in pending:
                    outcomes[position] = IndexingOutcome(key=keys[position], succeeded=False, error=str(error))
                return [outcome for outcome in outcomes if outcome is not None]
            for position in pending:
                outcomes[position] = IndexingOutcome(key=keys[position], succeeded=True)

        return [outcome for outcome in outcomes if outcome is not None]

    def _metadata_for(self, document: dict[str, Any], has_vector: bool) -> dict[str, Any]:
        metadata: dict[str, Any] = {HAS_VECTOR: has_vector}
        for field in self._definition.fields:
            if field.type == "vector" or not (field.key or field.filterable or field.sortable or field.facetable):
                continue
            value = document.get(field.name)
            if value is None:
                continue
            metadata[field.name] = self._metadata_value(field.type, value)
        return metadata

    @staticmethod
    def _metadata_value(field_type: str, value: Any) -> Any:
        if field_type == "datetime":
            return to_epoch(value)
        if field_type == "boolean":
            return bool(value)
        if field_type == "int":
            return int(value)
        if field_type == "double":
            return float(value)
        if field_type == "string_list":
            return ", ".join(str(item) for item in value) if isinstance(value, list) else str(value)
        if isinstance(value, (dict, list)):
            return json.dumps(value, ensure_ascii=False)
        return value if isinstance(value, (str, int, float, bool)) else str(value)

    def _equals_clause(self, field_name: str, value: Any) -> Where:
        field = self._definition.field(field_name)
        if field is not None and field.type != "string":
            value = self._metadata_value(field.type, value)
        return {field_name: {"$eq": value}}

    def _range_clauses(self, item: RangeFilter) -> list[Where]:
        clauses: list[Where] = []
        if item.gte is not None:
            clauses.append({item.field: {"$gte": to_epoch(item.gte)}})
        if item.lte is not None:
            clauses.append({item.field: {"$lte": to_epoch(item.lte)}})
        return clauses

    def _filter_clauses(self, request: SearchRequest) -> list[Where]:
        clauses = [self._equals_clause(field, value) for field, value in request.equals.items()]
        for item in request.ranges:
            clauses.extend(self._range_clauses(item))
        return clauses

    def _search_sync(
        self,
        collection: chromadb.Collection,
        request: SearchRequest,
        mode: SearchMode,
        query_vector: list[float] | None,
    ) -> SearchPage:
        clauses = self._filter_clauses(request)
        answers: list[SearchAnswer] = []

        if mode in (SearchMode.VECTOR, SearchMode.HYBRID) and query_vector is not None:
            ranked = self._vector_ranking(collection, request, clauses, query_vector)
            if mode == SearchMode.HYBRID:
                ranked = self._fuse(ranked, self._full_text_ranking(collection, request, clauses))
        else:
            ranked = self._full_text_ranking(collection, request, clauses)

        if (mode == SearchMode.SEMANTIC or request.semantic_rerank) and self._definition.semantic is not None:
            ranked = self._semantic_rerank(ranked, request.text or "")
            answers = self._answers(ranked, request.text or "")

        page_hits = ranked[request.skip : request.skip + request.top]
        return SearchPage(
            hits=page_hits,
            total_count=len(ranked),
            page=request.page,
            page_size=request.top,
            mode=mode,
            answers=answers,
        )

    def _candidates(self, collection: chromadb.Collection, clauses: list[Where]) -> list[tuple[str, dict[str, Any]]]:
        found = collection.get(where=combine_where(clauses), include=["documents"])
        return [(item_id, json.loads(source)) for item_id, source in zip(found["ids"], found["documents"])]

    def _searchable_tokens(self, document: dict[str, Any], fields: list[str]) -> list[str]:
        tokens: list[str] = []
        for name in fields:
            value = document.get(name)
            if value is None:
                continue
            if isinstance(value, list):
                value = " ".join(str(item) for item in value)
            tokens.extend(tokenize(str(value)))
        return tokens

    def _full_text_ranking(
        self, collection: chromadb.Collection, request: SearchRequest, clauses: list[Where]
    ) -> list[SearchHit]:
        candidates = self._candidates(collection, clauses)
        if not request.has_text:
            return [SearchHit(id=item_id, score=1.0, document=document) for item_id, document in candidates]

        terms = set(tokenize(request.text or ""))
        fields = self._definition.searchable_fields
        hits: list[SearchHit] = []
        for item_id, document in candidates:
            tokens = self._searchable_tokens(document, fields)
            if not tokens:
                continue
            matches = sum(1 for token in tokens if token in terms)
            if matches == 0:
                continue
            matched_terms = len(terms.intersection(tokens))
            score = matched_terms + matches / (1.0 + math.log(1 + len(tokens)))
            hits.append(SearchHit(id=item_id, score=score, document=document))
        hits.sort(key=lambda hit: (-hit.score, hit.id))
        return hits

    def _vector_ranking(
        self,
        collection: chromadb.Collection,
        request: SearchRequest,
        clauses: list[Where],
        query_vector: list[float],
    ) -> list[SearchHit]:
        where = combine_where([*clauses, {HAS_VECTOR: {"$eq": True}}])
        eligible = len(collection.get(where=where, include=[])["ids"])
        k = min(max(request.knn or request.top * 2, request.skip + request.top), eligible)
        if k == 0:
            return []
        found = collection.query(
            query_embeddings=[query_vector],
            n_results=k,
            where=where,
            include=["documents", "distances"],
        )
        hits: list[SearchHit] = []
        for item_id, source, distance in zip(found["ids"][0], found["documents"][0], found["distances"][0]):
            if self._definition.hnsw_space == "cosine":
                score = 1.0 - float(distance)
            else:
                score = 1.0 / (1.0 + float(distance))
            hits.append(SearchHit(id=item_id, score=score, document=json.loads(source)))
        return hits

    @staticmethod
    def _fuse(*rankings: list[SearchHit]) -> list[SearchHit]:
        """Reciprocal rank fusion of several rankings."""
        scores: dict[str, float] = {}
        documents: dict[str, dict[str, Any]] = {}
        for ranking in rankings:
            for rank, hit in enumerate(ranking, start=1):
                scores[hit.id] = scores.get(hit.id, 0.0) + 1.0 / (RRF_K + rank)
                documents.setdefault(hit.id, hit.document)
        ordered = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
        return [SearchHit(id=item_id, score=score, document=documents[item_id]) for item_id, score in ordered]

    def _coverage(self, document: dict[str, Any], fields: list[str], terms: set[str]) -> float:
        if not terms or not fields:
            return 0.0
        tokens = set(self._searchable_tokens(document, fields))
        return len(terms & tokens) / len(terms)

    def _semantic_rerank(self, hits: list[SearchHit], text: str) -> list[SearchHit]:
        semantic = self._definition.semantic
        terms = set(tokenize(text))
        if semantic is None or not terms:
            return hits
        total_weight = TITLE_WEIGHT + CONTENT_WEIGHT + KEYWORD_WEIGHT
        reranked: list[SearchHit] = []
        for hit in hits:
            weighted = (
                TITLE_WEIGHT * self._coverage(hit.document, [semantic.title_field], terms)
                + CONTENT_WEIGHT * self._coverage(hit.document, semantic.content_fields, terms)
                + KEYWORD_WEIGHT * self._coverage(hit.document, semantic.keyword_fields, terms)
            )
            reranker_score = MAX_RERANKER_SCORE * weighted / total_weight
            caption = self._caption(hit.document, [semantic.title_field, *semantic.content_fields], terms)
            reranked.append(
                hit.model_copy(update={"reranker_score": reranker_score, "captions": [caption] if caption else []})
            )
        reranked.sort(key=lambda hit: (-(hit.reranker_score or 0.0), -hit.score, hit.id))
        return reranked

    def _caption(self, document: dict[str, Any], fields: list[str], terms: set[str]) -> str:
        """The sentence with the most query terms across the given fields."""
        best, best_matches = "", 0
        for name in fields:
            value = document.get(name)
            if not isinstance(value, str):
                continue
            for sentence in _SENTENCE_RE.split(strip_html(value)):
                matches = len(terms.intersection(tokenize(sentence)))
                if matches > best_matches:
                    best, best_matches = sentence.strip(), matches
        return best

    def _answers(self, hits: list[SearchHit], text: str) -> list[SearchAnswer]:
        terms = set(tokenize(text))
        answers: list[SearchAnswer] = []
        for hit in hits:
            if not hit.captions:
                continue
            coverage = len(terms.intersection(tokenize(hit.captions[0]))) / len(terms) if terms else 0.0
            if coverage >= ANSWER_MIN_COVERAGE:
                answers.append(SearchAnswer(key=hit.id, text=hit.captions[0], score=coverage))
            if len(answers) == MAX_ANSWERS:
                break
        return answers

    async def _guard(
        self,
        operation: str,
        action: Callable[[], Awaitable[V]],
        default: Any = None,
    ) -> Result[V]:
        try:
            value = await action()
        except Exception as error:
            self._logger.error(f"{operation}_failed", index=self.name, error=str(error), exc_info=True)
            return Result.from_exception(error, value=default)
        return Result.success(value)


__all__ = [
    "HAS_VECTOR",
    "SearchIndex",
    "combine_where",
    "strip_html",
    "to_epoch",
    "tokenize",
]
