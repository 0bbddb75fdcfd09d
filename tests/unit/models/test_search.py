from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from twindata.errors import ErrorKind, InvalidInputError
from twindata.models.diary import DiaryAnalysis, DiarySearchQuery
from twindata.models.enums import SearchMode
from twindata.models.results import Result
from twindata.models.search import IndexDefinition, IndexField, RangeFilter, SearchRequest, SemanticConfiguration
from twindata.models.semistructured import SemistructuredDocument


def _fields() -> list[IndexField]:
    return [
        IndexField(name="id", key=True),
        IndexField(name="title", searchable=True),
        IndexField(name="vector", type="vector"),
    ]


def test_index_definition_exposes_key_and_searchable_fields() -> None:
    definition = IndexDefinition(name="books", fields=_fields(), vector_field="vector")

    assert definition.key_field == "id"
    assert definition.searchable_fields == ["title"]
    assert definition.field("title") is not None
    assert definition.field("missing") is None


def test_index_definition_requires_exactly_one_key() -> None:
    with pytest.raises(ValidationError, match="key field"):
        IndexDefinition(name="books", fields=[IndexField(name="title")])


def test_index_definition_rejects_undeclared_vector_field() -> None:
    with pytest.raises(ValidationError, match="vector field"):
        IndexDefinition(name="books", fields=_fields(), vector_field="embedding")


def test_index_definition_rejects_unknown_semantic_fields() -> None:
    with pytest.raises(ValidationError, match="semantic configuration"):
        IndexDefinition(
            name="books",
            fields=_fields(),
            semantic=SemanticConfiguration(name="cfg", title_field="title", content_fields=["body"]),
        )


def test_range_filter_needs_a_bound() -> None:
    with pytest.raises(ValidationError):
        RangeFilter(field="AnalyzedAt")


def test_search_request_paging_and_wildcard() -> None:
    request = SearchRequest(text="*", top=5, page=3)

    assert request.skip == 10
    assert request.has_text is False
    assert SearchRequest(text=" garden ").has_text is True


def test_diary_search_query_mode_selection() -> None:
    assert DiarySearchQuery().mode == SearchMode.FULL_TEXT
    assert DiarySearchQuery(use_semantic_search=True).mode == SearchMode.SEMANTIC
    assert DiarySearchQuery(use_vector_search=True).mode == SearchMode.VECTOR
    assert DiarySearchQuery(use_vector_search=True, use_hybrid_search=True).mode == SearchMode.HYBRID
    # Hybrid only applies together with vector search.
    assert DiarySearchQuery(use_hybrid_search=True).mode == SearchMode.FULL_TEXT


def test_diary_search_query_rejects_conflicting_modes() -> None:
    with pytest.raises(ValidationError):
        DiarySearchQuery(use_semantic_search=True, use_vector_search=True)


def test_diary_search_query_rejects_inverted_dates() -> None:
    with pytest.raises(ValidationError):
        DiarySearchQuery(date_from="2024-02-01T00:00:00Z", date_to="2024-01-01T00:00:00Z")


def test_diary_analysis_treats_naive_dates_as_utc() -> None:
    analysis = DiaryAnalysis(diary_entry_id="entry-1", analyzed_at=datetime(2024, 1, 1, 8, 0))

    assert analysis.analyzed_at == datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)


def test_semistructured_document_validation_and_metadata() -> None:
    document = SemistructuredDocument(
        id="doc-1",
        twin_id="twin-1",
        document_type="invoice",
        file_name="invoice.pdf",
        reporte_texto_plano="Total 120 EUR",
        metadata={"vendor": "Acme", "pages": 2},
    )

    assert document.is_valid()
    assert document.metadata_text() == "vendor:Acme pages:2"
    assert not document.model_copy(update={"file_name": " "}).is_valid()


def test_result_success_and_failure() -> None:
    ok = Result.success(3)
    failed = Result.failure(ErrorKind.NOT_FOUND, "missing", value=[])

    assert ok and ok.unwrap() == 3
    assert not failed
    assert failed.not_found
    assert failed.value == []
    with pytest.raises(RuntimeError):
        failed.unwrap()


def test_result_from_exception_classifies_errors() -> None:
    result = Result.from_exception(InvalidInputError("twin_id is required"))

    assert result.error_kind == ErrorKind.INVALID_INPUT
    assert result.error == "twin_id is required"
    assert not result.retryable
    assert Result.from_exception(TimeoutError()).retryable
