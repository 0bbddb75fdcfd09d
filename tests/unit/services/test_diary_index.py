"""Unit tests for the DiaryAnalysisIndex service."""

from datetime import datetime, timezone
from uuid import uuid4

import chromadb
import pytest

from twindata.errors import EmbeddingError, ErrorKind
from twindata.models.diary import DiaryAnalysis, DiarySearchQuery
from twindata.models.enums import SearchMode
from twindata.services.diary_index import (
    DIARY_INDEX_NAME,
    DiaryAnalysisIndex,
    build_combined_content,
    diary_search_id,
)

DIMENSIONS = 64


class BrokenEmbedder:
    """Embedder whose model is unavailable."""

    dimensions = DIMENSIONS

    async def embed(self, text: str) -> list[float]:
        raise EmbeddingError("embedding model unavailable")


def _make_analysis(
    entry_id: str = "entry-1",
    summary: str = "Paseo por el jardín botánico con amigos",
    **overrides: object,
) -> DiaryAnalysis:
    """Create a DiaryAnalysis for testing."""
    data: dict[str, object] = {
        "diary_entry_id": entry_id,
        "twin_id": "twin-1",
        "executive_summary": summary,
        "detailed_html_report": "<h2>Actividad</h2><p>Caminata de dos horas. Gasto total de 20 euros.</p>",
        "processing_time_ms": 1250.5,
        "analyzed_at": datetime(2024, 4, 2, 18, 30, tzinfo=timezone.utc),
        "metadata": {"categoria": "ocio", "lugar": "Madrid"},
    }
    data.update(overrides)
    return DiaryAnalysis.model_validate(data)


def _index_name() -> str:
    return f"{DIARY_INDEX_NAME}-{uuid4().hex[:8]}"


@pytest.fixture
async def diary_index(ephemeral_client: chromadb.ClientAPI, fake_embedder) -> DiaryAnalysisIndex:
    index = DiaryAnalysisIndex(
        ephemeral_client, embedder=fake_embedder, dimensions=DIMENSIONS, name=_index_name()
    )
    await index.create_index()
    return index


@pytest.fixture
async def text_only_index(ephemeral_client: chromadb.ClientAPI) -> DiaryAnalysisIndex:
    index = DiaryAnalysisIndex(ephemeral_client, dimensions=DIMENSIONS, name=_index_name())
    await index.create_index()
    return index


class TestDiaryHelpers:
    """Tests for key derivation and combined content."""

    def test_search_id_is_prefixed_and_sanitized(self) -> None:
        assert diary_search_id("entry-1") == "diary_analysis_entry-1"
        assert diary_search_id("a/b c") == "diary_analysis_a_b_c"

    def test_combined_content_has_labelled_parts(self) -> None:
        content = build_combined_content(_make_analysis(error_message="sin errores"))

        assert content.startswith("Resumen ejecutivo: Paseo por el jardín botánico con amigos. ")
        assert "Reporte detallado HTML: Actividad Caminata de dos horas." in content
        assert "Análisis exitoso: Sí" in content
        assert "Tiempo de procesamiento: 1250.50 ms" in content
        assert "Fecha de análisis: 2024-04-02 18:30" in content
        assert "Entry ID: entry-1" in content
        assert "Error: sin errores" in content
        assert content.endswith("categoria: ocio. lugar: Madrid")


class TestDiaryIndexing:
    """Tests for indexing, lookup and deletion."""

    async def test_index_entry_returns_deterministic_key(self, diary_index: DiaryAnalysisIndex) -> None:
        result = await diary_index.index_entry(_make_analysis())

        assert result.unwrap() == "diary_analysis_entry-1"

    async def test_reindexing_updates_the_same_document(
        self, diary_index: DiaryAnalysisIndex, fake_embedder
    ) -> None:
        first = await diary_index.index_entry(_make_analysis())
        second = await diary_index.index_entry(_make_analysis(summary="Resumen corregido"))

        assert first.unwrap() == second.unwrap()
        assert (await diary_index.count()).unwrap() == 1
        hit = (await diary_index.get_by_entry_and_tenant("entry-1", "twin-1")).unwrap()
        assert hit.executive_summary == "Resumen corregido"
        assert len(fake_embedder.calls) == 2

    async def test_reindexing_replaces_failed_analysis(self, diary_index: DiaryAnalysisIndex) -> None:
        await diary_index.index_entry(
            _make_analysis(success=False, error_message="model timeout", metadata={"categoria": "ocio"})
        )

        await diary_index.index_entry(_make_analysis(summary="Todo bien", success=True, metadata={}))

        hit = (await diary_index.get_by_entry_and_tenant("entry-1", "twin-1")).unwrap()
        stored = (await diary_index.get_documents([hit.id])).unwrap()[0]
        assert hit.success is True
        assert hit.error_message is None
        assert hit.executive_summary == "Todo bien"
        assert "MetadataKeys" not in stored
        assert "MetadataValues" not in stored

    async def test_reindexing_without_embedding_drops_old_vector(
        self, ephemeral_client: chromadb.ClientAPI, diary_index: DiaryAnalysisIndex
    ) -> None:
        await diary_index.index_entry(_make_analysis())
        broken = DiaryAnalysisIndex(
            ephemeral_client, embedder=BrokenEmbedder(), dimensions=DIMENSIONS, name=diary_index.name
        )
        await broken.create_index()

        result = await broken.index_entry(_make_analysis(summary="Resumen nuevo"))

        assert result.unwrap() == "diary_analysis_entry-1"
        assert (await diary_index.find_ids({"has_vector": False})).unwrap() == ["diary_analysis_entry-1"]
        page = (
            await diary_index.search(
                DiarySearchQuery(search_text="Paseo por el jardín botánico", twin_id="twin-1", use_vector_search=True)
            )
        ).unwrap()
        assert page.results == []

    async def test_explicit_twin_overrides_analysis_twin(self, diary_index: DiaryAnalysisIndex) -> None:
        await diary_index.index_entry(_make_analysis(), twin_id="twin-9")

        assert (await diary_index.get_by_entry_and_tenant("entry-1", "twin-9")).unwrap().twin_id == "twin-9"
        assert (await diary_index.get_by_entry_and_tenant("entry-1", "twin-1")).not_found

    async def test_key_taken_by_other_entry_gets_timestamp_suffix(self, diary_index: DiaryAnalysisIndex) -> None:
        # Simulate a legacy document whose key collides with entry-2's deterministic key.
        await diary_index.merge_or_upload([{"id": "diary_analysis_entry-2", "DiaryEntryId": "legacy"}])

        result = await diary_index.index_entry(_make_analysis("entry-2"))

        assert result.unwrap().startswith("diary_analysis_entry-2_")
        assert (await diary_index.count()).unwrap() == 2

    async def test_get_by_entry_and_tenant(self, diary_index: DiaryAnalysisIndex) -> None:
        await diary_index.index_entry(_make_analysis())

        hit = (await diary_index.get_by_entry_and_tenant("entry-1", "twin-1")).unwrap()

        assert hit.id == "diary_analysis_entry-1"
        assert hit.diary_entry_id == "entry-1"
        assert hit.processing_time_ms == 1250.5
        assert hit.analyzed_at == datetime(2024, 4, 2, 18, 30, tzinfo=timezone.utc)
        assert hit.detailed_html_report is not None and "Caminata" in hit.detailed_html_report

    async def test_get_unknown_entry_is_not_found(self, diary_index: DiaryAnalysisIndex) -> None:
        result = await diary_index.get_by_entry_and_tenant("missing", "twin-1")

        assert result.error_kind == ErrorKind.NOT_FOUND

    async def test_delete_entry(self, diary_index: DiaryAnalysisIndex) -> None:
        await diary_index.index_entry(_make_analysis())

        deleted = await diary_index.delete_entry("entry-1")
        again = await diary_index.delete_entry("entry-1")

        assert deleted.unwrap() == 1
        assert again.not_found
        assert (await diary_index.get_by_entry_and_tenant("entry-1", "twin-1")).not_found

    async def test_indexing_without_embedder_still_succeeds(self, text_only_index: DiaryAnalysisIndex) -> None:
        result = await text_only_index.index_entry(_make_analysis())

        assert result
        assert (await text_only_index.count()).unwrap() == 1

    async def test_uninitialized_index_fails_cleanly(self, ephemeral_client: chromadb.ClientAPI) -> None:
        index = DiaryAnalysisIndex(ephemeral_client, dimensions=DIMENSIONS, name=_index_name())

        result = await index.index_entry(_make_analysis())

        assert not result
        assert result.error_kind == ErrorKind.PERMANENT


class TestDiarySearch:
    """Tests for the four search modes and filters."""

    @pytest.fixture
    async def populated(self, diary_index: DiaryAnalysisIndex) -> DiaryAnalysisIndex:
        await diary_index.index_entry(_make_analysis("entry-1"))
        await diary_index.index_entry(
            _make_analysis(
                "entry-2",
                "Cena familiar en casa",
                detailed_html_report="<p>Cocinamos paella. Fue una noche tranquila.</p>",
                analyzed_at=datetime(2024, 5, 10, 21, 0, tzinfo=timezone.utc),
                metadata={"categoria": "familia"},
            )
        )
        await diary_index.index_entry(
            _make_analysis(
                "entry-3",
                "Visita al jardín de la abuela",
                success=False,
                error_message="Análisis incompleto",
                analyzed_at=datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc),
            )
        )
        await diary_index.index_entry(_make_analysis("entry-4", "Jardín comunitario"), twin_id="twin-2")
        return diary_index

    async def test_full_text_is_the_default(self, populated: DiaryAnalysisIndex) -> None:
        page = (await populated.search(DiarySearchQuery(search_text="jardín", twin_id="twin-1"))).unwrap()

        assert page.search_type == SearchMode.FULL_TEXT
        assert {hit.diary_entry_id for hit in page.results} == {"entry-1", "entry-3"}
        assert page.total_count == 2
        assert page.search_query == "jardín"

    async def test_successful_only_and_date_range(self, populated: DiaryAnalysisIndex) -> None:
        successful = (
            await populated.search(DiarySearchQuery(search_text="*", twin_id="twin-1", successful_only=True))
        ).unwrap()
        in_may = (
            await populated.search(
                DiarySearchQuery(
                    twin_id="twin-1",
                    date_from="2024-05-01T00:00:00Z",
                    date_to="2024-05-31T23:59:59Z",
                )
            )
        ).unwrap()

        assert {hit.diary_entry_id for hit in successful.results} == {"entry-1", "entry-2"}
        assert [hit.diary_entry_id for hit in in_may.results] == ["entry-2"]

    async def test_semantic_search_returns_highlights(self, populated: DiaryAnalysisIndex) -> None:
        page = (
            await populated.search(
                DiarySearchQuery(search_text="paella noche", twin_id="twin-1", use_semantic_search=True)
            )
        ).unwrap()

        assert page.search_type == SearchMode.SEMANTIC
        assert page.results[0].diary_entry_id == "entry-2"
        assert page.results[0].highlights == ["Cocinamos paella."]
        assert page.results[0].search_score > 0

    async def test_vector_search(self, populated: DiaryAnalysisIndex) -> None:
        page = (
            await populated.search(
                DiarySearchQuery(search_text="Cena familiar en casa paella", twin_id="twin-1", use_vector_search=True)
            )
        ).unwrap()

        assert page.search_type == SearchMode.VECTOR
        assert page.results[0].diary_entry_id == "entry-2"
        assert {hit.twin_id for hit in page.results} == {"twin-1"}

    async def test_hybrid_search(self, populated: DiaryAnalysisIndex) -> None:
        page = (
            await populated.search(
                DiarySearchQuery(
                    search_text="jardín botánico",
                    twin_id="twin-1",
                    use_vector_search=True,
                    use_hybrid_search=True,
                )
            )
        ).unwrap()

        assert page.search_type == SearchMode.HYBRID
        assert page.results[0].diary_entry_id == "entry-1"

    async def test_vector_search_without_embedder_reports_full_text(
        self, text_only_index: DiaryAnalysisIndex
    ) -> None:
        await text_only_index.index_entry(_make_analysis())

        page = (
            await text_only_index.search(DiarySearchQuery(search_text="jardín", use_vector_search=True))
        ).unwrap()

        assert page.search_type == SearchMode.FULL_TEXT
        assert [hit.diary_entry_id for hit in page.results] == ["entry-1"]

    async def test_paging(self, populated: DiaryAnalysisIndex) -> None:
        page = (await populated.search(DiarySearchQuery(twin_id="twin-1", top=2, page=2))).unwrap()

        assert page.total_count == 3
        assert len(page.results) == 1
        assert page.page == 2
        assert page.page_size == 2
