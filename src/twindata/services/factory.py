"""Factory functions for creating and wiring twindata services.

Provides a production factory driven by ``Settings`` and a test factory that
uses in-memory SQLite and an ephemeral ChromaDB client for fast, isolated
tests.
"""

from dataclasses import dataclass
from uuid import uuid4

import chromadb
import structlog
from openai import AsyncOpenAI
from sqlalchemy.ext.asyncio import AsyncEngine

from twindata.config import Settings
from twindata.errors import SearchIndexError
from twindata.logging_config import configure_logging
from twindata.services.books import BookRepository
from twindata.services.books_index import BOOKS_INDEX_NAME, BooksIndex
from twindata.services.chapters import ChapterExtractor
from twindata.services.chat import ChapterAIExtractor, ChatModel, OpenAIChatClient
from twindata.services.courses import CourseBuildRepository
from twindata.services.diary_index import DIARY_INDEX_NAME, DiaryAnalysisIndex
from twindata.services.document_store import (
    DocumentStore,
    create_async_engine_from_path,
    create_async_engine_from_url,
)
from twindata.services.embeddings import Embedder, OpenAIEmbedder
from twindata.services.jobs import JobOpportunityRepository
from twindata.services.mortgages import FileUrlResolver, MortgageRepository
from twindata.services.outbox import RecordEventOutbox
from twindata.services.search_index import SearchIndex
from twindata.services.semistructured_index import SEMISTRUCTURED_INDEX_NAME, SemistructuredIndex
from twindata.services.vision import VisionAnalyzer

_TEST_INDEX_ID_LENGTH = 8


@dataclass
class TwinDataServices:
    """Every twindata component, wired to shared stores."""

    settings: Settings
    engine: AsyncEngine
    store: DocumentStore
    outbox: RecordEventOutbox
    books: BookRepository
    courses: CourseBuildRepository
    mortgages: MortgageRepository
    jobs: JobOpportunityRepository
    diary_index: DiaryAnalysisIndex
    semistructured_index: SemistructuredIndex
    books_index: BooksIndex
    chapter_extractor: ChapterExtractor
    chapter_ai: ChapterAIExtractor | None = None
    vision: VisionAnalyzer | None = None

    @property
    def search_indexes(self) -> list[SearchIndex]:
        return [self.diary_index, self.semistructured_index, self.books_index]

    async def initialize(self) -> None:
        """Create the document table and every search collection.

        Raises:
            SearchIndexError: If a search collection cannot be created.
        """
        await self.store.initialize_schema()
        for index in self.search_indexes:
            result = await index.create_or_update_index()
            if not result:
                raise SearchIndexError(f"could not create index '{index.name}': {result.error}")

    async def close(self) -> None:
        await self.engine.dispose()


def _build_services(
    settings: Settings,
    engine: AsyncEngine,
    chroma_client: chromadb.ClientAPI,
    embedder: Embedder | None,
    chat: ChatModel | None,
    vision_chat: ChatModel | None,
    url_resolver: FileUrlResolver | None,
    index_suffix: str = "",
) -> TwinDataServices:
    logger = structlog.get_logger("twindata")

    store = DocumentStore(engine=engine, logger=logger)
    outbox = RecordEventOutbox(
        max_attempts=settings.outbox_max_attempts,
        retry_min_wait=settings.outbox_retry_min_wait,
        retry_max_wait=settings.outbox_retry_max_wait,
        logger=logger,
    )

    dimensions = settings.embedding_dimensions
    diary_index = DiaryAnalysisIndex(
        client=chroma_client,
        embedder=embedder,
        logger=logger,
        dimensions=dimensions,
        name=DIARY_INDEX_NAME + index_suffix,
    )
    semistructured_index = SemistructuredIndex(
        client=chroma_client,
        embedder=embedder,
        logger=logger,
        dimensions=dimensions,
        name=SEMISTRUCTURED_INDEX_NAME + index_suffix,
        max_embedding_chars=settings.embedding_max_chars,
        upload_concurrency=settings.batch_upload_concurrency,
    )
    books_index = BooksIndex(
        client=chroma_client,
        embedder=embedder,
        logger=logger,
        dimensions=dimensions,
        name=BOOKS_INDEX_NAME + index_suffix,
    )
    outbox.subscribe(BookRepository.container, books_index.handle_record_event)

    return TwinDataServices(
        settings=settings,
        engine=engine,
        store=store,
        outbox=outbox,
        books=BookRepository(store, outbox=outbox, logger=logger),
        courses=CourseBuildRepository(store, outbox=outbox, logger=logger),
        mortgages=MortgageRepository(store, outbox=outbox, logger=logger, url_resolver=url_resolver),
        jobs=JobOpportunityRepository(store, outbox=outbox, logger=logger),
        diary_index=diary_index,
        semistructured_index=semistructured_index,
        books_index=books_index,
        chapter_extractor=ChapterExtractor(logger=logger),
        chapter_ai=ChapterAIExtractor(chat, logger=logger) if chat is not None else None,
        vision=(
            VisionAnalyzer(vision_chat, download_timeout=settings.image_download_timeout_seconds, logger=logger)
            if vision_chat is not None
            else None
        ),
    )


def create_services(
    settings: Settings | None = None,
    url_resolver: FileUrlResolver | None = None,
) -> TwinDataServices:
    """Create production services from ``settings``.

    Configures logging, opens the database engine and a persistent (or, with
    no ``chroma_path``, ephemeral) ChromaDB client. OpenAI-backed embeddings,
    chapter subdivision and photo analysis are only wired when an API key is
    configured.

    Args:
        settings: Resolved settings; loaded from the environment when None.
        url_resolver: Produces temporary URLs for stored mortgage files.

    Returns:
        Wired services. Call ``initialize()`` before first use.
    """
    settings = settings or Settings()
    configure_logging(settings.log_level, json_logs=settings.log_json)

    engine = create_async_engine_from_url(settings.database_url)
    if settings.chroma_path:
        chroma_client = chromadb.PersistentClient(path=settings.chroma_path)
    else:
        chroma_client = chromadb.EphemeralClient()

    embedder: Embedder | None = None
    chat: ChatModel | None = None
    vision_chat: ChatModel | None = None
    if settings.embeddings_enabled:
        openai_client = AsyncOpenAI(api_key=settings.openai_api_key, base_url=settings.openai_base_url)
        embedder = OpenAIEmbedder(
            openai_client,
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
            max_chars=settings.embedding_max_chars,
        )
        chat = OpenAIChatClient(openai_client, model=settings.chat_model)
        vision_chat = OpenAIChatClient(openai_client, model=settings.vision_model)

    structlog.get_logger(__name__).info(
        "services_created",
        database_url=engine.url.render_as_string(hide_password=True),
        chroma_path=settings.chroma_path,
        embeddings_enabled=embedder is not None,
    )
    return _build_services(settings, engine, chroma_client, embedder, chat, vision_chat, url_resolver)


def create_test_services(
    embedder: Embedder | None = None,
    chat: ChatModel | None = None,
    url_resolver: FileUrlResolver | None = None,
    settings: Settings | None = None,
) -> TwinDataServices:
    """Create services with in-memory storage for testing.

    Each call gets its own SQLite database and uniquely named search
    collections, so tests don't interfere. ``chat`` backs both chapter
    subdivision and photo analysis.
    """
    settings = settings or Settings(_env_file=None)
    engine = create_async_engine_from_path(":memory:")
    chroma_client = chromadb.EphemeralClient()
    suffix = f"-{uuid4().hex[:_TEST_INDEX_ID_LENGTH]}"
    return _build_services(settings, engine, chroma_client, embedder, chat, chat, url_resolver, index_suffix=suffix)


__all__ = ["TwinDataServices", "create_services", "create_test_services"]
