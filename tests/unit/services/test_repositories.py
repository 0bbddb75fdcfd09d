"""Unit tests for the book, course and mortgage repositories."""

from datetime import timedelta

import pytest

from twindata.errors import ErrorKind
from twindata.models.book import BookAnalysis, BookMain
from twindata.models.course import CourseBuild
from twindata.models.enums import RecordEventType
from twindata.models.mortgage import MortgageStatementReport
from twindata.services.books import BookRepository
from twindata.services.courses import CourseBuildRepository
from twindata.services.document_store import DocumentStore
from twindata.services.mortgages import MortgageRepository
from twindata.services.outbox import RecordEventOutbox


def _make_book(titulo: str = "Pedro Páramo", **overrides: object) -> BookMain:
    """Create a valid BookMain for testing."""
    return BookMain(titulo=titulo, autor="Juan Rulfo", genero="Novela", **overrides)


class FakeUrlResolver:
    """Records requests and returns a predictable URL."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[str, str, timedelta]] = []

    async def generate_url(self, container: str, path: str, expires_in: timedelta) -> str | None:
        self.calls.append((container, path, expires_in))
        if self.fail:
            raise ConnectionError("storage unavailable")
        return f"https://files.example/{container}/{path}?sig=abc"


class RecordingOutbox(RecordEventOutbox):
    """Outbox that only remembers what was published."""

    def __init__(self) -> None:
        super().__init__()
        self.events = []

    def publish(self, event) -> None:
        self.events.append(event)


@pytest.fixture
def outbox() -> RecordingOutbox:
    return RecordingOutbox()


@pytest.fixture
def books(document_store: DocumentStore, outbox: RecordingOutbox) -> BookRepository:
    return BookRepository(document_store, outbox=outbox)


@pytest.fixture
def courses(document_store: DocumentStore) -> CourseBuildRepository:
    return CourseBuildRepository(document_store)


class TestBookRepository:
    """Tests for the books container."""

    async def test_create_and_get_book(self, books: BookRepository) -> None:
        created = await books.create_book_main(_make_book(paginas=124), "twin-1")

        assert created
        fetched = await books.get_book_main_by_id(created.unwrap(), "twin-1")
        assert fetched
        book = fetched.unwrap()
        assert book.id == created.unwrap()
        assert book.titulo == "Pedro Páramo"
        assert book.paginas == 124
        assert book.created_at is not None

    async def test_create_keeps_supplied_id(self, books: BookRepository) -> None:
        created = await books.create_book_main(_make_book(id="book-7"), "twin-1")

        assert created.unwrap() == "book-7"

    async def test_create_duplicate_id_is_permanent_failure(self, books: BookRepository) -> None:
        await books.create_book_main(_make_book(id="book-7"), "twin-1")

        duplicate = await books.create_book_main(_make_book(id="book-7"), "twin-1")

        assert not duplicate
        assert duplicate.error_kind == ErrorKind.PERMANENT

    async def test_create_without_twin_is_invalid_input(self, books: BookRepository) -> None:
        result = await books.create_book_main(_make_book(), "")

        assert not result
        assert result.error_kind == ErrorKind.INVALID_INPUT

    async def test_books_are_isolated_per_twin(self, books: BookRepository) -> None:
        created = await books.create_book_main(_make_book(), "twin-1")
        await books.create_book_main(_make_book("El llano en llamas"), "twin-2")

        other = await books.get_book_main_by_id(created.unwrap(), "twin-2")
        listed = await books.get_book_mains_by_twin_id("twin-1")

        assert other.not_found
        assert [book.titulo for book in listed.unwrap()] == ["Pedro Páramo"]

    async def test_list_is_newest_first(self, books: BookRepository) -> None:
        await books.create_book_main(_make_book("Primero"), "twin-1")
        await books.create_book_main(_make_book("Segundo"), "twin-1")

        listed = await books.get_book_mains_by_twin_id("twin-1")

        assert [book.titulo for book in listed.unwrap()] == ["Segundo", "Primero"]

    async def test_update_overlays_fields_and_keeps_created_at(self, books: BookRepository) -> None:
        created = await books.create_book_main(_make_book(), "twin-1")
        original = (await books.get_book_main_by_id(created.unwrap(), "twin-1")).unwrap()

        analysis = BookAnalysis(descripcion_ai="Novela del realismo mágico")
        updated = await books.update_book_main(
            original.model_copy(update={"calificacion": 5, "datos_ia": analysis}), "twin-1"
        )

        assert updated
        stored = (await books.get_book_main_by_id(created.unwrap(), "twin-1")).unwrap()
        assert stored.calificacion == 5
        assert stored.datos_ia is not None
        assert stored.datos_ia.descripcion_ai == "Novela del realismo mágico"
        assert stored.created_at == original.created_at
        assert stored.updated_at is not None and original.updated_at is not None
        assert stored.updated_at >= original.updated_at

    async def test_update_without_id_is_invalid_input(self, books: BookRepository) -> None:
        result = await books.update_book_main(_make_book(), "twin-1")

        assert result.error_kind == ErrorKind.INVALID_INPUT

    async def test_update_missing_book_is_not_found(self, books: BookRepository) -> None:
        result = await books.update_book_main(_make_book(id="ghost"), "twin-1")

        assert result.not_found

    async def test_delete_then_get_is_not_found(self, books: BookRepository) -> None:
        created = await books.create_book_main(_make_book(), "twin-1")

        deleted = await books.delete_book_main(created.unwrap(), "twin-1")
        fetched = await books.get_book_main_by_id(created.unwrap(), "twin-1")
        again = await books.delete_book_main(created.unwrap(), "twin-1")

        assert deleted
        assert fetched.not_found
        assert again.not_found

    async def test_writes_publish_record_events(self, books: BookRepository, outbox: RecordingOutbox) -> None:
        created = await books.create_book_main(_make_book(), "twin-1")
        book = (await books.get_book_main_by_id(created.unwrap(), "twin-1")).unwrap()
        await books.update_book_main(book.model_copy(update={"calificacion": 4}), "twin-1")
        await books.delete_book_main(created.unwrap(), "twin-1")

        assert [event.event_type for event in outbox.events] == [
            RecordEventType.CREATED,
            RecordEventType.UPDATED,
            RecordEventType.DELETED,
        ]
        assert all(event.container == BookRepository.container for event in outbox.events)
        assert outbox.events[0].payload["BookMainData"]["titulo"] == "Pedro Páramo"

    async def test_failed_write_publishes_nothing(self, books: BookRepository, outbox: RecordingOutbox) -> None:
        await books.delete_book_main("ghost", "twin-1")

        assert outbox.events == []


class TestCourseBuildRepository:
    """Tests for the AI course builds container."""

    async def test_save_and_get_course(self, courses: CourseBuildRepository) -> None:
        course = CourseBuild(twin_id="twin-1", nombre_clase="Cocina básica", capitulos=[{"Titulo": "Cuchillos"}])

        saved = await courses.save_course_build(course)
        fetched = await courses.get_course_by_id(saved.unwrap(), "twin-1")

        assert fetched.unwrap() == course.model_copy(update={"id": saved.unwrap()})

    async def test_courses_are_listed_per_twin(self, courses: CourseBuildRepository) -> None:
        await courses.save_course_build(CourseBuild(twin_id="twin-1", nombre_clase="Uno"))
        await courses.save_course_build(CourseBuild(twin_id="twin-2", nombre_clase="Dos"))

        listed = await courses.get_courses_by_twin_id("twin-1")

        assert [course.nombre_clase for course in listed.unwrap()] == ["Uno"]

    async def test_update_course_skips_null_fields(self, courses: CourseBuildRepository) -> None:
        saved = await courses.save_course_build(
            CourseBuild(twin_id="twin-1", nombre_clase="Cocina", descripcion="Para principiantes")
        )

        updated = await courses.update_course_build(
            CourseBuild(id=saved.unwrap(), twin_id="twin-1", duracion_estimada="4 semanas")
        )

        course = updated.unwrap()
        assert course.duracion_estimada == "4 semanas"
        assert course.descripcion == "Para principiantes"

    async def test_delete_course(self, courses: CourseBuildRepository) -> None:
        saved = await courses.save_course_build(CourseBuild(twin_id="twin-1", nombre_clase="Uno"))

        assert await courses.delete_course_build(saved.unwrap(), "twin-1")
        assert (await courses.get_course_by_id(saved.unwrap(), "twin-1")).not_found


class TestMortgageRepository:
    """Tests for mortgage statement analyses."""

    def _report(self, name: str) -> MortgageStatementReport:
        return MortgageStatementReport.model_validate(
            {"fileName": name, "htmlReport": f"<h1>{name}</h1>", "jsonData": {"balance": 250000}}
        )

    async def test_save_and_get_mortgage_document(self, document_store: DocumentStore) -> None:
        repository = MortgageRepository(document_store)

        saved = await repository.save_mortgage_analysis(
            self._report("enero.pdf"), '{"balance": 250000}', "twin-1", "home-1", file_name="enero.pdf"
        )
        fetched = await repository.get_mortgage_document_by_id(saved.unwrap(), "twin-1")

        document = fetched.unwrap()
        assert document.home_id == "home-1"
        assert document.html_report == "<h1>enero.pdf</h1>"
        assert document.ai_analysis_result_json == '{"balance": 250000}'

    async def test_save_without_home_is_invalid_input(self, document_store: DocumentStore) -> None:
        repository = MortgageRepository(document_store)

        result = await repository.save_mortgage_analysis(self._report("x.pdf"), "{}", "twin-1", "")

        assert result.error_kind == ErrorKind.INVALID_INPUT

    async def test_reports_by_home_include_temporary_urls(self, document_store: DocumentStore) -> None:
        resolver = FakeUrlResolver()
        repository = MortgageRepository(document_store, url_resolver=resolver)
        await repository.save_mortgage_analysis(
            self._report("enero.pdf"), "{}", "twin-1", "home-1", file_name="enero.pdf", file_path="hipotecas"
        )
        await repository.save_mortgage_analysis(self._report("otra.pdf"), "{}", "twin-1", "home-2")

        reports = await repository.get_mortgage_reports_by_home_id("twin-1", "home-1")

        assert [report.file_name for report in reports.unwrap()] == ["enero.pdf"]
        assert reports.unwrap()[0].file_url == "https://files.example/twin-1/hipotecas/enero.pdf?sig=abc"
        assert resolver.calls[0][2] == timedelta(hours=24)

    async def test_url_failure_leaves_url_empty(self, document_store: DocumentStore) -> None:
        repository = MortgageRepository(document_store, url_resolver=FakeUrlResolver(fail=True))
        await repository.save_mortgage_analysis(
            self._report("enero.pdf"), "{}", "twin-1", "home-1", file_name="enero.pdf", file_path="hipotecas"
        )

        reports = await repository.get_mortgage_reports_by_home_id("twin-1", "home-1")

        assert reports
        assert reports.unwrap()[0].file_url == ""

    async def test_delete_mortgage_document(self, document_store: DocumentStore) -> None:
        repository = MortgageRepository(document_store)
        saved = await repository.save_mortgage_analysis(self._report("a.pdf"), "{}", "twin-1", "home-1")

        assert await repository.delete_mortgage_document(saved.unwrap(), "twin-1")
        assert (await repository.get_mortgage_documents_by_twin_id("twin-1")).unwrap() == []
