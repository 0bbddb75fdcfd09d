from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from twindata.models.book import BookMain, BookMainDocument


def _make_book(**overrides: object) -> BookMain:
    data: dict[str, object] = {"titulo": "Cien años de soledad", "autor": "Gabriel García Márquez"}
    data.update(overrides)
    return BookMain.model_validate(data)


def test_book_main_accepts_camel_case_wire_keys() -> None:
    book = BookMain.model_validate(
        {
            "titulo": "Rayuela",
            "añoPublicacion": 1963,
            "fechaInicio": "2024-01-01",
            "prestadoA": "Ana",
            "datosIA": {"DescripcionAI": "Novela experimental", "INFORMACIÓN_TÉCNICA": {"paginas": 600}},
        }
    )

    assert book.schema_version == BookMain.SCHEMA_VERSION
    assert book.anio_publicacion == 1963
    assert book.fecha_inicio == "2024-01-01"
    assert book.prestado_a == "Ana"
    assert book.datos_ia is not None
    assert book.datos_ia.descripcion_ai == "Novela experimental"
    # Unknown analysis sections survive as extra data.
    assert book.datos_ia.model_extra == {"INFORMACIÓN_TÉCNICA": {"paginas": 600}}


def test_book_main_rejects_blank_title() -> None:
    with pytest.raises(ValidationError):
        _make_book(titulo="   ")


def test_book_main_rejects_out_of_range_rating() -> None:
    with pytest.raises(ValidationError):
        _make_book(calificacion=6)


def test_book_main_document_wire_uses_stored_aliases() -> None:
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    envelope = BookMainDocument(
        id="book-1",
        twin_id="twin-1",
        book_main_data=_make_book(id="book-1", anio_publicacion=1967),
        created_at=now,
        updated_at=now,
    )

    wire = envelope.to_wire()

    assert wire["TwinID"] == "twin-1"
    assert wire["BookMainData"]["titulo"] == "Cien años de soledad"
    assert wire["BookMainData"]["añoPublicacion"] == 1967
    assert wire["CreatedAt"].startswith("2024-05-01T12:00:00")
    assert BookMainDocument.from_wire(wire) == envelope


def test_book_main_document_rejects_foreign_schema_version() -> None:
    with pytest.raises(ValidationError):
        BookMainDocument.from_wire(
            {
                "schemaVersion": "book_main_document.v0",
                "id": "book-1",
                "TwinID": "twin-1",
                "BookMainData": {"titulo": "Rayuela"},
                "CreatedAt": "2024-05-01T12:00:00Z",
                "UpdatedAt": "2024-05-01T12:00:00Z",
            }
        )


def test_book_main_is_immutable() -> None:
    book = _make_book()

    with pytest.raises(ValidationError):
        book.titulo = "Otro"  # type: ignore[misc]
