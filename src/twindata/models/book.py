from datetime import datetime
from typing import Any, ClassVar

from pydantic import ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from twindata.models.base import SchemaVersioned, WireModel, ensure_non_empty_text, parse_datetime


class BookAnalysis(WireModel):
    """AI-generated literary analysis attached to a book.

    The analysis sections come straight from a language model, so only the
    fields used for indexing are typed; everything else is kept as extra data.
    """

    descripcion_ai: str | None = Field(default=None, alias="DescripcionAI")
    detail_html_report: str | None = Field(default=None, alias="detailHTMLReport")
    book_notes: list[dict[str, Any]] = Field(default_factory=list, alias="BookNotes")


class BookMain(SchemaVersioned):
    SCHEMA_VERSION: ClassVar[str] = "book_main.v1"

    model_config = ConfigDict(alias_generator=to_camel)

    schema_version: str = Field(default=SCHEMA_VERSION)
    id: str | None = None
    titulo: str
    autor: str | None = None
    isbn: str | None = None
    anio_publicacion: int | None = Field(default=None, alias="añoPublicacion")
    calificacion: int | None = Field(default=None, ge=0, le=5)
    descripcion: str | None = None
    editorial: str | None = None
    estado: str | None = None
    fecha_inicio: str | None = None
    fecha_fin: str | None = None
    fecha_lectura: str | None = None
    fecha_prestamo: str | None = None
    formato: str | None = None
    genero: str | None = None
    opiniones: str | None = None
    paginas: int | None = Field(default=None, ge=0)
    portada: str | None = None
    prestado_a: str | None = None
    recomendado: bool = False
    tags: list[str] = Field(default_factory=list)
    datos_ia: BookAnalysis | None = Field(default=None, alias="datosIA")
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("titulo")
    @classmethod
    def _validate_titulo(cls, value: str) -> str:
        return ensure_non_empty_text(value, "titulo")

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: Any) -> datetime | None:
        return parse_datetime(value)


class BookMainDocument(SchemaVersioned):
    """Envelope stored in the books container around a ``BookMain``."""

    SCHEMA_VERSION: ClassVar[str] = "book_main_document.v1"

    schema_version: str = Field(default=SCHEMA_VERSION, alias="schemaVersion")
    id: str
    twin_id: str = Field(alias="TwinID")
    book_main_data: BookMain = Field(alias="BookMainData")
    created_at: datetime = Field(alias="CreatedAt")
    updated_at: datetime = Field(alias="UpdatedAt")

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: Any) -> datetime | None:
        return parse_datetime(value)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "BookMainDocument":
        return cls.model_validate(data)


__all__ = ["BookAnalysis", "BookMain", "BookMainDocument"]
