from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from twindata.models.base import ensure_non_empty_text, new_id


class DocumentPage(BaseModel):
    page_number: int = Field(ge=1)
    lines: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class ChapterIndex(BaseModel):
    """One table-of-contents entry."""

    title: str
    page_from: int = Field(ge=1)
    page_to: int | None = Field(default=None, ge=1)
    subchapters: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @field_validator("title")
    @classmethod
    def _validate_title(cls, value: str) -> str:
        return ensure_non_empty_text(value, "title")


class ExtractedSubChapter(BaseModel):
    id: str = Field(default_factory=new_id)
    chapter_id: str
    title: str
    text: str
    total_tokens: int = Field(default=0, ge=0)
    page_from: int
    page_to: int


class ExtractedChapter(BaseModel):
    id: str = Field(default_factory=new_id)
    chapter_id: str = Field(default_factory=new_id)
    twin_id: str
    title: str
    text: str
    page_from: int
    page_to: int
    total_tokens: int = Field(default=0, ge=0)
    subchapters: list[ExtractedSubChapter] = Field(default_factory=list)


class Subtema(BaseModel):
    """A sub-topic as returned by the subdivision model."""

    title: str = Field(default="", validation_alias=AliasChoices("title", "Title"))
    texto: str = Field(default="", validation_alias=AliasChoices("texto", "Texto"))
    descripcion: str = Field(default="", validation_alias=AliasChoices("descripcion", "Descripcion"))

    model_config = ConfigDict(extra="ignore")


class ChapterSubdivision(BaseModel):
    """A chapter split into sub-topics, enriched with the matched source text."""

    titulo: str = Field(default="", validation_alias=AliasChoices("titulo", "Titulo"))
    total_subcapitulos: int = Field(
        default=0, validation_alias=AliasChoices("Total_Subcapitulos", "total_subcapitulos")
    )
    subtemas: list[Subtema] = Field(default_factory=list, validation_alias=AliasChoices("subtemas", "Subtemas"))
    texto_completo: str = ""
    total_tokens: int = 0
    time_seconds: int = 0
    pagina_de: int = 0
    pagina_a: int = 0

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_envelope(cls, payload: Any) -> "ChapterSubdivision":
        """Parse the ``{"capitulo": {...}}`` envelope the model is asked to return."""
        if not isinstance(payload, dict):
            raise ValueError("expected a JSON object")
        body = payload.get("capitulo", payload.get("Capitulo"))
        if not isinstance(body, dict):
            raise ValueError("response has no 'capitulo' object")
        return cls.model_validate(body)


__all__ = [
    "ChapterIndex",
    "ChapterSubdivision",
    "DocumentPage",
    "ExtractedChapter",
    "ExtractedSubChapter",
    "Subtema",
]
