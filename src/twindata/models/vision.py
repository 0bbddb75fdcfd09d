from typing import Any

from pydantic import AliasChoices, BaseModel, Field

from twindata.models.base import WireModel

IMAGE_NOT_ANALYZED = "No se pudo analizar la imagen."


class PhotoContext(BaseModel):
    """What the user told us about a photo before it is analysed."""

    file_name: str = ""
    description: str = ""
    date_taken: str = ""
    location: str = ""
    country: str = ""
    place: str = ""
    people_in_photo: str = ""
    tags: str = ""
    category: str = ""
    event_type: str = ""


class ImageAnalysis(WireModel):
    """Structured description of a residential photo returned by the vision model."""

    id: str | None = None
    twin_id: str | None = Field(default=None, validation_alias=AliasChoices("twin_id", "TwinID"))
    file_name: str | None = None
    file_path: str | None = None
    file_url: str | None = None
    descripcion_generica: str | None = Field(
        default=None, validation_alias=AliasChoices("descripcionGenerica", "descripcion_generica")
    )
    details_html: str | None = Field(default=None, validation_alias=AliasChoices("detailsHTML", "details_html"))
    analisis_arquitectonico: dict[str, Any] | None = None
    elementos_decorativos: dict[str, Any] | None = None
    analisis_espacial: dict[str, Any] | None = None
    caracteristicas_tecnicas: dict[str, Any] | None = None
    evaluacion_general: dict[str, Any] | None = None

    @property
    def analyzed(self) -> bool:
        return self.descripcion_generica != IMAGE_NOT_ANALYZED

    @classmethod
    def not_analyzed(cls) -> "ImageAnalysis":
        return cls(descripcion_generica=IMAGE_NOT_ANALYZED)


__all__ = ["IMAGE_NOT_ANALYZED", "ImageAnalysis", "PhotoContext"]
