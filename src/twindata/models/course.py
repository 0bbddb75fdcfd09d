from datetime import datetime
from typing import Any, ClassVar

from pydantic import ConfigDict, Field, field_validator
from pydantic.alias_generators import to_pascal

from twindata.models.base import SchemaVersioned, parse_datetime, utc_now


class CourseBuild(SchemaVersioned):
    """Course outline built by the AI course builder for one twin."""

    SCHEMA_VERSION: ClassVar[str] = "course_build.v1"

    model_config = ConfigDict(alias_generator=to_pascal)

    schema_version: str = Field(default=SCHEMA_VERSION)
    id: str | None = Field(default=None, alias="id")
    twin_id: str = Field(alias="TwinID")
    idioma: str | None = None
    nombre_clase: str | None = None
    descripcion: str | None = None
    duracion_estimada: str | None = None
    etiquetas: list[str] = Field(default_factory=list)
    capitulos: list[dict[str, Any]] = Field(default_factory=list)
    cursos_internet: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("twin_id")
    @classmethod
    def _validate_twin_id(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("TwinID cannot be empty")
        return value

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: Any) -> Any:
        return parse_datetime(value) or utc_now()

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "CourseBuild":
        return cls.model_validate(data)


__all__ = ["CourseBuild"]
