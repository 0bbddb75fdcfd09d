from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from twindata.models.base import ensure_metadata_dict, parse_datetime, utc_now


class SemistructuredDocument(BaseModel):
    """Plain-text report extracted from an uploaded semistructured file."""

    id: str = ""
    twin_id: str = ""
    document_type: str = ""
    file_name: str = ""
    processed_at: datetime = Field(default_factory=utc_now)
    reporte_texto_plano: str = ""
    file_path: str | None = None
    container_name: str | None = None
    file_size: int | None = Field(default=None, ge=0)
    mime_type: str | None = None
    processing_status: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("processed_at", mode="before")
    @classmethod
    def _parse_processed_at(cls, value: Any) -> Any:
        return parse_datetime(value) or utc_now()

    @field_validator("metadata", mode="before")
    @classmethod
    def _validate_metadata(cls, value: Any) -> dict[str, Any]:
        return ensure_metadata_dict(value)

    def is_valid(self) -> bool:
        required = (self.id, self.twin_id, self.document_type, self.file_name, self.reporte_texto_plano)
        return all(value.strip() for value in required)

    def metadata_text(self) -> str:
        """Flatten metadata into space separated ``key:value`` pairs for full-text search.

        Lossy; the dictionary itself is indexed separately.
        """
        return " ".join(f"{key}:{value}" for key, value in self.metadata.items())


class SemistructuredSearchOptions(BaseModel):
    twin_id: str | None = None
    page: int = Field(default=1, ge=1)
    size: int = Field(default=10, ge=1, le=1000)

    model_config = ConfigDict(frozen=True, extra="forbid")


class SemistructuredSearchDocument(BaseModel):
    score: float = 0.0
    reranker_score: float | None = None
    document: SemistructuredDocument
    highlights: list[str] = Field(default_factory=list)


class UploadResult(BaseModel):
    success: bool
    document_id: str
    error: str | None = None
    message: str | None = None
    index_name: str | None = None
    has_vector_embeddings: bool = False
    vector_dimensions: int = 0


class BatchUploadResult(BaseModel):
    success: bool
    total_documents: int
    successful_uploads: int
    failed_uploads: int
    results: list[UploadResult] = Field(default_factory=list)
    error: str | None = None
    message: str | None = None


__all__ = [
    "BatchUploadResult",
    "SemistructuredDocument",
    "SemistructuredSearchDocument",
    "SemistructuredSearchOptions",
    "UploadResult",
]
