from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from twindata.models.base import ensure_metadata_dict, ensure_non_empty_text, parse_datetime, utc_now
from twindata.models.enums import SearchMode


class DiaryAnalysis(BaseModel):
    """Comprehensive analysis produced for one diary entry."""

    diary_entry_id: str
    twin_id: str | None = None
    success: bool = True
    executive_summary: str = ""
    detailed_html_report: str = ""
    processing_time_ms: float = Field(default=0.0, ge=0)
    analyzed_at: datetime = Field(default_factory=utc_now)
    error_message: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("diary_entry_id")
    @classmethod
    def _validate_entry_id(cls, value: str) -> str:
        return ensure_non_empty_text(value, "diary_entry_id")

    @field_validator("analyzed_at", mode="before")
    @classmethod
    def _parse_analyzed_at(cls, value: Any) -> Any:
        return parse_datetime(value) or utc_now()

    @field_validator("metadata", mode="before")
    @classmethod
    def _validate_metadata(cls, value: Any) -> dict[str, Any]:
        return ensure_metadata_dict(value)


class DiarySearchQuery(BaseModel):
    """Search request for diary analyses.

    Full text is the default mode. ``use_semantic_search`` and
    ``use_vector_search`` are mutually exclusive; ``use_hybrid_search`` only
    applies together with the vector mode.
    """

    search_text: str | None = None
    twin_id: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    successful_only: bool = False
    use_vector_search: bool = False
    use_semantic_search: bool = False
    use_hybrid_search: bool = False
    top: int = Field(default=10, ge=1, le=1000)
    page: int = Field(default=1, ge=1)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def _parse_dates(cls, value: Any) -> datetime | None:
        return parse_datetime(value)

    @model_validator(mode="after")
    def _validate_modes(self) -> "DiarySearchQuery":
        if self.use_semantic_search and self.use_vector_search:
            raise ValueError("semantic and vector search cannot be combined")
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self

    @property
    def mode(self) -> SearchMode:
        if self.use_vector_search:
            return SearchMode.HYBRID if self.use_hybrid_search else SearchMode.VECTOR
        if self.use_semantic_search:
            return SearchMode.SEMANTIC
        return SearchMode.FULL_TEXT


class DiarySearchHit(BaseModel):
    id: str
    diary_entry_id: str
    twin_id: str | None = None
    executive_summary: str = ""
    success: bool = True
    processing_time_ms: float = 0.0
    analyzed_at: datetime | None = None
    error_message: str | None = None
    detailed_html_report: str | None = None
    search_score: float = 0.0
    highlights: list[str] = Field(default_factory=list)


class DiarySearchPage(BaseModel):
    results: list[DiarySearchHit] = Field(default_factory=list)
    total_count: int = 0
    page: int = 1
    page_size: int = 10
    search_query: str = ""
    search_type: SearchMode = SearchMode.FULL_TEXT


__all__ = ["DiaryAnalysis", "DiarySearchHit", "DiarySearchPage", "DiarySearchQuery"]
