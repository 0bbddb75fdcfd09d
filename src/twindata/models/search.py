from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from twindata.models.base import ensure_non_empty_text
from twindata.models.enums import SearchMode

FieldType = Literal["string", "boolean", "int", "double", "datetime", "string_list", "vector"]
FilterValue = str | int | float | bool


class IndexField(BaseModel):
    name: str
    type: FieldType = "string"
    key: bool = False
    filterable: bool = False
    facetable: bool = False
    sortable: bool = False
    searchable: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return ensure_non_empty_text(value, "name")


class SemanticConfiguration(BaseModel):
    """Fields the semantic ranker weighs, in decreasing order of importance."""

    name: str
    title_field: str
    content_fields: list[str] = Field(default_factory=list)
    keyword_fields: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid")


class IndexDefinition(BaseModel):
    name: str
    fields: list[IndexField] = Field(min_length=1)
    vector_field: str | None = None
    vector_dimensions: int = Field(default=1536, gt=0)
    vector_profile: str = "default-vector-profile"
    hnsw_space: Literal["cosine", "l2", "ip"] = "cosine"
    semantic: SemanticConfiguration | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def _validate_fields(self) -> "IndexDefinition":
        keys = [field.name for field in self.fields if field.key]
        if len(keys) != 1:
            raise ValueError("an index needs exactly one key field")
        names = {field.name for field in self.fields}
        if len(names) != len(self.fields):
            raise ValueError("field names must be unique")
        if self.vector_field is not None and self.vector_field not in names:
            raise ValueError(f"vector field '{self.vector_field}' is not declared")
        if self.semantic is not None:
            referenced = [self.semantic.title_field, *self.semantic.content_fields, *self.semantic.keyword_fields]
            missing = [name for name in referenced if name not in names]
            if missing:
                raise ValueError(f"semantic configuration references unknown fields: {missing}")
        return self

    @property
    def key_field(self) -> str:
        return next(field.name for field in self.fields if field.key)

    @property
    def searchable_fields(self) -> list[str]:
        return [field.name for field in self.fields if field.searchable and field.type != "vector"]

    def field(self, name: str) -> IndexField | None:
        return next((field for field in self.fields if field.name == name), None)


class IndexInfo(BaseModel):
    index_name: str
    fields_count: int
    has_vector_search: bool
    has_semantic_search: bool
    document_count: int = 0


class RangeFilter(BaseModel):
    """Inclusive bounds on a numeric or datetime field."""

    field: str
    gte: float | datetime | None = None
    lte: float | datetime | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def _validate_bounds(self) -> "RangeFilter":
        if self.gte is None and self.lte is None:
            raise ValueError("a range filter needs at least one bound")
        return self


class SearchRequest(BaseModel):
    """Query against one index.

    ``semantic_rerank`` applies the semantic ranker on top of any mode; the
    semantic mode is full text with it switched on. ``knn`` overrides the
    number of nearest neighbours fetched by vector queries.
    """

    text: str | None = None
    mode: SearchMode = SearchMode.FULL_TEXT
    equals: dict[str, FilterValue] = Field(default_factory=dict)
    ranges: list[RangeFilter] = Field(default_factory=list)
    top: int = Field(default=10, ge=1, le=1000)
    page: int = Field(default=1, ge=1)
    semantic_rerank: bool = False
    knn: int | None = Field(default=None, ge=1)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.top

    @property
    def has_text(self) -> bool:
        return bool(self.text and self.text.strip() and self.text.strip() != "*")


class SearchHit(BaseModel):
    id: str
    score: float = 0.0
    reranker_score: float | None = None
    document: dict[str, Any] = Field(default_factory=dict)
    captions: list[str] = Field(default_factory=list)


class SearchAnswer(BaseModel):
    key: str
    text: str
    score: float = 0.0


class SearchPage(BaseModel):
    hits: list[SearchHit] = Field(default_factory=list)
    total_count: int = 0
    page: int = 1
    page_size: int = 10
    mode: SearchMode = SearchMode.FULL_TEXT
    answers: list[SearchAnswer] = Field(default_factory=list)


class IndexingOutcome(BaseModel):
    key: str
    succeeded: bool
    error: str | None = None


__all__ = [
    "FieldType",
    "FilterValue",
    "IndexDefinition",
    "IndexField",
    "IndexInfo",
    "IndexingOutcome",
    "RangeFilter",
    "SearchAnswer",
    "SearchHit",
    "SearchPage",
    "SearchRequest",
    "SemanticConfiguration",
]
