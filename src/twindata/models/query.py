from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from twindata.models.base import ensure_non_empty_text
from twindata.models.enums import FilterOperator


class FieldFilter(BaseModel):
    """A single condition on a top-level field of a stored JSON body."""

    field: str
    op: FilterOperator = FilterOperator.EQ
    value: str | int | float | bool | datetime

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("field")
    @classmethod
    def _validate_field(cls, value: str) -> str:
        return ensure_non_empty_text(value, "field")

    @model_validator(mode="after")
    def _validate_operator(self) -> "FieldFilter":
        if self.op == FilterOperator.CONTAINS and not isinstance(self.value, str):
            raise ValueError("contains filters require a string value")
        return self


class TextMatch(BaseModel):
    """Case-insensitive substring match against any of several fields."""

    term: str
    fields: list[str] = Field(min_length=1)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("term")
    @classmethod
    def _validate_term(cls, value: str) -> str:
        return ensure_non_empty_text(value, "term")


class DocumentQuery(BaseModel):
    """Partition-scoped query over one container.

    The tenant partition is never part of the query itself; the store always
    applies it, so a query cannot reach another tenant's records.
    """

    filters: list[FieldFilter] = Field(default_factory=list)
    text: TextMatch | None = None
    order_by: str | None = None
    descending: bool = True
    offset: int = Field(default=0, ge=0)
    limit: int | None = Field(default=None, gt=0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    def where(self, field: str, value: Any, op: FilterOperator = FilterOperator.EQ) -> "DocumentQuery":
        return self.model_copy(update={"filters": [*self.filters, FieldFilter(field=field, op=op, value=value)]})


__all__ = ["DocumentQuery", "FieldFilter", "TextMatch"]
