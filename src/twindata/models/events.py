from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from twindata.models.base import new_id, utc_now
from twindata.models.enums import RecordEventType


class RecordEvent(BaseModel):
    """Notification that a record changed, published after the write commits."""

    event_id: str = Field(default_factory=new_id)
    event_type: RecordEventType
    container: str
    twin_id: str
    record_id: str
    payload: dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(frozen=True, extra="forbid")


__all__ = ["RecordEvent"]
