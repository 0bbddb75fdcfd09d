"""SQLModel table definitions for the partitioned document store.

Each row is one JSON document addressed by ``(container, twin_id, id)``, which
mirrors a document database collection whose partition key is the twin id.
Domain models never touch this table directly; repositories convert to and
from the ``body`` column through each entity's wire mapping.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON
from sqlmodel import Field, SQLModel


class DocumentRecord(SQLModel, table=True):
    """One stored JSON document inside a named container."""

    __tablename__ = "documents"

    container: str = Field(primary_key=True)
    twin_id: str = Field(primary_key=True)
    id: str = Field(primary_key=True)
    body: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    created_at: datetime
    updated_at: datetime
