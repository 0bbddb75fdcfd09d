"""Mortgage statement analysis records.

Stored documents keep the parsed report, its HTML rendering and the raw AI
JSON as a backup. The wire layout is produced by explicit, versioned mapping
functions so a change in the stored shape shows up here rather than silently.
"""

from datetime import datetime
from typing import Any, ClassVar

from pydantic import Field, field_validator

from twindata.models.base import SchemaVersioned, WireModel, ensure_non_empty_text, parse_datetime, utc_now

MORTGAGE_WIRE_VERSION = 1


class MortgageStatementReport(WireModel):
    """Structured statement returned by the mortgage analysis model."""

    file_name: str = Field(default="", alias="fileName")
    file_path: str = Field(default="", alias="filePath")
    file_url: str = Field(default="", alias="fileURL")
    json_data: dict[str, Any] | None = Field(default=None, alias="jsonData")
    html_report: str = Field(default="", alias="htmlReport")


class MortgageDocument(SchemaVersioned):
    SCHEMA_VERSION: ClassVar[str] = "mortgage_document.v1"

    schema_version: str = Field(default=SCHEMA_VERSION)
    id: str | None = None
    twin_id: str
    home_id: str
    file_name: str = ""
    file_path: str = ""
    container_name: str = ""
    document_url: str = ""
    report: MortgageStatementReport = Field(default_factory=MortgageStatementReport)
    html_report: str = ""
    ai_analysis_result_json: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    type: str = "mortgage"

    @field_validator("twin_id", "home_id")
    @classmethod
    def _validate_ids(cls, value: str, info: Any) -> str:
        return ensure_non_empty_text(value, info.field_name)

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: Any) -> Any:
        return parse_datetime(value) or utc_now()


def mortgage_document_to_wire(document: MortgageDocument) -> dict[str, Any]:
    return {
        "id": document.id,
        "TwinID": document.twin_id,
        "homeId": document.home_id,
        "fileName": document.file_name,
        "filePath": document.file_path,
        "containerName": document.container_name,
        "documentUrl": document.document_url,
        "mortgageStatementReport": document.report.model_dump(mode="json", by_alias=True, exclude_none=True),
        "htmlReport": document.html_report,
        "aiAnalysisResultJson": document.ai_analysis_result_json,
        "fechaCreacion": document.created_at.isoformat(),
        "fechaActualizacion": document.updated_at.isoformat(),
        "type": document.type,
        "wireVersion": MORTGAGE_WIRE_VERSION,
    }


def mortgage_document_from_wire(data: dict[str, Any]) -> MortgageDocument:
    version = data.get("wireVersion", MORTGAGE_WIRE_VERSION)
    if version != MORTGAGE_WIRE_VERSION:
        raise ValueError(f"unsupported mortgage wire version: {version}")
    return MortgageDocument(
        id=data.get("id"),
        twin_id=data.get("TwinID", ""),
        home_id=data.get("homeId", ""),
        file_name=data.get("fileName") or "",
        file_path=data.get("filePath") or "",
        container_name=data.get("containerName") or "",
        document_url=data.get("documentUrl") or "",
        report=MortgageStatementReport.model_validate(data.get("mortgageStatementReport") or {}),
        html_report=data.get("htmlReport") or "",
        ai_analysis_result_json=data.get("aiAnalysisResultJson") or "",
        created_at=data.get("fechaCreacion"),
        updated_at=data.get("fechaActualizacion"),
        type=data.get("type") or "mortgage",
    )


__all__ = [
    "MORTGAGE_WIRE_VERSION",
    "MortgageDocument",
    "MortgageStatementReport",
    "mortgage_document_from_wire",
    "mortgage_document_to_wire",
]
