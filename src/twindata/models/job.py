"""Job opportunity records tracked per twin.

``JobOpportunity`` is the tagged record used in code; the stored document is
produced by ``job_opportunity_to_wire`` and read back by
``job_opportunity_from_wire``. Both carry ``JOB_OPPORTUNITY_WIRE_VERSION`` so
older documents can be upgraded in one place.
"""

from datetime import datetime
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from twindata.models.base import SchemaVersioned, new_id, parse_datetime, utc_now
from twindata.models.enums import JobApplicationStatus

JOB_OPPORTUNITY_WIRE_VERSION = 1
JOB_OPPORTUNITY_DOCUMENT_TYPE = "jobOpportunity"

JobSortField = Literal["empresa", "puesto", "fechaAplicacion", "fechaCreacion"]


class JobOpportunity(SchemaVersioned):
    SCHEMA_VERSION: ClassVar[str] = "job_opportunity.v1"

    schema_version: str = Field(default=SCHEMA_VERSION)
    id: str = Field(default_factory=new_id)
    twin_id: str
    empresa: str = Field(min_length=2)
    puesto: str = Field(min_length=2)
    url_company: str | None = None
    descripcion: str | None = None
    responsabilidades: str | None = None
    habilidades_requeridas: str | None = None
    salario: str | None = None
    beneficios: str | None = None
    ubicacion: str | None = None
    fecha_aplicacion: datetime | None = None
    estado: JobApplicationStatus = JobApplicationStatus.APLICADO
    contacto_nombre: str | None = None
    contacto_email: str | None = None
    contacto_telefono: str | None = None
    notas: str | None = None
    usuario_id: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("twin_id")
    @classmethod
    def _validate_twin_id(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("twin_id cannot be empty")
        return value

    @field_validator("estado", mode="before")
    @classmethod
    def _normalize_estado(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("fecha_aplicacion", mode="before")
    @classmethod
    def _parse_fecha_aplicacion(cls, value: Any) -> datetime | None:
        return parse_datetime(value)

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: Any) -> Any:
        return parse_datetime(value) or utc_now()


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def job_opportunity_to_wire(job: JobOpportunity) -> dict[str, Any]:
    return {
        "id": job.id,
        "TwinID": job.twin_id,
        "empresa": job.empresa,
        "urlCompany": job.url_company,
        "puesto": job.puesto,
        "descripcion": job.descripcion,
        "responsabilidades": job.responsabilidades,
        "habilidadesRequeridas": job.habilidades_requeridas,
        "salario": job.salario,
        "beneficios": job.beneficios,
        "ubicacion": job.ubicacion,
        "fechaAplicacion": _isoformat(job.fecha_aplicacion),
        "estado": job.estado.value,
        "contactoNombre": job.contacto_nombre,
        "contactoEmail": job.contacto_email,
        "contactoTelefono": job.contacto_telefono,
        "notas": job.notas,
        "usuarioId": job.usuario_id,
        "fechaCreacion": job.created_at.isoformat(),
        "fechaActualizacion": job.updated_at.isoformat(),
        "documentType": JOB_OPPORTUNITY_DOCUMENT_TYPE,
        "wireVersion": JOB_OPPORTUNITY_WIRE_VERSION,
    }


def job_opportunity_from_wire(data: dict[str, Any]) -> JobOpportunity:
    version = data.get("wireVersion", JOB_OPPORTUNITY_WIRE_VERSION)
    if version != JOB_OPPORTUNITY_WIRE_VERSION:
        raise ValueError(f"unsupported job opportunity wire version: {version}")
    return JobOpportunity(
        id=data["id"],
        twin_id=data.get("TwinID") or "",
        empresa=data.get("empresa") or "",
        url_company=data.get("urlCompany"),
        puesto=data.get("puesto") or "",
        descripcion=data.get("descripcion"),
        responsabilidades=data.get("responsabilidades"),
        habilidades_requeridas=data.get("habilidadesRequeridas"),
        salario=data.get("salario"),
        beneficios=data.get("beneficios"),
        ubicacion=data.get("ubicacion"),
        fecha_aplicacion=data.get("fechaAplicacion"),
        estado=data.get("estado") or JobApplicationStatus.APLICADO,
        contacto_nombre=data.get("contactoNombre"),
        contacto_email=data.get("contactoEmail"),
        contacto_telefono=data.get("contactoTelefono"),
        notas=data.get("notas"),
        usuario_id=data.get("usuarioId") or "",
        created_at=data.get("fechaCreacion"),
        updated_at=data.get("fechaActualizacion"),
    )


class JobOpportunityQuery(BaseModel):
    """Filters, ordering and paging for a twin's job opportunities."""

    estado: JobApplicationStatus | None = None
    empresa: str | None = None
    puesto: str | None = None
    ubicacion: str | None = None
    fecha_desde: datetime | None = None
    fecha_hasta: datetime | None = None
    sort_by: JobSortField = "fechaCreacion"
    sort_direction: Literal["asc", "desc"] = "desc"
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("fecha_desde", "fecha_hasta", mode="before")
    @classmethod
    def _parse_dates(cls, value: Any) -> datetime | None:
        return parse_datetime(value)


class JobOpportunityStats(BaseModel):
    aplicado: int = 0
    entrevista: int = 0
    esperando: int = 0
    rechazado: int = 0
    aceptado: int = 0
    total: int = 0


__all__ = [
    "JOB_OPPORTUNITY_DOCUMENT_TYPE",
    "JOB_OPPORTUNITY_WIRE_VERSION",
    "JobOpportunity",
    "JobOpportunityQuery",
    "JobOpportunityStats",
    "job_opportunity_from_wire",
    "job_opportunity_to_wire",
]
