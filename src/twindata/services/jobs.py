"""Job opportunities a twin is tracking."""

from typing import Any, ClassVar

from twindata.models.base import utc_now
from twindata.models.enums import FilterOperator, JobApplicationStatus
from twindata.models.job import (
    JobOpportunity,
    JobOpportunityQuery,
    JobOpportunityStats,
    job_opportunity_from_wire,
    job_opportunity_to_wire,
)
from twindata.models.query import DocumentQuery, TextMatch
from twindata.models.results import Result
from twindata.services.repository import TenantRepository

SEARCHABLE_FIELDS = [
    "empresa",
    "puesto",
    "descripcion",
    "responsabilidades",
    "habilidadesRequeridas",
    "ubicacion",
    "notas",
]

_NEWEST_FIRST = DocumentQuery(order_by="fechaCreacion", descending=True)


def append_status_note(existing: str | None, note: str) -> str:
    """Append a ``[YYYY-MM-DD HH:MM]`` stamped line to the notes history."""
    stamped = f"[{utc_now():%Y-%m-%d %H:%M}] {note}"
    return f"{existing}\n{stamped}" if existing else stamped


class JobOpportunityRepository(TenantRepository[JobOpportunity]):
    container: ClassVar[str] = "TwinJobOpportunities"

    def to_wire(self, entity: JobOpportunity) -> dict[str, Any]:
        return job_opportunity_to_wire(entity)

    def from_wire(self, body: dict[str, Any]) -> JobOpportunity:
        return job_opportunity_from_wire(body)

    async def create_job_opportunity(self, job: JobOpportunity) -> Result[str]:
        return await self.create(job)

    async def get_job_opportunities_by_twin_id(
        self, twin_id: str, query: JobOpportunityQuery | None = None
    ) -> Result[list[JobOpportunity]]:
        return await self.get_all_by_tenant(twin_id, self._build_query(query or JobOpportunityQuery()))

    async def get_job_opportunity_by_id(self, job_id: str, twin_id: str) -> Result[JobOpportunity]:
        return await self.get_by_id(job_id, twin_id)

    async def update_job_opportunity(self, job: JobOpportunity) -> Result[JobOpportunity]:
        return await self.update(job)

    async def delete_job_opportunity(self, job_id: str, twin_id: str) -> Result[None]:
        return await self.delete(job_id, twin_id)

    async def get_job_opportunity_stats(self, twin_id: str) -> Result[JobOpportunityStats]:
        counts: dict[str, int] = {}
        for status in JobApplicationStatus:
            result = await self.count(twin_id, DocumentQuery().where("estado", status.value))
            if not result:
                return Result.failure(result.error_kind, result.error or "count failed", JobOpportunityStats())
            counts[status.value] = result.value or 0
        return Result.success(JobOpportunityStats(**counts, total=sum(counts.values())))

    async def get_job_opportunities_by_status(
        self, twin_id: str, status: JobApplicationStatus
    ) -> Result[list[JobOpportunity]]:
        return await self.get_all_by_tenant(twin_id, _NEWEST_FIRST.where("estado", status.value))

    async def search_job_opportunities(
        self, twin_id: str, search_term: str, limit: int = 20
    ) -> Result[list[JobOpportunity]]:
        """Case-insensitive search across company, position, description, skills, location and notes."""
        if not search_term.strip():
            return await self.get_all_by_tenant(twin_id, _NEWEST_FIRST.model_copy(update={"limit": limit}))
        query = _NEWEST_FIRST.model_copy(
            update={"text": TextMatch(term=search_term, fields=SEARCHABLE_FIELDS), "limit": limit}
        )
        return await self.get_all_by_tenant(twin_id, query)

    async def get_recent_job_opportunities(self, twin_id: str, count: int = 10) -> Result[list[JobOpportunity]]:
        return await self.get_all_by_tenant(twin_id, _NEWEST_FIRST.model_copy(update={"limit": count}))

    async def get_job_opportunities_by_company(
        self, twin_id: str, company_name: str
    ) -> Result[list[JobOpportunity]]:
        query = _NEWEST_FIRST.where("empresa", company_name, FilterOperator.CONTAINS)
        return await self.get_all_by_tenant(twin_id, query)

    async def update_job_opportunity_status(
        self,
        job_id: str,
        twin_id: str,
        new_status: JobApplicationStatus,
        notes: str | None = None,
    ) -> Result[JobOpportunity]:
        """Change the status and, when ``notes`` is given, append it to the notes history.

        The history grows without bound; nothing trims or archives old lines.
        """

        async def action() -> JobOpportunity:
            current = await self._read(job_id, twin_id)
            update: dict[str, Any] = {"estado": new_status, "updated_at": utc_now()}
            if notes:
                update["notas"] = append_status_note(current.notas, notes)
            return await self.replace(current.model_copy(update=update))

        result = await self._guard("update_job_opportunity_status", action, item_id=job_id, twin_id=twin_id)
        if result:
            self._logger.info(
                "job_opportunity_status_updated", item_id=job_id, twin_id=twin_id, status=new_status.value
            )
        return result

    def _build_query(self, query: JobOpportunityQuery) -> DocumentQuery:
        built = DocumentQuery(
            order_by=query.sort_by,
            descending=query.sort_direction == "desc",
            offset=(query.page - 1) * query.page_size,
            limit=query.page_size,
        )
        if query.estado is not None:
            built = built.where("estado", query.estado.value)
        for field, value in (("empresa", query.empresa), ("puesto", query.puesto), ("ubicacion", query.ubicacion)):
            if value:
                built = built.where(field, value, FilterOperator.CONTAINS)
        if query.fecha_desde is not None:
            built = built.where("fechaAplicacion", query.fecha_desde, FilterOperator.GTE)
        if query.fecha_hasta is not None:
            built = built.where("fechaAplicacion", query.fecha_hasta, FilterOperator.LTE)
        return built


__all__ = ["JobOpportunityRepository", "SEARCHABLE_FIELDS", "append_status_note"]
