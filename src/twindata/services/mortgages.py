"""Mortgage statement analyses stored per twin and home."""

from datetime import timedelta
from typing import Any, ClassVar, Protocol

from twindata.models.mortgage import (
    MortgageDocument,
    MortgageStatementReport,
    mortgage_document_from_wire,
    mortgage_document_to_wire,
)
from twindata.models.query import DocumentQuery
from twindata.models.results import Result
from twindata.services.repository import TenantRepository

REPORT_URL_LIFETIME = timedelta(hours=24)


class FileUrlResolver(Protocol):
    """Produces a temporary download URL for a stored file."""

    async def generate_url(self, container: str, path: str, expires_in: timedelta) -> str | None: ...


class MortgageRepository(TenantRepository[MortgageDocument]):
    container: ClassVar[str] = "TwinMortgage"

    def __init__(self, *args: Any, url_resolver: FileUrlResolver | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._url_resolver = url_resolver

    def to_wire(self, entity: MortgageDocument) -> dict[str, Any]:
        return mortgage_document_to_wire(entity)

    def from_wire(self, body: dict[str, Any]) -> MortgageDocument:
        return mortgage_document_from_wire(body)

    async def save_mortgage_analysis(
        self,
        report: MortgageStatementReport,
        ai_analysis_result_json: str,
        twin_id: str,
        home_id: str,
        file_name: str = "",
        file_path: str = "",
        container_name: str = "",
        document_url: str = "",
    ) -> Result[str]:
        """Store a parsed statement together with its HTML and the raw AI JSON."""
        try:
            document = MortgageDocument(
                twin_id=twin_id,
                home_id=home_id,
                file_name=file_name,
                file_path=file_path,
                container_name=container_name,
                document_url=document_url,
                report=report,
                html_report=report.html_report,
                ai_analysis_result_json=ai_analysis_result_json,
            )
        except ValueError as error:
            self._logger.warning("save_mortgage_analysis_invalid", twin_id=twin_id, home_id=home_id, error=str(error))
            return Result.from_exception(error)
        return await self.create(document)

    async def get_mortgage_documents_by_twin_id(self, twin_id: str) -> Result[list[MortgageDocument]]:
        return await self.get_all_by_tenant(twin_id, DocumentQuery(order_by="fechaCreacion", descending=True))

    async def get_mortgage_reports_by_home_id(
        self, twin_id: str, home_id: str
    ) -> Result[list[MortgageStatementReport]]:
        """Reports for one home, newest first, each with a temporary file URL when one can be made."""
        query = DocumentQuery(order_by="fechaCreacion", descending=True).where("homeId", home_id)
        result = await self.get_all_by_tenant(twin_id, query)
        if not result:
            return result

        reports: list[MortgageStatementReport] = []
        for document in result.value or []:
            file_url = await self._resolve_file_url(document)
            reports.append(
                document.report.model_copy(
                    update={"file_name": document.file_name, "file_path": document.file_path, "file_url": file_url}
                )
            )
        self._logger.info("mortgage_reports_loaded", twin_id=twin_id, home_id=home_id, count=len(reports))
        return Result.success(reports)

    async def get_mortgage_document_by_id(self, document_id: str, twin_id: str) -> Result[MortgageDocument]:
        return await self.get_by_id(document_id, twin_id)

    async def delete_mortgage_document(self, document_id: str, twin_id: str) -> Result[None]:
        return await self.delete(document_id, twin_id)

    async def _resolve_file_url(self, document: MortgageDocument) -> str:
        if self._url_resolver is None or not document.file_name or not document.file_path:
            return ""
        container = document.container_name or document.twin_id
        path = f"{document.file_path}/{document.file_name}"
        try:
            return await self._url_resolver.generate_url(container, path, REPORT_URL_LIFETIME) or ""
        except Exception as error:
            self._logger.warning("mortgage_file_url_failed", container=container, path=path, error=str(error))
            return ""


__all__ = ["FileUrlResolver", "MortgageRepository", "REPORT_URL_LIFETIME"]
