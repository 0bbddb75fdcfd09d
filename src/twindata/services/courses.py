from typing import Any, ClassVar

from twindata.models.course import CourseBuild
from twindata.models.query import DocumentQuery
from twindata.models.results import Result
from twindata.services.document_store import ORDER_BY_CREATED
from twindata.services.repository import TenantRepository


class CourseBuildRepository(TenantRepository[CourseBuild]):
    container: ClassVar[str] = "TwinCursosAIBuild"

    def to_wire(self, entity: CourseBuild) -> dict[str, Any]:
        return entity.to_wire()

    def from_wire(self, body: dict[str, Any]) -> CourseBuild:
        return CourseBuild.from_wire(body)

    async def save_course_build(self, course: CourseBuild) -> Result[str]:
        return await self.create(course)

    async def get_courses_by_twin_id(self, twin_id: str) -> Result[list[CourseBuild]]:
        return await self.get_all_by_tenant(twin_id, DocumentQuery(order_by=ORDER_BY_CREATED, descending=True))

    async def get_course_by_id(self, course_id: str, twin_id: str) -> Result[CourseBuild]:
        return await self.get_by_id(course_id, twin_id)

    async def update_course_build(self, course: CourseBuild) -> Result[CourseBuild]:
        return await self.update(course)

    async def delete_course_build(self, course_id: str, twin_id: str) -> Result[None]:
        return await self.delete(course_id, twin_id)


__all__ = ["CourseBuildRepository"]
