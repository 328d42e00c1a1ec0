"""
Tag Service.

Tag upserts and project/tag associations.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from backlog.backend.core.exceptions import NotFoundError, ValidationError
from backlog.backend.models.tag import ProjectTag, Tag
from backlog.backend.repositories.project import ProjectRepository
from backlog.backend.repositories.tag import TagRepository
from backlog.backend.services.base import BaseService


class TagService(BaseService):
    """Service for tags and the project/tag association."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = TagRepository(session)
        self.project_repo = ProjectRepository(session)

    async def list_tags(self) -> list[tuple[Tag, int]]:
        return await self.repo.list_with_counts()

    async def upsert_tag(self, name: str, color: str | None = None) -> Tag:
        """Create a tag, or update the color of an existing one when given."""
        self._log_operation("Upserting tag", name=name)
        return await self._execute_db_operation(
            "upsert_tag",
            self.repo.upsert(name, color=color, overwrite_color=color is not None),
        )

    async def add_tags(self, project_id: str, names: list[str]) -> None:
        """Upsert each name and link it; links that already exist are kept."""
        for name in names:
            tag = await self._execute_db_operation("upsert_tag", self.repo.upsert(name))
            await self._execute_db_operation("link_tag", self.repo.link(project_id, tag.id))

    async def remove_tags(self, project_id: str, names: list[str]) -> None:
        """Unlink tags by name. Unknown or unlinked names are ignored."""
        for tag in await self.repo.get_by_names(names):
            await self.repo.unlink(project_id, tag.id)

    async def add_to_project(
        self,
        project_id: str,
        name: str | None = None,
        tag_id: str | None = None,
        color: str | None = None,
    ) -> tuple[ProjectTag, Tag]:
        """
        Attach a tag given by ID, or by name (upserting it).

        Raises:
            NotFoundError: If the project or the given tag ID does not exist
            ValidationError: If neither tag_id nor name is provided
        """
        if not await self.project_repo.exists(project_id):
            raise NotFoundError("Project not found")

        if tag_id:
            tag = await self.repo.get_by_id(tag_id)
        elif name:
            tag = await self.upsert_tag(name, color)
        else:
            raise ValidationError(
                "Provide either tagId or name",
                details={"fields": ["tagId", "name"]},
            )

        link = await self._execute_db_operation("link_tag", self.repo.link(project_id, tag.id))
        self._log_debug("Tag linked", project_id=project_id, tag_id=tag.id)
        return link, tag

    async def remove_from_project(self, project_id: str, tag_id: str) -> None:
        """
        Detach a tag from a project.

        Raises:
            NotFoundError: If the pair is not linked
        """
        if not await self.repo.unlink(project_id, tag_id):
            raise NotFoundError("Tag is not linked to this project")
        self._log_debug("Tag unlinked", project_id=project_id, tag_id=tag_id)
