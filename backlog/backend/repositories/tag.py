"""
Tag Repository.

Tags are upserted by name; project links are idempotent.
"""

from sqlalchemy import func, select

from backlog.backend.models.tag import ProjectTag, Tag
from backlog.backend.repositories.base import BaseRepository


class TagRepository(BaseRepository[Tag]):
    """Repository for Tag and ProjectTag models."""

    model = Tag

    async def get_by_name(self, name: str) -> Tag | None:
        result = await self.session.execute(select(Tag).where(Tag.name == name))
        return result.scalar_one_or_none()

    async def get_by_names(self, names: list[str]) -> list[Tag]:
        if not names:
            return []
        result = await self.session.execute(select(Tag).where(Tag.name.in_(names)))
        return list(result.scalars().all())

    async def upsert(
        self,
        name: str,
        color: str | None = None,
        overwrite_color: bool = False,
    ) -> Tag:
        """
        Return the tag called ``name``, creating it when missing.

        An existing tag keeps its color unless ``overwrite_color`` is set.
        """
        tag = await self.get_by_name(name)
        if tag is None:
            return await self.create(name=name, color=color)
        if overwrite_color:
            tag.color = color
            await self.session.flush()
        return tag

    async def list_with_counts(self) -> list[tuple[Tag, int]]:
        """All tags by name with the number of projects carrying each."""
        result = await self.session.execute(
            select(Tag, func.count(ProjectTag.project_id))
            .outerjoin(ProjectTag, ProjectTag.tag_id == Tag.id)
            .group_by(Tag.id)
            .order_by(Tag.name.asc())
        )
        return [(tag, count) for tag, count in result.all()]

    async def get_link(self, project_id: str, tag_id: str) -> ProjectTag | None:
        return await self.session.get(ProjectTag, (project_id, tag_id))

    async def link(self, project_id: str, tag_id: str) -> ProjectTag:
        """Attach a tag to a project; an existing link is returned unchanged."""
        link = await self.get_link(project_id, tag_id)
        if link is None:
            link = ProjectTag(project_id=project_id, tag_id=tag_id)
            self.session.add(link)
            await self.session.flush()
        return link

    async def unlink(self, project_id: str, tag_id: str) -> bool:
        """Detach a tag. Returns False when the pair was not linked."""
        link = await self.get_link(project_id, tag_id)
        if link is None:
            return False
        await self.session.delete(link)
        await self.session.flush()
        return True
