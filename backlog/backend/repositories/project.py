"""
Project Repository.

Data access layer for projects, including the eager-loading variants the
services need to render aggregates without lazy loads.
"""

from collections.abc import Iterable

from sqlalchemy import Select, func, select
from sqlalchemy.orm import selectinload

from backlog.backend.models.file import File
from backlog.backend.models.note import Note
from backlog.backend.models.project import Priority, Project, ProjectStatus
from backlog.backend.models.tag import ProjectTag, Tag
from backlog.backend.repositories.base import BaseRepository


def _with_tags():
    return selectinload(Project.tag_links).joinedload(ProjectTag.tag)


class ProjectRepository(BaseRepository[Project]):
    """Repository for Project model."""

    model = Project

    def _filtered(
        self,
        stmt: Select,
        status: ProjectStatus | None = None,
        priority: Priority | None = None,
        tag: str | None = None,
    ) -> Select:
        # ARCHIVED selects archived rows; anything else never sees them
        if status == ProjectStatus.ARCHIVED:
            stmt = stmt.where(Project.archived_at.is_not(None))
        else:
            stmt = stmt.where(Project.archived_at.is_(None))
            if status is not None:
                stmt = stmt.where(Project.status == status)
        if priority is not None:
            stmt = stmt.where(Project.priority == priority)
        if tag:
            stmt = stmt.where(
                Project.tag_links.any(ProjectTag.tag.has(Tag.name == tag))
            )
        return stmt

    async def get_with_tags(self, id: str) -> Project | None:
        """Load a project with its tags, refreshing any cached instance."""
        result = await self.session.execute(
            select(Project)
            .where(Project.id == id)
            .options(_with_tags())
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_detail(self, id: str, note_limit: int) -> tuple[Project, list[Note]] | None:
        """Project with tags and files plus its most recently updated notes."""
        result = await self.session.execute(
            select(Project)
            .where(Project.id == id)
            .options(_with_tags(), selectinload(Project.files))
            .execution_options(populate_existing=True)
        )
        project = result.scalar_one_or_none()
        if project is None:
            return None
        notes = await self.session.execute(
            select(Note)
            .where(Note.project_id == id)
            .order_by(Note.updated_at.desc())
            .limit(note_limit)
        )
        return project, list(notes.scalars().all())

    async def get_full(self, id: str) -> Project | None:
        """Project with tags, files, and every note with its version history."""
        result = await self.session.execute(
            select(Project)
            .where(Project.id == id)
            .options(
                _with_tags(),
                selectinload(Project.files),
                selectinload(Project.notes).selectinload(Note.versions),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_for_delete(self, id: str) -> Project | None:
        """Project with every dependent row loaded so the ORM can cascade."""
        result = await self.session.execute(
            select(Project)
            .where(Project.id == id)
            .options(
                selectinload(Project.tag_links),
                selectinload(Project.files),
                selectinload(Project.notes).selectinload(Note.versions),
                selectinload(Project.notes).selectinload(Note.files),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_filtered(
        self,
        status: ProjectStatus | None = None,
        priority: Priority | None = None,
        tag: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Project]:
        """List projects most recently updated first."""
        stmt = self._filtered(select(Project), status, priority, tag)
        result = await self.session.execute(
            stmt.options(_with_tags())
            .order_by(Project.updated_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def count_filtered(
        self,
        status: ProjectStatus | None = None,
        priority: Priority | None = None,
        tag: str | None = None,
    ) -> int:
        stmt = self._filtered(select(func.count()).select_from(Project), status, priority, tag)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def list_recent(self, archived: bool, limit: int) -> list[Project]:
        """Projects on one side of the archive line, most recently updated first."""
        archived_clause = (
            Project.archived_at.is_not(None) if archived else Project.archived_at.is_(None)
        )
        result = await self.session.execute(
            select(Project)
            .where(archived_clause)
            .order_by(Project.updated_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def note_counts(self, project_ids: Iterable[str]) -> dict[str, int]:
        ids = list(project_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(Note.project_id, func.count())
            .where(Note.project_id.in_(ids))
            .group_by(Note.project_id)
        )
        return {project_id: count for project_id, count in result.all()}

    async def file_counts(self, project_ids: Iterable[str]) -> dict[str, int]:
        ids = list(project_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(File.project_id, func.count())
            .where(File.project_id.in_(ids))
            .group_by(File.project_id)
        )
        return {project_id: count for project_id, count in result.all()}
