"""
Project Service.

Business logic for projects: creation with tags, filtered listing, partial
updates that keep the archive state consistent, soft and hard deletion, and
the per-status backlog summary.
"""

from dataclasses import dataclass, field
from functools import partial

from sqlalchemy.ext.asyncio import AsyncSession

from backlog.backend.core.database import on_commit
from backlog.backend.core.exceptions import NotFoundError
from backlog.backend.core.storage import BlobStorage
from backlog.backend.core.utils import utc_now
from backlog.backend.models.note import Note
from backlog.backend.models.project import Priority, Project, ProjectStatus
from backlog.backend.repositories.project import ProjectRepository
from backlog.backend.schemas.project import ProjectCreate, ProjectUpdate
from backlog.backend.services.base import BaseService
from backlog.backend.services.tag import TagService

# Buckets in display order; the first four count as active work
SUMMARY_STATUSES = [
    ProjectStatus.IN_PROGRESS,
    ProjectStatus.PLANNED,
    ProjectStatus.IDEA,
    ProjectStatus.PAUSED,
    ProjectStatus.DONE,
]
ACTIVE_STATUSES = SUMMARY_STATUSES[:4]

NON_NULLABLE_FIELDS = {"title", "priority"}


@dataclass
class StatusBucket:
    status: ProjectStatus
    total: int
    projects: list[Project] = field(default_factory=list)


@dataclass
class BacklogSummary:
    buckets: list[StatusBucket]

    @property
    def active_count(self) -> int:
        return sum(b.total for b in self.buckets if b.status in ACTIVE_STATUSES)


class ProjectService(BaseService):
    """Service for project business logic."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = ProjectRepository(session)
        self.tags = TagService(session)

    async def create_project(self, data: ProjectCreate) -> Project:
        """Create a project and link its tags, upserting tag names."""
        self._log_operation("Creating project", title=data.title)

        project = Project(
            title=data.title,
            description=data.description,
            priority=data.priority,
            repo_url=data.repo_url,
            deploy_url=data.deploy_url,
            blog_url=data.blog_url,
            extra_links=data.extra_links,
        )
        project.set_status(data.status)
        self.session.add(project)
        await self._execute_db_operation("create_project", self.session.flush())

        if data.tags:
            await self.tags.add_tags(project.id, data.tags)

        self._log_debug("Project created", project_id=project.id)
        return await self.get_project(project.id)

    async def get_project(self, project_id: str) -> Project:
        """
        Get a project with its tags.

        Raises:
            NotFoundError: If project not found
        """
        project = await self.repo.get_with_tags(project_id)
        if project is None:
            raise NotFoundError("Project not found")
        return project

    async def get_project_detail(
        self,
        project_id: str,
        note_limit: int = 5,
    ) -> tuple[Project, list[Note]]:
        """Project with tags, files and its ``note_limit`` latest notes."""
        detail = await self.repo.get_detail(project_id, note_limit)
        if detail is None:
            raise NotFoundError("Project not found")
        return detail

    async def get_project_full(self, project_id: str) -> Project:
        """
        Complete aggregate: tags, files, every note and its versions.

        Notes come back most recently updated first.
        """
        project = await self.repo.get_full(project_id)
        if project is None:
            raise NotFoundError("Project not found")
        project.notes.sort(key=lambda n: n.updated_at, reverse=True)
        return project

    async def list_projects(
        self,
        status: ProjectStatus | None = None,
        priority: Priority | None = None,
        tag: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Project], int]:
        """List projects with total count for pagination."""
        projects = await self.repo.list_filtered(status, priority, tag, limit, offset)
        total = await self.repo.count_filtered(status, priority, tag)
        return projects, total

    async def counts(self, projects: list[Project]) -> tuple[dict[str, int], dict[str, int]]:
        """Note and file counts keyed by project ID."""
        ids = [p.id for p in projects]
        return await self.repo.note_counts(ids), await self.repo.file_counts(ids)

    async def update_project(self, project_id: str, data: ProjectUpdate) -> Project:
        """
        Apply a partial update.

        Tags in ``add_tags`` are upserted and linked idempotently; tags in
        ``remove_tags`` are unlinked. A status change moves ``archived_at``
        with it. ``updated_at`` is re-stamped even for tag-only changes.

        Raises:
            NotFoundError: If project not found
        """
        project = await self.get_project(project_id)
        self._log_operation("Updating project", project_id=project_id)

        if data.add_tags:
            await self.tags.add_tags(project_id, data.add_tags)
        if data.remove_tags:
            await self.tags.remove_tags(project_id, data.remove_tags)

        changes = data.model_dump(exclude_unset=True, exclude={"add_tags", "remove_tags", "status"})
        for key, value in changes.items():
            if value is None and key in NON_NULLABLE_FIELDS:
                continue
            setattr(project, key, value)
        if data.status is not None:
            project.set_status(data.status)
        project.updated_at = utc_now()

        await self._execute_db_operation("update_project", self.session.flush())
        return await self.get_project(project_id)

    async def delete_project(
        self,
        project_id: str,
        hard: bool = False,
        storage: BlobStorage | None = None,
    ) -> None:
        """
        Archive a project, or delete it permanently.

        The hard path removes the project with its notes, note versions,
        files and tag links. The blobs of the deleted files are removed
        best-effort once the unit of work commits.

        Raises:
            NotFoundError: If project not found
        """
        if not hard:
            project = await self.get_project(project_id)
            project.set_status(ProjectStatus.ARCHIVED)
            await self._execute_db_operation("archive_project", self.session.flush())
            self._log_operation("Project archived", project_id=project_id)
            return

        project = await self.repo.get_for_delete(project_id)
        if project is None:
            raise NotFoundError("Project not found")

        keys = {f.path for f in project.files}
        keys.update(f.path for note in project.notes for f in note.files)

        await self.session.delete(project)
        await self._execute_db_operation("delete_project", self.session.flush())
        self._log_operation("Project deleted", project_id=project_id, blob_count=len(keys))

        if storage is not None and keys:
            on_commit(self.session, partial(storage.delete_many, keys))

    async def summary(self, include_archived: bool = False, top_n: int = 5) -> BacklogSummary:
        """Per-status totals with the ``top_n`` most recently updated projects each."""
        statuses = list(SUMMARY_STATUSES)
        if include_archived:
            statuses.append(ProjectStatus.ARCHIVED)

        buckets = []
        for status in statuses:
            projects = await self.repo.list_filtered(status=status, limit=top_n)
            total = await self.repo.count_filtered(status=status)
            buckets.append(StatusBucket(status=status, total=total, projects=projects))
        return BacklogSummary(buckets=buckets)
