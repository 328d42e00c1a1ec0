"""
Note Repository.

Data access layer for notes and their version snapshots.
"""

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from backlog.backend.models.note import Note
from backlog.backend.models.note_version import NoteVersion
from backlog.backend.repositories.base import BaseRepository


class NoteRepository(BaseRepository[Note]):
    """Repository for Note model."""

    model = Note

    async def get_for_update(self, id: str) -> Note | None:
        """
        Re-read a note under a row lock.

        ``FOR UPDATE`` is dropped by dialects without row locks (SQLite),
        where the write transaction already serializes writers.
        """
        result = await self.session.execute(
            select(Note)
            .where(Note.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_project(
        self,
        project_id: str,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Note]:
        """Notes of a project, most recently updated first, with their files."""
        result = await self.session.execute(
            select(Note)
            .where(Note.project_id == project_id)
            .options(selectinload(Note.files))
            .order_by(Note.updated_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def count_for_project(self, project_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(Note).where(Note.project_id == project_id)
        )
        return result.scalar_one()


class NoteVersionRepository(BaseRepository[NoteVersion]):
    """Repository for the append-only NoteVersion snapshots."""

    model = NoteVersion

    async def list_for_note(self, note_id: str) -> list[NoteVersion]:
        """All snapshots of a note, newest first."""
        result = await self.session.execute(
            select(NoteVersion)
            .where(NoteVersion.note_id == note_id)
            .order_by(NoteVersion.version.desc())
        )
        return list(result.scalars().all())

    async def get_version(self, note_id: str, version: int) -> NoteVersion | None:
        result = await self.session.execute(
            select(NoteVersion).where(
                NoteVersion.note_id == note_id,
                NoteVersion.version == version,
            )
        )
        return result.scalar_one_or_none()
