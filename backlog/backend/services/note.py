"""
Note Service.

Business logic for notes, including the versioning policy: every edit
snapshots the previous content and bumps the version in the same unit of
work, so a note at version N always owns snapshots 1..N-1.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from backlog.backend.core.exceptions import NotFoundError
from backlog.backend.models.note import Note, NoteType
from backlog.backend.models.note_version import NoteVersion
from backlog.backend.repositories.note import NoteRepository, NoteVersionRepository
from backlog.backend.repositories.project import ProjectRepository
from backlog.backend.services.base import BaseService


class NoteService(BaseService):
    """
    Service for note business logic.

    Handles note creation, versioned edits, and version retrieval.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = NoteRepository(session)
        self.versions = NoteVersionRepository(session)
        self.project_repo = ProjectRepository(session)

    async def create_note(
        self,
        project_id: str,
        content: str,
        type: NoteType | None = None,
        source: str | None = None,
    ) -> Note:
        """
        Add a note at version 1.

        Raises:
            NotFoundError: If the project does not exist
        """
        if not await self.project_repo.exists(project_id):
            raise NotFoundError("Project not found")

        self._log_operation("Creating note", project_id=project_id, type=type)
        note = await self._execute_db_operation(
            "create_note",
            self.repo.create(
                project_id=project_id,
                content=content,
                type=type or NoteType.GENERAL,
                source=source,
            ),
        )
        self._log_debug("Note created", note_id=note.id)
        return note

    async def get_note(self, note_id: str) -> Note:
        """
        Raises:
            NotFoundError: If note not found
        """
        note = await self.repo.get_by_id_or_none(note_id)
        if note is None:
            raise NotFoundError("Note not found")
        return note

    async def list_notes(
        self,
        project_id: str,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Note], int]:
        """Notes of a project with total count, most recently updated first."""
        if not await self.project_repo.exists(project_id):
            raise NotFoundError("Project not found")
        notes = await self.repo.list_for_project(project_id, limit=limit, offset=offset)
        total = await self.repo.count_for_project(project_id)
        return notes, total

    async def edit_note(
        self,
        note_id: str,
        content: str,
        type: NoteType | None = None,
    ) -> Note:
        """
        Replace a note's content, keeping the previous content as a version.

        The note row is re-read under a lock, the snapshot is written at the
        pre-edit version, and the note moves to version + 1. Both writes are
        flushed together; the caller's commit makes them durable together.

        Raises:
            NotFoundError: If note not found
            ConflictError: If a concurrent edit already wrote this snapshot
        """
        note = await self.repo.get_for_update(note_id)
        if note is None:
            raise NotFoundError("Note not found")

        previous_version = note.version
        self.session.add(
            NoteVersion(
                note_id=note.id,
                content=note.content,
                version=previous_version,
            )
        )
        note.content = content
        if type is not None:
            note.type = type
        note.version = previous_version + 1

        await self._execute_db_operation("edit_note", self.session.flush())
        self._log_operation("Note edited", note_id=note_id, version=note.version)
        return note

    async def list_versions(self, note_id: str) -> list[NoteVersion]:
        """
        Raises:
            NotFoundError: If note not found
        """
        if not await self.repo.exists(note_id):
            raise NotFoundError("Note not found")
        return await self.versions.list_for_note(note_id)

    async def get_version(self, note_id: str, version: int) -> NoteVersion:
        """
        Raises:
            NotFoundError: If there is no snapshot at that version
        """
        snapshot = await self.versions.get_version(note_id, version)
        if snapshot is None:
            raise NotFoundError("Note version not found")
        return snapshot
