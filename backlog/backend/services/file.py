"""
File Service.

Uploads go through the blob storage: the blob is written first, then the
metadata row. If the row cannot be written the blob is removed again.
"""

from functools import partial

from sqlalchemy.ext.asyncio import AsyncSession

from backlog.backend.core.database import on_commit
from backlog.backend.core.exceptions import NotFoundError, PayloadTooLargeError
from backlog.backend.core.storage import BlobStorage, generate_storage_key
from backlog.backend.models.file import File
from backlog.backend.repositories.file import FileRepository
from backlog.backend.repositories.note import NoteRepository
from backlog.backend.repositories.project import ProjectRepository
from backlog.backend.services.base import BaseService

DEFAULT_MIME_TYPE = "application/octet-stream"


class FileService(BaseService):
    """Service for uploaded files."""

    def __init__(self, session: AsyncSession, storage: BlobStorage) -> None:
        super().__init__(session)
        self.storage = storage
        self.repo = FileRepository(session)
        self.project_repo = ProjectRepository(session)
        self.note_repo = NoteRepository(session)

    async def upload(
        self,
        data: bytes,
        filename: str,
        mime_type: str | None = None,
        project_id: str | None = None,
        note_id: str | None = None,
    ) -> File:
        """
        Store a blob and record its metadata.

        Raises:
            CapabilityUnavailableError: If storage is disabled
            PayloadTooLargeError: If the file exceeds the size limit
            NotFoundError: If a given project or note does not exist
        """
        self.storage.ensure_available()

        if len(data) > self.storage.max_bytes:
            limit_mb = self.storage.max_bytes // (1024 * 1024)
            raise PayloadTooLargeError(f"File exceeds {limit_mb}MB limit")
        if project_id and not await self.project_repo.exists(project_id):
            raise NotFoundError("Project not found")
        if note_id and not await self.note_repo.exists(note_id):
            raise NotFoundError("Note not found")

        key = generate_storage_key(filename)
        await self.storage.save(key, data)

        try:
            file = await self._execute_db_operation(
                "create_file",
                self.repo.create(
                    filename=filename,
                    mime_type=mime_type or DEFAULT_MIME_TYPE,
                    size=len(data),
                    path=key,
                    project_id=project_id or None,
                    note_id=note_id or None,
                ),
            )
        except Exception:
            await self.storage.delete(key)
            raise

        self._log_operation("File uploaded", file_id=file.id, size=file.size)
        return file

    async def get_file(self, file_id: str) -> File:
        file = await self.repo.get_by_id_or_none(file_id)
        if file is None:
            raise NotFoundError("File not found")
        return file

    async def read_file(self, file_id: str) -> tuple[File, bytes]:
        """
        Raises:
            NotFoundError: If the row or its blob is missing
        """
        file = await self.get_file(file_id)
        try:
            content = await self.storage.read(file.path)
        except FileNotFoundError as e:
            self._logger.error("Blob missing for file", extra={"file_id": file_id})
            raise NotFoundError("File content not found") from e
        return file, content

    async def delete_file(self, file_id: str) -> None:
        """Delete the metadata row; the blob goes once the unit of work commits."""
        file = await self.get_file(file_id)
        await self.session.delete(file)
        await self._execute_db_operation("delete_file", self.session.flush())
        on_commit(self.session, partial(self.storage.delete_many, [file.path]))
        self._log_operation("File deleted", file_id=file_id)
