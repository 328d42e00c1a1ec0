"""
File Repository.

Data access layer for uploaded file metadata.
"""

from backlog.backend.models.file import File
from backlog.backend.repositories.base import BaseRepository


class FileRepository(BaseRepository[File]):
    """Repository for File model."""

    model = File
