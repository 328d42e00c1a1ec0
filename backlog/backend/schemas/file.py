"""
File Schemas.
"""

from datetime import datetime

from backlog.backend.schemas.base import CamelModel


class FileRead(CamelModel):
    """Uploaded file metadata; ``path`` is the opaque storage key."""

    id: str
    filename: str
    mime_type: str
    size: int
    path: str
    project_id: str | None = None
    note_id: str | None = None
    created_at: datetime
