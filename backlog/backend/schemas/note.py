"""
Note Schemas.

Pydantic schemas for note API request/response validation.
"""

from datetime import datetime

from pydantic import Field

from backlog.backend.models.note import NoteType
from backlog.backend.schemas.base import CamelModel
from backlog.backend.schemas.file import FileRead


class NoteCreate(CamelModel):
    """Schema for adding a note to a project."""

    content: str = Field(..., min_length=1, description="Note content (markdown)")
    type: NoteType | None = Field(default=None, description="Defaults to GENERAL")
    source: str | None = Field(
        default=None,
        max_length=100,
        description="Where the note came from, e.g. manual or claude-code",
    )


class NoteUpdate(CamelModel):
    """Schema for editing a note. The previous content is versioned."""

    content: str = Field(..., min_length=1)
    type: NoteType | None = None


class NoteRead(CamelModel):
    id: str
    project_id: str
    content: str
    type: NoteType
    source: str | None = None
    version: int
    created_at: datetime
    updated_at: datetime


class NoteWithFiles(NoteRead):
    files: list[FileRead] = Field(default_factory=list)


class NoteVersionRead(CamelModel):
    id: str
    note_id: str
    content: str
    version: int
    created_at: datetime


class NoteWithVersions(NoteRead):
    versions: list[NoteVersionRead] = Field(
        default_factory=list,
        description="Most recent snapshots, newest first",
    )


class NoteListResponse(CamelModel):
    notes: list[NoteWithFiles]
    total: int
    page: int
    limit: int
