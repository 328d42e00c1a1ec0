"""
Database models.

Importing this package registers every table on ``Base.metadata``.
"""

from backlog.backend.models.base import Base
from backlog.backend.models.file import File
from backlog.backend.models.note import Note, NoteType
from backlog.backend.models.note_version import NoteVersion
from backlog.backend.models.project import Priority, Project, ProjectStatus
from backlog.backend.models.tag import ProjectTag, Tag

__all__ = [
    "Base",
    "File",
    "Note",
    "NoteType",
    "NoteVersion",
    "Priority",
    "Project",
    "ProjectStatus",
    "ProjectTag",
    "Tag",
]
