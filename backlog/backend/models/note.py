"""
Note Model.

Free-form content attached to a project. Every edit bumps ``version`` and
snapshots the previous content into NoteVersion.
"""

import enum
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backlog.backend.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from backlog.backend.models.file import File
    from backlog.backend.models.note_version import NoteVersion
    from backlog.backend.models.project import Project


class NoteType(str, enum.Enum):
    GENERAL = "GENERAL"
    PLAN = "PLAN"
    DECISION = "DECISION"
    BRAINSTORM = "BRAINSTORM"
    SPEC = "SPEC"
    LOG = "LOG"
    SUMMARY = "SUMMARY"


class Note(UUIDMixin, TimestampMixin, Base):
    """Note database model."""

    __tablename__ = "notes"

    project_id: Mapped[str] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[NoteType] = mapped_column(
        Enum(NoteType, native_enum=False, length=20),
        default=NoteType.GENERAL,
        nullable=False,
    )
    source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    version: Mapped[int] = mapped_column(default=1, nullable=False)

    project: Mapped["Project"] = relationship(back_populates="notes")
    versions: Mapped[list["NoteVersion"]] = relationship(
        back_populates="note",
        cascade="all",
        passive_deletes=True,
        order_by="NoteVersion.version.desc()",
    )
    files: Mapped[list["File"]] = relationship(
        back_populates="note",
        cascade="all",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, type={self.type}, version={self.version})>"
