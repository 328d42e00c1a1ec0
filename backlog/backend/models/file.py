"""
File Model.

Metadata for an uploaded blob. ``path`` holds the storage key, never a
filesystem path.
"""

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backlog.backend.models.base import Base, CreatedAtMixin, UUIDMixin

if TYPE_CHECKING:
    from backlog.backend.models.note import Note
    from backlog.backend.models.project import Project


class File(UUIDMixin, CreatedAtMixin, Base):
    """Uploaded file owned by a project, a note, both, or neither."""

    __tablename__ = "files"

    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    size: Mapped[int] = mapped_column(nullable=False)
    path: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    project_id: Mapped[str | None] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    note_id: Mapped[str | None] = mapped_column(
        ForeignKey("notes.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    project: Mapped["Project | None"] = relationship(back_populates="files")
    note: Mapped["Note | None"] = relationship(back_populates="files")

    def __repr__(self) -> str:
        return f"<File(id={self.id}, filename={self.filename!r})>"
