"""
Note Version Model.

Append-only snapshot of a note's content before an edit.
"""

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backlog.backend.models.base import Base, CreatedAtMixin, UUIDMixin

if TYPE_CHECKING:
    from backlog.backend.models.note import Note


class NoteVersion(UUIDMixin, CreatedAtMixin, Base):
    """Snapshot of a note at ``version``, taken before it moved to ``version + 1``."""

    __tablename__ = "note_versions"
    __table_args__ = (
        UniqueConstraint("note_id", "version", name="uq_note_versions_note_version"),
    )

    note_id: Mapped[str] = mapped_column(
        ForeignKey("notes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    version: Mapped[int] = mapped_column(nullable=False)

    note: Mapped["Note"] = relationship(back_populates="versions")

    def __repr__(self) -> str:
        return f"<NoteVersion(note_id={self.note_id}, version={self.version})>"
