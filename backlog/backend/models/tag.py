"""
Tag Models.

Tags are unique by name and shared across projects through ProjectTag.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backlog.backend.core.utils import utc_now
from backlog.backend.models.base import Base, CreatedAtMixin, UUIDMixin

if TYPE_CHECKING:
    from backlog.backend.models.project import Project


class Tag(UUIDMixin, CreatedAtMixin, Base):
    """Tag database model."""

    __tablename__ = "tags"

    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    color: Mapped[str | None] = mapped_column(String(20), nullable=True)

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, name={self.name!r})>"


class ProjectTag(Base):
    """Association between a project and a tag; the pair is the primary key."""

    __tablename__ = "project_tags"

    project_id: Mapped[str] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        primary_key=True,
    )
    tag_id: Mapped[str] = mapped_column(
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
    )
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        nullable=False,
    )

    project: Mapped["Project"] = relationship(back_populates="tag_links")
    tag: Mapped[Tag] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<ProjectTag(project_id={self.project_id}, tag_id={self.tag_id})>"
