"""
Project Model.

A backlog entry. Owns notes, files and tag associations; deleting a project
row removes all of them.
"""

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, DateTime, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backlog.backend.core.utils import utc_now
from backlog.backend.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from backlog.backend.models.file import File
    from backlog.backend.models.note import Note
    from backlog.backend.models.tag import ProjectTag, Tag


class ProjectStatus(str, enum.Enum):
    IDEA = "IDEA"
    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    PAUSED = "PAUSED"
    DONE = "DONE"
    ARCHIVED = "ARCHIVED"


class Priority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class Project(UUIDMixin, TimestampMixin, Base):
    """
    Project database model.

    ``archived_at`` is set exactly when ``status`` is ARCHIVED. Go through
    :meth:`set_status` rather than assigning ``status`` directly.
    """

    __tablename__ = "projects"

    title: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[ProjectStatus] = mapped_column(
        Enum(ProjectStatus, native_enum=False, length=20),
        default=ProjectStatus.IDEA,
        nullable=False,
        index=True,
    )
    priority: Mapped[Priority] = mapped_column(
        Enum(Priority, native_enum=False, length=20),
        default=Priority.MEDIUM,
        nullable=False,
    )
    repo_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    deploy_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    blog_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    extra_links: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)

    notes: Mapped[list["Note"]] = relationship(
        back_populates="project",
        cascade="all",
        passive_deletes=True,
    )
    files: Mapped[list["File"]] = relationship(
        back_populates="project",
        cascade="all",
        passive_deletes=True,
    )
    tag_links: Mapped[list["ProjectTag"]] = relationship(
        back_populates="project",
        cascade="all",
        passive_deletes=True,
    )

    def set_status(self, status: ProjectStatus) -> None:
        """Change status, keeping ``archived_at`` in step with it."""
        self.status = status
        if status == ProjectStatus.ARCHIVED:
            if self.archived_at is None:
                self.archived_at = utc_now()
        else:
            self.archived_at = None

    @property
    def tags(self) -> list["Tag"]:
        return [link.tag for link in self.tag_links]

    @property
    def tag_names(self) -> list[str]:
        return [tag.name for tag in self.tags]

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, title={self.title!r}, status={self.status})>"
