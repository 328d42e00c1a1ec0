"""
Project Schemas.

Pydantic schemas for project API request/response validation.
"""

from datetime import datetime
from typing import Annotated, Any

from pydantic import AfterValidator, AnyUrl, BeforeValidator, Field

from backlog.backend.models.project import Priority, ProjectStatus
from backlog.backend.schemas.base import CamelModel
from backlog.backend.schemas.file import FileRead
from backlog.backend.schemas.note import NoteRead, NoteWithVersions
from backlog.backend.schemas.tag import TagRead


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


def _check_url(value: str | None) -> str | None:
    if value is not None:
        try:
            AnyUrl(value)
        except ValueError:
            raise ValueError("must be a valid URL") from None
    return value


# Stored as given; an empty string clears the link
UrlField = Annotated[
    str | None,
    BeforeValidator(_blank_to_none),
    AfterValidator(_check_url),
]

TagName = Annotated[str, Field(min_length=1, max_length=50)]


class ProjectCreate(CamelModel):
    """Schema for creating a project."""

    title: str = Field(..., min_length=1, max_length=200, examples=["Sector 7G"])
    description: str | None = None
    status: ProjectStatus = ProjectStatus.IDEA
    priority: Priority = Priority.MEDIUM
    repo_url: UrlField = None
    deploy_url: UrlField = None
    blog_url: UrlField = None
    extra_links: dict[str, Any] | None = None
    tags: list[TagName] | None = Field(default=None, description="Tag names, created if missing")


class ProjectUpdate(CamelModel):
    """
    Partial update. Only fields present in the payload are applied.

    ``extraLinks: null`` clears the stored links.
    """

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    status: ProjectStatus | None = None
    priority: Priority | None = None
    repo_url: UrlField = None
    deploy_url: UrlField = None
    blog_url: UrlField = None
    extra_links: dict[str, Any] | None = None
    add_tags: list[TagName] | None = None
    remove_tags: list[TagName] | None = None


class ProjectRead(CamelModel):
    id: str
    title: str
    description: str | None = None
    status: ProjectStatus
    priority: Priority
    repo_url: str | None = None
    deploy_url: str | None = None
    blog_url: str | None = None
    extra_links: dict[str, Any] | None = None
    archived_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    tags: list[TagRead] = Field(default_factory=list)
    note_count: int = 0
    file_count: int = 0


class ProjectDetail(ProjectRead):
    """Project with its most recently updated notes and all files."""

    notes: list[NoteRead] = Field(default_factory=list)
    files: list[FileRead] = Field(default_factory=list)


class ProjectFull(ProjectRead):
    """Complete project context: every note with recent versions, every file."""

    notes: list[NoteWithVersions] = Field(default_factory=list)
    files: list[FileRead] = Field(default_factory=list)


class ProjectListResponse(CamelModel):
    projects: list[ProjectRead]
    total: int
    page: int
    limit: int
