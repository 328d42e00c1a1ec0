"""
Tag Schemas.
"""

from datetime import datetime

from pydantic import Field

from backlog.backend.schemas.base import CamelModel


class TagCreate(CamelModel):
    """Upsert a tag by name; a given color overwrites the stored one."""

    name: str = Field(..., min_length=1, max_length=50, examples=["python"])
    color: str | None = Field(default=None, max_length=20, examples=["#3b82f6"])


class TagRead(CamelModel):
    id: str
    name: str
    color: str | None = None


class TagWithCount(TagRead):
    project_count: int = Field(default=0, description="Projects carrying this tag")


class ProjectTagAdd(CamelModel):
    """Attach a tag by ``tagId`` or by ``name`` (upserted, with optional color)."""

    name: str | None = Field(default=None, min_length=1, max_length=50)
    tag_id: str | None = None
    color: str | None = Field(default=None, max_length=20)


class ProjectTagRead(CamelModel):
    project_id: str
    tag_id: str
    assigned_at: datetime
    tag: TagRead
