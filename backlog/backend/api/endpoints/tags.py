"""
Tags API Endpoints.
"""

from fastapi import APIRouter

from backlog.backend.core.dependencies import DbSession
from backlog.backend.schemas.tag import TagCreate, TagRead, TagWithCount
from backlog.backend.services.tag import TagService

router = APIRouter()


@router.get("", response_model=list[TagWithCount], summary="List tags")
async def list_tags(db: DbSession) -> list[TagWithCount]:
    rows = await TagService(db).list_tags()
    return [
        TagWithCount.model_validate(tag).model_copy(update={"project_count": count})
        for tag, count in rows
    ]


@router.post(
    "",
    response_model=TagRead,
    status_code=201,
    summary="Create or update a tag",
    description="Upsert by name. A provided color replaces the stored one.",
)
async def upsert_tag(data: TagCreate, db: DbSession) -> TagRead:
    tag = await TagService(db).upsert_tag(data.name, data.color)
    return TagRead.model_validate(tag)
