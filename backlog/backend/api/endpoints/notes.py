"""
Notes API Endpoints.

Versioned note edits and version history.
"""

from fastapi import APIRouter

from backlog.backend.core.dependencies import DbSession
from backlog.backend.core.exceptions import ValidationError
from backlog.backend.schemas.note import NoteRead, NoteUpdate, NoteVersionRead
from backlog.backend.services.note import NoteService

router = APIRouter()


@router.patch(
    "/{note_id}",
    response_model=NoteRead,
    summary="Edit a note",
    description="Replaces the content; the previous content is kept as a version.",
)
async def edit_note(note_id: str, data: NoteUpdate, db: DbSession) -> NoteRead:
    note = await NoteService(db).edit_note(note_id, data.content, type=data.type)
    return NoteRead.model_validate(note)


@router.get(
    "/{note_id}/versions",
    response_model=list[NoteVersionRead],
    summary="List note versions",
)
async def list_versions(note_id: str, db: DbSession) -> list[NoteVersionRead]:
    versions = await NoteService(db).list_versions(note_id)
    return [NoteVersionRead.model_validate(v) for v in versions]


@router.get(
    "/{note_id}/versions/{version}",
    response_model=NoteVersionRead,
    summary="Get a note version",
)
async def get_version(note_id: str, version: str, db: DbSession) -> NoteVersionRead:
    try:
        number = int(version)
    except ValueError:
        raise ValidationError("Invalid version number", details={"version": version}) from None
    snapshot = await NoteService(db).get_version(note_id, number)
    return NoteVersionRead.model_validate(snapshot)
