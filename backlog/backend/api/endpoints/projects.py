"""
Projects API Endpoints.

REST API endpoints for projects, their notes and their tags.
"""

from fastapi import APIRouter, Query, Response

from backlog.backend.core.dependencies import DbSession, Storage
from backlog.backend.models.project import Priority, Project, ProjectStatus
from backlog.backend.schemas.file import FileRead
from backlog.backend.schemas.note import (
    NoteCreate,
    NoteListResponse,
    NoteRead,
    NoteWithFiles,
)
from backlog.backend.schemas.project import (
    ProjectCreate,
    ProjectDetail,
    ProjectFull,
    ProjectListResponse,
    ProjectRead,
    ProjectUpdate,
)
from backlog.backend.schemas.tag import ProjectTagAdd, ProjectTagRead, TagRead
from backlog.backend.services.note import NoteService
from backlog.backend.services.project import ProjectService
from backlog.backend.services.tag import TagService

router = APIRouter()

DETAIL_NOTE_LIMIT = 5
FULL_VERSION_DEPTH = 3
MANUAL_SOURCE = "manual"


async def _with_counts(service: ProjectService, project: Project) -> ProjectRead:
    note_counts, file_counts = await service.counts([project])
    return ProjectRead.model_validate(project).model_copy(
        update={
            "note_count": note_counts.get(project.id, 0),
            "file_count": file_counts.get(project.id, 0),
        }
    )


@router.get(
    "",
    response_model=ProjectListResponse,
    summary="List projects",
    description="Filter by status, priority or tag. ARCHIVED lists archived projects only.",
)
async def list_projects(
    db: DbSession,
    status: ProjectStatus | None = Query(default=None),
    priority: Priority | None = Query(default=None),
    tag: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> ProjectListResponse:
    service = ProjectService(db)
    projects, total = await service.list_projects(
        status=status,
        priority=priority,
        tag=tag,
        limit=limit,
        offset=(page - 1) * limit,
    )
    note_counts, file_counts = await service.counts(projects)
    items = [
        ProjectRead.model_validate(p).model_copy(
            update={"note_count": note_counts.get(p.id, 0), "file_count": file_counts.get(p.id, 0)}
        )
        for p in projects
    ]
    return ProjectListResponse(projects=items, total=total, page=page, limit=limit)


@router.post(
    "",
    response_model=ProjectRead,
    status_code=201,
    summary="Create a project",
)
async def create_project(data: ProjectCreate, db: DbSession) -> ProjectRead:
    service = ProjectService(db)
    project = await service.create_project(data)
    return await _with_counts(service, project)


@router.get(
    "/{project_id}",
    response_model=ProjectDetail,
    summary="Get a project",
    description="Project with tags, files, counts and its five most recently updated notes.",
)
async def get_project(project_id: str, db: DbSession) -> ProjectDetail:
    service = ProjectService(db)
    project, notes = await service.get_project_detail(project_id, note_limit=DETAIL_NOTE_LIMIT)
    summary = await _with_counts(service, project)
    return ProjectDetail(
        **summary.model_dump(),
        notes=[NoteRead.model_validate(n) for n in notes],
        files=[FileRead.model_validate(f) for f in project.files],
    )


@router.patch(
    "/{project_id}",
    response_model=ProjectRead,
    summary="Update a project",
    description="Only provided fields are updated. Status changes keep archivedAt in sync.",
)
async def update_project(project_id: str, data: ProjectUpdate, db: DbSession) -> ProjectRead:
    service = ProjectService(db)
    project = await service.update_project(project_id, data)
    return await _with_counts(service, project)


@router.delete(
    "/{project_id}",
    status_code=204,
    summary="Delete a project",
    description="Archives by default; hard=true deletes the project and everything it owns.",
)
async def delete_project(
    project_id: str,
    db: DbSession,
    storage: Storage,
    hard: bool = Query(default=False),
) -> Response:
    await ProjectService(db).delete_project(project_id, hard=hard, storage=storage)
    return Response(status_code=204)


@router.get(
    "/{project_id}/full",
    response_model=ProjectFull,
    summary="Get full project context",
    description="All notes with their three latest versions, all files and tags.",
)
async def get_project_full(project_id: str, db: DbSession) -> ProjectFull:
    service = ProjectService(db)
    project = await service.get_project_full(project_id)
    full = ProjectFull.model_validate(project)
    for note in full.notes:
        note.versions = note.versions[:FULL_VERSION_DEPTH]
    return full.model_copy(
        update={"note_count": len(full.notes), "file_count": len(full.files)}
    )


@router.get(
    "/{project_id}/notes",
    response_model=NoteListResponse,
    summary="List project notes",
)
async def list_notes(
    project_id: str,
    db: DbSession,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> NoteListResponse:
    notes, total = await NoteService(db).list_notes(
        project_id,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return NoteListResponse(
        notes=[NoteWithFiles.model_validate(n) for n in notes],
        total=total,
        page=page,
        limit=limit,
    )


@router.post(
    "/{project_id}/notes",
    response_model=NoteRead,
    status_code=201,
    summary="Add a note",
)
async def create_note(project_id: str, data: NoteCreate, db: DbSession) -> NoteRead:
    note = await NoteService(db).create_note(
        project_id,
        data.content,
        type=data.type,
        source=data.source or MANUAL_SOURCE,
    )
    return NoteRead.model_validate(note)


@router.post(
    "/{project_id}/tags",
    response_model=ProjectTagRead,
    status_code=201,
    summary="Tag a project",
    description="Attach an existing tag by tagId, or a tag by name (created if missing).",
)
async def add_tag(project_id: str, data: ProjectTagAdd, db: DbSession) -> ProjectTagRead:
    link, tag = await TagService(db).add_to_project(
        project_id,
        name=data.name,
        tag_id=data.tag_id,
        color=data.color,
    )
    return ProjectTagRead(
        project_id=link.project_id,
        tag_id=link.tag_id,
        assigned_at=link.assigned_at,
        tag=TagRead.model_validate(tag),
    )


@router.delete(
    "/{project_id}/tags/{tag_id}",
    status_code=204,
    summary="Untag a project",
)
async def remove_tag(project_id: str, tag_id: str, db: DbSession) -> Response:
    await TagService(db).remove_from_project(project_id, tag_id)
    return Response(status_code=204)
