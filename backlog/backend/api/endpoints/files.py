"""
Files API Endpoints.

Multipart upload, download and deletion of stored files.
"""

from urllib.parse import quote

from fastapi import APIRouter, Form, Response, UploadFile

from backlog.backend.core.dependencies import DbSession, Storage
from backlog.backend.schemas.file import FileRead
from backlog.backend.services.file import FileService

router = APIRouter()


@router.post(
    "/upload",
    response_model=FileRead,
    status_code=201,
    summary="Upload a file",
    description="Returns 501 where local storage is disabled, 413 over the size limit.",
)
async def upload_file(
    file: UploadFile,
    db: DbSession,
    storage: Storage,
    project_id: str | None = Form(default=None, alias="projectId"),
    note_id: str | None = Form(default=None, alias="noteId"),
) -> FileRead:
    storage.ensure_available()
    # One byte past the limit is enough to reject it
    data = await file.read(storage.max_bytes + 1)
    stored = await FileService(db, storage).upload(
        data,
        file.filename or "upload",
        mime_type=file.content_type,
        project_id=project_id,
        note_id=note_id,
    )
    return FileRead.model_validate(stored)


@router.get("/{file_id}", summary="Download a file")
async def download_file(file_id: str, db: DbSession, storage: Storage) -> Response:
    stored, content = await FileService(db, storage).read_file(file_id)
    return Response(
        content=content,
        media_type=stored.mime_type,
        headers={"Content-Disposition": f'inline; filename="{quote(stored.filename)}"'},
    )


@router.delete("/{file_id}", status_code=204, summary="Delete a file")
async def delete_file(file_id: str, db: DbSession, storage: Storage) -> Response:
    await FileService(db, storage).delete_file(file_id)
    return Response(status_code=204)
