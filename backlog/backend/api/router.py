"""
API Router.

Aggregates all endpoint routers. Every route here requires the API key;
health routes are registered separately and stay public.
"""

from fastapi import APIRouter, Depends

from backlog.backend.api.endpoints import files, notes, projects, search, tags
from backlog.backend.core.security import require_api_key

router = APIRouter(dependencies=[Depends(require_api_key)])

router.include_router(projects.router, prefix="/projects", tags=["projects"])
router.include_router(notes.router, prefix="/notes", tags=["notes"])
router.include_router(search.router, prefix="/search", tags=["search"])
router.include_router(tags.router, prefix="/tags", tags=["tags"])
router.include_router(files.router, prefix="/files", tags=["files"])
