"""
Search API Endpoint.
"""

from fastapi import APIRouter, Query

from backlog.backend.core.dependencies import DbSession
from backlog.backend.schemas.search import SearchResponse, SearchScope
from backlog.backend.services.search import SearchService

router = APIRouter()


@router.get(
    "",
    response_model=SearchResponse,
    response_model_exclude_none=True,
    summary="Full-text search",
    description="Ranked search over non-archived projects and their notes.",
)
async def search(
    db: DbSession,
    q: str | None = Query(default=None),
    type: SearchScope = Query(default="all"),
    limit: int = Query(default=10, ge=1),
) -> SearchResponse:
    if q is None or not q.strip():
        return SearchResponse(results=[])
    results = await SearchService(db).search(q, type, limit)
    return SearchResponse(results=results, query=q)
