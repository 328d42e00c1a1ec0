"""
Search Schemas.
"""

from typing import Literal

from backlog.backend.schemas.base import CamelModel

SearchScope = Literal["projects", "notes", "all"]


class SearchResult(CamelModel):
    id: str
    type: Literal["project", "note"]
    title: str
    snippet: str
    project_id: str | None = None
    rank: float


class SearchResponse(CamelModel):
    results: list[SearchResult]
    query: str | None = None
