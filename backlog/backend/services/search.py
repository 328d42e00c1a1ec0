"""
Search Service.

Full-text search over projects and notes. The raw query is reduced to word
tokens first; a query with no usable tokens returns nothing without
touching the database.
"""

import re

from sqlalchemy.ext.asyncio import AsyncSession

from backlog.backend.repositories.search import SearchRepository
from backlog.backend.schemas.search import SearchResult, SearchScope
from backlog.backend.services.base import BaseService

MAX_RESULTS = 50
TITLE_LENGTH = 80
SNIPPET_LENGTH = 200

_NON_WORD = re.compile(r"[^a-zA-Z0-9áéíóúüñÁÉÍÓÚÜÑ]")


def query_tokens(query: str) -> list[str]:
    """Whitespace-split words with every non-word character removed."""
    tokens = (_NON_WORD.sub("", word) for word in query.strip().split())
    return [t for t in tokens if t]


def sanitize_query(query: str) -> str:
    """
    Build a ``to_tsquery`` expression that requires every word.

    >>> sanitize_query("hello, world!!")
    'hello & world'
    """
    return " & ".join(query_tokens(query))


def containment_rank(text: str, tokens: list[str]) -> float:
    """
    Score a document that contains every token.

    Total token occurrences divided by the document's word count; 0.0 when
    any token is missing.
    """
    lowered = text.lower()
    occurrences = 0
    for token in tokens:
        found = lowered.count(token.lower())
        if found == 0:
            return 0.0
        occurrences += found
    return occurrences / max(len(lowered.split()), 1)


class SearchService(BaseService):
    """Ranked search across non-archived projects and their notes."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = SearchRepository(session)

    async def search(
        self,
        query: str,
        type: SearchScope = "all",
        limit: int = 10,
    ) -> list[SearchResult]:
        """
        Search projects, notes, or both.

        Results are merged across kinds, ordered by rank descending and cut
        to ``min(limit, 50)``.
        """
        tokens = query_tokens(query)
        if not tokens:
            return []
        limit = max(1, min(limit, MAX_RESULTS))

        if self.repo.supports_fulltext:
            results = await self._fulltext(" & ".join(tokens), type, limit)
        else:
            results = await self._containment(tokens, type)

        results.sort(key=lambda r: r.rank, reverse=True)
        self._log_debug("Search finished", tokens=len(tokens), hits=len(results))
        return results[:limit]

    async def _fulltext(self, ts_query: str, type: SearchScope, limit: int) -> list[SearchResult]:
        results = []
        if type in ("projects", "all"):
            for row in await self.repo.fulltext_projects(ts_query, limit):
                results.append(_project_result(row.id, row.title, row.description, float(row.rank)))
        if type in ("notes", "all"):
            for row in await self.repo.fulltext_notes(ts_query, limit):
                results.append(_note_result(row.id, row.content, row.project_id, float(row.rank)))
        return results

    async def _containment(self, tokens: list[str], type: SearchScope) -> list[SearchResult]:
        results = []
        if type in ("projects", "all"):
            for row in await self.repo.candidate_projects(tokens):
                text = f"{row.title} {row.description or ''}"
                rank = containment_rank(text, tokens)
                if rank > 0:
                    results.append(_project_result(row.id, row.title, row.description, rank))
        if type in ("notes", "all"):
            for row in await self.repo.candidate_notes(tokens):
                rank = containment_rank(row.content, tokens)
                if rank > 0:
                    results.append(_note_result(row.id, row.content, row.project_id, rank))
        return results


def _project_result(id: str, title: str, description: str | None, rank: float) -> SearchResult:
    return SearchResult(
        id=id,
        type="project",
        title=title,
        snippet=(description or "")[:SNIPPET_LENGTH],
        rank=rank,
    )


def _note_result(id: str, content: str, project_id: str, rank: float) -> SearchResult:
    return SearchResult(
        id=id,
        type="note",
        title=content[:TITLE_LENGTH],
        snippet=content[:SNIPPET_LENGTH],
        project_id=project_id,
        rank=rank,
    )
