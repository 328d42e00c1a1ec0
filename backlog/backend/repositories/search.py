"""
Search Repository.

Two retrieval strategies behind one shape of row:

- PostgreSQL: ``to_tsvector`` / ``to_tsquery`` / ``ts_rank`` over the
  sanitized ``a & b`` query.
- Other dialects: rows containing every token, compared in lowercase; the
  caller scores them. SQLite uses the ``unicode_lower`` function registered
  on its connections so non-ASCII letters fold too.

Archived projects, and notes of archived projects, never match.
"""

from typing import Any

from sqlalchemy import String, and_, func, literal, or_, select

from backlog.backend.core.database import SQLITE_LOWER_FUNCTION
from backlog.backend.models.note import Note
from backlog.backend.models.project import Project

CANDIDATE_LIMIT = 500


class SearchRepository:
    """Read-only queries used by the search service."""

    def __init__(self, session) -> None:
        self.session = session

    @property
    def supports_fulltext(self) -> bool:
        return self.session.get_bind().dialect.name == "postgresql"

    async def fulltext_projects(self, ts_query: str, limit: int) -> list[Any]:
        document = func.to_tsvector(
            "english",
            func.coalesce(Project.title, "") + literal(" ") + func.coalesce(Project.description, ""),
        )
        query = func.to_tsquery("english", ts_query)
        rank = func.ts_rank(document, query).label("rank")
        result = await self.session.execute(
            select(Project.id, Project.title, Project.description, rank)
            .where(Project.archived_at.is_(None), document.op("@@")(query))
            .order_by(rank.desc())
            .limit(limit)
        )
        return list(result.all())

    async def fulltext_notes(self, ts_query: str, limit: int) -> list[Any]:
        document = func.to_tsvector("english", Note.content)
        query = func.to_tsquery("english", ts_query)
        rank = func.ts_rank(document, query).label("rank")
        result = await self.session.execute(
            select(Note.id, Note.content, Note.project_id, rank)
            .join(Project, Project.id == Note.project_id)
            .where(Project.archived_at.is_(None), document.op("@@")(query))
            .order_by(rank.desc())
            .limit(limit)
        )
        return list(result.all())

    def _lower(self, column: Any) -> Any:
        if self.session.get_bind().dialect.name == "sqlite":
            return getattr(func, SQLITE_LOWER_FUNCTION)(column, type_=String)
        return func.lower(column)

    def _contains(self, column: Any, token: str) -> Any:
        return self._lower(column).contains(token.lower(), autoescape=True)

    async def candidate_projects(self, tokens: list[str]) -> list[Any]:
        conditions = [
            or_(
                self._contains(Project.title, token),
                self._contains(Project.description, token),
            )
            for token in tokens
        ]
        result = await self.session.execute(
            select(Project.id, Project.title, Project.description)
            .where(Project.archived_at.is_(None), and_(*conditions))
            .limit(CANDIDATE_LIMIT)
        )
        return list(result.all())

    async def candidate_notes(self, tokens: list[str]) -> list[Any]:
        conditions = [self._contains(Note.content, token) for token in tokens]
        result = await self.session.execute(
            select(Note.id, Note.content, Note.project_id)
            .join(Project, Project.id == Note.project_id)
            .where(Project.archived_at.is_(None), and_(*conditions))
            .limit(CANDIDATE_LIMIT)
        )
        return list(result.all())
