"""
Entity Resolution.

Turns loosely specified project references from agents into canonical IDs:

- ``find_project_by_title``: exact title, then case-insensitive title, then
  substring in either direction, over the most recently updated
  non-archived projects.
- ``resolve_project_id``: exact ID, then the first ID starting with the
  given prefix, scanning non-archived projects before archived ones.

Both are read-only. The matching rules are plain functions so they can be
checked without a database.
"""

from collections.abc import Callable, Sequence
from operator import attrgetter
from typing import TypeVar

from backlog.backend.core.logging import get_logger
from backlog.backend.models.project import Project
from backlog.backend.repositories.project import ProjectRepository

logger = get_logger(__name__)

DEFAULT_TITLE_WINDOW = 100
DEFAULT_PREFIX_SCAN = 200

T = TypeVar("T")


def match_title(
    candidates: Sequence[T],
    title: str,
    title_of: Callable[[T], str] = attrgetter("title"),
) -> T | None:
    """Pick a candidate by title precedence; first hit in candidate order wins."""
    lowered = title.lower()
    for candidate in candidates:
        if title_of(candidate) == title:
            return candidate
    for candidate in candidates:
        if title_of(candidate).lower() == lowered:
            return candidate
    for candidate in candidates:
        other = title_of(candidate).lower()
        if lowered in other or other in lowered:
            return candidate
    return None


def match_id_prefix(ids: Sequence[str], prefix: str) -> list[str]:
    """All IDs starting with ``prefix``, in the given order."""
    return [id_ for id_ in ids if id_.startswith(prefix)]


async def find_project_by_title(
    repo: ProjectRepository,
    title: str | None,
    window: int = DEFAULT_TITLE_WINDOW,
) -> Project | None:
    """Fuzzy-match a non-archived project by title."""
    if not title or not title.strip():
        return None
    candidates = await repo.list_recent(archived=False, limit=window)
    return match_title(candidates, title)


async def resolve_project_id(
    repo: ProjectRepository,
    id_or_prefix: str | None,
    scan_limit: int = DEFAULT_PREFIX_SCAN,
) -> str | None:
    """
    Resolve a full project ID or an ID prefix.

    An exact ID always wins. Otherwise the first prefix match is returned;
    when several projects share the prefix a warning is logged.
    """
    if not id_or_prefix or not id_or_prefix.strip():
        return None
    id_or_prefix = id_or_prefix.strip()

    if await repo.exists(id_or_prefix):
        return id_or_prefix

    ids = [p.id for p in await repo.list_recent(archived=False, limit=scan_limit)]
    ids += [p.id for p in await repo.list_recent(archived=True, limit=scan_limit)]
    matches = match_id_prefix(ids, id_or_prefix)
    if not matches:
        return None
    if len(matches) > 1:
        logger.warning(
            "Ambiguous project ID prefix",
            extra={"prefix": id_or_prefix, "candidates": len(matches)},
        )
    return matches[0]
