"""
Integration Tests for project reference resolution.

Rows are inserted with hand-picked IDs and timestamps so prefix collisions
and recency ordering are deterministic.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from backlog.backend.models.project import Project, ProjectStatus
from backlog.backend.repositories.project import ProjectRepository
from backlog.backend.services.resolution import find_project_by_title, resolve_project_id

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


def _project(id: str, title: str, minutes: int, archived: bool = False) -> Project:
    project = Project(id=id, title=title)
    project.set_status(ProjectStatus.ARCHIVED if archived else ProjectStatus.IDEA)
    project.created_at = BASE_TIME
    project.updated_at = BASE_TIME + timedelta(minutes=minutes)
    return project


@pytest.fixture
async def repo(db_session: AsyncSession) -> ProjectRepository:
    db_session.add_all([
        _project("abc-111", "Home Automation", minutes=1),
        _project("abc-222", "Home Lab", minutes=5),
        _project("abc-333", "Archived Home", minutes=9, archived=True),
        _project("zzz-999", "Old Stuff", minutes=2, archived=True),
    ])
    await db_session.flush()
    return ProjectRepository(db_session)


class TestResolveProjectId:
    """Exact ID first, then prefix over non-archived then archived."""

    @pytest.mark.asyncio
    async def test_exact_id(self, repo: ProjectRepository):
        """Should return an exact ID unchanged."""
        assert await resolve_project_id(repo, "abc-111") == "abc-111"

    @pytest.mark.asyncio
    async def test_ambiguous_prefix_prefers_recent_live_project(self, repo: ProjectRepository):
        """Should pick the most recently updated non-archived match."""
        assert await resolve_project_id(repo, "abc") == "abc-222"

    @pytest.mark.asyncio
    async def test_prefix_reaches_archived(self, repo: ProjectRepository):
        """Should fall through to archived projects."""
        assert await resolve_project_id(repo, "zzz") == "zzz-999"

    @pytest.mark.asyncio
    async def test_no_match(self, repo: ProjectRepository):
        """Should return None when nothing starts with the prefix."""
        assert await resolve_project_id(repo, "nope") is None

    @pytest.mark.asyncio
    async def test_blank(self, repo: ProjectRepository):
        """Should return None for blank input without matching everything."""
        assert await resolve_project_id(repo, "") is None
        assert await resolve_project_id(repo, "   ") is None

    @pytest.mark.asyncio
    async def test_scan_limit(self, repo: ProjectRepository):
        """Should only scan the given number of projects per side."""
        assert await resolve_project_id(repo, "abc-111", scan_limit=1) == "abc-111"
        assert await resolve_project_id(repo, "abc-1", scan_limit=1) is None


class TestFindProjectByTitle:
    """Exact, case-insensitive, then substring; archived never match."""

    @pytest.mark.asyncio
    async def test_exact_title(self, repo: ProjectRepository):
        """Should match the exact title."""
        project = await find_project_by_title(repo, "Home Automation")

        assert project.id == "abc-111"

    @pytest.mark.asyncio
    async def test_case_insensitive(self, repo: ProjectRepository):
        """Should match ignoring case."""
        project = await find_project_by_title(repo, "home lab")

        assert project.id == "abc-222"

    @pytest.mark.asyncio
    async def test_substring_prefers_recent(self, repo: ProjectRepository):
        """Should take the most recently updated substring match."""
        project = await find_project_by_title(repo, "home")

        assert project.id == "abc-222"

    @pytest.mark.asyncio
    async def test_archived_never_matches(self, repo: ProjectRepository):
        """Should ignore archived projects even on an exact title."""
        assert await find_project_by_title(repo, "Old Stuff") is None

    @pytest.mark.asyncio
    async def test_blank_title(self, repo: ProjectRepository):
        """Should return None for a blank title."""
        assert await find_project_by_title(repo, "  ") is None
