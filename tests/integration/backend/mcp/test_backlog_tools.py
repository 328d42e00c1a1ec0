"""
Integration Tests for the backlog tools.

Calls go through the registry exactly as the MCP transports do: camelCase
arguments in, rendered text out, one committed unit of work per call.
"""

import base64
import re

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backlog.backend.core.storage import BlobStorage
from backlog.backend.mcp.registry import ToolConfig, ToolRegistry
from backlog.backend.mcp.tools import build_registry
from backlog.backend.models import File, Note, NoteVersion, Project, ProjectTag, Tag


def _id_from(text: str, label: str = "ID") -> str:
    match = re.search(rf"^{label}: (\S+)$", text, re.MULTILINE)
    assert match, f"no {label} line in:\n{text}"
    return match.group(1)


async def _create(registry: ToolRegistry, title: str = "Alpha", **args) -> str:
    result = await registry.call("create_project", {"title": title, **args})
    assert not result.is_error, result.text
    return _id_from(result.text)


async def _count(factory: async_sessionmaker[AsyncSession], model) -> int:
    async with factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestCreateAndList:
    """create_project, list_projects."""

    @pytest.mark.asyncio
    async def test_create_project(self, tool_registry: ToolRegistry):
        """Should confirm the project with its defaults and tags."""
        result = await tool_registry.call(
            "create_project",
            {"title": "Alpha", "tags": ["python", "cli"]},
        )

        assert not result.is_error
        assert result.text.startswith("✅ Project created: **Alpha**")
        assert "Status: IDEA | Priority: MEDIUM" in result.text
        assert "Tags: python, cli" in result.text or "Tags: cli, python" in result.text

    @pytest.mark.asyncio
    async def test_create_project_validation(self, tool_registry: ToolRegistry):
        """Should reject a missing title with a per-field message."""
        result = await tool_registry.call("create_project", {})

        assert result.is_error
        assert result.text.startswith("❌ Invalid arguments for create_project:")
        assert "- title:" in result.text

    @pytest.mark.asyncio
    async def test_create_project_rejects_bad_tag_names(
        self,
        tool_registry: ToolRegistry,
        db_session_factory: async_sessionmaker[AsyncSession],
    ):
        """Should reject empty and over-long tag names without writing anything."""
        result = await tool_registry.call("create_project", {"title": "T", "tags": ["x" * 60, ""]})

        assert result.is_error
        assert "- tags.0:" in result.text
        assert "- tags.1:" in result.text
        assert await _count(db_session_factory, Project) == 0
        assert await _count(db_session_factory, Tag) == 0

    @pytest.mark.asyncio
    async def test_list_projects(self, tool_registry: ToolRegistry):
        """Should list projects with status emoji, short ID and note count."""
        project_id = await _create(tool_registry, tags=["python"])
        await tool_registry.call("add_note", {"projectId": project_id, "content": "n1"})

        result = await tool_registry.call("list_projects", {})

        assert result.text.startswith("1 projects:")
        assert f"💡 **Alpha** ({project_id[:8]}) [python] - 1 notes" in result.text

    @pytest.mark.asyncio
    async def test_list_projects_empty(self, tool_registry: ToolRegistry):
        """Should say so when nothing matches."""
        result = await tool_registry.call("list_projects", {"status": "DONE"})

        assert result.text == "No projects found."

    @pytest.mark.asyncio
    async def test_list_projects_bad_enum(self, tool_registry: ToolRegistry):
        """Should reject an unknown status."""
        result = await tool_registry.call("list_projects", {"status": "SOMEDAY"})

        assert result.is_error
        assert "- status:" in result.text


class TestNotes:
    """add_note, edit_note."""

    @pytest.mark.asyncio
    async def test_add_edit_note_versions(
        self,
        tool_registry: ToolRegistry,
        db_session_factory: async_sessionmaker[AsyncSession],
    ):
        """Should add at v1, then snapshot the old content on edit."""
        project_id = await _create(tool_registry)

        added = await tool_registry.call("add_note", {"projectId": project_id, "content": "hi"})
        note_id = _id_from(added.text, "Note ID")
        edited = await tool_registry.call("edit_note", {"noteId": note_id, "content": "hello"})

        assert "Version: 1" in added.text
        assert "Source: claude-chat" in added.text
        assert edited.text.startswith("✅ Note updated (v2).")
        async with db_session_factory() as session:
            note = await session.get(Note, note_id)
            versions = (
                await session.execute(select(NoteVersion).where(NoteVersion.note_id == note_id))
            ).scalars().all()
        assert note.version == 2
        assert note.content == "hello"
        assert [(v.version, v.content) for v in versions] == [(1, "hi")]

    @pytest.mark.asyncio
    async def test_add_note_by_fuzzy_title(self, tool_registry: ToolRegistry):
        """Should find the project by a case-insensitive substring."""
        await _create(tool_registry, title="Home Automation Hub")

        result = await tool_registry.call(
            "add_note",
            {"projectTitle": "automation", "content": "zigbee", "type": "PLAN"},
        )

        assert not result.is_error, result.text
        assert "Type: PLAN" in result.text

    @pytest.mark.asyncio
    async def test_add_note_by_id_prefix(self, tool_registry: ToolRegistry):
        """Should accept the first eight characters of the project ID."""
        project_id = await _create(tool_registry)

        result = await tool_registry.call(
            "add_note",
            {"projectId": project_id[:8], "content": "via prefix"},
        )

        assert not result.is_error, result.text

    @pytest.mark.asyncio
    async def test_add_note_needs_a_project_reference(self, tool_registry: ToolRegistry):
        """Should fail when neither projectId nor projectTitle is given."""
        result = await tool_registry.call("add_note", {"content": "orphan"})

        assert result.is_error
        assert result.text == "❌ Provide either projectId or projectTitle to identify the project."

    @pytest.mark.asyncio
    async def test_add_note_unknown_title(
        self,
        tool_registry: ToolRegistry,
        db_session_factory: async_sessionmaker[AsyncSession],
    ):
        """Should point the agent at create_project and write nothing."""
        result = await tool_registry.call(
            "add_note",
            {"projectTitle": "Nothing like it", "content": "x"},
        )

        assert result.is_error
        assert 'No project found matching "Nothing like it"' in result.text
        assert "create_project" in result.text
        assert await _count(db_session_factory, Note) == 0

    @pytest.mark.asyncio
    async def test_add_note_unknown_id(self, tool_registry: ToolRegistry):
        """Should report an unresolvable ID."""
        result = await tool_registry.call("add_note", {"projectId": "ffff", "content": "x"})

        assert result.text == '❌ No project found with ID "ffff".'

    @pytest.mark.asyncio
    async def test_edit_unknown_note(
        self,
        tool_registry: ToolRegistry,
        db_session_factory: async_sessionmaker[AsyncSession],
    ):
        """Should fail without writing a version."""
        result = await tool_registry.call("edit_note", {"noteId": "missing", "content": "x"})

        assert result.is_error
        assert result.text == "❌ Note not found"
        assert await _count(db_session_factory, NoteVersion) == 0


class TestGetProject:
    """get_project."""

    @pytest.mark.asyncio
    async def test_get_project_renders_context(self, tool_registry: ToolRegistry):
        """Should render fields, notes with recent versions and files."""
        project_id = await _create(
            tool_registry,
            description="A long description",
            repoUrl="https://github.com/example/alpha",
            tags=["python"],
        )
        added = await tool_registry.call("add_note", {"projectId": project_id, "content": "one"})
        note_id = _id_from(added.text, "Note ID")
        for content in ("two", "three", "four", "five"):
            await tool_registry.call("edit_note", {"noteId": note_id, "content": content})

        result = await tool_registry.call("get_project", {"title": "alpha"})

        text = result.text
        assert text.startswith("# Alpha")
        assert f"ID: {project_id}" in text
        assert "Tags: python" in text
        assert "Description:\nA long description" in text
        assert "Repo: https://github.com/example/alpha" in text
        assert "## Notes (1)" in text
        assert "(v5)" in text
        assert "↳ v4" in text and "↳ v3" in text and "↳ v2" in text
        assert "↳ v1" not in text
        assert "## Files (0)\n  (no files)" in text

    @pytest.mark.asyncio
    async def test_get_project_needs_reference(self, tool_registry: ToolRegistry):
        """Should fail without projectId or title."""
        result = await tool_registry.call("get_project", {})

        assert result.text == "❌ Provide either projectId or title."


class TestUpdateAndDelete:
    """update_project, delete_project."""

    @pytest.mark.asyncio
    async def test_update_project(self, tool_registry: ToolRegistry):
        """Should apply only given fields and report the tags."""
        project_id = await _create(tool_registry, tags=["old"])

        result = await tool_registry.call(
            "update_project",
            {
                "projectId": project_id[:8],
                "status": "IN_PROGRESS",
                "addTags": ["new"],
                "removeTags": ["old"],
            },
        )

        assert result.text.startswith("✅ Project updated: **Alpha**")
        assert "Status: IN_PROGRESS | Priority: MEDIUM" in result.text
        assert "Tags: new" in result.text

    @pytest.mark.asyncio
    async def test_soft_delete_then_restore(self, tool_registry: ToolRegistry):
        """Should archive, hide from listings, and come back on a status change."""
        project_id = await _create(tool_registry)

        deleted = await tool_registry.call("delete_project", {"projectId": project_id})
        listed = await tool_registry.call("list_projects", {})
        restored = await tool_registry.call(
            "update_project",
            {"projectId": project_id, "status": "PLANNED"},
        )
        relisted = await tool_registry.call("list_projects", {})

        assert deleted.text.startswith(f"📦 Project {project_id} archived.")
        assert listed.text == "No projects found."
        assert not restored.is_error
        assert "Alpha" in relisted.text

    @pytest.mark.asyncio
    async def test_archived_project_resolves_by_prefix(self, tool_registry: ToolRegistry):
        """Should still find an archived project by ID prefix."""
        project_id = await _create(tool_registry, status="ARCHIVED")

        result = await tool_registry.call("get_project", {"projectId": project_id[:6]})

        assert result.text.startswith("# Alpha")
        assert "Status: ARCHIVED" in result.text

    @pytest.mark.asyncio
    async def test_hard_delete_cascades(
        self,
        tool_registry: ToolRegistry,
        db_session_factory: async_sessionmaker[AsyncSession],
        blob_storage: BlobStorage,
    ):
        """Should remove the project, notes, versions, files, links and blobs."""
        project_id = await _create(tool_registry, tags=["python"])
        added = await tool_registry.call("add_note", {"projectId": project_id, "content": "a"})
        await tool_registry.call(
            "edit_note",
            {"noteId": _id_from(added.text, "Note ID"), "content": "b"},
        )
        await tool_registry.call(
            "upload_file",
            {
                "base64Content": base64.b64encode(b"blob").decode(),
                "filename": "a.txt",
                "mimeType": "text/plain",
                "projectId": project_id,
            },
        )

        result = await tool_registry.call("delete_project", {"projectId": project_id, "hard": True})

        assert result.text == f"🗑️ Project {project_id} permanently deleted."
        for model in (Project, Note, NoteVersion, File, ProjectTag):
            assert await _count(db_session_factory, model) == 0
        assert list(blob_storage.upload_dir.iterdir()) == []


class TestSearchAndSummary:
    """search, backlog_summary."""

    @pytest.mark.asyncio
    async def test_search(self, tool_registry: ToolRegistry):
        """Should render numbered hits with kind icons."""
        project_id = await _create(tool_registry, title="Python scraper")
        await tool_registry.call(
            "add_note",
            {"projectId": project_id, "content": "python asyncio fetcher"},
        )

        result = await tool_registry.call("search", {"query": "python"})

        assert result.text.startswith('Results for "python" (2):')
        assert "📁 **Python scraper**" in result.text
        assert "📝 **python asyncio fetcher**" in result.text

    @pytest.mark.asyncio
    async def test_search_no_results(self, tool_registry: ToolRegistry):
        """Should say so plainly."""
        result = await tool_registry.call("search", {"query": "zzz"})

        assert not result.is_error
        assert result.text == 'No results for "zzz".'

    @pytest.mark.asyncio
    async def test_backlog_summary(self, tool_registry: ToolRegistry):
        """Should bucket by status, cap each bucket and count active work."""
        for i in range(7):
            await _create(tool_registry, title=f"Idea {i}")
        await _create(tool_registry, title="Shipped", status="DONE")
        await _create(tool_registry, title="Gone", status="ARCHIVED")

        result = await tool_registry.call("backlog_summary", {})
        with_archived = await tool_registry.call("backlog_summary", {"includeArchived": True})

        text = result.text
        assert text.startswith("# Backlog Summary\nActive: 7")
        assert "🚧 **IN_PROGRESS**: (none)" in text
        assert "💡 **IDEA** (7):" in text
        assert "  ...and 2 more" in text
        assert "✅ **DONE** (1):\n  - Shipped" in text
        assert "ARCHIVED" not in text
        assert "📦 **ARCHIVED** (1):\n  - Gone" in with_archived.text


class TestUploadFile:
    """upload_file."""

    @pytest.mark.asyncio
    async def test_upload(self, tool_registry: ToolRegistry, blob_storage: BlobStorage):
        """Should decode, store and report the size in KB."""
        project_id = await _create(tool_registry)

        result = await tool_registry.call(
            "upload_file",
            {
                "base64Content": base64.b64encode(b"x" * 2048).decode(),
                "filename": "mock.png",
                "mimeType": "image/png",
                "projectId": project_id[:8],
            },
        )

        assert result.text.startswith("✅ File uploaded: **mock.png**")
        assert "Size: 2.0 KB" in result.text
        stored = list(blob_storage.upload_dir.iterdir())
        assert len(stored) == 1
        assert stored[0].suffix == ".png"

    @pytest.mark.asyncio
    async def test_upload_invalid_base64(self, tool_registry: ToolRegistry):
        """Should reject content that is not base64."""
        result = await tool_registry.call(
            "upload_file",
            {"base64Content": "***", "filename": "a.txt", "mimeType": "text/plain"},
        )

        assert result.text == "❌ base64Content is not valid base64."

    @pytest.mark.asyncio
    async def test_upload_unavailable(
        self,
        db_session_factory: async_sessionmaker[AsyncSession],
        disabled_storage: BlobStorage,
    ):
        """Should answer with a warning and write nothing where storage is off."""
        registry = build_registry(db_session_factory, disabled_storage, ToolConfig())

        result = await registry.call(
            "upload_file",
            {
                "base64Content": base64.b64encode(b"data").decode(),
                "filename": "a.txt",
                "mimeType": "text/plain",
            },
        )

        assert result.is_error
        assert result.text.startswith("⚠️ File uploads are not available")
        assert await _count(db_session_factory, File) == 0
        assert not disabled_storage.upload_dir.exists()
