"""
Integration Tests for Notes API.

Covers note creation under a project, versioned edits and version history.
"""

import pytest
from httpx import AsyncClient


@pytest.fixture
async def project(client: AsyncClient) -> dict:
    response = await client.post("/api/projects", json={"title": "Notes host"})
    return response.json()


async def _add_note(client: AsyncClient, project_id: str, **body) -> dict:
    response = await client.post(
        f"/api/projects/{project_id}/notes",
        json={"content": "first draft", **body},
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateNote:
    """Tests for POST /api/projects/{id}/notes."""

    @pytest.mark.asyncio
    async def test_create_note_defaults(self, client: AsyncClient, project: dict, api):
        """Should start at version 1 with GENERAL type and manual source."""
        response = await client.post(
            f"/api/projects/{project['id']}/notes",
            json={"content": "hello"},
        )

        data = api.assert_ok(response, expected_status=201)
        assert data["content"] == "hello"
        assert data["version"] == 1
        assert data["type"] == "GENERAL"
        assert data["source"] == "manual"
        assert data["projectId"] == project["id"]

    @pytest.mark.asyncio
    async def test_create_note_with_type_and_source(self, client: AsyncClient, project: dict, api):
        """Should keep the given type and source."""
        data = await _add_note(client, project["id"], type="DECISION", source="claude-code")

        assert data["type"] == "DECISION"
        assert data["source"] == "claude-code"

    @pytest.mark.asyncio
    async def test_create_note_empty_content_fails(self, client: AsyncClient, project: dict, api):
        """Should reject empty content."""
        response = await client.post(
            f"/api/projects/{project['id']}/notes",
            json={"content": ""},
        )

        api.assert_validation_error(response, field="content")

    @pytest.mark.asyncio
    async def test_create_note_unknown_project(self, client: AsyncClient, api):
        """Should return 404 when the project does not exist."""
        response = await client.post("/api/projects/missing/notes", json={"content": "x"})

        api.assert_error(response, 404, "RES_NOT_FOUND")


class TestListNotes:
    """Tests for GET /api/projects/{id}/notes."""

    @pytest.mark.asyncio
    async def test_list_notes(self, client: AsyncClient, project: dict, api):
        """Should list notes newest first with a total."""
        await _add_note(client, project["id"], content="older")
        await _add_note(client, project["id"], content="newer")

        data = api.assert_ok(await client.get(f"/api/projects/{project['id']}/notes"))

        assert data["total"] == 2
        assert [n["content"] for n in data["notes"]] == ["newer", "older"]
        assert data["notes"][0]["files"] == []


class TestEditNote:
    """Tests for PATCH /api/notes/{id}."""

    @pytest.mark.asyncio
    async def test_edit_snapshots_previous_content(self, client: AsyncClient, project: dict, api):
        """Should bump the version and keep the old content as a version."""
        note = await _add_note(client, project["id"], content="hi")

        edited = api.assert_ok(
            await client.patch(f"/api/notes/{note['id']}", json={"content": "hello there"})
        )
        versions = api.assert_ok(await client.get(f"/api/notes/{note['id']}/versions"))

        assert edited["version"] == 2
        assert edited["content"] == "hello there"
        assert len(versions) == 1
        assert versions[0]["version"] == 1
        assert versions[0]["content"] == "hi"

    @pytest.mark.asyncio
    async def test_repeated_edits_keep_full_history(self, client: AsyncClient, project: dict, api):
        """Should hold snapshots 1..N-1 for a note at version N."""
        note = await _add_note(client, project["id"], content="c1")
        for i in range(2, 5):
            await client.patch(f"/api/notes/{note['id']}", json={"content": f"c{i}"})

        versions = api.assert_ok(await client.get(f"/api/notes/{note['id']}/versions"))

        assert [v["version"] for v in versions] == [3, 2, 1]
        assert [v["content"] for v in versions] == ["c3", "c2", "c1"]

    @pytest.mark.asyncio
    async def test_edit_changes_type(self, client: AsyncClient, project: dict, api):
        """Should update the type when provided."""
        note = await _add_note(client, project["id"])

        edited = api.assert_ok(
            await client.patch(f"/api/notes/{note['id']}", json={"content": "x", "type": "PLAN"})
        )

        assert edited["type"] == "PLAN"

    @pytest.mark.asyncio
    async def test_edit_unknown_note(self, client: AsyncClient, api):
        """Should return 404 and write nothing for an unknown note."""
        response = await client.patch("/api/notes/missing", json={"content": "x"})

        api.assert_error(response, 404, "RES_NOT_FOUND")


class TestNoteVersions:
    """Tests for GET /api/notes/{id}/versions/{version}."""

    @pytest.mark.asyncio
    async def test_get_version(self, client: AsyncClient, project: dict, api):
        """Should return one snapshot by number."""
        note = await _add_note(client, project["id"], content="original")
        await client.patch(f"/api/notes/{note['id']}", json={"content": "changed"})

        data = api.assert_ok(await client.get(f"/api/notes/{note['id']}/versions/1"))

        assert data["content"] == "original"
        assert data["noteId"] == note["id"]

    @pytest.mark.asyncio
    async def test_get_version_not_a_number(self, client: AsyncClient, project: dict, api):
        """Should return 400 for a non-integer version."""
        note = await _add_note(client, project["id"])

        response = await client.get(f"/api/notes/{note['id']}/versions/latest")

        api.assert_error(response, 400, "VAL_VALIDATION_ERROR")

    @pytest.mark.asyncio
    async def test_get_version_missing(self, client: AsyncClient, project: dict, api):
        """Should return 404 for a version that was never written."""
        note = await _add_note(client, project["id"])

        response = await client.get(f"/api/notes/{note['id']}/versions/1")

        api.assert_error(response, 404, "RES_NOT_FOUND")
