"""
Unit Tests for the CLI API client.

Requests are answered by an in-process httpx transport, no server runs.
"""

import json
from pathlib import Path

import httpx
import pytest

from backlog.cli.client import BacklogAPIError, BacklogClient

BASE_URL = "http://backlog.test/api"


def _project(project_id: str, title: str, status: str = "IDEA") -> dict:
    return {"id": project_id, "title": title, "status": status}


class Recorder:
    """Transport handler that records requests and answers from a route table."""

    def __init__(self, routes: dict) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path, request.url.params.get("status"))
        if key not in self.routes:
            key = (request.method, request.url.path, None)
        status, body = self.routes.get(key, (404, {"success": False}))
        if status == 204:
            return httpx.Response(204)
        return httpx.Response(status, json=body)


def _client(recorder: Recorder) -> BacklogClient:
    return BacklogClient(
        base_url=BASE_URL,
        api_key="secret",
        timeout=5.0,
        transport=httpx.MockTransport(recorder),
    )


class TestRequests:
    """Tests for headers, params and error mapping."""

    @pytest.mark.asyncio
    async def test_sends_bearer_and_frontend_headers(self):
        """Should authenticate and tag every request as coming from the CLI."""
        recorder = Recorder({("GET", "/api/tags", None): (200, [])})

        async with _client(recorder) as client:
            assert await client.list_tags() == []

        request = recorder.requests[0]
        assert request.headers["Authorization"] == "Bearer secret"
        assert request.headers["X-Frontend-ID"] == "cli"

    @pytest.mark.asyncio
    async def test_list_projects_drops_unset_filters(self):
        recorder = Recorder({("GET", "/api/projects", None): (200, {"projects": [], "total": 0})})

        async with _client(recorder) as client:
            await client.list_projects(priority="HIGH")

        params = recorder.requests[0].url.params
        assert params.get("priority") == "HIGH"
        assert "status" not in params
        assert "tag" not in params

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        """Should raise with the status code and body of a failed call."""
        recorder = Recorder({})

        async with _client(recorder) as client:
            with pytest.raises(BacklogAPIError) as exc_info:
                await client.get_project("missing")

        assert exc_info.value.status_code == 404
        assert exc_info.value.path == "/projects/missing"

    @pytest.mark.asyncio
    async def test_hard_delete_returns_none(self):
        recorder = Recorder({("DELETE", "/api/projects/p1", None): (204, None)})

        async with _client(recorder) as client:
            assert await client.delete_project("p1", hard=True) is None

        assert recorder.requests[0].url.params.get("hard") == "true"

    @pytest.mark.asyncio
    async def test_edit_note_omits_empty_type(self):
        recorder = Recorder({("PATCH", "/api/notes/n1", None): (200, {"id": "n1"})})

        async with _client(recorder) as client:
            await client.edit_note("n1", "new text")

        assert json.loads(recorder.requests[0].content) == {"content": "new text"}

    @pytest.mark.asyncio
    async def test_upload_sends_multipart(self, tmp_path: Path):
        """Should post the file and the owning project as multipart form data."""
        path = tmp_path / "diagram.png"
        path.write_bytes(b"\x89PNG")
        recorder = Recorder({("POST", "/api/files/upload", None): (201, {"id": "f1"})})

        async with _client(recorder) as client:
            data = await client.upload_file(path, "image/png", project_id="p1")

        request = recorder.requests[0]
        assert data == {"id": "f1"}
        assert request.headers["Content-Type"].startswith("multipart/form-data")
        assert b'name="projectId"' in request.content
        assert b'filename="diagram.png"' in request.content
        assert b'name="noteId"' not in request.content


class TestResolution:
    """Tests for title and ID prefix resolution through the API."""

    @pytest.mark.asyncio
    async def test_find_project_by_title(self):
        """Should match a title case-insensitively."""
        projects = [_project("p1", "Alpha Site"), _project("p2", "Beta")]
        recorder = Recorder({("GET", "/api/projects", None): (200, {"projects": projects})})

        async with _client(recorder) as client:
            match = await client.find_project_by_title("alpha site")

        assert match["id"] == "p1"
        assert recorder.requests[0].url.params.get("limit") == "100"

    @pytest.mark.asyncio
    async def test_resolve_exact_id(self):
        recorder = Recorder({("GET", "/api/projects/abc-123", None): (200, _project("abc-123", "A"))})

        async with _client(recorder) as client:
            assert await client.resolve_project_id("abc-123") == "abc-123"

        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_resolve_prefix_includes_archived(self):
        """Should fall back to a prefix scan that covers archived projects."""
        recorder = Recorder(
            {
                ("GET", "/api/projects", None): (200, {"projects": [_project("zzz-1", "Z")]}),
                ("GET", "/api/projects", "ARCHIVED"): (
                    200,
                    {"projects": [_project("abc-9", "Old", status="ARCHIVED")]},
                ),
            }
        )

        async with _client(recorder) as client:
            assert await client.resolve_project_id("abc") == "abc-9"

    @pytest.mark.asyncio
    async def test_resolve_no_match(self):
        recorder = Recorder({("GET", "/api/projects", None): (200, {"projects": []})})

        async with _client(recorder) as client:
            assert await client.resolve_project_id("nothing") is None

    @pytest.mark.asyncio
    async def test_resolve_propagates_server_errors(self):
        """Should not treat a server failure as a missing project."""
        recorder = Recorder({("GET", "/api/projects/abc", None): (500, {"success": False})})

        async with _client(recorder) as client:
            with pytest.raises(BacklogAPIError):
                await client.resolve_project_id("abc")
