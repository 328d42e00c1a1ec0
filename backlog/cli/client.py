"""
Backlog API Client.

Async httpx client for the REST API, used by the CLI. Every request carries
the bearer key and ``X-Frontend-ID: cli`` for log routing.

Usage:
    async with BacklogClient() as client:
        page = await client.list_projects(status="IN_PROGRESS")
"""

from pathlib import Path
from typing import Any

import httpx

from backlog.backend.core.config import get_server_base_url, get_settings
from backlog.backend.core.logging import get_logger, log_with_source
from backlog.backend.services.resolution import match_id_prefix, match_title

logger = get_logger(__name__)


class BacklogAPIError(Exception):
    """Raised when the API answers with a non-2xx status."""

    def __init__(self, method: str, path: str, status_code: int, body: str) -> None:
        self.method = method
        self.path = path
        self.status_code = status_code
        self.body = body
        super().__init__(f"API {method} {path} failed: {status_code} {body}")


class BacklogClient:
    """
    HTTP client for the backlog REST API.

    ``raw_request`` is the escape hatch for calls the typed helpers do not
    cover (file downloads); it applies the same base URL and credentials.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if base_url is None or timeout is None:
            config_base_url, config_timeout = get_server_base_url()
            base_url = base_url or config_base_url
            timeout = timeout if timeout is not None else config_timeout
        if api_key is None:
            api_key = get_settings().api_key or ""

        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "X-Frontend-ID": "cli",
            },
        )

    async def __aenter__(self) -> "BacklogClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def raw_request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request and return the response whatever its status."""
        log_with_source(logger, "cli", "debug", "API request", method=method, path=path)
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            log_with_source(
                logger, "cli", "error", "API request failed",
                method=method, path=path, error=str(e),
            )
            raise
        log_with_source(
            logger, "cli", "debug", "API response",
            method=method, path=path, status_code=response.status_code,
        )
        return response

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self.raw_request(method, path, **kwargs)
        if response.is_error:
            raise BacklogAPIError(method, path, response.status_code, response.text)
        if response.status_code == 204:
            return None
        return response.json()

    # Projects

    async def list_projects(
        self,
        status: str | None = None,
        priority: str | None = None,
        tag: str | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        params = {"status": status, "priority": priority, "tag": tag, "limit": limit}
        return await self._request(
            "GET", "/projects", params={k: v for k, v in params.items() if v is not None}
        )

    async def get_project(self, project_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/projects/{project_id}")

    async def get_project_full(self, project_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/projects/{project_id}/full")

    async def create_project(self, **data: Any) -> dict[str, Any]:
        return await self._request("POST", "/projects", json=data)

    async def update_project(self, project_id: str, **data: Any) -> dict[str, Any]:
        return await self._request("PATCH", f"/projects/{project_id}", json=data)

    async def delete_project(self, project_id: str, hard: bool = False) -> None:
        params = {"hard": "true"} if hard else None
        await self._request("DELETE", f"/projects/{project_id}", params=params)

    # Notes

    async def add_note(self, project_id: str, content: str, **data: Any) -> dict[str, Any]:
        return await self._request(
            "POST", f"/projects/{project_id}/notes", json={"content": content, **data}
        )

    async def edit_note(self, note_id: str, content: str, type: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {"content": content}
        if type:
            body["type"] = type
        return await self._request("PATCH", f"/notes/{note_id}", json=body)

    # Tags and search

    async def list_tags(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/tags")

    async def search(self, query: str, type: str = "all", limit: int = 10) -> dict[str, Any]:
        return await self._request(
            "GET", "/search", params={"q": query, "type": type, "limit": limit}
        )

    # Files

    async def upload_file(
        self,
        path: Path,
        mime_type: str = "application/octet-stream",
        project_id: str | None = None,
        note_id: str | None = None,
    ) -> dict[str, Any]:
        form = {k: v for k, v in {"projectId": project_id, "noteId": note_id}.items() if v}
        files = {"file": (path.name, path.read_bytes(), mime_type)}
        return await self._request("POST", "/files/upload", data=form, files=files)

    # Resolution

    async def find_project_by_title(self, title: str, window: int = 100) -> dict[str, Any] | None:
        """Fuzzy title match over the most recently updated projects."""
        page = await self.list_projects(limit=window)
        return match_title(page["projects"], title, title_of=lambda p: p["title"])

    async def resolve_project_id(self, id_or_prefix: str, scan_limit: int = 100) -> str | None:
        """Exact ID first, then the first ID prefix match across normal and archived projects."""
        try:
            project = await self.get_project(id_or_prefix)
            return project["id"]
        except BacklogAPIError as e:
            if e.status_code != 404:
                raise
        normal = await self.list_projects(limit=scan_limit)
        archived = await self.list_projects(status="ARCHIVED", limit=scan_limit)
        ids = [p["id"] for p in normal["projects"] + archived["projects"]]
        matches = match_id_prefix(ids, id_or_prefix)
        return matches[0] if matches else None
