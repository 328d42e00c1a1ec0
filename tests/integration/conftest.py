"""
Integration Test Fixtures.

Fixtures for integration tests - uses a real database and real services.
These fixtures build on the root conftest.py database fixtures.
"""

from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backlog.backend.core.database import get_db_session, session_scope
from backlog.backend.core.storage import BlobStorage

TEST_API_KEY = "test-key-0123456789"


# =============================================================================
# Application Fixtures
# =============================================================================


@pytest.fixture
def app(
    db_session_factory: async_sessionmaker[AsyncSession],
    blob_storage: BlobStorage,
) -> FastAPI:
    """
    Application wired to the test database and temporary blob storage.

    Each request runs in its own committed unit of work, as in production.
    """
    with patch("backlog.backend.main.get_session_factory", return_value=db_session_factory), \
         patch("backlog.backend.main.build_blob_storage", return_value=blob_storage):
        from backlog.backend.main import create_app

        application = create_app()

    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_scope(db_session_factory) as session:
            yield session

    application.dependency_overrides[get_db_session] = override_get_db_session
    application.state.api_key = TEST_API_KEY
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """
    Authenticated test client.

    Usage:
        async def test_list_projects(client: AsyncClient):
            response = await client.get("/api/projects")
            assert response.status_code == 200
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {TEST_API_KEY}"},
    ) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
async def anon_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Test client that sends no credentials."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client


# =============================================================================
# API Response Assertion Helpers
# =============================================================================


class ApiAssertions:
    """Helper class for API response assertions."""

    @staticmethod
    def assert_ok(response: Any, expected_status: int = 200) -> Any:
        """Assert the status code and return the JSON body."""
        assert response.status_code == expected_status, (
            f"Expected status {expected_status}, got {response.status_code}: "
            f"{response.text}"
        )
        return response.json()

    @staticmethod
    def assert_error(
        response: Any,
        expected_status: int,
        expected_code: str | None = None,
    ) -> dict[str, Any]:
        """Assert the response is an error envelope with the given status and code."""
        assert response.status_code == expected_status, (
            f"Expected status {expected_status}, got {response.status_code}: "
            f"{response.text}"
        )
        data = response.json()
        assert data.get("success") is False, f"Response should be error: {data}"
        assert data.get("error") is not None, f"Missing error details: {data}"

        if expected_code:
            actual_code = data["error"].get("code")
            assert actual_code == expected_code, (
                f"Expected error code {expected_code}, got {actual_code}"
            )

        return data

    @staticmethod
    def assert_validation_error(
        response: Any,
        field: str | None = None,
    ) -> dict[str, Any]:
        """Assert the response is a request validation error (400)."""
        data = ApiAssertions.assert_error(response, 400, "VAL_REQUEST_INVALID")

        if field:
            errors = data["error"].get("details", {}).get("validation_errors", [])
            fields = [e.get("field", "") for e in errors]
            assert any(field in f for f in fields), (
                f"Expected validation error for field '{field}', "
                f"got errors for: {fields}"
            )

        return data


@pytest.fixture
def api() -> ApiAssertions:
    """Provide API assertion helpers."""
    return ApiAssertions()


@pytest.fixture
def api_key() -> str:
    """The API key the test application accepts."""
    return TEST_API_KEY
