"""
Security Utilities.

Static API key authentication shared by the REST routes and the MCP
endpoints. The key is read once at startup and stored on ``app.state``.

Accepted credentials:
    Authorization: Bearer <API_KEY>
    ?apiKey=<API_KEY>   (agent UIs that cannot send headers)
"""

import hmac
from collections.abc import Mapping

from fastapi import Request

from backlog.backend.core.exceptions import AuthenticationError, ConfigurationError
from backlog.backend.core.logging import get_logger

logger = get_logger(__name__)

QUERY_KEY_PARAM = "apiKey"


def extract_credential(
    headers: Mapping[str, str],
    query_params: Mapping[str, str],
) -> str | None:
    """Return the presented credential, preferring the bearer header."""
    auth_header = headers.get("authorization")
    if auth_header:
        scheme, _, token = auth_header.partition(" ")
        if scheme == "Bearer" and token:
            return token
    return query_params.get(QUERY_KEY_PARAM) or None


def verify_api_key(provided: str | None, expected: str | None) -> None:
    """
    Check a presented credential against the server secret.

    Raises:
        ConfigurationError: If the server has no API key configured
        AuthenticationError: If the credential is missing or wrong
    """
    if not expected:
        logger.error("API_KEY is not configured")
        raise ConfigurationError("Server misconfigured")
    if provided is None or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise AuthenticationError("Unauthorized")


async def require_api_key(request: Request) -> None:
    """FastAPI dependency guarding every non-health route."""
    verify_api_key(
        extract_credential(request.headers, request.query_params),
        getattr(request.app.state, "api_key", None),
    )
