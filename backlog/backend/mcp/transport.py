"""
MCP Transport Binding.

Exposes the tool registry over the Model Context Protocol:

- ``POST|GET|DELETE {prefix}/mcp``: stateless streamable HTTP, one
  ephemeral MCP session per request.
- ``GET {prefix}/mcp/sse`` + ``POST {prefix}/mcp/messages?session_id=``:
  session transport, the session lives as long as the event stream.
- stdio for local agents (``cli.py --service mcp-stdio``).

All three speak to the same registry; the HTTP endpoints check the API key
before the protocol layer sees the request.
"""

from typing import Any

from fastapi import FastAPI
from mcp import types
from mcp.server import Server
from mcp.server.sse import SseServerTransport
from mcp.server.stdio import stdio_server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.requests import Request
from starlette.types import Receive, Scope, Send

from backlog.backend.core.exception_handlers import EXCEPTION_STATUS_MAP, build_error_response
from backlog.backend.core.exceptions import AuthenticationError, ConfigurationError
from backlog.backend.core.logging import get_logger
from backlog.backend.core.security import extract_credential, verify_api_key
from backlog.backend.mcp.registry import ToolRegistry

logger = get_logger(__name__)


class ToolCallFailed(Exception):
    """Carries an error ToolResult's text to the protocol layer as isError content."""


def create_mcp_server(registry: ToolRegistry, name: str, version: str | None = None) -> Server:
    """Low-level MCP server whose tools are the registry's tools."""
    server = Server(name, version=version)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(name=tool.name, description=tool.description, inputSchema=tool.input_schema)
            for tool in registry.tools()
        ]

    # Arguments are validated by the registry so failures come back per field
    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[types.TextContent]:
        result = await registry.call(name, arguments)
        if result.is_error:
            raise ToolCallFailed(result.text)
        return [types.TextContent(type="text", text=block.text) for block in result.content]

    return server


async def _authorize(scope: Scope, receive: Receive, send: Send) -> bool:
    """Send a 401/500 envelope and return False when the caller is not let in."""
    request = Request(scope, receive)
    try:
        verify_api_key(
            extract_credential(request.headers, request.query_params),
            getattr(request.app.state, "api_key", None),
        )
    except (AuthenticationError, ConfigurationError) as e:
        logger.warning("MCP request rejected", extra={"code": e.code, "path": request.url.path})
        response = build_error_response(EXCEPTION_STATUS_MAP[type(e)], e.code, e.message)
        await response(scope, receive, send)
        return False
    return True


class StreamableHTTPEndpoint:
    """ASGI endpoint for the stateless streamable HTTP transport."""

    def __init__(self, session_manager: StreamableHTTPSessionManager) -> None:
        self.session_manager = session_manager

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if not await _authorize(scope, receive, send):
            return
        await self.session_manager.handle_request(scope, receive, send)


class SseEndpoint:
    """ASGI endpoint opening a session-bound event stream."""

    def __init__(self, server: Server, transport: SseServerTransport) -> None:
        self.server = server
        self.transport = transport

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if not await _authorize(scope, receive, send):
            return
        async with self.transport.connect_sse(scope, receive, send) as (read_stream, write_stream):
            logger.info("MCP SSE session opened")
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )
        logger.info("MCP SSE session closed")


class SseMessageEndpoint:
    """ASGI endpoint receiving client messages for an open SSE session."""

    def __init__(self, transport: SseServerTransport) -> None:
        self.transport = transport

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if not await _authorize(scope, receive, send):
            return
        await self.transport.handle_post_message(scope, receive, send)


def mount_mcp(
    app: FastAPI,
    server: Server,
    prefix: str,
    sse_enabled: bool = True,
) -> StreamableHTTPSessionManager:
    """
    Register the MCP routes on ``app``.

    Returns the session manager, whose ``run()`` context must be entered
    in the application lifespan before the first request.
    """
    session_manager = StreamableHTTPSessionManager(
        app=server,
        json_response=True,
        stateless=True,
    )
    app.add_route(
        f"{prefix}/mcp",
        StreamableHTTPEndpoint(session_manager),
        methods=["GET", "POST", "DELETE"],
        include_in_schema=False,
    )

    if sse_enabled:
        messages_path = f"{prefix}/mcp/messages"
        sse = SseServerTransport(messages_path)
        app.add_route(
            f"{prefix}/mcp/sse",
            SseEndpoint(server, sse),
            methods=["GET"],
            include_in_schema=False,
        )
        app.add_route(
            messages_path,
            SseMessageEndpoint(sse),
            methods=["POST"],
            include_in_schema=False,
        )

    logger.debug("MCP routes registered", extra={"prefix": prefix, "sse": sse_enabled})
    return session_manager


async def run_stdio(server: Server) -> None:
    """Serve MCP over stdin/stdout until the client disconnects."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
