"""
Tool Registry.

A fixed set of named tools, each with a pydantic input model, dispatched by
name. Every call runs in its own database unit of work and always produces
a ToolResult; failures are rendered as error content, never raised.

Usage:
    registry = build_registry(get_session_factory(), storage, ToolConfig())
    result = await registry.call("search", {"query": "python"})
    print(result.text)
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import pydantic
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backlog.backend.core.database import session_scope
from backlog.backend.core.exceptions import ApplicationError, CapabilityUnavailableError
from backlog.backend.core.logging import get_logger, log_with_source
from backlog.backend.core.storage import BlobStorage

logger = get_logger(__name__)

ERROR_MARKER = "❌"
WARNING_MARKER = "⚠️"


@dataclass(frozen=True)
class ToolConfig:
    """Tunables for tool behavior, resolved once at startup."""

    title_match_window: int = 100
    prefix_scan_limit: int = 200
    version_history_depth: int = 3
    summary_top_n: int = 5
    default_note_source: str = "claude-chat"

    @classmethod
    def from_app_config(cls, app_config: Any) -> "ToolConfig":
        mcp = app_config.mcp
        return cls(
            title_match_window=mcp.title_match_window,
            prefix_scan_limit=mcp.prefix_scan_limit,
            version_history_depth=mcp.version_history_depth,
            summary_top_n=mcp.summary_top_n,
            default_note_source=mcp.default_note_source,
        )


@dataclass
class TextContent:
    text: str
    type: str = "text"


@dataclass
class ToolResult:
    """Uniform tool output: text content blocks plus an error flag."""

    content: list[TextContent] = field(default_factory=list)
    is_error: bool = False

    @classmethod
    def of(cls, text: str) -> "ToolResult":
        return cls(content=[TextContent(text=text)])

    @classmethod
    def error(cls, message: str, marker: str = ERROR_MARKER) -> "ToolResult":
        return cls(content=[TextContent(text=f"{marker} {message}")], is_error=True)

    @property
    def text(self) -> str:
        return "\n".join(block.text for block in self.content)


@dataclass
class ToolContext:
    """What a handler may touch during one call."""

    session: AsyncSession
    storage: BlobStorage
    config: ToolConfig


Handler = Callable[[ToolContext, Any], Awaitable[ToolResult | str]]


@dataclass
class Tool:
    """Tool definition"""

    name: str
    description: str
    input_model: type[BaseModel]
    handler: Handler

    @property
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema published to agents, with camelCase property names."""
        return self.input_model.model_json_schema(by_alias=True)


def format_validation_error(name: str, exc: pydantic.ValidationError) -> str:
    """One ``field: message`` line per failing argument."""
    lines = [f"Invalid arguments for {name}:"]
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ())) or "arguments"
        lines.append(f"- {location}: {err.get('msg', 'invalid value')}")
    return "\n".join(lines)


class ToolRegistry:
    """
    Name-to-tool dispatcher.

    Tools are registered once at startup. ``call`` validates arguments,
    opens a unit of work, runs the handler and renders the outcome.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        storage: BlobStorage,
        config: ToolConfig | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._storage = storage
        self.config = config or ToolConfig()
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool {tool.name} already registered")
        self._tools[tool.name] = tool
        logger.debug("Registered tool", extra={"tool": tool.name})

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def tools(self) -> list[Tool]:
        return list(self._tools.values())

    async def call(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        """Run a tool by name. Never raises."""
        tool = self._tools.get(name)
        if tool is None:
            return ToolResult.error(f"Unknown tool: {name}")

        try:
            args = tool.input_model.model_validate(arguments or {})
        except pydantic.ValidationError as e:
            log_with_source(logger, "agent", "warning", "Tool arguments rejected", tool=name)
            return ToolResult.error(format_validation_error(name, e))

        start = time.monotonic()
        try:
            async with session_scope(self._session_factory) as session:
                context = ToolContext(session=session, storage=self._storage, config=self.config)
                result = await tool.handler(context, args)
        except CapabilityUnavailableError as e:
            result = ToolResult.error(e.message, marker=WARNING_MARKER)
        except ApplicationError as e:
            result = ToolResult.error(e.message)
        except Exception:
            logger.exception("Tool crashed", extra={"tool": name})
            result = ToolResult.error(f"{name} failed due to an internal error.")

        if isinstance(result, str):
            result = ToolResult.of(result)

        duration_ms = round((time.monotonic() - start) * 1000, 1)
        log_with_source(
            logger,
            "agent",
            "warning" if result.is_error else "info",
            "Tool call finished",
            tool=name,
            duration_ms=duration_ms,
            is_error=result.is_error,
        )
        return result
