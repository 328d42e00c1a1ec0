"""
FastAPI Application Entry Point.

Builds the REST API, the MCP endpoints and the shared tool registry.
"""

from contextlib import AsyncExitStack, asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backlog.backend.api import health
from backlog.backend.api.router import router as api_router
from backlog.backend.core.concurrency import shutdown_pools
from backlog.backend.core.config import find_project_root, get_app_config, get_settings
from backlog.backend.core.database import create_tables, dispose_engine, get_session_factory
from backlog.backend.core.exception_handlers import register_exception_handlers
from backlog.backend.core.logging import get_logger, setup_logging
from backlog.backend.core.middleware import BodySizeLimitMiddleware, RequestContextMiddleware
from backlog.backend.core.storage import BlobStorage
from backlog.backend.mcp.registry import ToolConfig
from backlog.backend.mcp.tools import build_registry
from backlog.backend.mcp.transport import create_mcp_server, mount_mcp

logger = get_logger(__name__)

_app: FastAPI | None = None


def build_blob_storage(app_config=None) -> BlobStorage:
    """Blob storage from storage.yaml; relative upload dirs sit under the project root."""
    storage_config = (app_config or get_app_config()).storage
    upload_dir = Path(storage_config.upload_dir)
    if not upload_dir.is_absolute():
        upload_dir = find_project_root() / upload_dir
    return BlobStorage(
        upload_dir=upload_dir,
        enabled=storage_config.enabled,
        max_bytes=storage_config.max_upload_bytes,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    app_config = get_app_config()
    setup_logging(level=app_config.logging.level)

    if app_config.features.security_startup_checks_enabled:
        from backlog.backend.core.startup_checks import run_startup_checks
        run_startup_checks()

    if app_config.database.create_tables_on_startup:
        await create_tables()

    logger.info(
        "Application starting",
        extra={
            "app_name": app_config.application.name,
            "env": app_config.application.environment,
            "storage_enabled": app_config.storage.enabled,
        },
    )

    async with AsyncExitStack() as stack:
        session_manager = getattr(app.state, "mcp_session_manager", None)
        if session_manager is not None:
            await stack.enter_async_context(session_manager.run())
        yield

    logger.info("Application shutting down")
    await shutdown_pools()
    await dispose_engine()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app_config = get_app_config()
    app_settings = app_config.application
    prefix = app_settings.api_prefix

    app = FastAPI(
        title=app_settings.name,
        description=app_settings.description,
        version=app_settings.version,
        docs_url="/docs" if app_settings.debug else None,
        redoc_url="/redoc" if app_settings.debug else None,
        lifespan=lifespan,
    )

    app.state.api_key = get_settings().api_key
    app.state.blob_storage = build_blob_storage(app_config)
    app.state.tool_registry = build_registry(
        get_session_factory(),
        app.state.blob_storage,
        ToolConfig.from_app_config(app_config),
    )
    app.state.mcp_session_manager = None

    app.add_middleware(BodySizeLimitMiddleware, max_bytes=app_config.storage.max_upload_bytes)
    if app_config.features.api_request_logging:
        app.add_middleware(RequestContextMiddleware)

    cors_origins = app_settings.cors.origins
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_exception_handlers(app)

    app.include_router(health.router, prefix=prefix, tags=["health"])
    app.include_router(api_router, prefix=prefix)

    if app_config.features.mcp_enabled:
        mcp_server = create_mcp_server(
            app.state.tool_registry,
            app_config.mcp.server_name,
            app_config.mcp.server_version,
        )
        app.state.mcp_session_manager = mount_mcp(
            app,
            mcp_server,
            prefix,
            sse_enabled=app_config.features.mcp_sse_enabled,
        )

    return app


def get_app() -> FastAPI:
    """
    Get the application instance (lazy initialization).

    This function creates the app on first call and caches it.
    Use this instead of importing `app` directly to avoid
    import-time configuration errors.
    """
    global _app
    if _app is None:
        _app = create_app()
    return _app


# For uvicorn: `uvicorn backlog.backend.main:app`
def __getattr__(name: str) -> FastAPI:
    """Support lazy access to `app` for uvicorn compatibility."""
    if name == "app":
        return get_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
