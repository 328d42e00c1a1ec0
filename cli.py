#!/usr/bin/env python3
"""
Backlog Tracker CLI.

Primary entry point for all application operations.
Use --service to select what to run, --action to control the server lifecycle.

Usage:
    python cli.py --help
    python cli.py --service server --verbose
    python cli.py --service server --action stop
    python cli.py --service mcp-stdio
    python cli.py --service init-db
    python cli.py --service upload --file ./mockup.png --project-id 3f2a
    python cli.py --service config
"""

import asyncio
import mimetypes
import os
import signal
import subprocess
import sys
import time
from pathlib import Path

import click
import structlog

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from backlog.backend.core.logging import get_logger, setup_logging


def validate_project_root() -> Path:
    """Validate that we're running from the project root."""
    if not (PROJECT_ROOT / ".project_root").exists():
        click.echo(
            click.style("Error: .project_root not found. Run from project root.", fg="red"),
            err=True,
        )
        sys.exit(1)
    return PROJECT_ROOT


def _find_process_on_port(port: int) -> list[int]:
    """Find PIDs listening on a port."""
    result = subprocess.run(
        ["lsof", "-ti", f":{port}"],
        capture_output=True, text=True,
    )
    pids = result.stdout.strip().split("\n")
    return [int(p) for p in pids if p.strip()]


def _server_stop(logger, port: int) -> None:
    """Stop a running server by finding its process on the port."""
    pids = _find_process_on_port(port)
    if not pids:
        click.echo(f"No server running on port {port}.")
        return

    for pid in pids:
        os.kill(pid, signal.SIGINT)
        logger.info("Sent SIGINT", extra={"pid": pid, "port": port})

    click.echo(f"Server on port {port} stopped (PID: {', '.join(str(p) for p in pids)}).")


def _server_status(port: int) -> None:
    """Check if the server is running on a port."""
    pids = _find_process_on_port(port)
    if pids:
        click.echo(f"Server is running on port {port} (PID: {', '.join(str(p) for p in pids)}).")
    else:
        click.echo(f"Server is not running on port {port}.")


def _get_server_port(port: int | None) -> int:
    """Get the port from argument or config."""
    if port is not None:
        return port
    from backlog.backend.core.config import get_app_config
    return get_app_config().application.server.port


@click.command()
@click.option(
    "--service", "-s",
    type=click.Choice(["server", "mcp-stdio", "init-db", "health", "config", "info", "upload"]),
    default="info",
    help="Service or command to run.",
)
@click.option(
    "--action", "-a",
    type=click.Choice(["start", "stop", "restart", "status"]),
    default="start",
    help="Lifecycle action for the server.",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose output (INFO level logging).",
)
@click.option(
    "--debug", "-d",
    is_flag=True,
    help="Enable debug output (DEBUG level logging).",
)
@click.option(
    "--host",
    default=None,
    help="Server host.",
)
@click.option(
    "--port",
    default=None,
    type=int,
    help="Server port.",
)
@click.option(
    "--reload",
    is_flag=True,
    help="Enable auto-reload (server only).",
)
@click.option(
    "--file", "file_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="File to upload (upload only).",
)
@click.option(
    "--project-id",
    default=None,
    help="Project ID or ID prefix to attach the upload to.",
)
@click.option(
    "--note-id",
    default=None,
    help="Note ID to attach the upload to.",
)
def main(
    service: str,
    action: str,
    verbose: bool,
    debug: bool,
    host: str | None,
    port: int | None,
    reload: bool,
    file_path: Path | None,
    project_id: str | None,
    note_id: str | None,
) -> None:
    """
    Backlog Tracker CLI.

    Use --service to select what to run. For the server, use --action to
    control lifecycle (start/stop/restart/status).

    \b
    Examples:
        python cli.py --service server --verbose
        python cli.py --service server --action restart --port 8099
        python cli.py --service mcp-stdio
        python cli.py --service init-db
        python cli.py --service health
        python cli.py --service upload --file notes.md --project-id 3f2a
        python cli.py --service config
        python cli.py --service info
    """
    validate_project_root()

    if debug:
        log_level = "DEBUG"
    elif verbose:
        log_level = "INFO"
    else:
        log_level = "WARNING"

    setup_logging(level=log_level, format_type="console")

    structlog.contextvars.bind_contextvars(source="cli")

    logger = get_logger(__name__)

    logger.debug("CLI invoked", extra={"service": service, "action": action, "log_level": log_level})

    if service == "server" and action != "start":
        server_port = _get_server_port(port)

        if action == "stop":
            _server_stop(logger, server_port)
            return
        elif action == "status":
            _server_status(server_port)
            return
        elif action == "restart":
            _server_stop(logger, server_port)
            time.sleep(2)

    if service == "server":
        run_server(logger, host, port, reload)
    elif service == "mcp-stdio":
        run_mcp_stdio(logger)
    elif service == "init-db":
        init_db(logger)
    elif service == "health":
        check_health(logger)
    elif service == "config":
        show_config(logger)
    elif service == "info":
        show_info(logger)
    elif service == "upload":
        upload(logger, file_path, project_id, note_id)


def run_server(logger, host: str | None, port: int | None, reload: bool) -> None:
    """Start the FastAPI server."""
    from backlog.backend.core.config import get_app_config

    try:
        server_config = get_app_config().application.server
    except Exception as e:
        logger.error("Failed to load configuration.", extra={"error": str(e)})
        click.echo(
            click.style("Error: Could not load config/settings/application.yaml.", fg="red"),
            err=True,
        )
        sys.exit(1)

    server_host = host or server_config.host
    server_port = port or server_config.port

    logger.info(
        "Starting server",
        extra={"host": server_host, "port": server_port, "reload": reload},
    )

    cmd = [
        sys.executable, "-m", "uvicorn",
        "backlog.backend.main:app",
        "--host", server_host,
        "--port", str(server_port),
    ]

    if reload:
        cmd.append("--reload")

    click.echo(f"Starting server at http://{server_host}:{server_port}")
    click.echo("Press Ctrl+C to stop\n")

    try:
        subprocess.run(cmd, check=True)
    except KeyboardInterrupt:
        logger.info("Server stopped")
    except subprocess.CalledProcessError as e:
        logger.error("Server failed to start", extra={"exit_code": e.returncode})
        sys.exit(e.returncode)


def run_mcp_stdio(logger) -> None:
    """Serve the tool set over stdin/stdout for local agent hosts."""
    from backlog.backend.core.concurrency import shutdown_pools
    from backlog.backend.core.config import get_app_config
    from backlog.backend.core.database import create_tables, dispose_engine, get_session_factory
    from backlog.backend.main import build_blob_storage
    from backlog.backend.mcp.registry import ToolConfig
    from backlog.backend.mcp.tools import build_registry
    from backlog.backend.mcp.transport import create_mcp_server, run_stdio

    app_config = get_app_config()
    registry = build_registry(
        get_session_factory(),
        build_blob_storage(app_config),
        ToolConfig.from_app_config(app_config),
    )
    server = create_mcp_server(registry, app_config.mcp.server_name, app_config.mcp.server_version)

    async def _serve() -> None:
        try:
            if app_config.database.create_tables_on_startup:
                await create_tables()
            await run_stdio(server)
        finally:
            await shutdown_pools()
            await dispose_engine()

    logger.info("Starting MCP stdio server", extra={"tools": registry.names()})
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logger.info("MCP stdio server stopped")


def init_db(logger) -> None:
    """Create any missing tables."""
    from backlog.backend.core.database import create_tables, dispose_engine

    async def _init() -> None:
        try:
            await create_tables()
        finally:
            await dispose_engine()

    try:
        asyncio.run(_init())
    except Exception as e:
        logger.error("Database initialisation failed", extra={"error": str(e)})
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style("Database tables ready.", fg="green"))


def check_health(logger) -> None:
    """Check application health by testing imports and configuration."""
    click.echo("Checking application health...\n")

    checks = []

    # Check 1: Core imports
    try:
        from backlog.backend.core.config import get_app_config, get_settings
        from backlog.backend.core.exceptions import ApplicationError  # noqa: F401
        checks.append(("Core imports", True, None))
        logger.debug("Core imports successful")
    except Exception as e:
        checks.append(("Core imports", False, str(e)))
        logger.error("Core imports failed", extra={"error": str(e)})

    # Check 2: Configuration loading
    try:
        app_config = get_app_config()
        app_name = app_config.application.name
        checks.append(("YAML configuration", True, f"App: {app_name}"))
        logger.debug("Configuration loaded", extra={"app_name": app_name})
    except Exception as e:
        checks.append(("YAML configuration", False, str(e)))
        logger.error("Configuration failed", extra={"error": str(e)})

    # Check 3: Secrets
    try:
        has_key = bool(get_settings().api_key)
        checks.append(("API key", has_key, None if has_key else "API_KEY is not set"))
    except Exception as e:
        checks.append(("API key", False, str(e)))
        logger.warning("Secrets not configured", extra={"error": str(e)})

    # Check 4: FastAPI app
    try:
        from backlog.backend.main import get_app
        app = get_app()
        checks.append(("FastAPI application", True, f"Title: {app.title}"))
        logger.debug("FastAPI app loaded", extra={"title": app.title})
    except Exception as e:
        checks.append(("FastAPI application", False, str(e)))
        logger.error("FastAPI app failed", extra={"error": str(e)})

    # Check 5: Tool registry
    try:
        tools = app.state.tool_registry.names()
        checks.append(("MCP tools", True, f"{len(tools)} registered"))
    except Exception as e:
        checks.append(("MCP tools", False, str(e)))
        logger.error("Tool registry failed", extra={"error": str(e)})

    click.echo("Health Check Results:")
    click.echo("-" * 50)

    all_passed = True
    for name, passed, detail in checks:
        status = click.style("✓ PASS", fg="green") if passed else click.style("✗ FAIL", fg="red")
        detail_str = f" ({detail})" if detail else ""
        click.echo(f"  {status}  {name}{detail_str}")
        if not passed:
            all_passed = False

    click.echo("-" * 50)

    if all_passed:
        click.echo(click.style("\nAll checks passed!", fg="green"))
    else:
        click.echo(click.style("\nSome checks failed. See details above.", fg="yellow"))
        click.echo("Note: API_KEY and DB_PASSWORD are read from config/.env.")


def show_config(logger) -> None:
    """Display loaded configuration."""
    click.echo("Application Configuration:\n")

    try:
        from backlog.backend.core.config import get_app_config

        app_config = get_app_config()
        sections = [
            ("Application Settings", app_config.application),
            ("Database Settings", app_config.database),
            ("Logging Settings", app_config.logging),
            ("Feature Flags", app_config.features),
            ("Storage Settings", app_config.storage),
            ("MCP Settings", app_config.mcp),
        ]

        for title, section in sections:
            click.echo(f"{title} (from YAML):")
            click.echo("-" * 40)
            for key, value in section.model_dump().items():
                if isinstance(value, dict):
                    click.echo(f"  {key}:")
                    for k, v in value.items():
                        click.echo(f"    {k}: {v}")
                else:
                    click.echo(f"  {key}: {value}")
            click.echo()

        logger.info("Configuration displayed successfully")

    except Exception as e:
        logger.error("Failed to load configuration", extra={"error": str(e)})
        click.echo(click.style(f"Error loading configuration: {e}", fg="red"))
        sys.exit(1)


def upload(logger, file_path: Path | None, project_id: str | None, note_id: str | None) -> None:
    """Upload a file to a running server through the REST API."""
    from backlog.cli.client import BacklogAPIError, BacklogClient

    if file_path is None:
        click.echo(click.style("Error: --file is required for upload.", fg="red"), err=True)
        sys.exit(1)

    mime_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"

    async def _upload() -> dict:
        async with BacklogClient() as client:
            resolved = None
            if project_id:
                resolved = await client.resolve_project_id(project_id)
                if resolved is None:
                    raise click.ClickException(f'No project found with ID "{project_id}".')
            return await client.upload_file(
                file_path, mime_type=mime_type, project_id=resolved, note_id=note_id
            )

    try:
        stored = asyncio.run(_upload())
    except BacklogAPIError as e:
        logger.error("Upload failed", extra={"status_code": e.status_code, "body": e.body})
        click.echo(click.style(f"Error: upload failed ({e.status_code}): {e.body}", fg="red"), err=True)
        sys.exit(1)

    size_kb = stored["size"] / 1024
    click.echo(f"✅ Uploaded {stored['filename']} ({size_kb:.1f} KB)")
    click.echo(f"   ID: {stored['id']}")


def show_info(logger) -> None:
    """Display application information."""
    click.echo("Backlog Tracker")
    click.echo("=" * 40)

    try:
        from backlog.backend.core.config import get_app_config
        app_config = get_app_config()
        click.echo(f"Name: {app_config.application.name}")
        click.echo(f"Version: {app_config.application.version}")
        click.echo(f"Description: {app_config.application.description}")
    except Exception as e:
        logger.error(
            "Failed to load application configuration",
            extra={"error": str(e)},
        )
        click.echo(
            click.style(
                "Error: Could not load application.yaml configuration.",
                fg="red",
            ),
            err=True,
        )
        sys.exit(1)

    click.echo()
    click.echo("Services (--service):")
    click.echo("  server         FastAPI server (REST API and MCP endpoints)")
    click.echo("  mcp-stdio      MCP tools over stdin/stdout")
    click.echo("  init-db        Create database tables")
    click.echo("  health         Check application health")
    click.echo("  config         Display configuration")
    click.echo("  upload         Upload a file to a running server")
    click.echo("  info           Show this information")
    click.echo()
    click.echo("Lifecycle actions (--action, server only):")
    click.echo("  start          Start the server (default)")
    click.echo("  stop           Stop a running server")
    click.echo("  restart        Stop then start")
    click.echo("  status         Check if running")
    click.echo()
    click.echo("Options:")
    click.echo("  --verbose, -v  Enable INFO level logging")
    click.echo("  --debug, -d    Enable DEBUG level logging")
    click.echo()


if __name__ == "__main__":
    main()
