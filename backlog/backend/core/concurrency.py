"""
Concurrency Infrastructure.

Thread pool for blocking I/O (blob storage reads and writes). The pool is
created lazily on first access and shut down with the application.

Usage:
    from backlog.backend.core.concurrency import get_io_pool

    loop = asyncio.get_running_loop()
    data = await loop.run_in_executor(get_io_pool(), path.read_bytes)
"""

import asyncio
import contextvars
from concurrent.futures import ThreadPoolExecutor

from backlog.backend.core.logging import get_logger

logger = get_logger(__name__)

_io_pool: ThreadPoolExecutor | None = None


class TracedThreadPoolExecutor(ThreadPoolExecutor):
    """ThreadPoolExecutor that propagates contextvars to worker threads.

    Copies the current context (structlog bindings, request_id) before
    dispatching so logs emitted from worker threads keep their correlation.
    """

    def submit(self, fn, /, *args, **kwargs):
        ctx = contextvars.copy_context()
        return super().submit(ctx.run, fn, *args, **kwargs)


def get_io_pool() -> TracedThreadPoolExecutor:
    """Get the shared thread pool, sized by storage.yaml ``io_workers``."""
    global _io_pool
    if _io_pool is None:
        from backlog.backend.core.config import get_app_config
        max_workers = get_app_config().storage.io_workers
        _io_pool = TracedThreadPoolExecutor(max_workers=max_workers)
        logger.info("Thread pool created", extra={"max_workers": max_workers})
    return _io_pool


async def shutdown_pools() -> None:
    """Shut down the I/O pool without blocking the event loop."""
    global _io_pool

    if _io_pool is not None:
        await asyncio.to_thread(_io_pool.shutdown, wait=True)
        logger.info("Thread pool shut down")
        _io_pool = None
