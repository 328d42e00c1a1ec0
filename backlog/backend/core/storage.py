"""
Blob Storage.

Local-disk store for uploaded files, addressed by generated storage keys.
The original filename is kept in the database only; on disk every blob is
named ``<uuid4><sanitized extension>`` so names never collide and cannot
escape the upload directory.
"""

import asyncio
import re
import uuid
from collections.abc import Iterable
from concurrent.futures import Executor
from pathlib import Path

from backlog.backend.core.concurrency import get_io_pool
from backlog.backend.core.exceptions import CapabilityUnavailableError
from backlog.backend.core.logging import get_logger

logger = get_logger(__name__)

UNAVAILABLE_MESSAGE = (
    "File uploads are not available in this deployment. "
    "Use a server with local disk storage enabled for file uploads."
)

_UNSAFE_EXT_CHARS = re.compile(r"[^.a-zA-Z0-9]")


def generate_storage_key(filename: str) -> str:
    """Build a collision-free storage key keeping a sanitized extension."""
    ext = _UNSAFE_EXT_CHARS.sub("", Path(filename).suffix)
    return f"{uuid.uuid4()}{ext}"


class BlobStorage:
    """
    Byte store keyed by opaque storage keys.

    When ``enabled`` is false every write raises CapabilityUnavailableError
    before touching the disk.
    """

    def __init__(
        self,
        upload_dir: Path,
        enabled: bool = True,
        max_bytes: int = 10 * 1024 * 1024,
        executor: Executor | None = None,
    ) -> None:
        self.upload_dir = upload_dir
        self.enabled = enabled
        self.max_bytes = max_bytes
        self._executor = executor

    def ensure_available(self) -> None:
        """Raise if this deployment cannot store files."""
        if not self.enabled:
            raise CapabilityUnavailableError(UNAVAILABLE_MESSAGE)

    def path_for(self, key: str) -> Path:
        # basename only: a key can never point outside upload_dir
        return self.upload_dir / Path(key).name

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor or get_io_pool(), fn, *args)

    def _write(self, key: str, data: bytes) -> None:
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.path_for(key).write_bytes(data)

    def _unlink(self, key: str) -> bool:
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            return False
        return True

    async def save(self, key: str, data: bytes) -> str:
        """Write a blob and return its key."""
        self.ensure_available()
        await self._run(self._write, key, data)
        logger.debug("Blob stored", extra={"key": key, "size": len(data)})
        return key

    async def read(self, key: str) -> bytes:
        """Read a blob. Raises FileNotFoundError when absent."""
        return await self._run(self.path_for(key).read_bytes)

    async def delete(self, key: str) -> None:
        """Delete a blob; a blob that is already gone is not an error."""
        removed = await self._run(self._unlink, key)
        if not removed:
            logger.debug("Blob already absent", extra={"key": key})

    async def delete_many(self, keys: Iterable[str]) -> None:
        """Delete blobs best-effort; a failure is logged and the rest still go."""
        for key in keys:
            try:
                await self.delete(key)
            except OSError as e:
                logger.warning("Blob removal failed", extra={"key": key, "error": str(e)})
