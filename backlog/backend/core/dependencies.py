"""
FastAPI Dependencies.

Shared dependencies for request handling.
"""

import uuid
from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backlog.backend.core.database import get_db_session
from backlog.backend.core.logging import get_logger
from backlog.backend.core.storage import BlobStorage

logger = get_logger(__name__)

DbSession = Annotated[AsyncSession, Depends(get_db_session)]


async def get_request_id(x_request_id: str | None = Header(None)) -> str:
    """Extract or generate request ID from headers."""
    return x_request_id or str(uuid.uuid4())


RequestId = Annotated[str, Depends(get_request_id)]


async def get_blob_storage(request: Request) -> BlobStorage:
    """Blob storage configured at startup."""
    return request.app.state.blob_storage


Storage = Annotated[BlobStorage, Depends(get_blob_storage)]
