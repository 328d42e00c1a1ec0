"""
Core Utilities.

Shared utility functions used across the backend.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-naive datetime.

    All datetime values in the application are timezone-naive and assumed
    to be UTC, which keeps SQLite and PostgreSQL storage consistent.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def preview(text: str, length: int) -> str:
    """Truncate text to length, appending an ellipsis when cut."""
    if len(text) <= length:
        return text
    return f"{text[:length]}..."
