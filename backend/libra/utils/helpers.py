"""Shared utilities used across the application."""

import uuid
from datetime import datetime

from fastapi import HTTPException


def validate_uuid(value: str, name: str = "ID") -> uuid.UUID:
    """Validate and convert a string to UUID.

    Raises:
        HTTPException: 400 if the string is not a valid UUID
    """
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name}") from None


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def coerce_int(value, default: int) -> int:
    """Best-effort integer conversion for model-supplied tool arguments."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default


def parse_rfc3339(value: str | None) -> datetime | None:
    """Parse a Drive API timestamp such as ``2024-01-15T10:30:00.000Z``."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def build_google_drive_url(file_id: str) -> str:
    return f"https://drive.google.com/file/d/{file_id}/view"
