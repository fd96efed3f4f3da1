"""Utility functions and helpers."""

from libra.utils.crypto import decrypt_token, encrypt_token, is_encrypted
from libra.utils.helpers import (
    build_google_drive_url,
    clamp,
    coerce_int,
    parse_rfc3339,
    validate_uuid,
)

__all__ = [
    "build_google_drive_url",
    "clamp",
    "coerce_int",
    "decrypt_token",
    "encrypt_token",
    "is_encrypted",
    "parse_rfc3339",
    "validate_uuid",
]
