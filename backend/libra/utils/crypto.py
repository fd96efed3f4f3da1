"""Fernet encryption for OAuth tokens stored in the database."""

import base64
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from libra.config import settings

# Fernet tokens always start with the version byte 0x80, which base64-encodes to "gAAAAA"
_FERNET_PREFIX = b"gAAAAA"


@lru_cache(maxsize=1)
def _get_fernet() -> Fernet:
    """Derive the Fernet key from ``settings.secret_key`` (PBKDF2-SHA256)."""
    secret = settings.secret_key.encode()
    salt = secret[:16].ljust(16, b"\x00")
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=salt, iterations=100_000)
    return Fernet(base64.urlsafe_b64encode(kdf.derive(secret)))


def encrypt_token(plaintext: str) -> str:
    """Encrypt a token for storage.

    The Fernet output is base64-encoded once more so stored values are
    distinguishable from raw tokens.
    """
    if not plaintext:
        return ""
    encrypted = _get_fernet().encrypt(plaintext.encode())
    return base64.urlsafe_b64encode(encrypted).decode()


def decrypt_token(ciphertext: str) -> str:
    """Decrypt a value produced by :func:`encrypt_token`.

    Raises:
        cryptography.fernet.InvalidToken: If the value was encrypted with another key.
    """
    if not ciphertext:
        return ""
    encrypted = base64.urlsafe_b64decode(ciphertext.encode())
    return _get_fernet().decrypt(encrypted).decode()


def is_encrypted(token: str) -> bool:
    if not token:
        return False
    try:
        decoded = base64.urlsafe_b64decode(token.encode())
    except (ValueError, InvalidToken):
        return False
    return len(decoded) >= 100 and decoded[:6] == _FERNET_PREFIX
