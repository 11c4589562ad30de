"""
Encryption utilities

Symmetric encryption for credentials stored at rest (door codes, key box
codes handed out through access grants). Uses Fernet from ``cryptography``.
"""

from __future__ import annotations

import base64
import hashlib
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings


@lru_cache(maxsize=4)
def _fernet_for(raw_key: str) -> Fernet:
    # Arbitrary passphrases are stretched to the 32-byte key Fernet expects.
    try:
        return Fernet(raw_key.encode())
    except ValueError:
        derived = base64.urlsafe_b64encode(hashlib.sha256(raw_key.encode()).digest())
        return Fernet(derived)


def get_fernet() -> Fernet:
    key = getattr(settings, "ENCRYPTION_KEY", None)
    if not key:
        raise ValueError(
            "ENCRYPTION_KEY not configured in settings. "
            "Generate one with: python -c 'from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())'"
        )
    if isinstance(key, bytes):
        key = key.decode()
    return _fernet_for(key)


def encrypt_string(plaintext: str) -> str:
    if not plaintext:
        return ""
    return get_fernet().encrypt(plaintext.encode()).decode()


def decrypt_string(token: str) -> str:
    """
    Reverse of :func:`encrypt_string`.

    Raises ``cryptography.fernet.InvalidToken`` when the value was written
    with another key.
    """
    if not token:
        return ""
    return get_fernet().decrypt(token.encode()).decode()


__all__ = ["InvalidToken", "decrypt_string", "encrypt_string", "get_fernet"]
