"""
Password hashing and verification using argon2id.

The encoded hash carries its own salt and parameters, so a single string is
all that is stored per user.
"""

from __future__ import annotations

import argon2

_hasher = argon2.PasswordHasher(
    time_cost=2,
    memory_cost=65536,  # 64 MB
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=argon2.Type.ID,  # argon2id
)


def hash_password(password: str) -> str:
    """Hash a password using argon2id. Returns the full hash string.

    Raises:
        argon2.exceptions.HashingError: If the hash cannot be computed.
    """
    return _hasher.hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    """
    Verify a password against its argon2id hash.

    Returns False on a plain mismatch.

    Raises:
        argon2.exceptions.InvalidHashError: If the stored hash is malformed.
        argon2.exceptions.VerificationError: On any other verification failure.
    """
    try:
        return _hasher.verify(password_hash, password)
    except argon2.exceptions.VerifyMismatchError:
        return False
