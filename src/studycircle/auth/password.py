"""
Password hashing and validation using argon2id.
"""

from __future__ import annotations

import argon2

from studycircle.errors import ValidationFailed

_hasher = argon2.PasswordHasher(
    time_cost=2,
    memory_cost=65536,  # 64 MB
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=argon2.Type.ID,
)


def hash_password(password: str) -> str:
    """Hash a password using argon2id. Returns the full hash string."""
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against its argon2id hash.

    Returns True if the password matches. Never raises on mismatch.
    """
    try:
        return _hasher.verify(password_hash, password)
    except argon2.exceptions.VerifyMismatchError:
        return False
    except argon2.exceptions.InvalidHashError:
        return False


def validate_password_strength(password: str, min_length: int = 8) -> None:
    """
    Validate password meets minimum strength requirements.

    Raises ValidationFailed(field="password") if the password is too weak:
    at least ``min_length`` characters, at most 128, with an upper case
    letter, a lower case letter and a digit.
    """
    if not password or not password.strip():
        raise ValidationFailed("password", "Password cannot be empty")
    if len(password) < min_length:
        raise ValidationFailed("password", f"Password must be at least {min_length} characters")
    if len(password) > 128:
        raise ValidationFailed("password", "Password must not exceed 128 characters")
    if not any(c.isupper() for c in password):
        raise ValidationFailed("password", "Password must contain at least one uppercase letter")
    if not any(c.islower() for c in password):
        raise ValidationFailed("password", "Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in password):
        raise ValidationFailed("password", "Password must contain at least one digit")
