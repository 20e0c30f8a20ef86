"""Password hashing and session tokens for the workbook backend."""

from __future__ import annotations

import secrets

import bcrypt


BCRYPT_ROUNDS = 12


def hash_password(password: str) -> str:
    """Hash ``password`` with bcrypt; the salt is embedded in the result."""
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, stored: str) -> bool:
    """Return True when ``password`` matches the stored bcrypt hash."""
    if not stored.startswith("$2"):
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), stored.encode("utf-8"))
    except ValueError:
        return False


def new_token() -> str:
    return secrets.token_urlsafe(24)
