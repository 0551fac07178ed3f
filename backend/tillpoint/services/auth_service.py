# Overview: Service-layer operations for auth; password hashing and credential checks.

"""
Authentication Service

Passwords are hashed with bcrypt. Only the hash is stored on pos_user.
"""

from __future__ import annotations

import bcrypt
from flask import current_app, has_app_context

from ..models import User
from ..time_utils import utcnow

DEFAULT_BCRYPT_ROUNDS = 12


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


MIN_PASSWORD_LENGTH = 6


def validate_password_strength(password: str) -> None:
    """Raises PasswordValidationError if the password is too weak to store."""
    if not isinstance(password, str):
        raise PasswordValidationError("Password must be a string")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )


def hash_password(password: str, *, rounds: int | None = None) -> str:
    """
    Hash password using bcrypt (cost from BCRYPT_ROUNDS, default 12).

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    if rounds is None:
        rounds = current_app.config.get("BCRYPT_ROUNDS", DEFAULT_BCRYPT_ROUNDS) if has_app_context() else DEFAULT_BCRYPT_ROUNDS
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. Malformed hashes verify as False.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def authenticate(session, username: str, password: str) -> User | None:
    """
    Return the active user matching the credentials, or None.

    Updates last_login_at on success.
    """
    user = session.query(User).filter_by(username=username).first()
    if not user or not user.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    session.commit()
    return user
