# Overview: Service-layer operations for session tokens.

"""
Session Token Management Service

Tokens are 32 random bytes (hex), stored as SHA-256 hashes, and expire
SESSION_TTL_HOURS after issue (a till shift; 8h by default). Revoked on
logout or when the owning user is deactivated.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..models import SessionToken, User
from ..time_utils import utcnow


DEFAULT_SESSION_TTL_HOURS = 8


@dataclass
class SessionContext:
    user: User
    session: SessionToken


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy) sent to the client."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy, so a fast hash is sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _session_ttl() -> timedelta:
    hours = current_app.config.get("SESSION_TTL_HOURS", DEFAULT_SESSION_TTL_HOURS)
    return timedelta(hours=hours)


def create_session(
    session,
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Create a session token for the user.

    Returns (session_record, plaintext_token). The database stores only
    the hash.
    """
    user = session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    plaintext_token = generate_token()
    now = utcnow()

    record = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _session_ttl(),
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
    )
    session.add(record)
    session.commit()
    return record, plaintext_token


def validate_session(session, token: str) -> SessionContext | None:
    """
    Return SessionContext for a live token, else None.

    Returns None if the token is unknown, revoked, expired, or belongs to a
    deactivated user (the session is revoked in that last case).
    """
    now = utcnow()
    record = session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not record:
        return None

    if record.expires_at < now:
        return None

    user = record.user
    if not user or not user.is_active:
        record.is_revoked = True
        record.revoked_at = now
        record.revoked_reason = "User account deactivated"
        session.commit()
        return None

    record.last_used_at = now
    session.commit()

    return SessionContext(user=user, session=record)


def revoke_session(session, token: str, reason: str = "User logout") -> bool:
    """Revoke one token. Returns False if it was not live."""
    record = session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not record:
        return False

    record.is_revoked = True
    record.revoked_at = utcnow()
    record.revoked_reason = reason
    session.commit()
    return True


def revoke_all_user_sessions(session, user_id: int, reason: str = "Revoke all sessions") -> int:
    """Revoke every live token for a user. Returns how many were revoked."""
    now = utcnow()
    records = session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).all()
    for record in records:
        record.is_revoked = True
        record.revoked_at = now
        record.revoked_reason = reason
    session.commit()
    return len(records)
