# Overview: Service-layer operations for till users (admin-managed).

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..models import User
from ..validation import ConflictError
from .auth_service import hash_password
from .catalog_repository import NotFoundError
from .session_service import revoke_all_user_sessions


def list_users(session) -> list[User]:
    return session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def get_user(session, user_id: int) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def create_user(session, *, username: str, password: str, name: str, role: str) -> User:
    """
    Create a till user.

    Raises ConflictError on a duplicate username and
    PasswordValidationError on a weak password.
    """
    if session.query(User.id).filter_by(username=username).first() is not None:
        raise ConflictError("Username already exists")

    user = User(
        username=username,
        password_hash=hash_password(password),
        name=name,
        role=role,
    )
    session.add(user)
    session.commit()
    return user


def update_user(session, user_id: int, *, patch: dict, password: str | None = None) -> User:
    """Update name/role/is_active; a new password revokes existing sessions."""
    user = get_user(session, user_id)
    new_hash = hash_password(password) if password is not None else None

    for key in ("name", "role", "is_active"):
        if key in patch:
            setattr(user, key, patch[key])

    if new_hash:
        user.password_hash = new_hash

    session.commit()

    if password or patch.get("is_active") is False:
        revoke_all_user_sessions(session, user.id, reason="Credentials or status changed")
    return user


def delete_user(session, user_id: int) -> None:
    """
    Delete without dependency checks; callers go through ReferentialGuard first.

    An order that appears after the guard check makes the pos_order FK
    refuse the delete: IntegrityError is raised after a rollback.
    """
    user = get_user(session, user_id)
    session.delete(user)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise
