# backend/tillpoint/routes/users.py
"""
User management routes (admin only).

Deleting a user with order history is refused with 409; deleting your
own account is refused with 400.
"""

from flask import Blueprint, request, jsonify, g, current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User
from ..services import user_service
from ..services.auth_service import PasswordValidationError
from ..services.catalog_repository import NotFoundError
from ..services.referential_guard import ReferentialGuard, DependentRowsError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_user,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_role

USER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"username", "name", "role"},
    required_on_create={"username", "name", "role"},
)

USER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "role", "is_active"},
)

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role("admin")
def list_users_route():
    users = user_service.list_users(db.session)
    return jsonify([u.to_dict() for u in users]), 200


@users_bp.post("")
@require_auth
@require_role("admin")
def create_user_route():
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400
    password = payload.pop("password", None)

    try:
        if not password:
            raise ValidationError("All fields are required")
        patch = validate_payload(model=User, payload=payload, policy=USER_CREATE_POLICY, partial=False)
        enforce_rules_user(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        user = user_service.create_user(db.session, password=password, **patch)
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409

    current_app.logger.info("User %s created by %s", user.username, g.current_user.username)
    return jsonify({"message": "User created successfully", "user": user.to_dict()}), 201


@users_bp.put("/<int:user_id>")
@require_auth
@require_role("admin")
def update_user_route(user_id: int):
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400
    password = payload.pop("password", None)

    try:
        patch = validate_payload(model=User, payload=payload, policy=USER_UPDATE_POLICY, partial=True)
        enforce_rules_user(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        user = user_service.update_user(db.session, user_id, patch=patch, password=password)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"message": "User updated successfully", "user": user.to_dict()}), 200


@users_bp.delete("/<int:user_id>")
@require_auth
@require_role("admin")
def delete_user_route(user_id: int):
    if user_id == g.current_user.id:
        return jsonify({"error": "Cannot delete your own account"}), 400

    try:
        user_service.get_user(db.session, user_id)
        ReferentialGuard(db.session).ensure_deletable("user", user_id)
        user_service.delete_user(db.session, user_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except DependentRowsError as e:
        return jsonify(e.to_dict()), 409
    except IntegrityError:
        current_app.logger.warning("User %s gained orders during delete", user_id)
        return jsonify({"error": "has dependents", "entity": "user", "entity_id": user_id}), 409

    return jsonify({"message": "User deleted successfully", "deleted_id": user_id}), 200
