# backend/tillpoint/routes/categories.py
"""
Category routes.

Deleting a category that still has products returns 409
{"error": "has dependents", ...}; nothing is changed.
"""
from flask import Blueprint, request, jsonify

from ..models import Category
from ..services.catalog_repository import NotFoundError
from ..services.referential_guard import DependentRowsError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth
from ._helpers import catalog_repository, referential_guard

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
def list_categories():
    categories = catalog_repository().list_categories()
    return jsonify([c.to_dict() for c in categories]), 200


@categories_bp.get("/<int:category_id>")
@require_auth
def get_category(category_id: int):
    try:
        category = catalog_repository().get_category(category_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(category.to_dict()), 200


@categories_bp.post("")
@require_auth
def create_category():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        category = catalog_repository().create_category(patch)
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify({"message": "Category added successfully", "category": category.to_dict()}), 201


@categories_bp.put("/<int:category_id>")
@require_auth
def update_category(category_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        category = catalog_repository().update_category(category_id, patch)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify({"message": "Category updated successfully", "category": category.to_dict()}), 200


@categories_bp.delete("/<int:category_id>")
@require_auth
def delete_category(category_id: int):
    catalog = catalog_repository()
    try:
        catalog.get_category(category_id)
        referential_guard().ensure_deletable("category", category_id)
        catalog.delete_category(category_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except DependentRowsError as e:
        return jsonify(e.to_dict()), 409

    return jsonify({"message": "Category deleted successfully", "deleted_id": category_id}), 200
