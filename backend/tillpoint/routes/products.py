# backend/tillpoint/routes/products.py
"""
Product routes.

All routes require an authenticated till user.
Deleting a product that appears on any order returns 409; use
PATCH /<id>/deactivate to take it off sale instead.
"""
from flask import Blueprint, request, jsonify

from ..models import Product
from ..services.catalog_repository import NotFoundError
from ..services.referential_guard import DependentRowsError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
)
from ..decorators import require_auth
from ._helpers import catalog_repository, referential_guard

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "price_cents", "stock_quantity", "category_id"},
    required_on_create={"name", "price_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products ordered by name.

    Query params:
    - category_id: int (optional) - only products in this category
    """
    category_id = request.args.get("category_id", type=int)
    products = catalog_repository().list_products(category_id=category_id)
    return jsonify([p.to_dict() for p in products]), 200


@products_bp.get("/<int:product_id>")
@require_auth
def get_product(product_id: int):
    try:
        product = catalog_repository().get_product(product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(product.to_dict()), 200


@products_bp.post("")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        product = catalog_repository().create_product(patch)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"message": "Product added successfully", "product": product.to_dict()}), 201


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    catalog = catalog_repository()
    try:
        catalog.get_product(product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    try:
        product = catalog.update_product(product_id, patch)
    except NotFoundError as e:
        # Unknown category_id in the patch
        return jsonify({"error": str(e)}), 400

    return jsonify({"message": "Product updated successfully", "product": product.to_dict()}), 200


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    catalog = catalog_repository()
    try:
        catalog.get_product(product_id)
        referential_guard().ensure_deletable("product", product_id)
        catalog.delete_product(product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except DependentRowsError as e:
        return jsonify(e.to_dict()), 409

    return jsonify({"message": "Product deleted successfully", "deleted_id": product_id}), 200


@products_bp.patch("/<int:product_id>/deactivate")
@require_auth
def deactivate_product_route(product_id: int):
    try:
        product = catalog_repository().deactivate_product(product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({"message": "Product deactivated successfully", "product": product.to_dict()}), 200
