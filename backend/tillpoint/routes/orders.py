# backend/tillpoint/routes/orders.py
"""
Order routes: placement, listing, detail, and reversal.

Placement and reversal are all-or-nothing. Any failure inside the
transaction surfaces as an opaque 500 {"error": "Server error"}; shape
problems are rejected with 400 before a transaction opens.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..services import order_service
from ..services.catalog_repository import InsufficientStockError
from ..services.order_service import OrderNotFoundError, OrderTransactionError
from ..validation import ValidationError, enforce_order_total, parse_order_request
from ..decorators import require_auth
from ._helpers import order_reversal_manager, order_transaction_manager


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
def place_order_route():
    """
    Place an order.

    Body:
    {
        "user_id": int (optional, defaults to caller),
        "items": [{"product_id": int, "quantity": int, "unit_price_cents": int}],
        "total_amount_cents": int,
        "payment_method": "cash" | "card" | "mobile" | "other"
    }
    """
    try:
        order_request = parse_order_request(
            request.get_json(silent=True),
            default_user_id=g.current_user.id,
        )
        enforce_order_total(order_request, current_app.config.get("ORDER_TOTAL_POLICY", "trust"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        order_id = order_transaction_manager().place_order(
            order_request.user_id,
            order_request.items,
            order_request.total_amount_cents,
            order_request.payment_method,
        )
    except InsufficientStockError as e:
        return jsonify(e.to_dict()), 409
    except OrderTransactionError:
        current_app.logger.exception("Create order error")
        return jsonify({"error": "Server error"}), 500

    return jsonify({"message": "Order created successfully", "order_id": order_id}), 201


@orders_bp.get("")
@require_auth
def list_orders_route():
    return jsonify(order_service.list_orders(db.session)), 200


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        detail = order_service.get_order_detail(db.session, order_id)
    except OrderNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(detail), 200


@orders_bp.delete("/<int:order_id>")
@require_auth
def delete_order_route(order_id: int):
    """Delete an order and put its stock back on the shelf."""
    try:
        result = order_reversal_manager().delete_order(order_id)
    except OrderNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except OrderTransactionError:
        current_app.logger.exception("Delete order error")
        return jsonify({"error": "Server error"}), 500

    body = {"message": "Order deleted successfully. Stock has been restored."}
    body.update(result.to_dict())
    return jsonify(body), 200
