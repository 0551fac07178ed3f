from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

MAX_ORDER_ITEMS = 500

# Per-line and on-hand ceilings; keep running stock well inside a 64-bit column
MAX_ORDER_QUANTITY = 1_000_000
MAX_STOCK_QUANTITY = 1_000_000_000

# Largest value a signed 64-bit INTEGER column holds
MAX_DB_INTEGER = 2**63 - 1

PAYMENT_METHODS = ("cash", "card", "mobile", "other")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate username)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


@dataclass(frozen=True)
class OrderLine:
    product_id: int
    quantity: int
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents


@dataclass(frozen=True)
class OrderRequest:
    user_id: int | None
    items: list[OrderLine]
    total_amount_cents: int
    payment_method: str


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(field: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "price_cents" in patch and patch["price_cents"] is not None:
        price = patch["price_cents"]
        if price < 0:
            raise ValidationError("price_cents must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")

    if "stock_quantity" in patch and patch["stock_quantity"] is not None:
        if patch["stock_quantity"] < 0:
            raise ValidationError("stock_quantity must be >= 0")
        if patch["stock_quantity"] > MAX_STOCK_QUANTITY:
            raise ValidationError(f"stock_quantity cannot exceed {MAX_STOCK_QUANTITY}")


def enforce_rules_user(patch: dict) -> None:
    if "role" in patch and patch["role"] not in ("admin", "cashier"):
        raise ValidationError("role must be one of: admin, cashier")


def parse_order_request(payload: Any, *, default_user_id: int | None = None) -> OrderRequest:
    """
    Shape-check an order placement payload before any transaction opens.

    Rules:
    - items: non-empty list of {product_id, quantity, unit_price_cents}
    - quantity > 0, unit_price_cents >= 0 (integers, no decimals)
    - total_amount_cents >= 0
    - payment_method: one of PAYMENT_METHODS
    - user_id: optional; falls back to default_user_id (the caller)
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    missing = [f for f in ("items", "total_amount_cents", "payment_method") if payload.get(f) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    raw_items = payload["items"]
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")
    if len(raw_items) > MAX_ORDER_ITEMS:
        raise ValidationError(f"items cannot exceed {MAX_ORDER_ITEMS} lines")

    lines: list[OrderLine] = []
    for idx, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        for field in ("product_id", "quantity", "unit_price_cents"):
            if raw.get(field) is None:
                raise ValidationError(f"items[{idx}].{field} is required")

        product_id = _coerce_int(f"items[{idx}].product_id", raw["product_id"])
        quantity = _coerce_int(f"items[{idx}].quantity", raw["quantity"])
        unit_price_cents = _coerce_int(f"items[{idx}].unit_price_cents", raw["unit_price_cents"])

        if product_id <= 0 or product_id > MAX_DB_INTEGER:
            raise ValidationError(f"items[{idx}].product_id out of range")
        if quantity <= 0:
            raise ValidationError(f"items[{idx}].quantity must be > 0")
        if quantity > MAX_ORDER_QUANTITY:
            raise ValidationError(f"items[{idx}].quantity cannot exceed {MAX_ORDER_QUANTITY}")
        if unit_price_cents < 0 or unit_price_cents > MAX_PRICE_CENTS:
            raise ValidationError(f"items[{idx}].unit_price_cents out of range")

        lines.append(OrderLine(product_id=product_id, quantity=quantity, unit_price_cents=unit_price_cents))

    total_amount_cents = _coerce_int("total_amount_cents", payload["total_amount_cents"])
    if total_amount_cents < 0 or total_amount_cents > MAX_DB_INTEGER:
        raise ValidationError("total_amount_cents out of range")

    payment_method = str(payload["payment_method"]).strip().lower()
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    user_id = payload.get("user_id")
    if user_id is not None:
        user_id = _coerce_int("user_id", user_id)
        if user_id <= 0 or user_id > MAX_DB_INTEGER:
            raise ValidationError("user_id out of range")
    else:
        user_id = default_user_id

    return OrderRequest(
        user_id=user_id,
        items=lines,
        total_amount_cents=total_amount_cents,
        payment_method=payment_method,
    )


def enforce_order_total(request: OrderRequest, policy: str) -> None:
    """
    Apply ORDER_TOTAL_POLICY.

    "trust" accepts whatever total the till sent (discounts, rounding).
    "match" requires total == sum(quantity * unit_price_cents).
    """
    if policy == "trust":
        return
    if policy != "match":
        raise ValueError(f"Unknown ORDER_TOTAL_POLICY: {policy!r}")

    expected = sum(line.line_total_cents for line in request.items)
    if expected != request.total_amount_cents:
        raise ValidationError(
            f"total_amount_cents {request.total_amount_cents} does not match line totals {expected}"
        )
