# Overview: Order placement and reversal; the inventory-consistent transaction engine.

"""
Order Service

WHY: An order and its stock effects must land together or not at all.
Placement inserts the Order, then each OrderItem followed by its stock
decrement; reversal restores stock for every line before deleting the
lines and the Order. Each runs as one transaction on the injected
session and either commits fully or rolls back fully.

Concurrency: no in-process locks. Isolation is the database default.
Transient lock errors (OperationalError) retry the whole unit after a
rollback; see concurrency.run_with_retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import delete

from ..models import Order, OrderItem
from ..validation import ConflictError, OrderLine
from .catalog_repository import CatalogRepository
from .concurrency import lock_for_update, run_with_retry

logger = logging.getLogger(__name__)


class OrderError(Exception):
    """Base class for order engine errors."""


class OrderNotFoundError(OrderError, LookupError):
    def __init__(self, order_id: int):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class OrderTransactionError(OrderError):
    """Opaque failure: the transaction was rolled back and nothing persisted."""


@dataclass(frozen=True)
class ReversalResult:
    order_id: int
    restored_item_count: int

    def to_dict(self) -> dict:
        return {
            "deleted_id": self.order_id,
            "restored_item_count": self.restored_item_count,
        }


class OrderTransactionManager:
    """Atomic order placement."""

    def __init__(self, session, catalog: CatalogRepository | None = None):
        self.session = session
        self.catalog = catalog or CatalogRepository(session)

    def place_order(
        self,
        user_id: int | None,
        items: list[OrderLine],
        total_amount_cents: int,
        payment_method: str,
    ) -> int:
        """
        Create one Order plus its OrderItems and decrement stock, atomically.

        Items are applied in caller order. Returns the new order id.

        Raises:
            InsufficientStockError: floor-enforced decrement refused (rolled back)
            OrderTransactionError: anything else failed (rolled back)
        """
        def _op() -> int:
            order = Order(
                user_id=user_id,
                total_amount_cents=total_amount_cents,
                payment_method=payment_method,
            )
            self.session.add(order)
            self.session.flush()
            order_id = order.id

            for line in items:
                self.session.add(
                    OrderItem(
                        order_id=order_id,
                        product_id=line.product_id,
                        quantity=line.quantity,
                        unit_price_cents=line.unit_price_cents,
                    )
                )
                self.session.flush()
                self.catalog.decrement_stock(line.product_id, line.quantity)

            self.session.commit()
            return order_id

        try:
            order_id = run_with_retry(self.session, _op)
        except ConflictError:
            self.session.rollback()
            logger.info("Order placement rejected, rolled back")
            raise
        except Exception as exc:
            self.session.rollback()
            logger.warning("Order placement failed, rolled back: %s", exc)
            raise OrderTransactionError("Order placement failed") from exc

        logger.info("Placed order %s with %d item(s)", order_id, len(items))
        return order_id


class OrderReversalManager:
    """Atomic order deletion with stock restoration."""

    def __init__(self, session, catalog: CatalogRepository | None = None):
        self.session = session
        self.catalog = catalog or CatalogRepository(session)

    def delete_order(self, order_id: int) -> ReversalResult:
        """
        Restore stock for every line of the order, then delete the lines and
        the order, in one transaction.

        Raises:
            OrderNotFoundError: no such order (nothing changed)
            OrderTransactionError: anything else failed (rolled back)
        """
        def _op() -> ReversalResult:
            order = lock_for_update(self.session.query(Order).filter(Order.id == order_id)).first()
            if order is None:
                raise OrderNotFoundError(order_id)

            lines = (
                self.session.query(OrderItem.product_id, OrderItem.quantity)
                .filter(OrderItem.order_id == order_id)
                .order_by(OrderItem.id.asc())
                .all()
            )

            # Stock comes back before any row is removed
            for product_id, quantity in lines:
                self.catalog.increment_stock(product_id, quantity)

            self.session.execute(delete(OrderItem).where(OrderItem.order_id == order_id))
            self.session.execute(delete(Order).where(Order.id == order_id))

            self.session.commit()
            return ReversalResult(order_id=order_id, restored_item_count=len(lines))

        try:
            result = run_with_retry(self.session, _op)
        except OrderNotFoundError:
            self.session.rollback()
            raise
        except Exception as exc:
            self.session.rollback()
            logger.warning("Order %s reversal failed, rolled back: %s", order_id, exc)
            raise OrderTransactionError("Order reversal failed") from exc

        logger.info("Reversed order %s, restored %d item(s)", order_id, result.restored_item_count)
        return result


def list_orders(session) -> list[dict]:
    """All orders, newest first, with the cashier's display name."""
    orders = (
        session.query(Order)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return [order.to_dict() for order in orders]


def get_order_detail(session, order_id: int) -> dict:
    order = session.get(Order, order_id)
    if order is None:
        raise OrderNotFoundError(order_id)

    items = (
        session.query(OrderItem)
        .filter(OrderItem.order_id == order_id)
        .order_by(OrderItem.id.asc())
        .all()
    )
    return {
        "order": order.to_dict(),
        "items": [item.to_dict() for item in items],
    }
