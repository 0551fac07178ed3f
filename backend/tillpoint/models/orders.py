from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Order(db.Model):
    """
    Immutable record of a completed sale.

    Created only by OrderTransactionManager.place_order and removed only by
    OrderReversalManager.delete_order. Never updated.
    """
    __tablename__ = "pos_order"
    __table_args__ = (
        db.Index("ix_pos_order_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("pos_user.id"), nullable=True, index=True)

    # Caller-supplied total (may reflect discounts); see ORDER_TOTAL_POLICY
    total_amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # Never null user_id from the ORM side; the FK refuses deleting a user with orders
    user = db.relationship("User", backref=db.backref("orders", lazy=True, passive_deletes="all"))

    def __repr__(self) -> str:
        return f"<Order id={self.id} total_amount_cents={self.total_amount_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "total_amount_cents": self.total_amount_cents,
            "payment_method": self.payment_method,
            "created_at": to_utc_z(self.created_at),
        }


class OrderItem(db.Model):
    """Line item on an order. unit_price_cents is a snapshot taken at sale time."""
    __tablename__ = "pos_order_item"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey("pos_order.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(db.Integer, db.ForeignKey("pos_product.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    order = db.relationship("Order", backref=db.backref("items", lazy=True, passive_deletes=True))
    product = db.relationship("Product")

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }
