# Overview: Pytest coverage for atomic order placement.

"""
Order placement tests.

Verifies:
- Order, items, and stock decrements land together (Scenario A)
- A failure on any item leaves no Order, no OrderItem, no stock change
- Transient lock errors retry the whole unit
- Optional stock floor rejects overselling without partial effects
"""

import pytest
from sqlalchemy.exc import OperationalError

from tillpoint.extensions import db
from tillpoint.models import Order, OrderItem
from tillpoint.services.catalog_repository import CatalogRepository, InsufficientStockError
from tillpoint.services.order_service import OrderTransactionManager, OrderTransactionError
from tillpoint.validation import OrderLine

from tests.conftest import stock_of


class FailingCatalog(CatalogRepository):
    """Raises on the Nth decrement to simulate a mid-transaction failure."""

    def __init__(self, session, fail_on_call: int, exc: Exception):
        super().__init__(session)
        self.fail_on_call = fail_on_call
        self.exc = exc
        self.calls = 0

    def decrement_stock(self, product_id, quantity):
        self.calls += 1
        if self.calls == self.fail_on_call:
            raise self.exc
        return super().decrement_stock(product_id, quantity)


def _lines(first, second):
    return [
        OrderLine(product_id=first.id, quantity=2, unit_price_cents=1000),
        OrderLine(product_id=second.id, quantity=1, unit_price_cents=500),
    ]


@pytest.mark.orders
class TestPlaceOrder:

    def test_scenario_a_commits_order_items_and_stock(self, db_session, cashier_user, products):
        first, second = products
        manager = OrderTransactionManager(db.session)

        order_id = manager.place_order(cashier_user.id, _lines(first, second), 2500, "cash")

        order = db.session.get(Order, order_id)
        assert order is not None
        assert order.total_amount_cents == 2500
        assert order.payment_method == "cash"
        assert order.user_id == cashier_user.id

        items = db.session.query(OrderItem).filter_by(order_id=order_id).order_by(OrderItem.id).all()
        assert [(i.product_id, i.quantity, i.unit_price_cents) for i in items] == [
            (first.id, 2, 1000),
            (second.id, 1, 500),
        ]
        assert stock_of(first.id) == 8
        assert stock_of(second.id) == 4

    def test_unit_price_is_a_snapshot(self, db_session, cashier_user, products):
        first, second = products
        order_id = OrderTransactionManager(db.session).place_order(
            cashier_user.id,
            [OrderLine(product_id=first.id, quantity=1, unit_price_cents=750)],
            750,
            "card",
        )

        first.price_cents = 9999
        db.session.commit()

        item = db.session.query(OrderItem).filter_by(order_id=order_id).one()
        assert item.unit_price_cents == 750

    def test_order_without_user_is_allowed(self, db_session, products):
        first, _ = products
        order_id = OrderTransactionManager(db.session).place_order(
            None,
            [OrderLine(product_id=first.id, quantity=1, unit_price_cents=1000)],
            1000,
            "cash",
        )
        assert db.session.get(Order, order_id).user_id is None

    def test_same_product_twice_decrements_twice(self, db_session, cashier_user, products):
        first, _ = products
        OrderTransactionManager(db.session).place_order(
            cashier_user.id,
            [
                OrderLine(product_id=first.id, quantity=3, unit_price_cents=1000),
                OrderLine(product_id=first.id, quantity=4, unit_price_cents=1000),
            ],
            7000,
            "cash",
        )
        assert stock_of(first.id) == 3

    def test_stock_may_go_negative_without_floor(self, db_session, cashier_user, products):
        _, second = products
        OrderTransactionManager(db.session).place_order(
            cashier_user.id,
            [OrderLine(product_id=second.id, quantity=7, unit_price_cents=500)],
            3500,
            "cash",
        )
        assert stock_of(second.id) == -2


@pytest.mark.orders
class TestPlaceOrderAtomicity:

    def test_failure_on_last_item_rolls_back_everything(self, db_session, cashier_user, products):
        first, second = products
        catalog = FailingCatalog(db.session, fail_on_call=2, exc=RuntimeError("connection lost"))
        manager = OrderTransactionManager(db.session, catalog=catalog)

        with pytest.raises(OrderTransactionError):
            manager.place_order(cashier_user.id, _lines(first, second), 2500, "cash")

        assert db.session.query(Order).count() == 0
        assert db.session.query(OrderItem).count() == 0
        assert stock_of(first.id) == 10
        assert stock_of(second.id) == 5

    def test_unknown_product_on_last_item_rolls_back(self, db_session, cashier_user, products):
        first, _ = products
        lines = [
            OrderLine(product_id=first.id, quantity=2, unit_price_cents=1000),
            OrderLine(product_id=999999, quantity=1, unit_price_cents=500),
        ]

        with pytest.raises(OrderTransactionError):
            OrderTransactionManager(db.session).place_order(cashier_user.id, lines, 2500, "cash")

        assert db.session.query(Order).count() == 0
        assert db.session.query(OrderItem).count() == 0
        assert stock_of(first.id) == 10

    def test_unknown_user_rolls_back(self, db_session, products):
        first, _ = products
        with pytest.raises(OrderTransactionError):
            OrderTransactionManager(db.session).place_order(
                424242,
                [OrderLine(product_id=first.id, quantity=1, unit_price_cents=1000)],
                1000,
                "cash",
            )

        assert db.session.query(Order).count() == 0
        assert stock_of(first.id) == 10

    def test_transient_lock_error_is_retried(self, db_session, cashier_user, products, monkeypatch):
        monkeypatch.setattr("tillpoint.services.concurrency.time.sleep", lambda _: None)
        first, second = products
        locked = OperationalError("UPDATE pos_product", {}, Exception("database is locked"))
        catalog = FailingCatalog(db.session, fail_on_call=1, exc=locked)

        order_id = OrderTransactionManager(db.session, catalog=catalog).place_order(
            cashier_user.id, _lines(first, second), 2500, "cash"
        )

        assert db.session.query(Order).count() == 1
        assert db.session.query(OrderItem).filter_by(order_id=order_id).count() == 2
        assert stock_of(first.id) == 8
        assert stock_of(second.id) == 4


@pytest.mark.orders
class TestStockFloor:

    def test_insufficient_stock_rejects_whole_order(self, db_session, cashier_user, products):
        first, second = products
        catalog = CatalogRepository(db.session, enforce_floor=True)
        lines = [
            OrderLine(product_id=first.id, quantity=2, unit_price_cents=1000),
            OrderLine(product_id=second.id, quantity=6, unit_price_cents=500),
        ]

        with pytest.raises(InsufficientStockError) as exc_info:
            OrderTransactionManager(db.session, catalog=catalog).place_order(
                cashier_user.id, lines, 5000, "cash"
            )

        assert exc_info.value.product_id == second.id
        assert exc_info.value.requested_quantity == 6
        assert db.session.query(Order).count() == 0
        assert stock_of(first.id) == 10
        assert stock_of(second.id) == 5

    def test_exact_stock_is_allowed(self, db_session, cashier_user, products):
        _, second = products
        catalog = CatalogRepository(db.session, enforce_floor=True)

        OrderTransactionManager(db.session, catalog=catalog).place_order(
            cashier_user.id,
            [OrderLine(product_id=second.id, quantity=5, unit_price_cents=500)],
            2500,
            "cash",
        )

        assert stock_of(second.id) == 0
