# Overview: Pytest coverage for atomic order reversal.

import pytest
from sqlalchemy.exc import OperationalError

from tillpoint.extensions import db
from tillpoint.models import Order, OrderItem
from tillpoint.services.catalog_repository import CatalogRepository
from tillpoint.services.order_service import (
    OrderNotFoundError,
    OrderReversalManager,
    OrderTransactionError,
    OrderTransactionManager,
)
from tillpoint.validation import OrderLine

from tests.conftest import stock_of


class BrokenRestockCatalog(CatalogRepository):
    def __init__(self, session, fail_on_call: int):
        super().__init__(session)
        self.fail_on_call = fail_on_call
        self.calls = 0

    def increment_stock(self, product_id, quantity):
        self.calls += 1
        if self.calls == self.fail_on_call:
            raise RuntimeError("connection lost")
        return super().increment_stock(product_id, quantity)


@pytest.fixture
def placed_order(db_session, cashier_user, products):
    first, second = products
    order_id = OrderTransactionManager(db.session).place_order(
        cashier_user.id,
        [
            OrderLine(product_id=first.id, quantity=2, unit_price_cents=1000),
            OrderLine(product_id=second.id, quantity=1, unit_price_cents=500),
        ],
        2500,
        "cash",
    )
    return order_id


@pytest.mark.orders
class TestDeleteOrder:

    def test_scenario_b_restores_stock_and_removes_rows(self, db_session, products, placed_order):
        first, second = products
        assert stock_of(first.id) == 8

        result = OrderReversalManager(db.session).delete_order(placed_order)

        assert result.order_id == placed_order
        assert result.restored_item_count == 2
        assert stock_of(first.id) == 10
        assert stock_of(second.id) == 5
        assert db.session.query(Order).filter_by(id=placed_order).count() == 0
        assert db.session.query(OrderItem).filter_by(order_id=placed_order).count() == 0

    def test_reversal_only_touches_its_own_order(self, db_session, cashier_user, products, placed_order):
        first, _ = products
        other = OrderTransactionManager(db.session).place_order(
            cashier_user.id,
            [OrderLine(product_id=first.id, quantity=3, unit_price_cents=1000)],
            3000,
            "card",
        )
        assert stock_of(first.id) == 5

        OrderReversalManager(db.session).delete_order(placed_order)

        assert stock_of(first.id) == 7
        assert db.session.query(OrderItem).filter_by(order_id=other).count() == 1

    def test_missing_order_raises_not_found(self, db_session, products):
        with pytest.raises(OrderNotFoundError):
            OrderReversalManager(db.session).delete_order(123456)

    def test_failure_mid_restore_rolls_back(self, db_session, products, placed_order):
        first, second = products
        manager = OrderReversalManager(db.session, catalog=BrokenRestockCatalog(db.session, fail_on_call=2))

        with pytest.raises(OrderTransactionError):
            manager.delete_order(placed_order)

        # Nothing restored, nothing deleted
        assert stock_of(first.id) == 8
        assert stock_of(second.id) == 4
        assert db.session.query(Order).filter_by(id=placed_order).count() == 1
        assert db.session.query(OrderItem).filter_by(order_id=placed_order).count() == 2

    def test_lock_errors_exhaust_retries_and_roll_back(self, db_session, products, placed_order, monkeypatch):
        monkeypatch.setattr("tillpoint.services.concurrency.time.sleep", lambda _: None)
        first, _ = products

        class LockedCatalog(CatalogRepository):
            def increment_stock(self, product_id, quantity):
                raise OperationalError("UPDATE pos_product", {}, Exception("database is locked"))

        with pytest.raises(OrderTransactionError):
            OrderReversalManager(db.session, catalog=LockedCatalog(db.session)).delete_order(placed_order)

        assert stock_of(first.id) == 8
        assert db.session.query(Order).filter_by(id=placed_order).count() == 1


@pytest.mark.orders
@pytest.mark.parametrize("quantities", [[1], [2, 3], [1, 1, 4], [5, 2, 9, 1]])
def test_place_then_delete_is_identity_on_stock(db_session, cashier_user, products, quantities):
    first, second = products
    before = {first.id: stock_of(first.id), second.id: stock_of(second.id)}

    lines = [
        OrderLine(
            product_id=(first.id if idx % 2 == 0 else second.id),
            quantity=qty,
            unit_price_cents=100,
        )
        for idx, qty in enumerate(quantities)
    ]
    order_id = OrderTransactionManager(db.session).place_order(
        cashier_user.id, lines, 100 * sum(quantities), "cash"
    )
    result = OrderReversalManager(db.session).delete_order(order_id)

    assert result.restored_item_count == len(quantities)
    assert {pid: stock_of(pid) for pid in before} == before
