# Overview: Shared constructors binding services to the request session and app config.

from flask import current_app

from ..extensions import db
from ..services.catalog_repository import CatalogRepository
from ..services.order_service import OrderReversalManager, OrderTransactionManager
from ..services.referential_guard import ReferentialGuard


def catalog_repository() -> CatalogRepository:
    return CatalogRepository(
        db.session,
        enforce_floor=bool(current_app.config.get("ENFORCE_STOCK_FLOOR", False)),
    )


def order_transaction_manager() -> OrderTransactionManager:
    return OrderTransactionManager(db.session, catalog=catalog_repository())


def order_reversal_manager() -> OrderReversalManager:
    return OrderReversalManager(db.session, catalog=catalog_repository())


def referential_guard() -> ReferentialGuard:
    return ReferentialGuard(db.session)
