# Overview: Category/Product data access, including the stock primitives used by the order engine.

"""
Catalog Repository

Owns every write to pos_category and pos_product. The two stock
primitives (decrement_stock / increment_stock) are single UPDATE
statements issued inside the caller's transaction: they never read the
row first and never commit.

STOCK FLOOR:
- enforce_floor=False (default): stock_quantity - q is applied
  unconditionally and may go negative (single-till semantics).
- enforce_floor=True: the UPDATE carries "AND stock_quantity >= q". Zero
  affected rows means insufficient stock (or a missing product) and raises
  InsufficientStockError. The check and the write are one statement, so
  concurrent placements cannot lose an update.
"""
from __future__ import annotations

from sqlalchemy import func, update

from ..models import Category, Product
from ..validation import ConflictError


CATEGORY_MUTABLE_FIELDS = {"name", "description"}
PRODUCT_MUTABLE_FIELDS = {"name", "description", "price_cents", "stock_quantity", "category_id"}


class NotFoundError(LookupError):
    """404-level: the referenced catalog row does not exist."""


class InsufficientStockError(ConflictError):
    """Raised when a floor-enforced decrement would drive stock below zero."""
    def __init__(self, product_id: int, requested_quantity: int):
        super().__init__(f"Insufficient stock for product {product_id}")
        self.product_id = product_id
        self.requested_quantity = requested_quantity

    def to_dict(self) -> dict:
        return {
            "error": "insufficient stock",
            "product_id": self.product_id,
            "requested_quantity": self.requested_quantity,
        }


def _apply_patch(obj, patch: dict, allowed: set[str]) -> None:
    for k, v in patch.items():
        if k not in allowed:
            continue
        setattr(obj, k, v)


class CatalogRepository:
    """Category and Product access bound to one SQLAlchemy session."""

    def __init__(self, session, *, enforce_floor: bool = False):
        self.session = session
        self.enforce_floor = enforce_floor

    # ------------------------------------------------------------------
    # Stock primitives (run inside the caller's transaction)
    # ------------------------------------------------------------------

    def decrement_stock(self, product_id: int, quantity: int) -> int:
        """stock_quantity -= quantity for one product. Returns rows affected."""
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock_quantity=Product.stock_quantity - quantity)
        )
        if self.enforce_floor:
            stmt = stmt.where(Product.stock_quantity >= quantity)

        result = self.session.execute(stmt.execution_options(synchronize_session=False))

        if self.enforce_floor and result.rowcount == 0:
            raise InsufficientStockError(product_id, quantity)
        return result.rowcount

    def increment_stock(self, product_id: int, quantity: int) -> int:
        """stock_quantity += quantity for one product. Returns rows affected."""
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock_quantity=Product.stock_quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def list_categories(self) -> list[Category]:
        return self.session.query(Category).order_by(Category.name.asc()).all()

    def get_category(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if category is None:
            raise NotFoundError("Category not found")
        return category

    def _ensure_category_name_free(self, name: str, exclude_id: int | None = None) -> None:
        query = self.session.query(Category.id).filter(func.lower(Category.name) == name.lower())
        if exclude_id is not None:
            query = query.filter(Category.id != exclude_id)
        if query.first() is not None:
            raise ConflictError("Category name already exists.")

    def create_category(self, patch: dict) -> Category:
        self._ensure_category_name_free(patch["name"])
        category = Category()
        _apply_patch(category, patch, CATEGORY_MUTABLE_FIELDS)
        self.session.add(category)
        self.session.commit()
        return category

    def update_category(self, category_id: int, patch: dict) -> Category:
        category = self.get_category(category_id)
        if "name" in patch:
            self._ensure_category_name_free(patch["name"], exclude_id=category.id)
        _apply_patch(category, patch, CATEGORY_MUTABLE_FIELDS)
        self.session.commit()
        return category

    def delete_category(self, category_id: int) -> None:
        """Delete without dependency checks; callers go through ReferentialGuard first."""
        category = self.get_category(category_id)
        self.session.delete(category)
        self.session.commit()

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def list_products(self, category_id: int | None = None) -> list[Product]:
        query = self.session.query(Product)
        if category_id is not None:
            query = query.filter(Product.category_id == category_id)
        return query.order_by(Product.name.asc(), Product.id.asc()).all()

    def get_product(self, product_id: int) -> Product:
        product = self.session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found")
        return product

    def _ensure_category_exists(self, patch: dict) -> None:
        category_id = patch.get("category_id")
        if category_id is not None and self.session.get(Category, category_id) is None:
            raise NotFoundError("Category not found")

    def create_product(self, patch: dict) -> Product:
        self._ensure_category_exists(patch)
        product = Product()
        _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS)
        self.session.add(product)
        self.session.commit()
        return product

    def update_product(self, product_id: int, patch: dict) -> Product:
        product = self.get_product(product_id)
        self._ensure_category_exists(patch)
        _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS)
        self.session.commit()
        return product

    def delete_product(self, product_id: int) -> None:
        """Delete without dependency checks; callers go through ReferentialGuard first."""
        product = self.get_product(product_id)
        self.session.delete(product)
        self.session.commit()

    def deactivate_product(self, product_id: int) -> Product:
        """Take a product off sale by zeroing its stock; order history is untouched."""
        product = self.get_product(product_id)
        product.stock_quantity = 0
        self.session.commit()
        return product
