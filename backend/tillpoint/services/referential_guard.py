# Overview: Dependent-row checks that refuse deletion of referenced catalog and user rows.

"""
Referential Guard

Read-then-decide: count the rows that reference an entity and refuse the
delete when the count is non-zero. The count runs before, not atomically
with, the delete; a dependent row inserted between the two is still
caught by the database FK (Product->OrderItem, User->Order) but a new
Product under a Category would be nulled by ON DELETE SET NULL.
"""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func

from ..models import Order, OrderItem, Product
from ..validation import ConflictError


@dataclass(frozen=True)
class DependencyRule:
    dependent_model: type
    foreign_key: str
    label: str
    hint: str


DEPENDENCY_RULES: dict[str, DependencyRule] = {
    "category": DependencyRule(
        dependent_model=Product,
        foreign_key="category_id",
        label="products",
        hint="Please reassign or delete products first.",
    ),
    "product": DependencyRule(
        dependent_model=OrderItem,
        foreign_key="product_id",
        label="orders",
        hint="Consider deactivating the product instead.",
    ),
    "user": DependencyRule(
        dependent_model=Order,
        foreign_key="user_id",
        label="order history",
        hint="Consider deactivating the user instead.",
    ),
}


class DependentRowsError(ConflictError):
    """Deletion refused because other rows still reference the entity."""
    def __init__(self, kind: str, entity_id: int, count: int, message: str):
        super().__init__(message)
        self.kind = kind
        self.entity_id = entity_id
        self.count = count

    def to_dict(self) -> dict:
        return {
            "error": "has dependents",
            "message": str(self),
            "entity": self.kind,
            "entity_id": self.entity_id,
            "dependents": self.count,
        }


class ReferentialGuard:
    def __init__(self, session):
        self.session = session

    def count_dependents(self, kind: str, entity_id: int) -> int:
        try:
            rule = DEPENDENCY_RULES[kind]
        except KeyError:
            raise ValueError(f"Unknown entity kind: {kind!r}")

        column = getattr(rule.dependent_model, rule.foreign_key)
        return (
            self.session.query(func.count(rule.dependent_model.id))
            .filter(column == entity_id)
            .scalar()
        ) or 0

    def ensure_deletable(self, kind: str, entity_id: int) -> None:
        """Raise DependentRowsError when anything still references the entity."""
        count = self.count_dependents(kind, entity_id)
        if count > 0:
            rule = DEPENDENCY_RULES[kind]
            raise DependentRowsError(
                kind,
                entity_id,
                count,
                f"Cannot delete {kind}. It has {rule.label}. {rule.hint}",
            )
