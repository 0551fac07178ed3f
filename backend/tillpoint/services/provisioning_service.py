# Overview: Idempotent schema provisioning, demo data seeding, and data reset.

"""
Provisioning Service

Everything here is safe to re-run:
- provision_schema() uses CREATE TABLE IF NOT EXISTS semantics (checkfirst).
- ensure_row() is a declarative "row with key K has values V" upsert; seed
  data is a list of (model, key, values) triples fed through it, so a
  second run updates in place and creates nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import inspect

from ..extensions import db
from ..models import Category, Order, OrderItem, Product, SessionToken, User
from .auth_service import hash_password, verify_password

logger = logging.getLogger(__name__)

# Child tables first
RESET_ORDER = (OrderItem, Order, SessionToken, Product, Category, User)

DEMO_USERS = (
    {"username": "admin", "password": "admin123", "name": "Admin User", "role": "admin"},
    {"username": "cashier", "password": "cashier123", "name": "John Cashier", "role": "cashier"},
)

DEMO_CATALOG = {
    ("Electronics", "Electronic devices and accessories"): (
        ("Laptop", "High performance laptop", 99999, 10),
        ("Smartphone", "Latest smartphone model", 69999, 25),
        ("Headphones", "Wireless noise-cancelling headphones", 19999, 15),
    ),
    ("Groceries", "Food and household items"): (
        ("Milk", "Fresh dairy milk", 399, 100),
        ("Bread", "Whole wheat bread", 299, 50),
        ("Eggs", "Farm fresh eggs (dozen)", 499, 75),
    ),
    ("Clothing", "Apparel and accessories"): (
        ("T-Shirt", "Cotton t-shirt", 1999, 50),
        ("Jeans", "Blue denim jeans", 4999, 30),
        ("Jacket", "Winter jacket", 8999, 20),
    ),
}


@dataclass
class SeedReport:
    created: dict[str, int] = field(default_factory=dict)
    updated: dict[str, int] = field(default_factory=dict)

    def record(self, model, created: bool) -> None:
        bucket = self.created if created else self.updated
        bucket[model.__tablename__] = bucket.get(model.__tablename__, 0) + 1

    @property
    def total_created(self) -> int:
        return sum(self.created.values())


def provision_schema() -> list[str]:
    """
    Create any missing tables. Existing tables are left untouched.

    Returns the sorted table names present afterwards.
    """
    db.create_all()
    tables = sorted(inspect(db.engine).get_table_names())
    logger.info("Schema provisioned: %s", ", ".join(tables))
    return tables


def ensure_row(session, model, key: dict, values: dict | None = None, *, create_only: dict | None = None):
    """
    Make sure exactly one row matching `key` exists with `values` applied.

    create_only holds columns written on insert but never overwritten
    (e.g. stock counts a till has since changed).

    Returns (row, created). Does not commit.
    """
    values = values or {}
    row = session.query(model).filter_by(**key).one_or_none()
    created = row is None
    if created:
        row = model(**key, **(create_only or {}))
        session.add(row)

    for column, value in values.items():
        if getattr(row, column) != value:
            setattr(row, column, value)

    session.flush()
    return row, created


def seed_demo_data(session, *, users=DEMO_USERS, catalog=DEMO_CATALOG) -> SeedReport:
    """Seed demo users, categories, and products. Re-running creates nothing new."""
    report = SeedReport()

    for entry in users:
        existing = session.query(User).filter_by(username=entry["username"]).one_or_none()
        create_only = {}
        if existing is None or not verify_password(entry["password"], existing.password_hash):
            create_only = {"password_hash": hash_password(entry["password"])}

        user, created = ensure_row(
            session,
            User,
            key={"username": entry["username"]},
            values={"name": entry["name"], "role": entry["role"]},
            create_only=create_only,
        )
        # Demo credentials are reset on every seed
        if not created and create_only:
            user.password_hash = create_only["password_hash"]
        report.record(User, created)

    for (category_name, category_description), products in catalog.items():
        category, created = ensure_row(
            session,
            Category,
            key={"name": category_name},
            values={"description": category_description},
        )
        report.record(Category, created)

        for name, description, price_cents, stock_quantity in products:
            _, created = ensure_row(
                session,
                Product,
                key={"name": name, "category_id": category.id},
                values={"description": description, "price_cents": price_cents},
                create_only={"stock_quantity": stock_quantity},
            )
            report.record(Product, created)

    session.commit()
    logger.info("Demo data seeded: created=%s", report.created)
    return report


def reset_data(session) -> dict[str, int]:
    """Delete every row from every table, children first. Returns rows remaining per table."""
    for model in RESET_ORDER:
        session.query(model).delete(synchronize_session=False)
    session.commit()

    return {model.__tablename__: session.query(model).count() for model in reversed(RESET_ORDER)}
