# backend/tillpoint/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/tillpoint.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///tillpoint.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Session tokens expire after a till shift
    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "8"))

    # When on, stock decrements refuse to go below zero (409 insufficient stock).
    # Off keeps single-till semantics: stock may go negative.
    ENFORCE_STOCK_FLOOR = _env_flag("ENFORCE_STOCK_FLOOR", False)

    # "trust": accept caller totals (discounts allowed)
    # "match": total must equal sum(quantity * unit_price_cents)
    ORDER_TOTAL_POLICY = os.environ.get("ORDER_TOTAL_POLICY", "trust")

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
        ).split(",")
        if origin.strip()
    ]

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
