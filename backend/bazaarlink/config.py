# backend/bazaarlink/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite file in the instance folder unless DATABASE_URL points elsewhere
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///bazaarlink.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Stock ledger
    LOW_STOCK_DEFAULT_THRESHOLD = _int_env("LOW_STOCK_DEFAULT_THRESHOLD", 10)
    RESTOCK_MINIMUM_SUGGESTION = _int_env("RESTOCK_MINIMUM_SUGGESTION", 10)
    STOCK_RETRY_ATTEMPTS = _int_env("STOCK_RETRY_ATTEMPTS", 3)
    STOCK_RETRY_BACKOFF = float(os.environ.get("STOCK_RETRY_BACKOFF", "0.05"))

    # Sessions
    SESSION_TTL_HOURS = _int_env("SESSION_TTL_HOURS", 24)

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]
