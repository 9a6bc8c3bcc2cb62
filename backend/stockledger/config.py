# backend/stockledger/config.py
from __future__ import annotations
import os


def _split_csv(value: str) -> set[str]:
    return {item.strip() for item in value.split(",") if item.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Shared secret for the external scheduler hitting the scan endpoints.
    # Empty means cron-style (all tenants) scans are disabled over HTTP.
    CRON_SECRET = os.environ.get("CRON_SECRET", "")

    PAYMENT_DUE_WINDOW_DAYS = int(os.environ.get("PAYMENT_DUE_WINDOW_DAYS", "7"))
    DASHBOARD_RECENT_TRANSACTIONS = int(os.environ.get("DASHBOARD_RECENT_TRANSACTIONS", "5"))

    CORS_ALLOWED_ORIGINS = _split_csv(
        os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        )
    )

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
