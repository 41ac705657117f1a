# backend/fiado/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the instance folder by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///fiado.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Days a store-credit sale has before it is considered overdue
    CREDIT_TERM_DAYS = int(os.environ.get("CREDIT_TERM_DAYS", "30"))

    # Upper bound on how long a payment waits for a locked sale/sequence row
    CREDIT_LOCK_TIMEOUT_MS = int(os.environ.get("CREDIT_LOCK_TIMEOUT_MS", "5000"))

    RECEIPT_PREFIX = os.environ.get("RECEIPT_PREFIX", "REC")
    INVOICE_PREFIX = os.environ.get("INVOICE_PREFIX", "FAC")
    CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "$")

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    ]
