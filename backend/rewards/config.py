# backend/rewards/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/rewards.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///rewards.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Mailbox keeps the most recent N notifications per account
    MAILBOX_LIMIT = int(os.environ.get("MAILBOX_LIMIT", "20"))
    # Purchase history keeps the most recent N records
    HISTORY_RETENTION_LIMIT = int(os.environ.get("HISTORY_RETENTION_LIMIT", "500"))

    PURCHASE_RETRY_ATTEMPTS = int(os.environ.get("PURCHASE_RETRY_ATTEMPTS", "3"))
    PURCHASE_RETRY_BACKOFF = float(os.environ.get("PURCHASE_RETRY_BACKOFF", "0.1"))

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Password assigned by an admin reset; the account must change it on next login
    DEFAULT_RESET_PASSWORD = os.environ.get("DEFAULT_RESET_PASSWORD", "password")

    # Frontend dev servers allowed to call the API from a browser
    CORS_ORIGINS = tuple(
        origin.strip()
        for origin in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    )
