# backend/reventa/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///reventa.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Browser origins allowed to call the API
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    ]

    # External store API (Tiendanube-style)
    TN_STORE_ID = os.environ.get("TN_STORE_ID")
    TN_API_BASE = os.environ.get("TN_API_BASE")
    TN_ACCESS_TOKEN = os.environ.get("TN_ACCESS_TOKEN")
    TN_USER_AGENT = os.environ.get("TN_USER_AGENT", "Reventa App")
    TN_TIMEOUT_SECONDS = _int_env("TN_TIMEOUT_SECONDS", 30)

    # Shared secrets for scheduler and admin calls; unset means open
    CRON_SECRET = os.environ.get("CRON_SECRET")
    ADMIN_TOKEN = os.environ.get("ADMIN_TOKEN")

    CATALOG_CACHE_TTL_MINUTES = _int_env("CATALOG_CACHE_TTL_MINUTES", 10)
    CATALOG_PAGE_SIZE = _int_env("CATALOG_PAGE_SIZE", 500)
    BEST_SELLERS_LIMIT = _int_env("BEST_SELLERS_LIMIT", 50)
    SYNC_MAX_DURATION_SECONDS = _int_env("SYNC_MAX_DURATION_SECONDS", 300)

    DEFAULT_MARGIN = _int_env("DEFAULT_MARGIN", 60)
