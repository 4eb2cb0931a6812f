from __future__ import annotations
import os


def _sqlite_engine_options(uri: str, timeout: float) -> dict:
    # Busy timeout bounds how long a writer waits on a locked SQLite file.
    if uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout}}
    return {"pool_pre_ping": True}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/garment_ledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///garment_ledger.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LEDGER_DB_TIMEOUT_SECONDS = float(os.environ.get("LEDGER_DB_TIMEOUT_SECONDS", "5"))
    SQLALCHEMY_ENGINE_OPTIONS = _sqlite_engine_options(SQLALCHEMY_DATABASE_URI, LEDGER_DB_TIMEOUT_SECONDS)

    LEDGER_RETRY_ATTEMPTS = int(os.environ.get("LEDGER_RETRY_ATTEMPTS", "3"))
    LEDGER_RETRY_BACKOFF_SECONDS = float(os.environ.get("LEDGER_RETRY_BACKOFF_SECONDS", "0.05"))

    # Fabric below 20 units was flagged "Low Stock" on the shop floor
    DEFAULT_MIN_THRESHOLD = os.environ.get("DEFAULT_MIN_THRESHOLD", "20")

    DEFAULT_PAGE_SIZE = int(os.environ.get("DEFAULT_PAGE_SIZE", "50"))
    MAX_PAGE_SIZE = int(os.environ.get("MAX_PAGE_SIZE", "500"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    }

    # Check-ins at or after this hour (UTC) are recorded as "late"
    ATTENDANCE_LATE_HOUR = int(os.environ.get("ATTENDANCE_LATE_HOUR", "10"))
