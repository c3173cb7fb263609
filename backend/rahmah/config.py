# backend/rahmah/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/rahmah.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///rahmah.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "production" hides exception detail from error responses
    APP_ENV = os.environ.get("APP_ENV", "development")
    APP_NAME = "Rahmah Exchange"
    APP_VERSION = "0.1.0"

    # Used to build applicant portal magic links and status page URLs
    APP_BASE_URL = os.environ.get("APP_BASE_URL", "http://localhost:3000")
    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL")
    DEFAULT_TENANT_SLUG = os.environ.get("DEFAULT_TENANT_SLUG")

    # SMTP; when SMTP_HOST is empty emails are logged instead of sent
    SMTP_HOST = os.environ.get("SMTP_HOST", "")
    SMTP_PORT = int(os.environ.get("SMTP_PORT", "587"))
    SMTP_USER = os.environ.get("SMTP_USER", "")
    SMTP_PASSWORD = os.environ.get("SMTP_PASSWORD", "")
    SMTP_FROM = os.environ.get("SMTP_FROM", "noreply@rahmah.exchange")
    SMTP_USE_TLS = _env_bool("SMTP_USE_TLS", True)

    # Uploaded case documents and payment proofs
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", os.path.join("instance", "uploads"))
    MAX_UPLOAD_BYTES = 10 * 1024 * 1024
    # Request cap leaves room for a handful of documents per intake
    MAX_CONTENT_LENGTH = 60 * 1024 * 1024

    MAGIC_LINK_TTL_DAYS = int(os.environ.get("MAGIC_LINK_TTL_DAYS", "30"))
    STAFF_INVITE_TTL_DAYS = int(os.environ.get("STAFF_INVITE_TTL_DAYS", "7"))
    BCRYPT_LOG_ROUNDS = int(os.environ.get("BCRYPT_LOG_ROUNDS", "12"))

    # "on_close": send queued emails after the response is returned
    # "manual": leave them for `flask notifications dispatch`
    NOTIFICATION_DISPATCH = os.environ.get("NOTIFICATION_DISPATCH", "on_close")
    NOTIFICATION_MAX_ATTEMPTS = 5
    NOTIFICATION_BATCH_SIZE = 50
    # A row left in "sending" longer than this is assumed abandoned and re-claimed
    NOTIFICATION_CLAIM_TIMEOUT_SECONDS = 600
