# storefront/config.py
import os
from dotenv import load_dotenv

BASE_DIR = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(BASE_DIR, ".env"))

INSTANCE_DIR = os.path.join(BASE_DIR, "instance")


def _env(key: str, default=None):
    v = os.getenv(key)
    return v if v not in (None, "", "None") else default


def _env_bool(key: str, default: bool = False) -> bool:
    v = os.getenv(key)
    if v in (None, "", "None"):
        return default
    return str(v).strip().lower() in ("1", "true", "t", "yes", "y", "on")


def _env_list(key: str, default: str) -> tuple[str, ...]:
    raw = _env(key, default)
    return tuple(p.strip() for p in str(raw).split(",") if p.strip())


def _resolve_sqlite_uri(db_url: str | None) -> str:
    if not db_url:
        os.makedirs(INSTANCE_DIR, exist_ok=True)
        db_path = os.path.join(INSTANCE_DIR, "storefront.db")
        return "sqlite:///" + db_path.replace("\\", "/")

    if db_url.startswith("sqlite:///"):
        raw_path = db_url.replace("sqlite:///", "", 1)
        if not os.path.isabs(raw_path):
            raw_path = os.path.join(BASE_DIR, raw_path)
        db_path = os.path.normpath(raw_path)
        os.makedirs(os.path.dirname(db_path), exist_ok=True)
        return "sqlite:///" + db_path.replace("\\", "/")

    # Heroku-style URLs are not accepted by SQLAlchemy 2
    if db_url.startswith("postgres://"):
        return "postgresql://" + db_url[len("postgres://"):]

    return db_url


class Config:
    SECRET_KEY = _env("SECRET_KEY", "dev-please-change-me")

    SQLALCHEMY_DATABASE_URI = _resolve_sqlite_uri(_env("DATABASE_URL"))
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_AS_ASCII = False

    CORS_ORIGINS = _env_list("CORS_ORIGINS", "http://localhost:3000")

    MAIL_SERVER = _env("MAIL_SERVER", "smtp.hostinger.com")
    MAIL_PORT = int(_env("MAIL_PORT", 465))
    MAIL_USE_SSL = _env_bool("MAIL_USE_SSL", True)
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", False)
    MAIL_USERNAME = _env("MAIL_USERNAME")
    MAIL_PASSWORD = _env("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = _env("MAIL_DEFAULT_SENDER", _env("MAIL_USERNAME"))
    MAIL_SUPPRESS_SEND = _env_bool("MAIL_SUPPRESS_SEND", False)
    MAIL_DEBUG = _env_bool("MAIL_DEBUG", False)

    # Payment gateway
    PAYSTACK_SECRET_KEY = _env("PAYSTACK_SECRET_KEY")
    PAYSTACK_BASE_URL = _env("PAYSTACK_BASE_URL", "https://api.paystack.co")
    PAYSTACK_TIMEOUT = float(_env("PAYSTACK_TIMEOUT", 20))

    # Staff alerts (orphan payments)
    TELEGRAM_BOT_TOKEN = _env("TELEGRAM_BOT_TOKEN")
    TELEGRAM_CHAT_ID = _env("TELEGRAM_CHAT_ID")

    # Orphan ledger sweep skips rows younger than this (minutes)
    ORPHAN_SWEEP_MIN_AGE = int(_env("ORPHAN_SWEEP_MIN_AGE", 10))

    # Checkout
    ORDER_ID_PREFIX = _env("ORDER_ID_PREFIX", "M-ORD")
    HOME_CURRENCY = _env("HOME_CURRENCY", "NGN")
    ALLOWED_CURRENCIES = _env_list("ALLOWED_CURRENCIES", "NGN,USD,EUR,GBP")
    SIZE_MOD_RATE = _env("SIZE_MOD_RATE", "0.05")
    ORDER_TX_TIMEOUT = int(_env("ORDER_TX_TIMEOUT", 15))

    # Receipt outbox
    RECEIPT_SENDER = _env("RECEIPT_SENDER", _env("MAIL_DEFAULT_SENDER", _env("MAIL_USERNAME")))
    RECEIPT_BACKOFF_BASE = int(_env("RECEIPT_BACKOFF_BASE", 60))
    RECEIPT_BACKOFF_MAX = int(_env("RECEIPT_BACKOFF_MAX", 3600))
    BRAND_NAME = _env("BRAND_NAME", "Marobi")

    # SQLite honours the busy timeout; PostgreSQL gets SET LOCAL statement_timeout
    SQLALCHEMY_ENGINE_OPTIONS = (
        {"connect_args": {"timeout": ORDER_TX_TIMEOUT}}
        if SQLALCHEMY_DATABASE_URI.startswith("sqlite")
        else {"pool_pre_ping": True}
    )
