# duka/config.py
import os
from dotenv import load_dotenv

BASE_DIR = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(BASE_DIR, ".env"))


def _env(key: str, default=None):
    v = os.getenv(key)
    return v if v not in (None, "", "None") else default


def _env_bool(key: str, default: bool = False) -> bool:
    v = os.getenv(key)
    if v in (None, "", "None"):
        return default
    return str(v).strip().lower() in ("1", "true", "t", "yes", "y", "on")


def _env_int(key: str, default: int) -> int:
    try:
        return int(_env(key, default))
    except (TypeError, ValueError):
        return default


def _resolve_database_uri(db_url: str | None) -> str | None:
    """
    None when no database is configured: the app then runs on the in-memory
    order store. Relative sqlite paths are resolved against the package dir.
    """
    if not db_url:
        return None

    if db_url.startswith("sqlite:///"):
        raw_path = db_url.replace("sqlite:///", "", 1)
        if not os.path.isabs(raw_path):
            raw_path = os.path.join(BASE_DIR, raw_path)
        db_path = os.path.normpath(raw_path)
        os.makedirs(os.path.dirname(db_path), exist_ok=True)
        return "sqlite:///" + db_path.replace("\\", "/")

    # Heroku-style URLs
    if db_url.startswith("postgres://"):
        return "postgresql://" + db_url[len("postgres://"):]

    return db_url


class Config:
    SECRET_KEY = _env("SECRET_KEY", "dev-please-change-me")

    SQLALCHEMY_DATABASE_URI = _resolve_database_uri(_env("DATABASE_URL"))
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_AS_ASCII = False

    SITE_URL = _env("SITE_URL", "http://localhost:3000")
    # where Pesapal should send the customer back; defaults to the request host
    PUBLIC_API_URL = _env("PUBLIC_API_URL")
    CORS_ORIGINS = [o.strip() for o in _env("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

    # admin: shared secret sent as X-Admin-Password
    ADMIN_PASSWORD = _env("ADMIN_PASSWORD")
    ADMIN_PASSWORD_HASH = _env("ADMIN_PASSWORD_HASH")

    PESAPAL_CONSUMER_KEY = _env("PESAPAL_CONSUMER_KEY")
    PESAPAL_CONSUMER_SECRET = _env("PESAPAL_CONSUMER_SECRET")
    PESAPAL_NOTIFICATION_ID = _env("PESAPAL_NOTIFICATION_ID")
    PESAPAL_ENVIRONMENT = (_env("PESAPAL_ENVIRONMENT", "live") or "live").lower()
    PESAPAL_TIMEOUT_SECONDS = _env_int("PESAPAL_TIMEOUT_SECONDS", 15)
    PESAPAL_DEFAULT_EMAIL = _env("PESAPAL_DEFAULT_EMAIL", "customer@example.co.tz")

    # how long an unconfirmed gateway payment keeps its share of the balance reserved
    PAYMENT_PENDING_HOLD_MINUTES = _env_int("PAYMENT_PENDING_HOLD_MINUTES", 60)

    SMS_API_BASE_URL = _env("SMS_API_BASE_URL", "https://messaging-service.co.tz")
    SMS_API_SEND_PATH = _env("SMS_API_SEND_PATH", "/api/sms/v1/text/single")
    SMS_API_TEST_SEND_PATH = _env("SMS_API_TEST_SEND_PATH", "/api/sms/v1/test/text/single")
    SMS_API_USERNAME = _env("SMS_API_USERNAME")
    SMS_API_PASSWORD = _env("SMS_API_PASSWORD")
    SMS_API_BASIC_AUTH = _env("SMS_API_BASIC_AUTH")
    SMS_API_SENDER_ID = _env("SMS_API_SENDER_ID")
    SMS_API_TEST_MODE = _env_bool("SMS_API_TEST_MODE", False)
    SMS_API_TIMEOUT_SECONDS = max(1, _env_int("SMS_API_TIMEOUT_SECONDS", 10))
    ORDER_ALERT_SMS_TO = _env("ORDER_ALERT_SMS_TO")

    MAIL_SERVER = _env("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = _env_int("MAIL_PORT", 465)
    MAIL_USE_SSL = _env_bool("MAIL_USE_SSL", True)
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", False)
    MAIL_USERNAME = _env("MAIL_USERNAME")
    MAIL_PASSWORD = _env("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = _env("MAIL_DEFAULT_SENDER", _env("MAIL_USERNAME"))
    MAIL_SUPPRESS_SEND = _env_bool("MAIL_SUPPRESS_SEND", False)
    ORDER_NOTIFY_EMAIL = _env("ORDER_NOTIFY_EMAIL")
