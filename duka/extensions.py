# duka/extensions.py
from __future__ import annotations

import hmac

from flask import current_app, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager, UserMixin
from flask_bcrypt import Bcrypt
from flask_migrate import Migrate
from flask_cors import CORS
from flask_mail import Mail

# Keep extension instances in one place to avoid circular imports
db = SQLAlchemy()
login_manager = LoginManager()
bcrypt = Bcrypt()
migrate = Migrate()
cors = CORS()
mail = Mail()

SERVICES_KEY = "duka"


class AdminUser(UserMixin):
    """The single shop admin; identity is the shared secret, not an account."""

    id = "admin"


@login_manager.request_loader
def load_admin_from_request(request):
    supplied = request.headers.get("X-Admin-Password") or ""
    if not supplied:
        return None

    cfg = current_app.config
    pw_hash = cfg.get("ADMIN_PASSWORD_HASH")
    if pw_hash:
        try:
            return AdminUser() if bcrypt.check_password_hash(pw_hash, supplied) else None
        except ValueError:
            current_app.logger.error("ADMIN_PASSWORD_HASH is not a valid bcrypt hash")
            return None

    expected = cfg.get("ADMIN_PASSWORD") or ""
    if expected and hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        return AdminUser()
    return None


@login_manager.unauthorized_handler
def admin_unauthorized():
    return jsonify({"ok": False, "error": "Unauthorized"}), 401


class Services:
    """Per-app collaborators: the order store and the payment gateway client."""

    def __init__(self, store, gateway):
        self.store = store
        self.gateway = gateway


def get_store():
    return current_app.extensions[SERVICES_KEY].store


def get_gateway():
    return current_app.extensions[SERVICES_KEY].gateway


def _coerce_bool(v, default=False) -> bool:
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    return s in ("1", "true", "t", "yes", "y", "on")


def _clean_hostname(server: str | None) -> str:
    """Return hostname without scheme/path/spaces."""
    s = (server or "").strip()
    if "://" in s:
        s = s.split("://", 1)[1]
    if "/" in s:
        s = s.split("/", 1)[0]
    return s


def init_mail(app):
    """Initialize Flask-Mail after sanitizing MAIL_SERVER, SSL/TLS and port."""
    cfg = app.config

    server = _clean_hostname(cfg.get("MAIL_SERVER"))
    if server != cfg.get("MAIL_SERVER"):
        cfg["MAIL_SERVER"] = server

    use_ssl = _coerce_bool(cfg.get("MAIL_USE_SSL"), False)
    use_tls = _coerce_bool(cfg.get("MAIL_USE_TLS"), False)
    if use_ssl and use_tls:
        cfg["MAIL_USE_TLS"] = False
        app.logger.info("MAIL_USE_SSL and MAIL_USE_TLS were both set -> disabling TLS (prefer SSL).")
        use_tls = False

    try:
        int(cfg.get("MAIL_PORT"))
    except (TypeError, ValueError):
        port = 465 if use_ssl else (587 if use_tls else 25)
        cfg["MAIL_PORT"] = port
        app.logger.info("MAIL_PORT was invalid -> setting %s", port)

    if not cfg.get("MAIL_DEFAULT_SENDER"):
        cfg["MAIL_DEFAULT_SENDER"] = cfg.get("MAIL_USERNAME")

    mail.init_app(app)


def rollback_session():
    """Roll back the SQLAlchemy session when this app runs on a database."""
    if "sqlalchemy" in current_app.extensions:
        db.session.rollback()
