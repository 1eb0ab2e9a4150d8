# duka/app.py
import logging

# Show INFO logs even outside the werkzeug access log
logging.basicConfig(level=logging.INFO)

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from duka.config import Config
from duka.errors import DukaError
from duka.extensions import (
    SERVICES_KEY,
    Services,
    bcrypt,
    cors,
    db,
    init_mail,
    login_manager,
    migrate,
    rollback_session,
)
from duka.services.pesapal import PesapalClient
from duka.store import build_store

# Blueprints
from duka.admin import admin_bp
from duka.api.routes.order_routes import order_bp
from duka.api.routes.account_routes import account_bp
from duka.api.routes.payment_routes import payment_bp
from duka.api.routes.review_routes import review_bp
from duka.api.routes.analytics_routes import analytics_bp
from duka.api.routes.product_routes import api_products
from duka import models as _models  # noqa: F401


def create_app(config_class=Config, store=None, gateway=None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_class)

    # The database extension is only bound when there is a database to bind
    if app.config.get("SQLALCHEMY_DATABASE_URI"):
        db.init_app(app)
        migrate.init_app(app, db)
    login_manager.init_app(app)
    bcrypt.init_app(app)
    init_mail(app)

    cors.init_app(
        app,
        resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS") or []}},
        allow_headers=["Content-Type", "X-Admin-Password"],
    )

    if store is None:
        store = build_store(app)
    if gateway is None:
        gateway = PesapalClient.from_config(app.config)
        if not gateway.is_configured:
            app.logger.warning("Pesapal disabled, missing: %s", ", ".join(gateway.missing_config()))
    app.extensions[SERVICES_KEY] = Services(store, gateway)

    # Register blueprints
    app.register_blueprint(order_bp)
    app.register_blueprint(account_bp)
    app.register_blueprint(payment_bp)
    app.register_blueprint(review_bp)
    app.register_blueprint(analytics_bp)
    app.register_blueprint(api_products)
    app.register_blueprint(admin_bp)

    @app.errorhandler(DukaError)
    def handle_duka_error(e: DukaError):
        if e.status_code >= 500:
            rollback_session()
            app.logger.error("%s: %s", e.__class__.__name__, e.message)
        return jsonify({"ok": False, "error": e.message}), e.status_code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        if isinstance(e, HTTPException):
            return jsonify({"ok": False, "error": e.description}), e.code
        rollback_session()
        app.logger.exception("Unhandled error")
        return jsonify({"ok": False, "error": "Internal server error"}), 500

    @app.get("/api/health")
    def health():
        return {"ok": True, "store": store.kind, "gateway": gateway.is_configured}

    return app
