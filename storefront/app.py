# storefront/app.py
import logging
import os

# Show INFO logs even outside the werkzeug access log
logging.basicConfig(level=logging.INFO)

from flask import Flask, jsonify
from storefront.config import Config, BASE_DIR

# Extensions
from storefront.extensions import db, login_manager, bcrypt, migrate, cors, init_mail

# Blueprints
from storefront.admin import admin_bp
from storefront.auth import auth_bp
from storefront.api.routes.order_routes import order_bp
from storefront.api.routes.paystack_routes import paystack_bp
from storefront.cli import register_cli
from storefront import models as _models  # noqa: F401


def create_app(config_object=None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=os.path.join(BASE_DIR, "migrations"))
    login_manager.init_app(app)
    bcrypt.init_app(app)
    init_mail(app)

    cors.init_app(
        app,
        resources={
            r"/api/*": {
                "origins": list(app.config.get("CORS_ORIGINS") or []),
                "supports_credentials": True,
            }
        },
    )

    # Register blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(order_bp)
    app.register_blueprint(paystack_bp)

    register_cli(app)

    @app.get("/healthz")
    def healthz():
        return jsonify({"ok": True}), 200

    return app
