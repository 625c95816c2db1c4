# storefront/extensions.py
from __future__ import annotations

import socket
from urllib.parse import urlsplit

from flask import jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_bcrypt import Bcrypt
from flask_migrate import Migrate
from flask_cors import CORS
from flask_mail import Mail

# Extension singletons, bound to the app in create_app()
db = SQLAlchemy()
login_manager = LoginManager()
bcrypt = Bcrypt()
migrate = Migrate()
cors = CORS()
mail = Mail()


@login_manager.user_loader
def load_staff(user_id):
    from storefront.models.user import User
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None


@login_manager.unauthorized_handler
def staff_only():
    # admin tool and staff endpoints speak JSON, never redirect to a login page
    return jsonify({"ok": False, "error": "Unauthorized"}), 401


def _smtp_host(raw: str | None) -> str:
    """'smtps://smtp.example.com:465/' -> 'smtp.example.com'"""
    raw = (raw or "").strip()
    if not raw:
        return ""
    return urlsplit(raw if "://" in raw else f"//{raw}").hostname or ""


def _flag(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in ("1", "true", "t", "yes", "y", "on")


def init_mail(app):
    """
    Normalise the MAIL_* settings receipts depend on, then bind Flask-Mail.

    A bad SMTP config never stops the app from booting: checkout keeps
    working and receipts simply land in the retry outbox.
    """
    cfg = app.config
    suppressed = _flag(cfg.get("MAIL_SUPPRESS_SEND")) or app.testing

    host = _smtp_host(cfg.get("MAIL_SERVER"))
    if not host:
        host = "smtp.hostinger.com"
        app.logger.warning("MAIL_SERVER missing, receipts will go through %s", host)
    cfg["MAIL_SERVER"] = host

    cfg["MAIL_USE_SSL"] = _flag(cfg.get("MAIL_USE_SSL"))
    cfg["MAIL_USE_TLS"] = _flag(cfg.get("MAIL_USE_TLS")) and not cfg["MAIL_USE_SSL"]

    try:
        cfg["MAIL_PORT"] = int(cfg.get("MAIL_PORT"))
    except (TypeError, ValueError):
        cfg["MAIL_PORT"] = 465 if cfg["MAIL_USE_SSL"] else (587 if cfg["MAIL_USE_TLS"] else 25)

    cfg["MAIL_DEFAULT_SENDER"] = cfg.get("MAIL_DEFAULT_SENDER") or cfg.get("MAIL_USERNAME")
    cfg["RECEIPT_SENDER"] = cfg.get("RECEIPT_SENDER") or cfg["MAIL_DEFAULT_SENDER"]
    if not cfg["RECEIPT_SENDER"] and not suppressed:
        app.logger.warning("No RECEIPT_SENDER / MAIL_DEFAULT_SENDER configured; receipt emails will fail")

    if not suppressed:
        try:
            socket.getaddrinfo(host, cfg["MAIL_PORT"], proto=socket.IPPROTO_TCP)
        except OSError as e:
            app.logger.error("SMTP host %s does not resolve: %s", host, e)

    app.logger.info(
        "mail: %s:%s ssl=%s tls=%s receipts from %s%s",
        host,
        cfg["MAIL_PORT"],
        cfg["MAIL_USE_SSL"],
        cfg["MAIL_USE_TLS"],
        cfg["RECEIPT_SENDER"],
        " (suppressed)" if suppressed else "",
    )

    mail.init_app(app)
