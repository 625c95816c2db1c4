from flask import request, jsonify, current_app
from flask_login import login_required, current_user

from . import admin_bp
from storefront.extensions import db
from storefront.services.errors import CheckoutError
from storefront.services.orders import parse_checkout, place_offline_order


@admin_bp.post("/offline-sales")
@login_required
def log_offline_sale():
    """Staff logs an in-store sale; stock and numbering go through the checkout transaction."""
    try:
        req = parse_checkout(request.get_json(silent=True), require_reference=False, require_email=False)
        result = place_offline_order(req, current_user)
    except CheckoutError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("offline sale failed")
        return jsonify({"ok": False, "error": "Internal Server Error"}), 500

    return jsonify({"ok": True, "orderId": result.order.id}), (201 if result.created else 200)
