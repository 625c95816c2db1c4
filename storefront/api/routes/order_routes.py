from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required

from storefront.extensions import db
from storefront.models import Order
from storefront.services.errors import CheckoutError
from storefront.services.orders import (
    parse_checkout,
    place_online_order,
    serialize_order,
    update_order_status,
)
from storefront.services.receipts import retry_due_receipts

order_bp = Blueprint("order_bp", __name__, url_prefix="/api/orders")


@order_bp.post("")
def create_order():
    """Checkout: 201 for a new order, 200 when the payment reference already has one."""
    try:
        req = parse_checkout(request.get_json(silent=True))
        result = place_online_order(req)
    except CheckoutError as e:
        current_app.logger.info("checkout rejected (%s): %s", e.status_code, e.message)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("create_order failed")
        return jsonify({"ok": False, "error": "Internal Server Error"}), 500

    return jsonify({
        "ok": True,
        "orderId": result.order.id,
        "email": result.email,
    }), (201 if result.created else 200)


@order_bp.get("/<order_id>")
def get_order(order_id: str):
    o = db.session.get(Order, order_id)
    if o is None:
        return jsonify({"ok": False, "error": "Order not found"}), 404
    return jsonify({"ok": True, "order": serialize_order(o)}), 200


@order_bp.patch("/<order_id>")
@login_required
def patch_order_status(order_id: str):
    body = request.get_json(silent=True) or {}
    try:
        order = update_order_status(order_id, body.get("status"))
    except CheckoutError as e:
        return jsonify(e.to_dict()), e.status_code
    except LookupError:
        return jsonify({"ok": False, "error": "Order not found"}), 404
    return jsonify({"ok": True, "order": serialize_order(order)}), 200


@order_bp.post("/retry-email")
@login_required
def retry_receipt_emails():
    try:
        processed = retry_due_receipts()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("receipt retry run failed")
        return jsonify({"ok": False, "error": "Failed to process receipt email retries"}), 500
    return jsonify({"ok": True, "processed": processed}), 200
