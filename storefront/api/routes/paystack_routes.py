from flask import Blueprint, request, jsonify, current_app

from storefront.extensions import db
from storefront.services.webhooks import handle_paystack_event

paystack_bp = Blueprint("paystack_bp", __name__, url_prefix="/api/paystack")


@paystack_bp.post("/webhook")
def paystack_webhook():
    signature = request.headers.get("x-paystack-signature", "")
    try:
        body, status = handle_paystack_event(request.get_data(), signature)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("paystack webhook failed")
        return jsonify({"ok": False, "error": "Webhook processing failed"}), 500
    return jsonify(body), status
