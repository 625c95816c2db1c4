# storefront/services/webhooks.py
"""Paystack webhook handling with durable event de-duplication."""
from __future__ import annotations

import json
import logging

from sqlalchemy.exc import IntegrityError

from storefront.api.utils.paystack import Failed, validate_webhook_signature, verify_transaction
from storefront.extensions import db
from storefront.models import Order, WebhookEvent
from storefront.services.reconciliation import mark_matched, patch_order_payment, record_orphan

log = logging.getLogger(__name__)


def _remember_event(provider: str, event_id: str, payload: dict) -> bool:
    """Insert the event row; False when it was already seen."""
    db.session.add(WebhookEvent(provider=provider, event_id=event_id, payload=payload))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return False
    return True


def handle_paystack_event(raw_body: bytes, signature: str) -> tuple[dict, int]:
    """Returns (json_body, http_status) for the webhook endpoint."""
    if not validate_webhook_signature(raw_body, signature):
        log.warning("Invalid Paystack webhook signature")
        return {"ok": False, "error": "Invalid signature"}, 400

    try:
        body = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return {"ok": False, "error": "Malformed JSON"}, 400
    if not isinstance(body, dict):
        return {"ok": False, "error": "Malformed JSON"}, 400

    event = body.get("event")
    data = body.get("data") if isinstance(body.get("data"), dict) else {}
    reference = data.get("reference")
    if not reference:
        return {"ok": False, "error": "Missing reference in webhook payload"}, 400

    event_id = str(body.get("id") or data.get("id") or f"{event}:{reference}")
    if not _remember_event("paystack", event_id, body):
        return {"ok": True, "message": "Duplicate event ignored"}, 200

    if event != "charge.success":
        return {"ok": True, "message": "Event ignored"}, 200

    tx = verify_transaction(reference)
    if isinstance(tx, Failed):
        log.warning("Webhook verification failed for %s: %s", reference, tx.reason)
        return {"ok": False, "error": f"Verification failed: {tx.reason}"}, 400

    order = Order.query.filter_by(payment_reference=reference).first()
    if order is None:
        record_orphan(tx, "Orphan payment recorded; awaiting manual resolution")
        return {"ok": True, "message": "Orphan payment recorded"}, 200

    patch_order_payment(order, tx)
    mark_matched(reference, "Payment matched to existing order")
    db.session.commit()
    return {"ok": True, "message": "Processed charge.success"}, 200
