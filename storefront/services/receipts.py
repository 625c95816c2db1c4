# storefront/services/receipts.py
"""
Receipt email outbox.

The checkout writes a ReceiptEmailStatus row in the same transaction as the
order. Delivery happens afterwards: once inline right after commit, then by
`retry_due_receipts` (CLI / staff endpoint) for rows whose retry window is due.
Nothing here is allowed to undo or block an order.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app, render_template
from sqlalchemy import or_

from storefront.api.utils.email import send_email
from storefront.extensions import db
from storefront.invoicing import build_receipt_pdf_bytes
from storefront.models import Order, ReceiptEmailStatus
from storefront.timeutil import utcnow

log = logging.getLogger(__name__)


def compute_backoff_seconds(attempts: int, base: int = 60, cap: int = 3600) -> int:
    """base * 2^(attempts-1), capped."""
    return min(base * (2 ** max(0, attempts - 1)), cap)


def enqueue_receipt(order: Order) -> ReceiptEmailStatus:
    """Add the outbox row; the caller's transaction commits it with the order."""
    status = ReceiptEmailStatus(
        order_id=order.id,
        attempts=0,
        sent=False,
        delivery_fee=order.delivery_fee,
    )
    db.session.add(status)
    return status


def _money(v) -> str:
    return f"{Decimal(v or 0):,.2f}"


def _send_receipt(order: Order) -> None:
    recipient = order.recipient
    email = order.recipient_email
    if not email or "@" not in email:
        raise ValueError("invalid recipient email")

    brand = current_app.config.get("BRAND_NAME", "Marobi")
    html = render_template("emails/receipt.html", order=order, recipient=recipient, brand=brand, money=_money)
    body = (
        f"Hi {recipient.get('firstName') or ''},\n\n"
        f"thank you for your order {order.id}. "
        f"Total paid: {_money(order.grand_total)} {order.currency}.\n"
        "Your invoice is attached.\n\n"
        f"{brand}"
    )
    send_email(
        subject=f"Invoice for order {order.id}",
        recipients=[email],
        body=body,
        html=html,
        sender=current_app.config.get("RECEIPT_SENDER"),
        attachments=[{
            "filename": f"invoice-{order.id}.pdf",
            "content": build_receipt_pdf_bytes(order),
            "mimetype": "application/pdf",
        }],
    )


def dispatch_receipt(order: Order, now: datetime | None = None) -> bool:
    """Try to send the receipt once and record the outcome. Never raises."""
    now = now or utcnow()
    status = db.session.get(ReceiptEmailStatus, order.id)
    if status is None:
        status = enqueue_receipt(order)
    status.attempts = (status.attempts or 0) + 1

    try:
        _send_receipt(order)
    except Exception as exc:  # any mail/render failure just schedules a retry
        cfg = current_app.config
        backoff = compute_backoff_seconds(
            status.attempts,
            cfg.get("RECEIPT_BACKOFF_BASE", 60),
            cfg.get("RECEIPT_BACKOFF_MAX", 3600),
        )
        status.sent = False
        status.last_error = (str(exc) or exc.__class__.__name__)[:1000]
        status.next_retry_at = now + timedelta(seconds=backoff)
        db.session.commit()
        log.warning(
            "Receipt email for order %s failed (attempt %s), retry at %s: %s",
            order.id, status.attempts, status.next_retry_at.isoformat(), exc,
        )
        return False

    status.sent = True
    status.last_error = None
    status.next_retry_at = None
    db.session.commit()
    log.info("Receipt email for order %s sent", order.id)
    return True


def retry_due_receipts(now: datetime | None = None) -> int:
    """Outbox consumer: resend every unsent receipt whose window is due."""
    now = now or utcnow()
    due = (
        ReceiptEmailStatus.query
        .filter(ReceiptEmailStatus.sent.is_(False))
        .filter(or_(ReceiptEmailStatus.next_retry_at.is_(None), ReceiptEmailStatus.next_retry_at <= now))
        .order_by(ReceiptEmailStatus.updated_at.asc())
        .all()
    )
    processed = 0
    for status in due:
        order = status.order
        if order is None:
            continue
        dispatch_receipt(order, now=now)
        processed += 1
    return processed
