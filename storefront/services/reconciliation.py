# storefront/services/reconciliation.py
"""
Orphan payment ledger: money the gateway confirmed that never became an order.

Nothing here remediates automatically (no refunds); the sweep only re-checks
and annotates rows, and resolving a row is always a staff decision recorded
with a note. New orphans raise a Telegram alert to staff when configured.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError

from storefront.api.utils.paystack import Verified, Failed, verify_transaction
from storefront.api.utils.telegram import send_telegram_message
from storefront.extensions import db
from storefront.models import Order, OrphanPayment
from storefront.services.errors import PaymentVerificationError
from storefront.timeutil import utcnow

log = logging.getLogger(__name__)


def list_unresolved() -> list[OrphanPayment]:
    return (
        OrphanPayment.query
        .filter(OrphanPayment.reconciled.is_(False))
        .order_by(OrphanPayment.first_seen_at.desc(), OrphanPayment.id.desc())
        .all()
    )


def _upsert(tx: Verified, note: str, update_note: str, reopen: bool = False) -> OrphanPayment:
    orphan = OrphanPayment.query.filter_by(reference=tx.reference).first()
    if orphan is None:
        orphan = OrphanPayment(
            reference=tx.reference,
            amount=tx.amount,
            currency=tx.currency,
            payload=tx.payload,
            reconciled=False,
            resolution_note=note,
        )
        db.session.add(orphan)
    else:
        orphan.amount = tx.amount
        orphan.currency = tx.currency
        orphan.payload = tx.payload
        orphan.resolution_note = update_note
        if reopen:
            orphan.reconciled = False
            orphan.reconciled_at = None
    try:
        db.session.commit()
    except IntegrityError:
        # concurrent insert of the same reference; refresh the winner's row
        db.session.rollback()
        orphan = OrphanPayment.query.filter_by(reference=tx.reference).one()
        orphan.amount = tx.amount
        orphan.payload = tx.payload
        db.session.commit()
    return orphan


def record_orphan(tx: Verified, note: str) -> OrphanPayment:
    """Upsert by reference and commit. A re-seen reference refreshes amount/payload."""
    orphan = _upsert(tx, note, f"Updated: {note}")
    log.warning("Orphan payment recorded ref=%s amount=%s %s: %s", tx.reference, tx.amount, tx.currency, note)
    send_telegram_message(
        f"<b>Orphan payment</b> {tx.reference}: {tx.amount} {tx.currency} (lowest unit)\n{note}"
    )
    return orphan


def verify_live(reference: str) -> Verified | Failed:
    """Ask the gateway for the current state of a reference; read-only."""
    return verify_transaction(reference)


def seed_orphan(reference: str) -> OrphanPayment:
    """Staff tool: pull a payment from the gateway into the ledger as unreconciled."""
    tx = verify_transaction(reference)
    if isinstance(tx, Failed):
        raise PaymentVerificationError(f"Failed to verify transaction: {tx.reason}")
    orphan = _upsert(
        tx,
        "Manually seeded from admin reconciliation tool",
        "Updated via manual seed from admin reconciliation tool",
        reopen=True,
    )
    log.info("Orphan payment %s seeded by staff", tx.reference)
    return orphan


def patch_order_payment(order: Order, tx: Verified) -> bool:
    """Mark `order` paid by `tx`; caller commits. True when anything changed."""
    changed = False
    if not order.payment_verified:
        order.payment_verified = True
        changed = True
    if tx.transaction_id and order.payment_provider_id != tx.transaction_id:
        order.payment_provider_id = tx.transaction_id
        changed = True
    return changed


def reconcile_reference(reference: str) -> dict:
    """
    Re-check one reference: if an order exists, patch its payment fields and
    close any open orphan; otherwise make sure the payment sits in the ledger.
    """
    tx = verify_transaction(reference)
    if isinstance(tx, Failed):
        raise PaymentVerificationError(f"Failed to verify transaction: {tx.reason}")

    order = Order.query.filter_by(payment_reference=reference).first()
    if order is not None:
        patch_order_payment(order, tx)
        mark_matched(reference, "Manual reconcile: order already existed")
        db.session.commit()
        return {"orderId": order.id, "message": "Order already exists; reconciled if needed"}

    record_orphan(tx, "Verified payment, no order exists; flagged for manual reconciliation")
    return {"orderId": None, "message": "No order for this payment; flagged for manual reconciliation"}


def sweep_orphans(min_age_minutes: int | None = None, now: datetime | None = None) -> dict:
    """
    Re-verify unresolved orphans older than `min_age_minutes` (young rows may
    still be racing an in-flight checkout) and annotate each one.
    """
    now = now or utcnow()
    if min_age_minutes is None:
        min_age_minutes = int(current_app.config.get("ORPHAN_SWEEP_MIN_AGE", 10))
    cutoff = now - timedelta(minutes=min_age_minutes)

    rows = (
        OrphanPayment.query
        .filter(OrphanPayment.reconciled.is_(False), OrphanPayment.first_seen_at < cutoff)
        .order_by(OrphanPayment.first_seen_at.asc())
        .all()
    )
    summary = {"checked": len(rows), "alreadyResolved": 0, "flagged": 0, "amountMismatches": 0, "errors": []}

    for orphan in rows:
        tx = verify_transaction(orphan.reference)
        if isinstance(tx, Failed):
            summary["errors"].append(f"Verification failed for {orphan.reference}: {tx.reason}")
            continue

        orphan.payload = tx.payload
        order = Order.query.filter_by(payment_reference=orphan.reference).first()
        if order is not None:
            patch_order_payment(order, tx)
            orphan.reconciled = True
            orphan.reconciled_at = now
            orphan.resolution_note = "Order appeared during sweep; reconciled"
            summary["alreadyResolved"] += 1
        elif orphan.amount != tx.amount:
            orphan.resolution_note = (
                f"Amount mismatch: orphan recorded {orphan.amount}, actual {tx.amount}; flagged for review"
            )
            summary["amountMismatches"] += 1
        else:
            orphan.resolution_note = "Verified payment, no order exists; flagged for manual reconciliation"
            summary["flagged"] += 1
        db.session.commit()

    log.info("Orphan sweep: %s", {k: v for k, v in summary.items() if k != "errors"})
    return summary


def resolve(reference: str, note: str | None = None) -> OrphanPayment:
    orphan = OrphanPayment.query.filter_by(reference=reference).first()
    if orphan is None:
        raise LookupError(f"Orphan payment {reference} not found")
    orphan.reconciled = True
    orphan.reconciled_at = utcnow()
    orphan.resolution_note = (note or "").strip() or "Marked resolved by admin"
    db.session.commit()
    log.info("Orphan payment %s resolved: %s", reference, orphan.resolution_note)
    return orphan


def mark_matched(reference: str, note: str) -> int:
    """Flag any orphan for `reference` as reconciled; caller commits."""
    return (
        OrphanPayment.query
        .filter_by(reference=reference, reconciled=False)
        .update(
            {"reconciled": True, "reconciled_at": utcnow(), "resolution_note": note},
            synchronize_session=False,
        )
    )
