from flask import request, jsonify, current_app
from flask_login import login_required

from . import admin_bp
from storefront.api.utils.paystack import Failed
from storefront.services import reconciliation
from storefront.services.errors import CheckoutError


@admin_bp.get("/orphans")
@login_required
def orphans_index():
    rows = reconciliation.list_unresolved()
    return jsonify({"ok": True, "data": [o.to_dict() for o in rows]}), 200


@admin_bp.get("/orphans/<reference>/verify")
@login_required
def orphan_verify(reference: str):
    """Live look at the gateway; changes nothing locally."""
    tx = reconciliation.verify_live(reference)
    if isinstance(tx, Failed):
        return jsonify({"ok": False, "error": tx.reason, "details": tx.details}), 400
    return jsonify({
        "ok": True,
        "data": {
            "reference": tx.reference,
            "amount": tx.amount,
            "currency": tx.currency,
            "transactionId": tx.transaction_id,
            "raw": tx.payload,
        },
    }), 200


@admin_bp.post("/orphans/<reference>/resolve")
@login_required
def orphan_resolve(reference: str):
    note = (request.get_json(silent=True) or {}).get("note")
    try:
        orphan = reconciliation.resolve(reference, note)
    except LookupError:
        return jsonify({"ok": False, "error": "Orphan payment not found"}), 404
    current_app.logger.info("orphan %s resolved", reference)
    return jsonify({"ok": True, "data": orphan.to_dict()}), 200


@admin_bp.post("/orphans/seed")
@login_required
def orphan_seed():
    """Pull a gateway payment into the ledger by reference."""
    reference = str((request.get_json(silent=True) or {}).get("reference") or "").strip()
    if not reference:
        return jsonify({"ok": False, "error": "Missing reference in body"}), 400
    try:
        orphan = reconciliation.seed_orphan(reference)
    except CheckoutError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"ok": True, "data": orphan.to_dict()}), 200


@admin_bp.post("/orphans/<reference>/reconcile")
@login_required
def orphan_reconcile(reference: str):
    try:
        result = reconciliation.reconcile_reference(reference)
    except CheckoutError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"ok": True, **result}), 200


@admin_bp.post("/orphans/sweep")
@login_required
def orphan_sweep():
    summary = reconciliation.sweep_orphans()
    return jsonify({"ok": True, "summary": summary}), 200
