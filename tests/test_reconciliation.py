from datetime import timedelta

from storefront.api.utils.paystack import Verified
from storefront.extensions import db
from storefront.models import Order, OrphanPayment
from storefront.services import reconciliation
from storefront.timeutil import utcnow


def add_orphan(reference="ref-orphan", amount=50000):
    tx = Verified(reference=reference, amount=amount, currency="NGN", transaction_id="77", payload={"id": 77})
    return reconciliation.record_orphan(tx, "Orphan payment recorded; awaiting manual resolution")


def test_record_orphan_upserts_by_reference(app):
    add_orphan(amount=100)
    add_orphan(amount=300)

    rows = OrphanPayment.query.all()
    assert len(rows) == 1
    assert rows[0].amount == 300
    assert rows[0].resolution_note.startswith("Updated:")


def test_resolve_sets_flag_and_default_note(app):
    add_orphan()

    orphan = reconciliation.resolve("ref-orphan", "  ")

    assert orphan.reconciled is True
    assert orphan.reconciled_at is not None
    assert orphan.resolution_note == "Marked resolved by admin"
    assert reconciliation.list_unresolved() == []


def test_mark_matched_only_touches_open_rows(app, db):
    add_orphan()

    assert reconciliation.mark_matched("ref-orphan", "matched") == 1
    db.session.commit()
    assert reconciliation.mark_matched("ref-orphan", "matched again") == 0


def test_orphan_routes_require_login(client):
    assert client.get("/admin/orphans").status_code == 401
    assert client.post("/admin/orphans/x/resolve").status_code == 401


def test_list_orphans(staff_client):
    add_orphan("ref-1")
    add_orphan("ref-2")

    resp = staff_client.get("/admin/orphans")

    assert resp.status_code == 200
    refs = {row["reference"] for row in resp.get_json()["data"]}
    assert refs == {"ref-1", "ref-2"}


def test_verify_orphan_live(staff_client, gateway):
    add_orphan()
    gateway.succeed("ref-orphan", 50000)

    resp = staff_client.get("/admin/orphans/ref-orphan/verify")

    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["amount"] == 50000
    assert data["currency"] == "NGN"
    # read-only
    assert OrphanPayment.query.filter_by(reference="ref-orphan").one().reconciled is False


def test_verify_orphan_live_failure(staff_client, gateway):
    gateway.fail("ref-gone", "Failed to verify transaction: Transaction reference not found")

    resp = staff_client.get("/admin/orphans/ref-gone/verify")

    assert resp.status_code == 400
    assert resp.get_json()["ok"] is False


def test_resolve_route(staff_client):
    add_orphan()

    resp = staff_client.post("/admin/orphans/ref-orphan/resolve", json={"note": "Refunded via dashboard"})

    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["reconciled"] is True
    assert data["resolutionNote"] == "Refunded via dashboard"
    assert staff_client.get("/admin/orphans").get_json()["data"] == []


def test_resolve_unknown_reference(staff_client):
    assert staff_client.post("/admin/orphans/nope/resolve", json={}).status_code == 404


def age(reference, minutes):
    orphan = OrphanPayment.query.filter_by(reference=reference).one()
    orphan.first_seen_at = utcnow() - timedelta(minutes=minutes)
    db.session.commit()


def test_seed_pulls_payment_from_gateway(staff_client, gateway):
    gateway.succeed("ref-manual", 420000)

    resp = staff_client.post("/admin/orphans/seed", json={"reference": "ref-manual"})

    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["amount"] == 420000
    assert data["reconciled"] is False
    assert data["resolutionNote"] == "Manually seeded from admin reconciliation tool"


def test_seed_reopens_resolved_row(app, gateway):
    add_orphan()
    reconciliation.resolve("ref-orphan", "looked fine")
    gateway.succeed("ref-orphan", 50000)

    orphan = reconciliation.seed_orphan("ref-orphan")

    assert orphan.reconciled is False
    assert orphan.reconciled_at is None
    assert orphan.resolution_note.startswith("Updated via manual seed")


def test_seed_requires_reference_and_verified_payment(staff_client, gateway):
    assert staff_client.post("/admin/orphans/seed", json={}).status_code == 400

    resp = staff_client.post("/admin/orphans/seed", json={"reference": "ref-unknown"})

    assert resp.status_code == 400
    assert OrphanPayment.query.count() == 0


def test_reconcile_reference_patches_existing_order(staff_client, catalog, gateway, checkout_payload):
    gateway.succeed("ref-123", 250000)
    order_id = staff_client.post("/api/orders", json=checkout_payload()).get_json()["orderId"]
    order = db.session.get(Order, order_id)
    order.payment_verified = False
    order.payment_provider_id = None
    db.session.commit()
    add_orphan("ref-123", 250000)

    resp = staff_client.post("/admin/orphans/ref-123/reconcile")

    assert resp.status_code == 200
    assert resp.get_json()["orderId"] == order_id
    order = db.session.get(Order, order_id)
    assert order.payment_verified is True
    assert order.payment_provider_id == "tx-ref-123"
    orphan = OrphanPayment.query.filter_by(reference="ref-123").one()
    assert orphan.reconciled is True
    assert orphan.resolution_note == "Manual reconcile: order already existed"


def test_reconcile_reference_without_order_flags_orphan(staff_client, gateway):
    gateway.succeed("ref-lost", 90000)

    resp = staff_client.post("/admin/orphans/ref-lost/reconcile")

    assert resp.status_code == 200
    assert resp.get_json()["orderId"] is None
    assert OrphanPayment.query.filter_by(reference="ref-lost").one().reconciled is False


def test_sweep_annotates_old_orphans_only(app, catalog, gateway, checkout_payload, client):
    # order appeared after the orphan was recorded
    add_orphan("ref-123", 250000)
    gateway.succeed("ref-123", 250000)
    client.post("/api/orders", json=checkout_payload())
    OrphanPayment.query.filter_by(reference="ref-123").update({"reconciled": False})
    db.session.commit()
    age("ref-123", 30)

    add_orphan("ref-short", 1000)
    gateway.succeed("ref-short", 5000)
    age("ref-short", 30)

    add_orphan("ref-plain", 7000)
    gateway.succeed("ref-plain", 7000)
    age("ref-plain", 30)

    add_orphan("ref-young", 7000)
    gateway.succeed("ref-young", 7000)

    add_orphan("ref-gone", 7000)
    age("ref-gone", 30)

    summary = reconciliation.sweep_orphans(10)

    assert summary["checked"] == 4
    assert summary["alreadyResolved"] == 1
    assert summary["amountMismatches"] == 1
    assert summary["flagged"] == 1
    assert len(summary["errors"]) == 1 and "ref-gone" in summary["errors"][0]

    notes = {o.reference: o for o in OrphanPayment.query.all()}
    assert notes["ref-123"].reconciled is True
    assert notes["ref-short"].resolution_note.startswith("Amount mismatch: orphan recorded 1000, actual 5000")
    assert notes["ref-short"].reconciled is False
    assert "flagged for manual reconciliation" in notes["ref-plain"].resolution_note
    assert notes["ref-young"].resolution_note == "Orphan payment recorded; awaiting manual resolution"


def test_sweep_route_and_cli(app, staff_client, gateway):
    add_orphan("ref-plain", 7000)
    gateway.succeed("ref-plain", 7000)
    age("ref-plain", 30)

    resp = staff_client.post("/admin/orphans/sweep")
    assert resp.get_json()["summary"]["flagged"] == 1

    result = app.test_cli_runner().invoke(args=["orphans", "sweep", "--min-age", "10"])
    assert result.exit_code == 0
    assert "checked 1: 0 reconciled, 1 flagged" in result.output


def test_sweep_requires_login(client):
    assert client.post("/admin/orphans/sweep").status_code == 401
    assert client.post("/admin/orphans/seed", json={"reference": "x"}).status_code == 401


def test_new_orphan_alerts_staff(app, monkeypatch):
    sent = []
    monkeypatch.setattr(reconciliation, "send_telegram_message", lambda text: sent.append(text) or True)

    add_orphan("ref-alert", 1234)

    assert len(sent) == 1
    assert "ref-alert" in sent[0] and "1234 NGN" in sent[0]


def test_telegram_alert_is_off_without_credentials(app, monkeypatch):
    from storefront.api.utils import telegram

    def no_network(*args, **kwargs):
        raise AssertionError("should not call out")

    monkeypatch.setattr(telegram.urllib.request, "urlopen", no_network)

    assert telegram.send_telegram_message("hello") is False
