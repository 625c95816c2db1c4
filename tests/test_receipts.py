from datetime import timedelta

import pytest

from storefront.api.utils.email import send_email
from storefront.extensions import mail
from storefront.models import Order, ReceiptEmailStatus
from storefront.services import receipts
from storefront.services.receipts import compute_backoff_seconds, dispatch_receipt, retry_due_receipts
from storefront.timeutil import utcnow


@pytest.mark.parametrize(
    "attempts, expected",
    [(1, 60), (2, 120), (3, 240), (6, 1920), (7, 3600), (30, 3600)],
)
def test_backoff_doubles_until_capped(attempts, expected):
    assert compute_backoff_seconds(attempts, 60, 3600) == expected


def smtp_down(**kwargs):
    raise RuntimeError("down")


def place(client, gateway, checkout_payload, reference="ref-123"):
    gateway.succeed(reference, 250000)
    resp = client.post("/api/orders", json=checkout_payload(reference=reference))
    return resp


def test_receipt_is_sent_after_commit(client, db, catalog, gateway, checkout_payload):
    with mail.record_messages() as outbox:
        resp = place(client, gateway, checkout_payload)

    assert resp.status_code == 201
    order_id = resp.get_json()["orderId"]
    assert len(outbox) == 1
    msg = outbox[0]
    assert msg.recipients == ["chioma@example.com"]
    assert order_id in msg.subject
    assert msg.attachments[0].filename == f"invoice-{order_id}.pdf"
    assert msg.attachments[0].data.startswith(b"%PDF")

    status = db.session.get(ReceiptEmailStatus, order_id)
    assert status.sent is True
    assert status.attempts == 1
    assert status.next_retry_at is None


def test_receipt_failure_does_not_fail_checkout(client, db, catalog, gateway, checkout_payload, monkeypatch):
    def broken_send(**kwargs):
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr(receipts, "send_email", broken_send)
    before = utcnow()

    resp = place(client, gateway, checkout_payload)

    assert resp.status_code == 201
    status = db.session.get(ReceiptEmailStatus, resp.get_json()["orderId"])
    assert status.sent is False
    assert status.attempts == 1
    assert status.last_error == "smtp down"
    assert status.next_retry_at >= before + timedelta(seconds=60)


def test_consecutive_failures_back_off_further(app, db, client, catalog, gateway, checkout_payload, monkeypatch):
    monkeypatch.setattr(receipts, "send_email", smtp_down)
    order_id = place(client, gateway, checkout_payload).get_json()["orderId"]
    order = db.session.get(Order, order_id)

    now = utcnow() + timedelta(hours=1)
    assert dispatch_receipt(order, now=now) is False

    status = db.session.get(ReceiptEmailStatus, order_id)
    assert status.attempts == 2
    assert status.next_retry_at == now + timedelta(seconds=120)


def test_last_error_is_truncated(db, client, catalog, gateway, checkout_payload, monkeypatch):
    def noisy(**kwargs):
        raise RuntimeError("x" * 5000)

    monkeypatch.setattr(receipts, "send_email", noisy)
    order_id = place(client, gateway, checkout_payload).get_json()["orderId"]

    assert len(db.session.get(ReceiptEmailStatus, order_id).last_error) == 1000


def test_retry_only_picks_due_rows(db, client, catalog, gateway, checkout_payload, monkeypatch):
    monkeypatch.setattr(receipts, "send_email", smtp_down)
    order_id = place(client, gateway, checkout_payload).get_json()["orderId"]
    monkeypatch.setattr(receipts, "send_email", send_email)

    # not due yet
    assert retry_due_receipts(now=utcnow()) == 0

    with mail.record_messages() as outbox:
        processed = retry_due_receipts(now=utcnow() + timedelta(minutes=5))

    assert processed == 1
    assert len(outbox) == 1
    status = db.session.get(ReceiptEmailStatus, order_id)
    assert status.sent is True
    assert status.attempts == 2
    assert status.last_error is None

    assert retry_due_receipts(now=utcnow() + timedelta(days=1)) == 0


def test_retry_endpoint_requires_staff(staff_client, db, catalog, gateway, checkout_payload, monkeypatch):
    monkeypatch.setattr(receipts, "send_email", smtp_down)
    order_id = place(staff_client, gateway, checkout_payload).get_json()["orderId"]
    monkeypatch.setattr(receipts, "send_email", send_email)

    status = db.session.get(ReceiptEmailStatus, order_id)
    status.next_retry_at = utcnow() - timedelta(seconds=1)
    db.session.commit()

    resp = staff_client.post("/api/orders/retry-email")

    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True, "processed": 1}
    assert db.session.get(ReceiptEmailStatus, order_id).sent is True


def test_retry_endpoint_rejects_anonymous(client):
    assert client.post("/api/orders/retry-email").status_code == 401


def test_cli_retry_command(app, db, client, catalog, gateway, checkout_payload, monkeypatch):
    monkeypatch.setattr(receipts, "send_email", smtp_down)
    order_id = place(client, gateway, checkout_payload).get_json()["orderId"]
    monkeypatch.setattr(receipts, "send_email", send_email)
    status = db.session.get(ReceiptEmailStatus, order_id)
    status.next_retry_at = None
    db.session.commit()

    result = app.test_cli_runner().invoke(args=["receipts", "retry"])

    assert result.exit_code == 0
    assert "processed 1 receipt(s)" in result.output
