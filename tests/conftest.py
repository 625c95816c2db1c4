import hashlib
import hmac
import json
from decimal import Decimal

import pytest

from storefront.api.utils.paystack import Failed, Verified
from storefront.app import create_app
from storefront.config import Config
from storefront.extensions import db as _db
from storefront.models import Customer, Product, User, Variant

SECRET = "sk_test_secret"


class InMemoryConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = "shop@example.com"
    RECEIPT_SENDER = "shop@example.com"
    PAYSTACK_SECRET_KEY = SECRET
    TELEGRAM_BOT_TOKEN = None
    TELEGRAM_CHAT_ID = None
    BCRYPT_LOG_ROUNDS = 4
    ORDER_ID_PREFIX = "M-ORD"


class FakeGateway:
    """Stands in for Paystack's verify endpoint, keyed by reference."""

    def __init__(self):
        self.results = {}
        self.calls = []

    def succeed(self, reference, amount, currency="NGN", tx_id=None):
        self.results[reference] = Verified(
            reference=reference,
            amount=amount,
            currency=currency,
            transaction_id=str(tx_id or f"tx-{reference}"),
            payload={"reference": reference, "amount": amount, "currency": currency, "status": "success"},
        )

    def fail(self, reference, reason="Transaction not successful (status=failed)"):
        self.results[reference] = Failed(reason, 200, None)

    def __call__(self, reference):
        self.calls.append(reference)
        return self.results.get(reference, Failed("Transaction reference not found", 404, None))


@pytest.fixture
def app():
    app = create_app(InMemoryConfig)
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def gateway(monkeypatch):
    fake = FakeGateway()
    monkeypatch.setattr("storefront.services.orders.verify_transaction", fake)
    monkeypatch.setattr("storefront.services.reconciliation.verify_transaction", fake)
    monkeypatch.setattr("storefront.services.webhooks.verify_transaction", fake)
    return fake


@pytest.fixture
def catalog(db):
    """P1: Red/M stock 5 at 1000 NGN (size mods allowed); P2: Blue/L stock 1."""
    p1 = Product(
        id="P1",
        name="Adire Kaftan",
        category_slug="kaftans",
        images=["p1.jpg"],
        price_ngn=Decimal("1000.00"),
        price_usd=Decimal("10.00"),
        price_eur=Decimal("9.00"),
        price_gbp=Decimal("8.00"),
        size_mods=True,
    )
    p2 = Product(
        id="P2",
        name="Ankara Wrap",
        category_slug="wraps",
        images=[],
        price_ngn=Decimal("3000.00"),
        price_usd=Decimal("30.00"),
        size_mods=False,
    )
    db.session.add_all([p1, p2])
    db.session.add_all([
        Variant(product=p1, color="Red", size="M", stock=5, weight=0.5),
        Variant(product=p2, color="Blue", size="L", stock=1, weight=1.0),
    ])
    db.session.commit()
    return {"P1": p1, "P2": p2}


@pytest.fixture
def customer(db):
    c = Customer(first_name="Ada", last_name="Obi", email="ada@example.com", phone="0800")
    db.session.add(c)
    db.session.commit()
    return c


@pytest.fixture
def staff(db):
    u = User(username="admin", email="admin@example.com", is_admin=True)
    u.set_password("s3cret")
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def staff_client(client, staff):
    resp = client.post("/auth/login", json={"username": "admin", "password": "s3cret"})
    assert resp.status_code == 200
    return client


@pytest.fixture
def checkout_payload():
    def _make(reference="ref-123", items=None, currency="NGN", delivery_fee=500, **extra):
        body = {
            "items": items or [{"productId": "P1", "color": "Red", "size": "M", "quantity": 2}],
            "customer": {
                "firstName": "Chioma",
                "lastName": "Eze",
                "email": "chioma@example.com",
                "phone": "0801",
                "deliveryAddress": "12 Allen Ave, Ikeja",
            },
            "paymentMethod": "Paystack",
            "currency": currency,
            "deliveryFee": delivery_fee,
            "paymentReference": reference,
        }
        body.update(extra)
        return body

    return _make


def sign(body: bytes) -> str:
    return hmac.new(SECRET.encode(), body, hashlib.sha512).hexdigest()


def webhook_body(event="charge.success", reference="ref-123", event_id="evt-1") -> bytes:
    return json.dumps({"id": event_id, "event": event, "data": {"reference": reference}}).encode()
