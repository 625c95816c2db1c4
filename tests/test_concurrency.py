import threading
from decimal import Decimal

import pytest

from storefront.app import create_app
from storefront.extensions import db as _db
from storefront.models import Order, Product, Variant
from tests.conftest import InMemoryConfig


@pytest.fixture
def file_app(tmp_path):
    """Shared on-disk SQLite so each thread gets its own connection and transaction."""

    class FileConfig(InMemoryConfig):
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "shop.db").replace("\\", "/")
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 15, "check_same_thread": False}}

    app = create_app(FileConfig)
    with app.app_context():
        _db.create_all()
        product = Product(id="W", name="Wrapper", category_slug="wraps", images=[],
                          price_ngn=Decimal("1000.00"), size_mods=False)
        _db.session.add(product)
        _db.session.add(Variant(product=product, color="Black", size="S", stock=1))
        _db.session.commit()
        _db.session.remove()
    yield app
    with app.app_context():
        _db.drop_all()
        _db.engine.dispose()


def body(reference):
    return {
        "items": [{"productId": "W", "color": "Black", "size": "S", "quantity": 1}],
        "customer": {"firstName": "Tobi", "email": "tobi@example.com"},
        "currency": "NGN",
        "deliveryFee": 0,
        "paymentReference": reference,
    }


def post_together(app, references):
    barrier = threading.Barrier(len(references))
    results = [None] * len(references)

    def worker(i, reference):
        client = app.test_client()
        barrier.wait()
        resp = client.post("/api/orders", json=body(reference))
        results[i] = (resp.status_code, resp.get_json())

    threads = [threading.Thread(target=worker, args=(i, ref)) for i, ref in enumerate(references)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results


def final_state(app):
    with app.app_context():
        orders = _db.session.query(Order).count()
        stock = _db.session.scalar(_db.select(Variant.stock).filter_by(product_id="W"))
        _db.session.remove()
    return orders, stock


def test_simultaneous_retries_share_one_order(file_app, gateway):
    gateway.succeed("ref-x", 100000)

    results = post_together(file_app, ["ref-x", "ref-x"])

    statuses = sorted(status for status, _ in results)
    ids = {payload["orderId"] for _, payload in results}
    assert statuses == [200, 201]
    assert len(ids) == 1
    assert final_state(file_app) == (1, 0)


def test_last_unit_under_contention(file_app, gateway):
    gateway.succeed("ref-a", 100000)
    gateway.succeed("ref-b", 100000)

    results = post_together(file_app, ["ref-a", "ref-b"])

    assert sorted(status for status, _ in results) == [201, 409]
    loser = next(payload for status, payload in results if status == 409)
    assert "Insufficient stock" in loser["error"]
    assert final_state(file_app) == (1, 0)
