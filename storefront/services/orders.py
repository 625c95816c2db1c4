# storefront/services/orders.py
"""
Order placement.

`place_online_order` is the checkout: validate the request, verify the
payment with the gateway, then in one database transaction re-check and
decrement stock, price the lines, compare the total with what the gateway
captured, number the order and persist it with its items and receipt outbox
row. Any failure inside the transaction rolls everything back; a retried
request with the same payment reference gets the existing order back.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import current_app
from sqlalchemy.exc import IntegrityError

from storefront.api.utils.email import send_email
from storefront.api.utils.paystack import Failed, Verified, to_lowest_denomination, verify_transaction
from storefront.extensions import db
from storefront.models import Customer, OfflineSale, Order, OrderItem, Product, Variant
from storefront.models.order import ORDER_STATUSES
from storefront.services.errors import (
    AmountMismatch,
    CheckoutError,
    InsufficientStock,
    PaymentVerificationError,
    TransactionTimeout,
    ValidationError,
    VariantNotFound,
)
from storefront.services.receipts import dispatch_receipt, enqueue_receipt
from storefront.services.reconciliation import mark_matched, record_orphan
from storefront.services.serials import allocate_serial, assert_order_id, format_order_id
from storefront.timeutil import utcnow

log = logging.getLogger(__name__)

CENT = Decimal("0.01")
WILDCARD = ("", "N/A")
# stock is a 32-bit INTEGER column
MAX_QUANTITY = 2**31 - 1

_clock = time.monotonic


@dataclass
class LineRequest:
    product_id: str
    quantity: int
    color: str = "N/A"
    size: str = "N/A"
    has_size_mod: bool = False
    custom_size: dict | None = None
    unit_weight: float | None = None


@dataclass
class CheckoutRequest:
    items: list[LineRequest]
    customer: dict
    currency: str
    payment_method: str
    payment_reference: str | None
    delivery_fee: Decimal = Decimal("0")
    delivery_option_id: str | None = None
    shipping: dict | None = None
    timestamp: datetime | None = None


@dataclass
class PlacementResult:
    order: Order
    created: bool
    email: str | None = None
    receipt_sent: bool | None = field(default=None)


# ---- request parsing --------------------------------------------------------

def _to_decimal(val, name: str) -> Decimal:
    try:
        d = Decimal(str(val))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid value for {name}")
    if not d.is_finite():
        raise ValidationError(f"Invalid value for {name}")
    return d


def _parse_line(raw, idx: int) -> LineRequest:
    if not isinstance(raw, dict):
        raise ValidationError(f"Item #{idx + 1} must be an object")
    product_id = str(raw.get("productId") or "").strip()
    if not product_id:
        raise ValidationError(f"Item #{idx + 1} is missing productId")
    qty = raw.get("quantity")
    if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
        raise ValidationError(f"Item #{idx + 1} must have a positive integer quantity")
    if qty > MAX_QUANTITY:
        raise ValidationError(f"Item #{idx + 1} quantity is too large")
    weight = raw.get("unitWeight")
    custom = raw.get("customMods") or raw.get("customSize")
    return LineRequest(
        product_id=product_id,
        quantity=qty,
        color=str(raw.get("color") or "N/A").strip(),
        size=str(raw.get("size") or "N/A").strip(),
        has_size_mod=bool(raw.get("hasSizeMod")),
        custom_size=custom if isinstance(custom, dict) else None,
        unit_weight=float(weight) if isinstance(weight, (int, float)) and not isinstance(weight, bool) else None,
    )


def parse_checkout(payload, *, require_reference: bool = True, require_email: bool = True) -> CheckoutRequest:
    """Validate the raw JSON body before anything touches the gateway or the DB."""
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("No items provided")
    lines = [_parse_line(raw, i) for i, raw in enumerate(items)]

    customer = payload.get("customer") or {}
    if not isinstance(customer, dict):
        raise ValidationError("customer must be an object")
    if require_email and not str(customer.get("email") or "").strip():
        raise ValidationError("Customer email is required")

    reference = payload.get("paymentReference")
    if reference is not None and not isinstance(reference, str):
        raise ValidationError("Missing or invalid paymentReference")
    reference = (reference or "").strip() or None
    if require_reference and not reference:
        raise ValidationError("Missing or invalid paymentReference")

    currency = str(payload.get("currency") or "").strip().upper()
    if currency not in current_app.config["ALLOWED_CURRENCIES"]:
        raise ValidationError(f"Unsupported currency: {payload.get('currency')}")

    fee = _to_decimal(payload.get("deliveryFee") or 0, "deliveryFee")
    if fee < 0:
        raise ValidationError("deliveryFee must not be negative")

    timestamp = None
    if payload.get("timestamp"):
        try:
            timestamp = datetime.fromisoformat(str(payload["timestamp"]).replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError("Invalid timestamp")
        if timestamp.tzinfo is not None:
            timestamp = timestamp.astimezone(timezone.utc).replace(tzinfo=None)

    shipping = payload.get("shipping")
    return CheckoutRequest(
        items=lines,
        customer=customer,
        currency=currency,
        payment_method=str(payload.get("paymentMethod") or "Paystack").strip(),
        payment_reference=reference,
        delivery_fee=fee.quantize(CENT, rounding=ROUND_HALF_UP),
        delivery_option_id=payload.get("deliveryOptionId") or None,
        shipping=shipping if isinstance(shipping, dict) else None,
        timestamp=timestamp,
    )


# ---- helpers ----------------------------------------------------------------

def _guest_snapshot(customer: dict) -> dict:
    keys = ("firstName", "lastName", "email", "phone", "deliveryAddress", "billingAddress", "country", "state")
    return {k: customer.get(k) for k in keys}


def _resolve_customer(customer: dict) -> tuple[Customer | None, dict | None]:
    """Registered customer when the payload names one that exists, else a guest snapshot."""
    cid = customer.get("id")
    if cid is not None:
        try:
            found = db.session.get(Customer, int(cid))
        except (TypeError, ValueError):
            found = None
        if found is not None:
            return found, None
    return None, _guest_snapshot(customer)


def _find_variant(line: LineRequest) -> Variant | None:
    q = Variant.query.filter_by(product_id=line.product_id)
    if line.color not in WILDCARD:
        q = q.filter_by(color=line.color)
    if line.size not in WILDCARD:
        q = q.filter_by(size=line.size)
    return q.order_by(Variant.id.asc()).first()


def _take_stock(variant_id: int, qty: int) -> bool:
    """Conditional decrement; False when it would go negative."""
    updated = db.session.execute(
        db.text("UPDATE variant SET stock = stock - :qty WHERE id = :vid AND stock >= :qty"),
        {"qty": qty, "vid": variant_id},
    )
    return updated.rowcount == 1


def _bound_transaction_time() -> float:
    """Arm the database-side limits and return the monotonic deadline for the whole transaction."""
    seconds = int(current_app.config.get("ORDER_TX_TIMEOUT", 15))
    if db.engine.dialect.name == "postgresql":
        ms = seconds * 1000
        db.session.execute(db.text(f"SET LOCAL statement_timeout = {ms}"))
        db.session.execute(db.text(f"SET LOCAL idle_in_transaction_session_timeout = {ms}"))
    return _clock() + seconds


def _check_deadline(deadline: float) -> None:
    if _clock() > deadline:
        raise TransactionTimeout("Order could not be completed in time, please retry")


def _delivery_details(req: CheckoutRequest, aggregated_weight: float) -> dict:
    details = {
        "aggregatedWeight": round(aggregated_weight, 3),
        "deliveryOptionId": req.delivery_option_id,
    }
    courier = (req.shipping or {}).get("courier")
    if isinstance(courier, dict):
        details["courier"] = {
            "provider": (req.shipping or {}).get("source"),
            "serviceCode": courier.get("serviceCode"),
            "courierId": courier.get("courierId"),
            "courierName": courier.get("courierName"),
            "fee": courier.get("fee"),
            "currency": courier.get("currency") or req.currency,
        }
    return details


def _price_lines(req: CheckoutRequest, deadline: float):
    """
    Inside the open transaction: lock in stock and build item snapshots.
    Returns (items, subtotal, home_total, aggregated_weight).
    """
    cfg = current_app.config
    rate = Decimal(str(cfg.get("SIZE_MOD_RATE", "0.05")))
    home = cfg.get("HOME_CURRENCY", "NGN")

    items: list[OrderItem] = []
    subtotal = Decimal("0")
    home_total = Decimal("0")
    weight_total = 0.0

    for line in req.items:
        _check_deadline(deadline)
        variant = _find_variant(line)
        if variant is None:
            raise VariantNotFound(f"Variant not found: {line.product_id} {line.color}/{line.size}")
        product: Product = variant.product

        if not _take_stock(variant.id, line.quantity):
            raise InsufficientStock(f"Insufficient stock for {product.name}")

        unit_price = product.price_for(req.currency)
        if unit_price is None:
            raise ValidationError(f"{product.name} has no {req.currency} price")
        unit_price = Decimal(unit_price)

        size_mod = line.has_size_mod and bool(product.size_mods)
        mod_fee = (unit_price * rate).quantize(CENT, rounding=ROUND_HALF_UP) if size_mod else Decimal("0")
        line_total = ((unit_price + mod_fee) * line.quantity).quantize(CENT, rounding=ROUND_HALF_UP)
        subtotal += line_total

        # home-currency mirror ignores the selected currency on purpose
        home_total += Decimal(product.price_for(home) or 0) * line.quantity

        unit_weight = line.unit_weight if line.unit_weight is not None else (variant.weight or 0.0)
        weight_total += unit_weight * line.quantity

        custom = dict(line.custom_size or {})
        custom.update(unitWeight=unit_weight, totalWeight=round(unit_weight * line.quantity, 3))

        items.append(OrderItem(
            variant_id=variant.id,
            name=product.name,
            image=product.primary_image,
            category=product.category_slug,
            quantity=line.quantity,
            currency=req.currency,
            line_total=line_total,
            color=variant.color or "N/A",
            size=variant.size or "N/A",
            has_size_mod=size_mod,
            size_mod_fee=mod_fee,
            custom_size=custom,
        ))

    return items, subtotal, home_total, weight_total


def _create_order(req: CheckoutRequest, *, channel: str, tx: Verified | None = None, staff=None) -> Order:
    """Runs inside the session's open transaction; the caller commits or rolls back."""
    deadline = _bound_transaction_time()
    items, subtotal, home_total, weight = _price_lines(req, deadline)

    if tx is not None:
        expected = to_lowest_denomination(subtotal + req.delivery_fee)
        if tx.amount != expected:
            raise AmountMismatch(
                f"Payment amount mismatch: expected {expected}, got {tx.amount}",
                details={"expected": expected, "captured": tx.amount, "currency": tx.currency},
            )

    prefix = current_app.config.get("ORDER_ID_PREFIX", "M-ORD")
    order_id = assert_order_id(format_order_id(allocate_serial(), prefix), prefix)

    customer, guest = _resolve_customer(req.customer)
    order = Order(
        id=order_id,
        status="Processing",
        currency=req.currency,
        total_amount=subtotal,
        total_ngn=int(home_total.quantize(Decimal("1"), rounding=ROUND_HALF_UP)),
        payment_method=req.payment_method,
        payment_reference=req.payment_reference,
        payment_provider_id=tx.transaction_id if tx is not None else None,
        payment_verified=tx is not None,
        channel=channel,
        customer=customer,
        guest_info=guest,
        staff_id=staff.id if staff is not None else None,
        delivery_fee=req.delivery_fee,
        delivery_details=_delivery_details(req, weight),
        created_at=req.timestamp or utcnow(),
        items=items,
    )
    db.session.add(order)
    if order.recipient_email:
        enqueue_receipt(order)
    if staff is not None:
        db.session.add(OfflineSale(order=order, staff_id=staff.id))
    if tx is not None:
        mark_matched(tx.reference, f"Payment matched to order {order_id}")
    db.session.flush()
    _check_deadline(deadline)
    return order


def _existing_for_reference(reference: str | None) -> Order | None:
    if not reference:
        return None
    return Order.query.filter_by(payment_reference=reference).first()


def _patch_payment_fields(order: Order, tx: Verified) -> None:
    changed = False
    if not order.payment_verified:
        order.payment_verified = True
        changed = True
    if tx.transaction_id and order.payment_provider_id != tx.transaction_id:
        order.payment_provider_id = tx.transaction_id
        changed = True
    if changed:
        db.session.commit()


def _commit_new_order(req: CheckoutRequest, **kwargs) -> PlacementResult:
    try:
        order = _create_order(req, **kwargs)
        db.session.commit()
    except (IntegrityError, CheckoutError):
        # a concurrent checkout with the same reference may have won the stock or the unique key
        db.session.rollback()
        existing = _existing_for_reference(req.payment_reference)
        if existing is None:
            raise
        log.info("Duplicate checkout for reference %s resolved to %s", req.payment_reference, existing.id)
        return PlacementResult(existing, False, existing.recipient_email)
    except Exception:
        db.session.rollback()
        raise

    log.info("Order %s created (%s, %s %s)", order.id, order.channel, order.total_amount, order.currency)
    result = PlacementResult(order, True, order.recipient_email)
    if order.receipt_status is not None:
        result.receipt_sent = dispatch_receipt(order)
    return result


# ---- public operations ------------------------------------------------------

def place_online_order(req: CheckoutRequest) -> PlacementResult:
    tx = verify_transaction(req.payment_reference)
    if isinstance(tx, Failed):
        raise PaymentVerificationError(f"Payment verification failed: {tx.reason}")
    if tx.currency != req.currency:
        raise PaymentVerificationError(f"Currency mismatch: expected {req.currency}, got {tx.currency}")

    existing = _existing_for_reference(req.payment_reference)
    if existing is not None:
        _patch_payment_fields(existing, tx)
        return PlacementResult(existing, False, existing.recipient_email or req.customer.get("email"))

    try:
        return _commit_new_order(req, channel="ONLINE", tx=tx)
    except AmountMismatch:
        record_orphan(tx, "Amount mismatch between expected order total and captured payment")
        raise


def place_offline_order(req: CheckoutRequest, staff) -> PlacementResult:
    """Sale logged by staff in store: no gateway, same stock/serial transaction."""
    existing = _existing_for_reference(req.payment_reference)
    if existing is not None:
        return PlacementResult(existing, False, existing.recipient_email)
    return _commit_new_order(req, channel="OFFLINE", staff=staff)


def update_order_status(order_id: str, status: str) -> Order:
    if status not in ORDER_STATUSES:
        raise ValidationError("Invalid status")
    order = db.session.get(Order, order_id)
    if order is None:
        raise LookupError(f"Order {order_id} not found")
    order.status = status
    db.session.commit()

    to = order.recipient_email
    if to:
        try:
            send_email(
                subject=f"Order {order.id} is now {status}",
                recipients=[to],
                body=f"Hi {order.recipient.get('firstName') or ''},\n\nyour order {order.id} is now {status}.",
            )
        except Exception:
            current_app.logger.exception("Status email for order %s failed", order.id)
    return order


def serialize_order(o: Order) -> dict:
    return {
        "id": o.id,
        "status": o.status,
        "channel": o.channel,
        "currency": o.currency,
        "totalAmount": float(o.total_amount),
        "totalNGN": o.total_ngn,
        "deliveryFee": float(o.delivery_fee or 0),
        "grandTotal": float(o.grand_total),
        "paymentMethod": o.payment_method,
        "paymentReference": o.payment_reference,
        "paymentVerified": o.payment_verified,
        "customerId": o.customer_id,
        "guestInfo": o.guest_info,
        "deliveryDetails": o.delivery_details,
        "createdAt": o.created_at.isoformat() if o.created_at else None,
        "items": [
            {
                "id": it.id,
                "variantId": it.variant_id,
                "name": it.name,
                "image": it.image,
                "category": it.category,
                "quantity": it.quantity,
                "color": it.color,
                "size": it.size,
                "lineTotal": float(it.line_total),
                "hasSizeMod": it.has_size_mod,
                "sizeModFee": float(it.size_mod_fee or 0),
                "customSize": it.custom_size,
            }
            for it in o.items
        ],
    }
