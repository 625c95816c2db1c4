# storefront/models/order.py
from decimal import Decimal

from storefront.extensions import db
from storefront.timeutil import utcnow

ORDER_STATUSES = ("Processing", "Shipped", "Delivered", "Cancelled")
ORDER_CHANNELS = ("ONLINE", "OFFLINE")
REFUND_STATUSES = ("Pending", "Completed", "Failed")


class Order(db.Model):
    __tablename__ = "order"
    __table_args__ = (
        db.Index("ix_order_status_created_at", "status", "created_at"),
        db.Index("ix_order_channel_created_at", "channel", "created_at"),
    )

    # formatted serial, e.g. "M-ORD-007"
    id = db.Column(db.String(32), primary_key=True)
    status = db.Column(db.String(32), nullable=False, default="Processing")
    currency = db.Column(db.String(3), nullable=False)

    # items subtotal in the order currency; delivery fee is kept separately
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    # home-currency mirror (unit price x qty), whole units
    total_ngn = db.Column(db.Integer, nullable=False, default=0)

    # payment
    payment_method = db.Column(db.String(40), nullable=False)
    payment_reference = db.Column(db.String(120), unique=True, nullable=True, index=True)
    payment_provider_id = db.Column(db.String(64), nullable=True)
    payment_verified = db.Column(db.Boolean, nullable=False, default=False)

    channel = db.Column(db.String(16), nullable=False, default="ONLINE")

    # customer link or guest snapshot
    customer_id = db.Column(
        db.Integer, db.ForeignKey("customer.id", ondelete="SET NULL"), nullable=True, index=True
    )
    guest_info = db.Column(db.JSON, nullable=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"), nullable=True)

    # delivery
    delivery_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    delivery_details = db.Column(db.JSON, nullable=True)

    # refunds
    refunded_at = db.Column(db.DateTime, nullable=True)
    refund_reason = db.Column(db.Text, nullable=True)
    refund_transaction_id = db.Column(db.String(64), nullable=True)
    refund_status = db.Column(db.String(16), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    customer = db.relationship("Customer", back_populates="orders")
    items = db.relationship(
        "OrderItem", back_populates="order", lazy=True, cascade="all, delete-orphan"
    )
    receipt_status = db.relationship(
        "ReceiptEmailStatus", back_populates="order", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def grand_total(self) -> Decimal:
        return Decimal(self.total_amount or 0) + Decimal(self.delivery_fee or 0)

    @property
    def recipient(self) -> dict:
        """Contact details of whoever placed the order (customer or guest)."""
        if self.customer is not None:
            c = self.customer
            return {
                "firstName": c.first_name,
                "lastName": c.last_name,
                "email": c.email,
                "phone": c.phone,
                "deliveryAddress": c.delivery_address,
                "billingAddress": c.billing_address,
            }
        return dict(self.guest_info or {})

    @property
    def recipient_email(self):
        return (self.recipient.get("email") or "").strip() or None

    def __repr__(self):
        return f"<Order {self.id} {self.status} {self.currency} {self.total_amount}>"
