# storefront/models/receipt_email_status.py
from storefront.extensions import db
from storefront.timeutil import utcnow


class ReceiptEmailStatus(db.Model):
    """Outbox row for the receipt email of one order."""

    __tablename__ = "receipt_email_status"

    order_id = db.Column(
        db.String(32), db.ForeignKey("order.id", ondelete="CASCADE"), primary_key=True
    )
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)
    next_retry_at = db.Column(db.DateTime, nullable=True, index=True)
    sent = db.Column(db.Boolean, nullable=False, default=False)
    delivery_fee = db.Column(db.Numeric(12, 2), nullable=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    order = db.relationship("Order", back_populates="receipt_status")
