# storefront/models/orphan_payment.py
from storefront.extensions import db
from storefront.timeutil import utcnow


class OrphanPayment(db.Model):
    """Gateway-confirmed payment that did not produce an order."""

    __tablename__ = "orphan_payment"

    id = db.Column(db.Integer, primary_key=True)
    reference = db.Column(db.String(120), unique=True, nullable=False, index=True)
    # lowest denomination (kobo, cents)
    amount = db.Column(db.BigInteger, nullable=False)
    currency = db.Column(db.String(3), nullable=False)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    first_seen_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    reconciled = db.Column(db.Boolean, default=False, nullable=False, index=True)
    reconciled_at = db.Column(db.DateTime, nullable=True)
    resolution_note = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reference": self.reference,
            "amount": self.amount,
            "currency": self.currency,
            "payload": self.payload,
            "firstSeenAt": self.first_seen_at.isoformat() if self.first_seen_at else None,
            "reconciled": self.reconciled,
            "reconciledAt": self.reconciled_at.isoformat() if self.reconciled_at else None,
            "resolutionNote": self.resolution_note,
        }

    def __repr__(self):
        return f"<OrphanPayment {self.reference} {self.amount} {self.currency}>"
