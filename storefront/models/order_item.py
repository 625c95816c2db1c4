# storefront/models/order_item.py
from storefront.extensions import db


class OrderItem(db.Model):
    """Point-in-time snapshot of a purchased variant; never updated."""

    __tablename__ = "order_item"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.String(32), db.ForeignKey("order.id", ondelete="CASCADE"), nullable=False, index=True
    )
    variant_id = db.Column(db.Integer, db.ForeignKey("variant.id"), nullable=False)

    name = db.Column(db.String(150), nullable=False)
    image = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(120), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(3), nullable=False)
    line_total = db.Column(db.Numeric(12, 2), nullable=False)
    color = db.Column(db.String(60), nullable=False, default="N/A")
    size = db.Column(db.String(60), nullable=False, default="N/A")

    has_size_mod = db.Column(db.Boolean, nullable=False, default=False)
    # per-unit surcharge
    size_mod_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    custom_size = db.Column(db.JSON, nullable=True)

    order = db.relationship("Order", back_populates="items")
