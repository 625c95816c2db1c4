# storefront/models/offline_sale.py
from storefront.extensions import db
from storefront.timeutil import utcnow


class OfflineSale(db.Model):
    __tablename__ = "offline_sale"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(32), db.ForeignKey("order.id"), unique=True, nullable=False)
    staff_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    timestamp = db.Column(db.DateTime, default=utcnow, nullable=False)

    order = db.relationship("Order")
    staff = db.relationship("User", back_populates="offline_sales")
