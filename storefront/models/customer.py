# storefront/models/customer.py
from storefront.extensions import db
from storefront.timeutil import utcnow


class Customer(db.Model):
    __tablename__ = "customer"

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(120), nullable=False)
    last_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    phone = db.Column(db.String(40), nullable=True)
    delivery_address = db.Column(db.Text, nullable=True)
    billing_address = db.Column(db.Text, nullable=True)
    country = db.Column(db.String(80), nullable=True)
    state = db.Column(db.String(80), nullable=True)
    registered_at = db.Column(db.DateTime, default=utcnow)

    orders = db.relationship("Order", back_populates="customer", lazy=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Customer {self.email}>"
