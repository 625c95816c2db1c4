# storefront/models/order_serial.py
from storefront.extensions import db


class OrderSerial(db.Model):
    """Append-only counter; each inserted row's id numbers one order."""

    __tablename__ = "order_serial"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
