# storefront/models/__init__.py
from .user import User
from .customer import Customer
from .product import Product
from .variant import Variant
from .order_serial import OrderSerial
from .order import Order
from .order_item import OrderItem
from .offline_sale import OfflineSale
from .orphan_payment import OrphanPayment
from .receipt_email_status import ReceiptEmailStatus
from .webhook_event import WebhookEvent

__all__ = [
    "User",
    "Customer",
    "Product",
    "Variant",
    "OrderSerial",
    "Order",
    "OrderItem",
    "OfflineSale",
    "OrphanPayment",
    "ReceiptEmailStatus",
    "WebhookEvent",
]
