# storefront/services/serials.py
import re

from storefront.extensions import db
from storefront.models import OrderSerial
from storefront.services.errors import SerialFormatError


def allocate_serial() -> int:
    """Insert a counter row inside the caller's transaction and return its id.

    Gaps are fine (a rolled back checkout burns its number), duplicates are not;
    the database hands out each id exactly once.
    """
    row = OrderSerial()
    db.session.add(row)
    db.session.flush()
    return int(row.id)


def format_order_id(serial: int, prefix: str) -> str:
    return f"{prefix}-{int(serial):03d}"


def assert_order_id(order_id: str, prefix: str) -> str:
    if not re.fullmatch(re.escape(prefix) + r"-\d{3,}", order_id or ""):
        raise SerialFormatError(f"Generated order id {order_id!r} does not match {prefix}-###")
    return order_id
