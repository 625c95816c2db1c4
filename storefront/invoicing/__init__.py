# storefront/invoicing/__init__.py
import io
from datetime import datetime
from decimal import Decimal

from flask import current_app


def _money(v) -> str:
    return f"{Decimal(v or 0):,.2f}"


def _fmt_dt(dt) -> str:
    return dt.strftime("%Y-%m-%d") if isinstance(dt, datetime) else "-"


def build_receipt_pdf_bytes(order) -> bytes:
    """
    One-page PDF invoice for an order: buyer block, one row per order item,
    delivery fee row and the grand total. Amounts are printed with the ISO
    currency code since the base fonts have no naira sign.
    """
    from reportlab.lib.pagesizes import A4
    from reportlab.lib.units import mm
    from reportlab.pdfgen import canvas

    reg_font, bold_font = "Helvetica", "Helvetica-Bold"
    brand = current_app.config.get("BRAND_NAME", "Marobi")
    cur = order.currency

    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    w, h = A4

    c.setFont(bold_font, 16)
    c.drawString(20 * mm, h - 18 * mm, f"{brand} - INVOICE")

    c.setFont(reg_font, 10)
    c.drawRightString(w - 20 * mm, h - 26 * mm, f"Order: {order.id}")
    c.drawRightString(w - 20 * mm, h - 31 * mm, f"Date: {_fmt_dt(order.created_at)}")
    if order.payment_reference:
        c.drawRightString(w - 20 * mm, h - 36 * mm, f"Payment ref: {order.payment_reference}")

    r = order.recipient
    y = h - 48 * mm
    c.setFont(bold_font, 11)
    c.drawString(20 * mm, y, "Billed to")
    y -= 6 * mm
    c.setFont(reg_font, 10)
    name = " ".join(x for x in (r.get("firstName"), r.get("lastName")) if x) or "-"
    for line in (name, r.get("deliveryAddress"), r.get("email"), r.get("phone")):
        if line:
            c.drawString(20 * mm, y, str(line)[:95])
            y -= 5 * mm
    y -= 5 * mm

    c.setFont(bold_font, 10)
    c.drawString(20 * mm, y, "Item")
    c.drawRightString(130 * mm, y, "Qty")
    c.drawRightString(190 * mm, y, f"Total ({cur})")
    y -= 5 * mm
    c.line(20 * mm, y, 190 * mm, y)
    y -= 6 * mm
    c.setFont(reg_font, 10)

    for it in order.items:
        label = f"{it.name} ({it.color}/{it.size})"
        if it.has_size_mod:
            label += " + size mod"
        c.drawString(20 * mm, y, label[:70])
        c.drawRightString(130 * mm, y, str(it.quantity))
        c.drawRightString(190 * mm, y, _money(it.line_total))
        y -= 6 * mm
        if y < 40 * mm:
            c.showPage()
            c.setFont(reg_font, 10)
            y = h - 20 * mm

    y -= 2 * mm
    c.drawString(20 * mm, y, "Subtotal")
    c.drawRightString(190 * mm, y, _money(order.total_amount))
    y -= 6 * mm
    c.drawString(20 * mm, y, "Delivery")
    c.drawRightString(190 * mm, y, _money(order.delivery_fee))
    y -= 8 * mm

    c.setFont(bold_font, 11)
    c.drawRightString(150 * mm, y, "TOTAL:")
    c.drawRightString(190 * mm, y, f"{_money(order.grand_total)} {cur}")

    c.showPage()
    c.save()
    buf.seek(0)
    return buf.getvalue()
