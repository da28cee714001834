from __future__ import annotations

from io import BytesIO
from typing import Iterable, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from invoicegen.models.invoice import Invoice
from invoicegen.services.totals import format_amount, line_amount


def safe_filename(name: str) -> str:
    cleaned = "".join(ch if ch.isalnum() or ch in {"-", "_", "."} else "-" for ch in name)
    return cleaned.strip("-") or "invoice"


def invoice_filename(invoice: Invoice) -> str:
    return f"invoice-{safe_filename(invoice.invoice_number or invoice.id)}.pdf"


def _address_lines(address: Optional[dict]) -> list[str]:
    address = address or {}
    city_line = " ".join(part for part in [address.get("city"), address.get("postalCode")] if part)
    return [
        line
        for line in [address.get("name"), address.get("address"), city_line, address.get("country")]
        if line
    ]


def _draw_lines(c: canvas.Canvas, x: float, y: float, lines: Iterable[str], leading: float = 4.5 * mm) -> float:
    for line in lines:
        c.drawString(x, y, line)
        y -= leading
    return y


def _draw_header(c: canvas.Canvas, invoice: Invoice) -> float:
    width, height = A4
    top = height - 20 * mm

    c.setFont("Helvetica-Bold", 18)
    c.drawString(20 * mm, top, "INVOICE")

    c.setFont("Helvetica", 9)
    meta = [
        f"Invoice #: {invoice.invoice_number or '-'}",
        f"Date: {invoice.invoice_date.isoformat()}",
    ]
    if invoice.due_date:
        meta.append(f"Due: {invoice.due_date.isoformat()}")
    y = top
    for line in meta:
        c.drawRightString(width - 20 * mm, y, line)
        y -= 4.5 * mm

    if invoice.logo_url:
        c.setFillColor(colors.grey)
        c.drawString(20 * mm, top - 6 * mm, invoice.logo_url)
        c.setFillColor(colors.black)

    return min(y, top - 12 * mm) - 6 * mm


def _draw_parties(c: canvas.Canvas, invoice: Invoice, y: float) -> float:
    width, _ = A4
    c.setFont("Helvetica-Bold", 10)
    c.drawString(20 * mm, y, "From")
    c.drawString(width / 2, y, "Bill To")
    c.setFont("Helvetica", 9)
    left_end = _draw_lines(c, 20 * mm, y - 5 * mm, _address_lines(invoice.sender))
    right_end = _draw_lines(c, width / 2, y - 5 * mm, _address_lines(invoice.recipient))
    return min(left_end, right_end) - 8 * mm


def _draw_items(c: canvas.Canvas, invoice: Invoice, y: float) -> float:
    width, _ = A4
    left, right = 20 * mm, width - 20 * mm
    qty_x, price_x = right - 70 * mm, right - 35 * mm

    c.setFillColor(colors.HexColor("#f3f4f6"))
    c.rect(left, y - 2 * mm, right - left, 7 * mm, fill=1, stroke=0)
    c.setFillColor(colors.black)
    c.setFont("Helvetica-Bold", 9)
    c.drawString(left + 2 * mm, y, "Description")
    c.drawRightString(qty_x, y, "Qty")
    c.drawRightString(price_x, y, "Unit Price")
    c.drawRightString(right - 2 * mm, y, "Amount")
    y -= 8 * mm

    c.setFont("Helvetica", 9)
    for item in invoice.items:
        c.drawString(left + 2 * mm, y, (item.description or "")[:70])
        c.drawRightString(qty_x, y, f"{item.quantity:g}")
        c.drawRightString(price_x, y, f"{item.unit_price:,.2f}")
        c.drawRightString(right - 2 * mm, y, f"{line_amount(item):,.2f}")
        y -= 6 * mm
    return y


def _draw_totals(c: canvas.Canvas, invoice: Invoice, y: float) -> None:
    width, _ = A4
    right = width - 20 * mm
    label_x = right - 45 * mm
    y -= 4 * mm
    c.line(label_x, y + 4 * mm, right, y + 4 * mm)

    rows = [
        ("Subtotal", invoice.subtotal),
        (f"Tax ({invoice.tax_rate:g}%)", invoice.tax_amount),
    ]
    c.setFont("Helvetica", 9)
    for label, amount in rows:
        c.drawString(label_x, y, label)
        c.drawRightString(right, y, format_amount(amount, invoice.currency))
        y -= 5 * mm

    c.setFont("Helvetica-Bold", 11)
    c.drawString(label_x, y, "Total")
    c.drawRightString(right, y, format_amount(invoice.total, invoice.currency))


def render_invoice_pdf(invoice: Invoice) -> bytes:
    """Render ``invoice`` to a single-page A4 PDF and return the bytes."""
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    c.setTitle(invoice_filename(invoice))

    y = _draw_header(c, invoice)
    y = _draw_parties(c, invoice, y)
    y = _draw_items(c, invoice, y)
    _draw_totals(c, invoice, y)

    c.showPage()
    c.save()
    return buffer.getvalue()
