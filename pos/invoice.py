"""Printable invoice for a finished transaction, rendered with PyMuPDF."""
from datetime import datetime
from typing import List, NamedTuple, Optional

import fitz  # PyMuPDF

from pos.checkout import compute_totals
from pos.config import Settings
from pos.domain import Transaction
from pos.logging import get_logger

LOG = get_logger("invoice")

# base-14 Helvetica has no peso sign
CURRENCY = "P"
HEADER_FILL = (41 / 255, 128 / 255, 185 / 255)
WHITE = (1, 1, 1)
BLACK = (0, 0, 0)
GREY = (100 / 255, 100 / 255, 100 / 255)
MARGIN = 56  # ~20 mm
ROW_HEIGHT = 20


class InvoiceRow(NamedTuple):
    label: str
    amount: str
    bold: bool = False


def money(value: float) -> str:
    return f"{CURRENCY}{value:,.2f}"


def invoice_rows(tx: Transaction) -> List[InvoiceRow]:
    rows = [
        InvoiceRow(item.product_name + (f" - {item.details}" if item.details else ""), money(item.price))
        for item in tx.items
    ]
    totals = compute_totals((i.price for i in tx.items), tx.discount_percent)
    rows.append(InvoiceRow("SUBTOTAL", money(totals.subtotal), True))
    if totals.discount_percent > 0:
        rows.append(InvoiceRow(f"DISCOUNT ({totals.discount_percent:g}%)", f"-{money(totals.discount_amount)}", True))
    rows.append(InvoiceRow("TOTAL", money(totals.total), True))
    return rows


def format_invoice_date(d: Optional[datetime]) -> str:
    if d is None:
        return "-"
    hour = d.hour % 12 or 12
    return f"{d.month}/{d.day}/{d.year}, {hour}:{d:%M:%S %p}"


def invoice_filename(tx: Transaction, now: datetime) -> str:
    return f"invoice-{tx.id}-{int(now.timestamp() * 1000)}.pdf"


def _centered(page: fitz.Page, y: float, text: str, fontsize: float, fontname: str = "helv") -> None:
    width = fitz.get_text_length(text, fontname=fontname, fontsize=fontsize)
    page.insert_text(((page.rect.width - width) / 2, y), text, fontsize=fontsize, fontname=fontname, color=BLACK)


def _right(page: fitz.Page, x: float, y: float, text: str, fontsize: float, fontname: str) -> None:
    width = fitz.get_text_length(text, fontname=fontname, fontsize=fontsize)
    page.insert_text((x - width, y), text, fontsize=fontsize, fontname=fontname, color=BLACK)


def render_invoice_pdf(tx: Transaction, settings: Settings) -> bytes:
    """Build a one-page A4 invoice and return the PDF bytes."""
    LOG.info(f"Rendering invoice for transaction {tx.id}")
    width, height = fitz.paper_size("a4")
    doc = fitz.open()
    try:
        page = doc.new_page(width=width, height=height)

        _centered(page, 60, settings.business_name, 22, "hebo")
        y = 80
        for line in (*settings.business_address, settings.business_contact):
            _centered(page, y, line, 12)
            y += 16

        _centered(page, y + 30, "INVOICE", 18, "hebo")
        y += 60
        for line in (
            f"Receipt #: {tx.id}",
            f"Date: {format_invoice_date(tx.finished_at)}",
            f"Customer: {tx.customer_name}",
        ):
            page.insert_text((MARGIN, y), line, fontsize=10, fontname="helv", color=BLACK)
            y += 14

        y += 10
        left, right = MARGIN, width - MARGIN
        header = fitz.Rect(left, y, right, y + ROW_HEIGHT)
        page.draw_rect(header, color=HEADER_FILL, fill=HEADER_FILL)
        page.insert_text((left + 6, y + 14), "Product", fontsize=10, fontname="hebo", color=WHITE)
        price_head = "Price (P)"
        price_width = fitz.get_text_length(price_head, fontname="hebo", fontsize=10)
        page.insert_text((right - 6 - price_width, y + 14), price_head, fontsize=10, fontname="hebo", color=WHITE)
        y += ROW_HEIGHT

        for row in invoice_rows(tx):
            if y + ROW_HEIGHT > height - 2 * MARGIN:
                page = doc.new_page(width=width, height=height)
                y = MARGIN
            font = "hebo" if row.bold else "helv"
            page.insert_text((left + 6, y + 14), row.label, fontsize=10, fontname=font, color=BLACK)
            _right(page, right - 6, y + 14, row.amount, 10, font)
            page.draw_line((left, y + ROW_HEIGHT), (right, y + ROW_HEIGHT), color=GREY, width=0.3)
            y += ROW_HEIGHT

        for p in doc:
            for offset, line in ((60, "Thank you for your business!"), (45, "For any inquiries, please contact our office.")):
                text_width = fitz.get_text_length(line, fontname="helv", fontsize=10)
                p.insert_text(((width - text_width) / 2, height - offset), line, fontsize=10, fontname="helv", color=GREY)

        return doc.tobytes()
    finally:
        doc.close()
