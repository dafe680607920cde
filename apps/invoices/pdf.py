"""
Invoice PDF rendering with Pillow.

Pages are drawn as A4 rasters (coordinates below are in PDF points, scaled on draw)
and written with Pillow's PDF encoder, one PDF page per raster.
"""
import io
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from functools import lru_cache
from typing import List, Optional, Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont

from common.dates import format_display_date

PAGE_WIDTH, PAGE_HEIGHT = 595, 842  # A4 in points
MARGIN = 40
CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN
SCALE = 2  # 144 dpi raster

COLUMN_WIDTHS = (45, CONTENT_WIDTH - 45 - 90 - 100, 90, 100)
COLUMN_ALIGNS = ("center", "left", "center", "right")
ROW_HEIGHT, HEADER_HEIGHT = 30, 32

BLACK = "#1a1a1a"
DARK_GRAY = "#374151"
MID_GRAY = "#6b7280"
LIGHT_GRAY = "#e5e7eb"
LIGHTER_GRAY = "#f3f4f6"
STRIPE = "#fafbfc"

_REGULAR_FONTS = ("DejaVuSans.ttf", "Arial.ttf", "LiberationSans-Regular.ttf")
_BOLD_FONTS = ("DejaVuSans-Bold.ttf", "Arial Bold.ttf", "LiberationSans-Bold.ttf")


@dataclass
class InvoiceLine:
    sr_no: int
    description: str
    purpose_code: str
    total: Decimal


@dataclass
class IssuerDetails:
    name: str
    address_lines: List[str] = field(default_factory=list)
    registration_lines: List[str] = field(default_factory=list)
    email: Optional[str] = None
    bank_rows: List[Tuple[str, str]] = field(default_factory=list)
    intermediary_rows: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class InvoiceDocument:
    invoice_no: str
    invoice_date: date
    buyer_name: str
    buyer_address: str
    buyer_country: Optional[str]
    currency: str
    lines: List[InvoiceLine]
    total_amount: Decimal
    issuer: IssuerDetails


def parse_detail_rows(text: str) -> List[Tuple[str, str]]:
    """
    "LABEL: value" per line -> [(LABEL, value)]. Lines without a colon become value-only rows.
    """
    rows = []
    for line in (text or "").splitlines():
        line = line.strip()
        if not line:
            continue
        label, sep, value = line.partition(":")
        rows.append((label.strip().upper(), value.strip()) if sep else ("", line))
    return rows


def format_amount(value) -> str:
    return f"{Decimal(str(value or 0)):,.2f}"


@lru_cache(maxsize=32)
def _font(size: float, bold: bool = False):
    px = round(size * SCALE)
    for name in _BOLD_FONTS if bold else _REGULAR_FONTS:
        try:
            return ImageFont.truetype(name, px)
        except OSError:
            continue
    return ImageFont.load_default(size=px)


class _Page:
    def __init__(self):
        self.image = Image.new("RGB", (PAGE_WIDTH * SCALE, PAGE_HEIGHT * SCALE), "white")
        self.draw = ImageDraw.Draw(self.image)

    def text(self, x, y, value: str, size: float = 9, bold: bool = False, fill: str = DARK_GRAY,
             align: str = "left", width: Optional[float] = None) -> None:
        font = _font(size, bold)
        value = value or ""
        if align != "left" and width:
            length = self.draw.textlength(value, font=font) / SCALE
            x = x + (width - length) / 2 if align == "center" else x + width - length
        self.draw.text((x * SCALE, y * SCALE), value, font=font, fill=fill)

    def line(self, x1, y1, x2, y2, fill: str = LIGHT_GRAY, width: float = 0.5) -> None:
        self.draw.line((x1 * SCALE, y1 * SCALE, x2 * SCALE, y2 * SCALE), fill=fill, width=max(1, round(width * SCALE)))

    def rect(self, x, y, w, h, fill: str, radius: float = 0) -> None:
        box = (x * SCALE, y * SCALE, (x + w) * SCALE, (y + h) * SCALE)
        if radius:
            self.draw.rounded_rectangle(box, radius=radius * SCALE, fill=fill)
        else:
            self.draw.rectangle(box, fill=fill)


def _add_page(pages: List[_Page]) -> _Page:
    pages.append(_Page())
    return pages[-1]


def _pages_to_pdf(pages: Sequence[_Page]) -> bytes:
    buf = io.BytesIO()
    first, *rest = [page.image for page in pages]
    first.save(buf, format="PDF", resolution=72 * SCALE, save_all=True, append_images=rest)
    return buf.getvalue()


def _column_height(rows: Sequence[Tuple[str, str]]) -> float:
    return sum(24 if label else 14 for label, _ in rows)


def _detail_column(page: _Page, x: float, y: float, rows: Sequence[Tuple[str, str]]) -> float:
    for label, value in rows:
        if label:
            page.text(x, y, label, size=7, fill=MID_GRAY)
            y += 10
        page.text(x, y, value, size=8.5, bold=True)
        y += 14
    return y


def _table_header(page: _Page, y: float, currency: str) -> float:
    labels = ("Sr No.", "Description", "Purpose Code", f"Total ({currency})")
    page.rect(MARGIN, y, CONTENT_WIDTH, HEADER_HEIGHT, BLACK)
    x = MARGIN
    for label, width, align in zip(labels, COLUMN_WIDTHS, COLUMN_ALIGNS):
        if align == "left":
            page.text(x + 8, y + 10, label, bold=True, fill="white")
        else:
            page.text(x, y + 10, label, bold=True, fill="white", align=align, width=width - (8 if align == "right" else 0))
        x += width
    return y + HEADER_HEIGHT


def layout_invoice_pages(doc: InvoiceDocument) -> List[_Page]:
    """
    Draw the invoice onto as many A4 pages as it needs. Line items that do not fit continue
    on a new page under a repeated table header; the total, remittance details and signature
    move to a new page together when they do not fit below the table.
    """
    pages = [_Page()]
    page = pages[0]
    left, right = MARGIN, PAGE_WIDTH - MARGIN
    bottom = PAGE_HEIGHT - MARGIN
    widths = COLUMN_WIDTHS
    issuer = doc.issuer

    y = MARGIN
    page.text(left, y, "INVOICE", size=28, bold=True, fill=BLACK)
    y += 36
    page.line(left, y, left + 90, y, fill=BLACK, width=2)
    y += 20

    # Issuer block (left), invoice number and date (right)
    top = y
    meta_x = right - 190
    page.rect(meta_x - 10, top - 6, 200, 56, LIGHTER_GRAY, radius=4)
    page.text(meta_x, top, "Invoice No", size=8, fill=MID_GRAY)
    page.text(meta_x, top + 12, doc.invoice_no, size=11, bold=True, fill=BLACK)
    page.text(meta_x + 110, top, "Date", size=8, fill=MID_GRAY)
    page.text(meta_x + 110, top + 12, format_display_date(doc.invoice_date), size=11, bold=True, fill=BLACK)

    page.text(left, y, issuer.name, size=13, bold=True, fill=BLACK)
    y += 18
    for line in issuer.address_lines:
        page.text(left, y, line)
        y += 13
    y += 3
    for line in issuer.registration_lines:
        page.text(left, y, line, size=8, fill=MID_GRAY)
        y += 11
    if issuer.email:
        page.text(left, y, f"Email: {issuer.email}", size=8, fill=MID_GRAY)
        y += 11
    y = max(y, top + 60) + 11

    # Bill-to
    page.line(left, y, right, y)
    y += 16
    page.text(left, y, "INVOICE TO", size=8, fill=MID_GRAY)
    y += 14
    page.text(left, y, doc.buyer_name, size=12, bold=True, fill=BLACK)
    y += 16
    for line in (doc.buyer_address or "").split("\n"):
        if line.strip():
            page.text(left, y, line.strip(), size=9.5)
            y += 13
    if doc.buyer_country:
        page.text(left, y, doc.buyer_country, size=9.5)
        y += 13
    y += 10

    # Line items
    y = _table_header(page, y, doc.currency)
    for i, item in enumerate(doc.lines):
        if y + ROW_HEIGHT > bottom:
            page = _add_page(pages)
            y = _table_header(page, MARGIN, doc.currency)
        if i % 2 == 1:
            page.rect(left, y, CONTENT_WIDTH, ROW_HEIGHT, STRIPE)
        x = left
        page.text(x, y + 9, str(item.sr_no), align="center", width=widths[0])
        x += widths[0]
        page.text(x + 8, y + 9, item.description)
        x += widths[1]
        page.text(x, y + 9, item.purpose_code, align="center", width=widths[2])
        x += widths[2]
        page.text(x, y + 9, format_amount(item.total), align="right", width=widths[3] - 8)
        page.line(left, y + ROW_HEIGHT, right, y + ROW_HEIGHT, width=0.3)
        y += ROW_HEIGHT

    # Total, remittance details and signature stay on one page
    remit_height = _column_height(issuer.bank_rows)
    if issuer.intermediary_rows:
        remit_height = max(remit_height, 16 + _column_height(issuer.intermediary_rows))
    closing_height = (ROW_HEIGHT + 24) + 32 + remit_height + 16 + 60
    if y + closing_height > bottom:
        page = _add_page(pages)
        y = MARGIN

    page.rect(left, y, CONTENT_WIDTH, ROW_HEIGHT + 4, LIGHTER_GRAY)
    page.text(left + widths[0] + 8, y + 10, "TOTAL", size=10, bold=True, fill=BLACK)
    page.text(right - widths[3], y + 10, format_amount(doc.total_amount), size=10, bold=True, fill=BLACK,
              align="right", width=widths[3] - 8)
    page.line(left, y + ROW_HEIGHT + 4, right, y + ROW_HEIGHT + 4, fill=BLACK, width=1)
    y += ROW_HEIGHT + 24

    # Remittance details
    page.line(left, y, right, y)
    y += 14
    page.text(left, y, "KINDLY REMIT FUNDS TO OUR BANK AS PER FOLLOWING DETAILS", size=8.5, bold=True, fill=BLACK)
    y += 18
    bank_y = _detail_column(page, left, y, issuer.bank_rows)
    inter_y = y
    if issuer.intermediary_rows:
        inter_x = left + CONTENT_WIDTH / 2 + 20
        page.text(inter_x, inter_y, "INTERMEDIARY / CORRESPONDENT BANK", size=8, bold=True, fill=BLACK)
        inter_y = _detail_column(page, inter_x, inter_y + 16, issuer.intermediary_rows)

    # Signature
    sig_y = max(bank_y, inter_y) + 16
    page.text(right - 160, sig_y, f"FOR {issuer.name.upper()}", bold=True, fill=BLACK, align="right", width=160)
    page.line(right - 150, sig_y + 36, right, sig_y + 36)
    page.text(right - 160, sig_y + 42, "AUTHORISED SIGNATORY", size=8, fill=MID_GRAY, align="right", width=160)

    return pages


def render_invoice_pdf(doc: InvoiceDocument) -> bytes:
    return _pages_to_pdf(layout_invoice_pages(doc))
