"""
Pure-Python PDF generation using reportlab.

Table exports, invoice/quotation/bill documents and the analytics report.
All user text goes through Paragraphs so it wraps to the column width
instead of running off the page.
"""
from __future__ import annotations

import base64
import io
import ipaddress
import logging
import socket
from datetime import datetime
from typing import Sequence
from urllib.parse import urlparse
from xml.sax.saxutils import escape

import requests
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .aggregation import TOTAL_LABEL, DocumentsReport, TablesReport, totals_label_index
from .coercion import ColumnType
from .config import settings
from .documents import DocumentDraft, document_title
from .formatting import format_cell, format_money_pdf, format_number
from .models import Branding, TableColumn, TableRow
from .tables import row_value

logger = logging.getLogger(__name__)

INK = colors.HexColor("#0f172a")
SLATE = colors.HexColor("#1e293b")
MUTED = colors.HexColor("#64748b")
FAINT = colors.HexColor("#94a3b8")
RULE = colors.HexColor("#e2e8f0")
PANEL = colors.HexColor("#f8fafc")
HEADER_BAND = colors.HexColor("#f1f5f9")
REVENUE_GREEN = colors.HexColor("#16a34a")
EXPENSE_RED = colors.HexColor("#dc2626")
REPORT_BLUE = colors.HexColor("#2563eb")


def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    normal = ParagraphStyle("LedgerNormal", parent=base["Normal"], fontName="Helvetica", fontSize=10,
                            leading=13, textColor=SLATE)
    return {
        "title": ParagraphStyle("LedgerTitle", parent=base["Heading1"], fontSize=16, leading=20, textColor=INK),
        "doc_title": ParagraphStyle("DocTitle", parent=base["Heading1"], fontSize=20, leading=24,
                                    textColor=INK, alignment=TA_RIGHT),
        "business": ParagraphStyle("Business", parent=normal, fontName="Helvetica-Bold", fontSize=14,
                                   leading=17, textColor=INK),
        "normal": normal,
        "right": ParagraphStyle("Right", parent=normal, alignment=TA_RIGHT),
        "muted": ParagraphStyle("Muted", parent=normal, fontSize=11, textColor=MUTED),
        "heading": ParagraphStyle("Heading", parent=normal, fontName="Helvetica-Bold", fontSize=11, textColor=INK),
        "cell": ParagraphStyle("Cell", parent=normal, fontSize=9, leading=11),
        "cell_bold": ParagraphStyle("CellBold", parent=normal, fontName="Helvetica-Bold", fontSize=9, leading=11),
        "cell_head": ParagraphStyle("CellHead", parent=normal, fontName="Helvetica-Bold", fontSize=9,
                                    leading=11, textColor=colors.white),
        "cell_center": ParagraphStyle("CellCenter", parent=normal, fontSize=9, leading=11, alignment=TA_CENTER),
        "cell_right": ParagraphStyle("CellRight", parent=normal, fontSize=9, leading=11, alignment=TA_RIGHT),
        "terms": ParagraphStyle("Terms", parent=normal, fontSize=9, leading=12, textColor=colors.HexColor("#334155")),
    }


def _text(value: object) -> str:
    """Escape for Paragraph markup and keep the user's line breaks."""
    return escape(str(value or "")).replace("\n", "<br/>")


def _watermark(enabled: bool):
    def draw(canvas, doc) -> None:
        if not enabled:
            return
        width, _ = doc.pagesize
        canvas.saveState()
        canvas.setFont("Helvetica", 9)
        canvas.setFillColor(FAINT)
        canvas.drawRightString(width - 40, 18, f"Generated by {settings.brand_name}")
        canvas.restoreState()

    return draw


# ── table export ──────────────────────────────────────────────────────────────


def _totals_row(columns: Sequence[TableColumn], totals: dict[int, float], currency_code: str) -> list[str]:
    row = []
    for column in columns:
        if column.id not in totals:
            row.append("")
        elif ColumnType.parse(column.type) is ColumnType.CURRENCY:
            row.append(format_money_pdf(totals[column.id], currency_code))
        else:
            row.append(format_number(totals[column.id], currency_code))
    label_at = totals_label_index(columns, totals)
    if label_at is None:
        # every column is totalled; prefix the first sum
        row[0] = f"{TOTAL_LABEL}: {row[0]}"
    else:
        row[label_at] = TOTAL_LABEL
    return row


def generate_table_pdf(
    table_name: str,
    columns: Sequence[TableColumn],
    view_rows: Sequence[TableRow],
    totals: dict[int, float],
    currency_code: str = "INR",
    show_totals: bool = True,
    generated_at: datetime | None = None,
    watermark: bool = False,
) -> io.BytesIO:
    """Render the current view of a table; ``totals`` cover the whole table."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        leftMargin=40, rightMargin=40, topMargin=36, bottomMargin=36,
        title=f"{settings.brand_name} - {table_name}",
    )
    styles = _styles()
    generated_at = generated_at or datetime.now()

    elements = [
        Paragraph(_text(f"{settings.brand_name} - {table_name}"), styles["title"]),
        Paragraph(f"Generated: {generated_at:%d %b %Y, %I:%M %p}", styles["muted"]),
        Spacer(1, 14),
    ]

    head = [Paragraph(_text(column.name), styles["cell_head"]) for column in columns]
    body = [
        [
            Paragraph(_text(format_cell(row_value(row, column), column.type, currency_code, for_pdf=True)),
                      styles["cell"])
            for column in columns
        ]
        for row in view_rows
    ]
    has_totals = show_totals and bool(totals)
    if has_totals:
        body.append([Paragraph(_text(value), styles["cell_bold"])
                     for value in _totals_row(columns, totals, currency_code)])

    col_width = doc.width / max(len(columns), 1)
    grid = Table([head] + body, colWidths=[col_width] * len(columns), repeatRows=1)
    style = [
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#1e1e1e")),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("TOPPADDING", (0, 0), (-1, -1), 6),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
        ("LINEBELOW", (0, 0), (-1, -1), 0.5, RULE),
    ]
    if has_totals:
        style.append(("LINEABOVE", (0, -1), (-1, -1), 1, SLATE))
    grid.setStyle(TableStyle(style))
    elements.append(grid)

    doc.build(elements, onFirstPage=_watermark(watermark), onLaterPages=_watermark(watermark))
    buffer.seek(0)
    return buffer


# ── documents ─────────────────────────────────────────────────────────────────


def resolve_addresses(host: str) -> list[str]:
    return [info[4][0] for info in socket.getaddrinfo(host, None, proto=socket.IPPROTO_TCP)]


def is_public_url(url: str) -> bool:
    """Only http(s) URLs whose host resolves solely to globally routable addresses."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return False
    try:
        addresses = resolve_addresses(parsed.hostname)
    except (OSError, UnicodeError):
        return False
    if not addresses:
        return False
    for address in addresses:
        ip = ipaddress.ip_address(address.split("%", 1)[0])
        if ip.version == 6 and ip.ipv4_mapped:
            ip = ip.ipv4_mapped
        if not ip.is_global or ip.is_multicast:
            return False
    return True


def load_logo(source: str | None, timeout: float | None = None) -> bytes | None:
    """Logo bytes from a data: URL or http(s) URL; ``None`` when unusable."""
    if not source or not source.strip():
        return None
    source = source.strip()
    try:
        if source.startswith("data:image/"):
            _, encoded = source.split(",", 1)
            data = base64.b64decode(encoded)
        else:
            if not is_public_url(source):
                logger.warning("Logo at %s is not on a public host", source[:80])
                return None
            response = requests.get(
                source, timeout=timeout or settings.logo_fetch_timeout, allow_redirects=False
            )
            response.raise_for_status()
            content_type = response.headers.get("Content-Type", "").lower()
            if not (content_type.startswith("image/") or content_type.startswith("application/octet-stream")):
                logger.warning("Logo at %s is not an image (%s)", source, content_type)
                return None
            data = response.content
        ImageReader(io.BytesIO(data)).getSize()
    except Exception as exc:  # any unreachable or undecodable logo renders as no logo
        logger.warning("Logo skipped (%s): %s", source[:80], exc)
        return None
    return data


def _logo_flowable(data: bytes, max_size: float = 56) -> Image:
    width, height = ImageReader(io.BytesIO(data)).getSize()
    scale = min(max_size / width, max_size / height)
    return Image(io.BytesIO(data), width=width * scale, height=height * scale)


def generate_document_pdf(
    draft: DocumentDraft,
    branding: Branding | None = None,
    created_at: datetime | None = None,
    watermark: bool = False,
    logo: bytes | None = None,
) -> io.BytesIO:
    """Fixed-layout PDF for an invoice, quotation or bill."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=40, rightMargin=40, topMargin=30, bottomMargin=40)
    styles = _styles()
    currency = draft.currency_code
    totals = draft.totals
    title = document_title(draft.type)
    created_at = created_at or datetime.now()

    elements = []

    # Header: business identity on the left, document metadata on the right
    business_lines = [Paragraph(_text(getattr(branding, "business_name", None) or "Your Business"),
                                styles["business"])]
    for label, value in (
        ("", getattr(branding, "address", None)),
        ("Phone: ", getattr(branding, "phone", None)),
        ("Email: ", getattr(branding, "email", None)),
        ("GSTIN: ", getattr(branding, "gstin", None)),
    ):
        if value:
            business_lines.append(Paragraph(_text(f"{label}{value}"), styles["normal"]))

    meta_lines = [
        Paragraph(title, styles["doc_title"]),
        Paragraph(_text(f"No: {draft.doc_no or '-'}"), styles["right"]),
        Paragraph(f"Date: {created_at:%d %b %Y}", styles["right"]),
    ]

    right_width = 210
    if logo:
        logo_width = 66
        left = [[_logo_flowable(logo), business_lines]]
        left_width = doc.width - right_width - logo_width
        left_cell = Table(left, colWidths=[logo_width, left_width])
        left_cell.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP"),
                                       ("LEFTPADDING", (0, 0), (-1, -1), 0)]))
    else:
        left_cell = business_lines
    header = Table([[left_cell, meta_lines]], colWidths=[doc.width - right_width, right_width])
    header.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, -1), HEADER_BAND),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("TOPPADDING", (0, 0), (-1, -1), 14),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 14),
        ("LEFTPADDING", (0, 0), (-1, -1), 10),
        ("RIGHTPADDING", (0, 0), (-1, -1), 10),
    ]))
    elements.append(header)
    elements.append(Spacer(1, 20))

    elements.append(Paragraph(_text(totals.note), styles["normal"]))
    elements.append(Spacer(1, 14))

    # Recipient
    elements.append(Paragraph("Bill To", styles["heading"]))
    for value in (draft.customer_name, draft.customer_address,
                  f"Phone: {draft.customer_phone}" if draft.customer_phone else ""):
        if str(value).strip():
            elements.append(Paragraph(_text(value), styles["normal"]))
    elements.append(Spacer(1, 18))

    # Items
    head = [Paragraph(label, styles["cell_head"]) for label in ("Sr", "Description", "HSN/SAC", "Qty", "Rate", "Amount")]
    rows = [
        [
            Paragraph(str(index), styles["cell_center"]),
            Paragraph(_text(item.description), styles["cell"]),
            Paragraph(_text(item.hsn or "-"), styles["cell_center"]),
            Paragraph(format_number(item.qty), styles["cell_center"]),
            Paragraph(format_money_pdf(item.rate, currency), styles["cell_right"]),
            Paragraph(format_money_pdf(item.amount, currency), styles["cell_right"]),
        ]
        for index, item in enumerate(draft.items, start=1)
    ]
    fixed = 34 + 70 + 46 + 90 + 100
    items_table = Table([head] + rows, colWidths=[34, doc.width - fixed, 70, 46, 90, 100], repeatRows=1)
    items_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), SLATE),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LINEBELOW", (0, 0), (-1, -1), 0.5, RULE),
        ("TOPPADDING", (0, 0), (-1, -1), 6),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 18))

    # Totals box
    amounts = [
        ["Subtotal", format_money_pdf(totals.subtotal, currency)],
        [f"Tax ({format_number(totals.tax_percent)}%)", format_money_pdf(totals.tax_amount, currency)],
        ["Grand Total", format_money_pdf(totals.total, currency)],
    ]
    totals_table = Table(amounts, colWidths=[130, 120], hAlign="RIGHT")
    totals_table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("BACKGROUND", (0, 0), (-1, -1), PANEL),
        ("BOX", (0, 0), (-1, -1), 1, RULE),
        ("LINEABOVE", (0, -1), (-1, -1), 1, RULE),
        ("TOPPADDING", (0, -1), (-1, -1), 8),
    ]))
    elements.append(totals_table)
    elements.append(Spacer(1, 28))

    # Terms next to the signature line
    terms = [Paragraph("Terms &amp; Conditions", styles["heading"]), Spacer(1, 4),
             Paragraph(_text(totals.terms), styles["terms"])]
    signature = [Spacer(1, 40), Paragraph("<b>Authorised Signature</b>", styles["right"])]
    footer = Table([[terms, signature]], colWidths=[doc.width - 220, 220])
    footer.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "BOTTOM"),
        ("LINEABOVE", (1, 0), (1, 0), 1, FAINT),
        ("LEFTPADDING", (0, 0), (0, 0), 0),
    ]))
    elements.append(footer)

    doc.build(elements, onFirstPage=_watermark(watermark), onLaterPages=_watermark(watermark))
    buffer.seek(0)
    return buffer


# ── analytics ─────────────────────────────────────────────────────────────────


def generate_analytics_pdf(
    tables_report: TablesReport,
    documents_report: DocumentsReport | None = None,
    currency_code: str = "INR",
    generated_at: datetime | None = None,
    watermark: bool = False,
) -> io.BytesIO:
    """Financial summary of every table (and documents when given)."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=40, rightMargin=40, topMargin=30, bottomMargin=36)
    styles = _styles()
    generated_at = generated_at or datetime.now()

    banner = Table(
        [[Paragraph(f"<font color='white'><b>{_text(settings.brand_name)} - Analytics Report</b></font>",
                    styles["normal"]),
          Paragraph(f"<font color='white'>Generated: {generated_at:%d %b %Y}</font>", styles["right"])]],
        colWidths=[doc.width * 0.6, doc.width * 0.4],
    )
    banner.setStyle(TableStyle([("BACKGROUND", (0, 0), (-1, -1), REPORT_BLUE),
                                ("TOPPADDING", (0, 0), (-1, -1), 8),
                                ("BOTTOMPADDING", (0, 0), (-1, -1), 8)]))
    elements = [banner, Spacer(1, 18), Paragraph("Financial Summary", styles["title"]), Spacer(1, 6)]

    summary = tables_report.summary
    summary_table = Table(
        [
            ["Revenue", format_money_pdf(summary.revenue, currency_code)],
            ["Expense", format_money_pdf(summary.expense, currency_code)],
            ["Net Profit", format_money_pdf(summary.net, currency_code)],
        ],
        colWidths=[doc.width * 0.5, doc.width * 0.5],
    )
    summary_table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("TEXTCOLOR", (1, 0), (1, 0), REVENUE_GREEN),
        ("TEXTCOLOR", (1, 1), (1, 1), EXPENSE_RED),
        ("TEXTCOLOR", (1, 2), (1, 2), REVENUE_GREEN if summary.net >= 0 else EXPENSE_RED),
        ("LINEBELOW", (0, 0), (-1, -1), 0.5, RULE),
    ]))
    elements.append(summary_table)

    if tables_report.tables:
        elements += [Spacer(1, 18), Paragraph("By Table", styles["heading"]), Spacer(1, 6)]
        head = ["Table", "Rows", "Revenue", "Expense", "Net"]
        body = [
            [Paragraph(_text(t.name), styles["cell"]), str(t.row_count),
             format_money_pdf(t.summary.revenue, currency_code),
             format_money_pdf(t.summary.expense, currency_code),
             format_money_pdf(t.net, currency_code)]
            for t in tables_report.tables
        ]
        breakdown = Table([head] + body, colWidths=[doc.width * 0.32, doc.width * 0.08] + [doc.width * 0.2] * 3,
                          repeatRows=1)
        breakdown.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), SLATE),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
            ("LINEBELOW", (0, 0), (-1, -1), 0.5, RULE),
        ]))
        elements.append(breakdown)

    if documents_report is not None:
        docs = documents_report
        elements += [
            Spacer(1, 18),
            Paragraph("Documents", styles["heading"]),
            Spacer(1, 6),
            Paragraph(
                f"Invoices: {docs.invoices} &nbsp; Quotations: {docs.quotations} &nbsp; Bills: {docs.bills}",
                styles["normal"],
            ),
            Paragraph(
                f"Revenue {format_money_pdf(docs.summary.revenue, currency_code)} &nbsp; "
                f"Expense {format_money_pdf(docs.summary.expense, currency_code)}",
                styles["normal"],
            ),
        ]

    doc.build(elements, onFirstPage=_watermark(watermark), onLaterPages=_watermark(watermark))
    buffer.seek(0)
    return buffer
