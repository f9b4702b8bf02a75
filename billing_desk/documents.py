import base64
import logging
from datetime import date
from decimal import Decimal
from io import BytesIO
from pathlib import Path
from typing import Any, List
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from billing_desk.cura.entities import ClinicBranding, Invoice, Patient

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 15 * mm
HEADER_HEIGHT = 32 * mm
FOOTER_HEIGHT = 14 * mm
ROW_HEIGHT = 7 * mm

BRAND_BLUE = colors.HexColor("#4A7DFF")


def format_money(amount: Any, symbol: str = "£") -> str:
    try:
        value = Decimal(str(amount or "0"))
    except ArithmeticError:
        value = Decimal("0")
    return f"{symbol}{value:.2f}"


def _s(value: Any, dash: str = "—") -> str:
    if value is None:
        return dash
    text = str(value).strip()
    return text if text else dash


def _fmt_date(value: date | None) -> str:
    return value.strftime("%d/%m/%Y") if value else "—"


def encode_pdf(pdf: bytes) -> str:
    return base64.b64encode(pdf).decode("ascii")


def invoice_filename(invoice: Invoice) -> str:
    return f"invoice-{invoice.invoice_number or invoice.id}.pdf"


def report_filename(report_type: str, day: date) -> str:
    return f"{report_type}-{day.isoformat()}.pdf"


def csv_filename(day: date) -> str:
    return f"revenue-breakdown-{day.isoformat()}.csv"


def write_download(directory: str | Path, filename: str, content: bytes | str) -> Path:
    path = Path(directory) / filename
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, str):
        path.write_text(content, encoding="utf-8")
    else:
        path.write_bytes(content)

    logger.info("Saved %s (%s bytes)", path, path.stat().st_size)
    return path


# ----------------------------
# Invoice
# ----------------------------
def _draw_header(c: canvas.Canvas, header: ClinicBranding | None, title: str, subtitle: str):
    top = PAGE_HEIGHT - MARGIN

    c.setFillColor(BRAND_BLUE)
    c.rect(0, PAGE_HEIGHT - HEADER_HEIGHT, PAGE_WIDTH, HEADER_HEIGHT, stroke=0, fill=1)

    c.setFillColor(colors.white)
    c.setFont("Helvetica-Bold", 16)
    c.drawString(MARGIN, top - 4 * mm, header.clinic_name if header else "Clinic")
    c.setFont("Helvetica", 8)
    y = top - 9 * mm
    for line in (header.lines if header else [])[:3]:
        c.drawString(MARGIN, y, line[:90])
        y -= 3.6 * mm

    c.setFont("Helvetica-Bold", 18)
    c.drawRightString(PAGE_WIDTH - MARGIN, top - 4 * mm, title)
    c.setFont("Helvetica", 9)
    c.drawRightString(PAGE_WIDTH - MARGIN, top - 10 * mm, subtitle)
    c.setFillColor(colors.black)


def _draw_footer(c: canvas.Canvas, footer: ClinicBranding | None):
    c.setStrokeColor(colors.lightgrey)
    c.line(MARGIN, FOOTER_HEIGHT, PAGE_WIDTH - MARGIN, FOOTER_HEIGHT)
    c.setFont("Helvetica", 7.5)
    c.setFillColor(colors.grey)

    text = " | ".join(footer.lines) if footer and footer.lines else (footer.clinic_name if footer else "")
    if text:
        c.drawString(MARGIN, FOOTER_HEIGHT - 5 * mm, text[:120])
    c.drawRightString(PAGE_WIDTH - MARGIN, FOOTER_HEIGHT - 5 * mm, f"Page {c.getPageNumber()}")
    c.setFillColor(colors.black)


INVOICE_COLUMNS = [
    # (label, x offset from margin, right aligned)
    ("Code", 0, False),
    ("Description", 25 * mm, False),
    ("Qty", 120 * mm, True),
    ("Unit Price", 150 * mm, True),
    ("Total", PAGE_WIDTH - 2 * MARGIN, True),
]


def _draw_table_header(c: canvas.Canvas, y: float) -> float:
    c.setFillColor(colors.HexColor("#EEF2FF"))
    c.rect(MARGIN, y - 2 * mm, PAGE_WIDTH - 2 * MARGIN, ROW_HEIGHT, stroke=0, fill=1)
    c.setFillColor(colors.black)
    c.setFont("Helvetica-Bold", 9)
    for label, offset, right in INVOICE_COLUMNS:
        if right:
            c.drawRightString(MARGIN + offset, y, label)
        else:
            c.drawString(MARGIN + offset, y, label)
    return y - ROW_HEIGHT


def render_invoice_pdf(
    invoice: Invoice,
    header: ClinicBranding | None = None,
    footer: ClinicBranding | None = None,
    currency_symbol: str = "£",
) -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setTitle(f"Invoice {invoice.label}")

    title = "INVOICE"
    subtitle = f"{invoice.label}  ·  {invoice.status.value.upper()}"
    bottom_limit = FOOTER_HEIGHT + 30 * mm

    def new_page() -> float:
        _draw_header(c, header, title, subtitle)
        _draw_footer(c, footer)
        return PAGE_HEIGHT - HEADER_HEIGHT - 10 * mm

    y = new_page()

    c.setFont("Helvetica-Bold", 10)
    c.drawString(MARGIN, y, "Bill To")
    c.drawString(PAGE_WIDTH / 2, y, "Invoice Details")
    c.setFont("Helvetica", 9)
    bill_to = [invoice.patient_name, f"Patient ID: {invoice.patient_id}"]
    if invoice.nhs_number:
        bill_to.append(f"NHS Number: {invoice.nhs_number}")
    details = [
        f"Service Date: {_fmt_date(invoice.date_of_service)}",
        f"Invoice Date: {_fmt_date(invoice.invoice_date)}",
        f"Due Date: {_fmt_date(invoice.due_date)}",
        f"Payment Method: {_s(invoice.payment_method)}",
    ]
    line_y = y - 5 * mm
    for left, right in zip(bill_to + [""] * (len(details) - len(bill_to)), details):
        c.drawString(MARGIN, line_y, left)
        c.drawString(PAGE_WIDTH / 2, line_y, right)
        line_y -= 4.5 * mm

    y = _draw_table_header(c, line_y - 6 * mm)
    c.setFont("Helvetica", 9)

    for item in invoice.items:
        if y < bottom_limit:
            c.showPage()
            y = _draw_table_header(c, new_page())
            c.setFont("Helvetica", 9)

        values = [
            item.code,
            item.description[:55],
            f"{item.quantity.normalize():f}",
            format_money(item.unit_price, currency_symbol),
            format_money(item.total, currency_symbol),
        ]
        for (_, offset, right), value in zip(INVOICE_COLUMNS, values):
            if right:
                c.drawRightString(MARGIN + offset, y, value)
            else:
                c.drawString(MARGIN + offset, y, value)
        y -= ROW_HEIGHT

    if y < bottom_limit:
        c.showPage()
        y = new_page()

    c.setStrokeColor(colors.black)
    c.line(PAGE_WIDTH / 2, y, PAGE_WIDTH - MARGIN, y)
    y -= 6 * mm
    totals = [
        ("Total", invoice.total_amount),
        ("Paid", invoice.paid_amount),
        ("Balance Due", invoice.outstanding),
    ]
    if invoice.insurance:
        totals.insert(2, (f"Insurance ({invoice.insurance.provider})", invoice.insurance.paid_amount))
    for label, amount in totals:
        c.setFont("Helvetica-Bold" if label == "Balance Due" else "Helvetica", 10)
        c.drawString(PAGE_WIDTH / 2, y, label)
        c.drawRightString(PAGE_WIDTH - MARGIN, y, format_money(amount, currency_symbol))
        y -= 5.5 * mm

    if invoice.notes:
        c.setFont("Helvetica-Oblique", 8.5)
        c.drawString(MARGIN, y - 4 * mm, f"Notes: {invoice.notes[:110]}")

    c.save()
    return buf.getvalue()


# ----------------------------
# Revenue report
# ----------------------------
REPORT_HEADERS = ["Service", "Procedures", "Revenue", "Insurance", "Self-Pay", "Collection Rate"]


def render_revenue_report_pdf(
    rows: list,
    summary: dict,
    title: str = "Revenue Breakdown Report",
    filters_label: str = "",
    patient: Patient | None = None,
    header: ClinicBranding | None = None,
    footer: ClinicBranding | None = None,
    currency_symbol: str = "£",
) -> bytes:
    buf = BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=HEADER_HEIGHT + 8 * mm,
        bottomMargin=FOOTER_HEIGHT + 8 * mm,
        title=title,
    )

    styles = getSampleStyleSheet()
    SMALL = ParagraphStyle("SMALL", parent=styles["Normal"], fontName="Helvetica", fontSize=8.5, leading=10.5)
    BOX_LABEL = ParagraphStyle("BOX_LABEL", parent=SMALL, textColor=colors.grey)
    BOX_VALUE = ParagraphStyle("BOX_VALUE", parent=styles["Normal"], fontName="Helvetica-Bold", fontSize=12, leading=14)

    story: List[Any] = []

    # summary boxes
    boxes = [
        ("Total Revenue", format_money(summary.get("total_revenue"), currency_symbol)),
        ("Collected", format_money(summary.get("collected"), currency_symbol)),
        ("Outstanding", format_money(summary.get("outstanding"), currency_symbol)),
        ("Collection Rate", f"{summary.get('collection_rate', 0):.1f}%"),
    ]
    avail_w = PAGE_WIDTH - 2 * MARGIN
    box_table = Table(
        [[Paragraph(label, BOX_LABEL) for label, _ in boxes], [Paragraph(value, BOX_VALUE) for _, value in boxes]],
        colWidths=[avail_w / len(boxes)] * len(boxes),
    )
    box_table.setStyle(
        TableStyle(
            [
                ("BOX", (0, 0), (-1, -1), 0.6, colors.lightgrey),
                ("INNERGRID", (0, 0), (-1, -1), 0.4, colors.lightgrey),
                ("BACKGROUND", (0, 0), (-1, -1), colors.HexColor("#F8FAFF")),
                ("TOPPADDING", (0, 0), (-1, -1), 4),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
            ]
        )
    )
    story.append(box_table)
    story.append(Spacer(1, 4 * mm))

    if patient is not None:
        panel = [
            f"<b>Patient:</b> {escape(patient.full_name)}",
            f"<b>Patient ID:</b> {patient.patient_id}",
            f"<b>NHS Number:</b> {_s(patient.nhs_number)}",
        ]
        story.append(Paragraph(" &nbsp;&nbsp; ".join(panel), SMALL))
        story.append(Spacer(1, 3 * mm))

    if filters_label:
        story.append(Paragraph(f"<i>Filters: {escape(filters_label)}</i>", SMALL))
        story.append(Spacer(1, 3 * mm))

    data: List[List[Any]] = [REPORT_HEADERS]
    for row in rows:
        data.append(
            [
                Paragraph(escape(row.service), SMALL),
                str(row.procedures),
                format_money(row.revenue, currency_symbol),
                format_money(row.insurance, currency_symbol),
                format_money(row.self_pay, currency_symbol),
                f"{row.collection_rate:.1f}%",
            ]
        )

    tbl = Table(data, colWidths=[avail_w * r for r in (0.32, 0.12, 0.15, 0.15, 0.14, 0.12)], repeatRows=1)
    style_cmds = [
        ("BACKGROUND", (0, 0), (-1, 0), BRAND_BLUE),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8.5),
        ("GRID", (0, 0), (-1, -1), 0.4, colors.lightgrey),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -2), [colors.white, colors.HexColor("#F5F7FB")]),
    ]
    if rows and rows[-1].is_total:
        style_cmds += [
            ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
            ("LINEABOVE", (0, -1), (-1, -1), 1.0, colors.black),
        ]
    tbl.setStyle(TableStyle(style_cmds))
    story.append(tbl)

    generated = date.today().strftime("%d/%m/%Y")

    def _on_page(canv, doc_):
        canv.saveState()
        _draw_header(canv, header, "REPORT", f"{title} · {generated}")
        _draw_footer(canv, footer)
        canv.restoreState()

    doc.build(story, onFirstPage=_on_page, onLaterPages=_on_page)
    return buf.getvalue()
