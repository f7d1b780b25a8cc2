"""PDF overview of a saved BTW aangifte."""
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from app.models.btw_aangifte import BtwAangifte
from app.models.client import Client
from app.services.btw.aangifte import AANGIFTE_ROWS, STATUS_LABELS
from app.services.btw.helpers import format_period, get_btw_deadline


def _money(value) -> str:
    amount = value if isinstance(value, Decimal) else Decimal(str(value or 0))
    return f"€ {amount:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


def generate_aangifte_pdf(client: Client, aangifte: BtwAangifte) -> bytes:
    """Generate PDF bytes for an aangifte overview."""
    periode_label = format_period(aangifte.periode_type, aangifte.periode, aangifte.jaar)
    deadline = get_btw_deadline(aangifte.periode_type, aangifte.periode, aangifte.jaar)

    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=f"BTW aangifte {periode_label}")
    styles = getSampleStyleSheet()
    items = []

    items.append(Paragraph("BTW Aangifte Overzicht", styles["Title"]))
    items.append(Paragraph(f"Klant: {escape(client.company_name or client.name)}", styles["Normal"]))
    if client.kvk_number:
        items.append(Paragraph(f"KVK: {client.kvk_number}", styles["Normal"]))
    if client.btw_number:
        items.append(Paragraph(f"BTW-id: {client.btw_number}", styles["Normal"]))
    items.append(Paragraph(f"Periode: {periode_label}", styles["Normal"]))
    items.append(Paragraph(f"Status: {STATUS_LABELS.get(aangifte.status, aangifte.status)}", styles["Normal"]))
    if aangifte.ingediend_op:
        items.append(Paragraph(f"Ingediend op: {aangifte.ingediend_op.strftime('%d-%m-%Y')}", styles["Normal"]))
    else:
        items.append(Paragraph(f"Uiterste indiendatum: {deadline.deadline.strftime('%d-%m-%Y')}", styles["Normal"]))
    items.append(Paragraph(f"Gegenereerd: {datetime.now().strftime('%d-%m-%Y %H:%M')}", styles["Normal"]))
    items.append(Spacer(1, 12))

    rows = [["Rubriek", "Omschrijving", "Grondslag", "BTW"]]
    for rubriek, omschrijving, omzet_field, btw_field in AANGIFTE_ROWS:
        rows.append([
            rubriek,
            omschrijving,
            _money(getattr(aangifte, omzet_field)) if omzet_field else "",
            _money(getattr(aangifte, btw_field)) if btw_field else "",
        ])

    table = Table(rows, colWidths=[50, 270, 100, 100])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#2D5016")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("ALIGN", (2, 1), (-1, -1), "RIGHT"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#d1d5db")),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    items.append(table)
    items.append(Spacer(1, 12))

    te_betalen = Decimal(str(aangifte.rubriek_5e_btw or 0))
    if te_betalen >= 0:
        items.append(Paragraph(f"Te betalen: {_money(te_betalen)}", styles["Heading3"]))
    else:
        items.append(Paragraph(f"Terug te vragen: {_money(-te_betalen)}", styles["Heading3"]))

    if aangifte.notes:
        items.append(Spacer(1, 8))
        items.append(Paragraph("Notities", styles["Heading3"]))
        items.append(Paragraph(escape(aangifte.notes), styles["Normal"]))

    doc.build(items)
    return buffer.getvalue()
