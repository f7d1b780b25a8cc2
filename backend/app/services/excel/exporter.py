"""
Excel exports

Boekingsregels overview, grootboek schema and the BTW aangifte sheet.
Every export returns ``(filename, xlsx bytes)``.
"""
import re
from collections import Counter, OrderedDict
from datetime import date, datetime
from decimal import Decimal
from io import BytesIO
from typing import List, Optional, Sequence, Tuple

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from app.models.boeking import Boekingsregel
from app.models.btw_aangifte import BtwAangifte
from app.models.client import Client
from app.models.grootboek import GrootboekAccount
from app.services.btw.aangifte import AANGIFTE_ROWS, STATUS_LABELS
from app.services.btw.codes import ZERO, round_cents, to_decimal
from app.services.btw.helpers import MONTH_NAMES, format_period, period_slug


XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

BLUE = "1E40AF"
DARK_GREEN = "2D5016"
GREY = "E5E7EB"
YELLOW = "FEF3C7"

EURO_FORMAT = '"€" #,##0.00'
AMOUNT_FORMAT = "#,##0.00"

_THIN = Side(style="thin", color="000000")
BORDER = Border(top=_THIN, bottom=_THIN, left=_THIN, right=_THIN)


def slugify(name: Optional[str], length: int = 30) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (name or "").lower()).strip("-")
    return slug[:length] or "export"


def dutch_number(value) -> str:
    """1234.5 -> "1.234,50"."""
    return f"{to_decimal(value):,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


def _fill(color: str) -> PatternFill:
    return PatternFill(start_color=color, end_color=color, fill_type="solid")


def _set_widths(ws, widths: Sequence[int]) -> None:
    for index, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(index)].width = width


def _style_header_row(ws, row: int, first_col: int, last_col: int, color: str) -> None:
    for col in range(first_col, last_col + 1):
        cell = ws.cell(row=row, column=col)
        cell.font = Font(bold=True, color="FFFFFF")
        cell.fill = _fill(color)
        cell.alignment = Alignment(horizontal="center", vertical="center")
        cell.border = BORDER


def _to_bytes(wb: Workbook) -> bytes:
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _amount_or_none(value) -> Optional[float]:
    amount = to_decimal(value)
    return float(amount) if amount > 0 else None


def _client_rows(client: Client) -> List[list]:
    rows = [["KLANTGEGEVENS"], ["Naam:", client.name]]
    if client.company_name:
        rows.append(["Bedrijfsnaam:", client.company_name])
    if client.kvk_number:
        rows.append(["KVK-nummer:", client.kvk_number])
    if client.btw_number:
        rows.append(["BTW-nummer:", client.btw_number])
    if client.address:
        rows.append(["Adres:", client.address])
    if client.postal_code and client.city:
        rows.append(["Postcode & Plaats:", f"{client.postal_code} {client.city}"])
    if client.email:
        rows.append(["E-mail:", client.email])
    if client.phone:
        rows.append(["Telefoon:", client.phone])
    rows.append([])
    return rows


def export_boekingsregels(
    regels: Sequence[Boekingsregel],
    client: Optional[Client] = None,
    periode_label: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[str, bytes]:
    now = now or datetime.now()

    total_debet = sum((to_decimal(r.debet) for r in regels), ZERO)
    total_credit = sum((to_decimal(r.credit) for r in regels), ZERO)
    total_btw = sum((to_decimal(r.btw_bedrag) for r in regels), ZERO)
    with_code = sum(1 for r in regels if r.btw_code)

    by_month = OrderedDict()
    for r in sorted(regels, key=lambda r: r.boekdatum):
        key = (r.boekdatum.year, r.boekdatum.month)
        stats = by_month.setdefault(key, {"count": 0, "debet": ZERO, "credit": ZERO, "btw": ZERO})
        stats["count"] += 1
        stats["debet"] += to_decimal(r.debet)
        stats["credit"] += to_decimal(r.credit)
        stats["btw"] += to_decimal(r.btw_bedrag)

    header: List[list] = [["BOEKINGSREGELS OVERZICHT - BTW ASSIST"], []]
    if client is not None:
        header.extend(_client_rows(client))
    header.append(["EXPORT INFORMATIE"])
    header.append(["Exportdatum:", now.strftime("%d-%m-%Y")])
    header.append(["Exporttijd:", now.strftime("%H:%M")])
    if periode_label:
        header.append(["Periode:", periode_label])
    header.append(["Totaal aantal transacties:", len(regels)])
    header.append([])
    header.append(["SAMENVATTING"])
    header.append(["Totaal Debet:", "", "", dutch_number(total_debet)])
    header.append(["Totaal Credit:", "", "", dutch_number(total_credit)])
    header.append(["Saldo:", "", "", dutch_number(total_debet - total_credit)])
    header.append(["Totaal BTW:", "", "", dutch_number(total_btw)])
    header.append(["Transacties met BTW-code:", with_code])
    header.append(["Transacties zonder BTW-code:", len(regels) - with_code])
    header.append([])
    header.append([
        "Datum", "Grootboeknummer", "Omschrijving", "Debet (€)",
        "Credit (€)", "BTW Code", "BTW Bedrag (€)", "Factuurnummer",
    ])

    wb = Workbook()
    ws = wb.active
    ws.title = "Boekingsregels"
    for row in header:
        ws.append(row)
    table_header_row = ws.max_row

    for r in regels:
        ws.append([
            r.boekdatum.strftime("%d-%m-%Y"),
            r.account_number,
            r.omschrijving,
            _amount_or_none(r.debet),
            _amount_or_none(r.credit),
            r.btw_code or "",
            _amount_or_none(r.btw_bedrag),
            r.factuurnummer or "",
        ])
        for col in range(1, 9):
            ws.cell(row=ws.max_row, column=col).border = BORDER

    ws.append([])
    ws.append(["TOTAAL", "", "", float(total_debet), float(total_credit), "", float(total_btw), ""])
    total_row = ws.max_row

    if len(by_month) > 1:
        ws.append([])
        ws.append(["MAANDELIJKSE SAMENVATTING"])
        for (year, month), stats in by_month.items():
            ws.append([
                f"{MONTH_NAMES[month - 1]} {year}",
                f"{stats['count']} transacties",
                "",
                float(stats["debet"]),
                float(stats["credit"]),
                "",
                float(stats["btw"]),
                "",
            ])

    title = ws.cell(row=1, column=1)
    title.font = Font(bold=True, size=16, color="FFFFFF")
    title.fill = _fill(BLUE)
    for row in ws.iter_rows(min_row=2, max_col=1):
        cell = row[0]
        if cell.value in ("KLANTGEGEVENS", "EXPORT INFORMATIE", "SAMENVATTING", "MAANDELIJKSE SAMENVATTING"):
            cell.font = Font(bold=True, size=12)
            cell.fill = _fill(GREY)
            cell.border = BORDER
        elif isinstance(cell.value, str) and cell.value.endswith(":"):
            cell.font = Font(bold=True)
    _style_header_row(ws, table_header_row, 1, 8, BLUE)
    for col in range(1, 9):
        cell = ws.cell(row=total_row, column=col)
        cell.font = Font(bold=True)
        cell.fill = _fill(YELLOW)
        cell.border = BORDER
    for row in ws.iter_rows(min_row=table_header_row + 1):
        for col in (4, 5, 7):
            cell = row[col - 1]
            if isinstance(cell.value, (int, float)):
                cell.number_format = EURO_FORMAT
                cell.alignment = Alignment(horizontal="right")

    _set_widths(ws, [14, 18, 40, 16, 16, 12, 16, 20])
    ws.freeze_panes = ws.cell(row=table_header_row + 1, column=1)

    date_str = now.date().isoformat()
    if client is not None:
        filename = f"Boekingsregels-{slugify(client.name)}-{date_str}.xlsx"
    else:
        filename = f"boekingsregels-export-{date_str}.xlsx"
    return filename, _to_bytes(wb)


def export_grootboek(accounts: Sequence[GrootboekAccount], today: Optional[date] = None) -> Tuple[str, bytes]:
    today = today or date.today()

    wb = Workbook()
    ws = wb.active
    ws.title = "Grootboek"
    ws.append(["GROOTBOEK SCHEMA EXPORT"])
    ws.append([f"Geëxporteerd op: {today.strftime('%d-%m-%Y')}"])
    ws.append([])
    ws.append(["Grootboeknummer", "Omschrijving", "Categorie", "BTW Code", "Rubriek", "Beschrijving"])

    for account in accounts:
        ws.append([
            account.account_number,
            account.account_name,
            account.account_type,
            account.btw_code or "",
            account.rubriek or "",
            account.description or "",
        ])
        # keep leading zeros of account numbers
        ws.cell(row=ws.max_row, column=1).number_format = "@"

    ws.append([])
    ws.append(["TOTAAL", f"{len(accounts)} rekeningen"])
    ws.cell(row=ws.max_row, column=1).font = Font(bold=True)
    ws.append([])
    ws.append(["SAMENVATTING PER CATEGORIE:"])
    ws.cell(row=ws.max_row, column=1).font = Font(bold=True)
    for account_type, count in Counter(a.account_type for a in accounts).items():
        ws.append([account_type, f"{count} rekeningen"])

    ws.cell(row=1, column=1).font = Font(bold=True, size=14)
    _style_header_row(ws, 4, 1, 6, BLUE)
    _set_widths(ws, [18, 30, 15, 12, 10, 40])
    ws.freeze_panes = "A5"

    return f"grootboek-export-{today.isoformat()}.xlsx", _to_bytes(wb)


def _voorbelasting_grondslag(aangifte: BtwAangifte) -> Decimal:
    grondslag = to_decimal(aangifte.rubriek_5b_grondslag)
    if grondslag > 0:
        return round_cents(grondslag)
    btw = to_decimal(aangifte.rubriek_5b_btw)
    if btw > 0:
        return round_cents(btw / Decimal("0.21"))
    return ZERO


def export_aangifte(client: Client, aangifte: BtwAangifte) -> Tuple[str, bytes]:
    periode_label = format_period(aangifte.periode_type, aangifte.periode, aangifte.jaar)

    wb = Workbook()
    ws = wb.active
    ws.title = "BTW Aangifte"

    ws["B4"] = "BTW Aangifte Overzicht"
    ws["B4"].font = Font(bold=True, size=14)
    ws.merge_cells("B4:E4")
    for row, (label, value) in enumerate([
        ("Klant:", client.company_name or client.name),
        ("Periode:", periode_label),
        ("Status:", STATUS_LABELS.get(aangifte.status, aangifte.status)),
    ], start=6):
        ws.cell(row=row, column=2, value=label).font = Font(bold=True)
        ws.cell(row=row, column=3, value=value)

    header_row = 10
    for col, text in enumerate(["Rubriek", "Omschrijving", "Grondslag", "BTW Bedrag"], start=2):
        ws.cell(row=header_row, column=col, value=text)
    _style_header_row(ws, header_row, 2, 5, DARK_GREEN)

    row = header_row
    for rubriek, omschrijving, omzet_field, btw_field in AANGIFTE_ROWS:
        row += 1
        if rubriek == "5b":
            grondslag = _voorbelasting_grondslag(aangifte)
        else:
            grondslag = to_decimal(getattr(aangifte, omzet_field)) if omzet_field else None
        btw = to_decimal(getattr(aangifte, btw_field)) if btw_field else None

        ws.cell(row=row, column=2, value=rubriek).alignment = Alignment(horizontal="center")
        ws.cell(row=row, column=3, value=omschrijving)
        for col, amount in ((4, grondslag), (5, btw)):
            if amount is None:
                continue
            cell = ws.cell(row=row, column=col, value=float(round_cents(amount)))
            cell.number_format = AMOUNT_FORMAT
            cell.alignment = Alignment(horizontal="right")

    total_grondslag = sum(
        (to_decimal(getattr(aangifte, f"rubriek_{r}_omzet")) for r in ("1a", "1b", "1c")), ZERO
    )
    total_btw = sum(
        (to_decimal(getattr(aangifte, f"rubriek_{r}_btw")) for r in ("1a", "1b", "1c")), ZERO
    )
    row += 2
    ws.cell(row=row, column=2, value="TOTAAL:").font = Font(bold=True)
    for col, amount in ((4, total_grondslag), (5, total_btw)):
        cell = ws.cell(row=row, column=col, value=float(round_cents(amount)))
        cell.font = Font(bold=True, color="FFFFFF")
        cell.fill = _fill(DARK_GREEN)
        cell.number_format = AMOUNT_FORMAT
        cell.alignment = Alignment(horizontal="right")

    _set_widths(ws, [3, 10, 55, 18, 18])
    ws.freeze_panes = ws.cell(row=header_row + 1, column=1)

    slug = period_slug(aangifte.periode_type, aangifte.periode, aangifte.jaar)
    return f"BTW-Aangifte-{slugify(client.name)}-{slug}.xlsx", _to_bytes(wb)
