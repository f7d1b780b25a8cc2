"""Downloadable upload templates with an instructions sheet."""
from io import BytesIO
from typing import Tuple

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill

from app.models.grootboek import BtwCodeType
from app.services.btw.codes import BTW_CODES


TEMPLATE_TYPES = ("grootboek", "boekingsregels")

_REQUIRED_FILL = PatternFill(start_color="FEF08A", end_color="FEF08A", fill_type="solid")
_OPTIONAL_FILL = PatternFill(start_color="BFDBFE", end_color="BFDBFE", fill_type="solid")

GROOTBOEK_EXAMPLES = [
    ["8000", "Omzet hoog tarief", "Opbrengsten", "1a", "1a", "Omzet met 21% BTW"],
    ["8010", "Omzet laag tarief", "Opbrengsten", "1b", "1b", "Omzet met 9% BTW"],
    ["4300", "Huur", "Kosten", "5b", "5b", "Huur kosten met voorbelasting"],
    ["1900", "Te vorderen BTW", "Kosten", "5b", "5b", "BTW voorbelasting"],
    ["1000", "Kas", "Activa", "", "", "Contant geld"],
    ["2000", "Bank", "Activa", "", "", "Bankrekening"],
]

BOEKINGSREGEL_EXAMPLES = [
    ["01-01-2026", "8000", "Factuur 001 - Verkoop", "", "1000.00", "1a", "210.00", "FACT-2026-001"],
    ["01-01-2026", "1900", "BTW op factuur 001", "", "210.00", "1a", "", "FACT-2026-001"],
    ["15-01-2026", "4300", "Huur januari", "1000.00", "", "5b", "210.00", ""],
    ["15-01-2026", "1900", "BTW op huur (voorbelasting)", "210.00", "", "5b", "", ""],
    ["20-01-2026", "1000", "Kasstorting", "", "500.00", "", "", ""],
    ["25-01-2026", "2000", "Bankafschrijving", "250.00", "", "", "", ""],
]


def _code_usage(code_type: str) -> str:
    if code_type == BtwCodeType.VERSCHULDIGD.value:
        return "Omzet (credit)"
    if code_type == BtwCodeType.VOORBELASTING.value:
        return "Kosten (debet)"
    return "Speciale situaties"


def _write(ws, rows, widths) -> None:
    for row in rows:
        ws.append(row)
    for letter, width in zip("ABCDEFGH", widths):
        ws.column_dimensions[letter].width = width


def _mark_header(ws, row: int, required: int, total: int) -> None:
    for col in range(1, total + 1):
        cell = ws.cell(row=row, column=col)
        cell.font = Font(bold=True)
        cell.fill = _REQUIRED_FILL if col <= required else _OPTIONAL_FILL


def grootboek_template() -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Grootboek"
    _write(ws, [
        ["GROOTBOEK SCHEMA TEMPLATE"],
        [],
        ["LET OP: Vul alleen de gele kolommen in. De blauwe kolommen zijn optioneel."],
        [],
        ["Grootboeknummer", "Omschrijving", "Categorie", "BTW Code", "Rubriek", "Beschrijving"],
        *GROOTBOEK_EXAMPLES,
    ], [18, 30, 15, 12, 10, 40])
    ws["A1"].font = Font(bold=True, size=14)
    _mark_header(ws, 5, required=3, total=6)
    ws.freeze_panes = "A6"

    info = wb.create_sheet("Instructies")
    rows = [
        ["INSTRUCTIES - GROOTBOEK SCHEMA"],
        [],
        ["VERPLICHTE KOLOMMEN:"],
        ["• Grootboeknummer", "Uniek nummer voor elke rekening (bijv. 8000, 4300)"],
        ["• Omschrijving", "Naam van de rekening (bijv. 'Omzet hoog tarief')"],
        ["• Categorie", "Type rekening: Activa, Passiva, Kosten, of Opbrengsten"],
        [],
        ["OPTIONELE KOLOMMEN:"],
        ["• BTW Code", "BTW code (1a, 1b, 5b, etc.) - zie lijst hieronder"],
        ["• Rubriek", "Belastingdienst rubriek"],
        ["• Beschrijving", "Extra omschrijving"],
        [],
        ["TOEGESTANE WAARDEN:"],
        [],
        ["Categorie:", "Activa", "Passiva", "Kosten", "Opbrengsten"],
        [],
        ["BTW Codes:"],
        ["Code", "Omschrijving", "Percentage", "Rubriek"],
    ]
    rows += [[c.code, c.description, f"{c.percentage.normalize():f}%", c.rubriek] for c in BTW_CODES.values()]
    rows += [
        [],
        ["TIPS:"],
        ["• Gebruik unieke grootboeknummers per rekening"],
        ["• Categorie bepaalt of het een balansrekening (Activa/Passiva) of resultatenrekening (Kosten/Opbrengsten) is"],
        ["• BTW Code is alleen nodig voor rekeningen met BTW"],
        ["• Laat optionele kolommen leeg als ze niet van toepassing zijn"],
    ]
    _write(info, rows, [20, 40, 12, 10])
    info["A1"].font = Font(bold=True, size=14)

    return _save(wb)


def boekingsregels_template() -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Boekingsregels"
    _write(ws, [
        ["BOEKINGSREGELS TEMPLATE"],
        [],
        ["LET OP: Vul alleen de gele kolommen in. De blauwe kolommen zijn optioneel."],
        ["BELANGRIJK: Vul alleen DEBET OF CREDIT in, niet beide!"],
        [],
        ["Datum", "Grootboeknummer", "Omschrijving", "Debet", "Credit", "BTW Code", "BTW Bedrag", "Factuurnummer"],
        *BOEKINGSREGEL_EXAMPLES,
    ], [12, 18, 35, 12, 12, 12, 12, 18])
    ws["A1"].font = Font(bold=True, size=14)
    _mark_header(ws, 6, required=5, total=8)
    ws.freeze_panes = "A7"

    info = wb.create_sheet("Instructies")
    rows = [
        ["INSTRUCTIES - BOEKINGSREGELS"],
        [],
        ["VERPLICHTE KOLOMMEN:"],
        ["• Datum", "Datum van de transactie (DD-MM-YYYY of DD/MM/YYYY)"],
        ["• Grootboeknummer", "Nummer van de grootboekrekening (moet bestaan in grootboek schema)"],
        ["• Omschrijving", "Beschrijving van de transactie"],
        ["• Debet OF Credit", "Vul EEN van beide in (niet beide, niet geen)"],
        [],
        ["OPTIONELE KOLOMMEN:"],
        ["• BTW Code", "BTW code als er BTW van toepassing is (1a, 1b, 5b, etc.)"],
        ["• BTW Bedrag", "BTW bedrag (wordt automatisch berekend als BTW code is ingevuld)"],
        ["• Factuurnummer", "Factuurnummer voor referentie"],
        [],
        ["BELANGRIJKE REGELS:"],
        ["1. Elke transactie moet DEBET OF CREDIT hebben (niet beide, niet geen)"],
        ["2. Debet = kosten, inkopen, bezittingen (links)"],
        ["3. Credit = omzet, inkomsten, schulden (rechts)"],
        ["4. BTW Bedrag wordt automatisch berekend op basis van BTW Code"],
        ["5. Datum kan worden weggelaten - wordt dan automatisch ingevuld"],
        [],
        ["BTW CODES:"],
        ["Code", "Omschrijving", "Percentage", "Gebruik voor"],
    ]
    rows += [
        [c.code, c.description, f"{c.percentage.normalize():f}%", _code_usage(c.type)]
        for c in BTW_CODES.values()
    ]
    rows += [
        [],
        ["TIPS:"],
        ["• Gebruik consistente datumnotatie (DD-MM-YYYY)"],
        ["• Grootboeknummer moet bestaan in je grootboek schema"],
        ["• Lege rijen worden automatisch overgeslagen"],
        ["• Ontbrekende datums worden automatisch ingevuld (vorige regel of vandaag)"],
    ]
    _write(info, rows, [15, 40, 12, 25])
    info["A1"].font = Font(bold=True, size=14)

    return _save(wb)


def _save(wb: Workbook) -> bytes:
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def get_template(template_type: str) -> Tuple[str, bytes]:
    """Return (filename, xlsx bytes). Raises ValueError for unknown types."""
    if template_type == "grootboek":
        return "grootboek-template.xlsx", grootboek_template()
    if template_type == "boekingsregels":
        return "boekingsregels-template.xlsx", boekingsregels_template()
    raise ValueError(f"Onbekend template type: {template_type}")
