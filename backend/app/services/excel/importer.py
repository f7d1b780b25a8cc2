"""
Excel import of grootboek schemas and boekingsregels

Workbooks are read with openpyxl. Column headers are matched on known
Dutch/English synonyms, or through a saved column mapping
(Excel header -> field). Parsing never raises for bad rows: row problems
end up in ``errors`` (row skipped) or ``warnings`` (row kept), each
prefixed with the spreadsheet row number.
"""
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence, Tuple
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from app.models.grootboek import AccountType
from app.services.btw.helpers import parse_amount, parse_date


class ExcelImportError(Exception):
    """Raised when the upload is not a readable Excel workbook."""
    pass


# Rows scanned for the header row
HEADER_SCAN_ROWS = 30

GROOTBOEK_COLUMNS = {
    "grootboeknummer": "account_number",
    "rekeningnummer": "account_number",
    "nummer": "account_number",
    "account_number": "account_number",
    "omschrijving": "account_name",
    "naam": "account_name",
    "account_name": "account_name",
    "categorie": "account_type",
    "type": "account_type",
    "account_type": "account_type",
    "btw_code": "btw_code",
    "btwcode": "btw_code",
    "btw code": "btw_code",
    "btw": "btw_code",
    "rubriek": "rubriek",
    "beschrijving": "description",
    "description": "description",
    "opmerking": "description",
    "notities": "description",
}

BOEKINGSREGEL_COLUMNS = {
    "datum": "boekdatum",
    "date": "boekdatum",
    "boekdatum": "boekdatum",
    "grootboeknummer": "account_number",
    "rekeningnummer": "account_number",
    "rekening": "account_number",
    "account_number": "account_number",
    "omschrijving": "omschrijving",
    "description": "omschrijving",
    "debet": "debet",
    "debit": "debet",
    "debet (€)": "debet",
    "credit": "credit",
    "credit (€)": "credit",
    "btw_code": "btw_code",
    "btwcode": "btw_code",
    "btw code": "btw_code",
    "btw_bedrag": "btw_bedrag",
    "btwbedrag": "btw_bedrag",
    "btw bedrag": "btw_bedrag",
    "btw bedrag (€)": "btw_bedrag",
    "btw": "btw_bedrag",
    "factuurnummer": "factuurnummer",
    "factuur": "factuurnummer",
    "relatie": "relatie",
    "tegenrekening": "tegenrekening",
    "boekstuk": "boekstuk_nummer",
    "boekstuknummer": "boekstuk_nummer",
}

ACCOUNT_TYPE_SYNONYMS = {
    "activa": AccountType.ACTIVA.value,
    "passiva": AccountType.PASSIVA.value,
    "kosten": AccountType.KOSTEN.value,
    "omzet": AccountType.OMZET.value,
    "opbrengsten": AccountType.OMZET.value,
    "inkomsten": AccountType.OMZET.value,
    "revenue": AccountType.OMZET.value,
    "expenses": AccountType.KOSTEN.value,
    "assets": AccountType.ACTIVA.value,
    "liabilities": AccountType.PASSIVA.value,
}

# Codes from older bookkeeping packages
LEGACY_BTW_CODES = {
    "oh": "1a",       # omzet hoog
    "ol": "1b",       # omzet laag
    "ov": "1e",       # omzet vrijgesteld
    "vh": "5b",       # voorbelasting hoog
    "vl": "5b-laag",  # voorbelasting laag
    "0": "geen",
    "geen": "geen",
}

# (first number, last number, account type); other ranges cannot be inferred
ACCOUNT_NUMBER_RANGES = [
    (1000, 1999, AccountType.ACTIVA.value),
    (2000, 2999, AccountType.PASSIVA.value),
    (4000, 4999, AccountType.PASSIVA.value),
    (6000, 6999, AccountType.KOSTEN.value),
    (8000, 8999, AccountType.OMZET.value),
]

_LEADING_NUMBER_RE = re.compile(r"^(\d+)")


@dataclass
class ParseResult:
    data: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    sheet_names: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "data": self.data,
            "errors": self.errors,
            "warnings": self.warnings,
            "sheet_names": self.sheet_names,
        }


def cell_text(value: Any) -> str:
    """Cell value as trimmed text; whole floats lose their ``.0``."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def normalize_header(value: Any) -> str:
    return " ".join(cell_text(value).lower().split())


def read_sheet(content: bytes, sheet_name: Optional[str] = None) -> Tuple[Optional[List[tuple]], List[str], Optional[str]]:
    """
    Read all rows of one worksheet.

    Returns (rows, sheet_names, error). rows is None when the sheet does
    not exist; error then holds the user message.
    """
    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError, ValueError) as e:
        raise ExcelImportError(f"Fout bij lezen van Excel bestand: {e}") from e

    try:
        sheet_names = list(workbook.sheetnames)
        target = sheet_name or sheet_names[0]
        if target not in sheet_names:
            return None, sheet_names, (
                f'Sheet "{target}" niet gevonden. Beschikbare sheets: {", ".join(sheet_names)}'
            )
        rows = [tuple(row) for row in workbook[target].iter_rows(values_only=True)]
    finally:
        workbook.close()
    return rows, sheet_names, None


def locate_columns(
    rows: Sequence[tuple],
    synonyms: Dict[str, str],
    mapping: Optional[Dict[str, str]] = None,
) -> Tuple[Optional[int], Dict[str, int]]:
    """
    Find the header row and map fields to column indexes.

    The row among the first HEADER_SCAN_ROWS with the most recognised
    headers wins, so title rows above the table are skipped. A custom
    mapping (Excel header -> field) takes precedence over the synonyms.
    """
    custom = {normalize_header(k): v for k, v in (mapping or {}).items() if v}
    best_index, best_columns = None, {}

    for index, row in enumerate(rows[:HEADER_SCAN_ROWS]):
        columns: Dict[str, int] = {}
        for col, value in enumerate(row):
            header = normalize_header(value)
            if not header:
                continue
            target = custom.get(header) or synonyms.get(header)
            if target and target not in columns:
                columns[target] = col
        if len(columns) > len(best_columns):
            best_index, best_columns = index, columns

    return best_index, best_columns


def _row_values(row: tuple, columns: Dict[str, int]) -> Dict[str, Any]:
    return {name: (row[col] if col < len(row) else None) for name, col in columns.items()}


def _is_header_repeat(values: Dict[str, Any], synonyms: Dict[str, str]) -> bool:
    recognised = [
        v for v in values.values()
        if isinstance(v, str) and synonyms.get(normalize_header(v))
    ]
    return len(recognised) >= 2


def normalize_btw_code(value: Any) -> Optional[str]:
    text = cell_text(value).lower()
    if not text:
        return None
    return LEGACY_BTW_CODES.get(text, text)


def infer_account_type(account_number: str) -> Optional[str]:
    digits = re.sub(r"\D", "", account_number)
    if not digits:
        return None
    number = int(digits)
    for low, high, account_type in ACCOUNT_NUMBER_RANGES:
        if low <= number <= high:
            return account_type
    return None


def _load(content: bytes, sheet_name: Optional[str], synonyms: Dict[str, str], mapping, result: ParseResult):
    rows, result.sheet_names, error = read_sheet(content, sheet_name)
    if error:
        result.errors.append(error)
        return None, None, None
    header_index, columns = locate_columns(rows, synonyms, mapping)
    if header_index is None or not rows[header_index + 1:]:
        result.errors.append("Excel bestand is leeg of heeft geen data")
        return None, None, None
    return rows, header_index, columns


def parse_grootboek(
    content: bytes,
    sheet_name: Optional[str] = None,
    mapping: Optional[Dict[str, str]] = None,
) -> ParseResult:
    """Parse a grootboek schema into grootboek account dicts."""
    result = ParseResult()
    rows, header_index, columns = _load(content, sheet_name, GROOTBOEK_COLUMNS, mapping, result)
    if rows is None:
        return result

    last_number = 0
    for offset, row in enumerate(rows[header_index + 1:]):
        row_no = header_index + offset + 2
        values = _row_values(row, columns)

        if not any(cell_text(v) for v in values.values()):
            result.warnings.append(f"Rij {row_no}: Lege rij overgeslagen")
            continue
        if _is_header_repeat(values, GROOTBOEK_COLUMNS):
            result.warnings.append(f"Rij {row_no}: Header rij overgeslagen")
            continue

        account_number = cell_text(values.get("account_number"))
        account_name = cell_text(values.get("account_name"))
        raw_type = cell_text(values.get("account_type"))

        if not account_number:
            if not (account_name or raw_type):
                result.errors.append(f"Rij {row_no}: Grootboeknummer ontbreekt en geen andere data gevonden")
                continue
            match = _LEADING_NUMBER_RE.match(account_name)
            if match:
                account_number = match.group(1)
                result.warnings.append(
                    f"Rij {row_no}: Grootboeknummer ontbreekt, gebruikt nummer uit omschrijving: {account_number}"
                )
            else:
                last_number += 100
                account_number = str(last_number).zfill(4)
                result.warnings.append(f"Rij {row_no}: Grootboeknummer ontbreekt, gegenereerd: {account_number}")
        else:
            match = _LEADING_NUMBER_RE.match(account_number)
            if match:
                last_number = int(match.group(1))

        if not account_name:
            result.errors.append(f"Rij {row_no}: Omschrijving ontbreekt")
            continue

        if not raw_type:
            inferred = infer_account_type(account_number)
            if inferred is None:
                result.errors.append(f"Rij {row_no}: Categorie/Type ontbreekt")
                continue
            result.warnings.append(f"Rij {row_no}: Categorie ontbreekt, afgeleid van grootboeknummer: {inferred}")
            raw_type = inferred

        account_type = ACCOUNT_TYPE_SYNONYMS.get(raw_type.lower())
        if account_type is None:
            result.warnings.append(
                f'Rij {row_no}: Onbekend account type "{raw_type}". Gebruikt "kosten" als default.'
            )
            account_type = AccountType.KOSTEN.value

        result.data.append({
            "account_number": account_number,
            "account_name": account_name,
            "account_type": account_type,
            "btw_code": normalize_btw_code(values.get("btw_code")),
            "rubriek": cell_text(values.get("rubriek")) or None,
            "description": cell_text(values.get("description")) or None,
            "is_active": True,
        })

    return result


def parse_boekingsregels(
    content: bytes,
    sheet_name: Optional[str] = None,
    mapping: Optional[Dict[str, str]] = None,
    today: Optional[date] = None,
) -> ParseResult:
    """Parse booking rules. periode/jaar are derived from the parsed date."""
    result = ParseResult()
    rows, header_index, columns = _load(content, sheet_name, BOEKINGSREGEL_COLUMNS, mapping, result)
    if rows is None:
        return result

    today = today or date.today()
    last_date: Optional[date] = None

    for offset, row in enumerate(rows[header_index + 1:]):
        row_no = header_index + offset + 2
        values = _row_values(row, columns)

        core = ("boekdatum", "account_number", "omschrijving", "debet", "credit")
        if not any(cell_text(values.get(name)) for name in core):
            result.warnings.append(f"Rij {row_no}: Lege rij overgeslagen")
            continue
        if _is_header_repeat(values, BOEKINGSREGEL_COLUMNS):
            result.warnings.append(f"Rij {row_no}: Header rij overgeslagen")
            continue

        raw_date = values.get("boekdatum")
        if raw_date is None or cell_text(raw_date) == "":
            if last_date is not None:
                boekdatum = last_date
                result.warnings.append(
                    f"Rij {row_no}: Datum ontbreekt, gebruikt datum van vorige regel ({boekdatum.isoformat()})"
                )
            else:
                boekdatum = today
                result.warnings.append(f"Rij {row_no}: Datum ontbreekt, gebruikt vandaag ({boekdatum.isoformat()})")
        else:
            boekdatum = parse_date(raw_date)
            if boekdatum is None:
                result.errors.append(f'Rij {row_no}: Ongeldige datum "{cell_text(raw_date)}"')
                continue
            last_date = boekdatum

        account_number = cell_text(values.get("account_number"))
        if not account_number:
            result.errors.append(f"Rij {row_no}: Grootboeknummer ontbreekt")
            continue

        omschrijving = cell_text(values.get("omschrijving"))
        if not omschrijving:
            result.errors.append(f"Rij {row_no}: Omschrijving ontbreekt")
            continue

        debet = parse_amount(values.get("debet")) or Decimal("0")
        credit = parse_amount(values.get("credit")) or Decimal("0")
        if debet > 0 and credit > 0:
            result.errors.append(f"Rij {row_no}: Zowel debet als credit zijn ingevuld")
            continue
        if debet == 0 and credit == 0:
            result.warnings.append(f"Rij {row_no}: Zowel debet als credit zijn 0")

        result.data.append({
            "boekdatum": boekdatum,
            "account_number": account_number,
            "omschrijving": omschrijving,
            "debet": debet,
            "credit": credit,
            "btw_code": normalize_btw_code(values.get("btw_code")),
            "btw_bedrag": parse_amount(values.get("btw_bedrag")) or Decimal("0"),
            "factuurnummer": cell_text(values.get("factuurnummer")) or None,
            "relatie": cell_text(values.get("relatie")) or None,
            "tegenrekening": cell_text(values.get("tegenrekening")) or None,
            "boekstuk_nummer": cell_text(values.get("boekstuk_nummer")) or None,
            "periode": boekdatum.month,
            "jaar": boekdatum.year,
        })

    return result
