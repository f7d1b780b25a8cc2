"""
Client list import

Reads the first sheet of an exported KVK/relation list; the first row holds
the headers. Name is required. E-mail, KVK and BTW numbers that do not
validate are dropped with a warning, the client itself is kept.
"""
import re
from dataclasses import asdict, dataclass, field
from typing import List, Optional

from app.services.excel.importer import ExcelImportError, cell_text, normalize_header, read_sheet


CLIENT_COLUMNS = {
    "naam kvk": "name",
    "naam": "name",
    "name": "name",
    "klant naam": "name",
    "bedrijfsnaam": "name",
    "company name": "name",
    "e-mail": "email",
    "email": "email",
    "e-mailadres": "email",
    "emailadres": "email",
    "mail": "email",
    "kvk": "kvk_number",
    "kvk nummer": "kvk_number",
    "kvk-nummer": "kvk_number",
    "btw nummer": "btw_number",
    "btw-nummer": "btw_number",
    "btw-id": "btw_number",
    "telefoon": "phone",
    "phone": "phone",
    "plaats": "city",
    "city": "city",
}

OPTIONAL_FIELDS = ("kvk_number", "btw_number", "phone", "city")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

KVK_RE = re.compile(r"^[0-9]{8}$")
BTW_RE = re.compile(r"^NL[0-9]{9}B[0-9]{2}$")

COMPANY_MARKERS = ("BV", "VOF", "B.V.", "N.V.")

# Column sizes of the clients table
MAX_LENGTHS = {"name": 255, "email": 255, "phone": 50, "city": 100}


@dataclass
class ClientImportRow:
    name: str
    email: Optional[str] = None
    company_name: Optional[str] = None
    kvk_number: Optional[str] = None
    btw_number: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ClientImportResult:
    data: List[ClientImportRow] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    total_rows: int = 0

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def valid_rows(self) -> int:
        return len(self.data)


def parse_client_import(content: bytes) -> ClientImportResult:
    result = ClientImportResult()
    try:
        rows, _, error = read_sheet(content)
    except ExcelImportError as e:
        result.errors.append(str(e))
        return result
    if error:
        result.errors.append(error)
        return result

    if not rows:
        result.errors.append("Het bestand bevat geen data")
        return result

    columns = {}
    for index, header in enumerate(rows[0]):
        target = CLIENT_COLUMNS.get(normalize_header(header))
        if target and target not in columns:
            columns[target] = index

    if "name" not in columns:
        result.errors.append('Kolom "Naam KVK" of "Naam" niet gevonden')
    if "email" not in columns:
        result.warnings.append('Kolom "E-mail" niet gevonden - e-mailadressen worden niet geïmporteerd')

    def value(row: tuple, name: str) -> str:
        col = columns.get(name)
        if col is None or col >= len(row):
            return ""
        return cell_text(row[col])

    for offset, row in enumerate(rows[1:]):
        row_no = offset + 2
        result.total_rows += 1

        if not any(cell_text(cell) for cell in row):
            continue

        name = value(row, "name")
        if not name:
            result.warnings.append(f"Rij {row_no}: Naam ontbreekt, overgeslagen")
            continue
        if len(name) > MAX_LENGTHS["name"]:
            result.warnings.append(f"Rij {row_no}: Naam langer dan {MAX_LENGTHS['name']} tekens, overgeslagen")
            continue

        email = value(row, "email")
        valid_email = None
        if email:
            if EMAIL_RE.match(email) and len(email) <= MAX_LENGTHS["email"]:
                valid_email = email
            else:
                result.warnings.append(f'Rij {row_no}: Ongeldig e-mailadres "{email}", overgeslagen')

        company_name = name if any(marker in name for marker in COMPANY_MARKERS) else None
        extra = {field_name: value(row, field_name) or None for field_name in OPTIONAL_FIELDS}
        for field_name in ("phone", "city"):
            if extra[field_name] and len(extra[field_name]) > MAX_LENGTHS[field_name]:
                result.warnings.append(
                    f"Rij {row_no}: {field_name} langer dan {MAX_LENGTHS[field_name]} tekens, overgeslagen"
                )
                extra[field_name] = None
        if extra["kvk_number"]:
            kvk = re.sub(r"\D", "", extra["kvk_number"])
            if not KVK_RE.match(kvk):
                result.warnings.append(f'Rij {row_no}: Ongeldig KVK-nummer "{extra["kvk_number"]}", overgeslagen')
                kvk = None
            extra["kvk_number"] = kvk
        if extra["btw_number"]:
            btw = extra["btw_number"].replace(" ", "").replace(".", "").upper()
            if not BTW_RE.match(btw):
                result.warnings.append(f'Rij {row_no}: Ongeldig BTW-nummer "{extra["btw_number"]}", overgeslagen')
                btw = None
            extra["btw_number"] = btw
        result.data.append(ClientImportRow(name=name, email=valid_email, company_name=company_name, **extra))

    return result
