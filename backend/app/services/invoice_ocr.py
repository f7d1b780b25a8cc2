"""
Invoice OCR

Reads a purchase invoice image with Tesseract and turns the text into
proposed booking rules (cost line, voorbelasting line, payment line).
Text parsing is separate from OCR so it can be tested on plain strings.
"""
import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from io import BytesIO
from typing import List, Optional

import pytesseract
from PIL import Image, UnidentifiedImageError

from app.core.config import settings
from app.services.btw.codes import CENT, ZERO, round_cents
from app.services.btw.helpers import parse_amount

logger = logging.getLogger(__name__)


class InvoiceOcrError(Exception):
    """Raised when no usable text can be read from the upload."""
    pass


DEFAULT_EXPENSE_ACCOUNT = "4300"
VAT_ACCOUNT = "1900"
PAYMENT_ACCOUNT = "2000"

HIGH_RATE = Decimal("21")
LOW_RATE = Decimal("9")

_AMOUNT = r"€?\s*([\d.,]+)"

INVOICE_NUMBER_PATTERNS = [
    re.compile(r"factuurnummer[:\s]+([a-z0-9\-_/]+)", re.I),
    re.compile(r"invoice[:\s]+([a-z0-9\-_/]+)", re.I),
    re.compile(r"factuur[:\s]+([a-z0-9\-_/]+)", re.I),
    re.compile(r"nr[.\s:]+([a-z0-9\-_/]+)", re.I),
    re.compile(r"nummer[:\s]+([a-z0-9\-_/]+)", re.I),
]

STANDALONE_NUMBER_PATTERNS = [
    re.compile(r"(?:^|\s)([A-Z]{2,4}\d{4}[-_/]\d{1,2}[-_/]\d{2,})", re.I),
    re.compile(r"(?:^|\s)(FACT[-_]?\d{4,}(?:[-_]\d+)*)", re.I),
    re.compile(r"(?:^|\s)(INV[-_]?\d{4,}(?:[-_]\d+)*)", re.I),
]

LABELED_DATE_PATTERNS = [
    re.compile(r"factuurdatum[:\s]+(\d{1,2})[-/](\d{1,2})[-/](\d{4})", re.I),
    re.compile(r"datum[:\s]+(\d{1,2})[-/](\d{1,2})[-/](\d{4})", re.I),
    re.compile(r"date[:\s]+(\d{1,2})[-/](\d{1,2})[-/](\d{4})", re.I),
]
ANY_DATE_PATTERN = re.compile(r"(\d{1,2})[-/](\d{1,2})[-/](\d{4})")

SUBTOTAL_PATTERNS = [
    re.compile(r"subtotaal[:\s]*" + _AMOUNT, re.I),
    re.compile(r"subtotal[:\s]*" + _AMOUNT, re.I),
]

TOTAL_PATTERNS = [
    re.compile(r"totaal\s+te\s+betalen[:\s]*" + _AMOUNT, re.I),
    re.compile(r"eindtotaal[:\s]*" + _AMOUNT, re.I),
    re.compile(r"totaalbedrag[:\s]*" + _AMOUNT, re.I),
    re.compile(r"totaal\s+(?:incl\.?\s+)?btw[:\s]*" + _AMOUNT, re.I),
    re.compile(r"totaal[:\s]*" + _AMOUNT, re.I),
]

VAT_PATTERNS = [
    re.compile(r"btw\s*\(?\d+%\)?[:\s]*" + _AMOUNT, re.I),
    re.compile(r"btw[:\s]*" + _AMOUNT, re.I),
    re.compile(r"omzetbelasting[:\s]*" + _AMOUNT, re.I),
    re.compile(r"vat[:\s]*" + _AMOUNT, re.I),
]
VAT_RATE_PATTERN = re.compile(r"btw\s*\(?(\d+)%\)?", re.I)

SUPPLIER_PATTERNS = [
    re.compile(r"^([A-Z][A-Z\s&]+(?:B\.?V\.?|N\.?V\.?|V\.?O\.?F\.?|BEDRIJF|EENMANSZAAK))", re.M),
    re.compile(r"leverancier[:\s]+([A-Z][A-Za-z\s&]+)", re.I),
    re.compile(r"supplier[:\s]+([A-Z][A-Za-z\s&]+)", re.I),
]


@dataclass
class InvoiceData:
    raw_text: str
    invoice_number: Optional[str] = None
    invoice_date: Optional[date] = None
    subtotal: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None
    vat_amount: Optional[Decimal] = None
    vat_rate: Optional[Decimal] = None
    supplier_name: Optional[str] = None


@dataclass
class ProposedRegel:
    boekdatum: date
    account_number: str
    omschrijving: str
    debet: Decimal = ZERO
    credit: Decimal = ZERO
    btw_code: Optional[str] = None
    btw_bedrag: Decimal = ZERO
    factuurnummer: Optional[str] = None


def extract_text(content: bytes) -> str:
    """OCR an image upload. Raises InvoiceOcrError when nothing is readable."""
    try:
        image = Image.open(BytesIO(content)).convert("L")
    except (UnidentifiedImageError, OSError) as e:
        raise InvoiceOcrError("Alleen afbeeldingen worden ondersteund.") from e

    try:
        text = pytesseract.image_to_string(image, lang=settings.OCR_LANGUAGES, config="--psm 6")
    except pytesseract.TesseractError as e:
        logger.warning("OCR extraction failed", extra={"event": "invoice_ocr_failed", "error": str(e)})
        raise InvoiceOcrError(f"OCR fout: {e}") from e

    if len(text.strip()) < 10:
        raise InvoiceOcrError(
            "OCR kon geen tekst extraheren uit de afbeelding. "
            "Zorg ervoor dat de afbeelding duidelijk en leesbaar is."
        )
    logger.info("OCR extracted %d chars", len(text), extra={"event": "invoice_ocr_extracted"})
    return text


def _positive_amount(raw: str) -> Optional[Decimal]:
    amount = parse_amount(raw.rstrip(".,"))
    if amount is None or amount <= 0:
        return None
    return amount


def _context(text: str, match: re.Match, before: int, after: int) -> str:
    return text[max(0, match.start() - before):match.end() + after].lower()


def _find_invoice_number(text: str) -> Optional[str]:
    for pattern in INVOICE_NUMBER_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()
    for pattern in STANDALONE_NUMBER_PATTERNS:
        match = pattern.search(text)
        if match and len(match.group(1)) >= 6:
            return match.group(1).strip()
    return None


def _valid_date(day: int, month: int, year: int, first_year: int, last_year: int) -> Optional[date]:
    if not (first_year <= year <= last_year):
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _find_date(text: str) -> Optional[date]:
    for pattern in LABELED_DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            found = _valid_date(int(match.group(1)), int(match.group(2)), int(match.group(3)), 2000, 2100)
            if found:
                return found
    for match in ANY_DATE_PATTERN.finditer(text):
        found = _valid_date(int(match.group(1)), int(match.group(2)), int(match.group(3)), 2020, 2030)
        if found:
            return found
    return None


def _find_total(text: str, subtotal: Optional[Decimal]) -> Optional[Decimal]:
    for pattern in TOTAL_PATTERNS:
        for match in pattern.finditer(text):
            if "subtota" in _context(text, match, 20, 0):
                continue
            amount = _positive_amount(match.group(1))
            if amount is None or (subtotal is not None and amount <= subtotal):
                continue
            return amount

    # Largest euro amount in the text
    amounts = [a for a in (_positive_amount(m.group(1)) for m in re.finditer(r"€\s*([\d.,]+)", text)) if a]
    return max(amounts) if amounts else None


def _find_vat(text: str, total: Optional[Decimal]) -> Optional[Decimal]:
    for pattern in VAT_PATTERNS:
        for match in pattern.finditer(text):
            context = _context(text, match, 10, 10)
            if "kvk" in context or "btw-nr" in context or "btw nummer" in context:
                continue
            amount = _positive_amount(match.group(1))
            if amount is None:
                continue
            if total is None or amount < total * Decimal("0.3"):
                return amount
    return None


def _standard_rate(rate: Decimal) -> Decimal:
    if Decimal("8") <= rate <= Decimal("10"):
        return LOW_RATE
    if Decimal("19") <= rate <= Decimal("22"):
        return HIGH_RATE
    return rate.quantize(CENT)


def _find_supplier(text: str) -> Optional[str]:
    for pattern in SUPPLIER_PATTERNS:
        match = pattern.search(text)
        if match:
            name = " ".join(match.group(1).split())
            if len(name) > 5 and not re.match(r"^(FACTUUR|INVOICE|KLANT|CLIENT)", name, re.I):
                return name
    return None


def parse_invoice_text(text: str) -> InvoiceData:
    """Pull invoice fields out of OCR text from a Dutch invoice."""
    data = InvoiceData(raw_text=text)
    data.invoice_number = _find_invoice_number(text)
    data.invoice_date = _find_date(text)

    for pattern in SUBTOTAL_PATTERNS:
        match = pattern.search(text)
        if match:
            data.subtotal = _positive_amount(match.group(1))
            if data.subtotal:
                break

    data.total_amount = _find_total(text, data.subtotal)
    data.vat_amount = _find_vat(text, data.total_amount)

    if data.subtotal and data.total_amount:
        derived = data.total_amount - data.subtotal
        tolerance = max(derived * Decimal("0.05"), Decimal("1"))
        if data.vat_amount is None or abs(data.vat_amount - derived) > tolerance:
            data.vat_amount = derived
    elif data.total_amount and data.vat_amount is None:
        match = VAT_RATE_PATTERN.search(text)
        if match:
            rate = Decimal(match.group(1))
            if 0 < rate <= 25:
                data.vat_amount = round_cents(data.total_amount - data.total_amount / (1 + rate / 100))
                data.vat_rate = rate

    if data.total_amount and data.vat_amount:
        base = data.total_amount - data.vat_amount
        if base > 0:
            data.vat_rate = _standard_rate(data.vat_amount / base * 100)

    data.supplier_name = _find_supplier(text)
    return data


def invoice_to_regels(
    data: InvoiceData,
    expense_account: str = DEFAULT_EXPENSE_ACCOUNT,
    today: Optional[date] = None,
) -> List[ProposedRegel]:
    """
    Proposed booking rules for a purchase invoice.

    Cost line (debet, excl. BTW) on the expense account, voorbelasting on
    1900 and the payable total as credit on 2000. Without a VAT amount or
    rate 21% is assumed. No total means nothing can be booked.
    """
    if not data.total_amount:
        return []

    total = data.total_amount
    if data.vat_amount and data.vat_amount > 0:
        vat = data.vat_amount
    else:
        rate = data.vat_rate if data.vat_rate and data.vat_rate > 0 else HIGH_RATE
        vat = total - total / (1 + rate / 100)
    base = round_cents(total - vat)
    vat = round_cents(vat)

    rate = data.vat_rate
    if rate is None and base > 0:
        rate = vat / base * 100
    btw_code = None
    if vat > 0:
        btw_code = "5b-laag" if rate is not None and Decimal("8") <= rate <= Decimal("10") else "5b"

    boekdatum = data.invoice_date or today or date.today()
    number = data.invoice_number
    if data.supplier_name:
        omschrijving = f"Factuur {number or ''} - {data.supplier_name}".replace("  ", " ")
    else:
        omschrijving = f"Factuur {number or 'onbekend'}"

    regels = [ProposedRegel(
        boekdatum=boekdatum,
        account_number=expense_account,
        omschrijving=omschrijving,
        debet=base,
        btw_code=btw_code,
        factuurnummer=number,
    )]
    if vat > 0 and btw_code:
        regels.append(ProposedRegel(
            boekdatum=boekdatum,
            account_number=VAT_ACCOUNT,
            omschrijving=f"BTW voorbelasting op factuur {number or ''}".strip(),
            debet=vat,
            btw_code=btw_code,
            btw_bedrag=vat,
            factuurnummer=number,
        ))
    regels.append(ProposedRegel(
        boekdatum=boekdatum,
        account_number=PAYMENT_ACCOUNT,
        omschrijving=f"Te betalen factuur {number or ''}".strip(),
        credit=round_cents(total),
        factuurnummer=number,
    ))
    return regels
