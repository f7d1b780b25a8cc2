"""
Bookkeeper helpers

Explanations, period labels, aangifte deadlines and the number/date
parsing shared by the Excel importers and the invoice reader.
"""
import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from app.models.btw_aangifte import PeriodeType


MONTH_NAMES = [
    "januari", "februari", "maart", "april", "mei", "juni",
    "juli", "augustus", "september", "oktober", "november", "december",
]

SHORT_MONTH_NAMES = ["Jan", "Feb", "Mrt", "Apr", "Mei", "Jun", "Jul", "Aug", "Sep", "Okt", "Nov", "Dec"]

RUBRIEK_EXPLANATIONS = {
    "1a": "Omzet belast met 21% BTW (hoog tarief). Meest voorkomend voor diensten en goederen.",
    "1b": "Omzet belast met 9% BTW (laag tarief). Voor levensmiddelen, boeken, medicijnen, etc.",
    "1c": "Omzet met overige BTW-tarieven. Zeldzaam, controleer of dit correct is.",
    "1d": "Privégebruik. BTW over privégebruik van bedrijfsmiddelen.",
    "1e": "Vrijgestelde omzet. Geen BTW verschuldigd (bijv. medische diensten, onderwijs).",
    "2a": "Export naar landen buiten de EU. Geen BTW verschuldigd.",
    "3a": "Leveringen naar EU-landen. Geen BTW, maar wel aangifteplicht.",
    "3b": "Diensten naar EU-landen. Geen BTW, maar wel aangifteplicht.",
    "4a": "Inkoop uit landen buiten de EU. BTW verschuldigd via verleggingsregeling.",
    "4b": "Inkoop uit EU-landen. BTW verschuldigd via verleggingsregeling.",
    "5b": "Voorbelasting. BTW op inkopen/kosten die je mag terugvorderen.",
}

NO_EXPLANATION = "Geen uitleg beschikbaar voor deze rubriek."

ACCOUNT_TYPE_GUIDANCE = {
    "omzet": {
        "typical_btw_code": "1a",
        "explanation": "Omzet rekeningen hebben meestal verschuldigd BTW (1a of 1b) op de credit kant.",
        "typical_side": "credit",
    },
    "kosten": {
        "typical_btw_code": "5b",
        "explanation": "Kosten rekeningen hebben meestal voorbelasting (5b) op de debet kant.",
        "typical_side": "debet",
    },
    "activa": {
        "typical_btw_code": "geen",
        "explanation": "Activa rekeningen hebben meestal geen BTW (balansposten).",
        "typical_side": "debet",
    },
    "passiva": {
        "typical_btw_code": "geen",
        "explanation": "Passiva rekeningen hebben meestal geen BTW (balansposten).",
        "typical_side": "credit",
    },
}

DEFAULT_GUIDANCE = {
    "typical_btw_code": "geen",
    "explanation": "Controleer de BTW-code handmatig.",
    "typical_side": "both",
}

ACCOUNTING_TERMS = {
    "debet": {
        "term": "Debet",
        "explanation": "Linkerkant van de balans. Verhoogt activa en kosten, verlaagt passiva en omzet.",
        "examples": ["Inkopen", "Kosten", "Activa (bezittingen)"],
    },
    "credit": {
        "term": "Credit",
        "explanation": "Rechterkant van de balans. Verhoogt passiva en omzet, verlaagt activa en kosten.",
        "examples": ["Omzet", "Schulden", "Eigen vermogen"],
    },
    "grootboek": {
        "term": "Grootboek",
        "explanation": "Het complete overzicht van alle rekeningen in uw administratie.",
        "examples": ["Rekening 8000: Omzet", "Rekening 4300: Huur"],
    },
    "boekingsregel": {
        "term": "Boekingsregel",
        "explanation": (
            "Een individuele transactie in uw administratie. "
            "Elke transactie heeft minstens twee regels (debet en credit)."
        ),
        "examples": ["Factuur ontvangen", "Betaling gedaan"],
    },
    "btw_code": {
        "term": "BTW-code",
        "explanation": (
            "Code die aangeeft welk BTW-tarief van toepassing is. "
            "Niet het percentage zelf, maar de Belastingdienst-rubriek."
        ),
        "examples": ["1a = 21% omzet", "5b = 21% voorbelasting"],
    },
}


def get_rubriek_explanation(rubriek: str) -> str:
    return RUBRIEK_EXPLANATIONS.get(rubriek, NO_EXPLANATION)


def get_account_type_guidance(account_type: Optional[str]) -> dict:
    return dict(ACCOUNT_TYPE_GUIDANCE.get(account_type or "", DEFAULT_GUIDANCE))


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------

def period_months(periode_type: str, periode: int) -> range:
    """Months (1..12) covered by a maand/kwartaal/jaar period."""
    if periode_type == PeriodeType.MAAND.value:
        return range(periode, periode + 1)
    if periode_type == PeriodeType.KWARTAAL.value:
        return range((periode - 1) * 3 + 1, periode * 3 + 1)
    return range(1, 13)


def format_period(periode_type: str, periode: int, jaar: int) -> str:
    """Dutch period label: "maart 2026", "Q1 2026" or "Jaar 2026"."""
    if periode_type == PeriodeType.MAAND.value:
        return f"{MONTH_NAMES[periode - 1]} {jaar}"
    if periode_type == PeriodeType.KWARTAAL.value:
        return f"Q{periode} {jaar}"
    return f"Jaar {jaar}"


def period_slug(periode_type: str, periode: int, jaar: int) -> str:
    """Short period tag for file names: Q1-2026, M3-2026, Jaar-2026."""
    if periode_type == PeriodeType.KWARTAAL.value:
        return f"Q{periode}-{jaar}"
    if periode_type == PeriodeType.MAAND.value:
        return f"M{periode}-{jaar}"
    return f"Jaar-{jaar}"


def quarter_months_label(quarter: int) -> str:
    start = (quarter - 1) * 3
    return f"{SHORT_MONTH_NAMES[start]}-{SHORT_MONTH_NAMES[start + 2]}"


@dataclass
class BtwDeadline:
    deadline: date
    days_remaining: int
    is_overdue: bool


def get_btw_deadline(
    periode_type: str,
    periode: int,
    jaar: int,
    today: Optional[date] = None,
) -> BtwDeadline:
    """
    Filing deadline of an aangifte.

    Monthly and quarterly returns are due on the last day of the month
    after the period ends. Yearly returns are due on 31 May of the
    following year.
    """
    today = today or date.today()

    if periode_type == PeriodeType.JAAR.value:
        deadline = date(jaar + 1, 5, 31)
    else:
        last_month = period_months(periode_type, periode)[-1]
        due_year, due_month = (jaar + 1, 1) if last_month == 12 else (jaar, last_month + 1)
        deadline = date(due_year, due_month, calendar.monthrange(due_year, due_month)[1])

    days_remaining = (deadline - today).days
    return BtwDeadline(deadline=deadline, days_remaining=days_remaining, is_overdue=days_remaining < 0)


# ---------------------------------------------------------------------------
# Parsing of user supplied numbers and dates
# ---------------------------------------------------------------------------

_CURRENCY_RE = re.compile(r"[€$£\s ]")
EXCEL_EPOCH = date(1899, 12, 30)

_DAY_FIRST_RE = re.compile(r"^(\d{1,2})[-/.](\d{1,2})[-/.](\d{4})$")
_ISO_RE = re.compile(r"^(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})$")


def parse_amount(value: Union[str, int, float, Decimal, None]) -> Optional[Decimal]:
    """
    Parse an amount written in Dutch or English notation.

    "1.234,56", "1,234.56", "1234,56", "€ 12,50" and "-7.5" are accepted.
    When only one kind of separator occurs, a single one followed by
    exactly three digits groups thousands ("4.104"); otherwise it is the
    decimal separator. Returns None when the value is not a number.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))

    cleaned = _CURRENCY_RE.sub("", str(value))
    if not cleaned:
        return None

    negative = False
    if cleaned.startswith("(") and cleaned.endswith(")"):
        negative, cleaned = True, cleaned[1:-1]
    if cleaned.startswith("-"):
        negative, cleaned = True, cleaned[1:]

    has_comma = "," in cleaned
    has_period = "." in cleaned

    if has_comma and has_period:
        # Whichever separator comes last is the decimal separator
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif has_comma:
        head, _, tail = cleaned.rpartition(",")
        if len(tail) == 2 or (cleaned.count(",") == 1 and len(tail) != 3):
            cleaned = head.replace(",", "") + "." + tail
        else:
            cleaned = cleaned.replace(",", "")
    elif has_period:
        head, _, tail = cleaned.rpartition(".")
        if cleaned.count(".") > 1 or len(tail) == 3:
            cleaned = cleaned.replace(".", "")

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    return -amount if negative else amount


def parse_date(value) -> Optional[date]:
    """
    Parse a booking date from an Excel cell or text.

    Accepts date/datetime objects, Excel serial numbers, dd-mm-yyyy with
    -, / or . separators (falling back to mm-dd-yyyy when the second part
    cannot be a month) and yyyy-mm-dd.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return EXCEL_EPOCH + timedelta(days=int(value))

    text = str(value).strip()
    if not text:
        return None
    # "2026-03-15 00:00:00" style values from spreadsheets
    text = text.split(" ")[0].split("T")[0]

    try:
        match = _ISO_RE.match(text)
        if match:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

        match = _DAY_FIRST_RE.match(text)
        if match:
            first, second, year = int(match.group(1)), int(match.group(2)), int(match.group(3))
            if second <= 12:
                return date(year, second, first)
            return date(year, first, second)
    except ValueError:
        return None

    if text.isdigit():
        return EXCEL_EPOCH + timedelta(days=int(text))
    return None
