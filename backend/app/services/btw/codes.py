"""
BTW code rules

Static table of the Dutch BTW codes used on booking rules, plus the pure
functions built on it: VAT amount calculation, booking rule validation and
code suggestion per account type.

No database access here; the btw_codes table is seeded from BTW_CODES.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Union

from app.models.grootboek import AccountType, BtwCodeType


CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str, None]


@dataclass(frozen=True)
class BtwCodeInfo:
    code: str
    description: str
    percentage: Decimal
    rubriek: str
    type: BtwCodeType


BTW_CODES: Dict[str, BtwCodeInfo] = {
    info.code: info
    for info in (
        BtwCodeInfo("1a", "Leveringen/diensten belast met hoog tarief", Decimal("21.0"), "1a", BtwCodeType.VERSCHULDIGD),
        BtwCodeInfo("1b", "Leveringen/diensten belast met laag tarief", Decimal("9.0"), "1b", BtwCodeType.VERSCHULDIGD),
        BtwCodeInfo("1c", "Leveringen/diensten belast met overige tarieven", Decimal("0.0"), "1c", BtwCodeType.VERSCHULDIGD),
        BtwCodeInfo("1d", "Privégebruik", Decimal("21.0"), "1d", BtwCodeType.VERSCHULDIGD),
        BtwCodeInfo("1e", "Leveringen/diensten belast met 0% of niet bij u belast", Decimal("0.0"), "1e", BtwCodeType.GEEN),
        BtwCodeInfo("2a", "Leveringen naar landen buiten de EU", Decimal("0.0"), "2a", BtwCodeType.GEEN),
        BtwCodeInfo("3a", "Leveringen naar landen binnen de EU", Decimal("0.0"), "3a", BtwCodeType.GEEN),
        BtwCodeInfo("3b", "Diensten naar landen binnen de EU", Decimal("0.0"), "3b", BtwCodeType.GEEN),
        BtwCodeInfo("4a", "Leveringen uit landen buiten de EU", Decimal("21.0"), "4a", BtwCodeType.VERLEGD),
        BtwCodeInfo("4b", "Leveringen uit landen binnen de EU", Decimal("21.0"), "4b", BtwCodeType.VERLEGD),
        BtwCodeInfo("5b", "Voorbelasting hoog tarief", Decimal("21.0"), "5b", BtwCodeType.VOORBELASTING),
        BtwCodeInfo("5b-laag", "Voorbelasting laag tarief", Decimal("9.0"), "5b", BtwCodeType.VOORBELASTING),
        BtwCodeInfo("geen", "Geen BTW", Decimal("0.0"), "geen", BtwCodeType.GEEN),
    )
}

# Codes grouped by how the aangifte treats them
VERSCHULDIGD_CODES = ("1a", "1b", "1c", "1d")
OMZET_ONLY_CODES = ("1e", "2a", "3a", "3b")
VERLEGD_CODES = ("4a", "4b")
VOORBELASTING_CODES = ("5b", "5b-laag")

# Description fragments that point to the reduced (9%) rate
REDUCED_RATE_KEYWORDS = ("voed", "boek", "krant", "medicijn")

# Codes meaning "no VAT" besides an empty value
_NO_VAT_CODES = ("geen", "0")


def to_decimal(value: Number) -> Decimal:
    """Coerce request/Excel values to Decimal; None and "" become 0."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_cents(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_euro(value: Number) -> str:
    """Plain euro amount as used in validation messages, e.g. €21.00."""
    return f"€{round_cents(value):.2f}"


def get_btw_code_info(code: Optional[str]) -> Optional[BtwCodeInfo]:
    if not code:
        return None
    return BTW_CODES.get(code)


def is_valid_btw_code(code: Optional[str]) -> bool:
    return bool(code) and code in BTW_CODES


def calculate_btw_amount(base_amount: Number, btw_code: Optional[str]) -> Decimal:
    """
    VAT on a base amount for the given code, rounded to cents.

    Missing, "geen", "0" and unknown codes yield 0.
    """
    if not btw_code or btw_code in _NO_VAT_CODES:
        return ZERO
    info = BTW_CODES.get(btw_code)
    if info is None:
        return ZERO
    return round_cents(to_decimal(base_amount) * info.percentage / Decimal("100"))


def calculate_base_from_total(total_amount: Number, btw_code: Optional[str]) -> Decimal:
    """Base amount from an amount including VAT."""
    total = to_decimal(total_amount)
    if not btw_code or btw_code in _NO_VAT_CODES:
        return total
    info = BTW_CODES.get(btw_code)
    if info is None:
        return total
    return round_cents(total / (Decimal("1") + info.percentage / Decimal("100")))


def format_btw_code(code: Optional[str]) -> str:
    if not code:
        return "Geen BTW"
    info = BTW_CODES.get(code)
    if info is None:
        return code
    return f"{info.code} - {info.description} ({info.percentage.normalize():f}%)"


@dataclass
class ValidationResult:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {"is_valid": self.is_valid, "errors": self.errors, "warnings": self.warnings}


def validate_boekingsregel(
    debet: Number,
    credit: Number,
    btw_code: Optional[str] = None,
    btw_bedrag: Number = None,
    account_type: Optional[str] = None,
    check_btw_amount: bool = True,
) -> ValidationResult:
    """
    Check a booking rule against the Dutch bookkeeping rules.

    Errors block saving; warnings are advisory and returned to the user.
    check_btw_amount=False skips comparing btw_bedrag with the rate, for
    lines whose BTW is booked on a separate rule.
    """
    result = ValidationResult()
    debet = to_decimal(debet)
    credit = to_decimal(credit)
    btw_bedrag = to_decimal(btw_bedrag)

    has_debet = debet > 0
    has_credit = credit > 0

    if has_debet and has_credit:
        result.errors.append("Een boekingsregel kan niet zowel debet als credit hebben")
    if not has_debet and not has_credit:
        result.errors.append("Een boekingsregel moet debet of credit hebben")

    if btw_code and btw_code not in BTW_CODES:
        result.errors.append(f"Ongeldige BTW-code: {btw_code}")

    if check_btw_amount and btw_code and btw_code not in _NO_VAT_CODES:
        base = debet if has_debet else credit
        expected = calculate_btw_amount(base, btw_code)
        if abs(btw_bedrag - expected) > CENT:
            result.warnings.append(
                "BTW bedrag komt niet overeen met berekening. "
                f"Verwacht: {format_euro(expected)}, ingevoerd: {format_euro(btw_bedrag)}"
            )

    info = get_btw_code_info(btw_code)
    if account_type and info is not None:
        if account_type == AccountType.OMZET.value and info.type == BtwCodeType.VOORBELASTING:
            result.warnings.append("Omzet rekening met voorbelasting code - controleer of dit correct is")
        if account_type == AccountType.KOSTEN.value and info.type == BtwCodeType.VERSCHULDIGD:
            result.warnings.append("Kosten rekening met verschuldigd BTW code - controleer of dit correct is")

    if btw_code in VOORBELASTING_CODES and not has_debet:
        result.warnings.append("Voorbelasting staat meestal op de debet kant (inkopen/kosten)")

    if btw_code in VERSCHULDIGD_CODES and not has_credit:
        result.warnings.append("Verschuldigd BTW staat meestal op de credit kant (omzet)")

    return result


def suggest_btw_code(account_type: Optional[str], description: str = "") -> Optional[str]:
    """Most likely BTW code for a booking on an account of this type."""
    if not account_type:
        return None

    reduced = any(keyword in (description or "").lower() for keyword in REDUCED_RATE_KEYWORDS)

    if account_type == AccountType.OMZET.value:
        return "1b" if reduced else "1a"
    if account_type == AccountType.KOSTEN.value:
        return "5b-laag" if reduced else "5b"
    if account_type in (AccountType.ACTIVA.value, AccountType.PASSIVA.value):
        return "geen"
    return None
