"""
BTW Aangifte Service

Calculates the Dutch VAT return (aangifte omzetbelasting) of a client
from its booking rules and stores it per period.

Rubriek mapping per booking rule with a BTW code (base = credit when
positive, otherwise debet):
- 1a/1b/1c/1d (credit side): omzet and BTW
- 1e/2a/3a/3b (credit side): omzet only
- 4a/4b (debet side): omzet and verlegde BTW
- 5b/5b-laag (debet side): voorbelasting and its grondslag

Totals: 5a = BTW of 1a..1d + 4a + 4b, 5c = 5a - 5b, 5e = 5c - 5d.

The calculation itself is a pure function over the rows so it can be
tested without a database.
"""
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.boeking import Boekingsregel
from app.models.btw_aangifte import BtwAangifte, PeriodeType, AangifteStatus, RUBRIEK_FIELDS
from app.services.btw.codes import (
    VERSCHULDIGD_CODES,
    OMZET_ONLY_CODES,
    VERLEGD_CODES,
    VOORBELASTING_CODES,
    ZERO,
    round_cents,
    to_decimal,
)
from app.services.btw.helpers import (
    period_months,
    format_period,
    get_btw_deadline,
    quarter_months_label,
)


class BtwAangifteError(Exception):
    """Base exception for aangifte operations."""
    pass


class InvalidPeriodError(BtwAangifteError):
    """Raised for a periode that does not exist for the periode_type."""
    pass


class AangifteNotFoundError(BtwAangifteError):
    pass


class AangifteSubmittedError(BtwAangifteError):
    """Raised when recalculating an aangifte that was already submitted."""
    pass


STATUS_LABELS = {
    AangifteStatus.INGEDIEND.value: "Ingediend",
    AangifteStatus.DEFINITIEF.value: "Klaar",
    AangifteStatus.CONCEPT.value: "Concept",
}
NOT_STARTED_LABEL = "Niet gestart"

# (rubriek, omschrijving, omzet field, btw field)
AANGIFTE_ROWS = [
    ("1a", "Leveringen/diensten belast met hoog tarief (21%)", "rubriek_1a_omzet", "rubriek_1a_btw"),
    ("1b", "Leveringen/diensten belast met laag tarief (9%)", "rubriek_1b_omzet", "rubriek_1b_btw"),
    ("1c", "Leveringen/diensten belast met overige tarieven", "rubriek_1c_omzet", "rubriek_1c_btw"),
    ("1d", "Privégebruik", "rubriek_1d_omzet", "rubriek_1d_btw"),
    ("1e", "Leveringen/diensten belast met 0% of niet bij u belast", "rubriek_1e_omzet", None),
    ("2a", "Leveringen naar landen buiten de EU (uitvoer)", "rubriek_2a_omzet", None),
    ("3a", "Leveringen naar landen binnen de EU", "rubriek_3a_omzet", None),
    ("3b", "Diensten naar landen binnen de EU", "rubriek_3b_omzet", None),
    ("4a", "Leveringen/diensten uit landen buiten de EU", "rubriek_4a_omzet", "rubriek_4a_btw"),
    ("4b", "Leveringen/diensten uit landen binnen de EU", "rubriek_4b_omzet", "rubriek_4b_btw"),
    ("5a", "Verschuldigde omzetbelasting", None, "rubriek_5a_btw"),
    ("5b", "Voorbelasting", "rubriek_5b_grondslag", "rubriek_5b_btw"),
    ("5c", "Subtotaal (5a min 5b)", None, "rubriek_5c_btw"),
    ("5d", "Vermindering volgens de kleineondernemersregeling", None, "rubriek_5d_btw"),
    ("5e", "Totaal te betalen / terug te vragen", None, "rubriek_5e_btw"),
]


_MAX_PERIODE = {
    PeriodeType.MAAND.value: 12,
    PeriodeType.KWARTAAL.value: 4,
    PeriodeType.JAAR.value: 1,
}


def validate_period(periode_type: str, periode: int, jaar: int) -> None:
    if periode_type not in _MAX_PERIODE:
        raise InvalidPeriodError(f"Ongeldig periode type: {periode_type}")
    if not 1 <= periode <= _MAX_PERIODE[periode_type]:
        raise InvalidPeriodError(f"Ongeldige periode {periode} voor {periode_type}")
    if not 1900 <= jaar <= 2999:
        raise InvalidPeriodError(f"Ongeldig jaar: {jaar}")


@dataclass
class BtwCalculation:
    """Calculated rubriek amounts for one period."""
    periode_type: str
    periode: int
    jaar: int
    rubrieken: Dict[str, Decimal] = field(
        default_factory=lambda: {name: ZERO for name in RUBRIEK_FIELDS}
    )
    total_transactions: int = 0
    transactions_with_btw: int = 0

    @property
    def periode_label(self) -> str:
        return format_period(self.periode_type, self.periode, self.jaar)

    def add(self, rubriek_field: str, amount: Decimal) -> None:
        self.rubrieken[rubriek_field] += amount

    def to_dict(self) -> dict:
        return {
            "periode_type": self.periode_type,
            "periode": self.periode,
            "jaar": self.jaar,
            "periode_label": self.periode_label,
            "total_transactions": self.total_transactions,
            "transactions_with_btw": self.transactions_with_btw,
            **self.rubrieken,
        }


def calculate_btw(
    rows: Iterable[Boekingsregel],
    periode_type: str,
    periode: int,
    jaar: int,
) -> BtwCalculation:
    """
    Aggregate booking rules into aangifte rubrieken.

    Rows outside the period are ignored, so callers may pass the whole
    year. Rows whose side does not match their code (e.g. 1a on the debet
    side) are counted but not reported.
    """
    validate_period(periode_type, periode, jaar)
    months = set(period_months(periode_type, periode))
    calc = BtwCalculation(periode_type=periode_type, periode=periode, jaar=jaar)

    for row in rows:
        if row.jaar != jaar or row.periode not in months:
            continue

        calc.total_transactions += 1
        code = row.btw_code
        if not code:
            continue
        calc.transactions_with_btw += 1

        debet = to_decimal(row.debet)
        credit = to_decimal(row.credit)
        btw = abs(to_decimal(row.btw_bedrag))
        base = credit if credit > 0 else debet
        if base == 0:
            continue

        if code in VERSCHULDIGD_CODES:
            if credit > 0:
                calc.add(f"rubriek_{code}_omzet", base)
                calc.add(f"rubriek_{code}_btw", btw)
        elif code in OMZET_ONLY_CODES:
            if credit > 0:
                calc.add(f"rubriek_{code}_omzet", base)
        elif code in VERLEGD_CODES:
            if debet > 0:
                calc.add(f"rubriek_{code}_omzet", base)
                calc.add(f"rubriek_{code}_btw", btw)
        elif code in VOORBELASTING_CODES:
            if debet > 0:
                calc.add("rubriek_5b_btw", btw)
                calc.add("rubriek_5b_grondslag", debet)

    r = calc.rubrieken
    r["rubriek_5a_btw"] = (
        r["rubriek_1a_btw"] + r["rubriek_1b_btw"] + r["rubriek_1c_btw"] + r["rubriek_1d_btw"]
        + r["rubriek_4a_btw"] + r["rubriek_4b_btw"]
    )
    r["rubriek_5c_btw"] = r["rubriek_5a_btw"] - r["rubriek_5b_btw"]
    # No KOR reduction is applied
    r["rubriek_5d_btw"] = ZERO
    r["rubriek_5e_btw"] = r["rubriek_5c_btw"] - r["rubriek_5d_btw"]

    for name in RUBRIEK_FIELDS:
        r[name] = round_cents(r[name])

    return calc


@dataclass
class QuarterSummary:
    quarter: int
    months_label: str
    total_omzet: Decimal
    total_btw: Decimal
    status: Optional[str]
    status_label: str
    aangifte_id: Optional[uuid.UUID]
    deadline: date
    days_remaining: int
    is_overdue: bool


def summarize_quarters(aangiftes: Iterable[BtwAangifte], jaar: int, today: Optional[date] = None) -> List[QuarterSummary]:
    """Four-quarter overview of the saved kwartaal aangiftes of a year."""
    by_quarter = {
        a.periode: a
        for a in aangiftes
        if a.periode_type == PeriodeType.KWARTAAL.value and a.jaar == jaar
    }
    summaries = []
    for quarter in range(1, 5):
        aangifte = by_quarter.get(quarter)
        deadline = get_btw_deadline(PeriodeType.KWARTAAL.value, quarter, jaar, today=today)
        if aangifte is not None:
            total_omzet = (
                to_decimal(aangifte.rubriek_1a_omzet)
                + to_decimal(aangifte.rubriek_1b_omzet)
                + to_decimal(aangifte.rubriek_1e_omzet)
            )
            total_btw = to_decimal(aangifte.rubriek_5e_btw)
            status = aangifte.status
        else:
            total_omzet = total_btw = ZERO
            status = None
        summaries.append(QuarterSummary(
            quarter=quarter,
            months_label=quarter_months_label(quarter),
            total_omzet=round_cents(total_omzet),
            total_btw=round_cents(total_btw),
            status=status,
            status_label=STATUS_LABELS.get(status, NOT_STARTED_LABEL),
            aangifte_id=aangifte.id if aangifte is not None else None,
            deadline=deadline.deadline,
            days_remaining=deadline.days_remaining,
            is_overdue=deadline.is_overdue,
        ))
    return summaries


class BtwAangifteService:
    """Database side of the aangifte: loading rows, upserting, status changes."""

    def __init__(self, db: AsyncSession, client_id: uuid.UUID):
        self.db = db
        self.client_id = client_id

    async def calculate(self, periode_type: str, periode: int, jaar: int) -> BtwCalculation:
        validate_period(periode_type, periode, jaar)
        result = await self.db.execute(
            select(Boekingsregel)
            .where(Boekingsregel.client_id == self.client_id)
            .where(Boekingsregel.jaar == jaar)
            .where(Boekingsregel.periode.in_(list(period_months(periode_type, periode))))
        )
        return calculate_btw(result.scalars().all(), periode_type, periode, jaar)

    async def save(self, periode_type: str, periode: int, jaar: int) -> Tuple[BtwAangifte, BtwCalculation]:
        """
        Calculate and store the aangifte of a period; returns the stored
        row and the calculation it was built from.

        An existing concept/definitief row is overwritten and set back to
        concept; a submitted (ingediend) aangifte is never recalculated.
        """
        calc = await self.calculate(periode_type, periode, jaar)

        result = await self.db.execute(
            select(BtwAangifte).where(
                BtwAangifte.client_id == self.client_id,
                BtwAangifte.periode_type == periode_type,
                BtwAangifte.periode == periode,
                BtwAangifte.jaar == jaar,
            )
        )
        aangifte = result.scalar_one_or_none()

        if aangifte is None:
            aangifte = BtwAangifte(
                client_id=self.client_id,
                periode_type=periode_type,
                periode=periode,
                jaar=jaar,
            )
            self.db.add(aangifte)
        elif aangifte.status == AangifteStatus.INGEDIEND.value:
            raise AangifteSubmittedError(
                f"BTW aangifte {calc.periode_label} is al ingediend en kan niet opnieuw berekend worden."
            )

        for name, amount in calc.rubrieken.items():
            setattr(aangifte, name, amount)
        aangifte.status = AangifteStatus.CONCEPT.value

        await self.db.commit()
        await self.db.refresh(aangifte)
        return aangifte, calc

    async def list_aangiftes(self, jaar: Optional[int] = None) -> List[BtwAangifte]:
        query = select(BtwAangifte).where(BtwAangifte.client_id == self.client_id)
        if jaar is not None:
            query = query.where(BtwAangifte.jaar == jaar)
        query = query.order_by(BtwAangifte.jaar.desc(), BtwAangifte.periode.desc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get(self, aangifte_id: uuid.UUID) -> BtwAangifte:
        result = await self.db.execute(
            select(BtwAangifte).where(
                BtwAangifte.id == aangifte_id,
                BtwAangifte.client_id == self.client_id,
            )
        )
        aangifte = result.scalar_one_or_none()
        if aangifte is None:
            raise AangifteNotFoundError("BTW aangifte niet gevonden.")
        return aangifte

    async def update_status(
        self,
        aangifte_id: uuid.UUID,
        status: str,
        notes: Optional[str] = None,
    ) -> BtwAangifte:
        aangifte = await self.get(aangifte_id)
        aangifte.status = status
        if status == AangifteStatus.INGEDIEND.value:
            aangifte.ingediend_op = datetime.now(timezone.utc)
        if notes is not None:
            aangifte.notes = notes
        await self.db.commit()
        await self.db.refresh(aangifte)
        return aangifte

    async def quarterly_overview(self, jaar: int, today: Optional[date] = None) -> List[QuarterSummary]:
        return summarize_quarters(await self.list_aangiftes(jaar=jaar), jaar, today=today)
