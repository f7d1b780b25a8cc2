"""
BTW aangifte model

Stores a calculated VAT return (aangifte omzetbelasting) per client and
period. One row per (client, periode_type, periode, jaar); recalculating
a period overwrites the amounts of the existing row.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional
from enum import Enum
from sqlalchemy import String, Integer, Numeric, Text, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class PeriodeType(str, Enum):
    MAAND = "maand"
    KWARTAAL = "kwartaal"
    JAAR = "jaar"


class AangifteStatus(str, Enum):
    CONCEPT = "concept"
    DEFINITIEF = "definitief"
    INGEDIEND = "ingediend"


# Amount columns in aangifte order
RUBRIEK_FIELDS = (
    "rubriek_1a_omzet", "rubriek_1a_btw",
    "rubriek_1b_omzet", "rubriek_1b_btw",
    "rubriek_1c_omzet", "rubriek_1c_btw",
    "rubriek_1d_omzet", "rubriek_1d_btw",
    "rubriek_1e_omzet",
    "rubriek_2a_omzet",
    "rubriek_3a_omzet",
    "rubriek_3b_omzet",
    "rubriek_4a_omzet", "rubriek_4a_btw",
    "rubriek_4b_omzet", "rubriek_4b_btw",
    "rubriek_5a_btw",
    "rubriek_5b_btw", "rubriek_5b_grondslag",
    "rubriek_5c_btw",
    "rubriek_5d_btw",
    "rubriek_5e_btw",
)


def _amount() -> Mapped[Decimal]:
    return mapped_column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)


class BtwAangifte(Base):
    __tablename__ = "btw_aangiftes"
    __table_args__ = (
        UniqueConstraint(
            "client_id", "periode_type", "periode", "jaar",
            name="uq_btw_aangiftes_client_period",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    periode_type: Mapped[str] = mapped_column(String(10), nullable=False)  # maand, kwartaal, jaar
    periode: Mapped[int] = mapped_column(Integer, nullable=False)
    jaar: Mapped[int] = mapped_column(Integer, nullable=False)

    # Rubriek 1: prestaties binnenland
    rubriek_1a_omzet: Mapped[Decimal] = _amount()
    rubriek_1a_btw: Mapped[Decimal] = _amount()
    rubriek_1b_omzet: Mapped[Decimal] = _amount()
    rubriek_1b_btw: Mapped[Decimal] = _amount()
    rubriek_1c_omzet: Mapped[Decimal] = _amount()
    rubriek_1c_btw: Mapped[Decimal] = _amount()
    rubriek_1d_omzet: Mapped[Decimal] = _amount()
    rubriek_1d_btw: Mapped[Decimal] = _amount()
    rubriek_1e_omzet: Mapped[Decimal] = _amount()

    # Rubriek 2 and 3: prestaties naar het buitenland
    rubriek_2a_omzet: Mapped[Decimal] = _amount()
    rubriek_3a_omzet: Mapped[Decimal] = _amount()
    rubriek_3b_omzet: Mapped[Decimal] = _amount()

    # Rubriek 4: prestaties vanuit het buitenland (verlegd)
    rubriek_4a_omzet: Mapped[Decimal] = _amount()
    rubriek_4a_btw: Mapped[Decimal] = _amount()
    rubriek_4b_omzet: Mapped[Decimal] = _amount()
    rubriek_4b_btw: Mapped[Decimal] = _amount()

    # Rubriek 5: voorbelasting en eindtotaal
    rubriek_5a_btw: Mapped[Decimal] = _amount()
    rubriek_5b_btw: Mapped[Decimal] = _amount()
    rubriek_5b_grondslag: Mapped[Decimal] = _amount()
    rubriek_5c_btw: Mapped[Decimal] = _amount()
    rubriek_5d_btw: Mapped[Decimal] = _amount()
    rubriek_5e_btw: Mapped[Decimal] = _amount()

    status: Mapped[str] = mapped_column(String(20), default=AangifteStatus.CONCEPT.value, nullable=False)
    ingediend_op: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    client = relationship("Client", back_populates="btw_aangiftes")
