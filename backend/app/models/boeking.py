import uuid
from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from sqlalchemy import String, Date, DateTime, Integer, Boolean, Numeric, Text, ForeignKey, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class Boekingsregel(Base):
    """
    A single booking line on a grootboek account.

    Exactly one of debet/credit carries the amount. periode (month) and
    jaar are derived from boekdatum and drive the aangifte selection.
    """
    __tablename__ = "boekingsregels"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    boekstuk_nummer: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    boekdatum: Mapped[date] = mapped_column(Date, nullable=False)
    omschrijving: Mapped[str] = mapped_column(Text, nullable=False)

    grootboek_account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("grootboek_accounts.id", ondelete="SET NULL"), nullable=True
    )
    account_number: Mapped[str] = mapped_column(String(20), nullable=False)

    debet: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)
    credit: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)
    btw_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    btw_bedrag: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)

    tegenrekening: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    factuurnummer: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    relatie: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    periode: Mapped[int] = mapped_column(Integer, nullable=False, index=True)  # 1..12
    jaar: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    is_validated: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    client = relationship("Client", back_populates="boekingsregels")
    grootboek_account = relationship("GrootboekAccount", back_populates="boekingsregels")
