import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import String, DateTime, func, ForeignKey, Boolean, Numeric, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from app.core.database import Base


class AccountType(str, enum.Enum):
    """Grootboek account categories."""
    ACTIVA = "activa"      # Assets
    PASSIVA = "passiva"    # Liabilities and equity
    KOSTEN = "kosten"      # Expenses
    OMZET = "omzet"        # Revenue


class BtwCodeType(str, enum.Enum):
    """How a BTW code behaves on the aangifte."""
    VERSCHULDIGD = "verschuldigd"    # Output VAT owed on sales
    VOORBELASTING = "voorbelasting"  # Input VAT to reclaim
    VERLEGD = "verlegd"              # Reverse charged
    GEEN = "geen"                    # Reported turnover without VAT


class GrootboekAccount(Base):
    """
    A ledger account in a client's chart of accounts (grootboekschema).

    The optional btw_code is the default code for booking rules on this
    account; btw_percentage and rubriek mirror that code.
    """
    __tablename__ = "grootboek_accounts"
    __table_args__ = (
        UniqueConstraint("client_id", "account_number", name="uq_grootboek_client_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    account_number: Mapped[str] = mapped_column(String(20), nullable=False)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_type: Mapped[str] = mapped_column(String(20), nullable=False)  # activa, passiva, kosten, omzet
    btw_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    btw_percentage: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    rubriek: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    client = relationship("Client", back_populates="grootboek_accounts")
    boekingsregels = relationship("Boekingsregel", back_populates="grootboek_account", passive_deletes=True)


class BtwCode(Base):
    """
    Dutch BTW codes as reported on the aangifte omzetbelasting.

    Seeded from the static table in app.services.btw.codes; the table is
    read-only for users.
    """
    __tablename__ = "btw_codes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)  # 21.00 for 21%
    rubriek: Mapped[str] = mapped_column(String(10), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
