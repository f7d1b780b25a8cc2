"""
Client model

A client is an administration kept by a bookkeeper (profile): a company or
sole trader whose grootboek, boekingsregels and BTW aangiftes are managed.
"""
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Integer, Text, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_clients_user_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    company_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    kvk_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    btw_number: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # First month of the client's fiscal year (1 = januari)
    fiscal_year_start: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    profile = relationship("Profile", back_populates="clients")
    grootboek_accounts = relationship(
        "GrootboekAccount", back_populates="client", cascade="all, delete-orphan", passive_deletes=True
    )
    boekingsregels = relationship(
        "Boekingsregel", back_populates="client", cascade="all, delete-orphan", passive_deletes=True
    )
    btw_aangiftes = relationship(
        "BtwAangifte", back_populates="client", cascade="all, delete-orphan", passive_deletes=True
    )
    upload_logs = relationship(
        "UploadLog", back_populates="client", cascade="all, delete-orphan", passive_deletes=True
    )
