"""
Client Schemas

Pydantic schemas for the client administrations of a bookkeeper.
"""
import re
from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field, field_validator, model_validator


# Dutch KVK pattern - 8 digits
KVK_PATTERN = re.compile(r'^[0-9]{8}$')

# Dutch BTW pattern - NL + 9 digits + B + 2 digits (e.g., NL123456789B01)
BTW_PATTERN = re.compile(r'^NL[0-9]{9}B[0-9]{2}$')

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


class ClientBase(BaseModel):
    """Base schema for client data with validation."""
    name: str = Field(..., min_length=1, max_length=255, description="Client name (required)")
    company_name: Optional[str] = Field(None, max_length=255)

    kvk_number: Optional[str] = Field(None, max_length=20, description="Dutch KVK number (8 digits)")
    btw_number: Optional[str] = Field(None, max_length=30, description="Dutch BTW number (NL000000000B00)")

    address: Optional[str] = Field(None, max_length=500)
    postal_code: Optional[str] = Field(None, max_length=20)
    city: Optional[str] = Field(None, max_length=100)

    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = Field(None, max_length=2000)

    fiscal_year_start: int = Field(1, ge=1, le=12, description="First month of the fiscal year")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Trim whitespace from name."""
        if v:
            v = v.strip()
            if not v:
                raise ValueError("Naam is verplicht")
        return v

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        if v:
            v = v.strip()
            if v and not EMAIL_PATTERN.match(v):
                raise ValueError("Ongeldig e-mailadres formaat")
        return v if v else None

    @field_validator('company_name', 'address', 'city', 'phone', 'notes')
    @classmethod
    def trim_string_field(cls, v: Optional[str]) -> Optional[str]:
        if v:
            v = v.strip()
        return v if v else None

    @field_validator('postal_code')
    @classmethod
    def validate_postal_code(cls, v: Optional[str]) -> Optional[str]:
        """Trim and uppercase postal code."""
        if v:
            v = v.strip().upper().replace(' ', '')
        return v if v else None

    @field_validator('kvk_number')
    @classmethod
    def validate_kvk(cls, v: Optional[str]) -> Optional[str]:
        """Validate KVK number format (8 digits)."""
        if v:
            v = v.strip().replace(' ', '')
            if v and not KVK_PATTERN.match(v):
                raise ValueError("KVK-nummer moet 8 cijfers zijn")
        return v if v else None

    @field_validator('btw_number')
    @classmethod
    def validate_btw(cls, v: Optional[str]) -> Optional[str]:
        """Validate BTW number format (NL000000000B00)."""
        if v:
            v = v.strip().upper().replace(' ', '').replace('.', '')
            if v and not BTW_PATTERN.match(v):
                raise ValueError("BTW-nummer moet het formaat NL000000000B00 hebben")
        return v if v else None


class ClientCreate(ClientBase):
    pass


class ClientUpdate(ClientBase):
    """Schema for updating a client - all fields optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    fiscal_year_start: Optional[int] = Field(None, ge=1, le=12)

    @model_validator(mode='after')
    def reject_null_required(self):
        """Required columns may be left out of an update but not set to null."""
        for field in ('name', 'fiscal_year_start'):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} mag niet leeg zijn")
        return self


class ClientResponse(ClientBase):
    id: UUID
    user_id: UUID
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ClientListResponse(BaseModel):
    clients: List[ClientResponse]
    total: int


class ClientBulkCreate(BaseModel):
    clients: List[ClientCreate] = Field(..., min_length=1)


class BulkImportResponse(BaseModel):
    imported: int
    errors: int
    errors_list: List[str] = []
    message: str


class ClientImportResponse(BulkImportResponse):
    """Excel client import: parse summary plus the insert result."""
    total_rows: int
    valid_rows: int
    warnings: List[str] = []
