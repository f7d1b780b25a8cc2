from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field, field_validator


class BoekingsregelBase(BaseModel):
    boekdatum: date
    account_number: str = Field(..., min_length=1, max_length=20)
    omschrijving: str = Field(..., min_length=1)
    debet: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    credit: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    btw_code: Optional[str] = Field(None, max_length=20)
    btw_bedrag: Decimal = Field(Decimal("0"), decimal_places=2)
    boekstuk_nummer: Optional[str] = Field(None, max_length=50)
    factuurnummer: Optional[str] = Field(None, max_length=100)
    relatie: Optional[str] = Field(None, max_length=255)
    tegenrekening: Optional[str] = Field(None, max_length=50)

    @field_validator('account_number', 'omschrijving')
    @classmethod
    def trim_required(cls, v: str) -> str:
        if v:
            v = v.strip()
            if not v:
                raise ValueError("Veld mag niet leeg zijn")
        return v

    @field_validator('btw_code')
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        if v:
            v = v.strip().lower()
        return v if v else None


class BoekingsregelCreate(BoekingsregelBase):
    pass


class BoekingsregelUpdate(BoekingsregelBase):
    boekdatum: Optional[date] = None
    account_number: Optional[str] = Field(None, min_length=1, max_length=20)
    omschrijving: Optional[str] = Field(None, min_length=1)
    debet: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    credit: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    btw_bedrag: Optional[Decimal] = Field(None, decimal_places=2)


class BoekingsregelResponse(BaseModel):
    id: UUID
    client_id: UUID
    grootboek_account_id: Optional[UUID] = None
    boekdatum: date
    account_number: str
    omschrijving: str
    debet: Decimal
    credit: Decimal
    btw_code: Optional[str] = None
    btw_bedrag: Decimal
    boekstuk_nummer: Optional[str] = None
    factuurnummer: Optional[str] = None
    relatie: Optional[str] = None
    tegenrekening: Optional[str] = None
    periode: int
    jaar: int
    is_validated: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BoekingsregelSaved(BaseModel):
    """A created/updated rule plus the non-blocking validation warnings."""
    regel: BoekingsregelResponse
    warnings: List[str] = []


class BoekingsregelStats(BaseModel):
    count: int
    total_debet: Decimal
    total_credit: Decimal
    total_btw: Decimal
    verschil: Decimal
    with_btw: int
    without_btw: int


class BoekingsregelListResponse(BaseModel):
    regels: List[BoekingsregelResponse]
    stats: BoekingsregelStats


class ValidateRequest(BaseModel):
    debet: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    btw_code: Optional[str] = None
    btw_bedrag: Optional[Decimal] = None
    account_type: Optional[str] = None


class ValidationResponse(BaseModel):
    is_valid: bool
    errors: List[str]
    warnings: List[str]


class SuggestResponse(BaseModel):
    account_type: Optional[str] = None
    suggested_code: Optional[str] = None
    label: str
    typical_btw_code: str
    explanation: str
    typical_side: str


class ProposedRegelResponse(BaseModel):
    boekdatum: date
    account_number: str
    omschrijving: str
    debet: Decimal
    credit: Decimal
    btw_code: Optional[str] = None
    btw_bedrag: Decimal
    factuurnummer: Optional[str] = None

    class Config:
        from_attributes = True


class InvoiceDataResponse(BaseModel):
    invoice_number: Optional[str] = None
    invoice_date: Optional[date] = None
    subtotal: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None
    vat_amount: Optional[Decimal] = None
    vat_rate: Optional[Decimal] = None
    supplier_name: Optional[str] = None
    raw_text: str

    class Config:
        from_attributes = True


class InvoiceOcrResponse(BaseModel):
    invoice: InvoiceDataResponse
    regels: List[ProposedRegelResponse]
    saved: List[BoekingsregelResponse] = []
    warnings: List[str] = []
