from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, model_validator

PERIODE_TYPE_PATTERN = r'^(maand|kwartaal|jaar)$'


class PeriodRequest(BaseModel):
    periode_type: str = Field(..., pattern=PERIODE_TYPE_PATTERN)
    periode: int = Field(..., ge=1, le=12)
    jaar: int = Field(..., ge=1900, le=2999)

    @model_validator(mode='after')
    def check_periode(self):
        if self.periode_type == "kwartaal" and self.periode > 4:
            raise ValueError("Kwartaal moet tussen 1 en 4 liggen")
        if self.periode_type == "jaar" and self.periode != 1:
            raise ValueError("Periode moet 1 zijn voor een jaaraangifte")
        return self


class RubriekAmounts(BaseModel):
    rubriek_1a_omzet: Decimal = Decimal("0.00")
    rubriek_1a_btw: Decimal = Decimal("0.00")
    rubriek_1b_omzet: Decimal = Decimal("0.00")
    rubriek_1b_btw: Decimal = Decimal("0.00")
    rubriek_1c_omzet: Decimal = Decimal("0.00")
    rubriek_1c_btw: Decimal = Decimal("0.00")
    rubriek_1d_omzet: Decimal = Decimal("0.00")
    rubriek_1d_btw: Decimal = Decimal("0.00")
    rubriek_1e_omzet: Decimal = Decimal("0.00")
    rubriek_2a_omzet: Decimal = Decimal("0.00")
    rubriek_3a_omzet: Decimal = Decimal("0.00")
    rubriek_3b_omzet: Decimal = Decimal("0.00")
    rubriek_4a_omzet: Decimal = Decimal("0.00")
    rubriek_4a_btw: Decimal = Decimal("0.00")
    rubriek_4b_omzet: Decimal = Decimal("0.00")
    rubriek_4b_btw: Decimal = Decimal("0.00")
    rubriek_5a_btw: Decimal = Decimal("0.00")
    rubriek_5b_btw: Decimal = Decimal("0.00")
    rubriek_5b_grondslag: Decimal = Decimal("0.00")
    rubriek_5c_btw: Decimal = Decimal("0.00")
    rubriek_5d_btw: Decimal = Decimal("0.00")
    rubriek_5e_btw: Decimal = Decimal("0.00")


class BtwCalculationResponse(RubriekAmounts):
    periode_type: str
    periode: int
    jaar: int
    periode_label: str
    total_transactions: int
    transactions_with_btw: int


class BtwAangifteResponse(RubriekAmounts):
    id: UUID
    client_id: UUID
    periode_type: str
    periode: int
    jaar: int
    status: str
    ingediend_op: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., pattern=r'^(concept|definitief|ingediend)$')
    notes: Optional[str] = Field(None, max_length=2000)


class QuarterSummaryResponse(BaseModel):
    quarter: int
    months_label: str
    total_omzet: Decimal
    total_btw: Decimal
    status: Optional[str] = None
    status_label: str
    aangifte_id: Optional[UUID] = None
    deadline: date
    days_remaining: int
    is_overdue: bool

    class Config:
        from_attributes = True


class DeadlineResponse(BaseModel):
    periode_label: str
    deadline: date
    days_remaining: int
    is_overdue: bool


class BtwAmountRequest(BaseModel):
    base: Decimal
    code: Optional[str] = None


class BtwAmountResponse(BaseModel):
    base: Decimal
    code: Optional[str] = None
    btw_bedrag: Decimal
    formatted_code: str
    formatted_amount: str


class PeriodLabelResponse(BaseModel):
    label: str
    slug: str
