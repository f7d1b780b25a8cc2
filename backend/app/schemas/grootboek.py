from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field, field_validator, model_validator

ACCOUNT_TYPE_PATTERN = r'^(activa|passiva|kosten|omzet)$'


class GrootboekAccountBase(BaseModel):
    account_number: str = Field(..., min_length=1, max_length=20)
    account_name: str = Field(..., min_length=1, max_length=255)
    account_type: str = Field(..., pattern=ACCOUNT_TYPE_PATTERN)
    btw_code: Optional[str] = Field(None, max_length=20)
    rubriek: Optional[str] = Field(None, max_length=10)
    description: Optional[str] = None
    is_active: bool = True

    @field_validator('account_number', 'account_name')
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


class GrootboekAccountCreate(GrootboekAccountBase):
    pass


class GrootboekAccountUpdate(GrootboekAccountBase):
    """All fields optional; the account number itself is immutable."""
    account_number: Optional[str] = Field(None, max_length=20)
    account_name: Optional[str] = Field(None, min_length=1, max_length=255)
    account_type: Optional[str] = Field(None, pattern=ACCOUNT_TYPE_PATTERN)
    is_active: Optional[bool] = None

    @model_validator(mode='after')
    def reject_null_required(self):
        for field in ('account_name', 'account_type', 'is_active'):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} mag niet leeg zijn")
        return self


class GrootboekAccountResponse(GrootboekAccountBase):
    id: UUID
    client_id: UUID
    btw_percentage: Optional[Decimal] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BtwCodeResponse(BaseModel):
    code: str
    description: str
    percentage: Decimal
    rubriek: str
    type: str
    label: Optional[str] = None

    class Config:
        from_attributes = True


class ImportResponse(BaseModel):
    """Result of an Excel import into grootboek or boekingsregels."""
    upload_id: Optional[UUID] = None
    imported: int = 0
    updated: int = 0
    failed: int = 0
    errors: List[str] = []
    warnings: List[str] = []
    sheet_names: List[str] = []
