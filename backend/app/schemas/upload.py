from datetime import datetime
from typing import Dict, Optional
from uuid import UUID
from pydantic import BaseModel, Field, field_validator


class UploadLogResponse(BaseModel):
    id: UUID
    client_id: Optional[UUID] = None
    file_name: str
    file_type: str
    records_processed: int
    records_failed: int
    status: str
    error_message: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ColumnMappingCreate(BaseModel):
    """A saved mapping of Excel column headers to import fields."""
    name: str = Field(..., min_length=1, max_length=100)
    upload_type: str = Field(..., pattern=r'^(grootboek|boekingsregels)$')
    mapping: Dict[str, str] = Field(..., min_length=1)

    @field_validator('name')
    @classmethod
    def trim_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Naam is verplicht")
        return v


class ColumnMappingResponse(BaseModel):
    id: UUID
    name: str
    upload_type: str
    mapping: Dict[str, str]
    created_at: datetime
    last_used_at: datetime

    class Config:
        from_attributes = True
