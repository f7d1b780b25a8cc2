from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field, field_validator


class ProfileBase(BaseModel):
    """Base schema for profile data - shared between create and response."""
    email: EmailStr
    full_name: Optional[str] = Field(None, max_length=255)
    company_name: Optional[str] = Field(None, max_length=255)


class ProfileCreate(ProfileBase):
    """Schema for sign up."""
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator('email')
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator('password')
    @classmethod
    def fits_bcrypt(cls, v: str) -> str:
        # bcrypt only uses the first 72 bytes
        if len(v.encode("utf-8")) > 72:
            raise ValueError("Wachtwoord mag maximaal 72 bytes lang zijn")
        return v

    @field_validator('full_name', 'company_name')
    @classmethod
    def trim_optional(cls, v: Optional[str]) -> Optional[str]:
        if v:
            v = v.strip()
        return v if v else None


class ProfileUpdate(BaseModel):
    """Schema for PATCH /auth/me - all fields optional."""
    full_name: Optional[str] = Field(None, max_length=255)
    company_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)

    @field_validator('full_name', 'company_name', 'phone')
    @classmethod
    def trim_optional(cls, v: Optional[str]) -> Optional[str]:
        if v:
            v = v.strip()
        return v if v else None


class ProfileResponse(ProfileBase):
    id: UUID
    phone: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class RegisterResponse(BaseModel):
    """Response after successful registration."""
    message: str = "Account aangemaakt. U kunt nu inloggen."
    user_id: UUID


class MessageResponse(BaseModel):
    message: str
