"""
Client Pydantic schemas.

Enum-valued fields are accepted as plain strings and parsed by the client
service, so unknown values surface as the service's validation error.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class ClientDocuments(BaseModel):
    identity_document_url: Optional[str] = None
    rut_document_url: Optional[str] = None
    commerce_chamber_document_url: Optional[str] = None
    passport_document_url: Optional[str] = None
    tax_certificate_document_url: Optional[str] = None
    company_id_document_url: Optional[str] = None


class ClientCreate(ClientDocuments):
    """Client creation request."""

    model_config = ConfigDict(str_strip_whitespace=True)

    client_type: str = Field(..., description="NACIONAL, EXTRANJERO or EMPLEADO")
    name: str = Field(..., min_length=1, max_length=255)
    identification_type: str = Field(
        ..., description="CC, NIT, CE, PAS or EMPRESA_EXTERIOR"
    )
    identification: str = Field(..., min_length=1, max_length=20)
    dv: Optional[str] = Field(None, max_length=1, description="NIT check digit")
    tax_regime: str = Field(..., description="Tax regime")
    contact_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    address: str = Field(..., min_length=1, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)

    @field_validator("client_type", "identification_type", "tax_regime")
    @classmethod
    def upper(cls, value: str) -> str:
        return value.upper()


class ClientUpdate(ClientDocuments):
    """Partial client update."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    identification_type: Optional[str] = None
    identification: Optional[str] = Field(None, min_length=1, max_length=20)
    dv: Optional[str] = Field(None, max_length=1)
    tax_regime: Optional[str] = None
    contact_name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    address: Optional[str] = Field(None, min_length=1, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)


class ClientResponse(ClientDocuments):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_code: str
    client_type: str
    name: str
    identification_type: str
    identification: str
    dv: Optional[str] = None
    tax_regime: str
    contact_name: str
    email: str
    address: str
    city: Optional[str] = None
    country: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @field_validator("client_type", "identification_type", "tax_regime", mode="before")
    @classmethod
    def enum_value(cls, v):
        return getattr(v, "value", v)


class LegalStatusCheckResponse(BaseModel):
    """Whether a client may operate, and why."""

    status: Optional[str] = None
    can_operate: bool
    reason: str
