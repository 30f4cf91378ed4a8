"""Quotation conversion schemas."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ConversionRequest(BaseModel):
    """Optional overrides for a quotation conversion."""

    model_config = ConfigDict(str_strip_whitespace=True)

    order_name: Optional[str] = Field(
        None, max_length=255, description="Order name; renames a reused order"
    )
    order_type: Optional[str] = Field(None, description="VN or VI")


class PrefacturaSummary(BaseModel):
    id: UUID
    prefactura_code: str
    status: str


class OrderSummary(BaseModel):
    id: UUID
    order_code: str
    order_name: Optional[str] = None


class ConversionResponse(BaseModel):
    """Prefactura and order produced (or reused) by a conversion."""

    prefactura: PrefacturaSummary
    order: Optional[OrderSummary] = None
    reused: bool = Field(..., description="True when an earlier conversion was reused")
