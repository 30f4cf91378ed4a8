"""
Order and design line Pydantic schemas for API request/response validation.

Request schemas check shapes and bounds only. Business rules (positive
quantities, known statuses, completion-order restrictions) are enforced by
the order service so they surface as the service's error taxonomy. Update
schemas are partial: only fields present in the request body are applied
(``model_fields_set``).
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from garment_orders.database.models.order import Order, OrderItem
from garment_orders.services.orders.repository import ItemChildren


class PackagingEntry(BaseModel):
    """Packaging line: grouped by size, or one per named person."""

    model_config = ConfigDict(str_strip_whitespace=True, from_attributes=True)

    mode: Optional[str] = Field(
        default="AGRUPADO", description="AGRUPADO or INDIVIDUAL"
    )
    size: Optional[str] = Field(default="", max_length=50, description="Size label")
    quantity: Optional[int] = Field(default=None, ge=0, description="Units")
    person_name: Optional[str] = Field(default=None, max_length=255)
    person_number: Optional[str] = Field(default=None, max_length=50)


class SockEntry(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, from_attributes=True)

    size: Optional[str] = Field(default="", max_length=50)
    quantity: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = None
    image_url: Optional[str] = None


class MaterialEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    inventory_item_id: UUID = Field(..., description="Inventory item reserved")
    quantity: Optional[Decimal] = Field(default=None, ge=0)
    note: Optional[str] = None


class OrderItemFields(BaseModel):
    """Editable design line attributes shared by create and update."""

    model_config = ConfigDict(str_strip_whitespace=True)

    product_id: Optional[UUID] = None
    name: Optional[str] = Field(default=None, max_length=255)
    quantity: Optional[int] = Field(default=None, description="Units, must be > 0")
    unit_price: Optional[Decimal] = Field(default=None, ge=0)
    total_price: Optional[Decimal] = Field(
        default=None, ge=0, description="Explicit line total overriding unit x qty"
    )
    observations: Optional[str] = None
    fabric: Optional[str] = Field(default=None, max_length=100)
    image_url: Optional[str] = None
    screen_print: Optional[bool] = None
    embroidery: Optional[bool] = None
    buttonhole: Optional[bool] = None
    snap: Optional[bool] = None
    tag: Optional[bool] = None
    flag: Optional[bool] = None
    gender: Optional[str] = Field(default=None, max_length=50)
    process: Optional[str] = Field(default=None, max_length=100)
    neck_type: Optional[str] = Field(default=None, max_length=100)
    sleeve: Optional[str] = Field(default=None, max_length=100)
    color: Optional[str] = Field(default=None, max_length=100)
    requires_socks: Optional[bool] = None
    requires_revision: Optional[bool] = None
    is_active: Optional[bool] = None
    manufacturing_id: Optional[str] = Field(default=None, max_length=100)
    packaging: Optional[list[PackagingEntry]] = None
    socks: Optional[list[SockEntry]] = None
    materials: Optional[list[MaterialEntry]] = None


class OrderItemInput(OrderItemFields):
    """Design line supplied inline with an order."""


class OrderItemCreate(OrderItemFields):
    """Design line added to an existing order."""

    order_id: UUID = Field(..., description="Order receiving the design")


class OrderItemUpdate(OrderItemFields):
    """Partial design line update; ``status`` goes through the state machine."""

    status: Optional[str] = Field(default=None, description="Requested status")


class OrderCreate(BaseModel):
    """Order creation request."""

    model_config = ConfigDict(str_strip_whitespace=True)

    order_name: Optional[str] = Field(default=None, max_length=255)
    client_id: Optional[UUID] = None
    type: Optional[str] = Field(default=None, description="VN (default) or VI")
    kind: Optional[str] = Field(
        default=None, description="NUEVO (default), COMPLETACION or REFERENTE"
    )
    source_order_code: Optional[str] = Field(
        default=None, description="Source order for COMPLETACION/REFERENTE"
    )
    status: Optional[str] = Field(default=None, description="Initial order status")
    discount: Optional[Decimal] = Field(default=None, description="Percent, clamped 0..100")
    shipping_fee: Optional[Decimal] = Field(default=None, ge=0)
    currency: str = Field(default="COP", min_length=3, max_length=5)
    iva_enabled: bool = False
    items: list[OrderItemInput] = Field(default_factory=list)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()


class OrderUpdate(BaseModel):
    """Partial order update; a supplied ``items`` list replaces every item."""

    model_config = ConfigDict(str_strip_whitespace=True)

    order_code: Optional[str] = Field(default=None, description="Immutable, rejected")
    order_name: Optional[str] = Field(default=None, max_length=255)
    client_id: Optional[UUID] = None
    type: Optional[str] = None
    kind: Optional[str] = None
    source_order_code: Optional[str] = Field(
        default=None, description="Source order when switching to COMPLETACION/REFERENTE"
    )
    status: Optional[str] = None
    discount: Optional[Decimal] = None
    shipping_fee: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=5)
    iva_enabled: Optional[bool] = None
    items: Optional[list[OrderItemInput]] = None


class AdditionEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    addition_id: UUID
    quantity: Decimal
    unit_price: Decimal


class OrderItemResponse(BaseModel):
    """Design line with its owned sub-records."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID
    product_id: Optional[UUID] = None
    addition_id: Optional[UUID] = None
    name: Optional[str] = None
    quantity: int
    unit_price: Optional[Decimal] = None
    total_price: Optional[Decimal] = None
    observations: Optional[str] = None
    fabric: Optional[str] = None
    image_url: Optional[str] = None
    screen_print: bool
    embroidery: bool
    buttonhole: bool
    snap: bool
    tag: bool
    flag: bool
    gender: Optional[str] = None
    process: Optional[str] = None
    neck_type: Optional[str] = None
    sleeve: Optional[str] = None
    color: Optional[str] = None
    requires_socks: bool
    requires_revision: bool
    is_active: bool
    manufacturing_id: Optional[str] = None
    status: str
    has_additions: bool
    addition_evidence: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    packaging: list[PackagingEntry] = Field(default_factory=list)
    socks: list[SockEntry] = Field(default_factory=list)
    materials: list[MaterialEntry] = Field(default_factory=list)
    additions: list[AdditionEntry] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def enum_value(cls, v):
        return getattr(v, "value", v)

    @classmethod
    def build(
        cls, item: OrderItem, children: Optional[ItemChildren] = None
    ) -> "OrderItemResponse":
        response = cls.model_validate(item)
        if children is not None:
            response.packaging = [PackagingEntry.model_validate(p) for p in children.packaging]
            response.socks = [SockEntry.model_validate(s) for s in children.socks]
            response.materials = [
                MaterialEntry.model_validate(m) for m in children.materials
            ]
            response.additions = [
                AdditionEntry.model_validate(a) for a in children.additions
            ]
        return response


class OrderResponse(BaseModel):
    """Order header, with its items when loaded."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_code: str
    order_name: Optional[str] = None
    client_id: Optional[UUID] = None
    type: str
    kind: str
    source_order_id: Optional[UUID] = None
    source_order_code: Optional[str] = None
    status: str
    total: Decimal
    discount: Decimal
    shipping_fee: Decimal
    iva_enabled: bool
    currency: str
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemResponse] = Field(default_factory=list)

    @field_validator("type", "kind", "status", mode="before")
    @classmethod
    def enum_value(cls, v):
        return getattr(v, "value", v)

    @classmethod
    def build(
        cls,
        order: Order,
        items: Optional[list[OrderItem]] = None,
        children: Optional[dict[UUID, ItemChildren]] = None,
        source_order_code: Optional[str] = None,
    ) -> "OrderResponse":
        response = cls.model_validate(order)
        response.source_order_code = source_order_code
        children = children or {}
        response.items = [
            OrderItemResponse.build(item, children.get(item.id)) for item in items or []
        ]
        return response


class StatusHistoryResponse(BaseModel):
    """One status ledger row."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: Optional[UUID] = None
    order_item_id: Optional[UUID] = None
    status: str
    changed_by: Optional[UUID] = None
    created_at: datetime

    @field_validator("status", mode="before")
    @classmethod
    def enum_value(cls, v):
        return getattr(v, "value", v)
