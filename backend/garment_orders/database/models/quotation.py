"""
Quotation, addition and prefactura (pre-invoice) models.

Quotations and their items are read-only inputs to the conversion pipeline,
which only flips ``prefactura_approved``/``is_active`` on the quotation. A
quotation yields at most one prefactura, enforced by a unique constraint on
``prefacturas.quotation_id``.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from garment_orders.database.base import Base, BaseModel, UUIDMixin


class Addition(BaseModel):
    """Catalog of extras (trims, processes) that can be added to a design."""

    __tablename__ = "additions"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Quotation(BaseModel):
    """
    Sales quotation for a client.

    Attributes:
        quote_code: Human-readable code (COT10001)
        currency: COP or USD; USD quotations become international orders
        document_type: "P" documents carry VAT
        shipping_enabled: Whether shipping_fee applies
        total_products: Snapshot of product total
        subtotal: Snapshot subtotal
        total: Snapshot total
        prefactura_approved: Accounting approval marker
        is_active: Re-opened marker set after conversion
    """

    __tablename__ = "quotations"

    quote_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    client_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("clients.id"), nullable=True
    )
    currency: Mapped[str] = mapped_column(String(5), nullable=False, default="COP")
    document_type: Mapped[str] = mapped_column(String(2), nullable=False, default="P")
    shipping_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    shipping_fee: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    total_products: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    total: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    prefactura_approved: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class QuotationItem(Base, UUIDMixin):
    __tablename__ = "quotation_items"

    quotation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("quotations.id"), nullable=False, index=True
    )
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("products.id"), nullable=True
    )
    quantity: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("1")
    )
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    # Percentage, 0 to 100
    discount: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )


class QuotationItemAddition(Base, UUIDMixin):
    __tablename__ = "quotation_item_additions"

    quotation_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("quotation_items.id"), nullable=False, index=True
    )
    addition_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("additions.id"), nullable=True
    )
    quantity: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("1")
    )
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )


class Prefactura(BaseModel):
    """
    Pre-invoice generated from a quotation before production.

    Attributes:
        prefactura_code: Sequenced code, PRE followed by five digits from 10001
        quotation_id: Source quotation, unique
        order_id: Production order created by the conversion
        status: Accounting status, starts at PENDIENTE_CONTABILIDAD
        total_products: Quotation snapshot
        subtotal: Quotation snapshot
        total: Quotation snapshot
        approved_at: Conversion timestamp
    """

    __tablename__ = "prefacturas"

    prefactura_code: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False
    )
    quotation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("quotations.id"), nullable=False
    )
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("orders.id"), nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    total_products: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    total: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("quotation_id", name="uq_prefacturas_quotation_id"),
    )
