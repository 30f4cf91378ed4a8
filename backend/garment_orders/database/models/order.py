"""
Order, design line and status ledger models.

An Order owns its items (design lines). Each item owns its packaging, socks,
materials and addition rows plus its status history. Ownership is enforced by
the cascade-delete routines in the order repository, not by ORM relationship
cascades, so every delete runs as explicit statements inside the caller's
transaction.
"""

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from garment_orders.database.base import AppendOnlyModel, Base, BaseModel, UUIDMixin
from garment_orders.services.orders.enums import (
    OrderItemStatus,
    OrderKind,
    OrderStatus,
    OrderType,
    PackagingMode,
)

ORDER_TYPE_ENUM = SQLEnum(OrderType, name="order_type")
ORDER_KIND_ENUM = SQLEnum(OrderKind, name="order_kind")
ORDER_STATUS_ENUM = SQLEnum(OrderStatus, name="order_status")
ORDER_ITEM_STATUS_ENUM = SQLEnum(OrderItemStatus, name="order_item_status")


class Order(BaseModel):
    """
    Production order placed for a client.

    Attributes:
        id: Unique order identifier (UUID)
        order_code: Human-readable sequenced code (VN-000001, VI-0001)
        order_name: Free-text display name
        client_id: Client the order belongs to
        type: Code family (VN national, VI international)
        kind: NUEVO, COMPLETACION or REFERENTE
        source_order_id: Originating order for derived kinds (weak reference)
        status: Order-level status
        total: Sum of effective line totals after discount, shipping excluded
        iva_enabled: Whether VAT applies on presentation
        discount: Discount percentage, 0 to 100
        currency: ISO currency code
        shipping_fee: Shipping charge, never folded into total
        created_by: Employee that created the order
    """

    __tablename__ = "orders"

    order_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    order_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    client_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("clients.id"), nullable=True, index=True
    )
    type: Mapped[OrderType] = mapped_column(ORDER_TYPE_ENUM, nullable=False)
    kind: Mapped[OrderKind] = mapped_column(
        ORDER_KIND_ENUM, nullable=False, default=OrderKind.NUEVO
    )
    # Weak reference: deleting the source order never touches derived orders.
    source_order_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    status: Mapped[OrderStatus] = mapped_column(
        ORDER_STATUS_ENUM, nullable=False, default=OrderStatus.PENDIENTE
    )
    total: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    iva_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    discount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    currency: Mapped[str] = mapped_column(String(5), nullable=False, default="COP")
    shipping_fee: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    __table_args__ = (
        Index("ix_orders_status", "status"),
        Index("ix_orders_kind_source", "kind", "source_order_id"),
        CheckConstraint(
            "discount >= 0 AND discount <= 100",
            name="ck_orders_discount_range",
        ),
        CheckConstraint(
            "shipping_fee >= 0",
            name="ck_orders_shipping_fee_non_negative",
        ),
    )


class OrderItem(BaseModel):
    """
    Design line belonging to exactly one order.

    The effective line total is ``total_price`` when set, otherwise
    ``unit_price * quantity``.
    """

    __tablename__ = "order_items"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id"), nullable=False, index=True
    )
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("products.id"), nullable=True
    )
    # Set only on legacy synthetic addition lines.
    addition_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("additions.id"), nullable=True
    )
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    total_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    observations: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Production attributes
    fabric: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    screen_print: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    embroidery: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    buttonhole: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    snap: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    flag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    gender: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    process: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    neck_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    sleeve: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    requires_socks: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    manufacturing_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    status: Mapped[OrderItemStatus] = mapped_column(
        ORDER_ITEM_STATUS_ENUM, nullable=False, default=OrderItemStatus.PENDIENTE
    )
    requires_revision: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    has_additions: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    addition_evidence: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_order_items_status", "status"),
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    @property
    def effective_total(self) -> Decimal:
        if self.total_price is not None:
            return Decimal(self.total_price)
        return Decimal(self.unit_price or 0) * Decimal(self.quantity or 0)


class OrderItemPackaging(Base, UUIDMixin):
    """Packaging line for an item: grouped by size or per named person."""

    __tablename__ = "order_item_packaging"

    order_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("order_items.id"), nullable=False, index=True
    )
    mode: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PackagingMode.AGRUPADO.value
    )
    size: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    person_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    person_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)


class OrderItemSock(Base, UUIDMixin):
    __tablename__ = "order_item_socks"

    order_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("order_items.id"), nullable=False, index=True
    )
    size: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class OrderItemMaterial(Base, UUIDMixin):
    """Inventory material reserved for an item."""

    __tablename__ = "order_item_materials"

    order_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("order_items.id"), nullable=False, index=True
    )
    inventory_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("inventory_items.id"), nullable=False
    )
    quantity: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class OrderItemAddition(Base, UUIDMixin):
    """
    Addition (extra trim or process) attached to an item.

    Added by migration 002; databases without it fall back to synthetic
    addition items during quotation conversion.
    """

    __tablename__ = "order_item_additions"

    order_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("order_items.id"), nullable=False, index=True
    )
    addition_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("additions.id"), nullable=False
    )
    quantity: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("1")
    )
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )


class OrderStatusHistory(AppendOnlyModel):
    """Append-only ledger of order status transitions."""

    __tablename__ = "order_status_history"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id"), nullable=False, index=True
    )
    status: Mapped[OrderStatus] = mapped_column(ORDER_STATUS_ENUM, nullable=False)
    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)


class OrderItemStatusHistory(AppendOnlyModel):
    """Append-only ledger of order item status transitions."""

    __tablename__ = "order_item_status_history"

    order_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("order_items.id"), nullable=False, index=True
    )
    status: Mapped[OrderItemStatus] = mapped_column(
        ORDER_ITEM_STATUS_ENUM, nullable=False
    )
    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
