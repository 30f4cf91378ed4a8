"""
Database models package initialization.

Every model is imported here so it registers with ``Base.metadata`` for
Alembic autogeneration and for ``create_all`` in the test suite.
"""

from garment_orders.database.base import AppendOnlyModel, Base, BaseModel
from garment_orders.database.models.access import Permission, Role, RolePermission
from garment_orders.database.models.catalog import InventoryItem, Product
from garment_orders.database.models.notification import Notification
from garment_orders.database.models.order import (
    Order,
    OrderItem,
    OrderItemAddition,
    OrderItemMaterial,
    OrderItemPackaging,
    OrderItemSock,
    OrderItemStatusHistory,
    OrderStatusHistory,
)
from garment_orders.database.models.quotation import (
    Addition,
    Prefactura,
    Quotation,
    QuotationItem,
    QuotationItemAddition,
)
from garment_orders.database.models.third_party import Client, LegalStatusRecord

__all__ = [
    "AppendOnlyModel",
    "Base",
    "BaseModel",
    "Addition",
    "Client",
    "InventoryItem",
    "LegalStatusRecord",
    "Notification",
    "Order",
    "OrderItem",
    "OrderItemAddition",
    "OrderItemMaterial",
    "OrderItemPackaging",
    "OrderItemSock",
    "OrderItemStatusHistory",
    "OrderStatusHistory",
    "Permission",
    "Prefactura",
    "Product",
    "Quotation",
    "QuotationItem",
    "QuotationItemAddition",
    "Role",
    "RolePermission",
]
