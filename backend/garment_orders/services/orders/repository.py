"""
Order data access repository.

This module implements the OrderRepository class providing async methods for
loading orders and design lines with their owned sub-records, replacing child
collections, and the cascade-delete routines for items and orders. Writes run
inside the caller's transaction; the owning service commits or rolls back.

Ownership graph:

    Order -> OrderItem -> packaging, socks, materials, additions,
                          item status history
    Order -> order status history
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from garment_orders.core.logging import get_logger
from garment_orders.database.errors import (
    is_foreign_key_violation,
    is_undefined_table,
    is_unique_violation,
)
from garment_orders.database.models.catalog import InventoryItem
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
from garment_orders.database.models.quotation import Prefactura
from garment_orders.services.errors import ConflictError, ValidationError
from garment_orders.services.orders.enums import OrderKind, OrderStatus, PackagingMode

logger = get_logger(__name__)


def translate_integrity_error(
    exc: IntegrityError, operation: str, **context: Any
) -> Exception:
    """
    Map an integrity failure onto the pipeline error taxonomy.

    Unique violations become ConflictError and foreign key violations
    ValidationError; anything else is returned unchanged.
    """
    logger.error(
        "Integrity error",
        operation=operation,
        error=str(exc.orig) if exc.orig is not None else str(exc),
        **context,
    )
    if is_unique_violation(exc):
        return ConflictError("El registro ya existe", operation=operation, **context)
    if is_foreign_key_violation(exc):
        return ValidationError(
            "Referencia inválida a un registro inexistente",
            operation=operation,
            **context,
        )
    return exc


@dataclass
class ItemChildren:
    """Owned sub-records of one design line."""

    packaging: list[OrderItemPackaging] = field(default_factory=list)
    socks: list[OrderItemSock] = field(default_factory=list)
    materials: list[OrderItemMaterial] = field(default_factory=list)
    additions: list[OrderItemAddition] = field(default_factory=list)


class OrderRepository:
    """
    Repository for order and order item data access.

    Attributes:
        session: Async database session shared with the calling service
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._additions_supported: Optional[bool] = None

    async def flush(self, operation: str, **context: Any) -> None:
        """
        Flush pending writes, translating integrity failures.

        Args:
            operation: Operation name for logs
            **context: Identifiers added to the error context

        Raises:
            ConflictError: On a uniqueness violation
            ValidationError: On a foreign key violation
        """
        try:
            await self.session.flush()
        except IntegrityError as e:
            translated = translate_integrity_error(e, operation, **context)
            if translated is e:
                raise
            raise translated from e

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def get_order(self, order_id: uuid.UUID) -> Optional[Order]:
        return await self.session.get(Order, order_id)

    async def get_order_by_code(self, order_code: str) -> Optional[Order]:
        result = await self.session.execute(
            select(Order).where(
                func.upper(Order.order_code) == order_code.strip().upper()
            )
        )
        return result.scalar_one_or_none()

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        kind: Optional[OrderKind] = None,
        client_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Order], int]:
        """
        Get orders with filters and pagination, newest first.

        Args:
            status: Filter by order status
            kind: Filter by order kind
            client_id: Filter by client
            search: Case-insensitive match on code or name
            page: 1-based page number
            page_size: Rows per page

        Returns:
            Tuple of (orders, total count)
        """
        conditions = []
        if status is not None:
            conditions.append(Order.status == status)
        if kind is not None:
            conditions.append(Order.kind == kind)
        if client_id is not None:
            conditions.append(Order.client_id == client_id)
        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(
                or_(Order.order_code.ilike(pattern), Order.order_name.ilike(pattern))
            )

        query = select(Order)
        count_query = select(func.count()).select_from(Order)
        for condition in conditions:
            query = query.where(condition)
            count_query = count_query.where(condition)

        total = (await self.session.execute(count_query)).scalar_one()
        result = await self.session.execute(
            query.order_by(Order.created_at.desc(), Order.order_code.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def prefactura_for_order(self, order_id: uuid.UUID) -> Optional[Prefactura]:
        result = await self.session.execute(
            select(Prefactura).where(Prefactura.order_id == order_id).limit(1)
        )
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    async def get_item(self, item_id: uuid.UUID) -> Optional[OrderItem]:
        return await self.session.get(OrderItem, item_id)

    async def list_items(self, order_id: uuid.UUID) -> list[OrderItem]:
        result = await self.session.execute(
            select(OrderItem)
            .where(OrderItem.order_id == order_id)
            .order_by(OrderItem.created_at, OrderItem.id)
        )
        return list(result.scalars().all())

    async def item_ids(self, order_id: uuid.UUID) -> list[uuid.UUID]:
        result = await self.session.execute(
            select(OrderItem.id).where(OrderItem.order_id == order_id)
        )
        return list(result.scalars().all())

    async def load_children(
        self, item_ids: Sequence[uuid.UUID]
    ) -> dict[uuid.UUID, ItemChildren]:
        """
        Load the owned sub-records of several items in one query per table.

        Args:
            item_ids: Items to load

        Returns:
            Mapping of item id to its children; every requested id is present
        """
        children = {item_id: ItemChildren() for item_id in item_ids}
        if not item_ids:
            return children

        sources = [
            ("packaging", OrderItemPackaging),
            ("socks", OrderItemSock),
            ("materials", OrderItemMaterial),
        ]
        if await self.supports_item_additions():
            sources.append(("additions", OrderItemAddition))

        for attribute, model in sources:
            result = await self.session.execute(
                select(model).where(model.order_item_id.in_(item_ids))
            )
            for row in result.scalars().all():
                getattr(children[row.order_item_id], attribute).append(row)

        return children

    async def supports_item_additions(self) -> bool:
        """
        Check whether the ``order_item_additions`` table exists.

        The check runs inside a SAVEPOINT so a missing table does not abort
        the surrounding transaction. Only the undefined-table error counts as
        "absent"; anything else propagates.
        """
        if self._additions_supported is None:
            try:
                async with self.session.begin_nested():
                    await self.session.execute(select(OrderItemAddition.id).limit(1))
                self._additions_supported = True
            except SQLAlchemyError as e:
                if not is_undefined_table(e):
                    raise
                logger.warning(
                    "order_item_additions table missing, using legacy layout",
                    error=str(e),
                )
                self._additions_supported = False
        return self._additions_supported

    def mark_additions_unsupported(self) -> None:
        self._additions_supported = False

    # ------------------------------------------------------------------
    # Child collections
    # ------------------------------------------------------------------

    def add_packaging(
        self, item_id: uuid.UUID, entries: Iterable[dict[str, Any]]
    ) -> list[OrderItemPackaging]:
        rows = []
        for entry in entries:
            row = OrderItemPackaging(
                order_item_id=item_id,
                mode=PackagingMode.normalize(entry.get("mode")).value,
                size=str(entry.get("size") or ""),
                quantity=entry.get("quantity"),
                person_name=entry.get("person_name"),
                person_number=entry.get("person_number"),
            )
            self.session.add(row)
            rows.append(row)
        return rows

    def add_socks(
        self, item_id: uuid.UUID, entries: Iterable[dict[str, Any]]
    ) -> list[OrderItemSock]:
        rows = []
        for entry in entries:
            row = OrderItemSock(
                order_item_id=item_id,
                size=str(entry.get("size") or ""),
                quantity=entry.get("quantity"),
                description=entry.get("description"),
                image_url=entry.get("image_url"),
            )
            self.session.add(row)
            rows.append(row)
        return rows

    async def add_materials(
        self, item_id: uuid.UUID, entries: Iterable[dict[str, Any]]
    ) -> list[OrderItemMaterial]:
        """
        Insert material rows, dropping references to unknown inventory items.

        Args:
            item_id: Owning item
            entries: Dicts with ``inventory_item_id``, ``quantity``, ``note``

        Returns:
            Inserted rows
        """
        entries = [e for e in entries if e.get("inventory_item_id")]
        if not entries:
            return []

        requested = {e["inventory_item_id"] for e in entries}
        result = await self.session.execute(
            select(InventoryItem.id).where(InventoryItem.id.in_(requested))
        )
        existing = set(result.scalars().all())
        dropped = requested - existing
        if dropped:
            logger.warning(
                "Dropping materials with unknown inventory items",
                order_item_id=str(item_id),
                inventory_item_ids=[str(i) for i in dropped],
            )

        rows = []
        for entry in entries:
            if entry["inventory_item_id"] not in existing:
                continue
            row = OrderItemMaterial(
                order_item_id=item_id,
                inventory_item_id=entry["inventory_item_id"],
                quantity=entry.get("quantity"),
                note=entry.get("note"),
            )
            self.session.add(row)
            rows.append(row)
        return rows

    async def replace_packaging(
        self, item_id: uuid.UUID, entries: Iterable[dict[str, Any]]
    ) -> list[OrderItemPackaging]:
        await self.session.execute(
            delete(OrderItemPackaging).where(OrderItemPackaging.order_item_id == item_id)
        )
        return self.add_packaging(item_id, entries)

    async def replace_socks(
        self, item_id: uuid.UUID, entries: Iterable[dict[str, Any]]
    ) -> list[OrderItemSock]:
        await self.session.execute(
            delete(OrderItemSock).where(OrderItemSock.order_item_id == item_id)
        )
        return self.add_socks(item_id, entries)

    async def replace_materials(
        self, item_id: uuid.UUID, entries: Iterable[dict[str, Any]]
    ) -> list[OrderItemMaterial]:
        await self.session.execute(
            delete(OrderItemMaterial).where(OrderItemMaterial.order_item_id == item_id)
        )
        return await self.add_materials(item_id, entries)

    # ------------------------------------------------------------------
    # Cascade deletes
    # ------------------------------------------------------------------

    async def delete_item_cascade(self, item_id: uuid.UUID) -> None:
        """Delete an item and everything it owns."""
        await self.delete_items_cascade([item_id])

    async def delete_items_cascade(self, item_ids: Sequence[uuid.UUID]) -> int:
        """
        Delete several items and everything they own, children first.

        Args:
            item_ids: Items to delete

        Returns:
            Number of items deleted
        """
        if not item_ids:
            return 0

        await self.session.flush()
        owned = [
            OrderItemPackaging,
            OrderItemSock,
            OrderItemMaterial,
            OrderItemStatusHistory,
        ]
        if await self.supports_item_additions():
            owned.append(OrderItemAddition)

        for model in owned:
            await self.session.execute(
                delete(model).where(model.order_item_id.in_(item_ids))
            )
        await self.session.execute(delete(OrderItem).where(OrderItem.id.in_(item_ids)))

        logger.debug("Order items deleted", item_count=len(item_ids))
        return len(item_ids)

    async def delete_order_cascade(self, order_id: uuid.UUID) -> int:
        """
        Delete an order, its items with their sub-records, and its ledger.

        Args:
            order_id: Order to delete

        Returns:
            Number of items deleted with the order
        """
        item_ids = await self.item_ids(order_id)
        deleted_items = await self.delete_items_cascade(item_ids)
        await self.session.execute(
            delete(OrderStatusHistory).where(OrderStatusHistory.order_id == order_id)
        )
        await self.session.execute(delete(Order).where(Order.id == order_id))

        logger.info(
            "Order deleted with cascade",
            order_id=str(order_id),
            item_count=deleted_items,
        )
        return deleted_items

