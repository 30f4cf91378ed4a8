"""
Append-only status ledger for orders and order items.

One row per accepted transition, holding the new status, the actor and a
timestamp. Rows are never updated; they only disappear through the cascade
delete of their owning order or item.
"""

import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from garment_orders.core.logging import get_logger
from garment_orders.database.models.order import (
    OrderItem,
    OrderItemStatusHistory,
    OrderStatusHistory,
)
from garment_orders.services.orders.enums import OrderItemStatus, OrderStatus

logger = get_logger(__name__)


class StatusLedger:
    """
    Writer and reader for order and order item status history.

    Writes run inside the caller's transaction and are only flushed by the
    caller.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def record_order_status(
        self,
        order_id: uuid.UUID,
        status: OrderStatus,
        changed_by: Optional[uuid.UUID] = None,
    ) -> OrderStatusHistory:
        entry = OrderStatusHistory(
            order_id=order_id,
            status=status,
            changed_by=changed_by,
        )
        self.session.add(entry)
        logger.debug(
            "Order status recorded",
            order_id=str(order_id),
            status=status.value,
        )
        return entry

    def record_item_status(
        self,
        order_item_id: uuid.UUID,
        status: OrderItemStatus,
        changed_by: Optional[uuid.UUID] = None,
    ) -> OrderItemStatusHistory:
        entry = OrderItemStatusHistory(
            order_item_id=order_item_id,
            status=status,
            changed_by=changed_by,
        )
        self.session.add(entry)
        logger.debug(
            "Order item status recorded",
            order_item_id=str(order_item_id),
            status=status.value,
        )
        return entry

    async def list_order_history(
        self,
        order_id: Optional[uuid.UUID] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[OrderStatusHistory], int]:
        """
        Page through order status history, newest first.

        Args:
            order_id: Restrict to one order
            page: 1-based page number
            page_size: Rows per page

        Returns:
            Tuple of (rows, total count)
        """
        query = select(OrderStatusHistory)
        count_query = select(func.count()).select_from(OrderStatusHistory)
        if order_id is not None:
            query = query.where(OrderStatusHistory.order_id == order_id)
            count_query = count_query.where(OrderStatusHistory.order_id == order_id)

        total = (await self.session.execute(count_query)).scalar_one()
        result = await self.session.execute(
            query.order_by(
                OrderStatusHistory.created_at.desc(),
                OrderStatusHistory.id.desc(),
            )
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def list_item_history(
        self,
        order_item_id: Optional[uuid.UUID] = None,
        order_id: Optional[uuid.UUID] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[OrderItemStatusHistory], int]:
        """
        Page through order item status history, newest first.

        Args:
            order_item_id: Restrict to one item
            order_id: Restrict to the items of one order
            page: 1-based page number
            page_size: Rows per page

        Returns:
            Tuple of (rows, total count)
        """
        conditions = []
        if order_item_id is not None:
            conditions.append(OrderItemStatusHistory.order_item_id == order_item_id)
        if order_id is not None:
            conditions.append(
                OrderItemStatusHistory.order_item_id.in_(
                    select(OrderItem.id).where(OrderItem.order_id == order_id)
                )
            )

        query = select(OrderItemStatusHistory)
        count_query = select(func.count()).select_from(OrderItemStatusHistory)
        for condition in conditions:
            query = query.where(condition)
            count_query = count_query.where(condition)

        total = (await self.session.execute(count_query)).scalar_one()
        result = await self.session.execute(
            query
            .order_by(
                OrderItemStatusHistory.created_at.desc(),
                OrderItemStatusHistory.id.desc(),
            )
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

