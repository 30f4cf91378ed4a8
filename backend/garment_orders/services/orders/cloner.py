"""
Order cloning for derived orders.

COMPLETACION and REFERENTE orders start as a copy of a source order's design
lines. Every column is copied except identity and ownership; each cloned item
keeps the source item's status and gets a ledger row recording it. Packaging,
socks, materials and additions are copied verbatim onto the new item. The
source order is only read.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from garment_orders.core.logging import get_logger, log_performance
from garment_orders.database.models.order import (
    Order,
    OrderItem,
    OrderItemAddition,
    OrderItemMaterial,
    OrderItemPackaging,
    OrderItemSock,
)
from garment_orders.services.orders.financials import recalculate_order_total
from garment_orders.services.orders.repository import OrderRepository
from garment_orders.services.orders.status_ledger import StatusLedger

logger = get_logger(__name__)

ITEM_CLONE_EXCLUDE = {"id", "order_id", "created_at", "updated_at"}
CHILD_CLONE_EXCLUDE = {"id", "order_item_id"}


@dataclass
class CloneSummary:
    """Row counts written by a clone."""

    items: int = 0
    packaging: int = 0
    socks: int = 0
    materials: int = 0
    additions: int = 0


class OrderCloner:
    """
    Copies design lines and their sub-records from one order into another.

    Runs inside the caller's transaction; any failure propagates so the
    caller's rollback discards the partially cloned order.
    """

    def __init__(
        self,
        session: AsyncSession,
        repository: Optional[OrderRepository] = None,
        ledger: Optional[StatusLedger] = None,
    ):
        self.session = session
        self.repository = repository or OrderRepository(session)
        self.ledger = ledger or StatusLedger(session)

    async def clone_into(
        self,
        source: Order,
        target: Order,
        actor_id: Optional[uuid.UUID] = None,
    ) -> CloneSummary:
        """
        Clone every item of ``source`` into ``target`` and recalculate.

        Args:
            source: Order to copy from, left untouched
            target: Freshly created order receiving the copies
            actor_id: Actor recorded on the ledger rows

        Returns:
            Counts of cloned rows
        """
        summary = CloneSummary()
        with log_performance(
            logger,
            "clone_order_items",
            source_order_id=str(source.id),
            target_order_id=str(target.id),
        ):
            source_items = await self.repository.list_items(source.id)
            children = await self.repository.load_children(
                [item.id for item in source_items]
            )

            clones: list[tuple[OrderItem, OrderItem]] = []
            for source_item in source_items:
                clone = OrderItem(
                    id=uuid.uuid4(),
                    order_id=target.id,
                    **source_item.column_values(exclude=ITEM_CLONE_EXCLUDE),
                )
                self.session.add(clone)
                clones.append((source_item, clone))
            summary.items = len(clones)

            # Items must exist before rows referencing them are inserted.
            await self.repository.flush("clone_order_items", order_id=str(target.id))

            for source_item, clone in clones:
                self.ledger.record_item_status(clone.id, clone.status, actor_id)
                owned = children[source_item.id]
                summary.packaging += self._copy(owned.packaging, OrderItemPackaging, clone.id)
                summary.socks += self._copy(owned.socks, OrderItemSock, clone.id)
                summary.materials += self._copy(owned.materials, OrderItemMaterial, clone.id)
                summary.additions += self._copy(owned.additions, OrderItemAddition, clone.id)

            await self.repository.flush("clone_order_items", order_id=str(target.id))
            await recalculate_order_total(self.session, target.id)

        logger.info(
            "Order items cloned",
            source_order_id=str(source.id),
            target_order_id=str(target.id),
            items=summary.items,
            packaging=summary.packaging,
            socks=summary.socks,
            materials=summary.materials,
            additions=summary.additions,
        )
        return summary

    def _copy(self, rows: list, model: type, item_id: uuid.UUID) -> int:
        for row in rows:
            self.session.add(
                model(
                    order_item_id=item_id,
                    **row.column_values(exclude=CHILD_CLONE_EXCLUDE),
                )
            )
        return len(rows)
