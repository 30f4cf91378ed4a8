"""
Quotation to prefactura to production order conversion.

Converting a quotation creates a production order with one design line per
quotation item, then a prefactura (pre-invoice) linked to both. The
operation is idempotent per quotation: when a prefactura with a linked order
already exists, that pair is returned (optionally renamed) instead of
creating new rows. The unique constraint on ``prefacturas.quotation_id``
turns a concurrent duplicate conversion into a conflict.

Quotation additions are stored as ``order_item_additions`` rows. Databases
that predate that table get one synthetic "Adición" design line per
addition instead; the fallback is taken only on the undefined-table error.
"""

import uuid
from collections import defaultdict
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from garment_orders.core.logging import get_logger, log_performance
from garment_orders.database.base import utcnow
from garment_orders.database.errors import is_undefined_table
from garment_orders.database.models.catalog import Product
from garment_orders.database.models.order import Order, OrderItem, OrderItemAddition
from garment_orders.database.models.quotation import (
    Addition,
    Prefactura,
    Quotation,
    QuotationItem,
    QuotationItemAddition,
)
from garment_orders.services.access.permissions import Actor
from garment_orders.services.errors import ConflictError, NotFoundError, ValidationError
from garment_orders.services.notifications.service import NotificationService
from garment_orders.services.orders.code_sequencer import (
    PREFACTURA_CODES,
    insert_with_sequenced_code,
    order_code_family,
)
from garment_orders.services.orders.enums import (
    PREFACTURA_INITIAL_STATUS,
    OrderItemStatus,
    OrderKind,
    OrderStatus,
    OrderType,
)
from garment_orders.services.orders.financials import (
    discounted_line_total,
    quantize,
    recalculate_order_total,
    to_decimal,
)
from garment_orders.services.orders.repository import (
    OrderRepository,
    translate_integrity_error,
)
from garment_orders.services.orders.status_ledger import StatusLedger

logger = get_logger(__name__)

DEFAULT_ITEM_NAME = "Producto"
ADDITION_ITEM_NAME = "Adición"


def to_positive_int(value: Any) -> int:
    """Round half up to an integer; anything below 1 becomes 1."""
    try:
        rounded = int(to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except (ValidationError, InvalidOperation, ValueError):
        return 1
    return rounded if rounded > 0 else 1


@dataclass
class ConversionResult:
    """Prefactura/order pair produced or reused by a conversion."""

    prefactura: Prefactura
    order: Optional[Order]
    reused: bool

    def to_dict(self) -> dict[str, Any]:
        # A reused pair reports the initial status whatever accounting did since.
        status = (
            PREFACTURA_INITIAL_STATUS
            if self.reused
            else getattr(self.prefactura.status, "value", self.prefactura.status)
        )
        return {
            "prefactura": {
                "id": str(self.prefactura.id),
                "prefactura_code": self.prefactura.prefactura_code,
                "status": status,
            },
            "order": (
                {
                    "id": str(self.order.id),
                    "order_code": self.order.order_code,
                    "order_name": self.order.order_name,
                }
                if self.order is not None
                else None
            ),
            "reused": self.reused,
        }


@dataclass
class _QuoteAddition:
    addition_id: Optional[uuid.UUID]
    name: Optional[str]
    quantity: Decimal
    unit_price: Decimal


class ConversionService:
    """
    Converts quotations into a prefactura and a production order.

    Attributes:
        session: Async database session owned by the request
        repository: Order repository sharing the session
        ledger: Status ledger for the new order and its items
        notifications: Post-commit notification dispatcher
    """

    def __init__(
        self,
        session: AsyncSession,
        notification_service: Optional[NotificationService] = None,
    ):
        self.session = session
        self.repository = OrderRepository(session)
        self.ledger = StatusLedger(session)
        self.notifications = notification_service or NotificationService()

    async def convert(
        self,
        actor: Actor,
        quotation_id: uuid.UUID,
        order_name: Optional[str] = None,
        order_type: Optional[str] = None,
    ) -> ConversionResult:
        """
        Convert a quotation, reusing an earlier conversion when present.

        Args:
            actor: Authenticated caller, recorded as order creator
            quotation_id: Quotation to convert
            order_name: Optional order name; renames a reused order
            order_type: Optional VN/VI override of the currency-derived type

        Returns:
            The prefactura/order pair and whether it was reused

        Raises:
            NotFoundError: If the quotation does not exist
            ConflictError: If codes could not be assigned, or a concurrent
                conversion of the same quotation won
        """
        order_name = (order_name or "").strip() or None
        requested_type = OrderType.parse_or_none(order_type) if order_type else None

        try:
            quotation = await self.session.get(Quotation, quotation_id)
            if quotation is None:
                raise NotFoundError(
                    "Cotización no encontrada", quotation_id=str(quotation_id)
                )

            existing = await self._prefactura_for_quotation(quotation.id)
            if existing is not None and existing.order_id is not None:
                result = await self._reuse(
                    quotation, existing, order_name, requested_type
                )
            else:
                with log_performance(
                    logger, "convert_quotation", quote_code=quotation.quote_code
                ):
                    result = await self._convert_new(
                        actor, quotation, existing, order_name, requested_type
                    )

            quotation.prefactura_approved = False
            quotation.is_active = True
            await self.session.flush()
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            translated = translate_integrity_error(
                e, "convert_quotation", quotation_id=str(quotation_id)
            )
            if translated is e:
                raise
            raise translated from e
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Quotation converted",
            quotation_id=str(quotation_id),
            prefactura_code=result.prefactura.prefactura_code,
            order_code=result.order.order_code if result.order else None,
            reused=result.reused,
        )
        if not result.reused and result.order is not None:
            await self.notifications.notify_permission(
                "VER_PEDIDO",
                "Pedido creado",
                f"Se creó el pedido {result.order.order_code} desde la cotización "
                f"{quotation.quote_code}",
                href=f"/pedidos/{result.order.id}",
            )
        return result

    async def _prefactura_for_quotation(
        self, quotation_id: uuid.UUID
    ) -> Optional[Prefactura]:
        result = await self.session.execute(
            select(Prefactura).where(Prefactura.quotation_id == quotation_id).limit(1)
        )
        return result.scalar_one_or_none()

    async def _reuse(
        self,
        quotation: Quotation,
        prefactura: Prefactura,
        order_name: Optional[str],
        requested_type: Optional[OrderType],
    ) -> ConversionResult:
        order = await self.session.get(Order, prefactura.order_id)
        if order is not None and order_name:
            order.order_name = order_name
            order.shipping_fee = (
                quotation.shipping_fee if quotation.shipping_enabled else Decimal("0")
            )
            if requested_type is not None:
                order.type = requested_type
            await recalculate_order_total(self.session, order.id)

        logger.info(
            "Reusing existing conversion",
            quotation_id=str(quotation.id),
            prefactura_code=prefactura.prefactura_code,
            order_id=str(prefactura.order_id),
            renamed=bool(order_name and order is not None),
        )
        return ConversionResult(prefactura=prefactura, order=order, reused=True)

    async def _convert_new(
        self,
        actor: Actor,
        quotation: Quotation,
        existing: Optional[Prefactura],
        order_name: Optional[str],
        requested_type: Optional[OrderType],
    ) -> ConversionResult:
        order_type = requested_type or OrderType.for_currency(quotation.currency)
        shipping_fee = quotation.shipping_fee if quotation.shipping_enabled else Decimal("0")

        def build_order(code: str) -> Order:
            return Order(
                order_code=code,
                order_name=order_name or f"Pedido {quotation.quote_code}",
                client_id=quotation.client_id,
                type=order_type,
                kind=OrderKind.NUEVO,
                status=OrderStatus.PENDIENTE,
                total=Decimal("0"),
                iva_enabled=(quotation.document_type or "P") == "P",
                discount=Decimal("0"),
                currency=(quotation.currency or "COP").upper(),
                shipping_fee=shipping_fee,
                created_by=actor.employee_id,
            )

        order = await insert_with_sequenced_code(
            self.session, Order.order_code, order_code_family(order_type), build_order
        )
        self.ledger.record_order_status(order.id, OrderStatus.PENDIENTE, actor.ledger_id)

        await self._copy_items(actor, quotation, order)

        if existing is not None:
            # Prefactura left without an order by an earlier failed conversion.
            existing.order_id = order.id
            existing.status = PREFACTURA_INITIAL_STATUS
            existing.approved_at = utcnow()
            prefactura = existing
        else:

            def build_prefactura(code: str) -> Prefactura:
                return Prefactura(
                    prefactura_code=code,
                    quotation_id=quotation.id,
                    order_id=order.id,
                    status=PREFACTURA_INITIAL_STATUS,
                    total_products=quotation.total_products,
                    subtotal=quotation.subtotal,
                    total=quotation.total,
                    approved_at=utcnow(),
                )

            try:
                prefactura = await insert_with_sequenced_code(
                    self.session,
                    Prefactura.prefactura_code,
                    PREFACTURA_CODES,
                    build_prefactura,
                )
            except ConflictError as e:
                if await self._prefactura_for_quotation(quotation.id) is None:
                    raise
                raise ConflictError(
                    "La cotización ya fue convertida",
                    quotation_id=str(quotation.id),
                    quote_code=quotation.quote_code,
                ) from e

        await recalculate_order_total(self.session, order.id)
        return ConversionResult(prefactura=prefactura, order=order, reused=False)

    async def _copy_items(self, actor: Actor, quotation: Quotation, order: Order) -> None:
        result = await self.session.execute(
            select(QuotationItem, Product.name)
            .outerjoin(Product, Product.id == QuotationItem.product_id)
            .where(QuotationItem.quotation_id == quotation.id)
        )
        quote_items = result.all()
        additions_by_item = await self._additions_by_item(
            [quote_item.id for quote_item, _ in quote_items]
        )

        pending: list[tuple[OrderItem, list[_QuoteAddition]]] = []
        for quote_item, product_name in quote_items:
            quantity = to_positive_int(quote_item.quantity)
            unit_price = to_decimal(quote_item.unit_price)
            adds = additions_by_item.get(quote_item.id, [])
            evidence = ", ".join(
                name for name in ((a.name or ADDITION_ITEM_NAME).strip() for a in adds) if name
            )
            item = OrderItem(
                id=uuid.uuid4(),
                order_id=order.id,
                product_id=quote_item.product_id,
                name=product_name or DEFAULT_ITEM_NAME,
                quantity=quantity,
                unit_price=unit_price,
                total_price=discounted_line_total(quantity, unit_price, quote_item.discount),
                has_additions=bool(adds),
                addition_evidence=evidence or None,
                status=OrderItemStatus.PENDIENTE,
                requires_revision=False,
                is_active=True,
            )
            self.session.add(item)
            pending.append((item, adds))

        await self.repository.flush("convert_quotation_items", order_id=str(order.id))
        for item, _ in pending:
            self.ledger.record_item_status(item.id, item.status, actor.ledger_id)

        addition_rows = [
            OrderItemAddition(
                order_item_id=item.id,
                addition_id=add.addition_id,
                quantity=Decimal(to_positive_int(add.quantity)),
                unit_price=add.unit_price,
            )
            for item, adds in pending
            for add in adds
            if add.addition_id is not None
        ]
        if addition_rows:
            await self._store_additions(order, addition_rows)

        logger.debug(
            "Quotation items copied",
            order_id=str(order.id),
            item_count=len(pending),
            addition_count=len(addition_rows),
        )

    async def _additions_by_item(
        self, quote_item_ids: list[uuid.UUID]
    ) -> dict[uuid.UUID, list[_QuoteAddition]]:
        grouped: dict[uuid.UUID, list[_QuoteAddition]] = defaultdict(list)
        if not quote_item_ids:
            return grouped

        result = await self.session.execute(
            select(QuotationItemAddition, Addition.name)
            .outerjoin(Addition, Addition.id == QuotationItemAddition.addition_id)
            .where(QuotationItemAddition.quotation_item_id.in_(quote_item_ids))
        )
        for row, name in result.all():
            grouped[row.quotation_item_id].append(
                _QuoteAddition(
                    addition_id=row.addition_id,
                    name=name,
                    quantity=to_decimal(row.quantity),
                    unit_price=to_decimal(row.unit_price),
                )
            )
        return grouped

    async def _store_additions(
        self, order: Order, rows: list[OrderItemAddition]
    ) -> None:
        """
        Insert addition rows, or synthetic addition lines on legacy schemas.

        The insert runs in a SAVEPOINT; only the undefined-table error
        triggers the fallback.
        """
        try:
            async with self.session.begin_nested():
                self.session.add_all(rows)
                await self.session.flush()
            return
        except SQLAlchemyError as e:
            if not is_undefined_table(e):
                raise
            logger.warning(
                "order_item_additions table missing, storing additions as items",
                order_id=str(order.id),
                addition_count=len(rows),
            )
            self.repository.mark_additions_unsupported()

        for row in rows:
            quantity = to_positive_int(row.quantity)
            self.session.add(
                OrderItem(
                    order_id=order.id,
                    product_id=None,
                    addition_id=row.addition_id,
                    name=ADDITION_ITEM_NAME,
                    quantity=quantity,
                    unit_price=row.unit_price,
                    total_price=quantize(Decimal(quantity) * row.unit_price),
                    status=OrderItemStatus.PENDIENTE,
                    requires_revision=False,
                    is_active=True,
                )
            )
        await self.repository.flush("convert_legacy_additions", order_id=str(order.id))
