"""
Order service orchestrating the order and design line operations.

This module implements the OrderService class: order creation (including
derived COMPLETACION/REFERENTE orders cloned from a source order), order
updates with full item replacement, cascade deletion, and the design line
create/update/delete operations gated by the item state machine.

Each public mutation is one unit of work: the service commits on success and
rolls back on any error before re-raising. The order total is recalculated
inside the same transaction after every item or discount change.
Notifications are dispatched only after the commit succeeded.
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from garment_orders.core.logging import get_logger, log_performance
from garment_orders.database.models.order import Order, OrderItem
from garment_orders.services.access.permissions import (
    Actor,
    PermissionChecker,
    ensure_order_ownership,
)
from garment_orders.services.errors import ConflictError, NotFoundError, ValidationError
from garment_orders.services.notifications.service import NotificationService
from garment_orders.services.orders.cloner import OrderCloner
from garment_orders.services.orders.code_sequencer import (
    insert_with_sequenced_code,
    order_code_family,
)
from garment_orders.services.orders.enums import (
    OrderItemStatus,
    OrderKind,
    OrderStatus,
    OrderType,
)
from garment_orders.services.orders.financials import (
    clamp_discount,
    effective_line_total,
    quantize,
    recalculate_order_total,
    stored_total_is_derived,
    to_decimal,
)
from garment_orders.services.orders.repository import (
    ItemChildren,
    OrderRepository,
    translate_integrity_error,
)
from garment_orders.services.orders.state_machine import (
    OrderItemStateMachine,
    StatusTransition,
    change_order_status,
    parse_item_status,
    parse_order_status,
)
from garment_orders.services.orders.status_ledger import StatusLedger

logger = get_logger(__name__)

ORDER_PERMISSION_VIEW = "VER_PEDIDO"
DESIGN_PERMISSION_VIEW = "VER_DISEÑO"

# Descriptive design line columns patched as-is.
ITEM_SCALAR_FIELDS = (
    "product_id",
    "name",
    "observations",
    "fabric",
    "image_url",
    "screen_print",
    "embroidery",
    "buttonhole",
    "snap",
    "tag",
    "flag",
    "gender",
    "process",
    "neck_type",
    "sleeve",
    "color",
    "requires_socks",
    "requires_revision",
    "is_active",
    "manufacturing_id",
)

ITEM_NOT_NULL_FIELDS = frozenset(
    {
        "screen_print",
        "embroidery",
        "buttonhole",
        "snap",
        "tag",
        "flag",
        "requires_socks",
        "requires_revision",
        "is_active",
    }
)

# Fields a COMPLETACION order accepts on its design lines.
COMPLETION_EDITABLE_FIELDS = frozenset({"quantity", "packaging"})


@dataclass
class OrderDetail:
    """Order with its design lines and their sub-records."""

    order: Order
    items: list[OrderItem] = field(default_factory=list)
    children: dict[uuid.UUID, ItemChildren] = field(default_factory=dict)
    source_order_code: Optional[str] = None


def _dump(entries: Optional[list[Any]]) -> list[dict[str, Any]]:
    return [entry.model_dump() for entry in entries or []]


def validate_new_item(data: Any, index: Optional[int] = None) -> None:
    """
    Check a design line before it is inserted.

    Raises:
        ValidationError: Non-positive quantity, or neither name nor product
    """
    context = {"index": index} if index is not None else {}
    if data.quantity is None or data.quantity <= 0:
        raise ValidationError(
            "La cantidad debe ser mayor a cero",
            field="quantity",
            value=data.quantity,
            **context,
        )
    if not data.name and data.product_id is None:
        raise ValidationError(
            "El diseño requiere un nombre o un producto",
            field="name",
            **context,
        )


class OrderService:
    """
    Order service orchestrating business logic.

    Attributes:
        session: Async database session owned by the request
        repository: Order repository for data access
        ledger: Status ledger for orders and items
        state_machine: Item state machine with its role/status policy
        cloner: Order cloner for derived orders
        permissions: Role permission checker for status-changing routes
        notifications: Post-commit notification dispatcher
    """

    def __init__(
        self,
        session: AsyncSession,
        notification_service: Optional[NotificationService] = None,
        state_machine: Optional[OrderItemStateMachine] = None,
    ):
        self.session = session
        self.repository = OrderRepository(session)
        self.ledger = StatusLedger(session)
        self.state_machine = state_machine or OrderItemStateMachine(self.ledger)
        self.cloner = OrderCloner(session, self.repository, self.ledger)
        self.notifications = notification_service or NotificationService()
        self.permissions = PermissionChecker(session)

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def create_order(self, actor: Actor, payload: Any) -> Order:
        """
        Create an order, cloning a source order for derived kinds.

        Args:
            actor: Authenticated caller, recorded as creator
            payload: ``OrderCreate`` request

        Returns:
            The committed order

        Raises:
            ValidationError: Missing source code, bad status or bad items
            NotFoundError: If the source order code does not exist
            ConflictError: If no unique order code could be assigned
        """
        order_type = OrderType.normalize(payload.type)
        kind = OrderKind.normalize(payload.kind)
        status = (
            parse_order_status(payload.status) if payload.status else OrderStatus.PENDIENTE
        )
        discount = clamp_discount(payload.discount)
        shipping_fee = to_decimal(payload.shipping_fee, "shipping_fee")
        if shipping_fee < 0:
            raise ValidationError(
                "El valor del envío no puede ser negativo", field="shipping_fee"
            )

        if kind.is_derived:
            if not payload.source_order_code:
                raise ValidationError(
                    "Los pedidos de completación o referente requieren el código "
                    "del pedido de origen",
                    field="source_order_code",
                    kind=kind.value,
                )
        else:
            for index, item in enumerate(payload.items):
                validate_new_item(item, index)

        logger.info(
            "Creating order",
            order_type=order_type.value,
            kind=kind.value,
            item_count=len(payload.items),
            source_order_code=payload.source_order_code,
        )

        try:
            source: Optional[Order] = None
            if kind.is_derived:
                source = await self.repository.get_order_by_code(payload.source_order_code)
                if source is None:
                    raise NotFoundError(
                        "Pedido de origen no encontrado",
                        source_order_code=payload.source_order_code,
                    )

            def build(code: str) -> Order:
                return Order(
                    order_code=code,
                    order_name=payload.order_name,
                    client_id=payload.client_id
                    or (source.client_id if source is not None else None),
                    type=order_type,
                    kind=kind,
                    source_order_id=source.id if source is not None else None,
                    status=status,
                    total=Decimal("0"),
                    discount=discount,
                    shipping_fee=shipping_fee,
                    currency=payload.currency,
                    iva_enabled=payload.iva_enabled,
                    created_by=actor.employee_id,
                )

            with log_performance(logger, "create_order", kind=kind.value):
                order = await insert_with_sequenced_code(
                    self.session, Order.order_code, order_code_family(order_type), build
                )
                self.ledger.record_order_status(order.id, status, actor.ledger_id)

                if source is not None:
                    await self.cloner.clone_into(source, order, actor.ledger_id)
                else:
                    for item in payload.items:
                        await self._insert_item(order.id, item, actor)
                    await recalculate_order_total(self.session, order.id)

            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            translated = translate_integrity_error(e, "create_order")
            if translated is e:
                raise
            raise translated from e
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Order created",
            order_id=str(order.id),
            order_code=order.order_code,
            kind=kind.value,
            total=str(order.total),
        )
        await self.notifications.notify_permission(
            ORDER_PERMISSION_VIEW,
            "Pedido creado",
            f"Se creó el pedido {order.order_code}",
            href=f"/pedidos/{order.id}",
        )
        return order

    async def update_order(
        self, actor: Actor, order_id: uuid.UUID, payload: Any
    ) -> Order:
        """
        Patch an order; a supplied ``items`` list replaces every item.

        The order code is immutable, also when the type changes.

        Args:
            actor: Authenticated caller
            order_id: Order to update
            payload: ``OrderUpdate`` request (partial)

        Returns:
            The committed order

        Raises:
            ValidationError: Order code supplied, unknown status, bad items
            NotFoundError: If the order does not exist
        """
        fields = payload.model_fields_set
        if "order_code" in fields and payload.order_code is not None:
            raise ValidationError(
                "El código del pedido no se puede modificar", field="order_code"
            )
        requested_status = (
            parse_order_status(payload.status)
            if "status" in fields and payload.status is not None
            else None
        )
        replace_items = "items" in fields and payload.items is not None
        if replace_items:
            for index, item in enumerate(payload.items):
                validate_new_item(item, index)

        transition: Optional[StatusTransition] = None
        try:
            order = await self._require_order(order_id)

            if "order_name" in fields:
                order.order_name = payload.order_name
            if "client_id" in fields:
                order.client_id = payload.client_id
            if "type" in fields and payload.type is not None:
                order.type = OrderType.normalize(payload.type)
            if "kind" in fields and payload.kind is not None:
                await self._apply_kind(order, OrderKind.normalize(payload.kind), payload)
            elif "source_order_code" in fields and payload.source_order_code:
                await self._apply_kind(order, OrderKind(order.kind), payload)
            if "discount" in fields:
                order.discount = clamp_discount(payload.discount)
            if "shipping_fee" in fields and payload.shipping_fee is not None:
                order.shipping_fee = to_decimal(payload.shipping_fee, "shipping_fee")
            if "currency" in fields and payload.currency:
                order.currency = payload.currency.upper()
            if "iva_enabled" in fields and payload.iva_enabled is not None:
                order.iva_enabled = payload.iva_enabled

            if requested_status is not None:
                transition = change_order_status(
                    self.ledger, order, requested_status, actor.ledger_id
                )

            if replace_items:
                item_ids = await self.repository.item_ids(order.id)
                await self.repository.delete_items_cascade(item_ids)
                for item in payload.items:
                    await self._insert_item(order.id, item, actor)

            await self.repository.flush("update_order", order_id=str(order_id))
            await recalculate_order_total(self.session, order.id)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Order updated",
            order_id=str(order.id),
            fields=sorted(fields),
            status_changed=bool(transition and transition.changed),
        )
        if transition is not None and transition.changed:
            await self.notifications.notify_permission(
                ORDER_PERMISSION_VIEW,
                "Cambio de estado",
                f"El pedido {order.order_code} cambió a {order.status.value}",
                href=f"/pedidos/{order.id}",
            )
        return order

    async def delete_order(self, actor: Actor, order_id: uuid.UUID) -> None:
        """
        Delete an order and everything it owns.

        Raises:
            NotFoundError: If the order does not exist
            ConflictError: If a prefactura is linked to the order
        """
        try:
            order = await self._require_order(order_id)
            prefactura = await self.repository.prefactura_for_order(order.id)
            if prefactura is not None:
                raise ConflictError(
                    "El pedido está vinculado a una prefactura",
                    order_id=str(order_id),
                    prefactura_code=prefactura.prefactura_code,
                )
            order_code = order.order_code
            await self.repository.delete_order_cascade(order.id)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Order deleted",
            order_id=str(order_id),
            order_code=order_code,
            deleted_by=str(actor.user_id),
        )

    async def get_order(self, order_id: uuid.UUID) -> OrderDetail:
        """
        Load an order with its design lines and their sub-records.

        Raises:
            NotFoundError: If the order does not exist
        """
        order = await self._require_order(order_id)
        items = await self.repository.list_items(order.id)
        children = await self.repository.load_children([item.id for item in items])
        source_code = None
        if order.source_order_id is not None:
            source = await self.repository.get_order(order.source_order_id)
            source_code = source.order_code if source is not None else None
        return OrderDetail(
            order=order, items=items, children=children, source_order_code=source_code
        )

    async def list_orders(
        self,
        status: Optional[str] = None,
        kind: Optional[str] = None,
        client_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Order], int]:
        """Paginated order listing; filters are ignored when blank."""
        status_filter = parse_order_status(status) if status else None
        kind_filter = OrderKind.parse_or_none(kind) if kind else None
        if kind and kind_filter is None:
            raise ValidationError("Tipo de pedido inválido", field="kind", value=kind)
        return await self.repository.list_orders(
            status=status_filter,
            kind=kind_filter,
            client_id=client_id,
            search=search,
            page=page,
            page_size=page_size,
        )

    # ------------------------------------------------------------------
    # Design lines
    # ------------------------------------------------------------------

    async def item_children(self, item_id: uuid.UUID) -> ItemChildren:
        children = await self.repository.load_children([item_id])
        return children[item_id]

    async def create_order_item(self, actor: Actor, payload: Any) -> OrderItem:
        """
        Add a design line to an existing order.

        Args:
            actor: Authenticated caller
            payload: ``OrderItemCreate`` request

        Returns:
            The committed item

        Raises:
            ValidationError: Bad quantity/name, or a COMPLETACION order
            NotFoundError: If the order does not exist
            ForbiddenError: If an advisor targets another employee's order
        """
        validate_new_item(payload)
        try:
            order = await self._require_order(payload.order_id)
            ensure_order_ownership(actor, order.created_by)
            if order.kind is OrderKind.COMPLETACION:
                raise ValidationError(
                    "No se pueden agregar diseños a un pedido de completación",
                    order_id=str(order.id),
                    kind=order.kind.value,
                )
            item = await self._insert_item(order.id, payload, actor)
            await recalculate_order_total(self.session, order.id)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Order item created",
            order_id=str(order.id),
            order_item_id=str(item.id),
            quantity=item.quantity,
        )
        await self.notifications.notify_permission(
            DESIGN_PERMISSION_VIEW,
            "Diseño creado",
            f"Se creó un diseño en el pedido {order.order_code}",
            href=f"/pedidos/{order.id}",
        )
        return item

    async def update_order_item(
        self, actor: Actor, item_id: uuid.UUID, payload: Any
    ) -> OrderItem:
        """
        Patch a design line.

        COMPLETACION orders only accept quantity and packaging changes, and
        reject any status in the payload. When quantity or unit price change
        without an explicit total price, a derived line total follows them;
        a manually set total is kept.

        Args:
            actor: Authenticated caller
            item_id: Item to update
            payload: ``OrderItemUpdate`` request (partial)

        Returns:
            The committed item

        Raises:
            ValidationError: Unknown status, completion order status change,
                non-positive quantity
            ForbiddenError: Policy rejected the transition, or advisor
                ownership failed
            NotFoundError: If the item does not exist
        """
        fields = set(payload.model_fields_set)
        wants_status = "status" in fields and payload.status is not None
        if wants_status:
            parse_item_status(payload.status)

        transition: Optional[StatusTransition] = None
        try:
            item = await self.repository.get_item(item_id)
            if item is None:
                raise NotFoundError("Diseño no encontrado", order_item_id=str(item_id))
            order = await self._require_order(item.order_id)
            ensure_order_ownership(actor, order.created_by)

            if order.kind is OrderKind.COMPLETACION:
                if wants_status:
                    self.state_machine.ensure_status_editable(order.kind, item.id)
                fields &= COMPLETION_EDITABLE_FIELDS

            if "quantity" in fields and (payload.quantity is None or payload.quantity <= 0):
                raise ValidationError(
                    "La cantidad debe ser mayor a cero",
                    field="quantity",
                    value=payload.quantity,
                )

            if wants_status and "status" in fields:
                transition = self.state_machine.transition(
                    item, order.kind, payload.status, actor.role, actor.ledger_id
                )

            self._apply_item_fields(item, payload, fields)
            await self._replace_children(item.id, payload, fields)

            await self.repository.flush("update_order_item", order_item_id=str(item_id))
            await recalculate_order_total(self.session, order.id)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Order item updated",
            order_item_id=str(item.id),
            order_id=str(order.id),
            fields=sorted(fields),
            status_changed=bool(transition and transition.changed),
        )
        if transition is not None and transition.changed:
            await self.notifications.notify_permission(
                DESIGN_PERMISSION_VIEW,
                "Cambio de estado",
                f"Un diseño del pedido {order.order_code} cambió a "
                f"{item.status.value}",
                href=f"/pedidos/{order.id}",
            )
        return item

    async def delete_order_item(self, actor: Actor, item_id: uuid.UUID) -> Order:
        """
        Delete a design line and recalculate its order.

        Returns:
            The owning order with its new total

        Raises:
            NotFoundError: If the item does not exist
            ForbiddenError: If an advisor targets another employee's order
        """
        try:
            item = await self.repository.get_item(item_id)
            if item is None:
                raise NotFoundError("Diseño no encontrado", order_item_id=str(item_id))
            order = await self._require_order(item.order_id)
            ensure_order_ownership(actor, order.created_by)

            await self.repository.delete_item_cascade(item.id)
            await recalculate_order_total(self.session, order.id)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Order item deleted",
            order_item_id=str(item_id),
            order_id=str(order.id),
            total=str(order.total),
        )
        return order

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require_order(self, order_id: uuid.UUID) -> Order:
        order = await self.repository.get_order(order_id)
        if order is None:
            raise NotFoundError("Pedido no encontrado", order_id=str(order_id))
        return order

    async def _apply_kind(self, order: Order, kind: OrderKind, payload: Any) -> None:
        """
        Set the order kind and keep ``source_order_id`` consistent with it.

        Derived kinds point at a source order: a supplied ``source_order_code``
        is resolved, otherwise the current source must already exist. NUEVO
        orders never keep a source.

        Raises:
            ValidationError: Derived kind without a source, or self reference
            NotFoundError: If the source order code does not exist
        """
        if not kind.is_derived:
            order.kind = kind
            order.source_order_id = None
            return

        source_code = payload.source_order_code
        if source_code:
            source = await self.repository.get_order_by_code(source_code)
            if source is None:
                raise NotFoundError(
                    "Pedido de origen no encontrado", source_order_code=source_code
                )
            if source.id == order.id:
                raise ValidationError(
                    "Un pedido no puede ser su propio pedido de origen",
                    field="source_order_code",
                )
            order.source_order_id = source.id
        elif order.source_order_id is None:
            raise ValidationError(
                "Los pedidos de completación o referente requieren el código "
                "del pedido de origen",
                field="source_order_code",
                kind=kind.value,
            )
        order.kind = kind

    async def _insert_item(
        self,
        order_id: uuid.UUID,
        data: Any,
        actor: Actor,
        status: OrderItemStatus = OrderItemStatus.PENDIENTE,
    ) -> OrderItem:
        values = {
            name: getattr(data, name)
            for name in ITEM_SCALAR_FIELDS
            if getattr(data, name) is not None
        }
        total_price = data.total_price
        if total_price is None and data.unit_price is not None:
            total_price = quantize(effective_line_total(data.quantity, data.unit_price))

        item = OrderItem(
            id=uuid.uuid4(),
            order_id=order_id,
            quantity=data.quantity,
            unit_price=data.unit_price,
            total_price=total_price,
            status=status,
            **values,
        )
        self.session.add(item)
        await self.repository.flush("insert_order_item", order_id=str(order_id))

        self.ledger.record_item_status(item.id, status, actor.ledger_id)
        self.repository.add_packaging(item.id, _dump(data.packaging))
        self.repository.add_socks(item.id, _dump(data.socks))
        await self.repository.add_materials(item.id, _dump(data.materials))
        return item

    def _apply_item_fields(self, item: OrderItem, payload: Any, fields: set[str]) -> None:
        old_quantity = item.quantity
        old_unit_price = item.unit_price
        old_total_price = item.total_price

        for name in ITEM_SCALAR_FIELDS:
            if name not in fields:
                continue
            value = getattr(payload, name)
            if value is None and name in ITEM_NOT_NULL_FIELDS:
                continue
            setattr(item, name, value)

        if "quantity" in fields:
            item.quantity = payload.quantity
        if "unit_price" in fields:
            item.unit_price = payload.unit_price

        pricing_changed = (
            item.quantity != old_quantity or item.unit_price != old_unit_price
        )
        if "total_price" in fields and payload.total_price is not None:
            item.total_price = payload.total_price
        elif pricing_changed and stored_total_is_derived(
            old_total_price, old_quantity, old_unit_price
        ):
            item.total_price = (
                quantize(effective_line_total(item.quantity, item.unit_price))
                if item.unit_price is not None
                else None
            )
        elif "total_price" in fields:
            item.total_price = None

    async def _replace_children(
        self, item_id: uuid.UUID, payload: Any, fields: set[str]
    ) -> None:
        if "packaging" in fields and payload.packaging is not None:
            await self.repository.replace_packaging(item_id, _dump(payload.packaging))
        if "socks" in fields and payload.socks is not None:
            await self.repository.replace_socks(item_id, _dump(payload.socks))
        if "materials" in fields and payload.materials is not None:
            await self.repository.replace_materials(item_id, _dump(payload.materials))
