"""Order item state machine with role-gated transitions.

This module implements the OrderItemStateMachine class for moving design
lines through intake, production and shipment. The state machine owns the
checks that do not depend on policy (unknown statuses, completion orders)
and delegates the role/status decision to an injected policy. Accepted
transitions are written to the status ledger only when the status actually
changes.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Optional

from garment_orders.core.logging import get_logger
from garment_orders.database.models.order import Order, OrderItem
from garment_orders.services.errors import ForbiddenError, ValidationError
from garment_orders.services.orders.enums import (
    OrderItemStatus,
    OrderKind,
    OrderStatus,
)
from garment_orders.services.orders.role_status import RoleStatusPolicy
from garment_orders.services.orders.status_ledger import StatusLedger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StatusTransition:
    """Outcome of a status change request."""

    previous: Any
    current: Any
    changed: bool


def parse_item_status(value: Any) -> OrderItemStatus:
    """
    Parse a requested item status.

    Raises:
        ValidationError: If the status is not a known item status
    """
    try:
        return OrderItemStatus.from_string(value)
    except ValueError as e:
        raise ValidationError(
            "Estado de diseño inválido",
            field="status",
            value=value,
            valid_values=[s.value for s in OrderItemStatus],
        ) from e


def parse_order_status(value: Any) -> OrderStatus:
    """
    Parse a requested order status.

    Raises:
        ValidationError: If the status is not a known order status
    """
    try:
        return OrderStatus.from_string(value)
    except ValueError as e:
        raise ValidationError(
            "Estado de pedido inválido",
            field="status",
            value=value,
            valid_values=[s.value for s in OrderStatus],
        ) from e


class OrderItemStateMachine:
    """State machine for order item (design line) status transitions.

    Attributes:
        ledger: Status ledger receiving accepted transitions
        policy: Role/status policy deciding who may move where
    """

    def __init__(
        self,
        ledger: StatusLedger,
        policy: Optional[RoleStatusPolicy] = None,
    ):
        self.ledger = ledger
        self.policy = policy or RoleStatusPolicy()

    @staticmethod
    def ensure_status_editable(order_kind: OrderKind, item_id: Any = None) -> None:
        """Reject any status change on completion orders.

        Raises:
            ValidationError: If the order is a COMPLETACION order
        """
        if order_kind is OrderKind.COMPLETACION:
            raise ValidationError(
                "En pedidos de completación solo se puede modificar la cantidad "
                "y el empaque",
                field="status",
                order_kind=order_kind.value,
                order_item_id=str(item_id) if item_id else None,
            )

    def transition(
        self,
        item: OrderItem,
        order_kind: OrderKind,
        requested: Any,
        role: Optional[str],
        actor_id: Optional[uuid.UUID] = None,
    ) -> StatusTransition:
        """Validate and apply a status change to an item.

        Args:
            item: Item to transition, attached to the current session
            order_kind: Kind of the item's order
            requested: Requested status (string or enum)
            role: Actor role used for the policy decision
            actor_id: Actor recorded in the ledger

        Returns:
            The transition outcome; ``changed`` is False for a no-op

        Raises:
            ValidationError: Unknown status, or a COMPLETACION order
            ForbiddenError: If the policy rejects the transition
        """
        target = parse_item_status(requested)
        self.ensure_status_editable(order_kind, item.id)

        current = item.status
        if not self.policy.can_change(role, current.value, target.value):
            logger.warning(
                "Item status transition rejected",
                order_item_id=str(item.id),
                role=role,
                from_status=current.value,
                to_status=target.value,
            )
            raise ForbiddenError(
                f"El rol {role or 'sin rol'} no puede cambiar el estado de "
                f"{current.value} a {target.value}",
                role=role,
                from_status=current.value,
                to_status=target.value,
                allowed=[s.value for s in self.policy.allowed_next(role, current.value)],
            )

        if target is current:
            return StatusTransition(previous=current, current=current, changed=False)

        item.status = target
        self.ledger.record_item_status(item.id, target, actor_id)

        logger.info(
            "Item status changed",
            order_item_id=str(item.id),
            transition=f"{current.value}->{target.value}",
            actor_id=str(actor_id) if actor_id else None,
        )
        return StatusTransition(previous=current, current=target, changed=True)


def change_order_status(
    ledger: StatusLedger,
    order: Order,
    requested: Any,
    actor_id: Optional[uuid.UUID] = None,
) -> StatusTransition:
    """Apply an order-level status change, recording it only when it differs.

    Raises:
        ValidationError: If the status is unknown
    """
    target = parse_order_status(requested)
    current = order.status
    if target is current:
        return StatusTransition(previous=current, current=current, changed=False)

    order.status = target
    ledger.record_order_status(order.id, target, actor_id)
    logger.info(
        "Order status changed",
        order_id=str(order.id),
        transition=f"{current.value}->{target.value}",
    )
    return StatusTransition(previous=current, current=target, changed=True)
