"""
Order total recalculation.

The persisted order total is the sum of effective line totals after the
order discount. Shipping is excluded; it is added only when an order is
presented or exported.
"""

import uuid
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from garment_orders.core.logging import get_logger
from garment_orders.database.models.order import Order, OrderItem
from garment_orders.services.errors import NotFoundError, ValidationError

logger = get_logger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """
    Coerce a numeric input to Decimal.

    Raises:
        ValidationError: If the value is not numeric
    """
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{field} must be numeric", field=field, value=value) from e


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def clamp_discount(discount: Any) -> Decimal:
    """Clamp a discount percentage into [0, 100]."""
    value = to_decimal(discount, "discount")
    if value < 0:
        return Decimal("0")
    if value > HUNDRED:
        return HUNDRED
    return value


def effective_line_total(
    quantity: Any,
    unit_price: Any,
    total_price: Optional[Any] = None,
) -> Decimal:
    """Explicit total when set, otherwise unit price times quantity."""
    if total_price is not None:
        return to_decimal(total_price, "total_price")
    return to_decimal(unit_price, "unit_price") * to_decimal(quantity, "quantity")


def discounted_line_total(quantity: Any, unit_price: Any, discount: Any) -> Decimal:
    """Line total after a per-line discount percentage, rounded to cents."""
    gross = effective_line_total(quantity, unit_price)
    return quantize(gross * (1 - clamp_discount(discount) / HUNDRED))


def compute_order_total(line_totals: Iterable[Decimal], discount: Any) -> Decimal:
    """
    Apply the order discount to the sum of line totals.

    Args:
        line_totals: Effective totals of every item on the order
        discount: Discount percentage; clamped into [0, 100]

    Returns:
        Order total rounded to cents
    """
    subtotal = sum((to_decimal(t) for t in line_totals), Decimal("0"))
    percent = clamp_discount(discount)
    return quantize(subtotal * (1 - percent / HUNDRED))


def stored_total_is_derived(
    total_price: Optional[Any],
    quantity: Any,
    unit_price: Any,
) -> bool:
    """
    Whether a stored line total was computed rather than set by hand.

    A missing total, or one equal to unit price times quantity, follows
    quantity and price changes; any other value is a manual override.
    """
    if total_price is None:
        return True
    return quantize(to_decimal(total_price)) == quantize(
        to_decimal(unit_price) * to_decimal(quantity)
    )


async def recalculate_order_total(
    session: AsyncSession,
    order_id: uuid.UUID,
) -> Decimal:
    """
    Recompute and store an order's total from its current item rows.

    Pending item changes are flushed first so the read sees every write of
    the current transaction.

    Args:
        session: Active database session
        order_id: Order to recalculate

    Returns:
        The new total

    Raises:
        NotFoundError: If the order does not exist
    """
    await session.flush()

    order = await session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Pedido no encontrado", order_id=str(order_id))

    result = await session.execute(
        select(OrderItem.quantity, OrderItem.unit_price, OrderItem.total_price).where(
            OrderItem.order_id == order_id
        )
    )
    line_totals = [
        effective_line_total(quantity, unit_price, total_price)
        for quantity, unit_price, total_price in result.all()
    ]
    total = compute_order_total(line_totals, order.discount)

    if order.total is None or Decimal(order.total) != total:
        logger.debug(
            "Order total recalculated",
            order_id=str(order_id),
            previous_total=str(order.total),
            total=str(total),
            item_count=len(line_totals),
        )
    order.total = total
    await session.flush()
    return total
