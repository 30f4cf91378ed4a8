"""
Design line (order item) API endpoints.

Mounted before the order router so ``/orders/items`` is not captured by
``/orders/{order_id}``.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status

from garment_orders.api.deps import CurrentActor, OrderServiceDep, require_permission
from garment_orders.core.config import get_settings
from garment_orders.core.rate_limit import limiter
from garment_orders.schemas.orders import (
    OrderItemCreate,
    OrderItemResponse,
    OrderItemUpdate,
    OrderResponse,
)
from garment_orders.services.access.permissions import Actor

settings = get_settings()

router = APIRouter(prefix="/orders/items", tags=["order-items"])


@router.post(
    "",
    response_model=OrderItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add design to order",
)
@limiter.limit(settings.rate_limit_items_write)
async def create_order_item(
    request: Request,
    payload: OrderItemCreate,
    actor: Annotated[Actor, Depends(require_permission("CREAR_DISEÑO"))],
    service: OrderServiceDep,
) -> OrderItemResponse:
    item = await service.create_order_item(actor, payload)
    return OrderItemResponse.build(item, await service.item_children(item.id))


@router.put(
    "/{item_id}",
    response_model=OrderItemResponse,
    summary="Update design",
    description="Patch a design; a status change goes through the design state machine",
)
@limiter.limit(settings.rate_limit_items_write)
async def update_order_item(
    request: Request,
    item_id: UUID,
    payload: OrderItemUpdate,
    actor: CurrentActor,
    service: OrderServiceDep,
) -> OrderItemResponse:
    """
    Patch a design.

    A status change requires CAMBIAR_ESTADO_DISEÑO; any other field requires
    CREAR_DISEÑO.
    """
    fields = payload.model_fields_set
    if "status" in fields and payload.status is not None:
        await service.permissions.require(actor, "CAMBIAR_ESTADO_DISEÑO")
    if fields - {"status"}:
        await service.permissions.require(actor, "CREAR_DISEÑO")
    item = await service.update_order_item(actor, item_id, payload)
    return OrderItemResponse.build(item, await service.item_children(item.id))


@router.delete(
    "/{item_id}",
    response_model=OrderResponse,
    summary="Delete design",
    description="Delete a design with its sub-records and return the recalculated order",
)
@limiter.limit(settings.rate_limit_items_delete)
async def delete_order_item(
    request: Request,
    item_id: UUID,
    actor: Annotated[Actor, Depends(require_permission("CREAR_DISEÑO"))],
    service: OrderServiceDep,
) -> OrderResponse:
    order = await service.delete_order_item(actor, item_id)
    return OrderResponse.build(order)
