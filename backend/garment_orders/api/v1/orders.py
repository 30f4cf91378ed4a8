"""
Order API endpoints.

Create, read, update, list and delete production orders. Business errors
raised by the order service propagate to the application's error handler,
which renders them with their HTTP status.
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status

from garment_orders.api.deps import OrderServiceDep, require_permission
from garment_orders.core.config import get_settings
from garment_orders.core.logging import get_logger
from garment_orders.core.rate_limit import limiter
from garment_orders.schemas.common import PaginatedResponse
from garment_orders.schemas.orders import OrderCreate, OrderResponse, OrderUpdate
from garment_orders.services.access.permissions import Actor

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create order",
    description="Create a NUEVO order with its designs, or a COMPLETACION/REFERENTE "
    "order cloned from a source order",
)
@limiter.limit(settings.rate_limit_orders_write)
async def create_order(
    request: Request,
    payload: OrderCreate,
    actor: Annotated[Actor, Depends(require_permission("CREAR_PEDIDO"))],
    service: OrderServiceDep,
) -> OrderResponse:
    order = await service.create_order(actor, payload)
    detail = await service.get_order(order.id)
    return OrderResponse.build(
        detail.order, detail.items, detail.children, detail.source_order_code
    )


@router.get(
    "",
    response_model=PaginatedResponse[OrderResponse],
    summary="List orders",
)
async def list_orders(
    actor: Annotated[Actor, Depends(require_permission("VER_PEDIDO"))],
    service: OrderServiceDep,
    status_filter: Optional[str] = Query(None, alias="status"),
    kind: Optional[str] = Query(None),
    client_id: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[OrderResponse]:
    orders, total = await service.list_orders(
        status=status_filter,
        kind=kind,
        client_id=client_id,
        search=search,
        page=page,
        page_size=page_size,
    )
    return PaginatedResponse[OrderResponse].build(
        [OrderResponse.build(order) for order in orders], total, page, page_size
    )


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order",
    description="Order with its designs and their packaging, socks, materials and additions",
)
async def get_order(
    order_id: UUID,
    actor: Annotated[Actor, Depends(require_permission("VER_PEDIDO"))],
    service: OrderServiceDep,
) -> OrderResponse:
    detail = await service.get_order(order_id)
    return OrderResponse.build(
        detail.order, detail.items, detail.children, detail.source_order_code
    )


@router.put(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Update order",
)
@limiter.limit(settings.rate_limit_orders_write)
async def update_order(
    request: Request,
    order_id: UUID,
    payload: OrderUpdate,
    actor: Annotated[Actor, Depends(require_permission("EDITAR_PEDIDO"))],
    service: OrderServiceDep,
) -> OrderResponse:
    """
    Patch an order.

    A status change additionally requires CAMBIAR_ESTADO_PEDIDO.
    """
    if "status" in payload.model_fields_set and payload.status is not None:
        await service.permissions.require(actor, "CAMBIAR_ESTADO_PEDIDO")
    await service.update_order(actor, order_id, payload)
    detail = await service.get_order(order_id)
    return OrderResponse.build(
        detail.order, detail.items, detail.children, detail.source_order_code
    )


@router.delete(
    "/{order_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete order",
)
@limiter.limit(settings.rate_limit_orders_write)
async def delete_order(
    request: Request,
    order_id: UUID,
    actor: Annotated[Actor, Depends(require_permission("ELIMINAR_PEDIDO"))],
    service: OrderServiceDep,
) -> Response:
    await service.delete_order(actor, order_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
