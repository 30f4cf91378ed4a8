"""Status history (ledger) read endpoints."""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from garment_orders.api.deps import StatusLedgerDep, require_permission
from garment_orders.schemas.common import PaginatedResponse
from garment_orders.schemas.orders import StatusHistoryResponse
from garment_orders.services.access.permissions import Actor

router = APIRouter(prefix="/status-history", tags=["status-history"])

HistoryReader = Annotated[Actor, Depends(require_permission("VER_HISTORIAL_ESTADO"))]


@router.get(
    "/orders",
    response_model=PaginatedResponse[StatusHistoryResponse],
    summary="Order status history",
)
async def order_status_history(
    actor: HistoryReader,
    ledger: StatusLedgerDep,
    order_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[StatusHistoryResponse]:
    rows, total = await ledger.list_order_history(order_id, page, page_size)
    return PaginatedResponse[StatusHistoryResponse].build(
        [StatusHistoryResponse.model_validate(row) for row in rows],
        total,
        page,
        page_size,
    )


@router.get(
    "/order-items",
    response_model=PaginatedResponse[StatusHistoryResponse],
    summary="Design status history",
)
async def order_item_status_history(
    actor: HistoryReader,
    ledger: StatusLedgerDep,
    order_item_id: Optional[UUID] = Query(None),
    order_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaginatedResponse[StatusHistoryResponse]:
    rows, total = await ledger.list_item_history(order_item_id, order_id, page, page_size)
    return PaginatedResponse[StatusHistoryResponse].build(
        [StatusHistoryResponse.model_validate(row) for row in rows],
        total,
        page,
        page_size,
    )
