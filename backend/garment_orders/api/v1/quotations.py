"""Quotation conversion endpoint."""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Request, status

from garment_orders.api.deps import ConversionServiceDep, require_permissions
from garment_orders.core.config import get_settings
from garment_orders.core.rate_limit import limiter
from garment_orders.schemas.quotations import ConversionRequest, ConversionResponse
from garment_orders.services.access.permissions import Actor

settings = get_settings()

router = APIRouter(prefix="/quotations", tags=["quotations"])


@router.post(
    "/{quotation_id}/prefactura",
    response_model=ConversionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Convert quotation",
    description="Convert a quotation into a prefactura and a production order. "
    "Repeating the call reuses the earlier result.",
)
@limiter.limit(settings.rate_limit_conversion)
async def convert_quotation(
    request: Request,
    quotation_id: UUID,
    actor: Annotated[
        Actor, Depends(require_permissions("EDITAR_COTIZACION", "CREAR_PEDIDO"))
    ],
    service: ConversionServiceDep,
    payload: Annotated[Optional[ConversionRequest], Body()] = None,
) -> ConversionResponse:
    payload = payload or ConversionRequest()
    result = await service.convert(
        actor,
        quotation_id,
        order_name=payload.order_name,
        order_type=payload.order_type,
    )
    return ConversionResponse.model_validate(result.to_dict())
