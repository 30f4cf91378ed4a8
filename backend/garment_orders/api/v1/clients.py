"""Client endpoints: creation, edits and legal status checks."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from garment_orders.api.deps import ClientServiceDep, require_permission
from garment_orders.schemas.clients import (
    ClientCreate,
    ClientResponse,
    ClientUpdate,
    LegalStatusCheckResponse,
)
from garment_orders.services.access.permissions import Actor

router = APIRouter(prefix="/clients", tags=["clients"])


@router.post(
    "",
    response_model=ClientResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create client",
)
async def create_client(
    payload: ClientCreate,
    actor: Annotated[Actor, Depends(require_permission("CREAR_CLIENTE"))],
    service: ClientServiceDep,
) -> ClientResponse:
    client = await service.create_client(actor, payload)
    return ClientResponse.model_validate(client)


@router.put(
    "/{client_id}",
    response_model=ClientResponse,
    summary="Update client",
    description="Changes to identity-critical data send the client to legal review",
)
async def update_client(
    client_id: UUID,
    payload: ClientUpdate,
    actor: Annotated[Actor, Depends(require_permission("EDITAR_CLIENTE"))],
    service: ClientServiceDep,
) -> ClientResponse:
    client = await service.update_client(actor, client_id, payload)
    return ClientResponse.model_validate(client)


@router.get(
    "/{client_id}/legal-status",
    response_model=LegalStatusCheckResponse,
    summary="Check client legal status",
)
async def get_client_legal_status(
    client_id: UUID,
    actor: Annotated[Actor, Depends(require_permission("VER_CLIENTE"))],
    service: ClientServiceDep,
) -> LegalStatusCheckResponse:
    check = await service.get_legal_status(client_id)
    return LegalStatusCheckResponse.model_validate(check.to_dict())
