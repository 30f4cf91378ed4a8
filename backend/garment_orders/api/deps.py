"""
FastAPI dependencies for authentication, authorization and service wiring.

This module decodes the bearer token into an ``Actor``, gates routes on role
permissions, and builds the request-scoped services around the request's
database session.
"""

from typing import Annotated, Callable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from garment_orders.core.logging import get_logger, set_actor
from garment_orders.core.security import TokenError, decode_token
from garment_orders.database.connection import get_db
from garment_orders.schemas.auth import TokenPayload
from garment_orders.services.access.permissions import Actor, PermissionChecker
from garment_orders.services.notifications.service import NotificationService
from garment_orders.services.orders.service import OrderService
from garment_orders.services.orders.status_ledger import StatusLedger
from garment_orders.services.quotations.conversion import ConversionService
from garment_orders.services.third_parties.service import ClientService

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)

DatabaseSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_actor(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> Actor:
    """
    Decode the bearer token into the calling actor.

    Args:
        credentials: HTTP Bearer token from the Authorization header

    Returns:
        Actor: User id, role and employee id from the token claims

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        logger.warning("Authentication failed: No credentials provided")
        raise credentials_exception

    try:
        claims = TokenPayload.model_validate(decode_token(credentials.credentials))
    except TokenError as e:
        logger.warning("Authentication failed", code=e.code)
        raise credentials_exception from e
    except PydanticValidationError as e:
        logger.warning("Authentication failed: Malformed claims", errors=e.error_count())
        raise credentials_exception from e

    actor = Actor(user_id=claims.sub, role=claims.role, employee_id=claims.employee_id)
    set_actor(str(actor.user_id), actor.role)
    return actor


CurrentActor = Annotated[Actor, Depends(get_current_actor)]


def require_permission(permission: str) -> Callable:
    """
    Dependency factory gating a route on a role permission.

    Example:
        @router.post("/orders")
        async def create(actor: Annotated[Actor, Depends(require_permission("CREAR_PEDIDO"))]):
            ...
    """

    async def permission_checker(actor: CurrentActor, db: DatabaseSession) -> Actor:
        await PermissionChecker(db).require(actor, permission)
        return actor

    return permission_checker


def require_permissions(*permissions: str) -> Callable:
    """Gate a route on several permissions, all of which are required."""

    async def permissions_checker(actor: CurrentActor, db: DatabaseSession) -> Actor:
        checker = PermissionChecker(db)
        for permission in permissions:
            await checker.require(actor, permission)
        return actor

    return permissions_checker


def get_notification_service() -> NotificationService:
    return NotificationService()


Notifications = Annotated[NotificationService, Depends(get_notification_service)]


def get_order_service(db: DatabaseSession, notifications: Notifications) -> OrderService:
    return OrderService(db, notification_service=notifications)


def get_conversion_service(
    db: DatabaseSession, notifications: Notifications
) -> ConversionService:
    return ConversionService(db, notification_service=notifications)


def get_client_service(db: DatabaseSession) -> ClientService:
    return ClientService(db)


def get_status_ledger(db: DatabaseSession) -> StatusLedger:
    return StatusLedger(db)


OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
ConversionServiceDep = Annotated[ConversionService, Depends(get_conversion_service)]
ClientServiceDep = Annotated[ClientService, Depends(get_client_service)]
StatusLedgerDep = Annotated[StatusLedger, Depends(get_status_ledger)]
