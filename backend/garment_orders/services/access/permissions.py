"""
Permission checks for the order pipeline.

Permissions are granted to roles through ``role_permissions``. ADMINISTRADOR
bypasses every check, and a few roles carry permissions that are not stored
in the grant table.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from garment_orders.core.logging import get_logger
from garment_orders.database.models.access import Permission, Role, RolePermission
from garment_orders.services.errors import ForbiddenError

logger = get_logger(__name__)

ADMIN_ROLE = "ADMINISTRADOR"
ADVISOR_ROLE = "ASESOR"

ROLE_PERMISSION_OVERRIDES: dict[str, frozenset[str]] = {
    "COMPRAS": frozenset({"VER_PEDIDO", "CAMBIAR_ESTADO_DISEÑO"}),
}


@dataclass(frozen=True)
class Actor:
    """
    Authenticated caller.

    Attributes:
        user_id: Account identifier (token subject)
        role: Role name, upper case
        employee_id: Employee record linked to the account, if any
    """

    user_id: uuid.UUID
    role: Optional[str] = None
    employee_id: Optional[uuid.UUID] = None

    @property
    def normalized_role(self) -> str:
        return (self.role or "").strip().upper()

    @property
    def is_admin(self) -> bool:
        return self.normalized_role == ADMIN_ROLE

    @property
    def is_advisor(self) -> bool:
        return self.normalized_role == ADVISOR_ROLE

    @property
    def ledger_id(self) -> uuid.UUID:
        """Identifier recorded as ``changed_by`` in status ledgers."""
        return self.employee_id or self.user_id


class PermissionChecker:
    """Resolves role grants against the ``role_permissions`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def has_permission(self, role: Optional[str], permission: str) -> bool:
        normalized = (role or "").strip().upper()
        if not normalized:
            return False
        if normalized == ADMIN_ROLE:
            return True
        if permission in ROLE_PERMISSION_OVERRIDES.get(normalized, frozenset()):
            return True

        result = await self.session.execute(
            select(RolePermission.role_id)
            .join(Role, Role.id == RolePermission.role_id)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(Role.name == normalized, Permission.name == permission)
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def require(self, actor: Actor, permission: str) -> None:
        """
        Ensure the actor's role holds a permission.

        Raises:
            ForbiddenError: If the actor has no role or the role lacks the grant
        """
        if not actor.normalized_role:
            raise ForbiddenError(
                "Usuario sin rol asignado",
                permission=permission,
                role=None,
            )
        if not await self.has_permission(actor.role, permission):
            logger.warning(
                "Permission denied",
                permission=permission,
                role=actor.normalized_role,
                user_id=str(actor.user_id),
            )
            raise ForbiddenError(
                f"No tiene permiso para {permission}",
                permission=permission,
                role=actor.normalized_role,
            )

    async def roles_with_permission(self, permission: str) -> list[str]:
        """Role names holding a permission through the grant table or an override."""
        result = await self.session.execute(
            select(Role.name)
            .join(RolePermission, RolePermission.role_id == Role.id)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(Permission.name == permission)
            .order_by(Role.name)
        )
        roles = list(result.scalars().all())
        for role, granted in sorted(ROLE_PERMISSION_OVERRIDES.items()):
            if permission in granted and role not in roles:
                roles.append(role)
        return roles


def ensure_order_ownership(actor: Actor, created_by: Optional[uuid.UUID]) -> None:
    """
    Advisors may only touch designs of orders they created.

    Raises:
        ForbiddenError: If an advisor targets another employee's order
    """
    if not actor.is_advisor:
        return
    if actor.employee_id is None or created_by != actor.employee_id:
        raise ForbiddenError(
            "Solo puede modificar diseños de sus propios pedidos",
            role=actor.normalized_role,
            employee_id=str(actor.employee_id) if actor.employee_id else None,
        )
