"""
Role and status policy for order item (design) transitions.

Two tables decide whether a role may move a design line from one status to
another:

- ``STATUS_ROLE_MAP``: the roles allowed to set each target status.
- ``TRANSITIONS``: the statuses reachable from each status.

ADMINISTRADOR may set any status from anywhere. LIDER_OPERACIONAL may use
every status except CANCELADO, still bound by the transition table.
"""

from typing import Optional

from garment_orders.services.orders.enums import OrderItemStatus as S

ADMINISTRADOR = "ADMINISTRADOR"
LIDER_OPERACIONAL = "LIDER_OPERACIONAL"

_INTAKE_ROLES = frozenset(
    {
        ADMINISTRADOR,
        "ASESOR",
        "LIDER_SUMINISTROS",
        "COMPRA_NACIONAL",
        "COMPRA_INTERNACIONAL",
    }
)

STATUS_ROLE_MAP: dict[S, frozenset[str]] = {
    S.PENDIENTE: _INTAKE_ROLES,
    S.APROBACION_INICIAL: _INTAKE_ROLES,
    S.PENDIENTE_PRODUCCION: _INTAKE_ROLES | {"OPERARIO_BODEGA"},
    S.EN_MONTAJE: frozenset({ADMINISTRADOR, "OPERARIO_MONTAJE"}),
    S.EN_IMPRESION: frozenset({ADMINISTRADOR, "OPERARIO_FLOTER"}),
    S.SUBLIMACION: frozenset({ADMINISTRADOR, "OPERARIO_SUBLIMACION"}),
    S.CORTE_MANUAL: frozenset({ADMINISTRADOR, "OPERARIO_CORTE_MANUAL"}),
    S.CORTE_LASER: frozenset({ADMINISTRADOR, "OPERARIO_CORTE_LASER"}),
    S.PENDIENTE_CONFECCION: frozenset({ADMINISTRADOR, "OPERARIO_INTEGRACION_CALIDAD"}),
    S.CONFECCION: frozenset({ADMINISTRADOR, "OPERARIO_INTEGRACION_CALIDAD", "EMPAQUE"}),
    S.EN_BODEGA: frozenset({ADMINISTRADOR, "EMPAQUE", "OPERARIO_BODEGA"}),
    S.EMPAQUE: frozenset({ADMINISTRADOR, "EMPAQUE"}),
    S.ENVIADO: frozenset({ADMINISTRADOR, "EMPAQUE"}),
    S.COMPLETADO: frozenset({ADMINISTRADOR, "EMPAQUE"}),
    S.CANCELADO: frozenset({ADMINISTRADOR}),
}

_PRODUCTION_STAGES = (
    S.EN_MONTAJE,
    S.EN_IMPRESION,
    S.SUBLIMACION,
    S.CORTE_MANUAL,
    S.CORTE_LASER,
)

TRANSITIONS: dict[S, frozenset[S]] = {
    S.PENDIENTE: frozenset({S.REVISION_ADMIN, S.APROBACION_INICIAL}),
    S.REVISION_ADMIN: frozenset({S.APROBACION_INICIAL}),
    S.APROBACION_INICIAL: frozenset({S.PENDIENTE_PRODUCCION, S.EN_REVISION_CAMBIO}),
    S.PENDIENTE_PRODUCCION: frozenset(_PRODUCTION_STAGES + (S.PENDIENTE_CONFECCION,)),
    **{stage: frozenset({S.PENDIENTE_CONFECCION}) for stage in _PRODUCTION_STAGES},
    S.PENDIENTE_CONFECCION: frozenset({S.CONFECCION}),
    S.CONFECCION: frozenset({S.EN_BODEGA}),
    S.EN_BODEGA: frozenset({S.EMPAQUE}),
    S.EMPAQUE: frozenset({S.ENVIADO}),
    S.ENVIADO: frozenset({S.COMPLETADO}),
    S.EN_REVISION_CAMBIO: frozenset({S.APROBADO_CAMBIO, S.RECHAZADO_CAMBIO}),
    S.APROBADO_CAMBIO: frozenset({S.PENDIENTE_PRODUCCION}),
    S.RECHAZADO_CAMBIO: frozenset({S.PENDIENTE_PRODUCCION}),
    S.COMPLETADO: frozenset(),
    S.CANCELADO: frozenset(),
}


def _normalize_role(role: Optional[str]) -> str:
    return str(role or "").strip().upper()


def statuses_for_role(role: Optional[str]) -> frozenset[S]:
    """Statuses a role is allowed to set, regardless of the current status."""
    normalized = _normalize_role(role)
    if not normalized:
        return frozenset()
    if normalized == ADMINISTRADOR:
        return frozenset(S)
    if normalized == LIDER_OPERACIONAL:
        return frozenset(s for s in S if s is not S.CANCELADO)
    return frozenset(
        status for status, roles in STATUS_ROLE_MAP.items() if normalized in roles
    )


def can_role_change_status(
    role: Optional[str],
    current: Optional[str],
    next_status: Optional[str],
) -> bool:
    """
    Decide whether ``role`` may move an item from ``current`` to ``next_status``.

    Args:
        role: Actor role name
        current: Current item status
        next_status: Requested item status

    Returns:
        True when the policy allows the transition
    """
    normalized = _normalize_role(role)
    target = S.parse_or_none(next_status)
    if not normalized or target is None:
        return False
    if normalized == ADMINISTRADOR:
        return True

    source = S.parse_or_none(current)
    if source is None:
        return False
    if target not in statuses_for_role(normalized):
        return False
    return target == source or target in TRANSITIONS.get(source, frozenset())


def allowed_next_statuses(role: Optional[str], current: Optional[str]) -> list[S]:
    """Statuses the role may move an item to from ``current``, in enum order."""
    source = S.parse_or_none(current)
    return [
        status
        for status in S
        if status is not source and can_role_change_status(role, current, status.value)
    ]


def is_operario_role(role: Optional[str]) -> bool:
    normalized = _normalize_role(role)
    return normalized.startswith("OPERARIO_") or normalized == "EMPAQUE"


class RoleStatusPolicy:
    """
    Injectable wrapper around the policy tables.

    The item state machine receives an instance so tests can swap in a
    stricter or looser policy.
    """

    def can_change(
        self,
        role: Optional[str],
        current: Optional[str],
        next_status: Optional[str],
    ) -> bool:
        return can_role_change_status(role, current, next_status)

    def allowed_next(self, role: Optional[str], current: Optional[str]) -> list[S]:
        return allowed_next_statuses(role, current)
