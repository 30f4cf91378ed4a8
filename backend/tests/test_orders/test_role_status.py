"""
Tests for the role/status policy governing design line transitions.
"""

import pytest

from garment_orders.services.orders.enums import OrderItemStatus
from garment_orders.services.orders.role_status import (
    RoleStatusPolicy,
    allowed_next_statuses,
    can_role_change_status,
    is_operario_role,
    statuses_for_role,
)


class TestCanRoleChangeStatus:
    """Decision table for role, current status and requested status."""

    @pytest.mark.parametrize(
        "role,current,target,expected",
        [
            ("ADMINISTRADOR", "COMPLETADO", "PENDIENTE", True),
            ("ADMINISTRADOR", "PENDIENTE", "CANCELADO", True),
            ("ASESOR", "PENDIENTE", "APROBACION_INICIAL", True),
            ("ASESOR", "APROBACION_INICIAL", "PENDIENTE_PRODUCCION", True),
            ("ASESOR", "PENDIENTE", "CANCELADO", False),
            ("ASESOR", "PENDIENTE_PRODUCCION", "EN_MONTAJE", False),
            ("OPERARIO_MONTAJE", "PENDIENTE_PRODUCCION", "EN_MONTAJE", True),
            ("OPERARIO_MONTAJE", "PENDIENTE", "EN_MONTAJE", False),
            ("OPERARIO_FLOTER", "PENDIENTE_PRODUCCION", "EN_IMPRESION", True),
            ("EMPAQUE", "EN_BODEGA", "EMPAQUE", True),
            ("EMPAQUE", "ENVIADO", "COMPLETADO", True),
            ("EMPAQUE", "CONFECCION", "EMPAQUE", False),
            ("LIDER_OPERACIONAL", "EN_MONTAJE", "PENDIENTE_CONFECCION", True),
            ("LIDER_OPERACIONAL", "PENDIENTE", "CANCELADO", False),
            ("LIDER_OPERACIONAL", "PENDIENTE", "EN_MONTAJE", False),
        ],
    )
    def test_decision_table(self, role, current, target, expected):
        assert can_role_change_status(role, current, target) is expected

    def test_role_and_statuses_are_normalized(self):
        assert can_role_change_status(" asesor ", "pendiente", "aprobacion_inicial")

    def test_unchanged_status_allowed_when_role_may_set_it(self):
        assert can_role_change_status("ASESOR", "PENDIENTE", "PENDIENTE") is True

    @pytest.mark.parametrize(
        "role,current,target",
        [
            (None, "PENDIENTE", "APROBACION_INICIAL"),
            ("", "PENDIENTE", "APROBACION_INICIAL"),
            ("ASESOR", "PENDIENTE", "NO_EXISTE"),
            ("ASESOR", "NO_EXISTE", "PENDIENTE"),
            ("ASESOR", None, "PENDIENTE"),
        ],
    )
    def test_missing_or_unknown_values_are_rejected(self, role, current, target):
        assert can_role_change_status(role, current, target) is False

    def test_terminal_states_have_no_exits_for_non_admins(self):
        for role in ("EMPAQUE", "LIDER_OPERACIONAL", "ASESOR"):
            assert not can_role_change_status(role, "COMPLETADO", "ENVIADO")


class TestStatusesForRole:
    def test_admin_gets_every_status(self):
        assert statuses_for_role("ADMINISTRADOR") == frozenset(OrderItemStatus)

    def test_operational_leader_excludes_cancel(self):
        statuses = statuses_for_role("LIDER_OPERACIONAL")

        assert OrderItemStatus.CANCELADO not in statuses
        assert OrderItemStatus.EN_MONTAJE in statuses

    def test_unknown_role_gets_nothing(self):
        assert statuses_for_role("VISITANTE") == frozenset()
        assert statuses_for_role(None) == frozenset()


class TestAllowedNextStatuses:
    def test_operario_montaje_from_production_queue(self):
        allowed = allowed_next_statuses("OPERARIO_MONTAJE", "PENDIENTE_PRODUCCION")

        assert allowed == [OrderItemStatus.EN_MONTAJE]

    def test_current_status_is_excluded(self):
        allowed = allowed_next_statuses("ASESOR", "PENDIENTE")

        assert OrderItemStatus.PENDIENTE not in allowed
        assert OrderItemStatus.APROBACION_INICIAL in allowed

    def test_policy_wrapper_delegates(self):
        policy = RoleStatusPolicy()

        assert policy.can_change("EMPAQUE", "EMPAQUE", "ENVIADO") is True
        assert policy.allowed_next("EMPAQUE", "EMPAQUE") == [OrderItemStatus.ENVIADO]


@pytest.mark.parametrize(
    "role,expected",
    [
        ("OPERARIO_MONTAJE", True),
        ("operario_bodega", True),
        ("EMPAQUE", True),
        ("ASESOR", False),
        (None, False),
    ],
)
def test_is_operario_role(role, expected):
    assert is_operario_role(role) is expected
