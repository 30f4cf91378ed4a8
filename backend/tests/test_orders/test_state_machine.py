"""
Test suite for OrderItemStateMachine.

Tests cover status parsing, the completion-order guard, policy rejection,
no-op transitions and ledger recording, plus order-level status changes.
"""

from unittest.mock import Mock
from uuid import uuid4

import pytest

from garment_orders.database.models.order import Order, OrderItem
from garment_orders.services.errors import ForbiddenError, ValidationError
from garment_orders.services.orders.enums import (
    OrderItemStatus,
    OrderKind,
    OrderStatus,
    OrderType,
)
from garment_orders.services.orders.role_status import RoleStatusPolicy
from garment_orders.services.orders.state_machine import (
    OrderItemStateMachine,
    change_order_status,
    parse_item_status,
    parse_order_status,
)
from garment_orders.services.orders.status_ledger import StatusLedger


# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
def ledger() -> Mock:
    """Ledger double recording calls without a session."""
    return Mock(spec=StatusLedger)


@pytest.fixture
def state_machine(ledger: Mock) -> OrderItemStateMachine:
    return OrderItemStateMachine(ledger=ledger)


@pytest.fixture
def item() -> OrderItem:
    return OrderItem(
        id=uuid4(),
        order_id=uuid4(),
        quantity=10,
        status=OrderItemStatus.PENDIENTE_PRODUCCION,
    )


# ============================================================================
# Status parsing
# ============================================================================


class TestParsing:
    def test_parse_item_status_is_lenient_on_case(self):
        assert parse_item_status(" en_montaje ") is OrderItemStatus.EN_MONTAJE

    def test_parse_item_status_rejects_unknown(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_item_status("VOLANDO")

        assert exc_info.value.context["field"] == "status"
        assert "EN_MONTAJE" in exc_info.value.context["valid_values"]

    def test_parse_order_status_rejects_unknown(self):
        with pytest.raises(ValidationError):
            parse_order_status("")


# ============================================================================
# Item transitions
# ============================================================================


class TestItemTransitions:
    def test_allowed_transition_updates_and_records(
        self, state_machine: OrderItemStateMachine, ledger: Mock, item: OrderItem
    ):
        actor_id = uuid4()

        outcome = state_machine.transition(
            item, OrderKind.NUEVO, "EN_MONTAJE", "OPERARIO_MONTAJE", actor_id
        )

        assert outcome.changed is True
        assert outcome.previous is OrderItemStatus.PENDIENTE_PRODUCCION
        assert item.status is OrderItemStatus.EN_MONTAJE
        ledger.record_item_status.assert_called_once_with(
            item.id, OrderItemStatus.EN_MONTAJE, actor_id
        )

    def test_same_status_is_a_noop(
        self, state_machine: OrderItemStateMachine, ledger: Mock, item: OrderItem
    ):
        outcome = state_machine.transition(
            item, OrderKind.NUEVO, "PENDIENTE_PRODUCCION", "ASESOR"
        )

        assert outcome.changed is False
        ledger.record_item_status.assert_not_called()

    def test_policy_rejection_raises_forbidden(
        self, state_machine: OrderItemStateMachine, ledger: Mock, item: OrderItem
    ):
        with pytest.raises(ForbiddenError) as exc_info:
            state_machine.transition(item, OrderKind.NUEVO, "EN_IMPRESION", "OPERARIO_MONTAJE")

        assert exc_info.value.context["from_status"] == "PENDIENTE_PRODUCCION"
        assert exc_info.value.context["to_status"] == "EN_IMPRESION"
        assert exc_info.value.context["allowed"] == ["EN_MONTAJE"]
        assert item.status is OrderItemStatus.PENDIENTE_PRODUCCION
        ledger.record_item_status.assert_not_called()

    def test_completion_orders_reject_any_status_change(
        self, state_machine: OrderItemStateMachine, ledger: Mock, item: OrderItem
    ):
        with pytest.raises(ValidationError) as exc_info:
            state_machine.transition(
                item, OrderKind.COMPLETACION, "EN_MONTAJE", "ADMINISTRADOR"
            )

        assert exc_info.value.context["order_kind"] == "COMPLETACION"
        ledger.record_item_status.assert_not_called()

    def test_unknown_status_checked_before_policy(self, ledger: Mock, item: OrderItem):
        policy = Mock(spec=RoleStatusPolicy)
        machine = OrderItemStateMachine(ledger=ledger, policy=policy)

        with pytest.raises(ValidationError):
            machine.transition(item, OrderKind.NUEVO, "NOPE", "ADMINISTRADOR")

        policy.can_change.assert_not_called()

    def test_injected_policy_decides(self, ledger: Mock, item: OrderItem):
        policy = Mock(spec=RoleStatusPolicy)
        policy.can_change.return_value = False
        policy.allowed_next.return_value = []
        machine = OrderItemStateMachine(ledger=ledger, policy=policy)

        with pytest.raises(ForbiddenError):
            machine.transition(item, OrderKind.REFERENTE, "EN_MONTAJE", "ADMINISTRADOR")

        policy.can_change.assert_called_once_with(
            "ADMINISTRADOR", "PENDIENTE_PRODUCCION", "EN_MONTAJE"
        )


# ============================================================================
# Order status
# ============================================================================


class TestChangeOrderStatus:
    def test_records_changed_status(self, ledger: Mock):
        order = Order(
            id=uuid4(),
            order_code="VN-000001",
            type=OrderType.VN,
            status=OrderStatus.PENDIENTE,
        )

        outcome = change_order_status(ledger, order, "produccion")

        assert outcome.changed is True
        assert order.status is OrderStatus.PRODUCCION
        ledger.record_order_status.assert_called_once_with(
            order.id, OrderStatus.PRODUCCION, None
        )

    def test_same_status_not_recorded(self, ledger: Mock):
        order = Order(
            id=uuid4(),
            order_code="VN-000001",
            type=OrderType.VN,
            status=OrderStatus.PRODUCCION,
        )

        outcome = change_order_status(ledger, order, OrderStatus.PRODUCCION)

        assert outcome.changed is False
        ledger.record_order_status.assert_not_called()
