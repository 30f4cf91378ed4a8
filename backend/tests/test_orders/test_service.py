"""
Tests for OrderService.

Exercises order creation (new and derived), updates with total
recalculation, design line transitions through the state machine, advisor
ownership, cascade deletion and post-commit notifications against an
in-memory database.
"""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from garment_orders.database.models.notification import Notification
from garment_orders.database.models.order import (
    Order,
    OrderItem,
    OrderItemPackaging,
    OrderItemStatusHistory,
    OrderStatusHistory,
)
from garment_orders.database.models.quotation import Prefactura
from garment_orders.schemas.orders import (
    MaterialEntry,
    OrderCreate,
    OrderItemCreate,
    OrderItemInput,
    OrderItemUpdate,
    OrderUpdate,
    PackagingEntry,
)
from garment_orders.services.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from garment_orders.services.orders.cloner import OrderCloner
from garment_orders.services.orders.enums import (
    OrderItemStatus,
    OrderKind,
    OrderStatus,
    OrderType,
)
from garment_orders.services.orders.service import OrderService


async def _count(session, model, *conditions) -> int:
    query = select(func.count()).select_from(model)
    for condition in conditions:
        query = query.where(condition)
    return (await session.execute(query)).scalar_one()


def _shirt(**overrides) -> OrderItemInput:
    values = {
        "name": "Camiseta",
        "quantity": 10,
        "unit_price": Decimal("100"),
        "packaging": [PackagingEntry(size="M", quantity=6), PackagingEntry(size="L", quantity=4)],
    }
    values.update(overrides)
    return OrderItemInput(**values)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def service(session, notification_service) -> OrderService:
    return OrderService(session, notification_service)


@pytest.fixture
async def advisor_order(service, advisor_actor) -> Order:
    """VN-000001 created by the advisor with one 10 x 100 design."""
    return await service.create_order(
        advisor_actor, OrderCreate(order_name="Uniformes", items=[_shirt()])
    )


async def _first_item(session, order: Order) -> OrderItem:
    result = await session.execute(select(OrderItem).where(OrderItem.order_id == order.id))
    return result.scalars().first()


# ============================================================================
# Create order
# ============================================================================


class TestCreateOrder:
    async def test_new_order_gets_first_code_and_total(
        self, session, service, advisor_actor
    ):
        # Act
        order = await service.create_order(
            advisor_actor,
            OrderCreate(order_name="Uniformes", shipping_fee=Decimal("20000"), items=[_shirt()]),
        )

        # Assert
        assert order.order_code == "VN-000001"
        assert order.kind is OrderKind.NUEVO
        assert order.status is OrderStatus.PENDIENTE
        assert order.total == Decimal("1000.00")
        assert order.shipping_fee == Decimal("20000")
        assert order.created_by == advisor_actor.employee_id

        item = await _first_item(session, order)
        assert item.total_price == Decimal("1000.00")
        assert item.status is OrderItemStatus.PENDIENTE
        assert await _count(session, OrderItemPackaging) == 2
        assert await _count(session, OrderStatusHistory, OrderStatusHistory.order_id == order.id) == 1
        assert await _count(session, OrderItemStatusHistory) == 1

    async def test_codes_follow_per_type(self, service, admin_actor):
        first = await service.create_order(admin_actor, OrderCreate())
        second = await service.create_order(admin_actor, OrderCreate(type="vn"))
        international = await service.create_order(admin_actor, OrderCreate(type="VI"))

        assert first.order_code == "VN-000001"
        assert second.order_code == "VN-000002"
        assert international.order_code == "VI-0001"
        assert international.type is OrderType.VI

    async def test_discount_is_clamped(self, service, admin_actor):
        order = await service.create_order(
            admin_actor, OrderCreate(discount=Decimal("150"), items=[_shirt()])
        )

        assert order.discount == Decimal("100")
        assert order.total == Decimal("0.00")

    async def test_zero_quantity_rejected_before_write(self, session, service, admin_actor):
        with pytest.raises(ValidationError) as exc_info:
            await service.create_order(admin_actor, OrderCreate(items=[_shirt(quantity=0)]))

        assert exc_info.value.context["field"] == "quantity"
        assert await _count(session, Order) == 0

    async def test_unknown_status_rejected(self, service, admin_actor):
        with pytest.raises(ValidationError):
            await service.create_order(admin_actor, OrderCreate(status="VOLANDO"))

    async def test_derived_order_requires_source_code(self, service, admin_actor):
        with pytest.raises(ValidationError) as exc_info:
            await service.create_order(admin_actor, OrderCreate(kind="COMPLETACION"))

        assert exc_info.value.context["field"] == "source_order_code"

    async def test_unknown_source_order(self, session, service, admin_actor):
        with pytest.raises(NotFoundError):
            await service.create_order(
                admin_actor,
                OrderCreate(kind="REFERENTE", source_order_code="VN-999999"),
            )

        assert await _count(session, Order) == 0

    async def test_unknown_materials_are_dropped(self, session, service, admin_actor, catalog):
        order = await service.create_order(
            admin_actor,
            OrderCreate(
                items=[
                    _shirt(
                        materials=[
                            MaterialEntry(inventory_item_id=catalog.fabric.id, quantity=Decimal("3")),
                            MaterialEntry(inventory_item_id=uuid.uuid4()),
                        ]
                    )
                ]
            ),
        )

        detail = await service.get_order(order.id)
        materials = detail.children[detail.items[0].id].materials
        assert [m.inventory_item_id for m in materials] == [catalog.fabric.id]


# ============================================================================
# Derived orders
# ============================================================================


class TestDerivedOrders:
    async def test_referente_clones_items_and_children(
        self, session, service, admin_actor, advisor_order
    ):
        # Arrange: move the source design forward so the clone keeps its status
        source_item = await _first_item(session, advisor_order)
        await service.update_order_item(
            admin_actor, source_item.id, OrderItemUpdate(status="APROBACION_INICIAL")
        )

        # Act
        derived = await service.create_order(
            admin_actor,
            OrderCreate(kind="REFERENTE", source_order_code=" vn-000001 "),
        )

        # Assert
        assert derived.order_code == "VN-000002"
        assert derived.kind is OrderKind.REFERENTE
        assert derived.source_order_id == advisor_order.id
        assert derived.total == Decimal("1000.00")

        detail = await service.get_order(derived.id)
        assert len(detail.items) == 1
        clone = detail.items[0]
        assert clone.id != source_item.id
        assert clone.status is OrderItemStatus.APROBACION_INICIAL
        assert clone.name == "Camiseta"
        assert len(detail.children[clone.id].packaging) == 2

        clone_history = await _count(
            session, OrderItemStatusHistory, OrderItemStatusHistory.order_item_id == clone.id
        )
        assert clone_history == 1
        assert await _count(session, OrderItem, OrderItem.order_id == advisor_order.id) == 1

    async def test_completion_order_accepts_quantity_only(
        self, session, service, admin_actor, advisor_order
    ):
        derived = await service.create_order(
            admin_actor,
            OrderCreate(kind="COMPLETACION", source_order_code="VN-000001"),
        )
        clone = await _first_item(session, derived)

        updated = await service.update_order_item(
            admin_actor,
            clone.id,
            OrderItemUpdate(quantity=12, name="Ignorado"),
        )

        assert updated.quantity == 12
        assert updated.name == "Camiseta"
        assert updated.total_price == Decimal("1200.00")

    async def test_completion_order_rejects_status_change(
        self, session, service, admin_actor, advisor_order
    ):
        derived = await service.create_order(
            admin_actor,
            OrderCreate(kind="COMPLETACION", source_order_code="VN-000001"),
        )
        clone = await _first_item(session, derived)

        with pytest.raises(ValidationError) as exc_info:
            await service.update_order_item(
                admin_actor, clone.id, OrderItemUpdate(status="APROBACION_INICIAL")
            )

        assert exc_info.value.context["order_kind"] == "COMPLETACION"

    async def test_completion_order_rejects_new_designs(
        self, session, service, admin_actor, advisor_order
    ):
        derived = await service.create_order(
            admin_actor,
            OrderCreate(kind="COMPLETACION", source_order_code="VN-000001"),
        )

        with pytest.raises(ValidationError):
            await service.create_order_item(
                admin_actor,
                OrderItemCreate(order_id=derived.id, name="Extra", quantity=1),
            )

    async def test_failed_clone_discards_derived_order(
        self, session, service, admin_actor, advisor_order, monkeypatch
    ):
        def broken_copy(self, rows, model, item_id):
            raise RuntimeError("disk full")

        monkeypatch.setattr(OrderCloner, "_copy", broken_copy)

        with pytest.raises(RuntimeError):
            await service.create_order(
                admin_actor,
                OrderCreate(kind="REFERENTE", source_order_code="VN-000001"),
            )

        assert await _count(session, Order) == 1
        assert await _count(session, OrderItem) == 1
        assert await _count(session, Order, Order.order_code == "VN-000002") == 0
        assert await _count(session, OrderItemPackaging) == 2


# ============================================================================
# Update order
# ============================================================================


class TestUpdateOrder:
    async def test_order_code_is_immutable(self, service, admin_actor, advisor_order):
        with pytest.raises(ValidationError) as exc_info:
            await service.update_order(
                admin_actor, advisor_order.id, OrderUpdate(order_code="VN-000099")
            )

        assert exc_info.value.context["field"] == "order_code"

    async def test_type_change_keeps_code(self, service, admin_actor, advisor_order):
        order = await service.update_order(
            admin_actor, advisor_order.id, OrderUpdate(type="VI")
        )

        assert order.type is OrderType.VI
        assert order.order_code == "VN-000001"

    async def test_discount_change_recalculates(self, service, admin_actor, advisor_order):
        order = await service.update_order(
            admin_actor, advisor_order.id, OrderUpdate(discount=Decimal("10"))
        )

        assert order.total == Decimal("900.00")

    async def test_items_are_replaced(self, session, service, admin_actor, advisor_order):
        order = await service.update_order(
            admin_actor,
            advisor_order.id,
            OrderUpdate(items=[_shirt(quantity=2), _shirt(name="Short", unit_price=Decimal("50"))]),
        )

        assert order.total == Decimal("700.00")
        assert await _count(session, OrderItem, OrderItem.order_id == order.id) == 2
        assert await _count(session, OrderItemPackaging) == 4

    async def test_status_change_is_recorded_once(
        self, session, service, admin_actor, advisor_order
    ):
        await service.update_order(
            admin_actor, advisor_order.id, OrderUpdate(status="PRODUCCION")
        )
        await service.update_order(
            admin_actor, advisor_order.id, OrderUpdate(status="PRODUCCION")
        )

        history = await _count(
            session, OrderStatusHistory, OrderStatusHistory.order_id == advisor_order.id
        )
        assert history == 2

    async def test_unknown_order(self, service, admin_actor):
        with pytest.raises(NotFoundError):
            await service.update_order(admin_actor, uuid.uuid4(), OrderUpdate(order_name="x"))

    async def test_switch_to_derived_kind_resolves_source(
        self, service, admin_actor, advisor_order
    ):
        order = await service.create_order(admin_actor, OrderCreate(order_name="Segunda"))

        updated = await service.update_order(
            admin_actor,
            order.id,
            OrderUpdate(kind="COMPLETACION", source_order_code="VN-000001"),
        )

        assert updated.kind is OrderKind.COMPLETACION
        assert updated.source_order_id == advisor_order.id
        detail = await service.get_order(order.id)
        assert detail.source_order_code == "VN-000001"

    async def test_switch_to_derived_kind_requires_source(
        self, session, service, admin_actor, advisor_order
    ):
        with pytest.raises(ValidationError) as exc_info:
            await service.update_order(
                admin_actor, advisor_order.id, OrderUpdate(kind="REFERENTE")
            )

        assert exc_info.value.context["field"] == "source_order_code"
        await session.refresh(advisor_order)
        assert advisor_order.kind is OrderKind.NUEVO
        assert advisor_order.source_order_id is None

    async def test_switch_to_derived_kind_with_unknown_source(
        self, service, admin_actor, advisor_order
    ):
        with pytest.raises(NotFoundError):
            await service.update_order(
                admin_actor,
                advisor_order.id,
                OrderUpdate(kind="COMPLETACION", source_order_code="VN-000404"),
            )

    async def test_order_cannot_be_its_own_source(self, service, admin_actor, advisor_order):
        with pytest.raises(ValidationError):
            await service.update_order(
                admin_actor,
                advisor_order.id,
                OrderUpdate(kind="REFERENTE", source_order_code="VN-000001"),
            )

    async def test_switch_between_derived_kinds_keeps_source(
        self, service, admin_actor, advisor_order
    ):
        derived = await service.create_order(
            admin_actor, OrderCreate(kind="COMPLETACION", source_order_code="VN-000001")
        )

        updated = await service.update_order(
            admin_actor, derived.id, OrderUpdate(kind="REFERENTE")
        )

        assert updated.kind is OrderKind.REFERENTE
        assert updated.source_order_id == advisor_order.id

    async def test_switch_to_new_kind_clears_source(
        self, service, admin_actor, advisor_order
    ):
        derived = await service.create_order(
            admin_actor, OrderCreate(kind="REFERENTE", source_order_code="VN-000001")
        )

        updated = await service.update_order(admin_actor, derived.id, OrderUpdate(kind="NUEVO"))

        assert updated.kind is OrderKind.NUEVO
        assert updated.source_order_id is None
        assert (await service.get_order(derived.id)).source_order_code is None


# ============================================================================
# Design lines
# ============================================================================


class TestOrderItems:
    async def test_quantity_change_follows_derived_total(
        self, session, service, advisor_actor, advisor_order
    ):
        item = await _first_item(session, advisor_order)

        updated = await service.update_order_item(
            advisor_actor, item.id, OrderItemUpdate(quantity=15)
        )

        assert updated.total_price == Decimal("1500.00")
        order = await session.get(Order, advisor_order.id)
        assert order.total == Decimal("1500.00")

    async def test_manual_total_survives_quantity_change(
        self, session, service, advisor_actor, advisor_order
    ):
        item = await _first_item(session, advisor_order)
        await service.update_order_item(
            advisor_actor, item.id, OrderItemUpdate(total_price=Decimal("900"))
        )

        updated = await service.update_order_item(
            advisor_actor, item.id, OrderItemUpdate(quantity=20)
        )

        assert updated.quantity == 20
        assert updated.total_price == Decimal("900")

    async def test_advisor_moves_design_forward(
        self, session, service, advisor_actor, advisor_order
    ):
        item = await _first_item(session, advisor_order)

        updated = await service.update_order_item(
            advisor_actor, item.id, OrderItemUpdate(status="aprobacion_inicial")
        )

        assert updated.status is OrderItemStatus.APROBACION_INICIAL
        history = await _count(
            session, OrderItemStatusHistory, OrderItemStatusHistory.order_item_id == item.id
        )
        assert history == 2

    async def test_rejected_transition_rolls_back(
        self, session, service, operario_actor, advisor_order
    ):
        item = await _first_item(session, advisor_order)

        with pytest.raises(ForbiddenError):
            await service.update_order_item(
                operario_actor, item.id, OrderItemUpdate(status="EN_MONTAJE", quantity=99)
            )

        await session.refresh(item)
        assert item.status is OrderItemStatus.PENDIENTE
        assert item.quantity == 10

    async def test_advisor_cannot_touch_other_advisor_order(
        self, service, other_advisor_actor, advisor_order
    ):
        with pytest.raises(ForbiddenError):
            await service.create_order_item(
                other_advisor_actor,
                OrderItemCreate(order_id=advisor_order.id, name="Gorra", quantity=1),
            )

    async def test_create_item_recalculates(self, session, service, advisor_actor, advisor_order):
        item = await service.create_order_item(
            advisor_actor,
            OrderItemCreate(
                order_id=advisor_order.id,
                name="Gorra",
                quantity=5,
                unit_price=Decimal("20"),
            ),
        )

        assert item.total_price == Decimal("100.00")
        order = await session.get(Order, advisor_order.id)
        assert order.total == Decimal("1100.00")

    async def test_delete_item_recalculates(self, session, service, advisor_actor, advisor_order):
        item = await _first_item(session, advisor_order)

        order = await service.delete_order_item(advisor_actor, item.id)

        assert order.total == Decimal("0.00")
        assert await _count(session, OrderItemPackaging) == 0
        assert await _count(session, OrderItemStatusHistory) == 0

    async def test_unknown_item(self, service, admin_actor):
        with pytest.raises(NotFoundError):
            await service.update_order_item(admin_actor, uuid.uuid4(), OrderItemUpdate(quantity=1))


# ============================================================================
# Delete order
# ============================================================================


class TestDeleteOrder:
    async def test_cascade_removes_everything_owned(
        self, session, service, admin_actor, advisor_order
    ):
        await service.delete_order(admin_actor, advisor_order.id)

        assert await _count(session, Order) == 0
        assert await _count(session, OrderItem) == 0
        assert await _count(session, OrderItemPackaging) == 0
        assert await _count(session, OrderStatusHistory) == 0
        assert await _count(session, OrderItemStatusHistory) == 0

    async def test_source_deletion_leaves_derived_orders(
        self, session, service, admin_actor, advisor_order
    ):
        derived = await service.create_order(
            admin_actor, OrderCreate(kind="REFERENTE", source_order_code="VN-000001")
        )

        await service.delete_order(admin_actor, advisor_order.id)

        remaining = await session.get(Order, derived.id)
        assert remaining is not None
        assert await _count(session, OrderItem, OrderItem.order_id == derived.id) == 1

    async def test_linked_prefactura_blocks_delete(
        self, session, service, admin_actor, advisor_order, quotation
    ):
        session.add(
            Prefactura(
                prefactura_code="PRE10001",
                quotation_id=quotation.quotation.id,
                order_id=advisor_order.id,
                status="PENDIENTE_CONTABILIDAD",
            )
        )
        await session.commit()

        with pytest.raises(ConflictError):
            await service.delete_order(admin_actor, advisor_order.id)

        assert await _count(session, Order) == 1


# ============================================================================
# Queries and notifications
# ============================================================================


class TestQueries:
    async def test_list_orders_filters(self, service, admin_actor):
        await service.create_order(admin_actor, OrderCreate(order_name="Colegio San José"))
        await service.create_order(admin_actor, OrderCreate(order_name="Club deportivo"))

        orders, total = await service.list_orders(search="colegio")

        assert total == 1
        assert orders[0].order_name == "Colegio San José"

    async def test_list_orders_rejects_unknown_kind(self, service):
        with pytest.raises(ValidationError):
            await service.list_orders(kind="OTRO")


class TestNotifications:
    async def test_creation_notifies_every_role_with_view_permission(
        self, session, service, admin_actor, grants
    ):
        await service.create_order(admin_actor, OrderCreate())

        roles = set((await session.execute(select(Notification.role))).scalars())
        assert roles == {"ASESOR", "COMPRAS", "CONTABILIDAD", "LIDER_OPERACIONAL"}

    async def test_failed_operation_sends_nothing(self, session, service, admin_actor, grants):
        with pytest.raises(ValidationError):
            await service.create_order(admin_actor, OrderCreate(items=[_shirt(quantity=0)]))

        assert await _count(session, Notification) == 0
