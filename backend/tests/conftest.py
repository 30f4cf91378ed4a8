"""
Pytest configuration and shared test fixtures.

Every database test runs against a fresh in-memory SQLite database (through
aiosqlite) built from the model metadata, with SAVEPOINT support enabled so
the sequenced-code retry loop and the additions table check behave as on
PostgreSQL. API tests drive the FastAPI app through httpx with the database
session and notification dependencies overridden.
"""

import os

os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("APP_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("APP_LOG_LEVEL", "WARNING")

import uuid
from decimal import Decimal
from types import SimpleNamespace
from typing import AsyncGenerator, Callable

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from garment_orders.core.security import create_access_token
from garment_orders.database.connection import enable_sqlite_savepoints
from garment_orders.database.models import (
    Addition,
    Base,
    InventoryItem,
    Permission,
    Product,
    Quotation,
    QuotationItem,
    QuotationItemAddition,
    Role,
    RolePermission,
)
from garment_orders.services.access.permissions import Actor
from garment_orders.services.notifications.service import NotificationService

ROLE_GRANTS = {
    "ASESOR": (
        "CREAR_PEDIDO",
        "VER_PEDIDO",
        "EDITAR_PEDIDO",
        "CREAR_DISEÑO",
        "VER_DISEÑO",
        "CAMBIAR_ESTADO_DISEÑO",
        "EDITAR_COTIZACION",
        "VER_HISTORIAL_ESTADO",
        "CREAR_CLIENTE",
        "EDITAR_CLIENTE",
        "VER_CLIENTE",
    ),
    "OPERARIO_MONTAJE": ("VER_DISEÑO", "CAMBIAR_ESTADO_DISEÑO"),
    "LIDER_OPERACIONAL": (
        "VER_PEDIDO",
        "VER_DISEÑO",
        "CAMBIAR_ESTADO_DISEÑO",
        "VER_HISTORIAL_ESTADO",
    ),
    "CONTABILIDAD": ("VER_PEDIDO",),
}


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    In-memory SQLite engine with the full schema.

    StaticPool keeps the single in-memory connection alive for every
    session opened during the test.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def legacy_schema(engine: AsyncEngine) -> None:
    """Database that never ran the order_item_additions migration."""
    async with engine.begin() as conn:
        await conn.execute(text("DROP TABLE order_item_additions"))


@pytest.fixture
def notification_service(
    session_factory: async_sessionmaker[AsyncSession],
) -> NotificationService:
    return NotificationService(session_factory=session_factory, enabled=True)


# ============================================================================
# Actors and access control
# ============================================================================


@pytest.fixture
def admin_actor() -> Actor:
    return Actor(user_id=uuid.uuid4(), role="ADMINISTRADOR", employee_id=uuid.uuid4())


@pytest.fixture
def advisor_actor() -> Actor:
    return Actor(user_id=uuid.uuid4(), role="ASESOR", employee_id=uuid.uuid4())


@pytest.fixture
def other_advisor_actor() -> Actor:
    return Actor(user_id=uuid.uuid4(), role="ASESOR", employee_id=uuid.uuid4())


@pytest.fixture
def operario_actor() -> Actor:
    return Actor(user_id=uuid.uuid4(), role="OPERARIO_MONTAJE", employee_id=uuid.uuid4())


@pytest.fixture
async def grants(session: AsyncSession) -> dict[str, tuple[str, ...]]:
    """Roles and permission grants used across the suite."""
    permissions: dict[str, Permission] = {}
    for names in ROLE_GRANTS.values():
        for name in names:
            if name not in permissions:
                permissions[name] = Permission(id=uuid.uuid4(), name=name)
    session.add_all(permissions.values())

    for role_name in (*ROLE_GRANTS, "ADMINISTRADOR"):
        role = Role(id=uuid.uuid4(), name=role_name)
        session.add(role)
        for name in ROLE_GRANTS.get(role_name, ()):
            session.add(
                RolePermission(role_id=role.id, permission_id=permissions[name].id)
            )
        await session.flush()
    await session.commit()
    return ROLE_GRANTS


@pytest.fixture
def auth_headers() -> Callable[[Actor], dict[str, str]]:
    def make(actor: Actor) -> dict[str, str]:
        token = create_access_token(actor.user_id, actor.role, actor.employee_id)
        return {"Authorization": f"Bearer {token}"}

    return make


# ============================================================================
# Sample data
# ============================================================================


@pytest.fixture
async def catalog(session: AsyncSession) -> SimpleNamespace:
    """One product, one inventory item and one addition."""
    product = Product(id=uuid.uuid4(), name="Camiseta deportiva")
    fabric = InventoryItem(
        id=uuid.uuid4(), name="Tela dry-fit", unit="m", price=Decimal("12000")
    )
    embroidery = Addition(id=uuid.uuid4(), name="Bordado", price=Decimal("5000"))
    session.add_all([product, fabric, embroidery])
    await session.commit()
    return SimpleNamespace(product=product, fabric=fabric, embroidery=embroidery)


@pytest.fixture
async def quotation(session: AsyncSession, catalog: SimpleNamespace) -> SimpleNamespace:
    """
    Quotation COT10001: ten shirts at 25000 with a 10% line discount plus
    ten embroideries at 5000, shipping 20000 enabled.
    """
    quote = Quotation(
        id=uuid.uuid4(),
        quote_code="COT10001",
        currency="COP",
        document_type="P",
        shipping_enabled=True,
        shipping_fee=Decimal("20000"),
        total_products=Decimal("225000"),
        subtotal=Decimal("275000"),
        total=Decimal("295000"),
    )
    session.add(quote)
    await session.flush()

    line = QuotationItem(
        id=uuid.uuid4(),
        quotation_id=quote.id,
        product_id=catalog.product.id,
        quantity=Decimal("10"),
        unit_price=Decimal("25000"),
        discount=Decimal("10"),
    )
    session.add(line)
    await session.flush()

    session.add(
        QuotationItemAddition(
            id=uuid.uuid4(),
            quotation_item_id=line.id,
            addition_id=catalog.embroidery.id,
            quantity=Decimal("10"),
            unit_price=Decimal("5000"),
        )
    )
    await session.commit()
    return SimpleNamespace(quotation=quote, item=line, catalog=catalog)


# ============================================================================
# HTTP client
# ============================================================================


@pytest.fixture
async def api_client(
    session: AsyncSession, notification_service: NotificationService
) -> AsyncGenerator[AsyncClient, None]:
    """
    Async client bound to the app with the test session injected.

    Yields:
        AsyncClient: Client for ``http://test``
    """
    from garment_orders.api.deps import get_notification_service
    from garment_orders.database.connection import get_db
    from garment_orders.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_service] = lambda: notification_service
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client
    app.dependency_overrides.clear()
