"""
Alembic migration: Initial order pipeline schema.

Creates catalog, access, client, quotation, prefactura, order, design line
and status ledger tables. ``order_item_additions`` is introduced separately
by revision 002; databases still at this revision convert quotation
additions into synthetic design lines.

Revision ID: 001
Revises:
Create Date: 2024-03-04 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUM_TYPES = {
    'order_type': ('VN', 'VI'),
    'order_kind': ('NUEVO', 'COMPLETACION', 'REFERENTE'),
    'order_status': (
        'PENDIENTE',
        'PRODUCCION',
        'ATRASADO',
        'FINALIZADO',
        'ENTREGADO',
        'CANCELADO',
        'REVISION',
    ),
    'order_item_status': (
        'PENDIENTE',
        'REVISION_ADMIN',
        'APROBACION_INICIAL',
        'PENDIENTE_PRODUCCION',
        'EN_MONTAJE',
        'EN_IMPRESION',
        'SUBLIMACION',
        'CORTE_MANUAL',
        'CORTE_LASER',
        'PENDIENTE_CONFECCION',
        'CONFECCION',
        'EN_BODEGA',
        'EMPAQUE',
        'ENVIADO',
        'EN_REVISION_CAMBIO',
        'APROBADO_CAMBIO',
        'RECHAZADO_CAMBIO',
        'COMPLETADO',
        'CANCELADO',
    ),
    'client_type': ('NACIONAL', 'EXTRANJERO', 'EMPLEADO'),
    'identification_type': ('CC', 'NIT', 'CE', 'PAS', 'EMPRESA_EXTERIOR'),
    'tax_regime': ('REGIMEN_COMUN', 'REGIMEN_SIMPLIFICADO', 'NO_RESPONSABLE'),
    'third_party_type': (
        'EMPLEADO',
        'CLIENTE',
        'CONFECCIONISTA',
        'PROVEEDOR',
        'EMPAQUE',
    ),
    'legal_status_status': ('VIGENTE', 'EN_REVISION', 'RESTRICCION', 'BLOQUEADO'),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUM_TYPES[name], name=name, create_type=False)


def _id() -> sa.Column:
    return sa.Column(
        'id',
        postgresql.UUID(as_uuid=True),
        nullable=False,
        server_default=sa.text('gen_random_uuid()'),
    )


def _created_at() -> sa.Column:
    return sa.Column(
        'created_at',
        sa.TIMESTAMP(timezone=True),
        nullable=False,
        server_default=sa.text('CURRENT_TIMESTAMP'),
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        'updated_at',
        sa.TIMESTAMP(timezone=True),
        nullable=False,
        server_default=sa.text('CURRENT_TIMESTAMP'),
    )


def _money(name: str, nullable: bool = False, precision: int = 14) -> sa.Column:
    return sa.Column(
        name,
        sa.Numeric(precision, 2),
        nullable=nullable,
        server_default=None if nullable else sa.text('0'),
    )


def _uuid_ref(name: str, target: str, nullable: bool = True) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target),
        nullable=nullable,
    )


def _flag(name: str, default: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.Boolean(),
        nullable=False,
        server_default=sa.text('true' if default else 'false'),
    )


def upgrade() -> None:
    """
    Upgrade database schema to the initial order pipeline tables.

    Enum types are created explicitly first because several tables share
    them (order_status, order_item_status).
    """
    for name, values in ENUM_TYPES.items():
        quoted = ', '.join(f"'{value}'" for value in values)
        op.execute(f"CREATE TYPE {name} AS ENUM ({quoted})")

    # Catalog
    op.create_table(
        'products',
        _id(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        _flag('is_active', default=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
    )
    op.create_table(
        'inventory_items',
        _id(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('unit', sa.String(length=50), nullable=True),
        _money('price'),
        _flag('is_active', default=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id', name='pk_inventory_items'),
    )
    op.create_table(
        'additions',
        _id(),
        sa.Column('name', sa.String(length=255), nullable=False),
        _money('price'),
        _flag('is_active', default=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id', name='pk_additions'),
    )

    # Access control
    op.create_table(
        'roles',
        _id(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_roles'),
        sa.UniqueConstraint('name', name='uq_roles_name'),
    )
    op.create_table(
        'permissions',
        _id(),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_permissions'),
        sa.UniqueConstraint('name', name='uq_permissions_name'),
    )
    op.create_table(
        'role_permissions',
        _uuid_ref('role_id', 'roles.id', nullable=False),
        _uuid_ref('permission_id', 'permissions.id', nullable=False),
        sa.PrimaryKeyConstraint('role_id', 'permission_id', name='pk_role_permissions'),
    )
    op.create_table(
        'notifications',
        _id(),
        sa.Column('title', sa.Text(), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('role', sa.String(length=150), nullable=True),
        sa.Column('href', sa.Text(), nullable=True),
        _flag('is_read'),
        _created_at(),
        sa.PrimaryKeyConstraint('id', name='pk_notifications'),
    )
    op.create_index(
        'ix_notifications_role_is_read', 'notifications', ['role', 'is_read']
    )

    # Third parties
    op.create_table(
        'clients',
        _id(),
        sa.Column('client_code', sa.String(length=20), nullable=False),
        sa.Column('client_type', _enum('client_type'), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('identification_type', _enum('identification_type'), nullable=False),
        sa.Column('identification', sa.String(length=20), nullable=False),
        sa.Column('dv', sa.String(length=1), nullable=True),
        sa.Column('tax_regime', _enum('tax_regime'), nullable=False),
        sa.Column('contact_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('country', sa.String(length=100), nullable=True),
        _flag('is_active', default=True),
        sa.Column('identity_document_url', sa.Text(), nullable=True),
        sa.Column('rut_document_url', sa.Text(), nullable=True),
        sa.Column('commerce_chamber_document_url', sa.Text(), nullable=True),
        sa.Column('passport_document_url', sa.Text(), nullable=True),
        sa.Column('tax_certificate_document_url', sa.Text(), nullable=True),
        sa.Column('company_id_document_url', sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id', name='pk_clients'),
        sa.UniqueConstraint('client_code', name='uq_clients_client_code'),
        sa.UniqueConstraint('identification', name='uq_clients_identification'),
    )
    op.create_table(
        'legal_status_records',
        _id(),
        sa.Column('third_party_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('third_party_type', _enum('third_party_type'), nullable=False),
        sa.Column('third_party_name', sa.String(length=255), nullable=False),
        sa.Column(
            'status',
            _enum('legal_status_status'),
            nullable=False,
            server_default=sa.text("'VIGENTE'"),
        ),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.String(length=100), nullable=True),
        sa.Column('last_review_date', sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id', name='pk_legal_status_records'),
    )
    op.create_index(
        'ix_legal_status_records_party',
        'legal_status_records',
        ['third_party_type', 'third_party_id', 'created_at'],
    )

    # Quotations
    op.create_table(
        'quotations',
        _id(),
        sa.Column('quote_code', sa.String(length=20), nullable=False),
        _uuid_ref('client_id', 'clients.id'),
        sa.Column(
            'currency', sa.String(length=5), nullable=False, server_default=sa.text("'COP'")
        ),
        sa.Column(
            'document_type', sa.String(length=2), nullable=False, server_default=sa.text("'P'")
        ),
        _flag('shipping_enabled'),
        _money('shipping_fee'),
        _money('total_products'),
        _money('subtotal'),
        _money('total'),
        _flag('prefactura_approved'),
        _flag('is_active', default=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id', name='pk_quotations'),
        sa.UniqueConstraint('quote_code', name='uq_quotations_quote_code'),
    )
    op.create_table(
        'quotation_items',
        _id(),
        _uuid_ref('quotation_id', 'quotations.id', nullable=False),
        _uuid_ref('product_id', 'products.id'),
        sa.Column('quantity', sa.Numeric(12, 2), nullable=False, server_default=sa.text('1')),
        _money('unit_price'),
        _money('discount', precision=5),
        sa.PrimaryKeyConstraint('id', name='pk_quotation_items'),
    )
    op.create_index('ix_quotation_items_quotation_id', 'quotation_items', ['quotation_id'])
    op.create_table(
        'quotation_item_additions',
        _id(),
        _uuid_ref('quotation_item_id', 'quotation_items.id', nullable=False),
        _uuid_ref('addition_id', 'additions.id'),
        sa.Column('quantity', sa.Numeric(12, 2), nullable=False, server_default=sa.text('1')),
        _money('unit_price'),
        sa.PrimaryKeyConstraint('id', name='pk_quotation_item_additions'),
    )
    op.create_index(
        'ix_quotation_item_additions_quotation_item_id',
        'quotation_item_additions',
        ['quotation_item_id'],
    )

    # Orders
    op.create_table(
        'orders',
        _id(),
        sa.Column('order_code', sa.String(length=20), nullable=False),
        sa.Column('order_name', sa.String(length=255), nullable=True),
        _uuid_ref('client_id', 'clients.id'),
        sa.Column('type', _enum('order_type'), nullable=False),
        sa.Column(
            'kind', _enum('order_kind'), nullable=False, server_default=sa.text("'NUEVO'")
        ),
        sa.Column('source_order_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            'status',
            _enum('order_status'),
            nullable=False,
            server_default=sa.text("'PENDIENTE'"),
        ),
        _money('total'),
        _flag('iva_enabled'),
        _money('discount'),
        sa.Column(
            'currency', sa.String(length=5), nullable=False, server_default=sa.text("'COP'")
        ),
        _money('shipping_fee'),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id', name='pk_orders'),
        sa.UniqueConstraint('order_code', name='uq_orders_order_code'),
        sa.CheckConstraint(
            'discount >= 0 AND discount <= 100', name='ck_orders_discount_range'
        ),
        sa.CheckConstraint(
            'shipping_fee >= 0', name='ck_orders_shipping_fee_non_negative'
        ),
    )
    op.create_index('ix_orders_client_id', 'orders', ['client_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_kind_source', 'orders', ['kind', 'source_order_id'])

    op.create_table(
        'prefacturas',
        _id(),
        sa.Column('prefactura_code', sa.String(length=20), nullable=False),
        _uuid_ref('quotation_id', 'quotations.id', nullable=False),
        _uuid_ref('order_id', 'orders.id'),
        sa.Column('status', sa.String(length=30), nullable=False),
        _money('total_products'),
        _money('subtotal'),
        _money('total'),
        sa.Column('approved_at', sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id', name='pk_prefacturas'),
        sa.UniqueConstraint('prefactura_code', name='uq_prefacturas_prefactura_code'),
        sa.UniqueConstraint('quotation_id', name='uq_prefacturas_quotation_id'),
    )
    op.create_index('ix_prefacturas_order_id', 'prefacturas', ['order_id'])

    op.create_table(
        'order_items',
        _id(),
        _uuid_ref('order_id', 'orders.id', nullable=False),
        _uuid_ref('product_id', 'products.id'),
        _uuid_ref('addition_id', 'additions.id'),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        _money('unit_price', nullable=True, precision=12),
        _money('total_price', nullable=True),
        sa.Column('observations', sa.Text(), nullable=True),
        sa.Column('fabric', sa.String(length=100), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        _flag('screen_print'),
        _flag('embroidery'),
        _flag('buttonhole'),
        _flag('snap'),
        _flag('tag'),
        _flag('flag'),
        sa.Column('gender', sa.String(length=50), nullable=True),
        sa.Column('process', sa.String(length=100), nullable=True),
        sa.Column('neck_type', sa.String(length=100), nullable=True),
        sa.Column('sleeve', sa.String(length=100), nullable=True),
        sa.Column('color', sa.String(length=100), nullable=True),
        _flag('requires_socks'),
        _flag('is_active', default=True),
        sa.Column('manufacturing_id', sa.String(length=100), nullable=True),
        sa.Column(
            'status',
            _enum('order_item_status'),
            nullable=False,
            server_default=sa.text("'PENDIENTE'"),
        ),
        _flag('requires_revision'),
        _flag('has_additions'),
        sa.Column('addition_evidence', sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id', name='pk_order_items'),
        sa.CheckConstraint('quantity > 0', name='ck_order_items_quantity_positive'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_status', 'order_items', ['status'])

    op.create_table(
        'order_item_packaging',
        _id(),
        _uuid_ref('order_item_id', 'order_items.id', nullable=False),
        sa.Column(
            'mode', sa.String(length=20), nullable=False, server_default=sa.text("'AGRUPADO'")
        ),
        sa.Column('size', sa.String(length=50), nullable=False, server_default=sa.text("''")),
        sa.Column('quantity', sa.Integer(), nullable=True),
        sa.Column('person_name', sa.String(length=255), nullable=True),
        sa.Column('person_number', sa.String(length=50), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_order_item_packaging'),
    )
    op.create_index(
        'ix_order_item_packaging_order_item_id', 'order_item_packaging', ['order_item_id']
    )
    op.create_table(
        'order_item_socks',
        _id(),
        _uuid_ref('order_item_id', 'order_items.id', nullable=False),
        sa.Column('size', sa.String(length=50), nullable=False, server_default=sa.text("''")),
        sa.Column('quantity', sa.Integer(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_order_item_socks'),
    )
    op.create_index(
        'ix_order_item_socks_order_item_id', 'order_item_socks', ['order_item_id']
    )
    op.create_table(
        'order_item_materials',
        _id(),
        _uuid_ref('order_item_id', 'order_items.id', nullable=False),
        _uuid_ref('inventory_item_id', 'inventory_items.id', nullable=False),
        _money('quantity', nullable=True, precision=12),
        sa.Column('note', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_order_item_materials'),
    )
    op.create_index(
        'ix_order_item_materials_order_item_id', 'order_item_materials', ['order_item_id']
    )

    # Status ledgers
    op.create_table(
        'order_status_history',
        _id(),
        _uuid_ref('order_id', 'orders.id', nullable=False),
        sa.Column('status', _enum('order_status'), nullable=False),
        sa.Column('changed_by', postgresql.UUID(as_uuid=True), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id', name='pk_order_status_history'),
    )
    op.create_index(
        'ix_order_status_history_order_id', 'order_status_history', ['order_id']
    )
    op.create_table(
        'order_item_status_history',
        _id(),
        _uuid_ref('order_item_id', 'order_items.id', nullable=False),
        sa.Column('status', _enum('order_item_status'), nullable=False),
        sa.Column('changed_by', postgresql.UUID(as_uuid=True), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id', name='pk_order_item_status_history'),
    )
    op.create_index(
        'ix_order_item_status_history_order_item_id',
        'order_item_status_history',
        ['order_item_id'],
    )


def downgrade() -> None:
    """
    Downgrade database schema by removing every pipeline table and enum type.
    """
    for table in (
        'order_item_status_history',
        'order_status_history',
        'order_item_materials',
        'order_item_socks',
        'order_item_packaging',
        'order_items',
        'prefacturas',
        'orders',
        'quotation_item_additions',
        'quotation_items',
        'quotations',
        'legal_status_records',
        'clients',
        'notifications',
        'role_permissions',
        'permissions',
        'roles',
        'additions',
        'inventory_items',
        'products',
    ):
        op.drop_table(table)

    for name in reversed(list(ENUM_TYPES)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
