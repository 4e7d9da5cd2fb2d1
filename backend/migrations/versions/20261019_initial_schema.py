"""Initial schema: users, orders, consolidations, gamification, catalog cache

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. users (unique email, handle, dni)
2. pedidos and lineas (qty > 0, prices >= 0)
3. consolidaciones
4. badges, user_badges, points, user_levels
5. brand_ambassadors, user_brand_sales
6. catalogo_cache
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. USERS
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('dni', sa.String(length=32), nullable=False),
        sa.Column('telefono', sa.String(length=32), nullable=False),
        sa.Column('handle', sa.String(length=64), nullable=False),
        sa.Column('margen', sa.Float(), nullable=False, server_default='60'),
        sa.Column('cbu', sa.String(length=32), nullable=True),
        sa.Column('alias', sa.String(length=64), nullable=True),
        sa.Column('cvu', sa.String(length=32), nullable=True),
        sa.Column('profile_photo', sa.Text(), nullable=True),
        sa.Column('bio', sa.String(length=500), nullable=True),
        sa.Column('instagram', sa.String(length=255), nullable=True),
        sa.Column('facebook', sa.String(length=255), nullable=True),
        sa.Column('tiktok', sa.String(length=255), nullable=True),
        sa.Column('whatsapp_business', sa.String(length=255), nullable=True),
        sa.Column('linkedin', sa.String(length=255), nullable=True),
        sa.Column('twitter', sa.String(length=255), nullable=True),
        sa.Column('youtube', sa.String(length=255), nullable=True),
        sa.Column('website', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sa.UniqueConstraint('handle', name='uq_users_handle'),
        sa.UniqueConstraint('dni', name='uq_users_dni'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_users_email'), ['email'], unique=False)
        batch_op.create_index(batch_op.f('ix_users_handle'), ['handle'], unique=False)

    # ==========================================================================
    # 2. ORDERS
    # ==========================================================================
    op.create_table('pedidos',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('cliente', sa.String(length=128), nullable=False),
        sa.Column('telefono', sa.String(length=32), nullable=False),
        sa.Column('nota', sa.String(length=500), nullable=False, server_default=''),
        sa.Column('estado', sa.String(length=16), nullable=False, server_default='pendiente'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('pedidos', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_pedidos_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_pedidos_estado'), ['estado'], unique=False)
        batch_op.create_index('ix_pedidos_user_estado', ['user_id', 'estado'], unique=False)

    op.create_table('lineas',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pedido_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('variant_id', sa.String(length=64), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('brand', sa.String(length=128), nullable=False, server_default=''),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('talle', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('color', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('mayorista', sa.Float(), nullable=False),
        sa.Column('venta', sa.Float(), nullable=False),
        sa.CheckConstraint('qty > 0', name='ck_lineas_qty_positive'),
        sa.CheckConstraint('mayorista >= 0', name='ck_lineas_mayorista_non_negative'),
        sa.CheckConstraint('venta >= 0', name='ck_lineas_venta_non_negative'),
        sa.ForeignKeyConstraint(['pedido_id'], ['pedidos.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('lineas', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_lineas_pedido_id'), ['pedido_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_lineas_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_lineas_brand'), ['brand'], unique=False)

    # ==========================================================================
    # 3. CONSOLIDATIONS
    # ==========================================================================
    op.create_table('consolidaciones',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('pedido_ids', sa.Text(), nullable=False),
        sa.Column('forma_pago', sa.String(length=64), nullable=False),
        sa.Column('tipo_envio', sa.String(length=64), nullable=False),
        sa.Column('transporte_nombre', sa.String(length=128), nullable=True),
        sa.Column('total_mayorista', sa.Float(), nullable=False),
        sa.Column('total_venta', sa.Float(), nullable=False),
        sa.Column('descuento_total', sa.Float(), nullable=False, server_default='0'),
        sa.Column('ganancia', sa.Float(), nullable=False),
        sa.Column('costo_real', sa.Float(), nullable=True),
        sa.Column('ganancia_neta', sa.Float(), nullable=True),
        sa.Column('enviado_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('consolidaciones', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_consolidaciones_user_id'), ['user_id'], unique=False)

    # ==========================================================================
    # 4. GAMIFICATION
    # ==========================================================================
    op.create_table('badges',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('slug', sa.String(length=128), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('icon', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('rarity', sa.String(length=16), nullable=False, server_default='common'),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('condition', sa.Text(), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug', name='uq_badges_slug'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('badges', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_badges_slug'), ['slug'], unique=False)
        batch_op.create_index(batch_op.f('ix_badges_category'), ['category'], unique=False)

    op.create_table('user_badges',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('badge_id', sa.Integer(), nullable=False),
        sa.Column('unlocked_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['badge_id'], ['badges.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'badge_id', name='uq_user_badges_user_badge'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('user_badges', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_user_badges_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_user_badges_badge_id'), ['badge_id'], unique=False)

    op.create_table('points',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('pedido_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=32), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['pedido_id'], ['pedidos.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('points', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_points_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_points_pedido_id'), ['pedido_id'], unique=False)
        batch_op.create_index('ix_points_user_reason', ['user_id', 'reason'], unique=False)

    op.create_table('user_levels',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('current_level', sa.String(length=32), nullable=False, server_default='principiante'),
        sa.Column('current_xp', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_sales', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('highest_level', sa.String(length=32), nullable=False, server_default='principiante'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', name='uq_user_levels_user'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('user_levels', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_user_levels_user_id'), ['user_id'], unique=False)

    # ==========================================================================
    # 5. BRAND AMBASSADORS
    # ==========================================================================
    op.create_table('brand_ambassadors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('brand_slug', sa.String(length=64), nullable=False),
        sa.Column('brand_name', sa.String(length=128), nullable=False),
        sa.Column('logo_emoji', sa.String(length=16), nullable=False),
        sa.Column('logo_url', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('brand_slug', name='uq_brand_ambassadors_slug'),
        sqlite_autoincrement=True
    )

    op.create_table('user_brand_sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('brand_slug', sa.String(length=64), nullable=False),
        sa.Column('sales_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'brand_slug', name='uq_user_brand_sales'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('user_brand_sales', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_user_brand_sales_user_id'), ['user_id'], unique=False)

    # ==========================================================================
    # 6. CATALOG CACHE
    # ==========================================================================
    op.create_table('catalogo_cache',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('data', sa.Text(), nullable=False),
        sa.Column('brand', sa.String(length=128), nullable=False, server_default=''),
        sa.Column('category', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('sex', sa.String(length=16), nullable=False, server_default='Unisex'),
        sa.Column('sales_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', name='uq_catalogo_cache_product'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('catalogo_cache', schema=None) as batch_op:
        batch_op.create_index('ix_catalogo_cache_sales', ['sales_count'], unique=False)
        batch_op.create_index(batch_op.f('ix_catalogo_cache_brand'), ['brand'], unique=False)
        batch_op.create_index(batch_op.f('ix_catalogo_cache_sex'), ['sex'], unique=False)


def downgrade():
    op.drop_table('catalogo_cache')
    op.drop_table('user_brand_sales')
    op.drop_table('brand_ambassadors')
    op.drop_table('user_levels')
    op.drop_table('points')
    op.drop_table('user_badges')
    op.drop_table('badges')
    op.drop_table('consolidaciones')
    op.drop_table('lineas')
    op.drop_table('pedidos')
    op.drop_table('users')
