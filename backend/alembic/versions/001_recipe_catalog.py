"""recipe_catalog_schema

Revision ID: 001_recipe_catalog
Revises:
Create Date: 2026-10-18

Creates the catalog tables the requirement resolver reads:
- products (dimensions stored as entered text, legacy weight strings)
- individual_products (serialized units for individually tracked products)
- raw_materials (current_stock + optional available_stock)
- recipes (versioned, one active per product)
- recipe_materials (per-sqm recipe lines; material_id may point at a product)

All DDL is guarded by existence checks so the migration is idempotent —
safe to run even when Base.metadata.create_all() already created the tables.
"""
import logging
from alembic import op
import sqlalchemy as sa
from sqlalchemy import text

revision = '001_recipe_catalog'
down_revision = None
branch_labels = None
depends_on = None

logger = logging.getLogger("alembic.001")


def _table_exists(conn, table_name: str) -> bool:
    result = conn.execute(
        text(
            "SELECT EXISTS("
            "  SELECT 1 FROM information_schema.tables"
            "  WHERE table_name = :tname"
            ")"
        ),
        {"tname": table_name},
    )
    return bool(result.scalar())


def _column_exists(conn, table_name: str, column_name: str) -> bool:
    result = conn.execute(
        text(
            "SELECT EXISTS("
            "  SELECT 1 FROM information_schema.columns"
            "  WHERE table_name = :tname AND column_name = :cname"
            ")"
        ),
        {"tname": table_name, "cname": column_name},
    )
    return bool(result.scalar())


def upgrade() -> None:
    conn = op.get_bind()

    # ── products ──────────────────────────────────────────────────────────────
    if not _table_exists(conn, 'products'):
        op.create_table(
            'products',
            sa.Column('id', sa.String(36), primary_key=True),
            sa.Column('name', sa.String(255), nullable=False),
            sa.Column('product_type', sa.String(50), nullable=True),
            sa.Column('length', sa.String(50), nullable=True),
            sa.Column('width', sa.String(50), nullable=True),
            sa.Column('length_unit', sa.String(20), nullable=True),
            sa.Column('width_unit', sa.String(20), nullable=True),
            sa.Column('weight', sa.String(50), nullable=True),
            sa.Column('gsm', sa.Numeric(12, 4), nullable=True),
            sa.Column('unit', sa.String(50), nullable=True, server_default='piece'),
            sa.Column('current_stock', sa.Numeric(14, 4), nullable=True, server_default='0'),
            sa.Column('individual_stock_tracking', sa.Boolean, nullable=False, server_default=sa.false()),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        logger.info("Created table: products")
    else:
        logger.info("Table products already exists — skipping create")

    # ── individual_products ───────────────────────────────────────────────────
    if not _table_exists(conn, 'individual_products'):
        op.create_table(
            'individual_products',
            sa.Column('id', sa.String(36), primary_key=True),
            sa.Column('product_id', sa.String(36),
                      sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
            sa.Column('serial_number', sa.String(100), nullable=True),
            sa.Column('status', sa.String(30), nullable=False, server_default='available'),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index(
            'ix_individual_products_product_status',
            'individual_products', ['product_id', 'status'],
        )
        logger.info("Created table: individual_products")

    # ── raw_materials ─────────────────────────────────────────────────────────
    if not _table_exists(conn, 'raw_materials'):
        op.create_table(
            'raw_materials',
            sa.Column('id', sa.String(36), primary_key=True),
            sa.Column('name', sa.String(255), nullable=False),
            sa.Column('unit', sa.String(50), nullable=False, server_default='kg'),
            sa.Column('current_stock', sa.Numeric(14, 4), nullable=True, server_default='0'),
            sa.Column('available_stock', sa.Numeric(14, 4), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        logger.info("Created table: raw_materials")
    elif not _column_exists(conn, 'raw_materials', 'available_stock'):
        # Older catalogs only tracked current_stock
        with op.batch_alter_table('raw_materials') as batch_op:
            batch_op.add_column(sa.Column('available_stock', sa.Numeric(14, 4), nullable=True))
        logger.info("Added column: raw_materials.available_stock")

    # ── recipes ───────────────────────────────────────────────────────────────
    if not _table_exists(conn, 'recipes'):
        op.create_table(
            'recipes',
            sa.Column('id', sa.String(36), primary_key=True),
            sa.Column('product_id', sa.String(36),
                      sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
            sa.Column('version', sa.String(20), nullable=False, server_default='1'),
            sa.Column('base_unit', sa.String(20), nullable=False, server_default='sqm'),
            sa.Column('description', sa.Text, nullable=True),
            sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index('ix_recipes_product_active', 'recipes', ['product_id', 'is_active'])
        logger.info("Created table: recipes")

    # ── recipe_materials ──────────────────────────────────────────────────────
    if not _table_exists(conn, 'recipe_materials'):
        op.create_table(
            'recipe_materials',
            sa.Column('id', sa.String(36), primary_key=True),
            sa.Column('recipe_id', sa.String(36),
                      sa.ForeignKey('recipes.id', ondelete='CASCADE'), nullable=False),
            sa.Column('position', sa.Integer, nullable=False, server_default='0'),
            sa.Column('material_id', sa.String(36), nullable=False),
            sa.Column('material_name', sa.String(255), nullable=False),
            sa.Column('material_type', sa.String(20), nullable=False, server_default='raw_material'),
            sa.Column('quantity_per_sqm', sa.Numeric(14, 6), nullable=False, server_default='0'),
            sa.Column('unit', sa.String(50), nullable=False, server_default='kg'),
        )
        logger.info("Created table: recipe_materials")


def downgrade() -> None:
    conn = op.get_bind()

    for table in ['recipe_materials', 'recipes', 'individual_products', 'raw_materials', 'products']:
        if _table_exists(conn, table):
            op.drop_table(table)
            logger.info(f"Dropped table: {table}")
