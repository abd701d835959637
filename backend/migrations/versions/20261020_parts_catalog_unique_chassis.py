"""parts catalog and unique chassis numbers

Revision ID: 20261020_parts_catalog
Revises: 20261019_initial
Create Date: 2026-10-20 00:00:00.000000

- part_categories, part_names: catalog offered when entering spare parts
- tractors.chassis_number: index becomes unique (NULLs allowed, blanks stored as NULL)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261020_parts_catalog'
down_revision = '20261019_initial'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'part_categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'part_names',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.ForeignKeyConstraint(['category_id'], ['part_categories.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('category_id', 'name', name='uq_part_names_category_name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_part_names_category_id', 'part_names', ['category_id'])

    # Blank chassis numbers would collide under the unique index
    op.execute("UPDATE tractors SET chassis_number = NULL WHERE TRIM(chassis_number) = ''")
    op.drop_index('ix_tractors_chassis_number', table_name='tractors')
    op.create_index('ix_tractors_chassis_number', 'tractors', ['chassis_number'], unique=True)


def downgrade():
    op.drop_index('ix_tractors_chassis_number', table_name='tractors')
    op.create_index('ix_tractors_chassis_number', 'tractors', ['chassis_number'])

    op.drop_index('ix_part_names_category_id', table_name='part_names')
    op.drop_table('part_names')
    op.drop_table('part_categories')
