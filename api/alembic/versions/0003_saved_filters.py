"""Saved queue filters

Revision ID: 0003_saved_filters
Revises: 0002_tickets

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0003_saved_filters'
down_revision = '0002_tickets'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'saved_filters',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('scope_type', sa.String(length=16), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('definition_json', sa.Text(), nullable=False),
        sa.Column('sort_field', sa.String(length=32), nullable=False, server_default='created_at'),
        sa.Column('sort_order', sa.String(length=4), nullable=False, server_default='DESC'),
        sa.Column('is_default', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('display_order', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_saved_filters_id', 'saved_filters', ['id'])
    op.create_index('idx_saved_filters_scope', 'saved_filters', ['scope_type', 'owner_id'])
    # At most one default per (scope_type, owner_id)
    op.create_index(
        'uq_saved_filters_default_scope',
        'saved_filters',
        ['scope_type', 'owner_id'],
        unique=True,
        postgresql_where=sa.text('is_default'),
        sqlite_where=sa.text('is_default = 1'),
    )


def downgrade():
    op.drop_index('uq_saved_filters_default_scope', table_name='saved_filters')
    op.drop_index('idx_saved_filters_scope', table_name='saved_filters')
    op.drop_index('ix_saved_filters_id', table_name='saved_filters')
    op.drop_table('saved_filters')
