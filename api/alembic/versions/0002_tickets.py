from alembic import op
import sqlalchemy as sa

revision = '0002_tickets'
down_revision = '0001_users_organizations'
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'tickets',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=64), nullable=False),
        sa.Column('priority', sa.String(length=64), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('assignee_id', sa.Integer, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('reporter_id', sa.Integer, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_by', sa.Integer, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('modified_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    )
    for col in ('status', 'priority', 'category', 'assignee_id', 'reporter_id', 'created_by', 'created_at'):
        op.create_index(f'ix_tickets_{col}', 'tickets', [col])

    op.create_table(
        'ticket_tags',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('ticket_id', sa.Integer, sa.ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tag', sa.String(length=64), nullable=False),
        sa.UniqueConstraint('ticket_id', 'tag', name='uq_ticket_tags_ticket_tag'),
    )
    op.create_index('ix_ticket_tags_ticket_id', 'ticket_tags', ['ticket_id'])
    op.create_index('ix_ticket_tags_tag', 'ticket_tags', ['tag'])

def downgrade():
    op.drop_index('ix_ticket_tags_tag', table_name='ticket_tags')
    op.drop_index('ix_ticket_tags_ticket_id', table_name='ticket_tags')
    op.drop_table('ticket_tags')
    for col in ('status', 'priority', 'category', 'assignee_id', 'reporter_id', 'created_by', 'created_at'):
        op.drop_index(f'ix_tickets_{col}', table_name='tickets')
    op.drop_table('tickets')
