"""Webhook registry, request bins and demo table

Revision ID: 0001_webhook_registry
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001_webhook_registry'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Subscriptions (read fresh by the listener and the gatekeeper gate)
    op.create_table('webhooks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('events', postgresql.JSONB(), server_default='[]', nullable=False),
        sa.Column('table_name', sa.String(), nullable=True),
        sa.Column('target_column', sa.String(), nullable=True),
        sa.Column('active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_webhooks_table_name'), 'webhooks', ['table_name'], unique=False)
    op.create_index(op.f('ix_webhooks_active'), 'webhooks', ['active'], unique=False)

    # Request bins
    op.create_table('webhook_listeners',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('uuid', sa.String(), nullable=False),
        sa.Column('name', sa.String(), server_default='Untitled Listener', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_webhook_listeners_uuid'), 'webhook_listeners', ['uuid'], unique=True)

    op.create_table('listener_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('listener_id', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(), nullable=False),
        sa.Column('headers', postgresql.JSONB(), server_default='{}', nullable=False),
        sa.Column('body', postgresql.JSONB(), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['listener_id'], ['webhook_listeners.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_listener_logs_listener_id'), 'listener_logs', ['listener_id'], unique=False)

    # Demo table for the simulator
    op.create_table('test_webhook',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    op.drop_table('test_webhook')
    op.drop_index(op.f('ix_listener_logs_listener_id'), table_name='listener_logs')
    op.drop_table('listener_logs')
    op.drop_index(op.f('ix_webhook_listeners_uuid'), table_name='webhook_listeners')
    op.drop_table('webhook_listeners')
    op.drop_index(op.f('ix_webhooks_active'), table_name='webhooks')
    op.drop_index(op.f('ix_webhooks_table_name'), table_name='webhooks')
    op.drop_table('webhooks')
