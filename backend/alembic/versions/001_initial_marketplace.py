"""Initial marketplace schema

Revision ID: 001_initial_marketplace
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial_marketplace'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('display_name', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default='SEEKER'),
        sa.Column('is_age_verified', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_role'), 'users', ['role'], unique=False)

    # Create wallets table (one per user; balances never negative)
    op.create_table(
        'wallets',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('balance', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('escrow_balance', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_earned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_spent', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('balance >= 0', name='ck_wallet_balance_non_negative'),
        sa.CheckConstraint('escrow_balance >= 0', name='ck_wallet_escrow_non_negative'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )

    # Create bookings table
    op.create_table(
        'bookings',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('seeker_id', sa.String(), nullable=False),
        sa.Column('provider_id', sa.String(), nullable=False),
        sa.Column('service_type', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='PENDING'),
        sa.Column('token_amount', sa.Integer(), nullable=False),
        sa.Column('scheduled_at', sa.DateTime(), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('token_amount > 0', name='ck_booking_token_amount_positive'),
        sa.CheckConstraint('duration > 0', name='ck_booking_duration_positive'),
        sa.CheckConstraint('seeker_id <> provider_id', name='ck_booking_distinct_parties'),
        sa.ForeignKeyConstraint(['seeker_id'], ['users.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['provider_id'], ['users.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_bookings_seeker_id', 'bookings', ['seeker_id'], unique=False)
    op.create_index(
        'ix_bookings_provider_id_scheduled_at', 'bookings', ['provider_id', 'scheduled_at'], unique=False
    )
    op.create_index('ix_bookings_status', 'bookings', ['status'], unique=False)

    # Create token_transactions table (append-only ledger)
    op.create_table(
        'token_transactions',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('wallet_id', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('previous_balance', sa.Integer(), nullable=False),
        sa.Column('new_balance', sa.Integer(), nullable=False),
        sa.Column('booking_id', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_token_transaction_amount_positive'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_token_transactions_wallet_id', 'token_transactions', ['wallet_id'], unique=False)
    op.create_index(
        'ix_token_transactions_user_id_created_at', 'token_transactions', ['user_id', 'created_at'], unique=False
    )
    op.create_index('ix_token_transactions_booking_id', 'token_transactions', ['booking_id'], unique=False)

    # Create monitor_assignments table
    op.create_table(
        'monitor_assignments',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('booking_id', sa.String(), nullable=False),
        sa.Column('assigned_to', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assigned_to'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id')
    )
    op.create_index(op.f('ix_monitor_assignments_assigned_to'), 'monitor_assignments', ['assigned_to'], unique=False)

    # Create round_robin_counters table
    op.create_table(
        'round_robin_counters',
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('name')
    )

    # Create disputes table
    op.create_table(
        'disputes',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('booking_id', sa.String(), nullable=False),
        sa.Column('reported_by', sa.String(), nullable=False),
        sa.Column('reported_against', sa.String(), nullable=False),
        sa.Column('dispute_type', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('evidence', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='[]'),
        sa.Column('status', sa.String(), nullable=False, server_default='OPEN'),
        sa.Column('assigned_to', sa.String(), nullable=True),
        sa.Column('resolution', sa.Text(), nullable=True),
        sa.Column('outcome', sa.String(), nullable=True),
        sa.Column('appeal_reason', sa.Text(), nullable=True),
        sa.Column('appealed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reported_by'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reported_against'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assigned_to'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_disputes_booking_id', 'disputes', ['booking_id'], unique=False)
    op.create_index('ix_disputes_status', 'disputes', ['status'], unique=False)
    op.create_index('ix_disputes_reported_by', 'disputes', ['reported_by'], unique=False)
    op.create_index('ix_disputes_reported_against', 'disputes', ['reported_against'], unique=False)

    # Create chat_templates table
    op.create_table(
        'chat_templates',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('template_text', sa.Text(), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('variables', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='[]'),
        sa.Column('usage_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_chat_templates_category'), 'chat_templates', ['category'], unique=False)

    # Create messages table
    op.create_table(
        'messages',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('booking_id', sa.String(), nullable=False),
        sa.Column('sender_id', sa.String(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('media_url', sa.String(), nullable=True),
        sa.Column('is_system_message', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_flagged', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('flagged_reason', sa.String(), nullable=True),
        sa.Column('template_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['sender_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['template_id'], ['chat_templates.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_messages_booking_id_created_at', 'messages', ['booking_id', 'created_at'], unique=False)
    op.create_index('ix_messages_is_flagged', 'messages', ['is_flagged'], unique=False)

    # Create notifications table
    op.create_table(
        'notifications',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('booking_id', sa.String(), nullable=True),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('read', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'], unique=False)
    op.create_index('ix_notifications_user_id_read', 'notifications', ['user_id', 'read'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_notifications_user_id_read', table_name='notifications')
    op.drop_index(op.f('ix_notifications_user_id'), table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('ix_messages_is_flagged', table_name='messages')
    op.drop_index('ix_messages_booking_id_created_at', table_name='messages')
    op.drop_table('messages')
    op.drop_index(op.f('ix_chat_templates_category'), table_name='chat_templates')
    op.drop_table('chat_templates')
    op.drop_index('ix_disputes_reported_against', table_name='disputes')
    op.drop_index('ix_disputes_reported_by', table_name='disputes')
    op.drop_index('ix_disputes_status', table_name='disputes')
    op.drop_index('ix_disputes_booking_id', table_name='disputes')
    op.drop_table('disputes')
    op.drop_table('round_robin_counters')
    op.drop_index(op.f('ix_monitor_assignments_assigned_to'), table_name='monitor_assignments')
    op.drop_table('monitor_assignments')
    op.drop_index('ix_token_transactions_booking_id', table_name='token_transactions')
    op.drop_index('ix_token_transactions_user_id_created_at', table_name='token_transactions')
    op.drop_index('ix_token_transactions_wallet_id', table_name='token_transactions')
    op.drop_table('token_transactions')
    op.drop_index('ix_bookings_status', table_name='bookings')
    op.drop_index('ix_bookings_provider_id_scheduled_at', table_name='bookings')
    op.drop_index('ix_bookings_seeker_id', table_name='bookings')
    op.drop_table('bookings')
    op.drop_table('wallets')
    op.drop_index(op.f('ix_users_role'), table_name='users')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
