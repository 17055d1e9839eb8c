"""
Initial shared finance schema

Revision ID: 0001_initial
Revises:
Create Date: 2025-11-20 10:00:00
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
    ]


def upgrade() -> None:
    # On SQLite the enums become CHECK-constrained TEXT
    friendship_status = sa.Enum('PENDING', 'ACCEPTED', 'REJECTED', name='friendship_status')
    txn_type = sa.Enum('INCOME', 'EXPENSE', name='txn_type')
    participant_status = sa.Enum('PENDING', 'ACCEPTED', 'REJECTED', 'EXITED', name='participant_status')
    installment_status = sa.Enum('PENDING', 'PAID', name='installment_status')
    merge_request_status = sa.Enum('PENDING', 'ACCEPTED', 'REJECTED', name='merge_request_status')

    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False, unique=True),
        sa.Column('username', sa.String(length=50), nullable=False, unique=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        *_timestamps(),
    )

    op.create_table(
        'friendship',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('requester_id', sa.Integer(), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False),
        sa.Column('addressee_id', sa.Integer(), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', friendship_status, nullable=False, server_default='PENDING'),
        *_timestamps(),
        sa.UniqueConstraint('requester_id', 'addressee_id', name='uq_friendship_pair'),
        sa.CheckConstraint('requester_id != addressee_id', name='ck_friendship_not_self'),
    )

    op.create_table(
        'externalfriend',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'name', name='uq_external_friend_name'),
    )

    op.create_table(
        'category',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=True),
        sa.Column('is_system', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        *_timestamps(),
    )

    op.create_table(
        'transaction',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('creator_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('category.id'), nullable=False),
        sa.Column('type', txn_type, nullable=False),
        sa.Column('amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='BRL'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('is_shared', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('is_fixed', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('recurrence_ends_at', sa.Date(), nullable=True),
        sa.Column('excluded_dates', sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        *_timestamps(),
        sa.CheckConstraint('amount > 0', name='ck_txn_amount_positive'),
    )
    op.create_index('ix_txn_creator_date', 'transaction', ['creator_id', 'date'])

    op.create_table(
        'transactionparticipant',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('transaction_id', sa.Integer(), sa.ForeignKey('transaction.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id', ondelete='SET NULL'), nullable=True),
        sa.Column('placeholder_name', sa.String(length=100), nullable=True),
        sa.Column('share_amount', sa.Numeric(18, 2), nullable=False, server_default='0'),
        sa.Column('share_percent', sa.Numeric(7, 2), nullable=False, server_default='0'),
        sa.Column('base_share_amount', sa.Numeric(18, 2), nullable=True),
        sa.Column('base_share_percent', sa.Numeric(7, 2), nullable=True),
        sa.Column('status', participant_status, nullable=False, server_default='PENDING'),
        *_timestamps(),
        sa.UniqueConstraint('transaction_id', 'user_id', name='uq_participant_txn_user'),
        sa.CheckConstraint('user_id IS NOT NULL OR placeholder_name IS NOT NULL', name='ck_participant_identity'),
    )
    op.create_index('ix_participant_user_status', 'transactionparticipant', ['user_id', 'status'])

    op.create_table(
        'installment',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('transaction_id', sa.Integer(), sa.ForeignKey('transaction.id', ondelete='CASCADE'), nullable=False),
        sa.Column('number', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('status', installment_status, nullable=False, server_default='PENDING'),
        *_timestamps(),
        sa.UniqueConstraint('transaction_id', 'number', name='uq_installment_number'),
    )

    op.create_table(
        'notification',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        *_timestamps(),
    )
    op.create_index('ix_notification_user_created', 'notification', ['user_id', 'created_at'])

    op.create_table(
        'mergerequest',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('requester_id', sa.Integer(), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False),
        sa.Column('target_user_id', sa.Integer(), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False),
        sa.Column('placeholder_name', sa.String(length=100), nullable=False),
        sa.Column('status', merge_request_status, nullable=False, server_default='PENDING'),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table('mergerequest')
    op.drop_index('ix_notification_user_created', table_name='notification')
    op.drop_table('notification')
    op.drop_table('installment')
    op.drop_index('ix_participant_user_status', table_name='transactionparticipant')
    op.drop_table('transactionparticipant')
    op.drop_index('ix_txn_creator_date', table_name='transaction')
    op.drop_table('transaction')
    op.drop_table('category')
    op.drop_table('externalfriend')
    op.drop_table('friendship')
    op.drop_table('user')
