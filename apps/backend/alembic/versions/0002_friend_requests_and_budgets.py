"""friend requests and budgets

Revision ID: 0002_friends_budgets
Revises: 0001_initial
Create Date: 2025-11-27 09:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0002_friends_budgets'
down_revision: Union[str, None] = '0001_initial'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    dialect = bind.dialect.name if bind else None
    if dialect == "postgresql":
        op.execute(sa.text("ALTER TYPE friendship_status RENAME VALUE 'REJECTED' TO 'DECLINED'"))
        op.execute(sa.text("ALTER TYPE friendship_status ADD VALUE IF NOT EXISTS 'CANCELLED'"))
    else:
        op.execute(sa.text("UPDATE friendship SET status = 'DECLINED' WHERE status = 'REJECTED'"))

    op.create_table(
        'friendrequestlog',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('requester_id', sa.Integer(), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False),
        sa.Column('addressee_id', sa.Integer(), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
    )
    op.create_index(
        'ix_friend_request_log_pair',
        'friendrequestlog',
        ['requester_id', 'addressee_id', 'created_at'],
    )

    op.create_table(
        'budget',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('category.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'period',
            sa.Enum('MONTHLY', 'YEARLY', name='budget_period'),
            nullable=False,
            server_default='MONTHLY',
        ),
        sa.Column('amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('soft_limit', sa.Numeric(18, 2), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.UniqueConstraint('user_id', 'category_id', 'period', name='uq_budget_category_period'),
        sa.CheckConstraint('amount > 0', name='ck_budget_amount_positive'),
    )


def downgrade() -> None:
    op.drop_table('budget')
    op.drop_index('ix_friend_request_log_pair', table_name='friendrequestlog')
    op.drop_table('friendrequestlog')

    bind = op.get_bind()
    dialect = bind.dialect.name if bind else None
    # Postgres cannot drop an enum value; CANCELLED rows become DECLINED
    op.execute(sa.text("UPDATE friendship SET status = 'DECLINED' WHERE status = 'CANCELLED'"))
    if dialect == "postgresql":
        op.execute(sa.text("ALTER TYPE friendship_status RENAME VALUE 'DECLINED' TO 'REJECTED'"))
    else:
        op.execute(sa.text("UPDATE friendship SET status = 'REJECTED' WHERE status = 'DECLINED'"))
