"""referrals and profiles

Revision ID: 001
Revises: 
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # profiles belongs to the managed backend; created here for local development only
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('role', sa.String(20), nullable=True),
        sa.Column('full_name', sa.String(200), nullable=True),
        sa.Column('dni', sa.String(8), nullable=True),
        sa.Column('has_verisure', sa.Boolean(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'referrals',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('referrer_user_id', sa.String(), nullable=True),
        sa.Column('referrer_email', sa.String(254), nullable=True),
        sa.Column('referred_name', sa.String(200), nullable=False),
        sa.Column('referred_email', sa.String(254), nullable=True),
        sa.Column('referred_phone', sa.String(9), nullable=False),
        sa.Column('consent', sa.Boolean(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='registered'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('camp', sa.String(80), nullable=True),
        sa.Column('utm_source', sa.String(80), nullable=True),
        sa.Column('utm_medium', sa.String(80), nullable=True),
        sa.Column('utm_campaign', sa.String(120), nullable=True),
        sa.Column('utm_term', sa.String(120), nullable=True),
        sa.Column('utm_content', sa.String(120), nullable=True),
        sa.Column('landing_path', sa.String(200), nullable=True),
        sa.Column('referer', sa.String(300), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('referred_email', name='referrals_referred_email_uq'),
        sa.UniqueConstraint('referred_phone', name='referrals_referred_phone_uq'),
        sa.CheckConstraint(
            'referrer_user_id IS NOT NULL OR referrer_email IS NOT NULL',
            name='referrals_referrer_present',
        ),
    )
    op.create_index('ix_referrals_id', 'referrals', ['id'])
    op.create_index('ix_referrals_referrer_user_id', 'referrals', ['referrer_user_id'])
    op.create_index('ix_referrals_referrer_email', 'referrals', ['referrer_email'])
    op.create_index('ix_referrals_status', 'referrals', ['status'])
    op.create_index('idx_referrals_created_at', 'referrals', ['created_at'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('idx_referrals_created_at', table_name='referrals')
    op.drop_index('ix_referrals_status', table_name='referrals')
    op.drop_index('ix_referrals_referrer_email', table_name='referrals')
    op.drop_index('ix_referrals_referrer_user_id', table_name='referrals')
    op.drop_index('ix_referrals_id', table_name='referrals')
    op.drop_table('referrals')
    op.drop_table('profiles')
