"""add_admin_totp_tables

Revision ID: 3f1c9a7d2b40
Revises:
Create Date: 2026-10-19 10:42:07.512934

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'admins',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username')
    )
    op.create_table(
        'admin_totp_secrets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('admin_id', sa.Integer(), nullable=False),
        sa.Column('secret', sa.String(length=64), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['admin_id'], ['admins.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('admin_id')
    )
    op.create_table(
        'admin_backup_codes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('admin_id', sa.Integer(), nullable=False),
        sa.Column('code_hash', sa.String(length=255), nullable=False),
        sa.Column('used', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('used_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['admin_id'], ['admins.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_admin_backup_codes_admin_id', 'admin_backup_codes', ['admin_id'])
    op.create_index('idx_admin_backup_codes_admin_used', 'admin_backup_codes', ['admin_id', 'used'])
    # only written by the optional attempt limiter
    op.create_table(
        'admin_totp_attempts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('admin_id', sa.Integer(), nullable=False),
        sa.Column('ip_address', sa.String(length=45), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_attempt', sa.DateTime(), nullable=True),
        sa.Column('locked_until', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['admin_id'], ['admins.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('admin_id', 'ip_address', name='uq_admin_totp_attempts_admin_ip')
    )
    op.create_index('ix_admin_totp_attempts_locked_until', 'admin_totp_attempts', ['locked_until'])


def downgrade() -> None:
    op.drop_index('ix_admin_totp_attempts_locked_until', table_name='admin_totp_attempts')
    op.drop_table('admin_totp_attempts')
    op.drop_index('idx_admin_backup_codes_admin_used', table_name='admin_backup_codes')
    op.drop_index('ix_admin_backup_codes_admin_id', table_name='admin_backup_codes')
    op.drop_table('admin_backup_codes')
    op.drop_table('admin_totp_secrets')
    op.drop_table('admins')
