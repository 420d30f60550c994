"""Create catalog record, audit and user tables

Revision ID: 001_create_record_tables
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_create_record_tables'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _stamp_columns():
    return [
        sa.Column('created_by', sa.String(length=128), nullable=True),
        sa.Column('updated_by', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Create product_lines, products, audit_logs and users."""
    op.create_table(
        'product_lines',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('type_of_products', sa.String(length=255), nullable=True),
        sa.Column('product_line_manager', sa.String(length=255), nullable=True),
        sa.Column('strength', sa.Text(), nullable=True),
        sa.Column('weakness', sa.Text(), nullable=True),
        *_stamp_columns(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_product_lines_name'),
    )

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('product_line', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('capacity', sa.String(length=100), nullable=True),
        sa.Column('gmdc_pct', sa.Numeric(precision=5, scale=2), nullable=True),
        sa.Column('product_pictures', sa.String(length=512), nullable=True),
        sa.Column('spec_sheet', sa.String(length=512), nullable=True),
        *_stamp_columns(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_products_name'),
        sa.UniqueConstraint('product_pictures', name='uq_products_product_pictures'),
        sa.UniqueConstraint('spec_sheet', name='uq_products_spec_sheet'),
    )

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('action', sa.String(length=20), nullable=False),
        sa.Column('table_name', sa.String(length=100), nullable=False),
        sa.Column('document_id', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('user_display_name', sa.String(length=255), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('trace_id', sa.String(length=128), nullable=True),
        sa.Column('logged_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_table_name', 'audit_logs', ['table_name'], unique=False)
    op.create_index('ix_audit_logs_document_id', 'audit_logs', ['document_id'], unique=False)
    op.create_index('ix_audit_logs_logged_at', 'audit_logs', ['logged_at'], unique=False)

    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('username', sa.String(length=100), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=True),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)


def downgrade() -> None:
    """Drop all service tables."""
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
    op.drop_index('ix_audit_logs_logged_at', table_name='audit_logs')
    op.drop_index('ix_audit_logs_document_id', table_name='audit_logs')
    op.drop_index('ix_audit_logs_table_name', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_table('products')
    op.drop_table('product_lines')
