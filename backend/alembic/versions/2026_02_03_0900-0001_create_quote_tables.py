"""create quote_requests and admin_users

Revision ID: 0001_quote_tables
Revises:
Create Date: 2026-02-03 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_quote_tables'
down_revision = None
branch_labels = None
depends_on = None


QUOTE_STATUSES = ('new', 'contacted', 'quoted', 'closed', 'needs_info')
ADMIN_ROLES = ('super_admin', 'admin', 'viewer')


def upgrade() -> None:
    # Idempotent: databases bootstrapped with create_all already have the tables
    conn = op.get_bind()
    existing_tables = sa.inspect(conn).get_table_names()

    if 'quote_requests' not in existing_tables:
        op.create_table('quote_requests',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('name', sa.String(length=100), nullable=False),
            sa.Column('company', sa.String(length=150), nullable=True),
            sa.Column('phone', sa.String(length=30), nullable=False),
            sa.Column('whatsapp', sa.String(length=30), nullable=True),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('product_name', sa.String(length=255), nullable=True),
            sa.Column('quantity', sa.String(length=50), nullable=True),
            sa.Column('project_details', sa.Text(), nullable=True),
            sa.Column('ip_address', sa.String(length=45), nullable=True),
            sa.Column('user_agent', sa.Text(), nullable=True),
            sa.Column('status', sa.Enum(*QUOTE_STATUSES, name='quotestatus'), nullable=False),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.Column('submission_day', sa.Date(), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('email', 'phone', 'submission_day', name='uq_quote_requests_email_phone_day')
        )
        op.create_index('ix_quote_requests_email', 'quote_requests', ['email'], unique=False)
        op.create_index('ix_quote_requests_status', 'quote_requests', ['status'], unique=False)
        op.create_index('ix_quote_requests_created_at', 'quote_requests', ['created_at'], unique=False)
        op.create_index('ix_quote_requests_status_created_at', 'quote_requests', ['status', 'created_at'], unique=False)

    if 'admin_users' not in existing_tables:
        op.create_table('admin_users',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('hashed_password', sa.String(length=255), nullable=False),
            sa.Column('full_name', sa.String(length=255), nullable=True),
            sa.Column('role', sa.Enum(*ADMIN_ROLES, name='adminrole'), nullable=False),
            sa.Column('is_active', sa.Boolean(), nullable=False),
            sa.Column('last_login_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_admin_users_email', 'admin_users', ['email'], unique=True)


def downgrade() -> None:
    op.drop_index('ix_admin_users_email', table_name='admin_users')
    op.drop_table('admin_users')

    op.drop_index('ix_quote_requests_status_created_at', table_name='quote_requests')
    op.drop_index('ix_quote_requests_created_at', table_name='quote_requests')
    op.drop_index('ix_quote_requests_status', table_name='quote_requests')
    op.drop_index('ix_quote_requests_email', table_name='quote_requests')
    op.drop_table('quote_requests')

    sa.Enum(name='adminrole').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='quotestatus').drop(op.get_bind(), checkfirst=True)
