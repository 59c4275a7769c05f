"""add quota_slot to quote_requests

Revision ID: 0002_quota_slot
Revises: 0001_quote_tables
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0002_quota_slot'
down_revision = '0001_quote_tables'
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Databases bootstrapped with create_all already have the column
    conn = op.get_bind()
    columns = {c['name'] for c in sa.inspect(conn).get_columns('quote_requests')}
    if 'quota_slot' in columns:
        return

    with op.batch_alter_table('quote_requests') as batch_op:
        batch_op.add_column(sa.Column('quota_slot', sa.Integer(), nullable=True))
        batch_op.create_unique_constraint(
            'uq_quote_requests_email_day_slot', ['email', 'submission_day', 'quota_slot']
        )


def downgrade() -> None:
    with op.batch_alter_table('quote_requests') as batch_op:
        batch_op.drop_constraint('uq_quote_requests_email_day_slot', type_='unique')
        batch_op.drop_column('quota_slot')
