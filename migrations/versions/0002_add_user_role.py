"""
Add role column to user (operators see reconciler endpoints)
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0002_add_user_role'
down_revision = '0001_consent_ledger_schema'
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table('user') as batch_op:
        batch_op.add_column(sa.Column('role', sa.String(length=20), nullable=False, server_default='user'))


def downgrade():
    with op.batch_alter_table('user') as batch_op:
        batch_op.drop_column('role')
